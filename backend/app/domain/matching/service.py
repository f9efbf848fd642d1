"""Match scoring engine: candidate discovery, filtering and ranking."""

from __future__ import annotations

import logging
from typing import List, Optional

from pydantic import ValidationError as PayloadError

from app.domain.errors import LocationRequired, ValidationError
from app.domain.matching import scoring
from app.domain.matching.models import (
	CandidateProfile,
	MatchCandidate,
	MatchFilters,
	MatchPreferences,
	MatchScore,
)
from app.domain.matching.repository import MatchRepository, PreferenceRepository, ProfileRepository
from app.domain.proximity import geo
from app.domain.proximity.privacy import PrivacyZoneService, visibility
from app.domain.proximity.service import COARSE_BUCKET_M, LocationService
from app.infra.rate_limit import RateLimiter
from app.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

GET_MATCHES = "get_matches"


def _passes_filters(prefs: MatchPreferences, profile: Optional[CandidateProfile], theirs: MatchPreferences) -> bool:
	if prefs.min_age is not None or prefs.max_age is not None:
		age = profile.age if profile else None
		if age is None:
			return False
		if prefs.min_age is not None and age < prefs.min_age:
			return False
		if prefs.max_age is not None and age > prefs.max_age:
			return False
	if prefs.verified_only and not (profile and profile.verified):
		return False
	if prefs.with_photo and not (profile and profile.has_photo):
		return False
	if prefs.activity_type and prefs.activity_type not in theirs.activity_types:
		return False
	return True


class MatchScoringEngine:
	def __init__(
		self,
		locations: LocationService,
		zones: PrivacyZoneService,
		matches: MatchRepository,
		preferences: PreferenceRepository,
		profiles: ProfileRepository,
		limiter: RateLimiter,
		*,
		default_max_distance_km: float = 10.0,
		max_results: int = 50,
	) -> None:
		self._locations = locations
		self._zones = zones
		self._matches = matches
		self._preferences = preferences
		self._profiles = profiles
		self._limiter = limiter
		self._default_max_distance_km = default_max_distance_km
		self._max_results = max_results

	async def get_preferences(self, user_id: str) -> MatchPreferences:
		stored = await self._preferences.get(user_id)
		return stored or MatchPreferences(max_distance_km=self._default_max_distance_km)

	async def update_preferences(self, user_id: str, prefs: MatchPreferences) -> MatchPreferences:
		return await self._preferences.save(user_id, prefs)

	async def find_matches(self, user_id: str, filters: Optional[MatchFilters] = None) -> List[MatchCandidate]:
		"""Rank nearby candidates for ``user_id``.

		The rate limit is consumed before any lookup. Candidates come from a
		bounding-box query refined by haversine distance, then lose anyone
		blocked, hidden by their own privacy zones, or failing a filter.
		"""

		await self._limiter.enforce(GET_MATCHES, user_id)
		me = await self._locations.find_current_location(user_id)
		if me is None:
			raise LocationRequired()
		try:
			prefs = (await self.get_preferences(user_id)).with_filters(filters)
		except PayloadError as exc:
			raise ValidationError("invalid match filters") from exc

		nearby = await self._locations.current_in_radius(user_id, me.point, prefs.max_distance_km * 1000)
		ids = [record.user_id for record, _ in nearby]
		relations = await self._matches.relations(user_id)
		zones = await self._zones.zones_for(ids)
		profiles = await self._profiles.get_many(ids)
		their_prefs = await self._preferences.get_many(ids)

		results: List[MatchCandidate] = []
		for record, distance in nearby:
			if record.user_id in relations.blocked:
				continue
			if prefs.privacy_mode and record.privacy_mode != prefs.privacy_mode:
				continue
			seen = visibility(
				record,
				zones.get(record.user_id, []),
				viewer_is_match=record.user_id in relations.matched,
			)
			if seen == "hidden":
				continue
			theirs = their_prefs.get(record.user_id) or MatchPreferences()
			if not _passes_filters(prefs, profiles.get(record.user_id), theirs):
				continue
			if seen == "coarse":
				distance = geo.round_up_to_bucket(distance * 1000, COARSE_BUCKET_M) / 1000
			score = self._score(distance, prefs, theirs)
			results.append(
				MatchCandidate(
					user_id=record.user_id,
					distance_km=distance,
					score=score,
					privacy_mode=record.privacy_mode,
				)
			)

		results.sort(key=lambda c: (-c.score.total, c.distance_km))
		obs_metrics.match_query(len(results))
		logger.info("match query", extra={"candidates": len(nearby), "results": len(results)})
		return results[: self._max_results]

	@staticmethod
	def _score(distance_km: float, mine: MatchPreferences, theirs: MatchPreferences) -> MatchScore:
		return scoring.compute_score(
			distance_km,
			activity_types=(mine.activity_types, theirs.activity_types),
			availability=(mine.availability, theirs.availability),
			interests=(mine.interests, theirs.interests),
		)

	async def score_pair(self, user_id: str, other_id: str) -> MatchScore:
		"""Score two users directly; a missing location scores as far away."""
		mine = await self.get_preferences(user_id)
		theirs = await self.get_preferences(other_id)
		a = await self._locations.find_current_location(user_id)
		b = await self._locations.find_current_location(other_id)
		if a is None or b is None:
			distance = scoring.ZERO_SCORE_KM
		else:
			distance = geo.distance_km(a.latitude, a.longitude, b.latitude, b.longitude)
		return self._score(distance, mine, theirs)
