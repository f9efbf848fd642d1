"""Match lifecycle: pending -> accepted / declined / blocked."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

import ulid

from app.domain.errors import Conflict, Forbidden, ValidationError
from app.domain.matching.models import TRANSITIONS, Match, MatchReport
from app.domain.matching.repository import MatchRepository
from app.domain.matching.service import MatchScoringEngine
from app.domain.realtime.events import EventType, MatchUpdatePayload
from app.domain.realtime.hub import RealtimeHub
from app.infra.rate_limit import RateLimiter
from app.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

MATCH_ACTION = "match_action"
MAX_REASON = 500


def _utcnow() -> datetime:
	return datetime.now(timezone.utc)


class MatchLifecycleManager:
	"""Authorizes, rate-limits and applies match status transitions.

	Transitions are compare-and-swap on the match version, so a stale writer
	gets Conflict instead of overwriting a newer status.
	"""

	def __init__(
		self,
		repository: MatchRepository,
		engine: MatchScoringEngine,
		limiter: RateLimiter,
		hub: RealtimeHub,
		*,
		clock: Callable[[], datetime] = _utcnow,
	) -> None:
		self._repo = repository
		self._engine = engine
		self._limiter = limiter
		self._hub = hub
		self._clock = clock

	async def _participant(self, user_id: str, match_id: str) -> Match:
		match = await self._repo.get(match_id)
		# a missing match and a foreign match look the same to the caller
		if match is None or not match.involves(user_id):
			raise Forbidden("not a participant in this match")
		return match

	async def participants(self, match_id: str) -> Optional[Sequence[str]]:
		match = await self._repo.get(match_id)
		if match is None or match.status == "blocked":
			return None
		return match.participants

	async def request_match(self, user_id: str, matched_user_id: str) -> Match:
		if not matched_user_id or matched_user_id == user_id:
			raise ValidationError("cannot match with yourself")
		await self._limiter.enforce(MATCH_ACTION, user_id)
		existing = await self._repo.find_between(user_id, matched_user_id)
		if existing is not None and existing.status != "declined":
			raise Conflict("a match already exists for this pair")
		score = await self._engine.score_pair(user_id, matched_user_id)
		now = self._clock()
		match = Match(
			id=ulid.new().str,
			user_id=user_id,
			matched_user_id=matched_user_id,
			status="pending",
			score=score.total,
			version=1,
			created_at=now,
			updated_at=now,
		)
		await self._repo.create(match)
		obs_metrics.match_transition("request")
		await self._publish(match, actor_id=user_id)
		return match

	async def get_match_status(self, user_id: str, match_id: str) -> Match:
		return await self._participant(user_id, match_id)

	async def list_matches(self, user_id: str, *, status: Optional[str] = None) -> List[Match]:
		if status is not None and status not in TRANSITIONS:
			raise ValidationError("unknown match status")
		return await self._repo.list_for_user(user_id, status=status)

	async def accept_match(self, user_id: str, match_id: str, *, expected_version: Optional[int] = None) -> Match:
		return await self._transition(user_id, match_id, "accepted", expected_version)

	async def reject_match(self, user_id: str, match_id: str, *, expected_version: Optional[int] = None) -> Match:
		return await self._transition(user_id, match_id, "declined", expected_version)

	async def block_match(self, user_id: str, match_id: str, *, expected_version: Optional[int] = None) -> Match:
		return await self._transition(user_id, match_id, "blocked", expected_version)

	async def _transition(
		self,
		user_id: str,
		match_id: str,
		target: str,
		expected_version: Optional[int],
	) -> Match:
		match = await self._participant(user_id, match_id)
		await self._limiter.enforce(MATCH_ACTION, user_id)
		if expected_version is not None and expected_version != match.version:
			raise Conflict("match has changed since it was read")
		if target not in TRANSITIONS[match.status]:
			raise Conflict(f"cannot move a {match.status} match to {target}")
		updated = await self._repo.compare_and_set(
			match_id,
			expected_version=match.version,
			status=target,
			now=self._clock(),
		)
		if updated is None:
			raise Conflict("match has changed since it was read")
		obs_metrics.match_transition(target)
		logger.info(
			"match transition",
			extra={"match_id": match_id, "from_status": match.status, "to_status": target, "version": updated.version},
		)
		await self._publish(updated, actor_id=user_id)
		return updated

	async def report_match(self, user_id: str, match_id: str, reason: str) -> MatchReport:
		match = await self._participant(user_id, match_id)
		cleaned = (reason or "").strip()
		if not cleaned:
			raise ValidationError("a reason is required to report a match")
		if len(cleaned) > MAX_REASON:
			raise ValidationError("reason is too long")
		await self._limiter.enforce(MATCH_ACTION, user_id)
		report = MatchReport(
			id=ulid.new().str,
			match_id=match.id,
			reporter_id=user_id,
			reason=cleaned,
			created_at=self._clock(),
		)
		await self._repo.add_report(report)
		obs_metrics.match_transition("report")
		logger.warning("match reported", extra={"match_id": match.id, "report_id": report.id})
		return report

	async def _publish(self, match: Match, *, actor_id: str) -> None:
		payload = MatchUpdatePayload(
			match_id=match.id,
			user_id=match.user_id,
			matched_user_id=match.matched_user_id,
			status=match.status,
			version=match.version,
			score=match.score,
			actor_id=actor_id,
			updated_at=match.updated_at,
		)
		await self._hub.publish(EventType.MATCH_UPDATE, payload, user_ids=match.participants)

