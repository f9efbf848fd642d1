"""Composite match score.

Weights are applied as-is: distance 0.3, activity types 0.3, availability
0.2. They sum to 0.8, so the best achievable total is 80. Interests are
reported as a subscore but carry no weight.
"""

from __future__ import annotations

import math
from typing import Iterable

from app.domain.matching.models import MatchScore

WEIGHT_DISTANCE = 0.3
WEIGHT_ACTIVITY_TYPES = 0.3
WEIGHT_AVAILABILITY = 0.2

FULL_SCORE_KM = 1.0
ZERO_SCORE_KM = 50.0
NEUTRAL = 50.0


def _clamp(value: float) -> float:
	return max(0.0, min(100.0, value))


def distance_score(distance_km: float) -> float:
	if distance_km <= FULL_SCORE_KM:
		return 100.0
	return _clamp(100.0 - (distance_km / ZERO_SCORE_KM) * 100.0)


def jaccard_score(a: Iterable[str], b: Iterable[str]) -> float:
	left, right = set(a), set(b)
	if not left or not right:
		return NEUTRAL
	return _clamp(len(left & right) / len(left | right) * 100.0)


def availability_score(a: Iterable[str], b: Iterable[str]) -> float:
	left, right = set(a), set(b)
	if not left or not right:
		return NEUTRAL
	return _clamp(len(left & right) / max(len(left), len(right)) * 100.0)


def round_half_up(value: float) -> int:
	return int(math.floor(value + 0.5))


def compute_score(
	distance_km: float,
	*,
	activity_types: tuple[Iterable[str], Iterable[str]],
	availability: tuple[Iterable[str], Iterable[str]],
	interests: tuple[Iterable[str], Iterable[str]] = ((), ()),
) -> MatchScore:
	dist = distance_score(distance_km)
	activity = jaccard_score(*activity_types)
	avail = availability_score(*availability)
	total = round_half_up(dist * WEIGHT_DISTANCE + activity * WEIGHT_ACTIVITY_TYPES + avail * WEIGHT_AVAILABILITY)
	return MatchScore(
		total=total,
		distance=dist,
		interests=jaccard_score(*interests),
		availability=avail,
		activity_types=activity,
	)
