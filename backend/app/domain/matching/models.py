"""Match records, scoring results and match preferences."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from app.domain.proximity.models import PrivacyMode

MatchStatus = Literal["pending", "accepted", "declined", "blocked"]
TimeWindow = Literal["now", "today", "this_week", "any"]

# blocked is reachable from everywhere and terminal
TRANSITIONS: dict[str, frozenset[str]] = {
	"pending": frozenset({"accepted", "declined", "blocked"}),
	"accepted": frozenset({"blocked"}),
	"declined": frozenset({"blocked"}),
	"blocked": frozenset(),
}


@dataclass(slots=True)
class Match:
	id: str
	user_id: str
	matched_user_id: str
	status: MatchStatus
	score: int
	version: int
	created_at: datetime
	updated_at: datetime

	@property
	def participants(self) -> tuple[str, str]:
		return (self.user_id, self.matched_user_id)

	def involves(self, user_id: str) -> bool:
		return user_id in self.participants

	def other(self, user_id: str) -> str:
		return self.matched_user_id if user_id == self.user_id else self.user_id

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"user_id": self.user_id,
			"matched_user_id": self.matched_user_id,
			"status": self.status,
			"score": self.score,
			"version": self.version,
			"created_at": self.created_at.isoformat(),
			"updated_at": self.updated_at.isoformat(),
		}


@dataclass(slots=True)
class MatchReport:
	id: str
	match_id: str
	reporter_id: str
	reason: str
	created_at: datetime


@dataclass(slots=True)
class CandidateProfile:
	"""Read-only attributes owned by the user profile service."""

	user_id: str
	age: Optional[int] = None
	verified: bool = False
	has_photo: bool = False


@dataclass(slots=True, frozen=True)
class MatchScore:
	total: int
	distance: float
	interests: float
	availability: float
	activity_types: float

	def to_dict(self) -> dict:
		return {
			"total": self.total,
			"distance": round(self.distance, 1),
			"interests": round(self.interests, 1),
			"availability": round(self.availability, 1),
			"activity_types": round(self.activity_types, 1),
		}


@dataclass(slots=True)
class MatchCandidate:
	user_id: str
	distance_km: float
	score: MatchScore
	privacy_mode: PrivacyMode

	def to_dict(self) -> dict:
		return {
			"user_id": self.user_id,
			"distance_km": round(self.distance_km, 2),
			"score": self.score.to_dict(),
			"privacy_mode": self.privacy_mode,
		}


def _clean_tags(values: List[str]) -> List[str]:
	seen: dict[str, None] = {}
	for value in values:
		tag = value.strip().lower()
		if tag:
			seen.setdefault(tag, None)
	return list(seen)


class MatchFilters(BaseModel):
	"""Filter fields that may be overridden per query."""

	max_distance_km: Optional[float] = Field(default=None, gt=0, le=100)
	min_age: Optional[int] = Field(default=None, ge=18, le=100)
	max_age: Optional[int] = Field(default=None, ge=18, le=100)
	verified_only: Optional[bool] = None
	with_photo: Optional[bool] = None
	activity_type: Optional[str] = Field(default=None, max_length=50)
	time_window: Optional[TimeWindow] = None
	privacy_mode: Optional[PrivacyMode] = None
	use_bluetooth_proximity: Optional[bool] = None

	@model_validator(mode="after")
	def _check_ages(self) -> "MatchFilters":
		if self.min_age is not None and self.max_age is not None and self.min_age > self.max_age:
			raise ValueError("min_age must not exceed max_age")
		return self


class MatchPreferences(BaseModel):
	max_distance_km: float = Field(default=10.0, gt=0, le=100)
	min_age: Optional[int] = Field(default=None, ge=18, le=100)
	max_age: Optional[int] = Field(default=None, ge=18, le=100)
	interests: List[str] = Field(default_factory=list, max_length=50)
	activity_types: List[str] = Field(default_factory=list, max_length=20)
	availability: List[str] = Field(default_factory=list, max_length=50)
	verified_only: bool = False
	with_photo: bool = False
	activity_type: Optional[str] = Field(default=None, max_length=50)
	time_window: TimeWindow = "any"
	privacy_mode: Optional[PrivacyMode] = None
	# accepted for client compatibility; the server has no radio data
	use_bluetooth_proximity: bool = False

	@field_validator("interests", "activity_types", "availability")
	@classmethod
	def _normalise(cls, values: List[str]) -> List[str]:
		return _clean_tags(values)

	@field_validator("activity_type")
	@classmethod
	def _normalise_one(cls, value: Optional[str]) -> Optional[str]:
		if not value:
			return None
		return value.strip().lower() or None

	@model_validator(mode="after")
	def _check_ages(self) -> "MatchPreferences":
		if self.min_age is not None and self.max_age is not None and self.min_age > self.max_age:
			raise ValueError("min_age must not exceed max_age")
		return self

	def with_filters(self, filters: Optional[MatchFilters]) -> "MatchPreferences":
		if filters is None:
			return self
		merged = self.model_dump()
		merged.update(filters.model_dump(exclude_none=True))
		return MatchPreferences.model_validate(merged)
