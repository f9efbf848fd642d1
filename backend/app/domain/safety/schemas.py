"""Request bodies for safety endpoints."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field

from app.domain.proximity.models import LocationSnapshot
from app.domain.safety.models import AlertDraft, AlertType, CheckDraft, CheckType, Severity


class SnapshotPayload(BaseModel):
	latitude: float
	longitude: float
	accuracy: Optional[float] = Field(default=None, ge=0)
	timestamp: Optional[datetime] = None

	def to_snapshot(self) -> LocationSnapshot:
		return LocationSnapshot(
			latitude=self.latitude,
			longitude=self.longitude,
			accuracy=self.accuracy,
			timestamp=self.timestamp or datetime.now(timezone.utc),
		)


class AlertPayload(BaseModel):
	type: AlertType
	description: str = Field(..., min_length=1, max_length=1000)
	severity: Optional[Severity] = None
	message: Optional[str] = Field(default=None, max_length=1000)
	location: Optional[SnapshotPayload] = None

	def to_draft(self) -> AlertDraft:
		return AlertDraft(
			type=self.type,
			description=self.description,
			severity=self.severity,
			message=self.message,
			location=self.location.to_snapshot() if self.location else None,
		)


class AlertActionPayload(BaseModel):
	action: Literal["dismiss", "resolve"]


class CheckPayload(BaseModel):
	type: CheckType
	description: str = Field(..., min_length=1, max_length=1000)
	scheduled_for: Optional[datetime] = None
	location: Optional[SnapshotPayload] = None

	def to_draft(self) -> CheckDraft:
		return CheckDraft(
			type=self.type,
			description=self.description,
			scheduled_for=self.scheduled_for,
			location=self.location.to_snapshot() if self.location else None,
		)


class ContactPayload(BaseModel):
	name: str = Field(..., min_length=1, max_length=120)
	email: Optional[str] = Field(default=None, max_length=254)
	phone: Optional[str] = Field(default=None, max_length=32)
	relationship: Optional[str] = Field(default=None, max_length=60)
	priority: int = Field(default=1, ge=1, le=10)
	notify_on_sos: bool = True
