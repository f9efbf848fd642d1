"""Safety alerts, scheduled check-ins and emergency contacts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Literal, Optional

from app.domain.proximity.models import LocationSnapshot

AlertType = Literal["sos", "location", "meetup", "custom"]
Severity = Literal["low", "medium", "high", "critical"]
AlertStatus = Literal["active", "dismissed", "resolved"]
CheckType = Literal["meetup", "location", "custom"]
CheckStatus = Literal["pending", "completed", "missed"]

PRIORITY_BY_SEVERITY: Dict[str, int] = {"low": 1, "medium": 2, "high": 3, "critical": 4}


def default_severity(alert_type: str) -> Severity:
	return "critical" if alert_type == "sos" else "medium"


@dataclass(slots=True)
class SafetyAlert:
	id: str
	user_id: str
	type: AlertType
	severity: Severity
	priority: int
	description: str
	created_at: datetime
	updated_at: datetime
	message: Optional[str] = None
	location: Optional[LocationSnapshot] = None
	dismissed: bool = False
	resolved: bool = False
	dismissed_at: Optional[datetime] = None
	resolved_at: Optional[datetime] = None
	notified_contacts: List[str] = field(default_factory=list)

	@property
	def status(self) -> AlertStatus:
		if self.resolved:
			return "resolved"
		if self.dismissed:
			return "dismissed"
		return "active"

	@property
	def active(self) -> bool:
		return not (self.dismissed or self.resolved)

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"user_id": self.user_id,
			"type": self.type,
			"severity": self.severity,
			"priority": self.priority,
			"description": self.description,
			"message": self.message,
			"location": self.location.to_dict() if self.location else None,
			"dismissed": self.dismissed,
			"resolved": self.resolved,
			"dismissed_at": self.dismissed_at.isoformat() if self.dismissed_at else None,
			"resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
			"status": self.status,
			"notified_contacts": list(self.notified_contacts),
			"created_at": self.created_at.isoformat(),
			"updated_at": self.updated_at.isoformat(),
		}


@dataclass(slots=True)
class AlertDraft:
	type: AlertType
	description: str
	severity: Optional[Severity] = None
	location: Optional[LocationSnapshot] = None
	message: Optional[str] = None


@dataclass(slots=True)
class SafetyCheck:
	id: str
	user_id: str
	type: CheckType
	status: CheckStatus
	scheduled_for: datetime
	description: str
	created_at: datetime
	updated_at: datetime
	location: Optional[LocationSnapshot] = None
	completed_at: Optional[datetime] = None
	notified_contacts: List[str] = field(default_factory=list)

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"user_id": self.user_id,
			"type": self.type,
			"status": self.status,
			"scheduled_for": self.scheduled_for.isoformat(),
			"description": self.description,
			"location": self.location.to_dict() if self.location else None,
			"completed_at": self.completed_at.isoformat() if self.completed_at else None,
			"notified_contacts": list(self.notified_contacts),
			"created_at": self.created_at.isoformat(),
			"updated_at": self.updated_at.isoformat(),
		}


@dataclass(slots=True)
class CheckDraft:
	type: CheckType
	description: str
	scheduled_for: Optional[datetime] = None
	location: Optional[LocationSnapshot] = None


@dataclass(slots=True)
class EmergencyContact:
	id: str
	user_id: str
	name: str
	created_at: datetime
	email: Optional[str] = None
	phone: Optional[str] = None
	relationship: Optional[str] = None
	priority: int = 1
	verified: bool = False
	notify_on_sos: bool = True

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"user_id": self.user_id,
			"name": self.name,
			"email": self.email,
			"phone": self.phone,
			"relationship": self.relationship,
			"priority": self.priority,
			"verified": self.verified,
			"notify_on_sos": self.notify_on_sos,
			"created_at": self.created_at.isoformat(),
		}
