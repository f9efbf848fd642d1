"""Notification records, queue rows and per-user delivery preferences."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator

from app.domain.realtime.events import EventType

Category = Literal["matches", "messages", "safety", "events", "system"]

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")

EVENT_CATEGORY: Dict[EventType, Category] = {
	EventType.MATCH_UPDATE: "matches",
	EventType.CHAT_MESSAGE: "messages",
	EventType.MESSAGE: "messages",
	EventType.TYPING: "messages",
	EventType.EMERGENCY_ALERT: "safety",
	EventType.SAFETY_CHECK: "safety",
	EventType.NOTIFICATION: "system",
}


class QuietHours(BaseModel):
	enabled: bool = False
	start: str = "22:00"
	end: str = "07:00"

	@field_validator("start", "end")
	@classmethod
	def _check_time(cls, value: str) -> str:
		if not _HHMM.match(value):
			raise ValueError("time must be HH:MM (24h)")
		return value


class CategorySwitches(BaseModel):
	matches: bool = True
	messages: bool = True
	safety: bool = True
	events: bool = True
	system: bool = True

	def allows(self, category: str) -> bool:
		return bool(getattr(self, category, True))


class NotificationPreferences(BaseModel):
	push_enabled: bool = True
	email_enabled: bool = True
	categories: CategorySwitches = Field(default_factory=CategorySwitches)
	quiet_hours: QuietHours = Field(default_factory=QuietHours)
	timezone: str = "UTC"

	@field_validator("timezone")
	@classmethod
	def _check_timezone(cls, value: str) -> str:
		try:
			ZoneInfo(value)
		except (ZoneInfoNotFoundError, ValueError):
			raise ValueError(f"unknown timezone {value!r}") from None
		return value

	def zone(self) -> ZoneInfo:
		return ZoneInfo(self.timezone)


@dataclass(slots=True)
class OutgoingNotification:
	"""What a producer asks to send; ``data`` is the realtime event payload."""

	event: EventType
	title: str
	body: str
	data: Dict[str, Any] = field(default_factory=dict)
	category: Optional[Category] = None

	def resolved_category(self) -> Category:
		return self.category or EVENT_CATEGORY[self.event]

	def to_dict(self) -> Dict[str, Any]:
		return {
			"event": self.event.value,
			"title": self.title,
			"body": self.body,
			"data": self.data,
			"category": self.resolved_category(),
		}

	@classmethod
	def from_dict(cls, raw: Dict[str, Any]) -> "OutgoingNotification":
		return cls(
			event=EventType(raw["event"]),
			title=raw["title"],
			body=raw["body"],
			data=dict(raw.get("data") or {}),
			category=raw.get("category"),
		)


@dataclass(slots=True)
class Notification:
	id: str
	user_id: str
	category: str
	event: EventType
	title: str
	body: str
	data: Dict[str, Any]
	created_at: datetime

	def to_dict(self) -> Dict[str, Any]:
		return {
			"id": self.id,
			"user_id": self.user_id,
			"category": self.category,
			"event": self.event.value,
			"title": self.title,
			"body": self.body,
			"data": self.data,
			"created_at": self.created_at.isoformat(),
		}


@dataclass(slots=True)
class QueuedNotification:
	id: str
	user_id: str
	notification: OutgoingNotification
	process_after: datetime
	created_at: datetime


DeliveryStatus = Literal["delivered", "queued", "suppressed"]


@dataclass(slots=True)
class DeliveryResult:
	status: DeliveryStatus
	notification: Optional[Notification] = None
	process_after: Optional[datetime] = None
