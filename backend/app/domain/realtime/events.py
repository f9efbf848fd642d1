"""Typed real-time events and the channel names clients subscribe to."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Type

from pydantic import BaseModel, Field


class EventType(str, Enum):
	CHAT_MESSAGE = "chat_message"
	MESSAGE = "message"
	TYPING = "typing"
	MATCH_UPDATE = "match_update"
	EMERGENCY_ALERT = "emergency_alert"
	SAFETY_CHECK = "safety_check"
	NOTIFICATION = "notification"


CHAT_EVENTS = frozenset({EventType.CHAT_MESSAGE, EventType.MESSAGE, EventType.TYPING})


class ChatMessagePayload(BaseModel):
	match_id: str
	sender_id: str
	body: str = Field(..., min_length=1, max_length=4000)
	sent_at: datetime


class TypingPayload(BaseModel):
	match_id: str
	user_id: str
	is_typing: bool = True


class MatchUpdatePayload(BaseModel):
	match_id: str
	user_id: str
	matched_user_id: str
	status: str
	version: int
	score: int
	actor_id: Optional[str] = None
	updated_at: datetime


class EmergencyAlertPayload(BaseModel):
	alert_id: str
	user_id: str
	type: str
	severity: str
	priority: int
	description: str
	message: Optional[str] = None
	location: Optional[Dict[str, Any]] = None
	created_at: datetime


class SafetyCheckPayload(BaseModel):
	check_id: str
	user_id: str
	type: str
	status: str
	description: str
	scheduled_for: datetime


class NotificationPayload(BaseModel):
	notification_id: Optional[str] = None
	category: str
	title: str
	body: str
	data: Dict[str, Any] = Field(default_factory=dict)


PAYLOAD_TYPES: Dict[EventType, Type[BaseModel]] = {
	EventType.CHAT_MESSAGE: ChatMessagePayload,
	EventType.MESSAGE: ChatMessagePayload,
	EventType.TYPING: TypingPayload,
	EventType.MATCH_UPDATE: MatchUpdatePayload,
	EventType.EMERGENCY_ALERT: EmergencyAlertPayload,
	EventType.SAFETY_CHECK: SafetyCheckPayload,
	EventType.NOTIFICATION: NotificationPayload,
}


def parse_payload(event: EventType, data: Dict[str, Any]) -> BaseModel:
	return PAYLOAD_TYPES[event].model_validate(data)


def check_payload(event: EventType, payload: BaseModel) -> None:
	expected = PAYLOAD_TYPES[event]
	if not isinstance(payload, expected):
		raise TypeError(f"{event.value} expects {expected.__name__}, got {type(payload).__name__}")


def channel_for(event: EventType, match_id: Optional[str] = None) -> str:
	"""Channel name a client subscribes to in order to receive ``event``.

	Chat traffic is scoped per match: ``chat:<matchId>`` carries messages and
	``chat:<matchId>:typing`` carries typing indicators.
	"""

	if event in CHAT_EVENTS:
		if not match_id:
			raise ValueError(f"{event.value} requires a match id")
		if event is EventType.TYPING:
			return f"chat:{match_id}:typing"
		return f"chat:{match_id}"
	return event.value


def parse_channel(name: str) -> Tuple[EventType, Optional[str]]:
	"""Inverse of :func:`channel_for`; raises ValueError on unknown names."""
	if name.startswith("chat:"):
		parts = name.split(":")
		if len(parts) == 2 and parts[1]:
			return EventType.CHAT_MESSAGE, parts[1]
		if len(parts) == 3 and parts[1] and parts[2] == "typing":
			return EventType.TYPING, parts[1]
		raise ValueError(f"unknown channel {name!r}")
	try:
		event = EventType(name)
	except ValueError:
		raise ValueError(f"unknown channel {name!r}") from None
	if event in CHAT_EVENTS:
		raise ValueError(f"{name} must be subscribed per match")
	return event, None


def payload_channel(event: EventType, payload: BaseModel) -> str:
	return channel_for(event, getattr(payload, "match_id", None))
