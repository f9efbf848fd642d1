"""Socket.IO namespace delivering real-time events to subscribed clients."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, Sequence

import socketio
from pydantic import BaseModel
from pydantic import ValidationError as PayloadError

from app.domain.errors import CoreError
from app.domain.realtime.events import (
	ChatMessagePayload,
	EventType,
	TypingPayload,
	parse_channel,
)
from app.infra.auth import AuthenticatedUser, resolve_socket_user
from app.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

NAMESPACE = "/realtime"

# Resolves a match id to its two participants, or None when it does not exist.
ParticipantLookup = Callable[[str], Awaitable[Optional[Sequence[str]]]]
Publisher = Callable[[EventType, BaseModel, Sequence[str]], Awaitable[None]]


def _headers(scope: dict) -> dict[str, str]:
	return {key.decode().lower(): value.decode() for key, value in scope.get("headers", [])}


class RealtimeNamespace(socketio.AsyncNamespace):
	"""One connection per client, many channel subscriptions per connection.

	Every connection joins ``user:<id>``; subscribing to a channel joins
	``user:<id>|<channel>`` so fan-out only reaches subscribed sockets.
	"""

	def __init__(
		self,
		participants: ParticipantLookup,
		publish: Publisher,
		namespace: str = NAMESPACE,
	) -> None:
		super().__init__(namespace)
		self._participants = participants
		self._publish = publish
		self.sessions: dict[str, AuthenticatedUser] = {}

	@staticmethod
	def user_room(user_id: str) -> str:
		return f"user:{user_id}"

	@classmethod
	def channel_room(cls, user_id: str, channel: str) -> str:
		return f"{cls.user_room(user_id)}|{channel}"

	async def on_connect(self, sid: str, environ: dict, auth: Optional[dict] = None) -> None:
		scope = environ.get("asgi.scope", environ)
		try:
			user = resolve_socket_user(auth, _headers(scope))
		except CoreError:
			raise ConnectionRefusedError("unauthorized") from None
		self.sessions[sid] = user
		obs_metrics.socket_connected(self.namespace)
		await self.enter_room(sid, self.user_room(user.id))
		await self.emit("sys.ok", {"ok": True, "user_id": user.id}, room=sid)

	async def on_disconnect(self, sid: str, reason: Optional[str] = None) -> None:
		if self.sessions.pop(sid, None) is not None:
			obs_metrics.socket_disconnected(self.namespace)

	def _user(self, sid: str) -> AuthenticatedUser:
		user = self.sessions.get(sid)
		if user is None:
			raise ConnectionRefusedError("unauthenticated")
		return user

	async def _is_participant(self, user_id: str, match_id: str) -> bool:
		participants = await self._participants(match_id)
		return bool(participants) and user_id in participants

	async def on_subscribe(self, sid: str, payload: dict | None = None) -> dict:
		user = self._user(sid)
		name = str((payload or {}).get("event") or "")
		try:
			_, match_id = parse_channel(name)
		except ValueError:
			return {"ok": False, "event": name, "error": "unknown_event"}
		if match_id is not None and not await self._is_participant(user.id, match_id):
			return {"ok": False, "event": name, "error": "forbidden"}
		await self.enter_room(sid, self.channel_room(user.id, name))
		obs_metrics.socket_event(self.namespace, "subscribe")
		return {"ok": True, "event": name}

	async def on_unsubscribe(self, sid: str, payload: dict | None = None) -> dict:
		user = self._user(sid)
		name = str((payload or {}).get("event") or "")
		await self.leave_room(sid, self.channel_room(user.id, name))
		return {"ok": True, "event": name}

	async def _relay_chat(self, sid: str, event: EventType, payload: dict | None) -> dict:
		user = self._user(sid)
		data = dict(payload or {})
		match_id = str(data.get("match_id") or "")
		participants = await self._participants(match_id) if match_id else None
		if not participants or user.id not in participants:
			return {"ok": False, "error": "forbidden"}
		try:
			if event is EventType.TYPING:
				message: BaseModel = TypingPayload(
					match_id=match_id, user_id=user.id, is_typing=bool(data.get("is_typing", True))
				)
			else:
				message = ChatMessagePayload(
					match_id=match_id,
					sender_id=user.id,
					body=str(data.get("body") or ""),
					sent_at=datetime.now(timezone.utc),
				)
		except PayloadError:
			return {"ok": False, "error": "invalid_payload"}
		await self._publish(event, message, list(participants))
		return {"ok": True}

	async def on_chat_message(self, sid: str, payload: dict | None = None) -> dict:
		return await self._relay_chat(sid, EventType.CHAT_MESSAGE, payload)

	async def on_message(self, sid: str, payload: dict | None = None) -> dict:
		return await self._relay_chat(sid, EventType.MESSAGE, payload)

	async def on_typing(self, sid: str, payload: dict | None = None) -> dict:
		return await self._relay_chat(sid, EventType.TYPING, payload)

	async def deliver(self, user_id: str, channel: str, event: EventType, payload: BaseModel) -> None:
		obs_metrics.socket_event(self.namespace, event.value)
		await self.emit(event.value, payload.model_dump(mode="json"), room=self.channel_room(user_id, channel))
