"""In-process event hub fanning typed events out to subscribers and sockets."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Awaitable, Callable, Dict, Iterable, Optional, Set

from pydantic import BaseModel

from app.domain.realtime.events import EventType, check_payload, payload_channel
from app.obs import metrics as obs_metrics

if TYPE_CHECKING:
	from app.domain.realtime.sockets import RealtimeNamespace

logger = logging.getLogger(__name__)

Handler = Callable[[str, BaseModel], Awaitable[None]]


class RealtimeHub:
	"""Lookup table of event type to handler set, plus socket fan-out.

	Handlers receive ``(recipient_user_id, payload)`` once per recipient.
	The Socket.IO namespace is optional so services work without a server.
	"""

	def __init__(self) -> None:
		self._handlers: Dict[EventType, Set[Handler]] = {event: set() for event in EventType}
		self._namespace: Optional["RealtimeNamespace"] = None

	def bind(self, namespace: "RealtimeNamespace") -> None:
		self._namespace = namespace

	def subscribe(self, event: EventType, handler: Handler) -> None:
		self._handlers[event].add(handler)

	def unsubscribe(self, event: EventType, handler: Handler) -> None:
		self._handlers[event].discard(handler)

	async def publish(self, event: EventType, payload: BaseModel, *, user_ids: Iterable[str]) -> None:
		check_payload(event, payload)
		recipients = list(dict.fromkeys(user_ids))
		channel = payload_channel(event, payload)
		for user_id in recipients:
			for handler in list(self._handlers[event]):
				try:
					await handler(user_id, payload)
				except Exception:
					logger.exception("realtime handler failed", extra={"event": event.value})
			if self._namespace is not None:
				await self._namespace.deliver(user_id, channel, event, payload)
		obs_metrics.realtime_published(event.value, len(recipients))
