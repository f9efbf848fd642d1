"""Socket.IO client for the real-time namespace with bounded reconnects."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set

import socketio
from socketio.exceptions import ConnectionError as SocketConnectionError

from app.domain.realtime.events import EventType, channel_for, parse_channel
from app.domain.realtime.sockets import NAMESPACE
from app.settings import settings

logger = logging.getLogger(__name__)

ClientHandler = Callable[[Dict[str, Any]], Awaitable[None]]
ErrorCallback = Callable[[Exception], Awaitable[None]]


class ConnectionExhausted(ConnectionError):
	"""Raised once every reconnect attempt has failed."""


class RealtimeClient:
	"""Keeps one connection, many channel subscriptions.

	Sends are dropped with a warning while disconnected; nothing is queued.
	After an unexpected disconnect the client retries up to ``max_attempts``
	times, ``reconnect_delay`` seconds apart, then reports
	:class:`ConnectionExhausted` through ``on_error`` and stops.
	"""

	def __init__(
		self,
		url: str,
		*,
		auth: Optional[Dict[str, Any]] = None,
		namespace: str = NAMESPACE,
		max_attempts: Optional[int] = None,
		reconnect_delay: Optional[float] = None,
		on_error: Optional[ErrorCallback] = None,
		sio: Optional[socketio.AsyncClient] = None,
		sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
	) -> None:
		self.url = url
		self.namespace = namespace
		self.max_attempts = max_attempts or settings.realtime_reconnect_attempts
		self.reconnect_delay = (
			reconnect_delay if reconnect_delay is not None else settings.realtime_reconnect_delay_ms / 1000
		)
		self._auth = auth or {}
		self._on_error = on_error
		self._sleep = sleep
		self._sio = sio or socketio.AsyncClient(reconnection=False)
		self._handlers: Dict[str, Set[ClientHandler]] = {}
		self._closing = False
		self._reconnect_task: Optional[asyncio.Task] = None
		self.error: Optional[Exception] = None
		self._sio.on("disconnect", self._handle_disconnect, namespace=namespace)
		for event in EventType:
			self._sio.on(event.value, self._make_dispatcher(event), namespace=namespace)

	@property
	def connected(self) -> bool:
		return bool(self._sio.connected)

	async def connect(self) -> None:
		self._closing = False
		self.error = None
		await self._connect_with_retry(delay_first=False)

	async def _connect_with_retry(self, *, delay_first: bool) -> None:
		for attempt in range(1, self.max_attempts + 1):
			if delay_first or attempt > 1:
				await self._sleep(self.reconnect_delay)
			if self._closing:
				return
			try:
				await self._sio.connect(self.url, auth=self._auth, namespaces=[self.namespace])
			except SocketConnectionError as exc:
				logger.warning(
					"realtime connect failed",
					extra={"attempt": attempt, "max_attempts": self.max_attempts, "error": str(exc)},
				)
				continue
			logger.info("realtime connected", extra={"attempt": attempt})
			await self._resubscribe()
			return
		raise ConnectionExhausted("Max reconnection attempts reached")

	async def _resubscribe(self) -> None:
		for channel in list(self._handlers):
			await self._sio.emit("subscribe", {"event": channel}, namespace=self.namespace)

	async def _handle_disconnect(self, *args: Any) -> None:
		if self._closing:
			return
		logger.warning("realtime disconnected, scheduling reconnect")
		self._reconnect_task = asyncio.ensure_future(self._reconnect())

	async def _reconnect(self) -> None:
		try:
			await self._connect_with_retry(delay_first=True)
		except ConnectionExhausted as exc:
			self.error = exc
			logger.error("realtime reconnect exhausted", extra={"max_attempts": self.max_attempts})
			if self._on_error is not None:
				await self._on_error(exc)

	async def wait_reconnected(self) -> None:
		if self._reconnect_task is not None:
			await self._reconnect_task

	def _make_dispatcher(self, event: EventType) -> Callable[[Dict[str, Any]], Awaitable[None]]:
		async def _dispatch(data: Dict[str, Any]) -> None:
			try:
				channel = channel_for(event, (data or {}).get("match_id"))
			except ValueError:
				logger.warning("dropping chat event without match id", extra={"event": event.value})
				return
			await self.dispatch(channel, data)

		return _dispatch

	async def dispatch(self, channel: str, data: Dict[str, Any]) -> None:
		for handler in list(self._handlers.get(channel, ())):
			await handler(data)

	async def subscribe(self, channel: str, handler: ClientHandler) -> None:
		parse_channel(channel)
		first = channel not in self._handlers
		self._handlers.setdefault(channel, set()).add(handler)
		if first and self.connected:
			await self._sio.emit("subscribe", {"event": channel}, namespace=self.namespace)

	async def unsubscribe(self, channel: str, handler: Optional[ClientHandler] = None) -> None:
		handlers = self._handlers.get(channel)
		if handlers is None:
			return
		if handler is not None:
			handlers.discard(handler)
		if handler is None or not handlers:
			self._handlers.pop(channel, None)
			if self.connected:
				await self._sio.emit("unsubscribe", {"event": channel}, namespace=self.namespace)

	async def send(self, event: str, payload: Dict[str, Any]) -> bool:
		if not self.connected:
			logger.warning("realtime send while disconnected", extra={"event": event})
			return False
		await self._sio.emit(event, payload, namespace=self.namespace)
		return True

	async def close(self) -> None:
		self._closing = True
		if self._reconnect_task is not None and not self._reconnect_task.done():
			self._reconnect_task.cancel()
		if self.connected:
			await self._sio.disconnect()
