"""Persistence for notification preferences, history and the deferred queue."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Protocol

import asyncpg

from app.domain.notifications.models import (
	Notification,
	NotificationPreferences,
	OutgoingNotification,
	QueuedNotification,
)
from app.domain.realtime.events import EventType


class NotificationRepository(Protocol):
	async def get_preferences(self, user_id: str) -> Optional[NotificationPreferences]:
		...

	async def save_preferences(self, user_id: str, prefs: NotificationPreferences) -> NotificationPreferences:
		...

	async def add_notification(self, notification: Notification) -> Notification:
		...

	async def list_notifications(self, user_id: str, *, limit: int = 50) -> List[Notification]:
		...

	async def enqueue(self, item: QueuedNotification) -> QueuedNotification:
		...

	async def due(self, now: datetime, *, limit: int = 100) -> List[QueuedNotification]:
		...

	async def claim(self, queue_id: str) -> bool:
		"""Delete a queue row; True only for the caller that removed it."""
		...

	async def queued_for(self, user_id: str) -> List[QueuedNotification]:
		...


@dataclass
class InMemoryNotificationRepository:
	_prefs: Dict[str, NotificationPreferences] = field(default_factory=dict)
	_notifications: List[Notification] = field(default_factory=list)
	_queue: Dict[str, QueuedNotification] = field(default_factory=dict)
	_lock: asyncio.Lock = field(default_factory=asyncio.Lock)

	async def get_preferences(self, user_id: str) -> Optional[NotificationPreferences]:
		async with self._lock:
			prefs = self._prefs.get(user_id)
			return prefs.model_copy(deep=True) if prefs else None

	async def save_preferences(self, user_id: str, prefs: NotificationPreferences) -> NotificationPreferences:
		async with self._lock:
			self._prefs[user_id] = prefs.model_copy(deep=True)
		return prefs

	async def add_notification(self, notification: Notification) -> Notification:
		async with self._lock:
			self._notifications.append(notification)
		return notification

	async def list_notifications(self, user_id: str, *, limit: int = 50) -> List[Notification]:
		async with self._lock:
			rows = [n for n in self._notifications if n.user_id == user_id]
		rows.sort(key=lambda n: n.created_at, reverse=True)
		return rows[:limit]

	async def enqueue(self, item: QueuedNotification) -> QueuedNotification:
		async with self._lock:
			self._queue[item.id] = item
		return item

	async def due(self, now: datetime, *, limit: int = 100) -> List[QueuedNotification]:
		async with self._lock:
			rows = [item for item in self._queue.values() if item.process_after <= now]
		rows.sort(key=lambda item: item.process_after)
		return rows[:limit]

	async def claim(self, queue_id: str) -> bool:
		async with self._lock:
			return self._queue.pop(queue_id, None) is not None

	async def queued_for(self, user_id: str) -> List[QueuedNotification]:
		async with self._lock:
			return [item for item in self._queue.values() if item.user_id == user_id]


def _json(value) -> dict:
	if isinstance(value, str):
		return json.loads(value)
	return dict(value or {})


class PostgresNotificationRepository:
	def __init__(self, pool: asyncpg.pool.Pool) -> None:
		self._pool = pool

	async def get_preferences(self, user_id: str) -> Optional[NotificationPreferences]:
		async with self._pool.acquire() as conn:
			raw = await conn.fetchval("SELECT data FROM notification_preferences WHERE user_id = $1", user_id)
		if raw is None:
			return None
		return NotificationPreferences.model_validate(_json(raw))

	async def save_preferences(self, user_id: str, prefs: NotificationPreferences) -> NotificationPreferences:
		async with self._pool.acquire() as conn:
			await conn.execute(
				"""
				INSERT INTO notification_preferences (user_id, data, updated_at)
				VALUES ($1, $2::jsonb, now())
				ON CONFLICT (user_id) DO UPDATE SET data = EXCLUDED.data, updated_at = now()
				""",
				user_id,
				prefs.model_dump_json(),
			)
		return prefs

	async def add_notification(self, notification: Notification) -> Notification:
		async with self._pool.acquire() as conn:
			await conn.execute(
				"""
				INSERT INTO notifications (id, user_id, category, event, title, body, data, created_at)
				VALUES ($1, $2, $3, $4, $5, $6, $7::jsonb, $8)
				""",
				notification.id,
				notification.user_id,
				notification.category,
				notification.event.value,
				notification.title,
				notification.body,
				json.dumps(notification.data, default=str),
				notification.created_at,
			)
		return notification

	async def list_notifications(self, user_id: str, *, limit: int = 50) -> List[Notification]:
		async with self._pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT id, user_id, category, event, title, body, data, created_at
				FROM notifications
				WHERE user_id = $1
				ORDER BY created_at DESC
				LIMIT $2
				""",
				user_id,
				limit,
			)
		return [
			Notification(
				id=row["id"],
				user_id=row["user_id"],
				category=row["category"],
				event=EventType(row["event"]),
				title=row["title"],
				body=row["body"],
				data=_json(row["data"]),
				created_at=row["created_at"],
			)
			for row in rows
		]

	async def enqueue(self, item: QueuedNotification) -> QueuedNotification:
		async with self._pool.acquire() as conn:
			await conn.execute(
				"""
				INSERT INTO notification_queue (id, user_id, payload, process_after, created_at)
				VALUES ($1, $2, $3::jsonb, $4, $5)
				""",
				item.id,
				item.user_id,
				json.dumps(item.notification.to_dict(), default=str),
				item.process_after,
				item.created_at,
			)
		return item

	def _queued(self, row: asyncpg.Record) -> QueuedNotification:
		return QueuedNotification(
			id=row["id"],
			user_id=row["user_id"],
			notification=OutgoingNotification.from_dict(_json(row["payload"])),
			process_after=row["process_after"],
			created_at=row["created_at"],
		)

	async def due(self, now: datetime, *, limit: int = 100) -> List[QueuedNotification]:
		async with self._pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT id, user_id, payload, process_after, created_at
				FROM notification_queue
				WHERE process_after <= $1
				ORDER BY process_after
				LIMIT $2
				""",
				now,
				limit,
			)
		return [self._queued(row) for row in rows]

	async def claim(self, queue_id: str) -> bool:
		async with self._pool.acquire() as conn:
			deleted = await conn.fetchval("DELETE FROM notification_queue WHERE id = $1 RETURNING id", queue_id)
		return deleted is not None

	async def queued_for(self, user_id: str) -> List[QueuedNotification]:
		async with self._pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT id, user_id, payload, process_after, created_at
				FROM notification_queue WHERE user_id = $1 ORDER BY process_after
				""",
				user_id,
			)
		return [self._queued(row) for row in rows]
