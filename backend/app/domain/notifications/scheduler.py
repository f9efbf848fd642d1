"""Quiet-hours aware notification dispatch."""

from __future__ import annotations

import logging
import dataclasses
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

import ulid
from pydantic import ValidationError as PayloadError

from app.domain.errors import ValidationError
from app.domain.notifications import quiet_hours
from app.domain.notifications.models import (
	DeliveryResult,
	Notification,
	NotificationPreferences,
	OutgoingNotification,
	QueuedNotification,
)
from app.domain.notifications.push import PushTransport
from app.domain.notifications.repository import NotificationRepository
from app.domain.realtime.events import parse_payload
from app.domain.realtime.hub import RealtimeHub
from app.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

REPLAY_RETRY_DELAY = timedelta(minutes=1)


def _utcnow() -> datetime:
	return datetime.now(timezone.utc)


class NotificationScheduler:
	"""Decides whether a notification goes out now, later, or not at all."""

	def __init__(
		self,
		repository: NotificationRepository,
		hub: RealtimeHub,
		push: PushTransport,
		*,
		clock: Callable[[], datetime] = _utcnow,
	) -> None:
		self._repo = repository
		self._hub = hub
		self._push = push
		self._clock = clock

	async def get_preferences(self, user_id: str) -> NotificationPreferences:
		return await self._repo.get_preferences(user_id) or NotificationPreferences()

	async def update_preferences(self, user_id: str, prefs: NotificationPreferences) -> NotificationPreferences:
		return await self._repo.save_preferences(user_id, prefs)

	async def list_notifications(self, user_id: str, *, limit: int = 50) -> List[Notification]:
		return await self._repo.list_notifications(user_id, limit=limit)

	async def send_notification(
		self,
		user_id: str,
		notification: OutgoingNotification,
		*,
		now: Optional[datetime] = None,
	) -> DeliveryResult:
		try:
			parse_payload(notification.event, notification.data)
		except PayloadError as exc:
			raise ValidationError(f"invalid {notification.event.value} payload") from exc
		now = now or self._clock()
		prefs = await self.get_preferences(user_id)
		category = notification.resolved_category()
		if not prefs.categories.allows(category):
			obs_metrics.notification_outcome("suppressed")
			logger.info("notification suppressed", extra={"user": user_id, "category": category})
			return DeliveryResult(status="suppressed")

		window = prefs.quiet_hours
		local = now.astimezone(prefs.zone())
		if window.enabled and quiet_hours.in_quiet_hours(local, window.start, window.end):
			process_after = quiet_hours.window_end(local, window.end).astimezone(timezone.utc)
			await self._repo.enqueue(
				QueuedNotification(
					id=ulid.new().str,
					user_id=user_id,
					notification=notification,
					process_after=process_after,
					created_at=now,
				)
			)
			obs_metrics.notification_outcome("queued")
			return DeliveryResult(status="queued", process_after=process_after)

		stored = await self._deliver(user_id, notification, prefs, now)
		return DeliveryResult(status="delivered", notification=stored)

	async def _deliver(
		self,
		user_id: str,
		notification: OutgoingNotification,
		prefs: NotificationPreferences,
		now: datetime,
	) -> Notification:
		stored = Notification(
			id=ulid.new().str,
			user_id=user_id,
			category=notification.resolved_category(),
			event=notification.event,
			title=notification.title,
			body=notification.body,
			data=notification.data,
			created_at=now,
		)
		await self._repo.add_notification(stored)
		await self._hub.publish(notification.event, parse_payload(notification.event, notification.data), user_ids=[user_id])
		if prefs.push_enabled:
			try:
				await self._push.deliver(user_id, stored)
			except Exception:
				logger.exception("push delivery failed", extra={"notification_id": stored.id})
		obs_metrics.notification_outcome("delivered")
		return stored

	async def process_offline_queue(self, *, now: Optional[datetime] = None, batch_size: int = 100) -> int:
		"""Re-dispatch queued notifications whose window has closed.

		Each row is claimed by deleting it first; a runner that loses the claim
		skips the row. A row whose dispatch fails goes back on the queue one
		retry delay later. Invalid payloads are dropped.
		"""

		now = now or self._clock()
		processed = 0
		for item in await self._repo.due(now, limit=batch_size):
			if not await self._repo.claim(item.id):
				continue
			try:
				await self.send_notification(item.user_id, item.notification, now=now)
			except ValidationError:
				logger.exception("dropping invalid queued notification", extra={"queue_id": item.id})
				continue
			except Exception:
				logger.exception("queued notification failed", extra={"queue_id": item.id})
				await self._repo.enqueue(dataclasses.replace(item, process_after=now + REPLAY_RETRY_DELAY))
				continue
			processed += 1
		if processed:
			obs_metrics.notification_outcome("replayed", processed)
		return processed
