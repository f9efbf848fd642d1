"""Out-of-band push transport boundary."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from app.domain.notifications.models import Notification

if TYPE_CHECKING:
	from app.domain.safety.models import EmergencyContact

logger = logging.getLogger(__name__)


class PushTransport(Protocol):
	async def deliver(self, user_id: str, notification: Notification) -> None:
		...

	async def notify_contact(self, contact: "EmergencyContact", notification: Notification) -> None:
		...


class LoggingPushTransport:
	"""Records deliveries in the log; production wires a real provider."""

	async def deliver(self, user_id: str, notification: Notification) -> None:
		logger.info(
			"push delivery",
			extra={"user": user_id, "notification_id": notification.id, "category": notification.category},
		)

	async def notify_contact(self, contact: "EmergencyContact", notification: Notification) -> None:
		logger.info(
			"emergency contact notified",
			extra={"contact_id": contact.id, "notification_id": notification.id},
		)
