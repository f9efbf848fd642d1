"""Safety alert and check-in engine."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

import ulid

from app.domain.errors import Conflict, Forbidden, InvalidCoordinates, NotFound, ValidationError
from app.domain.notifications.models import Notification, OutgoingNotification
from app.domain.notifications.push import PushTransport
from app.domain.notifications.scheduler import NotificationScheduler
from app.domain.proximity import geo
from app.domain.proximity.models import LocationSnapshot
from app.domain.realtime.events import EmergencyAlertPayload, EventType, SafetyCheckPayload
from app.domain.safety.models import (
	PRIORITY_BY_SEVERITY,
	AlertDraft,
	CheckDraft,
	EmergencyContact,
	SafetyAlert,
	SafetyCheck,
	default_severity,
)
from app.domain.safety.repository import AlertFlag, SafetyRepository
from app.infra.tasks import DetachedTasks
from app.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

ALERT_TYPES = ("sos", "location", "meetup", "custom")
CHECK_TYPES = ("meetup", "location", "custom")
MAX_DESCRIPTION = 1000


def _utcnow() -> datetime:
	return datetime.now(timezone.utc)


def _check_snapshot(location: Optional[LocationSnapshot]) -> None:
	if location is not None and not geo.valid_coordinates(location.latitude, location.longitude):
		raise InvalidCoordinates()


def _check_description(text: str) -> str:
	cleaned = (text or "").strip()
	if not cleaned:
		raise ValidationError("description is required")
	if len(cleaned) > MAX_DESCRIPTION:
		raise ValidationError("description is too long")
	return cleaned


class SafetyService:
	def __init__(
		self,
		repository: SafetyRepository,
		notifier: NotificationScheduler,
		push: PushTransport,
		tasks: DetachedTasks,
		*,
		clock: Callable[[], datetime] = _utcnow,
	) -> None:
		self._repo = repository
		self._notifier = notifier
		self._push = push
		self._tasks = tasks
		self._clock = clock

	# alerts

	async def create_alert(self, user_id: str, draft: AlertDraft) -> SafetyAlert:
		"""Create an alert and fan it out.

		The location is stored exactly as given; the engine never looks up
		the user's current position.
		"""

		if draft.type not in ALERT_TYPES:
			raise ValidationError(f"alert type must be one of {', '.join(ALERT_TYPES)}")
		severity = draft.severity or default_severity(draft.type)
		if severity not in PRIORITY_BY_SEVERITY:
			raise ValidationError("unknown severity")
		_check_snapshot(draft.location)
		description = _check_description(draft.description)
		now = self._clock()
		contacts: List[EmergencyContact] = []
		if draft.type == "sos":
			contacts = [c for c in await self._repo.list_contacts(user_id) if c.notify_on_sos]
		alert = SafetyAlert(
			id=ulid.new().str,
			user_id=user_id,
			type=draft.type,
			severity=severity,
			priority=PRIORITY_BY_SEVERITY[severity],
			description=description,
			message=draft.message,
			location=draft.location,
			notified_contacts=[c.id for c in contacts],
			created_at=now,
			updated_at=now,
		)
		await self._repo.add_alert(alert)
		obs_metrics.safety_alert(alert.type, "created")
		logger.info("safety alert created", extra={"alert_id": alert.id, "alert_type": alert.type, "priority": alert.priority})
		payload = EmergencyAlertPayload(
			alert_id=alert.id,
			user_id=user_id,
			type=alert.type,
			severity=alert.severity,
			priority=alert.priority,
			description=alert.description,
			message=alert.message,
			location=alert.location.to_dict() if alert.location else None,
			created_at=alert.created_at,
		)
		outgoing = OutgoingNotification(
			event=EventType.EMERGENCY_ALERT,
			title="Emergency alert" if alert.type == "sos" else "Safety alert",
			body=alert.message or alert.description,
			data=payload.model_dump(mode="json"),
		)
		self._tasks.spawn(self._notifier.send_notification(user_id, outgoing), name=f"alert-notify:{alert.id}")
		if contacts:
			self._tasks.spawn(self._notify_contacts(alert, contacts, outgoing), name=f"alert-contacts:{alert.id}")
		return alert

	async def _notify_contacts(
		self,
		alert: SafetyAlert,
		contacts: List[EmergencyContact],
		outgoing: OutgoingNotification,
	) -> None:
		notification = Notification(
			id=ulid.new().str,
			user_id=alert.user_id,
			category="safety",
			event=outgoing.event,
			title=outgoing.title,
			body=outgoing.body,
			data=outgoing.data,
			created_at=alert.created_at,
		)
		for contact in contacts:
			try:
				await self._push.notify_contact(contact, notification)
			except Exception:
				logger.exception("emergency contact delivery failed", extra={"contact_id": contact.id})

	async def _owned_alert(self, user_id: str, alert_id: str) -> SafetyAlert:
		alert = await self._repo.get_alert(alert_id)
		if alert is None:
			raise NotFound("alert not found")
		if alert.user_id != user_id:
			raise Forbidden("alert belongs to another user")
		return alert

	async def get_alert(self, user_id: str, alert_id: str) -> SafetyAlert:
		return await self._owned_alert(user_id, alert_id)

	async def _flag_alert(self, alert_id: str, user_id: str, flag: AlertFlag) -> SafetyAlert:
		current = await self._owned_alert(user_id, alert_id)
		updated = await self._repo.set_alert_flag(alert_id, flag, self._clock())
		if updated is None:
			raise NotFound("alert not found")
		if not getattr(current, flag):
			obs_metrics.safety_alert(updated.type, flag)
		return updated

	async def dismiss_alert(self, alert_id: str, user_id: str) -> SafetyAlert:
		return await self._flag_alert(alert_id, user_id, "dismissed")

	async def resolve_alert(self, alert_id: str, user_id: str) -> SafetyAlert:
		return await self._flag_alert(alert_id, user_id, "resolved")

	async def get_active_alerts(self, user_id: str) -> List[SafetyAlert]:
		return await self._repo.list_alerts(user_id, active_only=True)

	async def list_alerts(self, user_id: str) -> List[SafetyAlert]:
		return await self._repo.list_alerts(user_id)

	# checks

	async def create_safety_check(self, user_id: str, draft: CheckDraft) -> SafetyCheck:
		if draft.type not in CHECK_TYPES:
			raise ValidationError(f"check type must be one of {', '.join(CHECK_TYPES)}")
		_check_snapshot(draft.location)
		description = _check_description(draft.description)
		now = self._clock()
		scheduled_for = draft.scheduled_for or now
		if scheduled_for.tzinfo is None:
			scheduled_for = scheduled_for.replace(tzinfo=timezone.utc)
		check = SafetyCheck(
			id=ulid.new().str,
			user_id=user_id,
			type=draft.type,
			status="pending",
			scheduled_for=scheduled_for,
			description=description,
			location=draft.location,
			created_at=now,
			updated_at=now,
		)
		await self._repo.add_check(check)
		obs_metrics.safety_check("created")
		payload = SafetyCheckPayload(
			check_id=check.id,
			user_id=user_id,
			type=check.type,
			status=check.status,
			description=check.description,
			scheduled_for=check.scheduled_for,
		)
		outgoing = OutgoingNotification(
			event=EventType.SAFETY_CHECK,
			title="Safety check scheduled",
			body=check.description,
			data=payload.model_dump(mode="json"),
		)
		self._tasks.spawn(self._notifier.send_notification(user_id, outgoing), name=f"check-notify:{check.id}")
		return check

	async def complete_safety_check(self, check_id: str, user_id: str) -> SafetyCheck:
		check = await self._repo.get_check(check_id)
		if check is None:
			raise NotFound("safety check not found")
		if check.user_id != user_id:
			raise Forbidden("safety check belongs to another user")
		if check.status != "pending":
			raise Conflict(f"safety check is already {check.status}")
		completed = await self._repo.complete_check(check_id, self._clock())
		if completed is None:
			raise Conflict("safety check is no longer pending")
		obs_metrics.safety_check("completed")
		return completed

	async def list_checks(self, user_id: str, *, status: Optional[str] = None) -> List[SafetyCheck]:
		if status is not None and status not in ("pending", "completed", "missed"):
			raise ValidationError("unknown check status")
		return await self._repo.list_checks(user_id, status=status)

	# emergency contacts

	async def add_contact(
		self,
		user_id: str,
		*,
		name: str,
		email: Optional[str] = None,
		phone: Optional[str] = None,
		relationship: Optional[str] = None,
		priority: int = 1,
		notify_on_sos: bool = True,
	) -> EmergencyContact:
		if not (name or "").strip():
			raise ValidationError("contact name is required")
		if not email and not phone:
			raise ValidationError("contact needs an email or a phone number")
		contact = EmergencyContact(
			id=ulid.new().str,
			user_id=user_id,
			name=name.strip(),
			email=email,
			phone=phone,
			relationship=relationship,
			priority=priority,
			notify_on_sos=notify_on_sos,
			created_at=self._clock(),
		)
		return await self._repo.add_contact(contact)

	async def list_contacts(self, user_id: str) -> List[EmergencyContact]:
		return await self._repo.list_contacts(user_id)

	async def remove_contact(self, user_id: str, contact_id: str) -> None:
		contact = await self._repo.get_contact(contact_id)
		if contact is None:
			raise NotFound("contact not found")
		if contact.user_id != user_id:
			raise Forbidden("contact belongs to another user")
		await self._repo.delete_contact(contact_id)
