"""Persistence for safety alerts, checks and emergency contacts."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, List, Literal, Optional, Protocol

import asyncpg

from app.domain.proximity.models import LocationSnapshot
from app.domain.safety.models import EmergencyContact, SafetyAlert, SafetyCheck

AlertFlag = Literal["dismissed", "resolved"]
ALERT_FLAGS = ("dismissed", "resolved")


class SafetyRepository(Protocol):
	async def add_alert(self, alert: SafetyAlert) -> SafetyAlert:
		...

	async def get_alert(self, alert_id: str) -> Optional[SafetyAlert]:
		...

	async def set_alert_flag(self, alert_id: str, flag: AlertFlag, at: datetime) -> Optional[SafetyAlert]:
		"""Set ``dismissed`` or ``resolved`` without touching the other flag."""
		...

	async def list_alerts(self, user_id: str, *, active_only: bool = False) -> List[SafetyAlert]:
		...

	async def add_check(self, check: SafetyCheck) -> SafetyCheck:
		...

	async def get_check(self, check_id: str) -> Optional[SafetyCheck]:
		...

	async def complete_check(self, check_id: str, at: datetime) -> Optional[SafetyCheck]:
		"""Move a pending check to completed; None when it was not pending."""
		...

	async def list_checks(self, user_id: str, *, status: Optional[str] = None) -> List[SafetyCheck]:
		...

	async def add_contact(self, contact: EmergencyContact) -> EmergencyContact:
		...

	async def get_contact(self, contact_id: str) -> Optional[EmergencyContact]:
		...

	async def list_contacts(self, user_id: str) -> List[EmergencyContact]:
		...

	async def delete_contact(self, contact_id: str) -> bool:
		...


@dataclass
class InMemorySafetyRepository:
	alerts: Dict[str, SafetyAlert] = field(default_factory=dict)
	checks: Dict[str, SafetyCheck] = field(default_factory=dict)
	contacts: Dict[str, EmergencyContact] = field(default_factory=dict)
	_lock: asyncio.Lock = field(default_factory=asyncio.Lock)

	async def add_alert(self, alert: SafetyAlert) -> SafetyAlert:
		async with self._lock:
			self.alerts[alert.id] = replace(alert)
		return alert

	async def get_alert(self, alert_id: str) -> Optional[SafetyAlert]:
		async with self._lock:
			alert = self.alerts.get(alert_id)
			return replace(alert) if alert else None

	async def set_alert_flag(self, alert_id: str, flag: AlertFlag, at: datetime) -> Optional[SafetyAlert]:
		async with self._lock:
			alert = self.alerts.get(alert_id)
			if alert is None:
				return None
			if not getattr(alert, flag):
				setattr(alert, flag, True)
				setattr(alert, f"{flag}_at", at)
				alert.updated_at = at
			return replace(alert)

	async def list_alerts(self, user_id: str, *, active_only: bool = False) -> List[SafetyAlert]:
		async with self._lock:
			rows = [
				replace(a)
				for a in self.alerts.values()
				if a.user_id == user_id and (a.active or not active_only)
			]
		return sorted(rows, key=lambda a: a.created_at, reverse=True)

	async def add_check(self, check: SafetyCheck) -> SafetyCheck:
		async with self._lock:
			self.checks[check.id] = replace(check)
		return check

	async def get_check(self, check_id: str) -> Optional[SafetyCheck]:
		async with self._lock:
			check = self.checks.get(check_id)
			return replace(check) if check else None

	async def complete_check(self, check_id: str, at: datetime) -> Optional[SafetyCheck]:
		async with self._lock:
			check = self.checks.get(check_id)
			if check is None or check.status != "pending":
				return None
			check.status = "completed"
			check.completed_at = check.updated_at = at
			return replace(check)

	async def list_checks(self, user_id: str, *, status: Optional[str] = None) -> List[SafetyCheck]:
		async with self._lock:
			rows = [
				replace(c)
				for c in self.checks.values()
				if c.user_id == user_id and (status is None or c.status == status)
			]
		return sorted(rows, key=lambda c: c.scheduled_for)

	async def add_contact(self, contact: EmergencyContact) -> EmergencyContact:
		async with self._lock:
			self.contacts[contact.id] = replace(contact)
		return contact

	async def get_contact(self, contact_id: str) -> Optional[EmergencyContact]:
		async with self._lock:
			contact = self.contacts.get(contact_id)
			return replace(contact) if contact else None

	async def list_contacts(self, user_id: str) -> List[EmergencyContact]:
		async with self._lock:
			rows = [replace(c) for c in self.contacts.values() if c.user_id == user_id]
		return sorted(rows, key=lambda c: (c.priority, c.created_at))

	async def delete_contact(self, contact_id: str) -> bool:
		async with self._lock:
			return self.contacts.pop(contact_id, None) is not None


def _snapshot_json(snapshot: Optional[LocationSnapshot]) -> Optional[str]:
	return json.dumps(snapshot.to_dict()) if snapshot else None


def _snapshot(raw) -> Optional[LocationSnapshot]:
	if raw is None:
		return None
	return LocationSnapshot.from_dict(json.loads(raw) if isinstance(raw, str) else raw)


_ALERT_COLUMNS = (
	"id, user_id, type, severity, priority, description, message, location, dismissed, resolved, "
	"dismissed_at, resolved_at, notified_contacts, created_at, updated_at"
)
_CHECK_COLUMNS = (
	"id, user_id, type, status, scheduled_for, description, location, completed_at, "
	"notified_contacts, created_at, updated_at"
)
_CONTACT_COLUMNS = "id, user_id, name, email, phone, relationship, priority, verified, notify_on_sos, created_at"


def _alert(row: asyncpg.Record) -> SafetyAlert:
	return SafetyAlert(
		id=row["id"],
		user_id=row["user_id"],
		type=row["type"],
		severity=row["severity"],
		priority=int(row["priority"]),
		description=row["description"],
		message=row["message"],
		location=_snapshot(row["location"]),
		dismissed=bool(row["dismissed"]),
		resolved=bool(row["resolved"]),
		dismissed_at=row["dismissed_at"],
		resolved_at=row["resolved_at"],
		notified_contacts=list(row["notified_contacts"] or []),
		created_at=row["created_at"],
		updated_at=row["updated_at"],
	)


def _check(row: asyncpg.Record) -> SafetyCheck:
	return SafetyCheck(
		id=row["id"],
		user_id=row["user_id"],
		type=row["type"],
		status=row["status"],
		scheduled_for=row["scheduled_for"],
		description=row["description"],
		location=_snapshot(row["location"]),
		completed_at=row["completed_at"],
		notified_contacts=list(row["notified_contacts"] or []),
		created_at=row["created_at"],
		updated_at=row["updated_at"],
	)


def _contact(row: asyncpg.Record) -> EmergencyContact:
	return EmergencyContact(
		id=row["id"],
		user_id=row["user_id"],
		name=row["name"],
		email=row["email"],
		phone=row["phone"],
		relationship=row["relationship"],
		priority=int(row["priority"]),
		verified=bool(row["verified"]),
		notify_on_sos=bool(row["notify_on_sos"]),
		created_at=row["created_at"],
	)


class PostgresSafetyRepository:
	def __init__(self, pool: asyncpg.pool.Pool) -> None:
		self._pool = pool

	async def add_alert(self, alert: SafetyAlert) -> SafetyAlert:
		async with self._pool.acquire() as conn:
			await conn.execute(
				f"""
				INSERT INTO safety_alerts ({_ALERT_COLUMNS})
				VALUES ($1, $2, $3, $4, $5, $6, $7, $8::jsonb, $9, $10, $11, $12, $13, $14, $15)
				""",
				alert.id,
				alert.user_id,
				alert.type,
				alert.severity,
				alert.priority,
				alert.description,
				alert.message,
				_snapshot_json(alert.location),
				alert.dismissed,
				alert.resolved,
				alert.dismissed_at,
				alert.resolved_at,
				alert.notified_contacts,
				alert.created_at,
				alert.updated_at,
			)
		return alert

	async def get_alert(self, alert_id: str) -> Optional[SafetyAlert]:
		async with self._pool.acquire() as conn:
			row = await conn.fetchrow(f"SELECT {_ALERT_COLUMNS} FROM safety_alerts WHERE id = $1", alert_id)
		return _alert(row) if row else None

	async def set_alert_flag(self, alert_id: str, flag: AlertFlag, at: datetime) -> Optional[SafetyAlert]:
		if flag not in ALERT_FLAGS:
			raise ValueError(f"unknown alert flag {flag!r}")
		async with self._pool.acquire() as conn:
			row = await conn.fetchrow(
				f"""
				UPDATE safety_alerts
				SET {flag} = TRUE,
					{flag}_at = COALESCE({flag}_at, $2),
					updated_at = CASE WHEN {flag} THEN updated_at ELSE $2 END
				WHERE id = $1
				RETURNING {_ALERT_COLUMNS}
				""",
				alert_id,
				at,
			)
		return _alert(row) if row else None

	async def list_alerts(self, user_id: str, *, active_only: bool = False) -> List[SafetyAlert]:
		query = f"SELECT {_ALERT_COLUMNS} FROM safety_alerts WHERE user_id = $1"
		if active_only:
			query += " AND dismissed = FALSE AND resolved = FALSE"
		query += " ORDER BY created_at DESC"
		async with self._pool.acquire() as conn:
			rows = await conn.fetch(query, user_id)
		return [_alert(row) for row in rows]

	async def add_check(self, check: SafetyCheck) -> SafetyCheck:
		async with self._pool.acquire() as conn:
			await conn.execute(
				f"""
				INSERT INTO safety_checks ({_CHECK_COLUMNS})
				VALUES ($1, $2, $3, $4, $5, $6, $7::jsonb, $8, $9, $10, $11)
				""",
				check.id,
				check.user_id,
				check.type,
				check.status,
				check.scheduled_for,
				check.description,
				_snapshot_json(check.location),
				check.completed_at,
				check.notified_contacts,
				check.created_at,
				check.updated_at,
			)
		return check

	async def get_check(self, check_id: str) -> Optional[SafetyCheck]:
		async with self._pool.acquire() as conn:
			row = await conn.fetchrow(f"SELECT {_CHECK_COLUMNS} FROM safety_checks WHERE id = $1", check_id)
		return _check(row) if row else None

	async def complete_check(self, check_id: str, at: datetime) -> Optional[SafetyCheck]:
		async with self._pool.acquire() as conn:
			row = await conn.fetchrow(
				f"""
				UPDATE safety_checks
				SET status = 'completed', completed_at = $2, updated_at = $2
				WHERE id = $1 AND status = 'pending'
				RETURNING {_CHECK_COLUMNS}
				""",
				check_id,
				at,
			)
		return _check(row) if row else None

	async def list_checks(self, user_id: str, *, status: Optional[str] = None) -> List[SafetyCheck]:
		async with self._pool.acquire() as conn:
			rows = await conn.fetch(
				f"""
				SELECT {_CHECK_COLUMNS} FROM safety_checks
				WHERE user_id = $1 AND ($2::text IS NULL OR status = $2)
				ORDER BY scheduled_for
				""",
				user_id,
				status,
			)
		return [_check(row) for row in rows]

	async def add_contact(self, contact: EmergencyContact) -> EmergencyContact:
		async with self._pool.acquire() as conn:
			await conn.execute(
				f"""
				INSERT INTO emergency_contacts ({_CONTACT_COLUMNS})
				VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
				""",
				contact.id,
				contact.user_id,
				contact.name,
				contact.email,
				contact.phone,
				contact.relationship,
				contact.priority,
				contact.verified,
				contact.notify_on_sos,
				contact.created_at,
			)
		return contact

	async def get_contact(self, contact_id: str) -> Optional[EmergencyContact]:
		async with self._pool.acquire() as conn:
			row = await conn.fetchrow(f"SELECT {_CONTACT_COLUMNS} FROM emergency_contacts WHERE id = $1", contact_id)
		return _contact(row) if row else None

	async def list_contacts(self, user_id: str) -> List[EmergencyContact]:
		async with self._pool.acquire() as conn:
			rows = await conn.fetch(
				f"SELECT {_CONTACT_COLUMNS} FROM emergency_contacts WHERE user_id = $1 ORDER BY priority, created_at",
				user_id,
			)
		return [_contact(row) for row in rows]

	async def delete_contact(self, contact_id: str) -> bool:
		async with self._pool.acquire() as conn:
			deleted = await conn.fetchval("DELETE FROM emergency_contacts WHERE id = $1 RETURNING id", contact_id)
		return deleted is not None
