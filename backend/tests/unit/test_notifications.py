from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError as PydanticValidationError

from app.domain.errors import ValidationError
from app.domain.notifications import quiet_hours
from app.domain.notifications.models import NotificationPreferences, OutgoingNotification
from app.domain.notifications.repository import InMemoryNotificationRepository
from app.domain.notifications.scheduler import REPLAY_RETRY_DELAY, NotificationScheduler
from app.domain.realtime.events import EventType
from app.domain.realtime.hub import RealtimeHub


class RecordingPush:
	def __init__(self, fail=False):
		self.fail = fail
		self.delivered = []

	async def deliver(self, user_id, notification):
		if self.fail:
			raise RuntimeError("provider down")
		self.delivered.append(notification.id)

	async def notify_contact(self, contact, notification):
		pass


def _utc(*args):
	return datetime(*args, tzinfo=timezone.utc)


def _system_message(body="hello"):
	return OutgoingNotification(
		event=EventType.NOTIFICATION,
		title="Heads up",
		body=body,
		data={"category": "system", "title": "Heads up", "body": body},
	)


def _quiet(tz="UTC", start="22:00", end="07:00", **kwargs):
	return NotificationPreferences.model_validate(
		{"timezone": tz, "quiet_hours": {"enabled": True, "start": start, "end": end}, **kwargs}
	)


@pytest.fixture
def push():
	return RecordingPush()


@pytest.fixture
def scheduler(clock, push):
	return NotificationScheduler(InMemoryNotificationRepository(), RealtimeHub(), push, clock=clock)


@pytest.mark.parametrize(
	"hhmm,start,end,expected",
	[
		("23:00", "22:00", "07:00", True),
		("06:59", "22:00", "07:00", True),
		("07:00", "22:00", "07:00", False),
		("22:00", "22:00", "07:00", True),
		("12:00", "22:00", "07:00", False),
		("13:30", "13:00", "14:00", True),
		("14:00", "13:00", "14:00", False),
		("09:00", "09:00", "09:00", False),
	],
)
def test_in_quiet_hours(hhmm, start, end, expected):
	hours, minutes = map(int, hhmm.split(":"))
	local = _utc(2024, 1, 15, hours, minutes)
	assert quiet_hours.in_quiet_hours(local, start, end) is expected


def test_window_end_rolls_to_next_day():
	assert quiet_hours.window_end(_utc(2024, 1, 15, 23, 0), "07:00") == _utc(2024, 1, 16, 7, 0)
	assert quiet_hours.window_end(_utc(2024, 1, 16, 2, 0), "07:00") == _utc(2024, 1, 16, 7, 0)


def test_preferences_reject_bad_values():
	with pytest.raises(PydanticValidationError):
		NotificationPreferences.model_validate({"quiet_hours": {"start": "25:00"}})
	with pytest.raises(PydanticValidationError):
		NotificationPreferences.model_validate({"timezone": "Mars/Olympus"})


@pytest.mark.asyncio
async def test_quiet_hours_queue_until_window_closes(scheduler, push):
	await scheduler.update_preferences("alice", _quiet())
	result = await scheduler.send_notification("alice", _system_message(), now=_utc(2024, 1, 15, 23, 0))
	assert result.status == "queued"
	assert result.process_after == _utc(2024, 1, 16, 7, 0)
	assert push.delivered == []

	assert await scheduler.process_offline_queue(now=_utc(2024, 1, 16, 6, 59)) == 0
	assert await scheduler.process_offline_queue(now=_utc(2024, 1, 16, 7, 0)) == 1
	assert len(push.delivered) == 1
	# claimed rows are gone
	assert await scheduler.process_offline_queue(now=_utc(2024, 1, 16, 8, 0)) == 0


@pytest.mark.asyncio
async def test_outside_quiet_hours_delivers_immediately(scheduler, push):
	await scheduler.update_preferences("alice", _quiet())
	result = await scheduler.send_notification("alice", _system_message(), now=_utc(2024, 1, 15, 12, 0))
	assert result.status == "delivered"
	assert push.delivered == [result.notification.id]
	assert [n.id for n in await scheduler.list_notifications("alice")] == [result.notification.id]


@pytest.mark.asyncio
async def test_quiet_hours_follow_user_timezone(scheduler):
	await scheduler.update_preferences("alice", _quiet(tz="America/New_York"))
	# 03:30 UTC is 22:30 the previous evening in New York
	result = await scheduler.send_notification("alice", _system_message(), now=_utc(2024, 1, 16, 3, 30))
	assert result.status == "queued"
	assert result.process_after.astimezone(ZoneInfo("America/New_York")).hour == 7
	assert result.process_after == _utc(2024, 1, 16, 12, 0)


@pytest.mark.asyncio
async def test_disabled_category_is_suppressed(scheduler, push):
	await scheduler.update_preferences(
		"alice",
		NotificationPreferences.model_validate({"categories": {"system": False}}),
	)
	result = await scheduler.send_notification("alice", _system_message())
	assert result.status == "suppressed"
	assert push.delivered == []
	assert await scheduler.list_notifications("alice") == []


@pytest.mark.asyncio
async def test_push_disabled_still_records_and_publishes(clock, push):
	hub = RealtimeHub()
	seen = []

	async def handler(user_id, payload):
		seen.append((user_id, payload.body))

	hub.subscribe(EventType.NOTIFICATION, handler)
	scheduler = NotificationScheduler(InMemoryNotificationRepository(), hub, push, clock=clock)
	await scheduler.update_preferences("alice", NotificationPreferences(push_enabled=False))
	result = await scheduler.send_notification("alice", _system_message("ping"))
	assert result.status == "delivered"
	assert push.delivered == []
	assert seen == [("alice", "ping")]


@pytest.mark.asyncio
async def test_push_failure_does_not_fail_delivery(clock):
	scheduler = NotificationScheduler(
		InMemoryNotificationRepository(),
		RealtimeHub(),
		RecordingPush(fail=True),
		clock=clock,
	)
	result = await scheduler.send_notification("alice", _system_message())
	assert result.status == "delivered"


@pytest.mark.asyncio
async def test_payload_must_match_event(scheduler):
	bad = OutgoingNotification(event=EventType.MATCH_UPDATE, title="t", body="b", data={"match_id": "m1"})
	with pytest.raises(ValidationError):
		await scheduler.send_notification("alice", bad)


@pytest.mark.asyncio
async def test_replay_rechecks_preferences(scheduler, push):
	await scheduler.update_preferences("alice", _quiet())
	await scheduler.send_notification("alice", _system_message(), now=_utc(2024, 1, 15, 23, 0))
	# the user switched the category off overnight
	await scheduler.update_preferences(
		"alice",
		NotificationPreferences.model_validate({"categories": {"system": False}}),
	)
	assert await scheduler.process_offline_queue(now=_utc(2024, 1, 16, 7, 0)) == 1
	assert push.delivered == []


@pytest.mark.asyncio
async def test_failed_replay_goes_back_on_the_queue(clock, push, monkeypatch):
	repo = InMemoryNotificationRepository()
	scheduler = NotificationScheduler(repo, RealtimeHub(), push, clock=clock)
	await scheduler.update_preferences("alice", _quiet(start="10:00", end="13:00"))
	result = await scheduler.send_notification("alice", _system_message("kept"))
	assert result.status == "queued"

	original_add = repo.add_notification

	async def store_down(notification):
		raise ConnectionError("store unavailable")

	monkeypatch.setattr(repo, "add_notification", store_down)
	replay_at = clock.advance(hours=2)
	assert await scheduler.process_offline_queue() == 0
	queued = await repo.queued_for("alice")
	assert len(queued) == 1
	assert queued[0].process_after == replay_at + REPLAY_RETRY_DELAY

	monkeypatch.setattr(repo, "add_notification", original_add)
	assert await scheduler.process_offline_queue() == 0
	clock.advance(minutes=1)
	assert await scheduler.process_offline_queue() == 1
	assert [item.body for item in await scheduler.list_notifications("alice")] == ["kept"]
	assert await repo.queued_for("alice") == []


@pytest.mark.asyncio
async def test_invalid_queued_payload_is_dropped(scheduler):
	await scheduler.update_preferences("alice", _quiet())
	await scheduler.send_notification("alice", _system_message(), now=_utc(2024, 1, 15, 23, 0))
	queued = await scheduler._repo.queued_for("alice")
	queued[0].notification.data = {"category": "system"}
	assert await scheduler.process_offline_queue(now=_utc(2024, 1, 16, 7, 0)) == 0
	assert await scheduler._repo.queued_for("alice") == []
