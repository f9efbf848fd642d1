import json
import logging

import pytest

from app.infra.scheduler import JobScheduler, _instrumented
from app.obs.logging import JSONLogFormatter, bind_context, current_context, reset_context


def _record(**extra) -> logging.LogRecord:
	record = logging.LogRecord("app.test", logging.INFO, __file__, 1, "location updated", (), None)
	for key, value in extra.items():
		setattr(record, key, value)
	return record


def test_formatter_redacts_coordinates_and_secrets():
	line = JSONLogFormatter().format(
		_record(user="u1", latitude=45.5, longitude=-73.6, auth_token="abc", removed=3)
	)
	payload = json.loads(line)
	assert payload["msg"] == "location updated"
	assert payload["level"] == "info"
	assert payload["user"] == "u1"
	assert payload["removed"] == 3
	assert payload["latitude"] == "[redacted]"
	assert payload["longitude"] == "[redacted]"
	assert payload["auth_token"] == "[redacted]"


def test_formatter_redacts_nested_fields_and_truncates():
	payload = json.loads(
		JSONLogFormatter().format(_record(meta={"email": "a@b.c", "note": "x" * 400}))
	)
	assert payload["meta"]["email"] == "[redacted]"
	assert len(payload["meta"]["note"]) == 257


def test_bound_context_lands_in_every_line():
	token = bind_context(request_id="req-1", client_ip=None)
	try:
		assert current_context() == {"request_id": "req-1"}
		payload = json.loads(JSONLogFormatter().format(_record()))
		assert payload["request_id"] == "req-1"
	finally:
		reset_context(token)
	assert current_context() == {}


@pytest.mark.asyncio
async def test_instrumented_job_logs_and_swallows_failures(caplog):
	calls = []

	async def broken():
		calls.append(1)
		raise RuntimeError("db down")

	await _instrumented("notification-queue", broken)()
	assert calls == [1]
	assert "scheduled job failed" in caplog.text


def test_schedule_every_registers_jobs_before_start():
	scheduler = JobScheduler()

	async def job():
		return None

	scheduler.schedule_every("notification-queue", job, seconds=60)
	scheduler.schedule_every("location-retention", job, seconds=3600)
	assert sorted(scheduler.job_ids()) == ["location-retention", "notification-queue"]
	assert not scheduler.running
