from datetime import datetime, timezone

import pytest

from app.domain.notifications.models import NotificationPreferences, OutgoingNotification
from app.domain.realtime.events import EventType
from app.settings import settings

ALICE = {"X-User-Id": "alice"}
ADMIN = {"X-User-Id": "ops", "X-User-Role": "admin"}


@pytest.mark.asyncio
async def test_preferences_defaults_and_update(api_client):
	defaults = (await api_client.get("/notifications/preferences", headers=ALICE)).json()
	assert defaults["quiet_hours"] == {"enabled": False, "start": "22:00", "end": "07:00"}
	assert defaults["timezone"] == "UTC"

	response = await api_client.put(
		"/notifications/preferences",
		json={"timezone": "Europe/Paris", "quiet_hours": {"enabled": True, "start": "23:00", "end": "06:30"}},
		headers=ALICE,
	)
	assert response.status_code == 200
	stored = (await api_client.get("/notifications/preferences", headers=ALICE)).json()
	assert stored["timezone"] == "Europe/Paris"
	assert stored["quiet_hours"]["start"] == "23:00"


@pytest.mark.asyncio
async def test_preferences_validation(api_client):
	response = await api_client.put("/notifications/preferences", json={"timezone": "Nowhere/City"}, headers=ALICE)
	assert response.status_code == 400
	response = await api_client.put(
		"/notifications/preferences",
		json={"quiet_hours": {"enabled": True, "start": "7pm", "end": "07:00"}},
		headers=ALICE,
	)
	assert response.status_code == 400


@pytest.mark.asyncio
async def test_queue_processing_is_admin_only(api_client, container, clock):
	await container.notifications.update_preferences(
		"alice",
		NotificationPreferences.model_validate({"quiet_hours": {"enabled": True, "start": "11:00", "end": "13:00"}}),
	)
	result = await container.notifications.send_notification(
		"alice",
		OutgoingNotification(
			event=EventType.NOTIFICATION,
			title="Hi",
			body="queued",
			data={"category": "system", "title": "Hi", "body": "queued"},
		),
	)
	assert result.status == "queued"
	assert result.process_after == datetime(2024, 1, 15, 13, 0, tzinfo=timezone.utc)

	assert (await api_client.post("/ops/notifications/process", headers=ALICE)).status_code == 403
	response = await api_client.post("/ops/notifications/process", headers=ADMIN)
	assert response.json() == {"processed": 0}

	clock.advance(hours=1)
	response = await api_client.post("/ops/notifications/process", headers=ADMIN)
	assert response.json() == {"processed": 1}
	inbox = (await api_client.get("/notifications", headers=ALICE)).json()
	assert [item["body"] for item in inbox["items"]] == ["queued"]


@pytest.mark.asyncio
async def test_location_prune_endpoint(api_client, container, clock):
	await api_client.post("/location", json={"latitude": 1.0, "longitude": 1.0}, headers=ALICE)
	await container.tasks.drain()
	clock.advance(hours=30)
	response = await api_client.post("/ops/locations/prune", headers=ADMIN)
	assert response.status_code == 200
	assert response.json() == {"removed": 1}


@pytest.mark.asyncio
async def test_health_endpoints(api_client):
	assert (await api_client.get("/health/live")).json() == {"status": "ok"}
	response = await api_client.get("/health/ready")
	assert response.status_code == 200
	body = response.json()
	assert body["status"] == "ok"
	assert body["checks"]["redis"]["ok"] is True
	assert "postgres" not in body["checks"]


@pytest.mark.asyncio
async def test_metrics_require_admin_token(api_client, monkeypatch):
	monkeypatch.setattr(settings, "obs_metrics_public", False)
	monkeypatch.setattr(settings, "obs_admin_token", "scrape-me")
	assert (await api_client.get("/metrics")).status_code == 403
	assert (await api_client.get("/metrics", headers={"X-Admin-Token": "wrong"})).status_code == 403
	response = await api_client.get("/metrics", headers={"X-Admin-Token": "scrape-me"})
	assert response.status_code == 200
	assert "# HELP disco_http_requests_total" in response.text


@pytest.mark.asyncio
async def test_public_metrics(api_client, monkeypatch):
	monkeypatch.setattr(settings, "obs_metrics_public", True)
	assert (await api_client.get("/metrics")).status_code == 200
