import pytest

ALICE = {"X-User-Id": "alice"}
BOB = {"X-User-Id": "bob"}


@pytest.mark.asyncio
async def test_alert_flow(api_client, container):
	response = await api_client.post(
		"/safety/contacts",
		json={"name": "Mom", "phone": "+15550100"},
		headers=ALICE,
	)
	assert response.status_code == 201
	contact_id = response.json()["id"]

	response = await api_client.post(
		"/safety/alerts",
		json={
			"type": "sos",
			"description": "followed home",
			"location": {"latitude": 45.5, "longitude": -73.6, "timestamp": "2024-01-15T11:59:00+00:00"},
		},
		headers=ALICE,
	)
	assert response.status_code == 201
	alert = response.json()
	assert alert["severity"] == "critical"
	assert alert["priority"] == 4
	assert alert["status"] == "active"
	assert alert["notified_contacts"] == [contact_id]
	assert alert["location"]["latitude"] == 45.5

	active = (await api_client.get("/safety/alerts", params={"active": True}, headers=ALICE)).json()
	assert [item["id"] for item in active["items"]] == [alert["id"]]

	assert (await api_client.get(f"/safety/alerts/{alert['id']}", headers=BOB)).status_code == 403

	response = await api_client.put(f"/safety/alerts/{alert['id']}", json={"action": "resolve"}, headers=ALICE)
	assert response.status_code == 200
	assert response.json()["status"] == "resolved"
	active = (await api_client.get("/safety/alerts", params={"active": True}, headers=ALICE)).json()
	assert active["items"] == []

	await container.tasks.drain()
	inbox = (await api_client.get("/notifications", headers=ALICE)).json()
	assert [item["event"] for item in inbox["items"]] == ["emergency_alert"]


@pytest.mark.asyncio
async def test_alert_payload_validation(api_client):
	response = await api_client.post("/safety/alerts", json={"type": "fire", "description": "x"}, headers=ALICE)
	assert response.status_code == 400
	response = await api_client.post(
		"/safety/alerts",
		json={"type": "location", "description": "x", "location": {"latitude": 100, "longitude": 0}},
		headers=ALICE,
	)
	assert response.status_code == 400
	assert response.json()["detail"] == "invalid_coordinates"


@pytest.mark.asyncio
async def test_check_flow(api_client, container):
	response = await api_client.post("/safety/checks", json={"type": "meetup", "description": "first date"}, headers=ALICE)
	assert response.status_code == 201
	check = response.json()
	assert check["status"] == "pending"
	assert check["scheduled_for"] == "2024-01-15T12:00:00+00:00"

	response = await api_client.post(f"/safety/checks/{check['id']}/complete", headers=ALICE)
	assert response.status_code == 200
	assert response.json()["status"] == "completed"

	response = await api_client.post(f"/safety/checks/{check['id']}/complete", headers=ALICE)
	assert response.status_code == 409

	listing = (await api_client.get("/safety/checks", params={"status": "completed"}, headers=ALICE)).json()
	assert [item["id"] for item in listing["items"]] == [check["id"]]
	await container.tasks.drain()


@pytest.mark.asyncio
async def test_contacts_are_private(api_client):
	response = await api_client.post("/safety/contacts", json={"name": "Dad"}, headers=ALICE)
	assert response.status_code == 400

	contact = (
		await api_client.post("/safety/contacts", json={"name": "Dad", "email": "dad@example.com"}, headers=ALICE)
	).json()
	assert (await api_client.get("/safety/contacts", headers=BOB)).json()["items"] == []
	assert (await api_client.delete(f"/safety/contacts/{contact['id']}", headers=BOB)).status_code == 403
	assert (await api_client.delete(f"/safety/contacts/{contact['id']}", headers=ALICE)).status_code == 204
