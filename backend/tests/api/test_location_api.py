import pytest

ALICE = {"X-User-Id": "alice"}
BOB = {"X-User-Id": "bob"}


@pytest.mark.asyncio
async def test_requires_authentication(api_client):
	response = await api_client.get("/location")
	assert response.status_code == 401
	body = response.json()
	assert body["detail"] == "authentication_required"
	assert body["request_id"] == response.headers["X-Request-Id"]


@pytest.mark.asyncio
async def test_missing_coordinates_are_invalid(api_client):
	response = await api_client.post("/location", json={"latitude": 45.0}, headers=ALICE)
	assert response.status_code == 400
	assert response.json()["detail"] == "invalid_coordinates"

	response = await api_client.post("/location", json={"latitude": 45.0, "longitude": 200.0}, headers=ALICE)
	assert response.status_code == 400
	assert response.json()["detail"] == "invalid_coordinates"


@pytest.mark.asyncio
async def test_no_location_yet_is_not_found(api_client):
	response = await api_client.get("/location", headers=ALICE)
	assert response.status_code == 404
	assert response.json()["detail"] == "not_found"


@pytest.mark.asyncio
async def test_record_read_and_update_sharing(api_client, container):
	response = await api_client.post(
		"/location",
		json={"latitude": 37.0, "longitude": -122.0, "accuracy": 8.5},
		headers=ALICE,
	)
	assert response.status_code == 200
	created = response.json()
	assert created["privacy_mode"] == "precise"
	assert created["sharing_enabled"] is True

	current = (await api_client.get("/location", headers=ALICE)).json()
	assert current["id"] == created["id"]

	response = await api_client.patch("/location", json={"sharing_enabled": False}, headers=ALICE)
	assert response.status_code == 200
	updated = response.json()
	assert updated["sharing_enabled"] is False
	assert updated["latitude"] == 37.0
	assert updated["accuracy"] == 8.5
	await container.tasks.drain()


@pytest.mark.asyncio
async def test_nearby_lists_sharing_users_with_bucketed_distance(api_client, container):
	await api_client.post("/location", json={"latitude": 37.0, "longitude": -122.0}, headers=ALICE)
	await api_client.post("/location", json={"latitude": 37.0001, "longitude": -122.0001}, headers=BOB)
	await api_client.post(
		"/location",
		json={"latitude": 37.0002, "longitude": -122.0, "sharing_enabled": False},
		headers={"X-User-Id": "carol"},
	)

	response = await api_client.get("/location/nearby", params={"radius_m": 100}, headers=ALICE)
	assert response.status_code == 200
	body = response.json()
	assert body["radius_m"] == 100
	assert [item["user_id"] for item in body["items"]] == ["bob"]
	assert body["items"][0]["distance_m"] == 20
	assert "latitude" not in body["items"][0]
	await container.tasks.drain()


@pytest.mark.asyncio
async def test_nearby_radius_out_of_range(api_client):
	response = await api_client.get("/location/nearby", params={"radius_m": 0}, headers=ALICE)
	assert response.status_code == 400
	assert response.json()["detail"] == "validation_error"


@pytest.mark.asyncio
async def test_nearby_checks_credentials_before_query(api_client):
	response = await api_client.get("/location/nearby", params={"radius_m": 0})
	assert response.status_code == 401
