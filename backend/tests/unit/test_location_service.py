import pytest

from app.domain.errors import InvalidCoordinates, NotFound, ValidationError
from app.domain.proximity import geo
from app.domain.proximity.models import SharingChanges
from app.domain.proximity.privacy import PrivacyZoneService
from app.domain.proximity.repository import InMemoryLocationRepository, InMemoryPrivacyZoneRepository
from app.domain.proximity.service import LocationService, LocationUpdate
from app.infra.tasks import DetachedTasks


@pytest.fixture
def store(clock):
	tasks = DetachedTasks()
	repo = InMemoryLocationRepository()
	zones = PrivacyZoneService(InMemoryPrivacyZoneRepository(), clock=clock)
	service = LocationService(repo, zones, tasks, clock=clock)
	return service, repo, zones, tasks


@pytest.mark.asyncio
async def test_current_location_is_latest_record(store, clock):
	service, _, _, tasks = store
	for step in range(4):
		await service.record_location("alice", LocationUpdate(latitude=10.0 + step, longitude=20.0))
		clock.advance(minutes=5)
	current = await service.get_current_location("alice")
	assert current.latitude == 13.0
	assert current.privacy_mode == "precise"
	assert current.sharing_enabled is True
	await tasks.drain()


@pytest.mark.asyncio
async def test_same_timestamp_resolves_to_last_committed(store):
	service, _, _, tasks = store
	await service.record_location("alice", LocationUpdate(latitude=1.0, longitude=1.0))
	await service.record_location("alice", LocationUpdate(latitude=2.0, longitude=2.0))
	assert (await service.get_current_location("alice")).latitude == 2.0
	await tasks.drain()


@pytest.mark.parametrize(
	"lat,lon",
	[(None, 10.0), (10.0, None), (91.0, 0.0), (0.0, 181.0)],
)
@pytest.mark.asyncio
async def test_invalid_coordinates_are_rejected_before_writing(store, lat, lon):
	service, repo, _, _ = store
	with pytest.raises(InvalidCoordinates):
		await service.record_location("alice", LocationUpdate(latitude=lat, longitude=lon))
	assert await repo.latest("alice", since=service._cutoff()) is None


@pytest.mark.asyncio
async def test_unknown_privacy_mode_is_rejected(store):
	service, _, _, _ = store
	with pytest.raises(ValidationError):
		await service.record_location(
			"alice",
			LocationUpdate(latitude=1.0, longitude=1.0, privacy_mode="invisible"),
		)


@pytest.mark.asyncio
async def test_missing_location_is_not_found(store):
	service, _, _, _ = store
	with pytest.raises(NotFound):
		await service.get_current_location("nobody")
	with pytest.raises(NotFound):
		await service.update_sharing_state("nobody", SharingChanges(sharing_enabled=False))


@pytest.mark.asyncio
async def test_sharing_update_appends_copy_with_overlay(store, clock):
	service, _, _, tasks = store
	first = await service.record_location(
		"alice",
		LocationUpdate(latitude=45.5, longitude=-73.6, accuracy=12.0),
	)
	clock.advance(seconds=30)
	updated = await service.update_sharing_state("alice", SharingChanges(privacy_mode="approximate"))
	assert updated.id != first.id
	assert (updated.latitude, updated.longitude, updated.accuracy) == (45.5, -73.6, 12.0)
	assert updated.privacy_mode == "approximate"
	assert updated.sharing_enabled is True
	assert updated.timestamp > first.timestamp

	# a later full update inherits the metadata it does not set
	clock.advance(seconds=30)
	moved = await service.record_location("alice", LocationUpdate(latitude=45.6, longitude=-73.6))
	assert moved.privacy_mode == "approximate"
	await tasks.drain()


@pytest.mark.asyncio
async def test_recording_prunes_expired_rows_in_background(store, clock):
	service, repo, _, tasks = store
	await service.record_location("alice", LocationUpdate(latitude=1.0, longitude=1.0))
	clock.advance(hours=25)
	await service.record_location("alice", LocationUpdate(latitude=2.0, longitude=2.0))
	await tasks.drain()
	assert len(repo._rows["alice"]) == 1
	assert (await service.get_current_location("alice")).latitude == 2.0


@pytest.mark.asyncio
async def test_prune_failure_does_not_fail_the_write(store, monkeypatch):
	service, repo, _, tasks = store

	async def broken_prune(user_id, *, older_than):
		raise RuntimeError("storage hiccup")

	monkeypatch.setattr(repo, "prune_user", broken_prune)
	record = await service.record_location("alice", LocationUpdate(latitude=1.0, longitude=1.0))
	await tasks.drain()
	assert record.latitude == 1.0
	assert tasks.pending == 0


@pytest.mark.asyncio
async def test_expired_location_is_not_current(store, clock):
	service, _, _, tasks = store
	await service.record_location("alice", LocationUpdate(latitude=1.0, longitude=1.0))
	clock.advance(hours=24, seconds=1)
	assert await service.find_current_location("alice") is None
	await tasks.drain()


@pytest.mark.asyncio
async def test_nearby_users_respects_radius_sharing_and_buckets(store, clock):
	service, _, zones, tasks = store
	await service.record_location("alice", LocationUpdate(latitude=37.0, longitude=-122.0))
	await service.record_location("bob", LocationUpdate(latitude=37.0001, longitude=-122.0001))
	await service.record_location("carol", LocationUpdate(latitude=37.0002, longitude=-122.0, privacy_mode="approximate"))
	await service.record_location("dave", LocationUpdate(latitude=37.0001, longitude=-122.0, sharing_enabled=False))
	await service.record_location("erin", LocationUpdate(latitude=37.5, longitude=-122.0))
	# frank sits in his own hiding zone
	await zones.create_zone("frank", "home", geo.Point(37.0003, -122.0), 100)
	await service.record_location("frank", LocationUpdate(latitude=37.0003, longitude=-122.0))

	nearby = {user.user_id: user for user in await service.get_nearby_users("alice", 500)}
	assert set(nearby) == {"bob", "carol"}
	# ~14 m separation rounds up to the 10 m bucket
	assert nearby["bob"].distance_m == 20
	assert nearby["carol"].distance_m == 1000
	await tasks.drain()


@pytest.mark.asyncio
async def test_nearby_radius_is_bounded(store):
	service, _, _, _ = store
	with pytest.raises(ValidationError):
		await service.get_nearby_users("alice", 0)
	with pytest.raises(ValidationError):
		await service.get_nearby_users("alice", 50_001)
