import pytest
from pydantic import ValidationError as PydanticValidationError

from app.domain.errors import LocationRequired, RateLimited, ValidationError
from app.domain.matching.models import CandidateProfile, MatchFilters, MatchPreferences
from app.domain.proximity import geo
from app.domain.proximity.service import LocationUpdate

ORIGIN = (45.0, -73.0)
KM_PER_DEGREE = 111.19


async def _place(container, user_id, km_north, **kwargs):
	lat = ORIGIN[0] + km_north / KM_PER_DEGREE
	await container.locations.record_location(user_id, LocationUpdate(latitude=lat, longitude=ORIGIN[1], **kwargs))


async def _prefs(container, user_id, **kwargs):
	await container.matching.update_preferences(user_id, MatchPreferences(**kwargs))


@pytest.mark.asyncio
async def test_candidates_are_ranked_by_score_then_distance(container):
	await _place(container, "alice", 0)
	await _prefs(container, "alice", activity_types=["Hiking"])
	await _place(container, "bob", 2.0)
	await _prefs(container, "bob", activity_types=["hiking"])
	await _place(container, "carol", 0.5)
	await _prefs(container, "carol", activity_types=["chess"])
	await _place(container, "erin", 0.6)
	await _place(container, "dan", 0.3)

	results = await container.matching.find_matches("alice")
	assert [c.user_id for c in results] == ["bob", "dan", "erin", "carol"]
	assert results[0].score.total == 69
	# equal scores fall back to the nearer candidate
	assert results[1].score.total == results[2].score.total == 55
	assert results[3].score.total == 40
	await container.tasks.drain()


@pytest.mark.asyncio
async def test_requires_a_current_location(container):
	with pytest.raises(LocationRequired):
		await container.matching.find_matches("ghost")


@pytest.mark.asyncio
async def test_sixth_query_within_a_minute_is_rate_limited(container):
	await _place(container, "alice", 0)
	for _ in range(5):
		await container.matching.find_matches("alice")
	with pytest.raises(RateLimited):
		await container.matching.find_matches("alice")
	await container.tasks.drain()


@pytest.mark.asyncio
async def test_blocked_users_never_appear(container):
	await _place(container, "alice", 0)
	await _place(container, "bob", 0.4)
	await _place(container, "carol", 0.8)
	match = await container.lifecycle.request_match("bob", "alice")
	await container.lifecycle.block_match("alice", match.id)

	assert [c.user_id for c in await container.matching.find_matches("alice")] == ["carol"]
	assert [c.user_id for c in await container.matching.find_matches("bob")] == ["carol"]
	await container.tasks.drain()


@pytest.mark.asyncio
async def test_privacy_zone_hides_candidate_from_non_matches(container):
	await _place(container, "alice", 0)
	await _place(container, "bob", 0.4)
	bob_home = geo.Point(ORIGIN[0] + 0.4 / KM_PER_DEGREE, ORIGIN[1])
	await container.zones.create_zone("bob", "home", bob_home, 150)

	assert await container.matching.find_matches("alice") == []

	match = await container.lifecycle.request_match("alice", "bob")
	await container.lifecycle.accept_match("bob", match.id)
	results = await container.matching.find_matches("alice")
	assert [c.user_id for c in results] == ["bob"]
	# inside a zone the distance is reported coarsely
	assert results[0].distance_km == 1.0
	await container.tasks.drain()


@pytest.mark.asyncio
async def test_sharing_disabled_and_far_users_are_excluded(container):
	await _place(container, "alice", 0)
	await _place(container, "bob", 0.4, sharing_enabled=False)
	await _place(container, "carol", 30)
	await _place(container, "dan", 3)
	results = await container.matching.find_matches("alice")
	assert [c.user_id for c in results] == ["dan"]
	narrowed = await container.matching.find_matches("alice", MatchFilters(max_distance_km=1))
	assert narrowed == []
	await container.tasks.drain()


@pytest.mark.asyncio
async def test_approximate_candidates_report_coarse_distance(container):
	await _place(container, "alice", 0)
	await _place(container, "bob", 0.4, privacy_mode="approximate")
	results = await container.matching.find_matches("alice")
	assert results[0].distance_km == 1.0
	assert results[0].privacy_mode == "approximate"
	await container.tasks.drain()


@pytest.mark.asyncio
async def test_profile_filters(container):
	await _place(container, "alice", 0)
	await _place(container, "bob", 0.2)
	await _place(container, "carol", 0.4)
	await _place(container, "dan", 0.6)
	container.profiles.put(CandidateProfile(user_id="bob", age=22, verified=True, has_photo=True))
	container.profiles.put(CandidateProfile(user_id="carol", age=35, verified=False, has_photo=True))
	await _prefs(container, "carol", activity_types=["climbing"])

	by_age = await container.matching.find_matches("alice", MatchFilters(min_age=30))
	assert [c.user_id for c in by_age] == ["carol"]
	verified = await container.matching.find_matches("alice", MatchFilters(verified_only=True))
	assert [c.user_id for c in verified] == ["bob"]
	climbing = await container.matching.find_matches("alice", MatchFilters(activity_type="climbing"))
	assert [c.user_id for c in climbing] == ["carol"]
	await container.tasks.drain()


@pytest.mark.asyncio
async def test_privacy_mode_filter(container):
	await _place(container, "alice", 0)
	await _place(container, "bob", 0.2, privacy_mode="approximate")
	await _place(container, "carol", 0.4)
	results = await container.matching.find_matches("alice", MatchFilters(privacy_mode="precise"))
	assert [c.user_id for c in results] == ["carol"]
	await container.tasks.drain()


@pytest.mark.asyncio
async def test_preferences_default_and_normalise(container):
	defaults = await container.matching.get_preferences("alice")
	assert defaults.max_distance_km == 10.0
	saved = await container.matching.update_preferences(
		"alice",
		MatchPreferences(interests=[" Music", "music", ""], activity_type=" Coffee "),
	)
	assert saved.interests == ["music"]
	assert saved.activity_type == "coffee"
	assert (await container.matching.get_preferences("alice")).interests == ["music"]


def test_preferences_reject_inverted_age_range():
	with pytest.raises(PydanticValidationError):
		MatchPreferences(min_age=40, max_age=30)


@pytest.mark.asyncio
async def test_filters_that_break_preferences_are_a_validation_error(container):
	await _place(container, "alice", 0)
	await _prefs(container, "alice", max_age=25)
	with pytest.raises(ValidationError):
		await container.matching.find_matches("alice", MatchFilters(min_age=30))
	await container.tasks.drain()
