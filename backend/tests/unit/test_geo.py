import math

import pytest

from app.domain.proximity import geo

SF = (37.7749, -122.4194)
NEARBY = (37.7833, -122.4167)


def test_distance_is_symmetric_and_zero_on_identity():
	assert geo.distance_km(*SF, *NEARBY) == pytest.approx(geo.distance_km(*NEARBY, *SF))
	assert geo.distance_km(*SF, *SF) == 0.0


def test_distance_matches_known_separation():
	# roughly 0.96 km between the two downtown points
	assert geo.distance_km(*SF, *NEARBY) == pytest.approx(0.96, abs=0.05)
	# one degree of latitude along a meridian
	assert geo.distance_km(0.0, 0.0, 1.0, 0.0) == pytest.approx(111.19, abs=0.1)


@pytest.mark.parametrize("lat", [0.0, 45.0, 70.0, -60.0])
def test_bounding_box_contains_every_point_on_the_circle(lat):
	radius_m = 5000
	box = geo.bounding_box(lat, 10.0, radius_m)
	for bearing in range(0, 360, 15):
		theta = math.radians(bearing)
		# walk just inside the radius along each bearing
		d = (radius_m * 0.999) / 1000 / geo.EARTH_RADIUS_KM
		phi1 = math.radians(lat)
		lam1 = math.radians(10.0)
		phi2 = math.asin(math.sin(phi1) * math.cos(d) + math.cos(phi1) * math.sin(d) * math.cos(theta))
		lam2 = lam1 + math.atan2(
			math.sin(theta) * math.sin(d) * math.cos(phi1),
			math.cos(d) - math.sin(phi1) * math.sin(phi2),
		)
		point_lat, point_lon = math.degrees(phi2), math.degrees(lam2)
		assert geo.distance_km(lat, 10.0, point_lat, point_lon) * 1000 <= radius_m
		assert box.contains(point_lat, point_lon)


def test_bounding_box_at_pole_spans_all_longitudes():
	box = geo.bounding_box(90.0, 0.0, 1000)
	assert box.min_lon == -180.0
	assert box.max_lon == 180.0


def test_zone_membership_is_inclusive_and_overlap_is_strict():
	center = geo.Point(*SF)
	assert geo.is_within_zone(center, center, 0)
	other = geo.Point(*NEARBY)
	separation_m = geo.distance_km(*SF, *NEARBY) * 1000
	assert geo.is_within_zone(other, center, separation_m + 1)
	assert not geo.is_within_zone(other, center, separation_m - 1)
	assert geo.circles_overlap(center, separation_m / 2 + 1, other, separation_m / 2)
	assert not geo.circles_overlap(center, separation_m / 2 - 1, other, separation_m / 2)


@pytest.mark.parametrize(
	"lat,lon,ok",
	[
		(0.0, 0.0, True),
		(90.0, 180.0, True),
		(-90.0, -180.0, True),
		(90.5, 0.0, False),
		(0.0, -180.1, False),
		(None, 0.0, False),
		(float("nan"), 0.0, False),
	],
)
def test_valid_coordinates(lat, lon, ok):
	assert geo.valid_coordinates(lat, lon) is ok


def test_round_up_to_bucket():
	assert geo.round_up_to_bucket(14.0, 10) == 20
	assert geo.round_up_to_bucket(20.0, 10) == 20
	assert geo.round_up_to_bucket(1.0, 1000) == 1000
	assert geo.round_up_to_bucket(0.0, 10) == 0
