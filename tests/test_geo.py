"""Tests for geofence distance helpers."""

import pytest

from conftest import GYM, offset_north
from stay_hard.models.geo import GeoPoint, Target
from stay_hard.utils.geo import distance_meters, within_radius, within_target


class TestDistance:
    """Tests for great-circle distance."""

    def test_same_point_is_zero(self):
        assert distance_meters(GYM, GYM) == 0

    def test_symmetric(self):
        a = GeoPoint(40.7128, -74.0060)
        b = GeoPoint(51.5074, -0.1278)
        assert distance_meters(a, b) == pytest.approx(distance_meters(b, a))

    def test_new_york_to_london(self):
        a = GeoPoint(40.7128, -74.0060)
        b = GeoPoint(51.5074, -0.1278)
        assert distance_meters(a, b) == pytest.approx(5_570_000, rel=0.01)

    def test_small_offset(self):
        assert distance_meters(GYM, offset_north(GYM, 40)) == pytest.approx(40, abs=0.01)

    def test_antipodal_points(self):
        a = GeoPoint(0, 0)
        b = GeoPoint(0, 180)
        assert distance_meters(a, b) == pytest.approx(20_015_087, rel=0.001)


class TestWithinRadius:
    """Tests for the inclusive radius test."""

    def test_just_inside(self):
        assert within_radius(offset_north(GYM, 9.99), GYM, 10)

    def test_just_outside(self):
        assert not within_radius(offset_north(GYM, 10.01), GYM, 10)

    def test_target_uses_its_radius(self):
        target = Target(location=GYM, radius_meters=10, name="Iron Temple")
        point = offset_north(GYM, 40)
        assert not within_target(point, target)
        assert within_target(point, target.with_radius(50))


class TestGeoPoint:
    """Tests for coordinate validation."""

    @pytest.mark.parametrize("lat,lng", [(91, 0), (-91, 0), (0, 181), (0, -181)])
    def test_out_of_range(self, lat, lng):
        with pytest.raises(ValueError):
            GeoPoint(lat, lng)
