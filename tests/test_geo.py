"""Tests for the haversine distance calculator."""

import pytest

from shopdrop.geo import EARTH_RADIUS_KM, haversine_distance
from shopdrop.models import GeoPoint

from .conftest import KM_PER_DEGREE

LONDON = GeoPoint(latitude=51.5074, longitude=-0.1278)
PARIS = GeoPoint(latitude=48.8566, longitude=2.3522)


class TestHaversineDistance:
    def test_identical_points_are_zero(self):
        assert haversine_distance(LONDON, LONDON) == 0.0

    def test_symmetric(self):
        assert haversine_distance(LONDON, PARIS) == pytest.approx(
            haversine_distance(PARIS, LONDON)
        )

    def test_london_to_paris(self):
        assert haversine_distance(LONDON, PARIS) == pytest.approx(343.5, abs=1.0)

    def test_one_degree_of_latitude(self):
        a = GeoPoint(latitude=0.0, longitude=10.0)
        b = GeoPoint(latitude=1.0, longitude=10.0)
        assert haversine_distance(a, b) == pytest.approx(KM_PER_DEGREE)

    def test_antipodal_points(self):
        a = GeoPoint(latitude=0.0, longitude=0.0)
        b = GeoPoint(latitude=0.0, longitude=180.0)
        assert haversine_distance(a, b) == pytest.approx(3.141592653589793 * EARTH_RADIUS_KM)

    def test_out_of_range_latitude_is_not_clamped(self):
        # 80 -> 100 degrees is a 20 degree arc; clamping to 90 would give 10
        a = GeoPoint(latitude=80.0, longitude=0.0)
        b = GeoPoint(latitude=100.0, longitude=0.0)
        assert haversine_distance(a, b) == pytest.approx(20 * KM_PER_DEGREE)


class TestGeoPoint:
    def test_from_coordinates_is_longitude_first(self):
        point = GeoPoint.from_coordinates([38.74, 9.03])
        assert point.longitude == 38.74
        assert point.latitude == 9.03

    def test_to_dict_is_geojson(self):
        point = GeoPoint(latitude=9.03, longitude=38.74)
        assert point.to_dict() == {"type": "Point", "coordinates": [38.74, 9.03]}

    def test_from_coordinates_rejects_wrong_length(self):
        with pytest.raises(ValueError):
            GeoPoint.from_coordinates([1.0, 2.0, 3.0])
