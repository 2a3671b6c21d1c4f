"""
Tests for geospatial utilities
"""
import pytest

from campusfix.core.geo_utils import Coordinate, destination_point, haversine_distance


class TestCoordinate:
    """Test suite for Coordinate."""

    def test_valid_coordinate(self):
        """Test coordinate keeps its values."""
        coord = Coordinate(12.8231, 80.0442)
        assert coord.to_tuple() == (12.8231, 80.0442)
        assert coord.to_dict() == {"latitude": 12.8231, "longitude": 80.0442}

    def test_latitude_out_of_range(self):
        """Test latitude beyond +/-90 is rejected."""
        with pytest.raises(ValueError):
            Coordinate(91.0, 0.0)

    def test_longitude_out_of_range(self):
        """Test longitude beyond +/-180 is rejected."""
        with pytest.raises(ValueError):
            Coordinate(0.0, -180.5)


class TestHaversineDistance:
    """Test suite for great-circle distance."""

    def test_identical_points(self):
        """Test distance from a point to itself is exactly zero."""
        point = Coordinate(12.8231, 80.0442)
        assert haversine_distance(point, point) == 0.0

    def test_symmetry(self):
        """Test distance does not depend on argument order."""
        a = Coordinate(12.8231, 80.0442)
        b = Coordinate(13.0827, 80.2707)
        assert haversine_distance(a, b) == pytest.approx(haversine_distance(b, a))

    def test_known_distance(self):
        """Test one degree of latitude is about 111.2 km."""
        a = Coordinate(0.0, 0.0)
        b = Coordinate(1.0, 0.0)
        assert haversine_distance(a, b) == pytest.approx(111_195, rel=1e-3)

    def test_non_negative(self):
        """Test distance is never negative."""
        a = Coordinate(-33.9, 151.2)
        b = Coordinate(51.5, -0.1)
        assert haversine_distance(a, b) > 0

    def test_antipodal_points(self):
        """Test antipodal points give half the Earth's circumference."""
        a = Coordinate(0.0, 0.0)
        b = Coordinate(0.0, 180.0)
        assert haversine_distance(a, b) == pytest.approx(20_015_087, rel=1e-3)


class TestDestinationPoint:
    """Test suite for destination point."""

    def test_distance_round_trip(self):
        """Test a point 1200 m away measures 1200 m."""
        origin = Coordinate(12.8231, 80.0442)
        dest = destination_point(origin, 1200, 45)
        assert haversine_distance(origin, dest) == pytest.approx(1200, abs=0.5)

    def test_north_bearing(self):
        """Test bearing 0 moves north only."""
        origin = Coordinate(12.8231, 80.0442)
        dest = destination_point(origin, 500, 0)
        assert dest.latitude > origin.latitude
        assert dest.longitude == pytest.approx(origin.longitude, abs=1e-9)
