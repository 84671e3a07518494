import math

import pytest

from shoproute.models.domain import Coordinate
from shoproute.services.geospatial import EARTH_RADIUS_KM, bearing_degrees, direct_distance, haversine_km
from shoproute.services.routing.errors import InvalidCoordinates


def test_direct_distance_of_identical_points_is_zero():
    point = Coordinate(24.7136, 46.6753)
    assert direct_distance(point, point) == 0.0


def test_direct_distance_is_symmetric():
    a = Coordinate(21.5433, 39.1728)
    b = Coordinate(24.7136, 46.6753)
    assert direct_distance(a, b) == pytest.approx(direct_distance(b, a))


def test_one_degree_of_longitude_on_the_equator():
    distance = direct_distance(Coordinate(0, 0), Coordinate(0, 1))
    assert distance == pytest.approx(111_195, rel=1e-3)


def test_antipodal_points_do_not_overflow():
    assert haversine_km(0, 0, 0, 180) == pytest.approx(math.pi * EARTH_RADIUS_KM)


def test_bearing_cardinal_directions():
    assert bearing_degrees(0, 0, 1, 0) == pytest.approx(0.0)
    assert bearing_degrees(0, 0, 0, 1) == pytest.approx(90.0)
    assert bearing_degrees(0, 0, 0, -1) == pytest.approx(270.0)


@pytest.mark.parametrize(
    "lat, lon",
    [(91, 0), (-90.5, 0), (0, 180.1), (float("nan"), 0), (0, float("inf")), ("24.7", 46.6)],
)
def test_invalid_coordinates_are_rejected(lat, lon):
    with pytest.raises(InvalidCoordinates):
        Coordinate(lat, lon)
