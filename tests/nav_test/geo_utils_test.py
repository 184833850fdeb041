import math

import pytest

from transit_guide.geo_utils import (
    EARTH_RADIUS_M,
    calculate_bearing,
    distance,
    haversine_distance,
    median,
    parse_linestring,
    polyline_length,
)
from transit_guide.models import Coord


def test_haversine_is_symmetric_and_zero_on_same_point():
    a = (37.5665, 126.9780)
    b = (37.5796, 126.9770)
    assert haversine_distance(*a, *b) == pytest.approx(haversine_distance(*b, *a))
    assert haversine_distance(*a, *a) == 0.0


def test_one_degree_of_longitude_on_equator():
    expected = EARTH_RADIUS_M * math.radians(1.0)
    assert distance(Coord(0.0, 0.0), Coord(0.0, 1.0)) == pytest.approx(expected)


def test_parse_provider_linestring():
    points = parse_linestring("126.9770,37.5650 126.9777,37.5657")
    assert points == [Coord(37.5650, 126.9770), Coord(37.5657, 126.9777)]


def test_parse_flat_pairs():
    points = parse_linestring("126.9770 37.5650 126.9777 37.5657")
    assert points == [Coord(37.5650, 126.9770), Coord(37.5657, 126.9777)]


@pytest.mark.parametrize("text", [None, "", "   ", "abc,def", "1.0,2.0 3.0", "1.0,nan 2.0,3.0"])
def test_malformed_linestring_is_empty(text):
    assert parse_linestring(text) == []


def test_polyline_length():
    assert polyline_length([]) == 0.0
    assert polyline_length([Coord(0.0, 0.0)]) == 0.0

    pts = [Coord(0.0, 0.0), Coord(0.0, 0.001), Coord(0.0, 0.002)]
    assert polyline_length(pts) == pytest.approx(distance(pts[0], pts[2]))


def test_median():
    assert median([1, 2, 3]) == 2
    assert median([1, 2, 3, 4]) == 2.5
    assert median([3, 1, 2]) == 2
    assert median([]) is None


def test_bearing_east_and_north():
    assert calculate_bearing(0.0, 0.0, 0.0, 1.0) == pytest.approx(90.0)
    assert calculate_bearing(0.0, 0.0, 1.0, 0.0) == pytest.approx(0.0)
