import pytest

from transit_guide.geo_utils import distance, polyline_length
from transit_guide.models import Coord
from transit_guide.polyline_snapper import snap_to_polyline

LINE = [Coord(0.0, 0.0), Coord(0.0, 0.001)]


def test_midpoint_snaps_to_half_length():
    snap = snap_to_polyline(Coord(0.0, 0.0005), LINE)
    assert snap.meters_from_start == pytest.approx(polyline_length(LINE) / 2, abs=1e-6)
    assert snap.segment_index == 0


def test_point_beside_the_line_projects_perpendicular():
    snap = snap_to_polyline(Coord(0.0001, 0.0005), LINE)
    assert snap.meters_from_start == pytest.approx(polyline_length(LINE) / 2, rel=1e-6)
    assert snap.snapped.lat == pytest.approx(0.0, abs=1e-12)
    assert snap.offset_m == pytest.approx(distance(Coord(0.0, 0.0), Coord(0.0001, 0.0)), rel=1e-6)


def test_beyond_last_vertex_clamps_to_end():
    snap = snap_to_polyline(Coord(0.0, 0.002), LINE)
    assert snap.meters_from_start == pytest.approx(polyline_length(LINE))
    assert snap.snapped.lon == pytest.approx(0.001)


def test_before_first_vertex_clamps_to_start():
    snap = snap_to_polyline(Coord(0.0, -0.001), LINE)
    assert snap.meters_from_start == pytest.approx(0.0, abs=1e-9)


def test_along_path_sums_preceding_segments():
    l_shape = [Coord(0.0, 0.0), Coord(0.0, 0.001), Coord(0.001, 0.001)]
    first = distance(l_shape[0], l_shape[1])
    second = distance(l_shape[1], l_shape[2])

    snap = snap_to_polyline(Coord(0.0005, 0.0011), l_shape)

    assert snap.segment_index == 1
    assert snap.meters_from_start == pytest.approx(first + second / 2, rel=1e-6)


def test_out_and_back_turnaround():
    out_and_back = [Coord(0.0, 0.0), Coord(0.0, 0.001), Coord(0.0, 0.0)]
    snap = snap_to_polyline(Coord(0.0, 0.002), out_and_back)
    assert snap.meters_from_start == pytest.approx(distance(out_and_back[0], out_and_back[1]))


def test_single_point_polyline():
    snap = snap_to_polyline(Coord(0.001, 0.001), [Coord(0.0, 0.0)])
    assert snap.meters_from_start == 0.0
    assert snap.snapped == Coord(0.0, 0.0)


def test_duplicate_vertices_are_tolerated():
    dup = [Coord(0.0, 0.0), Coord(0.0, 0.0), Coord(0.0, 0.001), Coord(0.0, 0.001)]
    snap = snap_to_polyline(Coord(0.0, 0.001), dup)
    assert snap.meters_from_start == pytest.approx(polyline_length(dup))


def test_empty_polyline_raises():
    with pytest.raises(ValueError):
        snap_to_polyline(Coord(0.0, 0.0), [])
