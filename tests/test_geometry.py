"""
Tests for geometry.py - distances, polyline length and collinear simplification.
"""

import math

import pytest

from cable_route_system.geometry import (
    count_bends,
    distance,
    has_coincident_neighbours,
    is_collinear,
    polyline_length,
    rotate_about_z,
    simplify_collinear,
)
from cable_route_system.models import Point3D, RoutePoint


class TestDistances:
    """Test distance and length helpers."""

    def test_distance_3d(self):
        assert distance(Point3D(0, 0, 0), Point3D(1, 2, 2)) == 3.0

    def test_polyline_length(self):
        points = [Point3D(0, 0), Point3D(3, 4), Point3D(3, 4, 12)]
        assert polyline_length(points) == 17.0

    def test_polyline_length_single_point(self):
        assert polyline_length([Point3D(1, 1)]) == 0


class TestCollinearSimplification:
    """Test collinear point reduction."""

    def test_three_collinear_points(self):
        """Three points on the x axis collapse to the two ends."""
        points = [Point3D(0, 0, 0), Point3D(100, 0, 0), Point3D(200, 0, 0)]
        assert simplify_collinear(points) == [Point3D(0, 0, 0), Point3D(200, 0, 0)]

    def test_corner_is_kept(self):
        points = [Point3D(0, 0), Point3D(100, 0), Point3D(100, 100)]
        assert simplify_collinear(points) == points

    def test_run_of_collinear_points(self):
        points = [Point3D(x, 0) for x in range(0, 300, 50)] + [Point3D(250, 50)]
        assert simplify_collinear(points) == [Point3D(0, 0), Point3D(250, 0), Point3D(250, 50)]

    def test_idempotent(self):
        points = [
            Point3D(0, 0), Point3D(50, 0), Point3D(100, 0), Point3D(150, 50),
            Point3D(200, 100), Point3D(200, 150), Point3D(200, 200),
        ]
        once = simplify_collinear(points)
        assert simplify_collinear(once) == once

    def test_vertical_collinearity(self):
        """Collinearity is tested in 3D, so a rise is a bend."""
        points = [Point3D(0, 0, 0), Point3D(10, 0, 0), Point3D(20, 0, 1)]
        assert len(simplify_collinear(points)) == 3

    def test_tolerance(self):
        points = [Point3D(0, 0), Point3D(100, 1e-9), Point3D(200, 0)]
        assert len(simplify_collinear(points)) == 3
        assert len(simplify_collinear(points, tolerance=1e-6)) == 2

    def test_short_input_unchanged(self):
        points = [Point3D(0, 0), Point3D(1, 1)]
        assert simplify_collinear(points) == points

    def test_preserves_route_points(self):
        points = [RoutePoint(0, 0, id="a"), RoutePoint(1, 0, id="b"), RoutePoint(2, 0, id="c")]
        assert [p.id for p in simplify_collinear(points)] == ["a", "c"]

    def test_is_collinear_reversal(self):
        """A point doubling back on the line is still collinear."""
        assert is_collinear(Point3D(0, 0), Point3D(10, 0), Point3D(5, 0))


class TestBendsAndNeighbours:

    def test_count_bends(self):
        points = [Point3D(0, 0), Point3D(10, 0), Point3D(20, 0), Point3D(20, 10), Point3D(30, 10)]
        assert count_bends(points) == 2

    def test_straight_has_no_bends(self):
        assert count_bends([Point3D(0, 0), Point3D(5, 0)]) == 0

    def test_coincident_neighbours(self):
        assert has_coincident_neighbours([Point3D(0, 0), Point3D(0, 0), Point3D(1, 0)])
        assert not has_coincident_neighbours([Point3D(0, 0), Point3D(1, 0), Point3D(0, 0)])


def test_rotate_about_z():
    x, y = rotate_about_z(1.0, 0.0, 90)
    assert x == pytest.approx(0.0, abs=1e-12)
    assert y == pytest.approx(1.0)
    assert rotate_about_z(2.0, 3.0, 0) == (2.0, 3.0)
    x, y = rotate_about_z(1.0, 1.0, -45)
    assert x == pytest.approx(math.sqrt(2))
    assert y == pytest.approx(0.0, abs=1e-12)
