"""
Tests for route_converter.py - sketch conversion and route metrics.
"""

import math

import pytest

from cable_route_system.config import RouteEngineConfig
from cable_route_system.cost_estimator import estimate_cost
from cable_route_system.errors import InputValidationError, PartialConversionError
from cable_route_system.geometry import polyline_length
from cable_route_system.models import (
    CableRoute, CableType, Complexity, Point2D, RoutePoint, ScaleInfo, SupplyLine
)
from cable_route_system.route_converter import (
    calculate_route_metrics,
    classify_complexity,
    convert_supply_line_to_cable_route,
    convert_supply_lines_to_cable_routes,
    supply_line_from_path,
    update_route_points,
    validate_route,
)


# 100 px = 5 m
SCALE = ScaleInfo.from_calibration(pixel_distance=100, real_distance=5.0)


def make_line(points, **kwargs):
    return SupplyLine(points=[Point2D(x, y) for x, y in points], **kwargs)


def make_route(points, **kwargs):
    kwargs.setdefault("cable_type", CableType.PVC_SWA_PVC)
    kwargs.setdefault("diameter", 25.0)
    return CableRoute(
        id=kwargs.pop("id", "R1"),
        name="Test route",
        points=[RoutePoint(*p) for p in points],
        **kwargs,
    )


class TestConversion:
    """Test converting sketched lines to cable routes."""

    def test_scales_points_to_metres(self):
        route = convert_supply_line_to_cable_route(make_line([(0, 0), (200, 0), (200, 100)]), SCALE)
        assert [(p.x, p.y) for p in route.points] == [(0, 0), (10, 0), (10, 5)]
        assert route.metrics.total_length == pytest.approx(15.0)
        assert route.metrics.bend_count == 1

    def test_metadata_and_labels(self):
        line = make_line(
            [(0, 0), (100, 0)], id="SM-01", from_location="MDB", to_location="DB-1",
            cable_type=CableType.LSZH, diameter=14.0, termination_count=4,
        )
        route = convert_supply_line_to_cable_route(line, SCALE)

        assert route.id == "SM-01"
        assert route.name == "MDB to DB-1"
        assert route.cable_type == CableType.LSZH
        assert route.diameter == 14.0
        assert route.termination_count == 4
        assert [p.id for p in route.points] == ["SM-01-p0", "SM-01-p1"]
        assert route.points[0].label == "MDB"
        assert route.points[-1].label == "DB-1"

    def test_generated_id_and_name(self):
        route = convert_supply_line_to_cable_route(make_line([(0, 0), (100, 0)]), SCALE)
        assert route.id.startswith("route-")
        assert route.name == f"Cable Route {route.id}"

    def test_end_heights_are_counted(self):
        line = make_line([(0, 0), (200, 0), (200, 100)], start_height=2.0, end_height=1.0)
        route = convert_supply_line_to_cable_route(line, SCALE)

        assert route.points[0].z == 2.0
        assert route.points[-1].z == 1.0
        assert route.metrics.total_length == pytest.approx(polyline_length(route.points) + 3.0)

    def test_sloping_straight_run_has_no_bends(self):
        line = make_line([(0, 0), (200, 0), (400, 0)], start_height=2.0, end_height=1.0)
        route = convert_supply_line_to_cable_route(line, SCALE)
        assert route.points[1].z == pytest.approx(1.5)
        assert route.metrics.bend_count == 0

    def test_support_count(self):
        # 10 m of SWA at 0.45 m spacing: ceil(22.2) spans plus one
        route = convert_supply_line_to_cable_route(make_line([(0, 0), (200, 0)]), SCALE)
        assert route.metrics.support_count == 24

    def test_total_cost_matches_estimator(self):
        route = convert_supply_line_to_cable_route(make_line([(0, 0), (200, 0), (200, 100)]), SCALE)
        assert route.metrics.total_cost == pytest.approx(estimate_cost(route).total_cost)
        assert route.metrics.total_cost > 0

    def test_invalid_scale(self):
        with pytest.raises(InputValidationError):
            convert_supply_line_to_cable_route(make_line([(0, 0), (1, 0)]), ScaleInfo(1, 0, 0))

    def test_single_point_line(self):
        with pytest.raises(InputValidationError):
            convert_supply_line_to_cable_route(make_line([(0, 0)]), SCALE)

    def test_coincident_points(self):
        with pytest.raises(InputValidationError):
            convert_supply_line_to_cable_route(make_line([(0, 0), (0, 0), (5, 0)]), SCALE)

    def test_bad_diameter(self):
        with pytest.raises(InputValidationError):
            convert_supply_line_to_cable_route(make_line([(0, 0), (5, 0)], diameter=0), SCALE)

    def test_supply_line_from_path(self):
        line = supply_line_from_path([RoutePoint(0, 0), RoutePoint(3, 4)], id="A1")
        assert line.id == "A1"
        assert line.points == [Point2D(0, 0), Point2D(3, 4)]


class TestBatchConversion:
    """A failing line never aborts the batch."""

    def test_partial_failure(self):
        lines = [
            make_line([(0, 0), (100, 0)], id="ok-1"),
            make_line([(0, 0)], id="bad"),
            make_line([(0, 0), (0, 100)], id="ok-2"),
        ]
        result = convert_supply_lines_to_cable_routes(lines, SCALE)

        assert [r.id for r in result.routes] == ["ok-1", "ok-2"]
        assert len(result.errors) == 1
        assert result.errors[0].line_index == 1
        assert result.errors[0].line_id == "bad"
        assert not result.is_complete

        with pytest.raises(PartialConversionError) as exc_info:
            result.raise_for_errors()
        assert exc_info.value.errors == result.errors
        assert "line 1" in str(exc_info.value)

    def test_complete_batch(self):
        result = convert_supply_lines_to_cable_routes([make_line([(0, 0), (100, 0)])], SCALE)
        assert result.is_complete
        result.raise_for_errors()


class TestMetrics:
    """Metrics are derived from geometry and config."""

    def test_length_is_3d_sum_plus_drops(self):
        route = make_route([(0, 0, 2), (4, 3, 2), (4, 3, 5)], start_height=1.5, end_height=0.5)
        metrics = calculate_route_metrics(route)
        assert metrics.total_length == pytest.approx(5 + 3 + 2)

    def test_config_spacing(self):
        config = RouteEngineConfig(support_spacing_m={
            CableType.PVC_PVC.value: 1.0,
            CableType.PVC_SWA_PVC.value: 1.0,
            CableType.XLPE_SWA_PVC.value: 1.0,
            CableType.LSZH.value: 1.0,
        })
        route = make_route([(0, 0, 0), (10, 0, 0)])
        assert calculate_route_metrics(route, config).support_count == 11

    def test_does_not_modify_route(self):
        route = make_route([(0, 0, 0), (10, 0, 0)])
        calculate_route_metrics(route)
        assert route.metrics is None

    @pytest.mark.parametrize("bends,length,expected", [
        (0, 10, Complexity.LOW),
        (2, 50, Complexity.LOW),
        (2, 50.1, Complexity.MEDIUM),
        (3, 10, Complexity.MEDIUM),
        (6, 149, Complexity.MEDIUM),
        (7, 10, Complexity.HIGH),
        (0, 150, Complexity.HIGH),
    ])
    def test_classify_complexity(self, bends, length, expected):
        assert classify_complexity(bends, length) == expected

    def test_custom_complexity_thresholds(self):
        config = RouteEngineConfig(complexity_thresholds={
            "low_max_bends": 0, "low_max_length_m": 5,
            "high_min_bends": 3, "high_min_length_m": 20,
        })
        assert classify_complexity(1, 10, config) == Complexity.MEDIUM
        assert classify_complexity(3, 10, config) == Complexity.HIGH

    def test_validate_route(self):
        with pytest.raises(InputValidationError):
            validate_route(make_route([(0, 0, 0)]))
        with pytest.raises(InputValidationError):
            validate_route(make_route([(0, 0, 0), (1, 0, 0)], diameter=-1))
        with pytest.raises(InputValidationError):
            validate_route(make_route([(0, 0, 0), (1, 0, 0)], start_height=-0.5))


class TestUpdatePoints:

    def test_recomputes_metrics(self):
        route = make_route([(0, 0, 0), (10, 0, 0)])
        update_route_points(route, [RoutePoint(0, 0), RoutePoint(10, 0), RoutePoint(10, 10)])
        assert route.metrics.total_length == pytest.approx(20)
        assert route.metrics.bend_count == 1

    def test_invalid_points_leave_route_unchanged(self):
        route = make_route([(0, 0, 0), (10, 0, 0)])
        update_route_points(route, list(route.points))
        before_points, before_metrics = list(route.points), route.metrics

        with pytest.raises(InputValidationError):
            update_route_points(route, [RoutePoint(0, 0)])
        assert route.points == before_points
        assert route.metrics is before_metrics


def test_exact_multiple_of_spacing():
    """9 m at 0.45 m is twenty spans; float noise must not add a support."""
    route = make_route([(0, 0, 0), (9, 0, 0)])
    assert calculate_route_metrics(route).support_count == 21


def test_partial_span_rounds_up():
    route = make_route([(0, 0, 0), (9.1, 0, 0)])
    assert calculate_route_metrics(route).support_count == math.ceil(9.1 / 0.45) + 1
