"""Conversion of sketched 2D lines into engineering cable routes.

A sketched line is a polyline in drawing pixels. Multiplying by the sketch
scale (metres per pixel) gives plan coordinates in metres; the declared
start/end heights become the elevation of the first and last points and
are also counted as vertical drops at the terminations.

Metrics derived here:
- total_length: 3D polyline length plus both end drops
- bend_count: interior vertices left after collinear simplification
- support_count: supports at the configured spacing for the cable type
- complexity: Low / Medium / High from bends and length
- total_cost: default costing (unit multipliers) from the cost estimator
"""
import logging
import math
import uuid
from dataclasses import replace
from typing import List, Optional, Sequence

from .config import DEFAULT_CONFIG, RouteEngineConfig
from .cost_estimator import estimate_cost
from .errors import InputValidationError, RouteEngineError
from .geometry import count_bends, distance_2d, has_coincident_neighbours, polyline_length
from .models import (
    BatchConversionResult, CableRoute, Complexity, LineConversionError,
    Point2D, Point3D, RouteMetrics, RoutePoint, ScaleInfo, SupplyLine
)

logger = logging.getLogger(__name__)

# Turns shallower than this (sine of the angle) are not counted as bends
BEND_ANGLE_TOLERANCE = 1e-6


# =============================================================================
# VALIDATION AND METRICS
# =============================================================================

def validate_route(route: CableRoute) -> None:
    """
    Check the structural invariants of a route.

    Raises:
        InputValidationError: fewer than 2 points, non-positive diameter,
            negative end heights, or coincident consecutive points
    """
    if len(route.points) < 2:
        raise InputValidationError(f"Route '{route.id}' needs at least 2 points, has {len(route.points)}")
    if route.diameter is None or route.diameter <= 0:
        raise InputValidationError(f"Route '{route.id}' diameter must be > 0 mm, got {route.diameter}")
    if route.start_height < 0 or route.end_height < 0:
        raise InputValidationError(f"Route '{route.id}' start/end heights must be >= 0")
    if has_coincident_neighbours(route.points):
        raise InputValidationError(f"Route '{route.id}' has coincident consecutive points")


def classify_complexity(
    bend_count: int,
    total_length: float,
    config: Optional[RouteEngineConfig] = None
) -> Complexity:
    """
    Bucket a route into Low / Medium / High.

    High if either bends or length reach the High thresholds; Low only if
    both stay within the Low thresholds; Medium otherwise.
    """
    t = (config or DEFAULT_CONFIG).complexity_thresholds

    if bend_count >= t["high_min_bends"] or total_length >= t["high_min_length_m"]:
        return Complexity.HIGH
    if bend_count <= t["low_max_bends"] and total_length <= t["low_max_length_m"]:
        return Complexity.LOW
    return Complexity.MEDIUM


def calculate_route_metrics(
    route: CableRoute,
    config: Optional[RouteEngineConfig] = None
) -> RouteMetrics:
    """
    Derive RouteMetrics from a route's geometry and cable type.

    Args:
        route: Route to measure (not modified)
        config: Engine configuration (defaults to DEFAULT_CONFIG)

    Returns:
        New RouteMetrics
    """
    config = config or DEFAULT_CONFIG
    validate_route(route)

    total_length = polyline_length(route.points) + route.start_height + route.end_height
    bend_count = count_bends(route.points, BEND_ANGLE_TOLERANCE)
    spacing = config.support_spacing_for(route.cable_type)
    # One support at each end plus one per spacing interval
    support_count = math.ceil(round(total_length / spacing, 9)) + 1

    metrics = RouteMetrics(
        total_length=total_length,
        total_cost=0.0,
        support_count=support_count,
        bend_count=bend_count,
        complexity=classify_complexity(bend_count, total_length, config),
    )
    total_cost = estimate_cost(route, config=config, metrics=metrics).total_cost
    return replace(metrics, total_cost=total_cost)


def recalculate_metrics(route: CableRoute, config: Optional[RouteEngineConfig] = None) -> RouteMetrics:
    """Recompute and store route.metrics."""
    route.metrics = calculate_route_metrics(route, config)
    return route.metrics


def update_route_points(
    route: CableRoute,
    points: Sequence[RoutePoint],
    config: Optional[RouteEngineConfig] = None
) -> CableRoute:
    """
    Replace a route's points and recompute its metrics.

    The route is left unchanged if the new points are invalid.
    """
    previous = route.points
    route.points = list(points)
    try:
        recalculate_metrics(route, config)
    except InputValidationError:
        route.points = previous
        raise
    return route


# =============================================================================
# CONVERSION
# =============================================================================

def _elevations(plan_points: List[Point2D], start_height: float, end_height: float) -> List[float]:
    """Interpolate elevation along the plan length from start to end height."""
    if start_height == end_height:
        return [start_height] * len(plan_points)

    cumulative = [0.0]
    for i in range(1, len(plan_points)):
        cumulative.append(cumulative[-1] + distance_2d(plan_points[i - 1], plan_points[i]))

    total = cumulative[-1]
    if total == 0:
        return [start_height] * (len(plan_points) - 1) + [end_height]
    return [start_height + (end_height - start_height) * (c / total) for c in cumulative]


def convert_supply_line_to_cable_route(
    line: SupplyLine,
    scale_info: ScaleInfo,
    config: Optional[RouteEngineConfig] = None
) -> CableRoute:
    """
    Convert one sketched line into a CableRoute with metrics.

    Args:
        line: Sketched polyline (pixels) with cable metadata
        scale_info: Sketch calibration, ratio in metres per pixel
        config: Engine configuration

    Returns:
        New CableRoute

    Raises:
        InputValidationError: bad scale, fewer than 2 points, bad diameter
            or coincident consecutive points after scaling
    """
    if scale_info is None or not scale_info.ratio or scale_info.ratio <= 0:
        raise InputValidationError("scale_info.ratio must be > 0 metres per pixel")
    if not line.points or len(line.points) < 2:
        raise InputValidationError(f"Line needs at least 2 points, has {len(line.points or [])}")

    ratio = scale_info.ratio
    route_id = line.id or f"route-{uuid.uuid4().hex[:8]}"

    plan = [Point2D(p.x * ratio, p.y * ratio) for p in line.points]
    elevations = _elevations(plan, line.start_height, line.end_height)

    points = []
    for i, (p, z) in enumerate(zip(plan, elevations)):
        label = None
        if i == 0:
            label = line.from_location
        elif i == len(plan) - 1:
            label = line.to_location
        points.append(RoutePoint(p.x, p.y, z, id=f"{route_id}-p{i}", label=label))

    if line.name:
        name = line.name
    elif line.from_location and line.to_location:
        name = f"{line.from_location} to {line.to_location}"
    else:
        name = f"Cable Route {route_id}"

    route = CableRoute(
        id=route_id,
        name=name,
        points=points,
        cable_type=line.cable_type,
        diameter=line.diameter,
        start_height=line.start_height,
        end_height=line.end_height,
        from_location=line.from_location,
        to_location=line.to_location,
        termination_count=line.termination_count,
    )
    recalculate_metrics(route, config)

    logger.debug(
        f"Converted line {route_id}: {route.metrics.total_length:.2f} m, "
        f"{route.metrics.bend_count} bends, {route.metrics.complexity.value}"
    )
    return route


def convert_supply_lines_to_cable_routes(
    lines: Sequence[SupplyLine],
    scale_info: ScaleInfo,
    config: Optional[RouteEngineConfig] = None
) -> BatchConversionResult:
    """
    Convert each line independently, collecting per-line failures.

    A failed line never stops the others; check result.errors or call
    result.raise_for_errors().
    """
    result = BatchConversionResult()

    for index, line in enumerate(lines):
        try:
            result.routes.append(convert_supply_line_to_cable_route(line, scale_info, config))
        except (RouteEngineError, ValueError) as e:
            logger.warning(f"Line {index} ({line.id or 'unnamed'}) failed to convert: {e}")
            result.errors.append(LineConversionError(
                line_index=index,
                line_id=line.id,
                message=str(e),
            ))

    logger.info(f"Converted {len(result.routes)}/{len(lines)} lines to cable routes")
    return result


def supply_line_from_path(path: Sequence[Point3D], **metadata) -> SupplyLine:
    """Wrap a pathfinder polyline as a SupplyLine so it goes through conversion."""
    return SupplyLine(points=[Point2D(p.x, p.y) for p in path], **metadata)
