"""Clash detection between cable routes and BIM objects.

Each route segment is swept into an envelope of radius
(diameter / 2 + clash tolerance). Every BIM object is treated as a box
centred on its position and rotated about the vertical axis. The segment
is transformed into the box's local frame and clipped against the box
grown by the envelope radius (slab method). A non-empty clip is a clash:

- position: centre of the clipped part of the segment, in world coordinates
- penetration depth: at that point, the smallest distance the envelope
  would have to move along a box axis to clear the box
- severity: from the penetration depth using the configured bands for
  the object's type or discipline

One clash is reported per (segment, object) pair, so an object crossed by
several segments appears several times. Detection has no side effects.
"""
import logging
from collections import Counter
from typing import Dict, Iterable, List, Optional, Tuple

from .config import DEFAULT_CONFIG, RouteEngineConfig
from .errors import InputValidationError
from .geometry import rotate_about_z
from .models import BIMObject, CableRoute, Clash, ClashSeverity, Discipline, Point3D

logger = logging.getLogger(__name__)

_EPSILON = 1e-12


def classify_severity(
    penetration_mm: float,
    obj: BIMObject,
    config: Optional[RouteEngineConfig] = None
) -> ClashSeverity:
    """Map a penetration depth to a severity using the object's bands."""
    bands = (config or DEFAULT_CONFIG).severity_bands_for(obj.discipline.value, obj.type.value)
    if penetration_mm > bands["critical_mm"]:
        return ClashSeverity.CRITICAL
    if penetration_mm > bands["warning_mm"]:
        return ClashSeverity.WARNING
    return ClashSeverity.MINOR


def _to_local(point: Point3D, obj: BIMObject) -> Tuple[float, float, float]:
    """World point to the object's frame (origin at box centre, axes along box)."""
    x, y = rotate_about_z(point.x - obj.position.x, point.y - obj.position.y, -obj.rotation)
    return x, y, point.z - obj.position.z


def _to_world(local: Tuple[float, float, float], obj: BIMObject) -> Point3D:
    x, y = rotate_about_z(local[0], local[1], obj.rotation)
    return Point3D(x + obj.position.x, y + obj.position.y, local[2] + obj.position.z)


def _clip_segment(
    p0: Tuple[float, float, float],
    p1: Tuple[float, float, float],
    half_extents: Tuple[float, float, float]
) -> Optional[Tuple[float, float]]:
    """
    Clip segment p0-p1 against the box [-h, h] on each axis.

    Returns:
        (t_enter, t_exit) with 0 <= t_enter <= t_exit <= 1, or None if the
        segment misses the box. Touching the boundary counts as a hit.
    """
    t_enter, t_exit = 0.0, 1.0
    for axis in range(3):
        start = p0[axis]
        delta = p1[axis] - start
        h = half_extents[axis]

        if abs(delta) < _EPSILON:
            if start < -h or start > h:
                return None
            continue

        t0 = (-h - start) / delta
        t1 = (h - start) / delta
        if t0 > t1:
            t0, t1 = t1, t0
        t_enter = max(t_enter, t0)
        t_exit = min(t_exit, t1)
        if t_enter > t_exit:
            return None

    return t_enter, t_exit


def _penetration(local_point: Tuple[float, float, float], radius: float,
                 box_half: Tuple[float, float, float]) -> float:
    """
    Minimum separating distance for an envelope of `radius` centred at local_point.

    Along each box axis the envelope spans [c - r, c + r]; the overlap with
    [-h, h] that must be cleared is min(c + r + h, h - c + r). The axis of
    least overlap gives the penetration depth.
    """
    depths = []
    for axis in range(3):
        c = local_point[axis]
        h = box_half[axis]
        depths.append(min(c + radius + h, h - c + radius))
    return max(min(depths), 0.0)


def detect_segment_clash(
    start: Point3D,
    end: Point3D,
    radius_m: float,
    obj: BIMObject
) -> Optional[Tuple[Point3D, float]]:
    """
    Test one segment's envelope against one object.

    Args:
        start: Segment start (metres)
        end: Segment end (metres)
        radius_m: Envelope radius (cable radius + tolerance) in metres
        obj: Object to test

    Returns:
        (clash position, penetration depth in metres), or None
    """
    box_half = (obj.dimensions.width / 2, obj.dimensions.depth / 2, obj.dimensions.height / 2)
    grown = tuple(h + radius_m for h in box_half)

    p0 = _to_local(start, obj)
    p1 = _to_local(end, obj)
    clipped = _clip_segment(p0, p1, grown)
    if clipped is None:
        return None

    t_mid = (clipped[0] + clipped[1]) / 2
    mid = tuple(p0[i] + (p1[i] - p0[i]) * t_mid for i in range(3))

    depth = _penetration(mid, radius_m, box_half)
    if depth <= 0:
        return None
    return _to_world(mid, obj), depth


def detect_clashes(
    route: CableRoute,
    objects: Iterable[BIMObject],
    config: Optional[RouteEngineConfig] = None,
    disciplines: Optional[Iterable[Discipline]] = None,
    tolerance_mm: Optional[float] = None
) -> List[Clash]:
    """
    Report every overlap between a route's envelope and the given objects.

    Args:
        route: Route with points in metres and diameter in mm
        objects: BIM objects to test; objects with visible=False are skipped
        config: Engine configuration (severity bands, default tolerance)
        disciplines: Only test objects of these disciplines (all if None)
        tolerance_mm: Clearance around the cable, overriding the config

    Returns:
        Clashes ordered by segment, then by object order in `objects`

    Raises:
        InputValidationError: route has fewer than 2 points or bad diameter
    """
    config = config or DEFAULT_CONFIG
    if len(route.points) < 2:
        raise InputValidationError(f"Route '{route.id}' needs at least 2 points for clash detection")
    if route.diameter <= 0:
        raise InputValidationError(f"Route '{route.id}' diameter must be > 0 mm")

    tolerance = config.clash_tolerance_mm if tolerance_mm is None else tolerance_mm
    if tolerance < 0:
        raise InputValidationError("Clash tolerance must be >= 0 mm")
    radius_m = (route.diameter / 2 + tolerance) / 1000

    wanted = set(disciplines) if disciplines is not None else None
    candidates = [
        obj for obj in objects
        if obj.visible and (wanted is None or obj.discipline in wanted)
    ]

    clashes = []
    for i in range(len(route.points) - 1):
        p1 = route.points[i]
        p2 = route.points[i + 1]

        for obj in candidates:
            hit = detect_segment_clash(p1, p2, radius_m, obj)
            if hit is None:
                continue

            position, depth_m = hit
            depth_mm = depth_m * 1000
            clashes.append(Clash(
                id=f"clash-{obj.id}-{i}",
                position=position,
                severity=classify_severity(depth_mm, obj, config),
                penetration_depth=depth_mm,
                object_id=obj.id,
                object_name=obj.name,
                description=(
                    f"Cable segment {i + 1} intersects {obj.type.value} '{obj.name}' "
                    f"({obj.discipline.value}) by {depth_mm:.0f}mm"
                ),
                segment_index=i,
            ))

    logger.debug(f"Route {route.id}: {len(clashes)} clashes against {len(candidates)} objects")
    return clashes


def summarize_clashes(clashes: Iterable[Clash]) -> Dict[str, int]:
    """Count clashes per severity (all severities present, zero if none)."""
    counts = Counter(c.severity for c in clashes)
    summary = {severity.value: counts.get(severity, 0) for severity in ClashSeverity}
    summary["total"] = sum(counts.values())
    return summary
