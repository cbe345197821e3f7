"""Point and polyline helpers shared by the pathfinder, converter and clash detector."""
import math
from typing import List, Sequence, TypeVar

from .models import Point3D

P = TypeVar('P', bound=Point3D)


def distance(a: Point3D, b: Point3D) -> float:
    """3D Euclidean distance."""
    return math.sqrt((b.x - a.x) ** 2 + (b.y - a.y) ** 2 + (b.z - a.z) ** 2)


def distance_2d(a, b) -> float:
    """Euclidean distance on the x/y plane. Works for Point2D and Point3D."""
    return math.hypot(b.x - a.x, b.y - a.y)


def polyline_length(points: Sequence[Point3D]) -> float:
    """Sum of 3D segment lengths."""
    return sum(distance(points[i], points[i + 1]) for i in range(len(points) - 1))


def is_collinear(a: Point3D, b: Point3D, c: Point3D, tolerance: float = 0.0) -> bool:
    """
    True if b lies on the line through a and c.

    Uses the cross product of (b - a) and (c - b). With tolerance=0 this is
    the exact test (b.x-a.x)*(c.y-b.y) == (b.y-a.y)*(c.x-b.x) on each of the
    three coordinate planes.
    """
    ux, uy, uz = b.x - a.x, b.y - a.y, b.z - a.z
    vx, vy, vz = c.x - b.x, c.y - b.y, c.z - b.z

    cross = (
        uy * vz - uz * vy,
        uz * vx - ux * vz,
        ux * vy - uy * vx,
    )
    if tolerance == 0.0:
        return cross == (0, 0, 0)

    # |u x v| = |u||v| sin(angle), so tolerance bounds the sine of the turn angle
    scale = math.sqrt(ux * ux + uy * uy + uz * uz) * math.sqrt(vx * vx + vy * vy + vz * vz)
    return math.sqrt(sum(k * k for k in cross)) <= tolerance * scale


def simplify_collinear(points: Sequence[P], tolerance: float = 0.0) -> List[P]:
    """
    Drop interior points that lie on a straight line between their neighbours.

    Endpoints are always kept. Comparisons are made against the last kept
    point, so a run of collinear points collapses to its two ends, and
    running the function on its own output returns it unchanged.
    """
    if len(points) < 3:
        return list(points)

    simplified = [points[0]]
    for i in range(1, len(points) - 1):
        if not is_collinear(simplified[-1], points[i], points[i + 1], tolerance):
            simplified.append(points[i])
    simplified.append(points[-1])
    return simplified


def count_bends(points: Sequence[Point3D], tolerance: float = 0.0) -> int:
    """Interior vertices that survive collinear simplification."""
    return max(len(simplify_collinear(points, tolerance)) - 2, 0)


def has_coincident_neighbours(points: Sequence[Point3D]) -> bool:
    """True if any two consecutive points are at the same position."""
    return any(
        (points[i].x, points[i].y, points[i].z) == (points[i + 1].x, points[i + 1].y, points[i + 1].z)
        for i in range(len(points) - 1)
    )


def rotate_about_z(x: float, y: float, degrees: float) -> tuple:
    """Rotate (x, y) counter-clockwise about the origin."""
    if not degrees:
        return x, y
    theta = math.radians(degrees)
    ct, st = math.cos(theta), math.sin(theta)
    return x * ct - y * st, x * st + y * ct
