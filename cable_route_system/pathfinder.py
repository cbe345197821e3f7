"""Grid-based A* auto-routing on a single floor plane.

The plane is discretised into gridSize cells. Diagonal moves are allowed
but penalised, so the router prefers orthogonal runs that suit trunking
and tray. When no obstacle-free path exists, the direct two-point line is
returned and the caller treats any obstacle it crosses as a clash.
"""
import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set, Tuple

from .errors import InputValidationError
from .geometry import simplify_collinear
from .models import Obstacle, Point3D

logger = logging.getLogger(__name__)

DEFAULT_GRID_SIZE = 50.0
DIAGONAL_PENALTY = 1.4

# (dx, dy, is_diagonal) in grid steps
DIRECTIONS = (
    (0, 1, False),   # N
    (1, 0, False),   # E
    (0, -1, False),  # S
    (-1, 0, False),  # W
    (1, 1, True),    # NE
    (1, -1, True),   # SE
    (-1, -1, True),  # SW
    (-1, 1, True),   # NW
)


@dataclass
class _Node:
    ix: int
    iy: int
    g: float
    h: float
    f: float
    parent: Optional['_Node'] = None


class GridPathfinder:
    """
    A* search over an implicit 8-connected grid with rectangular obstacles.

    Each call to find_path builds its own open and closed sets, so one
    instance can be shared between callers.
    """

    def __init__(
        self,
        width: float,
        height: float,
        obstacles: Optional[Sequence[Obstacle]] = None,
        grid_size: float = DEFAULT_GRID_SIZE,
        diagonal_penalty: float = DIAGONAL_PENALTY
    ):
        """
        Args:
            width: Width of the routable plane (plane x runs 0..width)
            height: Height of the routable plane (plane y runs 0..height)
            obstacles: Axis-aligned no-route rectangles
            grid_size: Cell size, same units as width/height
            diagonal_penalty: Multiplier on the Euclidean cost of diagonal moves
        """
        if width <= 0 or height <= 0:
            raise InputValidationError(f"Plane bounds must be positive, got {width}x{height}")
        if grid_size <= 0:
            raise InputValidationError(f"grid_size must be positive, got {grid_size}")

        self.width = width
        self.height = height
        self.obstacles = list(obstacles or [])
        self.grid_size = grid_size
        self.diagonal_penalty = diagonal_penalty

    def snap(self, point: Point3D) -> Tuple[float, float]:
        """Snap a point to the nearest grid coordinate on the x/y plane."""
        return (
            round(point.x / self.grid_size) * self.grid_size,
            round(point.y / self.grid_size) * self.grid_size,
        )

    def is_valid(self, x: float, y: float) -> bool:
        """Inside the plane and not inside (or on the edge of) any obstacle."""
        if x < 0 or x > self.width or y < 0 or y > self.height:
            return False
        return not any(obs.contains(x, y) for obs in self.obstacles)

    def find_path(self, start: Point3D, end: Point3D) -> List[Point3D]:
        """
        Find a short, mostly orthogonal path from start to end.

        Args:
            start: Start point (z is ignored)
            end: End point (z is ignored)

        Returns:
            Simplified polyline of grid points with z = 0, or [start, end]
            if no obstacle-free path exists
        """
        return self.find_path_with_status(start, end)[0]

    def find_path_with_status(self, start: Point3D, end: Point3D) -> Tuple[List[Point3D], bool]:
        """Like find_path, also reporting whether the direct-line fallback was used."""
        path = self.search(start, end)
        if path is None:
            logger.warning(
                f"No obstacle-free path from ({start.x}, {start.y}) to ({end.x}, {end.y}); "
                f"returning direct line"
            )
            return [start, end], True
        return simplify_collinear(path), False

    def search(self, start: Point3D, end: Point3D) -> Optional[List[Point3D]]:
        """
        Run A* and return the unsimplified grid path, or None if unroutable.

        Raises:
            InputValidationError: start or end lies outside the plane
        """
        for label, point in (("start", start), ("end", end)):
            if not (0 <= point.x <= self.width and 0 <= point.y <= self.height):
                raise InputValidationError(
                    f"{label} ({point.x}, {point.y}) is outside the {self.width}x{self.height} plane"
                )

        # Nodes are keyed by integer grid index so float steps never drift
        sx, sy = round(start.x / self.grid_size), round(start.y / self.grid_size)
        ex, ey = round(end.x / self.grid_size), round(end.y / self.grid_size)

        h0 = self._heuristic(sx, sy, ex, ey)
        open_list: List[_Node] = [_Node(sx, sy, 0.0, h0, h0)]
        open_by_key: Dict[Tuple[int, int], _Node] = {(sx, sy): open_list[0]}
        closed: Set[Tuple[int, int]] = set()

        while open_list:
            # Stable sort keeps insertion order among equal f, so results are deterministic
            open_list.sort(key=lambda n: n.f)
            current = open_list.pop(0)
            key = (current.ix, current.iy)
            del open_by_key[key]

            if key == (ex, ey):
                logger.debug(f"A* reached goal after expanding {len(closed)} nodes")
                return self._reconstruct(current)

            closed.add(key)

            for dx, dy, diagonal in DIRECTIONS:
                nkey = (current.ix + dx, current.iy + dy)
                if nkey in closed:
                    continue
                if not self.is_valid(nkey[0] * self.grid_size, nkey[1] * self.grid_size):
                    continue

                step = self.grid_size * math.hypot(dx, dy)
                if diagonal:
                    step *= self.diagonal_penalty
                tentative_g = current.g + step

                neighbour = open_by_key.get(nkey)
                if neighbour is None:
                    h = self._heuristic(nkey[0], nkey[1], ex, ey)
                    neighbour = _Node(nkey[0], nkey[1], tentative_g, h, tentative_g + h, current)
                    open_list.append(neighbour)
                    open_by_key[nkey] = neighbour
                elif tentative_g < neighbour.g:
                    neighbour.g = tentative_g
                    neighbour.f = tentative_g + neighbour.h
                    neighbour.parent = current

        logger.debug(f"A* exhausted open set after expanding {len(closed)} nodes")
        return None

    def _heuristic(self, ix: int, iy: int, ex: int, ey: int) -> float:
        """Straight-line distance to the goal."""
        return self.grid_size * math.hypot(ex - ix, ey - iy)

    def _reconstruct(self, node: _Node) -> List[Point3D]:
        path = []
        while node is not None:
            path.append(Point3D(node.ix * self.grid_size, node.iy * self.grid_size, 0.0))
            node = node.parent
        path.reverse()
        return path


def find_path(
    start: Point3D,
    end: Point3D,
    width: float,
    height: float,
    obstacles: Optional[Sequence[Obstacle]] = None,
    grid_size: float = DEFAULT_GRID_SIZE
) -> List[Point3D]:
    """Convenience wrapper: build a GridPathfinder and run one search."""
    return GridPathfinder(width, height, obstacles, grid_size).find_path(start, end)


def obstacles_from_bim_objects(objects, scale: float = 1.0, clearance: float = 0.0) -> List[Obstacle]:
    """
    Project BIM object footprints onto the routing plane as obstacles.

    Rotated objects use the axis-aligned bounding box of their footprint.

    Args:
        objects: BIMObjects (position is the box centre, metres)
        scale: Plane units per metre
        clearance: Extra margin around each footprint, in plane units
    """
    obstacles = []
    for obj in objects:
        if not obj.visible:
            continue
        half_w = obj.dimensions.width / 2
        half_d = obj.dimensions.depth / 2
        if obj.rotation:
            theta = math.radians(obj.rotation)
            ct, st = abs(math.cos(theta)), abs(math.sin(theta))
            half_w, half_d = half_w * ct + half_d * st, half_w * st + half_d * ct
        obstacles.append(Obstacle(
            x=(obj.position.x - half_w) * scale - clearance,
            y=(obj.position.y - half_d) * scale - clearance,
            width=2 * half_w * scale + 2 * clearance,
            height=2 * half_d * scale + 2 * clearance,
        ))
    return obstacles
