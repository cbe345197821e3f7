"""Append-only version history for cable routes.

The store decides what a version contains (a deep snapshot of the route)
and how versions are ordered; durable storage is delegated to an injected
RouteVersionRepository. Repository failures propagate unchanged: nothing
is retried and no version is reported as saved unless save() returned.

Concurrent create_version() calls for the same route are serialised by a
per-route lock so timestamps and version numbers stay monotonic.
"""
import json
import logging
import os
import tempfile
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .errors import InputValidationError, PersistenceError, VersionNotFoundError
from .models import (
    CableRoute, CableType, ChangeType, Complexity, RouteMetrics, RoutePoint, RouteVersion
)
from .output_generator import version_to_dict

logger = logging.getLogger(__name__)


# =============================================================================
# REPOSITORIES
# =============================================================================

class RouteVersionRepository(ABC):
    """Durable storage for route versions."""

    @abstractmethod
    def save(self, version: RouteVersion) -> None:
        """Persist one version atomically."""

    @abstractmethod
    def list(self, route_id: str) -> List[RouteVersion]:
        """All versions of a route, in the order they were saved."""

    @abstractmethod
    def delete(self, version_id: str) -> None:
        """Remove one version. Raises VersionNotFoundError if unknown."""

    def high_water_mark(self, route_id: str) -> int:
        """
        Highest version number ever saved for a route, deleted ones included.

        Repositories that do not track it return 0; numbering then falls
        back to the surviving versions and the store's own record.
        """
        return 0


class InMemoryRouteVersionRepository(RouteVersionRepository):
    """Process-local repository, mainly for tests and short sessions."""

    def __init__(self):
        self._versions: Dict[str, List[RouteVersion]] = {}
        self._issued: Dict[str, int] = {}
        self._lock = threading.Lock()

    def save(self, version: RouteVersion) -> None:
        with self._lock:
            self._versions.setdefault(version.route_id, []).append(version)
            self._issued[version.route_id] = max(
                self._issued.get(version.route_id, 0), version.version_number
            )

    def list(self, route_id: str) -> List[RouteVersion]:
        with self._lock:
            return list(self._versions.get(route_id, []))

    def delete(self, version_id: str) -> None:
        with self._lock:
            for versions in self._versions.values():
                for i, version in enumerate(versions):
                    if version.id == version_id:
                        del versions[i]
                        return
        raise VersionNotFoundError(f"Version '{version_id}' not found")

    def high_water_mark(self, route_id: str) -> int:
        with self._lock:
            return self._issued.get(route_id, 0)


def version_from_dict(data: Dict) -> RouteVersion:
    """Rebuild a RouteVersion from version_to_dict() output."""
    metrics = data.get("metrics")
    return RouteVersion(
        id=data["id"],
        route_id=data["route_id"],
        version_number=data["version_number"],
        timestamp=datetime.fromisoformat(data["timestamp"]),
        name=data.get("name", ""),
        description=data.get("description", ""),
        points=tuple(
            RoutePoint(p["x"], p["y"], p.get("z", 0.0), id=p.get("id", ""), label=p.get("label"))
            for p in data["points"]
        ),
        cable_type=CableType(data["cable_type"]),
        diameter=data["diameter"],
        metrics=RouteMetrics(
            total_length=metrics["total_length"],
            total_cost=metrics["total_cost"],
            support_count=metrics["support_count"],
            bend_count=metrics["bend_count"],
            complexity=Complexity(metrics["complexity"]),
        ) if metrics else None,
        change_type=ChangeType(data["change_type"]),
    )


class JsonFileRouteVersionRepository(RouteVersionRepository):
    """
    Stores every version in a single JSON file.

    The file is rewritten through a temporary file and os.replace so a
    failed write never leaves a truncated history behind. Any I/O or
    decode failure is raised as PersistenceError. Alongside the versions
    the file keeps the highest number issued per route, so numbers stay
    unique across processes even after the newest version is deleted.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> Dict:
        if not self.path.exists():
            return {"versions": [], "issued": {}}
        try:
            with open(self.path, 'r') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Could not read version file {self.path}: {e}") from e
        data.setdefault("versions", [])
        data.setdefault("issued", {})
        return data

    def _write(self, data: Dict) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
            with os.fdopen(fd, 'w') as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise PersistenceError(f"Could not write version file {self.path}: {e}") from e

    def save(self, version: RouteVersion) -> None:
        with self._lock:
            data = self._read()
            data["versions"].append(version_to_dict(version))
            issued = data["issued"]
            issued[version.route_id] = max(issued.get(version.route_id, 0), version.version_number)
            self._write(data)

    def list(self, route_id: str) -> List[RouteVersion]:
        with self._lock:
            records = self._read()["versions"]
        try:
            return [version_from_dict(r) for r in records if r.get("route_id") == route_id]
        except (KeyError, ValueError) as e:
            raise PersistenceError(f"Malformed version record in {self.path}: {e}") from e

    def delete(self, version_id: str) -> None:
        with self._lock:
            data = self._read()
            remaining = [r for r in data["versions"] if r.get("id") != version_id]
            if len(remaining) == len(data["versions"]):
                raise VersionNotFoundError(f"Version '{version_id}' not found")
            data["versions"] = remaining
            self._write(data)

    def high_water_mark(self, route_id: str) -> int:
        with self._lock:
            issued = self._read()["issued"]
        try:
            return int(issued.get(route_id, 0))
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Malformed issued counter in {self.path}: {e}") from e


# =============================================================================
# STORE
# =============================================================================

class RouteVersionStore:
    """
    Creates, lists, reverts and deletes route versions.

    Args:
        repository: Storage backend (in-memory if None)
        clock: Source of version timestamps
    """

    def __init__(
        self,
        repository: Optional[RouteVersionRepository] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.repository = repository or InMemoryRouteVersionRepository()
        self._clock = clock
        self._route_locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        # Highest number this store has issued per route; repositories with a
        # high_water_mark carry the same guarantee across store instances
        self._issued: Dict[str, int] = {}

    def _lock_for(self, route_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._route_locks.setdefault(route_id, threading.Lock())

    def create_version(
        self,
        route: CableRoute,
        change_type: ChangeType = ChangeType.MANUAL,
        description: str = ""
    ) -> RouteVersion:
        """
        Snapshot the route's current state as a new version.

        Later edits to the route never affect the returned version.
        """
        return self._record(
            route.id, route.name, route.points, route.cable_type,
            route.diameter, route.metrics, change_type, description,
        )

    def _record(
        self,
        route_id: str,
        name: str,
        points,
        cable_type: CableType,
        diameter: float,
        metrics: Optional[RouteMetrics],
        change_type: ChangeType,
        description: str
    ) -> RouteVersion:
        with self._lock_for(route_id):
            history = self.repository.list(route_id)

            last_number = max(
                [v.version_number for v in history]
                + [self._issued.get(route_id, 0), self.repository.high_water_mark(route_id)]
            )
            timestamp = self._clock()
            if history:
                latest = max(v.timestamp for v in history)
                if timestamp < latest:
                    timestamp = latest

            version = RouteVersion(
                id=f"ver-{uuid.uuid4().hex[:12]}",
                route_id=route_id,
                version_number=last_number + 1,
                timestamp=timestamp,
                name=name,
                description=description,
                points=tuple(points),
                cable_type=cable_type,
                diameter=diameter,
                metrics=metrics,
                change_type=change_type,
            )
            self.repository.save(version)
            self._issued[route_id] = version.version_number

        logger.debug(f"Saved version {version.version_number} of route {route_id} ({change_type.value})")
        return version

    def list_versions(self, route_id: str) -> List[RouteVersion]:
        """Versions of a route, newest first (ties by version number)."""
        return sorted(
            self.repository.list(route_id),
            key=lambda v: (v.timestamp, v.version_number),
            reverse=True,
        )

    def get_version(self, route_id: str, version_id: str) -> RouteVersion:
        for version in self.repository.list(route_id):
            if version.id == version_id:
                return version
        raise VersionNotFoundError(f"Version '{version_id}' not found for route '{route_id}'")

    def revert(self, route: CableRoute, version_id: str) -> RouteVersion:
        """
        Restore a saved version onto the live route and record the revert.

        The revert is saved as a new MANUAL version first; points, cable
        type, diameter and metrics are copied onto the route only once
        that save has succeeded, so a failed save leaves the route as it was.

        Returns:
            The version recording the revert
        """
        target = self.get_version(route.id, version_id)
        if len(target.points) < 2:
            raise InputValidationError(f"Version '{version_id}' has fewer than 2 points")

        recorded = self._record(
            route.id, route.name, target.points, target.cable_type,
            target.diameter, target.metrics, ChangeType.MANUAL,
            f"Reverted to version {target.version_number}",
        )

        route.points = list(target.points)
        route.cable_type = target.cable_type
        route.diameter = target.diameter
        route.metrics = target.metrics

        logger.info(f"Route {route.id} reverted to version {target.version_number}")
        return recorded

    def delete(self, version_id: str) -> None:
        """Remove a version from history. The live route is not touched."""
        self.repository.delete(version_id)
        logger.debug(f"Deleted version {version_id}")
