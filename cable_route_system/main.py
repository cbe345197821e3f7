"""Main orchestration for the Cable Route System.

This module ties the engine components into one workflow:
1. Route input: sketched lines converted with the sketch scale, or
   auto-routed across a floor plane with A*
2. Versioning: every created, edited or reverted route is snapshotted
3. Evaluation: clash detection, BS 7671 compliance and costing
4. Output: JSON report, CSV material takeoff and text summaries
"""
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Union

from .clash_detector import detect_clashes, summarize_clashes
from .compliance import build_rule_set, summarize_checks
from .config import DEFAULT_CONFIG, RouteEngineConfig
from .cost_estimator import DEFAULT_TEMPLATE, estimate_cost
from .errors import InputValidationError
from .models import (
    AutoRouteResult, BatchConversionResult, BIMObject, CableRoute, ChangeType,
    CostTemplate, Discipline, ElectricalParameters, Obstacle, Point3D,
    RoutePoint, RouteEvaluationReport, RouteVersion, ScaleInfo, SupplyLine
)
from .output_generator import (
    export_clash_report, export_materials_to_csv, export_to_json, generate_route_report_text
)
from .pathfinder import DEFAULT_GRID_SIZE, GridPathfinder
from .route_converter import (
    convert_supply_line_to_cable_route, convert_supply_lines_to_cable_routes,
    supply_line_from_path, update_route_points
)
from .version_store import RouteVersionRepository, RouteVersionStore

logger = logging.getLogger(__name__)

# Plane units are metres unless a sketch scale is given
UNIT_SCALE = ScaleInfo(pixel_distance=1.0, real_distance=1.0, ratio=1.0)


class RouteDesignSystem:
    """Main class for designing, evaluating and versioning cable routes."""

    def __init__(
        self,
        config: Optional[RouteEngineConfig] = None,
        repository: Optional[RouteVersionRepository] = None,
        cost_templates: Optional[Dict[str, CostTemplate]] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        """
        Initialize the system.

        Args:
            config: Engine configuration (defaults to DEFAULT_CONFIG)
            repository: Version storage backend (in-memory if None)
            cost_templates: Available pricing scenarios keyed by id
            clock: Timestamp source for versions
        """
        self.config = config or DEFAULT_CONFIG
        # Built up front so a bad rule configuration fails here, not mid-evaluation
        self.rule_set = build_rule_set(self.config.compliance)
        self.versions = RouteVersionStore(repository, clock)
        self.cost_templates: Dict[str, CostTemplate] = {DEFAULT_TEMPLATE.id: DEFAULT_TEMPLATE}
        self.cost_templates.update(cost_templates or {})
        self.routes: Dict[str, CableRoute] = {}
        self.reports: Dict[str, RouteEvaluationReport] = {}

    def get_route(self, route: Union[str, CableRoute]) -> CableRoute:
        if isinstance(route, CableRoute):
            return route
        try:
            return self.routes[route]
        except KeyError:
            raise InputValidationError(f"Unknown route '{route}'") from None

    # -------------------------------------------------------------------------
    # Route input
    # -------------------------------------------------------------------------

    def convert_lines(
        self,
        lines: Sequence[SupplyLine],
        scale_info: ScaleInfo
    ) -> BatchConversionResult:
        """Convert sketched lines to routes, saving a first version of each."""
        logger.info(f"[1/3] Converting {len(lines)} sketched lines...")
        result = convert_supply_lines_to_cable_routes(lines, scale_info, self.config)

        for route in result.routes:
            self._register(route, ChangeType.MANUAL, "Created from sketch")

        if result.errors:
            logger.warning(f"  {len(result.errors)} line(s) could not be converted")
        return result

    def auto_route(
        self,
        start: Point3D,
        end: Point3D,
        width: float,
        height: float,
        obstacles: Optional[Sequence[Obstacle]] = None,
        grid_size: float = DEFAULT_GRID_SIZE,
        scale_info: Optional[ScaleInfo] = None,
        **line_metadata
    ) -> AutoRouteResult:
        """
        Auto-route between two points on a floor plane and convert the path.

        Args:
            start: Start point in plane units
            end: End point in plane units
            width: Plane width
            height: Plane height
            obstacles: No-route rectangles in plane units
            grid_size: A* cell size in plane units
            scale_info: Plane-to-metres scale (plane units are metres if None)
            **line_metadata: SupplyLine fields (id, name, cable_type, ...)

        Returns:
            AutoRouteResult; used_fallback is True when no clear path existed
        """
        pathfinder = GridPathfinder(width, height, obstacles, grid_size)
        path, used_fallback = pathfinder.find_path_with_status(start, end)
        if len(path) < 2:
            # Start and end snapped to the same grid cell
            if (start.x, start.y) == (end.x, end.y):
                raise InputValidationError(
                    f"Cannot auto-route: start and end are the same point ({start.x}, {start.y})"
                )
            logger.debug("  Start and end share a grid cell; using the direct line")
            path = [start, end]
        if used_fallback:
            logger.warning("  Auto-route fell back to a direct line; expect clashes along it")

        line = supply_line_from_path(path, **line_metadata)
        route = convert_supply_line_to_cable_route(line, scale_info or UNIT_SCALE, self.config)
        self._register(route, ChangeType.AUTO, "Auto-routed")

        logger.info(
            f"  Auto-routed {route.id}: {route.metrics.total_length:.2f} m, "
            f"{route.metrics.bend_count} bends"
        )
        return AutoRouteResult(route=route, path=path, used_fallback=used_fallback)

    def edit_route(
        self,
        route_id: str,
        points: Sequence[RoutePoint],
        description: str = "Route edited"
    ) -> RouteVersion:
        """Replace a route's points, recompute metrics and save a version."""
        route = self.get_route(route_id)
        update_route_points(route, points, self.config)
        self.reports.pop(route.id, None)
        return self.versions.create_version(route, ChangeType.MANUAL, description)

    def _register(self, route: CableRoute, change_type: ChangeType, description: str) -> None:
        self.routes[route.id] = route
        self.versions.create_version(route, change_type, description)

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    def evaluate_route(
        self,
        route: Union[str, CableRoute],
        objects: Iterable[BIMObject] = (),
        params: Optional[ElectricalParameters] = None,
        template_id: Optional[str] = None,
        disciplines: Optional[Iterable[Discipline]] = None
    ) -> RouteEvaluationReport:
        """
        Run clash detection, compliance and costing for one route.

        Args:
            route: Route or route id
            objects: BIM objects to test for clashes
            params: Electrical parameters (armouring taken from the cable type if None)
            template_id: Cost template id (default template if None)
            disciplines: Restrict clash detection to these disciplines

        Returns:
            RouteEvaluationReport, also kept in self.reports
        """
        route = self.get_route(route)
        if params is None:
            params = ElectricalParameters(is_armoured=route.cable_type.is_armoured)
        template = self.get_template(template_id)

        clashes = detect_clashes(route, objects, self.config, disciplines)
        compliance = self.rule_set.evaluate(route, params)
        cost = estimate_cost(route, template, self.config)

        report = RouteEvaluationReport(
            route_id=route.id,
            clashes=clashes,
            compliance=compliance,
            cost=cost,
            clash_summary=summarize_clashes(clashes),
            compliance_summary=summarize_checks(compliance),
        )
        self.reports[route.id] = report

        logger.info(
            f"  {route.id}: {report.clash_summary['total']} clashes, "
            f"{report.compliance_summary['fail']} compliance failures, "
            f"cost {cost.total_cost:,.2f}"
        )
        return report

    def evaluate_all(
        self,
        objects: Iterable[BIMObject] = (),
        params: Optional[ElectricalParameters] = None,
        template_id: Optional[str] = None
    ) -> List[RouteEvaluationReport]:
        logger.info(f"[2/3] Evaluating {len(self.routes)} routes...")
        objects = list(objects)
        return [self.evaluate_route(r, objects, params, template_id) for r in self.routes.values()]

    def get_template(self, template_id: Optional[str] = None) -> CostTemplate:
        if template_id is None:
            return DEFAULT_TEMPLATE
        try:
            return self.cost_templates[template_id]
        except KeyError:
            raise InputValidationError(f"Unknown cost template '{template_id}'") from None

    # -------------------------------------------------------------------------
    # Versioning
    # -------------------------------------------------------------------------

    def save_version(
        self,
        route_id: str,
        change_type: ChangeType = ChangeType.MANUAL,
        description: str = ""
    ) -> RouteVersion:
        return self.versions.create_version(self.get_route(route_id), change_type, description)

    def revert_to_version(self, route_id: str, version_id: str) -> RouteVersion:
        """Restore a version onto the live route; the revert is itself versioned."""
        route = self.get_route(route_id)
        version = self.versions.revert(route, version_id)
        self.reports.pop(route.id, None)
        return version

    def delete_version(self, version_id: str) -> None:
        self.versions.delete(version_id)

    def version_history(self, route_id: str) -> List[RouteVersion]:
        """Versions of a route, newest first."""
        return self.versions.list_versions(route_id)

    # -------------------------------------------------------------------------
    # Output
    # -------------------------------------------------------------------------

    def export_results(self, output_dir: str, objects: Iterable[BIMObject] = ()) -> Dict[str, str]:
        """
        Write the evaluation results to output_dir.

        Returns:
            Mapping of output kind to file path
        """
        logger.info(f"[3/3] Exporting results to {output_dir}...")
        os.makedirs(output_dir, exist_ok=True)
        out = Path(output_dir)
        objects = list(objects)
        reports = list(self.reports.values())

        paths = {
            "json": str(out / "route_report.json"),
            "csv": str(out / "materials.csv"),
            "clashes": str(out / "clash_report.json"),
            "text": str(out / "route_summary.txt"),
        }

        export_to_json(reports, paths["json"], routes=self.routes.values())
        export_materials_to_csv([r.cost for r in reports if r.cost], paths["csv"])
        export_clash_report(
            [c for r in reports for c in r.clashes], objects, paths["clashes"]
        )

        text = "\n\n".join(
            generate_route_report_text(self.routes[r.route_id], r) for r in reports
        )
        with open(paths["text"], 'w') as f:
            f.write(text)

        for kind, path in paths.items():
            logger.info(f"    Exported {kind} to {path}")
        return paths


def run_full_pipeline(
    lines: Sequence[SupplyLine],
    scale_info: ScaleInfo,
    objects: Iterable[BIMObject] = (),
    params: Optional[ElectricalParameters] = None,
    config: Optional[RouteEngineConfig] = None,
    template_id: Optional[str] = None,
    cost_templates: Optional[Dict[str, CostTemplate]] = None,
    output_dir: Optional[str] = None
) -> RouteDesignSystem:
    """
    Run conversion, evaluation and (optionally) export in one call.

    Args:
        lines: Sketched supply lines
        scale_info: Sketch scale
        objects: BIM objects for clash detection
        params: Electrical parameters for every route (per cable type if None)
        config: Engine configuration
        template_id: Cost template to price with
        cost_templates: Available cost templates
        output_dir: Where to write reports; nothing is written if None

    Returns:
        RouteDesignSystem instance with all results
    """
    logger.info("=" * 70)
    logger.info("CABLE ROUTE SYSTEM - FULL PIPELINE")
    logger.info("=" * 70)

    system = RouteDesignSystem(config, cost_templates=cost_templates)
    objects = list(objects)

    system.convert_lines(lines, scale_info)
    system.evaluate_all(objects, params, template_id)

    if output_dir:
        system.export_results(output_dir, objects)

    logger.info(f"Pipeline complete: {len(system.routes)} routes evaluated")
    return system
