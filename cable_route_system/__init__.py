# Cable Route System
# Electrical cable route design and evaluation engine

"""
Cable Route System - Route Design, Clash and Compliance Engine

This package turns sketched or auto-routed cable runs into engineering
cable routes and evaluates them against the building model.

Architecture:
- geometry: Distances, polyline length and collinear simplification
- pathfinder: Grid A* auto-routing with direct-line fallback
- route_converter: Sketch-to-route conversion and route metrics
- clash_detector: Route envelope vs BIM object clash detection
- compliance: Pluggable BS 7671 rule set
- cost_estimator: Material takeoff and cost breakdown per template
- version_store: Append-only route history with revert
- commissioning: BS 7671 test and commissioning checklist
- output_generator: JSON / CSV / text export
- config: Engine configuration (YAML / JSON) and cost templates

Usage:
    from cable_route_system import RouteDesignSystem, run_full_pipeline

    # Full pipeline from sketched lines
    system = run_full_pipeline(lines, scale_info, objects, output_dir="output/")

    # Manual control
    system = RouteDesignSystem()
    result = system.auto_route(Point3D(0, 0), Point3D(200, 0), 500, 500)
    report = system.evaluate_route(result.route.id, objects)
    system.version_history(result.route.id)
"""

from .models import (
    CableType,
    Complexity,
    BIMObjectType,
    Discipline,
    ClashSeverity,
    ComplianceStatus,
    ChangeType,
    Point2D,
    Point3D,
    RoutePoint,
    Obstacle,
    RouteMetrics,
    CableRoute,
    ScaleInfo,
    SupplyLine,
    LineConversionError,
    BatchConversionResult,
    Dimensions,
    BIMObject,
    Clash,
    ElectricalParameters,
    ComplianceCheck,
    Material,
    CostTemplate,
    CostBreakdown,
    CostEstimate,
    RouteVersion,
    AutoRouteResult,
    RouteEvaluationReport,
    InspectionStatus,
    CommissioningItem,
    CommissioningChecklist,
)

from .errors import (
    RouteEngineError,
    InputValidationError,
    ConfigurationError,
    PersistenceError,
    PartialConversionError,
    VersionNotFoundError,
)

from .config import (
    ComplianceSettings,
    RouteEngineConfig,
    DEFAULT_CONFIG,
    load_cost_templates,
)

from .main import (
    RouteDesignSystem,
    run_full_pipeline,
)

from .geometry import (
    distance,
    polyline_length,
    simplify_collinear,
    count_bends,
)

from .pathfinder import (
    GridPathfinder,
    find_path,
    obstacles_from_bim_objects,
)

from .route_converter import (
    calculate_route_metrics,
    recalculate_metrics,
    update_route_points,
    convert_supply_line_to_cable_route,
    convert_supply_lines_to_cable_routes,
)

from .clash_detector import (
    detect_clashes,
    summarize_clashes,
)

from .compliance import (
    ComplianceRule,
    ComplianceRuleSet,
    RuleOutcome,
    build_rule_set,
    check_compliance,
    summarize_checks,
)

from .cost_estimator import (
    DEFAULT_TEMPLATE,
    estimate_cost,
    compare_templates,
)

from .version_store import (
    RouteVersionRepository,
    InMemoryRouteVersionRepository,
    JsonFileRouteVersionRepository,
    RouteVersionStore,
)

from .commissioning import (
    DEFAULT_TEST_ITEMS,
    new_checklist,
    record_result,
    sign_off,
    load_checklist,
)

from .output_generator import (
    export_clash_report,
    export_materials_to_csv,
    export_to_json,
    export_checklist_to_json,
    generate_route_report_text,
)

from .logging_config import setup_logging

__version__ = "1.0.0"
__all__ = [
    # Main
    "RouteDesignSystem",
    "run_full_pipeline",
    # Models
    "CableType",
    "Complexity",
    "BIMObjectType",
    "Discipline",
    "ClashSeverity",
    "ComplianceStatus",
    "ChangeType",
    "Point2D",
    "Point3D",
    "RoutePoint",
    "Obstacle",
    "RouteMetrics",
    "CableRoute",
    "ScaleInfo",
    "SupplyLine",
    "LineConversionError",
    "BatchConversionResult",
    "Dimensions",
    "BIMObject",
    "Clash",
    "ElectricalParameters",
    "ComplianceCheck",
    "Material",
    "CostTemplate",
    "CostBreakdown",
    "CostEstimate",
    "RouteVersion",
    "AutoRouteResult",
    "RouteEvaluationReport",
    "InspectionStatus",
    "CommissioningItem",
    "CommissioningChecklist",
    # Errors
    "RouteEngineError",
    "InputValidationError",
    "ConfigurationError",
    "PersistenceError",
    "PartialConversionError",
    "VersionNotFoundError",
    # Config
    "ComplianceSettings",
    "RouteEngineConfig",
    "DEFAULT_CONFIG",
    "load_cost_templates",
    # Geometry
    "distance",
    "polyline_length",
    "simplify_collinear",
    "count_bends",
    # Pathfinding
    "GridPathfinder",
    "find_path",
    "obstacles_from_bim_objects",
    # Conversion
    "calculate_route_metrics",
    "recalculate_metrics",
    "update_route_points",
    "convert_supply_line_to_cable_route",
    "convert_supply_lines_to_cable_routes",
    # Clashes
    "detect_clashes",
    "summarize_clashes",
    # Compliance
    "ComplianceRule",
    "ComplianceRuleSet",
    "RuleOutcome",
    "build_rule_set",
    "check_compliance",
    "summarize_checks",
    # Costing
    "DEFAULT_TEMPLATE",
    "estimate_cost",
    "compare_templates",
    # Versioning
    "RouteVersionRepository",
    "InMemoryRouteVersionRepository",
    "JsonFileRouteVersionRepository",
    "RouteVersionStore",
    # Commissioning
    "DEFAULT_TEST_ITEMS",
    "new_checklist",
    "record_result",
    "sign_off",
    "load_checklist",
    # Output
    "export_clash_report",
    "export_materials_to_csv",
    "export_to_json",
    "export_checklist_to_json",
    "generate_route_report_text",
    "setup_logging",
]
