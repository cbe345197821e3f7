#!/usr/bin/env python3
"""
Cable Route System - Demo Script

Runs the engine on a small sample floor: two sketched sub-main routes, one
auto-routed final circuit, clash detection against a handful of BIM
objects, BS 7671 checks, costing, version history and a commissioning
checklist.

Usage:
    python run_demo.py [--output DIR] [--config engine.yaml] [--templates templates.yaml] [--debug]
"""
import sys
from pathlib import Path

# Add the project directory to path
PROJECT_DIR = Path(__file__).parent
sys.path.insert(0, str(PROJECT_DIR))

from cable_route_system import (
    BIMObject, BIMObjectType, CableType, ChangeType, DEFAULT_CONFIG, Dimensions,
    Discipline, InspectionStatus, Point2D, Point3D, RouteDesignSystem, RouteEngineConfig, RoutePoint,
    ScaleInfo, SupplyLine, generate_route_report_text, load_cost_templates,
    export_checklist_to_json, new_checklist, obstacles_from_bim_objects, record_result, setup_logging
)
from cable_route_system.logging_config import get_logger

logger = get_logger("run_demo")


def sample_objects():
    """A column grid, a downstand beam and a ventilation duct at high level."""
    return [
        BIMObject("col-A1", "Column A1", BIMObjectType.COLUMN, Discipline.STRUCTURAL,
                  Point3D(6.0, 4.0, 1.5), Dimensions(width=0.4, height=3.0, depth=0.4)),
        BIMObject("col-A2", "Column A2", BIMObjectType.COLUMN, Discipline.STRUCTURAL,
                  Point3D(12.0, 4.0, 1.5), Dimensions(width=0.4, height=3.0, depth=0.4)),
        BIMObject("beam-B1", "Beam B1", BIMObjectType.BEAM, Discipline.STRUCTURAL,
                  Point3D(9.0, 4.0, 2.8), Dimensions(width=6.0, height=0.4, depth=0.3)),
        BIMObject("duct-M1", "Supply Duct M1", BIMObjectType.DUCT, Discipline.MECHANICAL,
                  Point3D(14.0, 7.0, 2.5), Dimensions(width=0.6, height=0.4, depth=8.0)),
        BIMObject("wall-W1", "Partition W1", BIMObjectType.WALL, Discipline.ARCHITECTURAL,
                  Point3D(3.0, 9.0, 1.5), Dimensions(width=0.1, height=3.0, depth=4.0),
                  visible=False),
    ]


def sample_lines():
    """Sub-mains sketched on a 1:50 drawing (100 px = 5 m)."""
    return [
        SupplyLine(
            points=[Point2D(20, 20), Point2D(300, 20), Point2D(300, 160)],
            id="SM-01", from_location="MDB", to_location="DB-L1",
            cable_type=CableType.PVC_SWA_PVC, diameter=28.0,
            start_height=2.0, end_height=1.2,
        ),
        SupplyLine(
            points=[Point2D(20, 30), Point2D(20, 200), Point2D(340, 200)],
            id="SM-02", from_location="MDB", to_location="DB-L2",
            cable_type=CableType.XLPE_SWA_PVC, diameter=32.0,
            start_height=2.0, end_height=1.2,
        ),
        # Degenerate sketch, reported as a per-line failure
        SupplyLine(points=[Point2D(50, 50)], id="SM-03"),
    ]


def run_demo(output_dir=None, config_path=None, templates_path=None):
    config = RouteEngineConfig.from_yaml(config_path) if config_path else DEFAULT_CONFIG
    templates = load_cost_templates(templates_path) if templates_path else {}
    logger.debug(f"Config '{config.name}', {len(templates)} extra cost templates")

    print("=" * 70)
    print("CABLE ROUTE SYSTEM - DEMO")
    print("=" * 70)

    system = RouteDesignSystem(config, cost_templates=templates)
    objects = sample_objects()
    scale = ScaleInfo.from_calibration(pixel_distance=100, real_distance=5.0)

    result = system.convert_lines(sample_lines(), scale)
    for error in result.errors:
        print(f"  Line {error.line_index} ({error.line_id}) skipped: {error.message}")

    auto = system.auto_route(
        Point3D(1.0, 1.0), Point3D(18.0, 10.0), width=20.0, height=12.0,
        obstacles=obstacles_from_bim_objects(objects, clearance=0.2),
        grid_size=0.5,
        id="FC-01", name="Final circuit to plant room",
        cable_type=CableType.LSZH, diameter=12.0,
        start_height=2.4, end_height=2.4,
    )
    print(f"  Auto-route {auto.route.id}: {len(auto.path)} points"
          f"{' (direct-line fallback)' if auto.used_fallback else ''}")

    for report in system.evaluate_all(objects):
        print()
        print(generate_route_report_text(system.routes[report.route_id], report))

    # Edit, then revert, to show the version history
    route = system.routes["SM-01"]
    original = system.version_history(route.id)[-1]
    detour = [route.points[0], RoutePoint(15.0, 1.0, 2.0), RoutePoint(15.0, 8.0, 1.2)]
    system.edit_route(route.id, detour, "Shortened along grid line 1")
    system.save_version(route.id, ChangeType.OPTIMIZATION, "Reviewed")
    system.revert_to_version(route.id, original.id)

    print(f"\nVersion history for {route.id}:")
    for v in system.version_history(route.id):
        print(f"  v{v.version_number:<3} {v.timestamp:%H:%M:%S.%f}  {v.change_type.value:<12} {v.description}")

    # Commissioning: visual inspection done, an RCD time out of limit
    checklist = new_checklist(project_name="Sample Floor", location="DB-1", inspector="Site Engineer")
    for item in checklist.items:
        if item.category == "Visual Inspection":
            record_result(checklist, item.id, InspectionStatus.PASS)
    record_result(checklist, "rcd-1", InspectionStatus.FAIL, test_value="41 ms", notes="Limit 40 ms")
    stats = checklist.stats
    print(f"\nCommissioning: {stats['completed']}/{len(checklist.items)} tested, "
          f"{stats['passed']} passed, {stats['failed']} failed")

    if output_dir:
        paths = system.export_results(output_dir, objects)
        paths["checklist"] = str(Path(output_dir) / "commissioning_checklist.json")
        export_checklist_to_json(checklist, paths["checklist"])
        print(f"\nOutput saved to: {output_dir}")
        for kind, path in paths.items():
            print(f"  {kind:<8} {path}")

    print("\n" + "=" * 70)
    print("DEMO COMPLETE")
    print("=" * 70)
    return system


def main():
    """Main entry point."""
    args = sys.argv[1:]

    def option(name):
        if name in args:
            i = args.index(name)
            if i + 1 < len(args):
                return args[i + 1]
            print(f"Error: {name} needs a value")
            sys.exit(1)
        return None

    setup_logging("DEBUG" if "--debug" in args else "WARNING")
    run_demo(
        output_dir=option("--output"),
        config_path=option("--config"),
        templates_path=option("--templates"),
    )


if __name__ == "__main__":
    main()
