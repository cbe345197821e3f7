"""
Tests for output_generator.py - JSON / CSV / text export.
"""

import csv
import json

from cable_route_system.clash_detector import detect_clashes, summarize_clashes
from cable_route_system.compliance import check_compliance, summarize_checks
from cable_route_system.cost_estimator import estimate_cost
from cable_route_system.models import (
    BIMObject, BIMObjectType, ElectricalParameters, Dimensions, Discipline,
    Point2D, Point3D, RouteEvaluationReport, ScaleInfo, SupplyLine
)
from cable_route_system.output_generator import (
    export_clash_report,
    export_materials_to_csv,
    export_to_json,
    generate_route_report_text,
    report_to_dict,
    route_to_dict,
)
from cable_route_system.route_converter import convert_supply_line_to_cable_route


SCALE = ScaleInfo.from_calibration(pixel_distance=100, real_distance=5.0)


def make_route():
    line = SupplyLine(
        points=[Point2D(0, 0), Point2D(200, 0), Point2D(200, 100)],
        id="SM-01", from_location="MDB", to_location="DB-1",
    )
    return convert_supply_line_to_cable_route(line, SCALE)


def make_objects():
    return [
        BIMObject("duct-1", "Duct 1", BIMObjectType.DUCT, Discipline.MECHANICAL,
                  Point3D(5, 0, 0), Dimensions(width=1, height=1, depth=1)),
        BIMObject("col-1", "Column 1", BIMObjectType.COLUMN, Discipline.STRUCTURAL,
                  Point3D(20, 20, 0), Dimensions(width=0.4, height=3, depth=0.4)),
    ]


def make_report(route, objects):
    clashes = detect_clashes(route, objects)
    checks = check_compliance(route, ElectricalParameters(is_armoured=True))
    return RouteEvaluationReport(
        route_id=route.id,
        clashes=clashes,
        compliance=checks,
        cost=estimate_cost(route),
        clash_summary=summarize_clashes(clashes),
        compliance_summary=summarize_checks(checks),
    )


class TestSerialisers:

    def test_route_to_dict(self):
        data = route_to_dict(make_route())
        assert data["id"] == "SM-01"
        assert data["cable_type"] == "PVC/SWA/PVC"
        assert data["points"][0] == {"x": 0.0, "y": 0.0, "z": 0.0, "id": "SM-01-p0", "label": "MDB"}
        assert data["metrics"]["complexity"] == "Low"
        json.dumps(data)

    def test_report_to_dict_is_json_safe(self):
        route = make_route()
        data = report_to_dict(make_report(route, make_objects()))
        assert data["clash_summary"]["total"] == 1
        assert data["clashes"][0]["object_id"] == "duct-1"
        assert data["compliance"][0]["rule_id"] == "voltage-drop"
        assert data["cost"]["breakdown"]["total"] == data["cost"]["total_cost"]
        json.dumps(data)


class TestExport:

    def test_clash_report(self, tmp_path):
        route = make_route()
        objects = make_objects()
        path = tmp_path / "clashes.json"
        export_clash_report(detect_clashes(route, objects), objects, str(path), route_id=route.id)

        data = json.loads(path.read_text())
        assert data["route_id"] == "SM-01"
        assert data["summary"]["total"] == 1
        assert data["summary"]["critical"] == 1
        assert [o["id"] for o in data["objects"]] == ["duct-1", "col-1"]
        assert data["clashes"][0]["severity"] == "critical"

    def test_materials_csv(self, tmp_path):
        route = make_route()
        path = tmp_path / "materials.csv"
        export_materials_to_csv([estimate_cost(route)], str(path))

        with open(path, newline='') as f:
            rows = list(csv.reader(f))
        assert rows[0] == ['Route', 'Part #', 'Item', 'Quantity', 'Unit', 'Unit Price', 'Total', 'Supplier']
        assert [r[1] for r in rows[1:]] == ["CBL-PVC-SWA-PVC", "SUP-CLEAT", "GLD-KIT"]
        assert all(r[0] == "SM-01" for r in rows[1:])

    def test_json_report(self, tmp_path):
        route = make_route()
        report = make_report(route, make_objects())
        path = tmp_path / "report.json"
        export_to_json([report], str(path), routes=[route], metadata={"project": "Block A"})

        data = json.loads(path.read_text())
        assert data["summary"]["routes"] == 1
        assert data["summary"]["clashes"] == 1
        assert data["summary"]["total_cost"] == report.cost.total_cost
        assert data["routes"][0]["id"] == "SM-01"
        assert data["metadata"] == {"project": "Block A"}

    def test_text_report(self):
        route = make_route()
        text = generate_route_report_text(route, make_report(route, make_objects()))
        assert "CABLE ROUTE: MDB to DB-1 (SM-01)" in text
        assert "Duct 1" in text
        assert "BS 7671:525" in text
        assert "TOTAL:" in text
