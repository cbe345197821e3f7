"""Serialise engine results for reports and export.

Supports multiple output formats:
- JSON: clash reports, full evaluation reports, saved versions
- CSV: material takeoff, spreadsheet-compatible
- Text: human-readable route summary
"""
import csv
import json
from dataclasses import asdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from .clash_detector import summarize_clashes
from .models import (
    BIMObject, CableRoute, Clash, CommissioningChecklist, ComplianceCheck, CostEstimate, Point3D,
    RouteEvaluationReport, RouteMetrics, RouteVersion
)


# =============================================================================
# DICT SERIALISERS
# =============================================================================

def point_to_dict(point: Point3D) -> Dict:
    data = {"x": point.x, "y": point.y, "z": point.z}
    # RoutePoint carries an id and optional label
    if getattr(point, "id", None):
        data["id"] = point.id
    if getattr(point, "label", None):
        data["label"] = point.label
    return data


def metrics_to_dict(metrics: Optional[RouteMetrics]) -> Optional[Dict]:
    if metrics is None:
        return None
    return {
        "total_length": metrics.total_length,
        "total_cost": metrics.total_cost,
        "support_count": metrics.support_count,
        "bend_count": metrics.bend_count,
        "complexity": metrics.complexity.value,
    }


def route_to_dict(route: CableRoute) -> Dict:
    return {
        "id": route.id,
        "name": route.name,
        "cable_type": route.cable_type.value,
        "diameter": route.diameter,
        "from": route.from_location,
        "to": route.to_location,
        "start_height": route.start_height,
        "end_height": route.end_height,
        "termination_count": route.termination_count,
        "timestamp": route.timestamp.isoformat(),
        "points": [point_to_dict(p) for p in route.points],
        "metrics": metrics_to_dict(route.metrics),
    }


def bim_object_to_dict(obj: BIMObject) -> Dict:
    return {
        "id": obj.id,
        "name": obj.name,
        "type": obj.type.value,
        "discipline": obj.discipline.value,
        "position": point_to_dict(obj.position),
        "dimensions": asdict(obj.dimensions),
        "rotation": obj.rotation,
        "visible": obj.visible,
    }


def clash_to_dict(clash: Clash) -> Dict:
    return {
        "id": clash.id,
        "object_id": clash.object_id,
        "object_name": clash.object_name,
        "severity": clash.severity.value,
        "penetration_depth_mm": round(clash.penetration_depth, 1),
        "segment_index": clash.segment_index,
        "position": point_to_dict(clash.position),
        "description": clash.description,
    }


def compliance_check_to_dict(check: ComplianceCheck) -> Dict:
    return {
        "id": check.id,
        "rule_id": check.rule_id,
        "regulation": check.regulation,
        "description": check.description,
        "status": check.status.value,
        "message": check.message,
        "suggestion": check.suggestion,
    }


def cost_estimate_to_dict(estimate: CostEstimate) -> Dict:
    breakdown = asdict(estimate.breakdown)
    breakdown["total"] = estimate.breakdown.total
    return {
        "route_id": estimate.route_id,
        "template_id": estimate.template_id,
        "total_cost": estimate.total_cost,
        "breakdown": breakdown,
        "materials": [
            {**asdict(m), "line_total": m.line_total} for m in estimate.materials
        ],
    }


def version_to_dict(version: RouteVersion) -> Dict:
    return {
        "id": version.id,
        "route_id": version.route_id,
        "version_number": version.version_number,
        "timestamp": version.timestamp.isoformat(),
        "name": version.name,
        "description": version.description,
        "points": [point_to_dict(p) for p in version.points],
        "cable_type": version.cable_type.value,
        "diameter": version.diameter,
        "metrics": metrics_to_dict(version.metrics),
        "change_type": version.change_type.value,
    }


def report_to_dict(report: RouteEvaluationReport) -> Dict:
    return {
        "route_id": report.route_id,
        "clash_summary": dict(report.clash_summary),
        "compliance_summary": dict(report.compliance_summary),
        "clashes": [clash_to_dict(c) for c in report.clashes],
        "compliance": [compliance_check_to_dict(c) for c in report.compliance],
        "cost": cost_estimate_to_dict(report.cost) if report.cost else None,
    }


def checklist_to_dict(checklist: CommissioningChecklist) -> Dict:
    return {
        "project_name": checklist.project_name,
        "location": checklist.location,
        "inspector": checklist.inspector,
        "date": checklist.date,
        "signed_off": checklist.signed_off,
        "sign_off_name": checklist.sign_off_name,
        "sign_off_date": checklist.sign_off_date,
        "items": [
            {
                "id": item.id,
                "category": item.category,
                "regulation": item.regulation,
                "description": item.description,
                "status": item.status.value,
                "test_value": item.test_value,
                "notes": item.notes,
            }
            for item in checklist.items
        ],
    }


# =============================================================================
# FILE EXPORT
# =============================================================================

def export_clash_report(
    clashes: List[Clash],
    objects: Iterable[BIMObject],
    output_path: str,
    route_id: Optional[str] = None
) -> Dict:
    """
    Write a JSON clash report: summary counts, clashes and the objects tested.

    Returns:
        The report as written
    """
    data = {
        "generated": datetime.now().isoformat(),
        "route_id": route_id,
        "summary": summarize_clashes(clashes),
        "clashes": [clash_to_dict(c) for c in clashes],
        "objects": [bim_object_to_dict(o) for o in objects],
    }

    with open(output_path, 'w') as f:
        json.dump(data, f, indent=2)
    return data


def export_materials_to_csv(estimates: Iterable[CostEstimate], output_path: str) -> None:
    """Export the material takeoff of one or more routes to CSV."""
    with open(output_path, 'w', newline='') as csvfile:
        writer = csv.writer(csvfile)
        writer.writerow(['Route', 'Part #', 'Item', 'Quantity', 'Unit', 'Unit Price', 'Total', 'Supplier'])

        for estimate in estimates:
            for m in estimate.materials:
                writer.writerow([
                    estimate.route_id, m.part_number, m.description, m.quantity, m.unit,
                    f"{m.unit_price:.2f}", f"{m.line_total:.2f}", m.supplier,
                ])


def export_to_json(
    reports: Iterable[RouteEvaluationReport],
    output_path: str,
    routes: Optional[Iterable[CableRoute]] = None,
    metadata: Optional[Dict] = None
) -> None:
    """Export evaluation reports (and optionally the routes) to a JSON file."""
    reports = list(reports)
    data = {
        "generated": datetime.now().isoformat(),
        "summary": {
            "routes": len(reports),
            "clashes": sum(r.clash_summary.get("total", 0) for r in reports),
            "compliance_failures": sum(r.compliance_summary.get("fail", 0) for r in reports),
            "total_cost": sum(r.cost.total_cost for r in reports if r.cost),
        },
        "reports": [report_to_dict(r) for r in reports],
    }
    if routes is not None:
        data["routes"] = [route_to_dict(r) for r in routes]
    if metadata:
        data["metadata"] = metadata

    with open(output_path, 'w') as f:
        json.dump(data, f, indent=2)


def export_checklist_to_json(checklist: CommissioningChecklist, output_path: str) -> Dict:
    """Write a commissioning checklist, with its pass/fail counts, to JSON."""
    data = checklist_to_dict(checklist)
    data["summary"] = checklist.stats

    with open(output_path, 'w') as f:
        json.dump(data, f, indent=2)
    return data


def generate_route_report_text(route: CableRoute, report: RouteEvaluationReport) -> str:
    """
    Generate a formatted text summary of one route's evaluation.

    Args:
        route: The evaluated route
        report: Its clash, compliance and cost results

    Returns:
        Formatted string
    """
    lines = []
    lines.append("=" * 70)
    lines.append(f"CABLE ROUTE: {route.name} ({route.id})")
    lines.append(f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    lines.append("=" * 70)

    m = route.metrics
    if m:
        lines.append(f"  {'Cable:':<20} {route.cable_type.value}, {route.diameter:g}mm")
        lines.append(f"  {'Length:':<20} {m.total_length:,.2f} m")
        lines.append(f"  {'Bends:':<20} {m.bend_count}")
        lines.append(f"  {'Supports:':<20} {m.support_count}")
        lines.append(f"  {'Complexity:':<20} {m.complexity.value}")

    lines.append("\nCLASHES")
    lines.append("-" * 50)
    if not report.clashes:
        lines.append("  None")
    for c in report.clashes:
        lines.append(f"  [{c.severity.value.upper():<8}] {c.object_name:<30} {c.penetration_depth:>8.0f}mm")

    lines.append("\nCOMPLIANCE")
    lines.append("-" * 50)
    for check in report.compliance:
        lines.append(f"  [{check.status.value.upper():<7}] {check.regulation:<18} {check.message}")

    if report.cost:
        lines.append("\nMATERIALS")
        lines.append("-" * 50)
        lines.append(f"{'Part #':<12} {'Description':<35} {'Qty':>8}")
        for mat in report.cost.materials:
            lines.append(f"{mat.part_number:<12} {mat.description:<35} {mat.quantity:>8,}")
        b = report.cost.breakdown
        lines.append("-" * 50)
        lines.append(f"{'Material:':<48} {b.material:>12,.2f}")
        lines.append(f"{'Installation:':<48} {b.installation:>12,.2f}")
        lines.append(f"{'Labour:':<48} {b.labor:>12,.2f}")
        lines.append(f"{'Supports:':<48} {b.supports:>12,.2f}")
        lines.append(f"{'TOTAL:':<48} {b.total:>12,.2f}")

    return "\n".join(lines)
