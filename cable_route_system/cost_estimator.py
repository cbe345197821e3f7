"""Cost and material takeoff for a cable route.

Quantities come from the route metrics:
1. Cable: total length plus the wastage allowance, rounded up to whole metres
2. Supports: one cleat/saddle per support position
3. Glands: one kit per termination

Costs are split into four components, each scaled by the cost template:
- material: cable + glands, x material_multiplier
- installation: (length + bend allowance) x install rate, x installation_multiplier
- labor: labor_rate percent of the installation component
- supports: supports, x supports_multiplier

Prices and ratios come from RouteEngineConfig; the route is never modified.
"""
import logging
import math
from typing import Dict, Iterable, Optional

from .config import DEFAULT_CONFIG, RouteEngineConfig
from .errors import InputValidationError
from .models import CableRoute, CostBreakdown, CostEstimate, CostTemplate, Material, RouteMetrics

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE = CostTemplate(id="default", name="Default (unit multipliers)")


def cable_quantity(total_length: float, wastage_factor: float) -> int:
    """Metres of cable to order for a run, including wastage."""
    # Round away float noise before ceil so 110.00000000000001 stays 110
    return math.ceil(round(total_length * (1 + wastage_factor), 6))


def estimate_cost(
    route: CableRoute,
    template: Optional[CostTemplate] = None,
    config: Optional[RouteEngineConfig] = None,
    metrics: Optional[RouteMetrics] = None
) -> CostEstimate:
    """
    Price a route and list its materials.

    Args:
        route: Route to price
        template: Pricing scenario (defaults to unit multipliers, 0% labour)
        config: Engine configuration with catalogue prices
        metrics: Metrics to use instead of route.metrics

    Returns:
        CostEstimate with material lines and cost breakdown

    Raises:
        InputValidationError: the route has no metrics
    """
    config = config or DEFAULT_CONFIG
    template = template or DEFAULT_TEMPLATE
    metrics = metrics or route.metrics
    if metrics is None:
        raise InputValidationError(f"Route '{route.id}' has no metrics; convert or recalculate it first")

    entry = config.catalogue_entry(route.cable_type)
    support_item = config.support_item
    gland_item = config.gland_item

    cable_line = Material(
        description=f"{route.cable_type.value} cable, {route.diameter:g}mm OD",
        part_number=entry["part_number"],
        quantity=cable_quantity(metrics.total_length, config.cable_wastage_factor),
        unit="m",
        unit_price=entry["supply_price_per_m"] * template.material_multiplier,
        supplier=entry["supplier"],
        notes=f"Route length {metrics.total_length:.2f} m + {config.cable_wastage_factor:.0%} wastage",
    )
    gland_line = Material(
        description=gland_item["description"],
        part_number=gland_item["part_number"],
        quantity=route.termination_count,
        unit="ea",
        unit_price=gland_item["unit_price"] * template.material_multiplier,
        supplier=gland_item["supplier"],
    )
    support_line = Material(
        description=support_item["description"],
        part_number=support_item["part_number"],
        quantity=metrics.support_count,
        unit="ea",
        unit_price=support_item["unit_price"] * template.supports_multiplier,
        supplier=support_item["supplier"],
        notes=f"{config.support_spacing_for(route.cable_type):.2f} m spacing",
    )

    install_length = metrics.total_length + metrics.bend_count * config.bend_installation_allowance_m
    installation = install_length * entry["install_price_per_m"] * template.installation_multiplier

    breakdown = CostBreakdown(
        material=cable_line.line_total + gland_line.line_total,
        installation=installation,
        labor=installation * template.labor_rate / 100,
        supports=support_line.line_total,
    )

    materials = [line for line in (cable_line, support_line, gland_line) if line.quantity > 0]

    logger.debug(f"Route {route.id} priced with template '{template.id}': {breakdown.total:.2f}")
    return CostEstimate(
        route_id=route.id,
        template_id=template.id,
        materials=materials,
        breakdown=breakdown,
    )


def compare_templates(
    route: CableRoute,
    templates: Iterable[CostTemplate],
    config: Optional[RouteEngineConfig] = None
) -> Dict[str, CostEstimate]:
    """Price the same route under several templates, keyed by template id."""
    return {t.id: estimate_cost(route, t, config) for t in templates}


def aggregate_materials(estimates: Iterable[CostEstimate]) -> Dict[str, float]:
    """Total quantity per part number across several routes."""
    totals: Dict[str, float] = {}
    for estimate in estimates:
        for material in estimate.materials:
            totals[material.part_number] = totals.get(material.part_number, 0) + material.quantity
    return totals
