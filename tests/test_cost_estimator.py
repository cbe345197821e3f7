"""
Tests for cost_estimator.py - material takeoff and cost breakdown.
"""

import copy

import pytest

from cable_route_system.config import RouteEngineConfig
from cable_route_system.cost_estimator import (
    aggregate_materials,
    cable_quantity,
    compare_templates,
    estimate_cost,
)
from cable_route_system.errors import ConfigurationError, InputValidationError
from cable_route_system.models import (
    CableRoute, CableType, Complexity, CostTemplate, RouteMetrics, RoutePoint
)


def make_route(route_id="R1", length=100.0, supports=10, bends=2, terminations=2,
               cable_type=CableType.PVC_SWA_PVC):
    return CableRoute(
        id=route_id,
        name="Test route",
        points=[RoutePoint(0, 0), RoutePoint(length, 0)],
        cable_type=cable_type,
        diameter=25.0,
        termination_count=terminations,
        metrics=RouteMetrics(
            total_length=length,
            total_cost=0.0,
            support_count=supports,
            bend_count=bends,
            complexity=Complexity.MEDIUM,
        ),
    )


def material(estimate, part_number):
    return next(m for m in estimate.materials if m.part_number == part_number)


class TestQuantities:
    """Test takeoff quantities."""

    def test_cable_quantity_includes_wastage(self):
        assert cable_quantity(100, 0.10) == 110
        assert cable_quantity(100.2, 0.10) == 111
        assert cable_quantity(0, 0.10) == 0

    def test_material_lines(self):
        estimate = estimate_cost(make_route())
        assert material(estimate, "CBL-PVC-SWA-PVC").quantity == 110
        assert material(estimate, "CBL-PVC-SWA-PVC").unit == "m"
        assert material(estimate, "SUP-CLEAT").quantity == 10
        assert material(estimate, "GLD-KIT").quantity == 2

    def test_no_terminations_drops_gland_line(self):
        estimate = estimate_cost(make_route(terminations=0))
        assert "GLD-KIT" not in [m.part_number for m in estimate.materials]

    def test_catalogue_per_cable_type(self):
        estimate = estimate_cost(make_route(cable_type=CableType.LSZH))
        assert material(estimate, "CBL-LSZH").unit_price == 18.0


class TestBreakdown:
    """Test cost components and template multipliers."""

    def test_default_breakdown(self):
        b = estimate_cost(make_route()).breakdown
        assert b.material == pytest.approx(110 * 25.0 + 2 * 35.0)
        assert b.installation == pytest.approx((100 + 2 * 0.5) * 28.0)
        assert b.labor == 0
        assert b.supports == pytest.approx(10 * 4.5)

    def test_total_is_sum_of_components(self):
        estimate = estimate_cost(make_route(), CostTemplate(id="t", labor_rate=15))
        b = estimate.breakdown
        assert estimate.total_cost == pytest.approx(b.material + b.installation + b.labor + b.supports)

    def test_doubling_material_multiplier_doubles_material(self):
        route = make_route(length=100)
        base = estimate_cost(route, CostTemplate(id="base"))
        doubled = estimate_cost(route, CostTemplate(id="x2", material_multiplier=2,
                                                    installation_multiplier=1, supports_multiplier=1))

        assert doubled.breakdown.material == 2 * base.breakdown.material
        assert doubled.breakdown.installation == base.breakdown.installation
        assert doubled.breakdown.supports == base.breakdown.supports
        assert doubled.total_cost - base.total_cost == pytest.approx(base.breakdown.material)

    def test_labor_rate(self):
        estimate = estimate_cost(make_route(), CostTemplate(id="t", labor_rate=10))
        assert estimate.breakdown.labor == pytest.approx(estimate.breakdown.installation * 0.10)

    def test_supports_and_installation_multipliers(self):
        route = make_route()
        base = estimate_cost(route)
        scaled = estimate_cost(route, CostTemplate(id="t", installation_multiplier=1.5,
                                                   supports_multiplier=3))
        assert scaled.breakdown.installation == pytest.approx(base.breakdown.installation * 1.5)
        assert scaled.breakdown.supports == pytest.approx(base.breakdown.supports * 3)

    def test_custom_config_prices(self):
        config = RouteEngineConfig(cable_wastage_factor=0, bend_installation_allowance_m=0)
        b = estimate_cost(make_route(), config=config).breakdown
        assert b.installation == pytest.approx(100 * 28.0)
        assert b.material == pytest.approx(100 * 25.0 + 2 * 35.0)


class TestTemplates:

    @pytest.mark.parametrize("field", ["material_multiplier", "installation_multiplier",
                                       "supports_multiplier"])
    def test_non_positive_multiplier_rejected(self, field):
        with pytest.raises(ConfigurationError):
            CostTemplate(id="bad", **{field: 0})

    def test_negative_labor_rate_rejected(self):
        with pytest.raises(ConfigurationError):
            CostTemplate(id="bad", labor_rate=-1)

    def test_compare_templates(self):
        templates = [CostTemplate(id="standard"), CostTemplate(id="premium", material_multiplier=1.2)]
        results = compare_templates(make_route(), templates)
        assert list(results) == ["standard", "premium"]
        assert results["premium"].total_cost > results["standard"].total_cost
        assert results["premium"].template_id == "premium"


class TestPurity:

    def test_route_is_not_modified(self):
        route = make_route()
        before = copy.deepcopy(route)
        estimate_cost(route, CostTemplate(id="t", material_multiplier=3))
        assert route == before

    def test_deterministic(self):
        route = make_route()
        assert estimate_cost(route) == estimate_cost(route)

    def test_route_without_metrics(self):
        route = make_route()
        route.metrics = None
        with pytest.raises(InputValidationError):
            estimate_cost(route)


def test_aggregate_materials():
    estimates = [estimate_cost(make_route("A")), estimate_cost(make_route("B", length=50, supports=5))]
    totals = aggregate_materials(estimates)
    assert totals["CBL-PVC-SWA-PVC"] == 110 + 55
    assert totals["SUP-CLEAT"] == 15
    assert totals["GLD-KIT"] == 4
