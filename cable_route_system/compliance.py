"""Compliance checking of cable routes against a pluggable rule set.

A rule is a pure function of (route, electrical parameters, settings)
returning a RuleOutcome. Rules are registered with a stable rule id and
the regulation clause they implement; the rule set runs every registered
rule and returns one ComplianceCheck per rule, passes included.

Default rules (BS 7671):
- voltage-drop           525      Voltage drop over route length
- current-capacity       523      Load current vs (derated) cable rating
- bending-radius         522.8.3  Bends on complex routes vs min radius
- support-spacing        522.8.5  Average support spacing vs maximum
- route-length           525      Long routes flagged for review
- mechanical-protection  522.6    Unarmoured cable on complex routes
- earth-fault            411.4    Zs verification reminder (info)
- rcd-protection         415.1    RCD reminder (info)
- cable-identification   514      Labelling reminder (info)

New rules are added with ComplianceRuleSet.register() or the
@compliance_rule decorator; the evaluation loop never changes.
"""
import logging
import math
from collections import Counter
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

from .config import DEFAULT_CONFIG, ComplianceSettings
from .errors import ConfigurationError, InputValidationError
from .models import (
    CableRoute, ComplianceCheck, ComplianceStatus, Complexity, ElectricalParameters
)

logger = logging.getLogger(__name__)


# Regulation clauses a rule may cite
REGULATIONS: Dict[str, str] = {
    "BS 7671:411.4": "Automatic disconnection - earth fault loop impedance",
    "BS 7671:415.1": "Additional protection - RCDs",
    "BS 7671:514": "Identification and notices",
    "BS 7671:522.6": "Impact and mechanical stress",
    "BS 7671:522.8.3": "Bending radius of cables",
    "BS 7671:522.8.5": "Support of cables",
    "BS 7671:523": "Current-carrying capacity of cables",
    "BS 7671:525": "Voltage drop in consumers' installations",
}


@dataclass(frozen=True)
class RuleOutcome:
    """What a rule function returns: status plus the message to show."""
    status: ComplianceStatus
    message: str
    suggestion: Optional[str] = None


RuleFunction = Callable[[CableRoute, ElectricalParameters, ComplianceSettings], RuleOutcome]


@dataclass(frozen=True)
class ComplianceRule:
    """A registered rule: stable id, cited regulation and the check itself."""
    rule_id: str
    regulation: str
    description: str
    check: RuleFunction

    def evaluate(
        self,
        route: CableRoute,
        params: ElectricalParameters,
        settings: ComplianceSettings
    ) -> ComplianceCheck:
        outcome = self.check(route, params, settings)
        return ComplianceCheck(
            id=f"{route.id}:{self.rule_id}",
            regulation=self.regulation,
            description=self.description,
            status=outcome.status,
            message=outcome.message,
            suggestion=outcome.suggestion,
            rule_id=self.rule_id,
        )


# Populated by @compliance_rule, in definition order
DEFAULT_RULES: List[ComplianceRule] = []


def compliance_rule(rule_id: str, regulation: str, description: str):
    """Register a rule function in DEFAULT_RULES."""
    def decorator(fn: RuleFunction) -> RuleFunction:
        rule = ComplianceRule(rule_id, regulation, description, fn)
        _check_rule(rule, REGULATIONS, {r.rule_id for r in DEFAULT_RULES})
        DEFAULT_RULES.append(rule)
        return fn
    return decorator


def _check_rule(rule: ComplianceRule, regulations: Dict[str, str], existing_ids) -> None:
    if rule.regulation not in regulations:
        raise ConfigurationError(
            f"Rule '{rule.rule_id}' cites undefined regulation code '{rule.regulation}'"
        )
    if rule.rule_id in existing_ids:
        raise ConfigurationError(f"Duplicate compliance rule id '{rule.rule_id}'")
    if not callable(rule.check):
        raise ConfigurationError(f"Rule '{rule.rule_id}' check is not callable")


class ComplianceRuleSet:
    """
    An ordered, validated set of compliance rules plus their settings.

    Rules are validated when registered, so a rule citing an unknown
    regulation code is rejected before any route is evaluated.
    """

    def __init__(
        self,
        rules: Optional[Iterable[ComplianceRule]] = None,
        settings: Optional[ComplianceSettings] = None,
        regulations: Optional[Dict[str, str]] = None
    ):
        self.settings = settings or ComplianceSettings()
        self.settings.validate()
        self.regulations = dict(REGULATIONS if regulations is None else regulations)
        self._rules: List[ComplianceRule] = []
        for rule in (DEFAULT_RULES if rules is None else rules):
            self.register(rule)

    @property
    def rules(self) -> List[ComplianceRule]:
        return list(self._rules)

    @property
    def rule_ids(self) -> List[str]:
        return [r.rule_id for r in self._rules]

    def register(self, rule: ComplianceRule) -> None:
        """Add a rule. Raises ConfigurationError for unknown regulations or duplicate ids."""
        _check_rule(rule, self.regulations, set(self.rule_ids))
        self._rules.append(rule)

    def add_regulation(self, code: str, title: str) -> None:
        """Make a project-specific regulation code citable by rules."""
        self.regulations[code] = title

    def evaluate(self, route: CableRoute, params: ElectricalParameters) -> List[ComplianceCheck]:
        """
        Run every rule against the route.

        Raises:
            InputValidationError: route has no metrics or parameters are invalid
        """
        if route.metrics is None:
            raise InputValidationError(f"Route '{route.id}' has no metrics; convert or recalculate it first")
        validate_parameters(params)

        checks = [rule.evaluate(route, params, self.settings) for rule in self._rules]
        logger.debug(f"Route {route.id}: evaluated {len(checks)} compliance rules")
        return checks


def validate_parameters(params: ElectricalParameters) -> None:
    if params.voltage <= 0:
        raise InputValidationError(f"voltage must be > 0 V, got {params.voltage}")
    if params.cable_rating <= 0:
        raise InputValidationError(f"cable_rating must be > 0 A, got {params.cable_rating}")
    if params.load_current < 0:
        raise InputValidationError(f"load_current must be >= 0 A, got {params.load_current}")


def build_rule_set(settings: Optional[ComplianceSettings] = None) -> ComplianceRuleSet:
    """
    Build the default rule set, restricted to settings.enabled_rules if given.

    Raises:
        ConfigurationError: enabled_rules names an unknown rule id
    """
    settings = settings or DEFAULT_CONFIG.compliance
    if settings.enabled_rules is None:
        return ComplianceRuleSet(settings=settings)

    by_id = {r.rule_id: r for r in DEFAULT_RULES}
    unknown = [rule_id for rule_id in settings.enabled_rules if rule_id not in by_id]
    if unknown:
        raise ConfigurationError(f"Unknown compliance rule id(s): {', '.join(unknown)}")
    return ComplianceRuleSet([by_id[rule_id] for rule_id in settings.enabled_rules], settings)


def check_compliance(
    route: CableRoute,
    params: ElectricalParameters,
    rule_set: Optional[ComplianceRuleSet] = None
) -> List[ComplianceCheck]:
    """Evaluate a route with the given rule set (default BS 7671 set if None)."""
    return (rule_set or build_rule_set()).evaluate(route, params)


def summarize_checks(checks: Iterable[ComplianceCheck]) -> Dict[str, int]:
    """Count checks per status."""
    counts = Counter(c.status for c in checks)
    return {status.value: counts.get(status, 0) for status in ComplianceStatus}


# =============================================================================
# DEFAULT RULES (BS 7671)
# =============================================================================

def voltage_drop_percent(length_m: float, load_current: float, voltage: float,
                         resistance_ohm_per_m: float) -> float:
    """Simple resistive voltage drop as a percentage of supply voltage."""
    return (length_m * load_current * resistance_ohm_per_m) / voltage * 100


@compliance_rule("voltage-drop", "BS 7671:525", "Voltage Drop")
def check_voltage_drop(route, params, settings):
    drop = voltage_drop_percent(
        route.metrics.total_length, params.load_current, params.voltage,
        settings.conductor_resistance_ohm_per_m
    )
    if params.voltage == settings.single_phase_voltage:
        limit = settings.single_phase_drop_limit_pct
    else:
        limit = settings.default_drop_limit_pct

    if drop > limit:
        return RuleOutcome(
            ComplianceStatus.FAIL,
            f"Voltage drop of {drop:.2f}% exceeds {limit:g}% limit",
            "Consider increasing cable size or reducing route length",
        )
    if drop > limit * settings.voltage_drop_warning_ratio:
        return RuleOutcome(
            ComplianceStatus.WARNING,
            f"Voltage drop of {drop:.2f}% is close to {limit:g}% limit",
            "Monitor voltage drop as route may be extended",
        )
    return RuleOutcome(ComplianceStatus.PASS, f"Voltage drop of {drop:.2f}% is within {limit:g}% limit")


@compliance_rule("current-capacity", "BS 7671:523", "Current Carrying Capacity")
def check_current_capacity(route, params, settings):
    factor = settings.armoured_derating_factor if params.is_armoured else settings.unarmoured_derating_factor
    rating = params.cable_rating * factor
    rating_text = f"{rating:g}A" if factor == 1 else f"{rating:g}A (derated x{factor:g})"

    if params.load_current > rating:
        return RuleOutcome(
            ComplianceStatus.FAIL,
            f"Load current {params.load_current:g}A exceeds cable rating {rating_text}",
            "Increase cable size to accommodate load current",
        )
    if params.load_current > rating * settings.current_warning_ratio:
        return RuleOutcome(
            ComplianceStatus.WARNING,
            f"Load current {params.load_current:g}A is close to cable rating {rating_text}",
            "Consider derating factors and future load increases",
        )
    return RuleOutcome(
        ComplianceStatus.PASS,
        f"Load current {params.load_current:g}A is within cable rating {rating_text}",
    )


@compliance_rule("bending-radius", "BS 7671:522.8.3", "Cable Bending Radius")
def check_bending_radius(route, params, settings):
    multiplier = (settings.bend_radius_multiplier_armoured if params.is_armoured
                  else settings.bend_radius_multiplier_unarmoured)
    min_radius = route.diameter * multiplier
    metrics = route.metrics

    if metrics.bend_count > 0 and metrics.complexity == Complexity.HIGH:
        return RuleOutcome(
            ComplianceStatus.WARNING,
            f"Route has {metrics.bend_count} bends. Minimum radius: {min_radius:g}mm",
            "Ensure all bends meet minimum radius requirements during installation",
        )
    return RuleOutcome(
        ComplianceStatus.PASS,
        f"Route design allows adequate bending radius (min {min_radius:g}mm)",
    )


@compliance_rule("support-spacing", "BS 7671:522.8.5", "Support Spacing")
def check_support_spacing(route, params, settings):
    metrics = route.metrics
    max_spacing = (settings.max_support_spacing_mm_armoured if params.is_armoured
                   else settings.max_support_spacing_mm_unarmoured)
    length_mm = metrics.total_length * 1000
    spans = max(metrics.support_count - 1, 1)
    avg_spacing = length_mm / spans

    if avg_spacing > max_spacing:
        needed = math.ceil(length_mm / max_spacing) + 1 - metrics.support_count
        return RuleOutcome(
            ComplianceStatus.FAIL,
            f"Average support spacing {avg_spacing:.0f}mm exceeds {max_spacing:g}mm maximum",
            f"Add {needed} more supports",
        )
    if avg_spacing > max_spacing * settings.support_spacing_warning_ratio:
        return RuleOutcome(
            ComplianceStatus.WARNING,
            f"Support spacing {avg_spacing:.0f}mm is close to {max_spacing:g}mm limit",
            "Verify support positions during installation",
        )
    return RuleOutcome(
        ComplianceStatus.PASS,
        f"Support spacing {avg_spacing:.0f}mm meets {max_spacing:g}mm requirement",
    )


@compliance_rule("route-length", "BS 7671:525", "Route Length")
def check_route_length(route, params, settings):
    length = route.metrics.total_length
    if length > settings.max_route_length_m:
        return RuleOutcome(
            ComplianceStatus.WARNING,
            f"Route length {length:.1f}m exceeds {settings.max_route_length_m:g}m",
            "Verify voltage drop calculations and consider intermediate distribution",
        )
    return RuleOutcome(ComplianceStatus.PASS, f"Route length {length:.1f}m is acceptable")


@compliance_rule("mechanical-protection", "BS 7671:522.6", "Mechanical Protection")
def check_mechanical_protection(route, params, settings):
    if not params.is_armoured and route.metrics.complexity == Complexity.HIGH:
        return RuleOutcome(
            ComplianceStatus.WARNING,
            "Non-armoured cable in complex installation",
            "Consider SWA cable or additional conduit protection",
        )
    if params.is_armoured:
        return RuleOutcome(ComplianceStatus.PASS, "SWA cable provides adequate protection")
    return RuleOutcome(ComplianceStatus.PASS, "Route suitable for cable type")


@compliance_rule("earth-fault", "BS 7671:411.4", "Earth Fault Loop Impedance")
def check_earth_fault(route, params, settings):
    return RuleOutcome(
        ComplianceStatus.INFO,
        "Verify Zs at installation for protective device operation",
        "Conduct earth fault loop impedance test at furthest point",
    )


@compliance_rule("rcd-protection", "BS 7671:415.1", "RCD Protection")
def check_rcd_protection(route, params, settings):
    return RuleOutcome(
        ComplianceStatus.INFO,
        "Confirm 30mA RCD protection for socket outlets",
        "Verify RCD protection meets regulation requirements",
    )


@compliance_rule("cable-identification", "BS 7671:514", "Cable Identification")
def check_cable_identification(route, params, settings):
    return RuleOutcome(
        ComplianceStatus.INFO,
        "Label cable at both ends and accessible points",
        "Use durable labels showing circuit designation and cable type",
    )
