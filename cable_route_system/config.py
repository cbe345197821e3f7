"""Engine configuration for the Cable Route System.

Every policy value that varies between projects lives here instead of in
the algorithms: complexity thresholds, clash severity bands, compliance
limits, wastage and support spacing, and the price catalogue.

RouteEngineConfig stores:
- Complexity classification thresholds (bends / length)
- Clash tolerance and severity bands, with per-discipline and
  per-object-type overrides
- Compliance rule settings (BS 7671 defaults)
- Takeoff ratios: cable wastage, support spacing per cable type
- Price catalogue per cable type plus supports and glands
"""
import json
import logging
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Optional

import yaml

from .errors import ConfigurationError
from .models import CableType, CostTemplate

logger = logging.getLogger(__name__)


@dataclass
class ComplianceSettings:
    """
    Numeric bodies of the default compliance rules.

    Defaults follow the BS 7671 checks the route checker has always run;
    projects override them from their own design basis.
    """
    # Voltage drop (BS 7671:525)
    conductor_resistance_ohm_per_m: float = 0.029
    single_phase_voltage: float = 230.0
    single_phase_drop_limit_pct: float = 3.0
    default_drop_limit_pct: float = 5.0
    voltage_drop_warning_ratio: float = 0.8

    # Current carrying capacity (BS 7671:523)
    current_warning_ratio: float = 0.9
    armoured_derating_factor: float = 1.0
    unarmoured_derating_factor: float = 1.0

    # Bending radius (BS 7671:522.8.3), multiples of overall diameter
    bend_radius_multiplier_armoured: float = 12.0
    bend_radius_multiplier_unarmoured: float = 6.0

    # Support spacing (BS 7671:522.8.5)
    max_support_spacing_mm_armoured: float = 600.0
    max_support_spacing_mm_unarmoured: float = 400.0
    support_spacing_warning_ratio: float = 0.9

    # Route length
    max_route_length_m: float = 100.0

    # Rule ids to run, in order. None runs the full default set.
    enabled_rules: Optional[List[str]] = None

    def validate(self) -> None:
        """Reject non-positive limits and ratios outside (0, 1]."""
        for f in fields(self):
            if f.name == 'enabled_rules':
                continue
            value = getattr(self, f.name)
            if not isinstance(value, (int, float)) or value <= 0:
                raise ConfigurationError(f"compliance.{f.name} must be > 0, got {value!r}")
        for name in ('voltage_drop_warning_ratio', 'current_warning_ratio',
                     'support_spacing_warning_ratio', 'armoured_derating_factor',
                     'unarmoured_derating_factor'):
            if getattr(self, name) > 1:
                raise ConfigurationError(f"compliance.{name} must be <= 1")


def _default_catalogue() -> Dict[str, Dict[str, Any]]:
    return {
        CableType.PVC_PVC.value: {
            "part_number": "CBL-PVC-PVC",
            "supplier": "Generic Cable Co",
            "supply_price_per_m": 12.0,
            "install_price_per_m": 18.0,
        },
        CableType.PVC_SWA_PVC.value: {
            "part_number": "CBL-PVC-SWA-PVC",
            "supplier": "Generic Cable Co",
            "supply_price_per_m": 25.0,
            "install_price_per_m": 28.0,
        },
        CableType.XLPE_SWA_PVC.value: {
            "part_number": "CBL-XLPE-SWA-PVC",
            "supplier": "Generic Cable Co",
            "supply_price_per_m": 38.0,
            "install_price_per_m": 35.0,
        },
        CableType.LSZH.value: {
            "part_number": "CBL-LSZH",
            "supplier": "Generic Cable Co",
            "supply_price_per_m": 18.0,
            "install_price_per_m": 22.0,
        },
    }


@dataclass
class RouteEngineConfig:
    """
    Configuration for one project's cable route engine.

    Attributes:
        name: Project name for identification
        complexity_thresholds: Bend/length limits for Low and High complexity
        clash_tolerance_mm: Clearance added around the cable envelope
        clash_severity_bands: Penetration (mm) above which a clash is
            critical / warning; anything smaller is minor
        discipline_severity_bands: Band overrides keyed by discipline name
        object_type_severity_bands: Band overrides keyed by object type,
            taking precedence over discipline overrides
        cable_wastage_factor: Allowance added to route length for cable quantity
        support_spacing_m: Support spacing per cable type
        cable_catalogue: Part number, supplier and prices per cable type
        compliance: Settings for the default compliance rules
    """

    name: str = "Unnamed Project"

    # Complexity classification
    # Low: bends <= low_max_bends AND length <= low_max_length_m
    # High: bends >= high_min_bends OR length >= high_min_length_m
    complexity_thresholds: Dict[str, float] = field(default_factory=lambda: {
        "low_max_bends": 2,
        "low_max_length_m": 50.0,
        "high_min_bends": 7,
        "high_min_length_m": 150.0,
    })

    # Clash detection
    clash_tolerance_mm: float = 50.0
    clash_severity_bands: Dict[str, float] = field(default_factory=lambda: {
        "critical_mm": 100.0,
        "warning_mm": 50.0,
    })
    discipline_severity_bands: Dict[str, Dict[str, float]] = field(default_factory=lambda: {
        "Structural": {"critical_mm": 50.0, "warning_mm": 20.0},
    })
    object_type_severity_bands: Dict[str, Dict[str, float]] = field(default_factory=dict)

    # Material takeoff
    cable_wastage_factor: float = 0.10  # 10% allowance for offcuts and terminations
    support_spacing_m: Dict[str, float] = field(default_factory=lambda: {
        CableType.PVC_PVC.value: 0.30,
        CableType.PVC_SWA_PVC.value: 0.45,
        CableType.XLPE_SWA_PVC.value: 0.45,
        CableType.LSZH.value: 0.30,
    })
    bend_installation_allowance_m: float = 0.5  # extra installed length per bend
    cable_catalogue: Dict[str, Dict[str, Any]] = field(default_factory=_default_catalogue)
    support_item: Dict[str, Any] = field(default_factory=lambda: {
        "description": "Cable cleat / saddle",
        "part_number": "SUP-CLEAT",
        "supplier": "Generic Fixings Ltd",
        "unit_price": 4.5,
    })
    gland_item: Dict[str, Any] = field(default_factory=lambda: {
        "description": "Cable gland kit",
        "part_number": "GLD-KIT",
        "supplier": "Generic Fixings Ltd",
        "unit_price": 35.0,
    })

    compliance: ComplianceSettings = field(default_factory=ComplianceSettings)

    def __post_init__(self):
        if isinstance(self.compliance, dict):
            self.compliance = ComplianceSettings(**{
                k: v for k, v in self.compliance.items()
                if k in ComplianceSettings.__dataclass_fields__
            })
        self.validate()

    def validate(self) -> None:
        """Raise ConfigurationError for values the engine cannot use."""
        t = self.complexity_thresholds
        for key in ("low_max_bends", "low_max_length_m", "high_min_bends", "high_min_length_m"):
            if key not in t:
                raise ConfigurationError(f"complexity_thresholds missing '{key}'")
        if t["low_max_bends"] >= t["high_min_bends"] or t["low_max_length_m"] >= t["high_min_length_m"]:
            raise ConfigurationError("complexity_thresholds: Low limits must be below High limits")

        if self.clash_tolerance_mm < 0:
            raise ConfigurationError("clash_tolerance_mm must be >= 0")
        _validate_band("clash_severity_bands", self.clash_severity_bands)
        for key, band in self.discipline_severity_bands.items():
            _validate_band(f"discipline_severity_bands[{key}]", band)
        for key, band in self.object_type_severity_bands.items():
            _validate_band(f"object_type_severity_bands[{key}]", band)

        if self.cable_wastage_factor < 0:
            raise ConfigurationError("cable_wastage_factor must be >= 0")
        for cable_type in CableType:
            spacing = self.support_spacing_m.get(cable_type.value)
            if spacing is None or spacing <= 0:
                raise ConfigurationError(f"support_spacing_m for {cable_type.value} must be > 0")
            entry = self.cable_catalogue.get(cable_type.value)
            if not entry:
                raise ConfigurationError(f"cable_catalogue has no entry for {cable_type.value}")
            for price in ("supply_price_per_m", "install_price_per_m"):
                if entry.get(price, 0) <= 0:
                    raise ConfigurationError(f"cable_catalogue[{cable_type.value}].{price} must be > 0")
        for item_name in ("support_item", "gland_item"):
            if getattr(self, item_name).get("unit_price", 0) <= 0:
                raise ConfigurationError(f"{item_name}.unit_price must be > 0")
        if self.bend_installation_allowance_m < 0:
            raise ConfigurationError("bend_installation_allowance_m must be >= 0")

        self.compliance.validate()

    def severity_bands_for(self, discipline: str, object_type: str) -> Dict[str, float]:
        """Bands for an object: type override, then discipline override, then default."""
        if object_type in self.object_type_severity_bands:
            return self.object_type_severity_bands[object_type]
        if discipline in self.discipline_severity_bands:
            return self.discipline_severity_bands[discipline]
        return self.clash_severity_bands

    def catalogue_entry(self, cable_type: CableType) -> Dict[str, Any]:
        return self.cable_catalogue[cable_type.value]

    def support_spacing_for(self, cable_type: CableType) -> float:
        return self.support_spacing_m[cable_type.value]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RouteEngineConfig':
        """Build from a mapping, ignoring unknown keys."""
        return cls(**{k: v for k, v in (data or {}).items() if k in cls.__dataclass_fields__})

    @classmethod
    def from_yaml(cls, yaml_path: str) -> 'RouteEngineConfig':
        """
        Load configuration from a YAML file.

        Args:
            yaml_path: Path to YAML configuration file

        Returns:
            RouteEngineConfig instance
        """
        with open(yaml_path, 'r') as f:
            data = yaml.safe_load(f)

        logger.debug(f"Loaded engine config from {yaml_path}")
        return cls.from_dict(data)

    @classmethod
    def from_json(cls, json_path: str) -> 'RouteEngineConfig':
        """
        Load configuration from a JSON file.

        Args:
            json_path: Path to JSON configuration file

        Returns:
            RouteEngineConfig instance
        """
        with open(json_path, 'r') as f:
            data = json.load(f)

        logger.debug(f"Loaded engine config from {json_path}")
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_yaml(self, yaml_path: str) -> None:
        """Save configuration to a YAML file."""
        with open(yaml_path, 'w') as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    def to_json(self, json_path: str) -> None:
        """Save configuration to a JSON file."""
        with open(json_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


def _validate_band(label: str, band: Dict[str, float]) -> None:
    critical = band.get("critical_mm")
    warning = band.get("warning_mm")
    if critical is None or warning is None:
        raise ConfigurationError(f"{label} needs critical_mm and warning_mm")
    if warning < 0 or critical < warning:
        raise ConfigurationError(f"{label}: expected 0 <= warning_mm <= critical_mm")


def load_cost_templates(yaml_path: str) -> Dict[str, CostTemplate]:
    """
    Load cost templates from a YAML file.

    The file holds a list of mappings (or a mapping with a 'templates' list)
    with id, name, labor_rate and the three multipliers. Templates are
    validated here, so a bad multiplier fails at load time.

    Args:
        yaml_path: Path to YAML file

    Returns:
        Dict of template id to CostTemplate
    """
    with open(yaml_path, 'r') as f:
        data = yaml.safe_load(f) or []

    if isinstance(data, dict):
        data = data.get("templates", [])
    if not isinstance(data, list):
        raise ConfigurationError(f"{yaml_path}: expected a list of cost templates")

    templates = {}
    for entry in data:
        if not isinstance(entry, dict) or "id" not in entry:
            raise ConfigurationError(f"{yaml_path}: every cost template needs an id")
        template = CostTemplate(**{
            k: v for k, v in entry.items() if k in CostTemplate.__dataclass_fields__
        })
        if template.id in templates:
            raise ConfigurationError(f"{yaml_path}: duplicate cost template id '{template.id}'")
        templates[template.id] = template

    logger.debug(f"Loaded {len(templates)} cost templates from {yaml_path}")
    return templates


DEFAULT_CONFIG = RouteEngineConfig(name="Default")
