"""Data models for the Cable Route System."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from .errors import ConfigurationError, PartialConversionError


class CableType(Enum):
    """Cable construction (insulation / armour / sheath)."""
    PVC_PVC = "PVC/PVC"
    PVC_SWA_PVC = "PVC/SWA/PVC"
    XLPE_SWA_PVC = "XLPE/SWA/PVC"
    LSZH = "LSZH"

    @property
    def is_armoured(self) -> bool:
        """Steel wire armoured constructions."""
        return "SWA" in self.value


class Complexity(Enum):
    """Coarse route complexity used for costing and labour estimates."""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class BIMObjectType(Enum):
    BEAM = "beam"
    COLUMN = "column"
    WALL = "wall"
    DUCT = "duct"
    PIPE = "pipe"
    CONDUIT = "conduit"
    SLAB = "slab"
    EQUIPMENT = "equipment"


class Discipline(Enum):
    STRUCTURAL = "Structural"
    MECHANICAL = "Mechanical"
    ELECTRICAL = "Electrical"
    PLUMBING = "Plumbing"
    ARCHITECTURAL = "Architectural"


class ClashSeverity(Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    MINOR = "minor"


class ComplianceStatus(Enum):
    PASS = "pass"
    FAIL = "fail"
    WARNING = "warning"
    INFO = "info"


class ChangeType(Enum):
    """What caused a route version to be saved."""
    MANUAL = "manual"
    AUTO = "auto"
    OPTIMIZATION = "optimization"


class InspectionStatus(Enum):
    """Outcome recorded against a commissioning test item."""
    PENDING = "pending"
    PASS = "pass"
    FAIL = "fail"
    NOT_APPLICABLE = "na"


# =============================================================================
# GEOMETRY
# =============================================================================

@dataclass(frozen=True)
class Point2D:
    """Plane coordinates in sketch (pixel) space."""
    x: float
    y: float


@dataclass(frozen=True)
class Point3D:
    """Real-world coordinates in metres. z is elevation / drop height."""
    x: float
    y: float
    z: float = 0.0


@dataclass(frozen=True)
class RoutePoint(Point3D):
    """A vertex of a cable route."""
    id: str = ""
    label: Optional[str] = None


@dataclass(frozen=True)
class Obstacle:
    """Axis-aligned no-route rectangle on the pathfinding plane."""
    x: float
    y: float
    width: float
    height: float

    def contains(self, x: float, y: float) -> bool:
        """Inclusive bounds test."""
        return (self.x <= x <= self.x + self.width and
                self.y <= y <= self.y + self.height)


# =============================================================================
# ROUTES
# =============================================================================

@dataclass(frozen=True)
class RouteMetrics:
    """Derived figures for a route. Recomputed whenever its points change."""
    total_length: float  # metres, including end drops
    total_cost: float
    support_count: int
    bend_count: int
    complexity: Complexity


@dataclass
class CableRoute:
    """An engineering cable route: ordered 3D polyline plus cable data."""
    id: str
    name: str
    points: List[RoutePoint]
    cable_type: CableType
    diameter: float  # mm
    timestamp: datetime = field(default_factory=datetime.now)
    metrics: Optional[RouteMetrics] = None
    # Vertical drops at the terminations (metres), counted in total_length
    start_height: float = 0.0
    end_height: float = 0.0
    from_location: Optional[str] = None
    to_location: Optional[str] = None
    termination_count: int = 2


@dataclass(frozen=True)
class ScaleInfo:
    """Calibration of a sketch: ratio is metres per pixel."""
    pixel_distance: float
    real_distance: float
    ratio: float

    @classmethod
    def from_calibration(cls, pixel_distance: float, real_distance: float) -> 'ScaleInfo':
        """Build from a measured pixel distance and its known real length."""
        return cls(pixel_distance, real_distance, real_distance / pixel_distance)


@dataclass
class SupplyLine:
    """A sketched 2D line plus the metadata needed to turn it into a route."""
    points: List[Point2D]
    id: Optional[str] = None
    name: Optional[str] = None
    from_location: Optional[str] = None
    to_location: Optional[str] = None
    cable_type: CableType = CableType.PVC_SWA_PVC
    diameter: float = 25.0  # mm
    start_height: float = 0.0
    end_height: float = 0.0
    termination_count: int = 2


@dataclass
class LineConversionError:
    """Why one line of a batch conversion failed."""
    line_index: int
    line_id: Optional[str]
    message: str


@dataclass
class BatchConversionResult:
    """Routes converted from a batch of lines, plus per-line failures."""
    routes: List[CableRoute] = field(default_factory=list)
    errors: List[LineConversionError] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> None:
        """Raise PartialConversionError if any line failed."""
        if self.errors:
            raise PartialConversionError(self.errors)


# =============================================================================
# BIM OBJECTS AND CLASHES
# =============================================================================

@dataclass(frozen=True)
class Dimensions:
    """Box extents in metres along x (width), y (depth) and z (height)."""
    width: float
    height: float
    depth: float


@dataclass
class BIMObject:
    """A positioned building element. position is the box centre."""
    id: str
    name: str
    type: BIMObjectType
    discipline: Discipline
    position: Point3D
    dimensions: Dimensions
    rotation: float = 0.0  # degrees about the vertical axis
    visible: bool = True


@dataclass
class Clash:
    """Overlap between a route segment's envelope and a BIM object."""
    id: str
    position: Point3D
    severity: ClashSeverity
    penetration_depth: float  # mm
    object_id: str
    object_name: str
    description: str
    segment_index: int = 0


# =============================================================================
# COMPLIANCE
# =============================================================================

@dataclass(frozen=True)
class ElectricalParameters:
    """Electrical inputs to the compliance rules."""
    load_current: float = 32.0  # A
    voltage: float = 400.0  # V
    cable_rating: float = 40.0  # A
    is_armoured: bool = False


@dataclass
class ComplianceCheck:
    """Result of one rule for one route evaluation."""
    id: str
    regulation: str
    description: str
    status: ComplianceStatus
    message: str
    suggestion: Optional[str] = None
    rule_id: str = ""


# =============================================================================
# COSTING
# =============================================================================

@dataclass
class Material:
    """A takeoff line item."""
    description: str
    part_number: str
    quantity: float
    unit: str
    unit_price: float
    supplier: str
    notes: Optional[str] = None

    @property
    def line_total(self) -> float:
        return self.quantity * self.unit_price


@dataclass
class CostTemplate:
    """Named pricing scenario. Validated on construction."""
    id: str = "default"
    name: str = "Default"
    labor_rate: float = 0.0  # percent of installation cost
    material_multiplier: float = 1.0
    installation_multiplier: float = 1.0
    supports_multiplier: float = 1.0

    def __post_init__(self):
        for attr in ('material_multiplier', 'installation_multiplier', 'supports_multiplier'):
            value = getattr(self, attr)
            if not isinstance(value, (int, float)) or value <= 0:
                raise ConfigurationError(
                    f"Cost template '{self.id}': {attr} must be > 0, got {value!r}"
                )
        if not isinstance(self.labor_rate, (int, float)) or self.labor_rate < 0:
            raise ConfigurationError(
                f"Cost template '{self.id}': labor_rate must be >= 0, got {self.labor_rate!r}"
            )


@dataclass
class CostBreakdown:
    """Cost components after template multipliers."""
    material: float = 0.0
    installation: float = 0.0
    labor: float = 0.0
    supports: float = 0.0

    @property
    def total(self) -> float:
        return self.material + self.installation + self.labor + self.supports


@dataclass
class CostEstimate:
    """Output of the cost estimator for one route."""
    route_id: str
    template_id: str
    materials: List[Material] = field(default_factory=list)
    breakdown: CostBreakdown = field(default_factory=CostBreakdown)

    @property
    def total_cost(self) -> float:
        return self.breakdown.total


# =============================================================================
# VERSIONING
# =============================================================================

@dataclass(frozen=True)
class RouteVersion:
    """Immutable snapshot of a route, created on every save."""
    id: str
    route_id: str
    version_number: int
    timestamp: datetime
    name: str
    description: str
    points: tuple  # Tuple[RoutePoint, ...]
    cable_type: CableType
    diameter: float
    metrics: Optional[RouteMetrics]
    change_type: ChangeType


# =============================================================================
# REPORTS
# =============================================================================

@dataclass
class AutoRouteResult:
    """Route produced by auto-routing, flagged when the direct fallback was used."""
    route: CableRoute
    path: List[Point3D]
    used_fallback: bool = False


@dataclass
class RouteEvaluationReport:
    """Clash, compliance and cost results for one route."""
    route_id: str
    clashes: List[Clash] = field(default_factory=list)
    compliance: List[ComplianceCheck] = field(default_factory=list)
    cost: Optional[CostEstimate] = None
    clash_summary: Dict[str, int] = field(default_factory=dict)
    compliance_summary: Dict[str, int] = field(default_factory=dict)


# =============================================================================
# COMMISSIONING
# =============================================================================

@dataclass
class CommissioningItem:
    """One inspection or test on the installation checklist."""
    id: str
    category: str
    regulation: str
    description: str
    status: InspectionStatus = InspectionStatus.PENDING
    test_value: Optional[str] = None  # reading as recorded, e.g. "0.35 ohm"
    notes: str = ""


@dataclass
class CommissioningChecklist:
    """Test and commissioning record for an installation."""
    items: List[CommissioningItem]
    project_name: str = ""
    location: str = ""
    inspector: str = ""
    date: Optional[str] = None  # ISO date
    signed_off: bool = False
    sign_off_name: str = ""
    sign_off_date: Optional[str] = None

    @property
    def categories(self) -> List[str]:
        """Item categories in checklist order."""
        seen: List[str] = []
        for item in self.items:
            if item.category not in seen:
                seen.append(item.category)
        return seen

    @property
    def stats(self) -> Dict[str, int]:
        """Completed, passed, failed and not-applicable item counts."""
        statuses = [item.status for item in self.items]
        return {
            "completed": sum(1 for s in statuses if s != InspectionStatus.PENDING),
            "passed": statuses.count(InspectionStatus.PASS),
            "failed": statuses.count(InspectionStatus.FAIL),
            "na": statuses.count(InspectionStatus.NOT_APPLICABLE),
        }
