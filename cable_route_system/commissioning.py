"""BS 7671 test and commissioning checklist for installed cable routes.

Categories of checks, in the order they are carried out:
1. Visual inspection (641.1)
2. Continuity of protective conductors (612.2)
3. Insulation resistance (612.3)
4. Polarity (612.6)
5. Earth fault loop impedance (612.9)
6. RCD operation (612.10)
7. Functional testing (612.13)

A checklist is plain data: results are recorded against item ids and the
whole record can be saved to and loaded from JSON.
"""
import json
import logging
from datetime import date
from typing import Dict, Iterable, List, Optional

from .errors import ConfigurationError, InputValidationError, PersistenceError
from .models import CommissioningChecklist, CommissioningItem, InspectionStatus

logger = logging.getLogger(__name__)


TEST_REGULATIONS: Dict[str, str] = {
    "BS 7671:641.1": "Initial verification - inspection",
    "BS 7671:612.2": "Continuity of conductors",
    "BS 7671:612.3": "Insulation resistance",
    "BS 7671:612.6": "Polarity",
    "BS 7671:612.9": "Earth fault loop impedance",
    "BS 7671:612.10": "Additional protection - RCD",
    "BS 7671:612.13": "Functional testing",
}

# (id, category, regulation, description)
DEFAULT_TEST_ITEMS = (
    ("vi-1", "Visual Inspection", "BS 7671:641.1", "Connection of conductors"),
    ("vi-2", "Visual Inspection", "BS 7671:641.1", "Identification of conductors"),
    ("vi-3", "Visual Inspection", "BS 7671:641.1", "Cable routing and support"),
    ("vi-4", "Visual Inspection", "BS 7671:641.1", "Cable bending radius"),
    ("vi-5", "Visual Inspection", "BS 7671:641.1", "Cable terminations"),
    ("vi-6", "Visual Inspection", "BS 7671:641.1", "Warning labels"),
    ("ct-1", "Continuity Testing", "BS 7671:612.2", "Protective conductor continuity"),
    ("ct-2", "Continuity Testing", "BS 7671:612.2", "Ring final circuit continuity"),
    ("ir-1", "Insulation Resistance", "BS 7671:612.3", "Phase to Earth (500V DC)"),
    ("ir-2", "Insulation Resistance", "BS 7671:612.3", "Phase to Phase (500V DC)"),
    ("pt-1", "Polarity Testing", "BS 7671:612.6", "Correct polarity at distribution board"),
    ("pt-2", "Polarity Testing", "BS 7671:612.6", "Socket outlet polarity"),
    ("ef-1", "Earth Fault", "BS 7671:612.9", "Zs at origin"),
    ("ef-2", "Earth Fault", "BS 7671:612.9", "Zs at furthest point"),
    ("rcd-1", "RCD Testing", "BS 7671:612.10", "Operating time at 1x IΔn"),
    ("rcd-2", "RCD Testing", "BS 7671:612.10", "Operating time at 5x IΔn"),
    ("rcd-3", "RCD Testing", "BS 7671:612.10", "Non-trip test at 0.5x IΔn"),
    ("ft-1", "Functional Testing", "BS 7671:612.13", "Switchgear operation"),
    ("ft-2", "Functional Testing", "BS 7671:612.13", "Protective devices operation"),
)


# =============================================================================
# BUILDING
# =============================================================================

def default_test_items() -> List[CommissioningItem]:
    """Fresh, all-pending copies of the standard test items."""
    return [CommissioningItem(*row) for row in DEFAULT_TEST_ITEMS]


def new_checklist(
    items: Optional[Iterable[CommissioningItem]] = None,
    project_name: str = "",
    location: str = "",
    inspector: str = "",
    on: Optional[date] = None
) -> CommissioningChecklist:
    """
    Start a commissioning checklist.

    Args:
        items: Test items (the standard BS 7671 set if None)
        project_name: Project the installation belongs to
        location: Site or distribution board location
        inspector: Person carrying out the tests
        on: Inspection date (today if None)

    Returns:
        CommissioningChecklist with every item pending

    Raises:
        ConfigurationError: duplicate item ids or an unknown regulation code
    """
    items = default_test_items() if items is None else list(items)

    seen = set()
    for item in items:
        if item.id in seen:
            raise ConfigurationError(f"Duplicate test item id '{item.id}'")
        if item.regulation not in TEST_REGULATIONS:
            raise ConfigurationError(
                f"Test item '{item.id}' references unknown regulation '{item.regulation}'"
            )
        seen.add(item.id)

    return CommissioningChecklist(
        items=items,
        project_name=project_name,
        location=location,
        inspector=inspector,
        date=(on or date.today()).isoformat(),
    )


# =============================================================================
# RECORDING
# =============================================================================

def _find_item(checklist: CommissioningChecklist, item_id: str) -> CommissioningItem:
    for item in checklist.items:
        if item.id == item_id:
            return item
    raise InputValidationError(f"No test item '{item_id}' on this checklist")


def record_result(
    checklist: CommissioningChecklist,
    item_id: str,
    status: InspectionStatus,
    test_value: Optional[str] = None,
    notes: Optional[str] = None
) -> CommissioningItem:
    """
    Record the outcome of one test item.

    A signed-off checklist is closed; results can no longer be changed.
    """
    if checklist.signed_off:
        raise InputValidationError("Checklist has been signed off")

    item = _find_item(checklist, item_id)
    item.status = status
    if test_value is not None:
        item.test_value = test_value
    if notes is not None:
        item.notes = notes

    logger.debug(f"Test item {item_id} recorded as {status.value}")
    return item


def items_by_category(checklist: CommissioningChecklist) -> Dict[str, List[CommissioningItem]]:
    return {
        category: [i for i in checklist.items if i.category == category]
        for category in checklist.categories
    }


def sign_off(checklist: CommissioningChecklist, name: str, on: Optional[date] = None) -> None:
    """
    Sign the checklist off.

    Every item must have a result (pass, fail or not applicable) first.
    Failed items do not block sign-off; they stay on the record.
    """
    if not name.strip():
        raise InputValidationError("Sign-off needs a name")
    pending = [i.id for i in checklist.items if i.status == InspectionStatus.PENDING]
    if pending:
        raise InputValidationError(f"Cannot sign off with pending items: {', '.join(pending)}")

    checklist.signed_off = True
    checklist.sign_off_name = name
    checklist.sign_off_date = (on or date.today()).isoformat()

    stats = checklist.stats
    if stats["failed"]:
        logger.warning(f"Checklist signed off by {name} with {stats['failed']} failed item(s)")
    else:
        logger.info(f"Checklist signed off by {name}")


# =============================================================================
# LOADING
# =============================================================================

def checklist_from_dict(data: Dict) -> CommissioningChecklist:
    """Rebuild a checklist from checklist_to_dict() output."""
    items = [
        CommissioningItem(
            id=item["id"],
            category=item["category"],
            regulation=item["regulation"],
            description=item["description"],
            status=InspectionStatus(item.get("status", "pending")),
            test_value=item.get("test_value"),
            notes=item.get("notes", ""),
        )
        for item in data["items"]
    ]
    return CommissioningChecklist(
        items=items,
        project_name=data.get("project_name", ""),
        location=data.get("location", ""),
        inspector=data.get("inspector", ""),
        date=data.get("date"),
        signed_off=data.get("signed_off", False),
        sign_off_name=data.get("sign_off_name", ""),
        sign_off_date=data.get("sign_off_date"),
    )


def load_checklist(json_path: str) -> CommissioningChecklist:
    """
    Load a checklist written by export_checklist_to_json().

    Raises:
        PersistenceError: the file cannot be read or is malformed
    """
    try:
        with open(json_path, 'r') as f:
            data = json.load(f)
        return checklist_from_dict(data)
    except (OSError, KeyError, TypeError, ValueError) as e:
        raise PersistenceError(f"Could not load checklist {json_path}: {e}") from e
