"""
Tests for commissioning.py - BS 7671 test and commissioning checklist.
"""

import json
from datetime import date

import pytest

from cable_route_system.commissioning import (
    DEFAULT_TEST_ITEMS,
    TEST_REGULATIONS,
    items_by_category,
    load_checklist,
    new_checklist,
    record_result,
    sign_off,
)
from cable_route_system.errors import ConfigurationError, InputValidationError, PersistenceError
from cable_route_system.models import CommissioningItem, InspectionStatus
from cable_route_system.output_generator import export_checklist_to_json


DAY = date(2024, 3, 1)


def completed_checklist():
    checklist = new_checklist(project_name="Block A", inspector="J. Smith", on=DAY)
    for item in checklist.items:
        record_result(checklist, item.id, InspectionStatus.PASS)
    return checklist


class TestNewChecklist:
    """Test the standard item set and validation."""

    def test_standard_items(self):
        checklist = new_checklist(project_name="Block A", on=DAY)

        assert len(checklist.items) == len(DEFAULT_TEST_ITEMS) == 19
        assert all(i.status == InspectionStatus.PENDING for i in checklist.items)
        assert all(i.regulation in TEST_REGULATIONS for i in checklist.items)
        assert checklist.date == "2024-03-01"
        assert checklist.categories == [
            "Visual Inspection", "Continuity Testing", "Insulation Resistance",
            "Polarity Testing", "Earth Fault", "RCD Testing", "Functional Testing",
        ]

    def test_checklists_do_not_share_items(self):
        first = new_checklist(on=DAY)
        second = new_checklist(on=DAY)
        record_result(first, "vi-1", InspectionStatus.PASS)
        assert second.items[0].status == InspectionStatus.PENDING

    def test_custom_items(self):
        items = [CommissioningItem("x-1", "Extra", "BS 7671:612.3", "Sub-main insulation")]
        checklist = new_checklist(items, on=DAY)
        assert [i.id for i in checklist.items] == ["x-1"]

    def test_unknown_regulation(self):
        items = [CommissioningItem("x-1", "Extra", "BS 7671:999", "Unknown")]
        with pytest.raises(ConfigurationError):
            new_checklist(items)

    def test_duplicate_ids(self):
        items = [
            CommissioningItem("x-1", "Extra", "BS 7671:612.3", "One"),
            CommissioningItem("x-1", "Extra", "BS 7671:612.3", "Two"),
        ]
        with pytest.raises(ConfigurationError):
            new_checklist(items)


class TestRecording:

    def test_record_and_stats(self):
        checklist = new_checklist(on=DAY)
        record_result(checklist, "vi-1", InspectionStatus.PASS)
        record_result(checklist, "ef-1", InspectionStatus.FAIL, test_value="1.9 ohm", notes="Above 1.44")
        record_result(checklist, "ct-2", InspectionStatus.NOT_APPLICABLE)

        assert checklist.stats == {"completed": 3, "passed": 1, "failed": 1, "na": 1}
        zs = items_by_category(checklist)["Earth Fault"][0]
        assert zs.test_value == "1.9 ohm"
        assert zs.notes == "Above 1.44"

    def test_unknown_item(self):
        with pytest.raises(InputValidationError):
            record_result(new_checklist(on=DAY), "zz-9", InspectionStatus.PASS)


class TestSignOff:

    def test_sign_off(self):
        checklist = completed_checklist()
        sign_off(checklist, "A. Engineer", on=DAY)

        assert checklist.signed_off
        assert checklist.sign_off_name == "A. Engineer"
        assert checklist.sign_off_date == "2024-03-01"

    def test_pending_items_block_sign_off(self):
        checklist = new_checklist(on=DAY)
        record_result(checklist, "vi-1", InspectionStatus.PASS)
        with pytest.raises(InputValidationError, match="vi-2"):
            sign_off(checklist, "A. Engineer")
        assert not checklist.signed_off

    def test_failed_items_are_logged(self, caplog):
        checklist = completed_checklist()
        record_result(checklist, "rcd-1", InspectionStatus.FAIL)
        sign_off(checklist, "A. Engineer", on=DAY)
        assert "1 failed" in caplog.text

    def test_needs_a_name(self):
        with pytest.raises(InputValidationError):
            sign_off(completed_checklist(), "  ")

    def test_signed_off_checklist_is_closed(self):
        checklist = completed_checklist()
        sign_off(checklist, "A. Engineer", on=DAY)
        with pytest.raises(InputValidationError):
            record_result(checklist, "vi-1", InspectionStatus.FAIL)


class TestPersistence:

    def test_export_and_load(self, tmp_path):
        checklist = new_checklist(project_name="Block A", location="DB-1", on=DAY)
        record_result(checklist, "ir-1", InspectionStatus.PASS, test_value=">200 Mohm")
        path = tmp_path / "checklist.json"
        export_checklist_to_json(checklist, str(path))

        data = json.loads(path.read_text())
        assert data["summary"] == {"completed": 1, "passed": 1, "failed": 0, "na": 0}
        assert load_checklist(str(path)) == checklist

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(PersistenceError):
            load_checklist(str(tmp_path / "none.json"))

    def test_load_malformed(self, tmp_path):
        path = tmp_path / "checklist.json"
        path.write_text(json.dumps({"items": [{"id": "vi-1"}]}))
        with pytest.raises(PersistenceError):
            load_checklist(str(path))
