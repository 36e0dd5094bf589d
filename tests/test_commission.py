from datetime import date, datetime

import pytest

from payroll_api.common.errors import (
    AssignedStructureConflict, CommissionConfigError, DuplicateConflict, InvalidState, ValidationFailed,
)
from payroll_api.models.payroll.commission import CommissionStructure
from payroll_api.services import commission as svc

TIERS = [
    {"min": 50001, "max": 100000, "rate": 15},
    {"min": 0, "max": 50000, "rate": 10},
]


def test_percentage_commission(business):
    s = svc.create_structure(business.id, {"name": "Std", "type": "percentage", "base_percentage": 15})
    assert svc.evaluate_commission(s, 10000) == 1500


def test_flat_commission(business):
    s = svc.create_structure(business.id, {"name": "Flat", "type": "flat", "base_flat_amount_paisa": 2500})
    assert svc.evaluate_commission(s, 123456) == 2500


def test_tiered_commission_picks_containing_band(business):
    s = svc.create_structure(business.id, {"name": "Tiered", "type": "tiered", "tiers": TIERS})
    # stored sorted by min
    assert [t["min"] for t in s.tiers] == [0, 50001]
    assert svc.evaluate_commission(s, 60000) == 9000
    assert svc.evaluate_commission(s, 50000) == 5000
    with pytest.raises(CommissionConfigError):
        svc.evaluate_commission(s, 100001)


def test_open_ended_last_tier(business):
    s = svc.create_structure(business.id, {"name": "Open", "type": "tiered", "tiers": [
        {"min": 0, "max": 999, "rate": 5},
        {"min": 1000, "max": None, "rate": 20},
    ]})
    assert svc.evaluate_commission(s, 10 ** 7) == 2 * 10 ** 6


@pytest.mark.parametrize("tiers", [
    [{"min": 0, "max": 50000, "rate": 10}, {"min": 50002, "max": 100000, "rate": 15}],
    [{"min": 0, "max": 50000, "rate": 10}, {"min": 40000, "max": 100000, "rate": 15}],
    [{"min": 0, "max": None, "rate": 10}, {"min": 50001, "max": 100000, "rate": 15}],
    [{"min": 0, "max": 100, "rate": 101}],
    [],
])
def test_bad_tier_tables_rejected_on_save(business, tiers):
    with pytest.raises(ValidationFailed):
        svc.create_structure(business.id, {"name": "Bad", "type": "tiered", "tiers": tiers})


def test_gap_detected_at_evaluation():
    s = CommissionStructure(name="Gappy", type="tiered", tiers=[
        {"min": 0, "max": 50000, "rate": 10},
        {"min": 50002, "max": 100000, "rate": 15},
    ])
    assert svc.evaluate_commission(s, 1000) == 100
    with pytest.raises(CommissionConfigError):
        svc.evaluate_commission(s, 50001)


def test_overlap_detected_at_evaluation():
    s = CommissionStructure(name="Overlap", type="tiered", tiers=[
        {"min": 0, "max": 50000, "rate": 10},
        {"min": 40000, "max": 100000, "rate": 15},
    ])
    with pytest.raises(CommissionConfigError):
        svc.evaluate_commission(s, 45000)


def test_service_category_filter(business):
    s = svc.create_structure(business.id, {
        "name": "Hair only", "type": "percentage", "base_percentage": 10, "service_category": "hair",
    })
    assert svc.evaluate_commission(s, 10000, "hair") == 1000
    assert svc.evaluate_commission(s, 10000, "nails") == 0
    assert svc.evaluate_commission(s, 10000, None) == 0


def test_type_specific_payload_required(business):
    with pytest.raises(ValidationFailed):
        svc.create_structure(business.id, {"name": "X", "type": "flat"})
    with pytest.raises(ValidationFailed):
        svc.create_structure(business.id, {"name": "Y", "type": "percentage"})


def test_duplicate_name_conflicts(business):
    svc.create_structure(business.id, {"name": "Std", "type": "percentage", "base_percentage": 10})
    with pytest.raises(DuplicateConflict):
        svc.create_structure(business.id, {"name": "Std", "type": "flat", "base_flat_amount_paisa": 1})


def test_cannot_delete_assigned_structure(business, make_staff):
    staff = make_staff(business)
    s = svc.create_structure(business.id, {"name": "Std", "type": "percentage", "base_percentage": 10})
    svc.assign_structure(business.id, s.id, staff.id)

    with pytest.raises(AssignedStructureConflict) as exc:
        svc.delete_structure(business.id, s.id)
    assert exc.value.payload["assigned_staff_count"] == 1

    svc.unassign_structure(business.id, staff.id)
    svc.delete_structure(business.id, s.id)
    assert svc.list_structures(business.id) == []


def test_inactive_structure_cannot_be_assigned(business, make_staff):
    staff = make_staff(business)
    s = svc.create_structure(business.id, {"name": "Old", "type": "percentage", "base_percentage": 10})
    svc.deactivate_structure(business.id, s.id)
    with pytest.raises(InvalidState):
        svc.assign_structure(business.id, s.id, staff.id)


def test_reassignment_replaces_previous(business, make_staff):
    staff = make_staff(business)
    a = svc.create_structure(business.id, {"name": "A", "type": "percentage", "base_percentage": 10})
    b = svc.create_structure(business.id, {"name": "B", "type": "flat", "base_flat_amount_paisa": 100})
    svc.assign_structure(business.id, a.id, staff.id)
    svc.assign_structure(business.id, b.id, staff.id)
    assert svc.assigned_structure(staff.id).id == b.id
    assert a.assigned_staff_count == 0


def test_commission_for_staff_window(business, make_staff):
    staff = make_staff(business)
    s = svc.create_structure(business.id, {"name": "Std", "type": "percentage", "base_percentage": 10})
    svc.assign_structure(business.id, s.id, staff.id)

    svc.record_completed_service(business.id, staff.id, 10000, completed_at=datetime(2025, 2, 28, 18, 0))
    svc.record_completed_service(business.id, staff.id, 20000, completed_at=datetime(2025, 3, 1, 9, 0))
    svc.record_completed_service(business.id, staff.id, 30000, completed_at=datetime(2025, 3, 31, 23, 59))
    svc.record_completed_service(business.id, staff.id, 40000, completed_at=datetime(2025, 4, 1, 0, 0))

    assert svc.commission_for_staff(staff.id, date(2025, 3, 1), date(2025, 3, 31)) == (5000, 2)
    assert svc.commission_for_staff(staff.id, None, date(2025, 3, 31)) == (6000, 3)


def test_no_assignment_means_no_commission(business, make_staff):
    staff = make_staff(business)
    svc.record_completed_service(business.id, staff.id, 10000, completed_at=datetime(2025, 3, 5))
    assert svc.commission_for_staff(staff.id, date(2025, 3, 1), date(2025, 3, 31)) == (0, 0)
