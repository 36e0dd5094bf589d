from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from payroll_api.common.errors import (
    CommissionConfigError, DuplicateConflict, DuplicatePeriod, InvalidState, ValidationFailed,
)
from payroll_api.extensions import db
from payroll_api.models.leave import LeaveBalance
from payroll_api.models.payroll.cycle import PayrollEntry
from payroll_api.services import commission, leave, payroll
from payroll_api.services.employment import create_employment_profile, set_profile_status
from payroll_api.services.salary_ledger import replace_active_salary


@pytest.fixture
def hire(business, make_staff):
    def _hire(name, salary=None, profile=None):
        s = make_staff(business, name)
        create_employment_profile(business.id, s.id, profile or {})
        if salary is not None:
            replace_active_salary(business.id, s.id, salary, date(2025, 1, 1))
        return s
    return _hire


def _entries(cycle):
    return PayrollEntry.query.filter_by(payroll_cycle_id=cycle.id).order_by(PayrollEntry.staff_id).all()


def test_period_bounds(business):
    c = payroll.create_cycle(business.id, 2025, 3)
    assert c.status == "draft"
    assert (c.period_start_date, c.period_end_date) == (date(2025, 3, 1), date(2025, 3, 31))
    feb = payroll.create_cycle(business.id, 2024, 2)
    assert feb.period_end_date == date(2024, 2, 29)


def test_duplicate_period_rejected(business, other_business):
    payroll.create_cycle(business.id, 2025, 3)
    with pytest.raises(DuplicatePeriod):
        payroll.create_cycle(business.id, 2025, 3)
    with pytest.raises(DuplicateConflict):
        payroll.create_cycle(business.id, "2025", "3")
    # same period for another business is fine
    assert payroll.create_cycle(other_business.id, 2025, 3).status == "draft"


@pytest.mark.parametrize("year,month", [(2019, 1), (2101, 1), (2025, 0), (2025, 13)])
def test_period_out_of_range(business, year, month):
    with pytest.raises(ValidationFailed):
        payroll.create_cycle(business.id, year, month)


def test_process_two_staff(business, hire):
    a = hire("A", {"base_salary_paisa": 50000})
    b = hire("B", {"base_salary_paisa": 30000, "travel_allowance_paisa": 2000, "pf_deduction_paisa": 1000})
    cycle = payroll.create_cycle(business.id, 2025, 3)

    cycle, report = payroll.process_cycle(business.id, cycle.id)

    assert cycle.status == "processed"
    assert cycle.processed_at is not None
    assert cycle.total_staff_count == 2
    assert cycle.total_gross_salary_paisa == 82000
    assert cycle.total_commissions_paisa == 0
    assert cycle.total_deductions_paisa == 1000
    assert cycle.total_net_payable_paisa == 81000
    assert report["skipped"] == []
    assert {r["staff_id"] for r in report["processed"]} == {a.id, b.id}

    rows = _entries(cycle)
    assert [e.payment_status for e in rows] == ["pending", "pending"]
    by_staff = {e.staff_id: e for e in rows}
    assert by_staff[b.id].allowances_paisa == 2000
    assert by_staff[b.id].gross_earnings_paisa == 32000
    assert by_staff[b.id].net_payable_paisa == 31000


def test_totals_match_entry_sums(business, hire):
    for i in range(4):
        hire(f"S{i}", {"base_salary_paisa": 10000 * (i + 1), "esi_deduction_paisa": 150 * i})
    cycle = payroll.create_cycle(business.id, 2025, 6)
    cycle, _ = payroll.process_cycle(business.id, cycle.id)

    rows = _entries(cycle)
    assert cycle.total_staff_count == len(rows) == 4
    assert cycle.total_gross_salary_paisa == sum(e.gross_earnings_paisa for e in rows)
    assert cycle.total_deductions_paisa == sum(e.total_deductions_paisa for e in rows)
    assert cycle.total_net_payable_paisa == sum(e.net_payable_paisa for e in rows)


def test_reprocess_is_rejected(business, hire):
    hire("A", {"base_salary_paisa": 50000})
    cycle = payroll.create_cycle(business.id, 2025, 3)
    payroll.process_cycle(business.id, cycle.id)

    with pytest.raises(InvalidState):
        payroll.process_cycle(business.id, cycle.id)
    assert len(_entries(cycle)) == 1


def test_staff_without_salary_skipped(business, hire):
    paid = hire("Paid", {"base_salary_paisa": 40000})
    unpaid = hire("No salary")
    gone = hire("Notice", {"base_salary_paisa": 99999})
    set_profile_status(business.id, gone.id, "notice_period")

    cycle = payroll.create_cycle(business.id, 2025, 3)
    cycle, report = payroll.process_cycle(business.id, cycle.id)

    assert [r["staff_id"] for r in report["processed"]] == [paid.id]
    assert report["skipped"] == [{"staff_id": unpaid.id, "reason": "no_active_salary_component"}]
    assert cycle.total_staff_count == 1
    assert cycle.processing_notes["skipped"][0]["staff_id"] == unpaid.id


def test_failure_rolls_back_whole_run(business, hire):
    hire("Fine", {"base_salary_paisa": 40000})
    broken = hire("Broken", {"base_salary_paisa": 40000})

    s = commission.create_structure(business.id, {"name": "Tiered", "type": "tiered", "tiers": [
        {"min": 0, "max": 50000, "rate": 10},
        {"min": 50001, "max": 100000, "rate": 15},
    ]})
    commission.assign_structure(business.id, s.id, broken.id)
    # corrupted directly in the table, bypassing save-time checks
    s.tiers = [{"min": 0, "max": 50000, "rate": 10}, {"min": 50002, "max": 100000, "rate": 15}]
    db.session.commit()
    commission.record_completed_service(business.id, broken.id, 50001, completed_at=datetime(2025, 3, 10, 12))

    cycle = payroll.create_cycle(business.id, 2025, 3)
    with pytest.raises(CommissionConfigError):
        payroll.process_cycle(business.id, cycle.id)

    cycle = payroll.get_cycle(business.id, cycle.id)
    assert cycle.status == "draft"
    assert cycle.total_staff_count == 0
    assert _entries(cycle) == []


def test_commission_added_for_commission_models(business, hire):
    stylist = hire("Stylist", {"base_salary_paisa": 20000},
                   profile={"compensation_model": "salary_plus_commission"})
    fixed = hire("Fixed", {"base_salary_paisa": 20000}, profile={"compensation_model": "fixed_salary"})

    s = commission.create_structure(business.id, {"name": "Std", "type": "percentage", "base_percentage": 10})
    for staff in (stylist, fixed):
        commission.assign_structure(business.id, s.id, staff.id)
        commission.record_completed_service(business.id, staff.id, 15000, completed_at=datetime(2025, 3, 5, 11))
        commission.record_completed_service(business.id, staff.id, 99999, completed_at=datetime(2025, 4, 1, 10))

    cycle = payroll.create_cycle(business.id, 2025, 3)
    cycle, _ = payroll.process_cycle(business.id, cycle.id)

    by_staff = {e.staff_id: e for e in _entries(cycle)}
    assert by_staff[stylist.id].commission_paisa == 1500
    assert by_staff[stylist.id].net_payable_paisa == 21500
    assert by_staff[fixed.id].commission_paisa == 0
    assert cycle.total_commissions_paisa == 1500
    assert cycle.total_net_payable_paisa == 41500


def test_unpaid_leave_deducted_and_consumed(business, hire):
    today = date.today()
    year, month = today.year, today.month + 2
    if month > 12:
        year, month = year + 1, month - 12

    staff = hire("Leave taker", {"base_salary_paisa": 50000, "daily_rate_paisa": 1000})
    lop = leave.create_leave_type(business.id, {"name": "Loss of pay", "code": "LOP", "is_paid": False})
    leave.ensure_balances_for_year(business.id, staff.id, year)
    db.session.commit()

    start = date(year, month, 3)
    req = leave.submit_leave_request(business.id, staff.id, lop.id, start, start + timedelta(days=1))
    leave.approve_leave_request(business.id, req.id, None)

    cycle = payroll.create_cycle(business.id, year, month)
    cycle, _ = payroll.process_cycle(business.id, cycle.id)

    entry = _entries(cycle)[0]
    assert entry.unpaid_leave_days == Decimal("2")
    assert entry.leave_deduction_paisa == 2000
    assert entry.net_payable_paisa == 48000

    bal = LeaveBalance.query.filter_by(staff_id=staff.id, leave_type_id=lop.id, year=year).one()
    assert bal.used_days == Decimal("2")


def test_approve_then_pay(business, hire):
    hire("A", {"base_salary_paisa": 50000})
    cycle = payroll.create_cycle(business.id, 2025, 3)

    with pytest.raises(InvalidState):
        payroll.approve_cycle(business.id, cycle.id)

    payroll.process_cycle(business.id, cycle.id)
    with pytest.raises(InvalidState):
        payroll.mark_cycle_paid(business.id, cycle.id)

    assert payroll.approve_cycle(business.id, cycle.id).status == "approved"
    paid = payroll.mark_cycle_paid(business.id, cycle.id)
    assert paid.status == "paid"
    assert paid.paid_at is not None
    db.session.expire_all()
    assert [e.payment_status for e in _entries(paid)] == ["paid"]

    for op in (payroll.process_cycle, payroll.approve_cycle, payroll.mark_cycle_paid):
        with pytest.raises(InvalidState):
            op(business.id, cycle.id)


def test_stats(business, hire):
    hire("A", {"base_salary_paisa": 50000, "hra_allowance_paisa": 5000})
    hire("B")
    cycle = payroll.create_cycle(business.id, 2025, 3)

    stats = payroll.payroll_stats(business.id)
    assert stats["total_staff"] == 2
    assert stats["pending_onboarding"] == 2
    assert stats["total_payable_paisa"] == 55000
    assert stats["active_payroll_cycle"] == {"id": cycle.id, "status": "draft"}
    assert stats["last_payroll_date"] is None
