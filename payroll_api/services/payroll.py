# payroll_api/services/payroll.py
"""
Monthly payroll cycles: draft -> processed -> approved -> paid.

``process_cycle`` is one transaction: the cycle row is locked, one entry per
paid staff member is inserted, leave is charged to balances and the cycle is
moved out of ``draft`` with a compare-and-set update. Any failure rolls the
whole run back and leaves the cycle in ``draft`` with no entries.
"""
from __future__ import annotations

import calendar
import logging
from datetime import date, datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from payroll_api.common.errors import DuplicatePeriod, InvalidState, NotFound
from payroll_api.common.money import prorate, round_paisa
from payroll_api.common.parsing import parse_int
from payroll_api.extensions import db
from payroll_api.models.business import Staff
from payroll_api.models.leave import LeaveRequest
from payroll_api.models.payroll.cycle import PayrollCycle, PayrollEntry
from payroll_api.models.payroll.employment import EmploymentProfile
from payroll_api.models.payroll.exit import ExitRecord
from payroll_api.models.payroll.salary import SalaryComponent
from payroll_api.services.commission import commission_for_staff
from payroll_api.services.leave import consume_leave_for_period, unpaid_leave_days
from payroll_api.services.lookups import get_business
from payroll_api.services.salary_ledger import active_salary

log = logging.getLogger(__name__)

COMMISSION_MODELS = ("commission_only", "salary_plus_commission")
SKIP_NO_SALARY = "no_active_salary_component"


def month_bounds(year: int, month: int) -> tuple[date, date]:
    last = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last)


def _get_cycle(business_id: int, cycle_id: int, lock: bool = False) -> PayrollCycle:
    q = PayrollCycle.query.filter_by(id=cycle_id, business_id=business_id)
    if lock:
        q = q.with_for_update()
    cycle = q.first()
    if cycle is None:
        raise NotFound("Payroll cycle not found")
    return cycle


def get_cycle(business_id: int, cycle_id: int) -> PayrollCycle:
    return _get_cycle(business_id, cycle_id)


def list_cycles(business_id: int, year: int | None = None):
    q = PayrollCycle.query.filter_by(business_id=business_id)
    if year:
        q = q.filter(PayrollCycle.period_year == year)
    return q.order_by(PayrollCycle.period_year.desc(), PayrollCycle.period_month.desc()).all()


def list_entries(business_id: int, cycle_id: int):
    cycle = _get_cycle(business_id, cycle_id)
    return cycle.entries.order_by(PayrollEntry.staff_id.asc()).all()


def create_cycle(business_id: int, year, month, created_by: int | None = None) -> PayrollCycle:
    get_business(business_id)
    year = parse_int(year, "year", required=True,
                     lo=current_app.config.get("PAYROLL_MIN_YEAR", 2020),
                     hi=current_app.config.get("PAYROLL_MAX_YEAR", 2100))
    month = parse_int(month, "month", required=True, lo=1, hi=12)

    dup_msg = f"Payroll cycle already exists for {year}-{month:02d}"
    exists = PayrollCycle.query.filter_by(business_id=business_id, period_year=year, period_month=month).first()
    if exists is not None:
        raise DuplicatePeriod(dup_msg, payload={"cycle_id": exists.id})

    start, end = month_bounds(year, month)
    cycle = PayrollCycle(
        business_id=business_id,
        period_year=year,
        period_month=month,
        period_start_date=start,
        period_end_date=end,
        status="draft",
        total_staff_count=0,
        total_gross_salary_paisa=0,
        total_commissions_paisa=0,
        total_deductions_paisa=0,
        total_net_payable_paisa=0,
        created_by=created_by,
    )
    db.session.add(cycle)
    try:
        db.session.commit()
    except IntegrityError:
        # lost the race against a concurrent create for the same period
        db.session.rollback()
        raise DuplicatePeriod(dup_msg)

    log.info("payroll cycle %s created for business %s period %s-%02d", cycle.id, business_id, year, month)
    return cycle


def compute_entry(cycle: PayrollCycle, profile: EmploymentProfile, comp: SalaryComponent) -> PayrollEntry:
    start, end = cycle.period_start_date, cycle.period_end_date
    days_in_month = (end - start).days + 1

    base = comp.base_salary_paisa or 0
    allowances = comp.allowances_paisa
    gross = base + allowances
    statutory = comp.deductions_paisa

    commission, services = 0, 0
    if profile.compensation_model in COMMISSION_MODELS:
        commission, services = commission_for_staff(profile.staff_id, start, end)

    unpaid = unpaid_leave_days(profile.staff_id, start, end)
    leave_deduction = 0
    if unpaid:
        if comp.daily_rate_paisa:
            leave_deduction = round_paisa(Decimal(comp.daily_rate_paisa) * unpaid)
        else:
            leave_deduction = prorate(base, unpaid, days_in_month)
        leave_deduction = min(leave_deduction, gross)

    total_deductions = statutory + leave_deduction

    return PayrollEntry(
        payroll_cycle_id=cycle.id,
        business_id=cycle.business_id,
        staff_id=profile.staff_id,
        employment_profile_id=profile.id,
        salary_component_id=comp.id,
        base_salary_paisa=base,
        allowances_paisa=allowances,
        gross_earnings_paisa=gross,
        commission_paisa=commission,
        unpaid_leave_days=unpaid,
        leave_deduction_paisa=leave_deduction,
        total_deductions_paisa=total_deductions,
        net_payable_paisa=gross + commission - total_deductions,
        payment_status="pending",
        calc_meta={
            "compensation_model": profile.compensation_model,
            "statutory_deductions_paisa": statutory,
            "commission_services": services,
            "days_in_period": days_in_month,
            "salary_effective_from": comp.effective_from.isoformat(),
        },
    )


def process_cycle(business_id: int, cycle_id: int, processed_by: int | None = None):
    """
    Compute entries for every active employment profile of the business.

    Staff without an active salary component are skipped, logged and listed
    in the report. Returns ``(cycle, report)``.
    """
    try:
        cycle = _get_cycle(business_id, cycle_id, lock=True)
        if cycle.status != "draft":
            raise InvalidState(f"Payroll cycle is already {cycle.status}; it cannot be processed again")

        profiles = (
            EmploymentProfile.query
            .filter_by(business_id=business_id, status="active")
            .order_by(EmploymentProfile.id.asc())
            .all()
        )

        processed, skipped = [], []
        gross_total = commission_total = deductions_total = net_total = 0

        for profile in profiles:
            comp = active_salary(profile.id)
            if comp is None:
                log.warning("payroll cycle %s: staff %s skipped, no active salary component",
                            cycle.id, profile.staff_id)
                skipped.append({"staff_id": profile.staff_id, "reason": SKIP_NO_SALARY})
                continue

            entry = compute_entry(cycle, profile, comp)
            db.session.add(entry)
            consume_leave_for_period(profile.staff_id, cycle.period_start_date, cycle.period_end_date)

            gross_total += entry.gross_earnings_paisa
            commission_total += entry.commission_paisa
            deductions_total += entry.total_deductions_paisa
            net_total += entry.net_payable_paisa
            processed.append({"staff_id": profile.staff_id, "net_payable_paisa": entry.net_payable_paisa})

        db.session.flush()

        report = {"processed": processed, "skipped": skipped}
        updated = (
            PayrollCycle.query
            .filter_by(id=cycle.id, status="draft")
            .update({
                "status": "processed",
                "total_staff_count": len(processed),
                "total_gross_salary_paisa": gross_total,
                "total_commissions_paisa": commission_total,
                "total_deductions_paisa": deductions_total,
                "total_net_payable_paisa": net_total,
                "processing_notes": report,
                "processed_at": datetime.utcnow(),
                "processed_by": processed_by,
            }, synchronize_session=False)
        )
        if updated != 1:
            raise InvalidState("Payroll cycle was processed concurrently")

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    db.session.refresh(cycle)
    log.info("payroll cycle %s processed: %d entries, %d skipped, net %d",
             cycle.id, len(processed), len(skipped), net_total)
    return cycle, report


def approve_cycle(business_id: int, cycle_id: int, approved_by: int | None = None) -> PayrollCycle:
    cycle = _get_cycle(business_id, cycle_id, lock=True)
    if cycle.status != "processed":
        db.session.rollback()
        raise InvalidState(f"Only processed cycles can be approved (cycle is {cycle.status})")
    cycle.status = "approved"
    cycle.approved_at = datetime.utcnow()
    cycle.approved_by = approved_by
    db.session.commit()
    return cycle


def mark_cycle_paid(business_id: int, cycle_id: int) -> PayrollCycle:
    cycle = _get_cycle(business_id, cycle_id, lock=True)
    if cycle.status != "approved":
        db.session.rollback()
        raise InvalidState(f"Only approved cycles can be marked paid (cycle is {cycle.status})")
    now = datetime.utcnow()
    cycle.status = "paid"
    cycle.paid_at = now
    (PayrollEntry.query
     .filter_by(payroll_cycle_id=cycle.id, payment_status="pending")
     .update({"payment_status": "paid", "paid_at": now}, synchronize_session=False))
    db.session.commit()
    log.info("payroll cycle %s marked paid", cycle.id)
    return cycle


def last_settled_period_end(staff_id: int):
    """End of the latest processed cycle that carries an entry for this staff member."""
    return (
        db.session.query(func.max(PayrollCycle.period_end_date))
        .join(PayrollEntry, PayrollEntry.payroll_cycle_id == PayrollCycle.id)
        .filter(PayrollEntry.staff_id == staff_id, PayrollCycle.status != "draft")
        .scalar()
    )


def payroll_stats(business_id: int) -> dict:
    get_business(business_id)

    total_staff = Staff.query.filter_by(business_id=business_id).count()
    pending_leaves = LeaveRequest.query.filter_by(business_id=business_id, status="pending").count()
    pending_onboarding = (
        EmploymentProfile.query
        .filter(EmploymentProfile.business_id == business_id,
                or_(EmploymentProfile.onboarding_status == "pending",
                    EmploymentProfile.onboarding_status == "in_progress"))
        .count()
    )
    pending_exits = ExitRecord.query.filter_by(business_id=business_id, settlement_status="pending").count()

    total_payable = (
        db.session.query(func.coalesce(func.sum(
            SalaryComponent.base_salary_paisa
            + SalaryComponent.hra_allowance_paisa
            + SalaryComponent.travel_allowance_paisa
            + SalaryComponent.meal_allowance_paisa
            + SalaryComponent.other_allowances_paisa
        ), 0))
        .filter(SalaryComponent.business_id == business_id, SalaryComponent.is_active.is_(True))
        .scalar()
    )

    latest = (
        PayrollCycle.query.filter_by(business_id=business_id)
        .order_by(PayrollCycle.period_year.desc(), PayrollCycle.period_month.desc())
        .first()
    )
    last_paid = (
        db.session.query(func.max(PayrollCycle.paid_at))
        .filter(PayrollCycle.business_id == business_id, PayrollCycle.status == "paid")
        .scalar()
    )

    return {
        "total_staff": total_staff,
        "active_payroll_cycle": {"id": latest.id, "status": latest.status} if latest else None,
        "pending_leave_requests": pending_leaves,
        "pending_onboarding": pending_onboarding,
        "pending_exits": pending_exits,
        "total_payable_paisa": int(total_payable or 0),
        "last_payroll_date": last_paid,
    }
