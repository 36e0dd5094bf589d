# payroll_api/services/exits.py
from __future__ import annotations

import calendar
import logging
from datetime import date, datetime, timedelta

from sqlalchemy.exc import IntegrityError

from payroll_api.common.errors import DuplicateExit, InvalidRange, InvalidState, ValidationFailed
from payroll_api.common.money import prorate, to_paisa
from payroll_api.common.parsing import parse_choice, parse_int
from payroll_api.extensions import db
from payroll_api.models.payroll.exit import EXIT_TYPES, SETTLEMENT_STATUSES, ExitRecord
from payroll_api.services.commission import commission_for_staff
from payroll_api.services.employment import find_profile
from payroll_api.services.leave import consume_leave_for_period, leave_encashment
from payroll_api.services.lookups import get_scoped, get_staff
from payroll_api.services.payroll import COMMISSION_MODELS, last_settled_period_end
from payroll_api.services.salary_ledger import active_salary

log = logging.getLogger(__name__)


def profile_status_for_exit(exit_type: str) -> str:
    return "resigned" if exit_type == "resignation" else "terminated"


def _daily_rate(comp, on_date: date) -> int:
    if comp is None:
        return 0
    if comp.daily_rate_paisa:
        return comp.daily_rate_paisa
    days = calendar.monthrange(on_date.year, on_date.month)[1]
    return prorate(comp.base_salary_paisa or 0, 1, days)


def record_exit(business_id: int, staff_id: int, exit_type: str, resignation_date: date,
                last_working_date: date, exit_reason: str | None = None,
                notice_period_served=None, notice_period_shortfall=None,
                pending_tips_paisa=None, created_by: int | None = None) -> ExitRecord:
    """
    Record the one exit a staff member can have and compute the settlement.

    Pending commissions cover services completed after the last payroll
    period this staff member had an entry in, up to the last working date.
    Approved leave in that same window is charged to the balances before
    the current year's remaining days are encashed. Tips come from the
    caller. The employment profile, if any, is moved to ``resigned`` or
    ``terminated`` in the same transaction.
    """
    get_staff(business_id, staff_id)
    exit_type = parse_choice(exit_type, "exit_type", EXIT_TYPES)
    if not exit_type:
        raise ValidationFailed("exit_type is required")
    if resignation_date is None or last_working_date is None:
        raise ValidationFailed("resignation_date and last_working_date are required")
    if last_working_date < resignation_date:
        raise InvalidRange("last_working_date cannot be before resignation_date")

    if ExitRecord.query.filter_by(staff_id=staff_id).first() is not None:
        raise DuplicateExit("Exit record already exists for this staff member")

    tips = to_paisa(pending_tips_paisa, "pending_tips_paisa", default=0)
    profile = find_profile(business_id, staff_id)

    notice_days = profile.notice_period_days if profile else 0
    served = parse_int(notice_period_served, "notice_period_served", lo=0)
    if served is None:
        served = min((last_working_date - resignation_date).days, notice_days)
    shortfall = parse_int(notice_period_shortfall, "notice_period_shortfall", lo=0)
    if shortfall is None:
        shortfall = max(notice_days - served, 0)

    # everything after the last cycle this staff member was paid in is unsettled
    paid_through = last_settled_period_end(staff_id)
    since = paid_through + timedelta(days=1) if paid_through else None
    unsettled = since is None or since <= last_working_date

    commissions = 0
    if unsettled and (profile is None or profile.compensation_model in COMMISSION_MODELS):
        commissions, _ = commission_for_staff(staff_id, since, last_working_date)

    if unsettled:
        consume_leave_for_period(staff_id, since or date(last_working_date.year, 1, 1), last_working_date)

    comp = active_salary(profile.id) if profile else None
    encashment, _ = leave_encashment(staff_id, _daily_rate(comp, last_working_date), last_working_date.year)

    rec = ExitRecord(
        business_id=business_id,
        staff_id=staff_id,
        employment_profile_id=profile.id if profile else None,
        exit_type=exit_type,
        exit_reason=exit_reason,
        resignation_date=resignation_date,
        last_working_date=last_working_date,
        notice_period_served=served,
        notice_period_shortfall=shortfall,
        pending_commissions_paisa=commissions,
        pending_tips_paisa=tips,
        leave_encashment_paisa=encashment,
        net_settlement_paisa=commissions + tips + encashment,
        settlement_status="pending",
        created_by=created_by,
    )
    db.session.add(rec)
    if profile is not None:
        profile.status = profile_status_for_exit(exit_type)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateExit("Exit record already exists for this staff member")

    log.info("exit recorded for staff %s (%s), net settlement %d", staff_id, exit_type, rec.net_settlement_paisa)
    return rec


def complete_settlement(business_id: int, exit_id: int) -> ExitRecord:
    rec = get_scoped(ExitRecord, business_id, exit_id, "Exit record")
    if rec.settlement_status != "pending":
        raise InvalidState("Settlement is already completed")
    rec.settlement_status = "completed"
    rec.settled_at = datetime.utcnow()
    db.session.commit()
    return rec


def list_exits(business_id: int, settlement_status: str | None = None):
    settlement_status = parse_choice(settlement_status, "settlement_status", SETTLEMENT_STATUSES)
    q = ExitRecord.query.filter_by(business_id=business_id)
    if settlement_status:
        q = q.filter(ExitRecord.settlement_status == settlement_status)
    return q.order_by(ExitRecord.created_at.desc(), ExitRecord.id.desc()).all()
