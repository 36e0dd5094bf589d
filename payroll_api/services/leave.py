# payroll_api/services/leave.py
"""
Leave types, yearly balances and the request workflow.

Requests link to the balance of their start year. ``used_days`` is consumed
per calendar year when a payroll cycle covering the leave is processed, or
when an exit settles the unpaid tail (``consume_leave_for_period``).
"""
from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from sqlalchemy.exc import IntegrityError

from payroll_api.common.errors import (
    DuplicateConflict, Forbidden, InvalidRange, InvalidState, NotFound, ValidationFailed,
)
from payroll_api.common.money import round_paisa, to_rate
from payroll_api.common.parsing import parse_bool, parse_choice, parse_int
from payroll_api.extensions import db
from payroll_api.models.leave import (
    HALF_DAY_TYPES, LEAVE_REQUEST_STATUSES, LeaveApprovalAction, LeaveBalance, LeaveRequest,
    LeaveType,
)
from payroll_api.services.lookups import get_scoped, get_staff

log = logging.getLogger(__name__)

HALF = Decimal("0.5")


# ---------- leave types ----------

def _apply_type_fields(lt: LeaveType, data: dict) -> None:
    if "code" in data:
        code = (data.get("code") or "").strip().upper()
        if not code:
            raise ValidationFailed("code is required")
        if len(code) > 10:
            raise ValidationFailed("code must be at most 10 characters")
        lt.code = code
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationFailed("name is required")
        lt.name = name
    if "description" in data:
        lt.description = data.get("description")
    if "annual_quota" in data:
        lt.annual_quota = parse_int(data["annual_quota"], "annual_quota", required=True, lo=0, hi=366)
    for f in ("is_paid", "allow_carry_forward", "allow_encashment", "is_active"):
        if f in data and data[f] is not None:
            setattr(lt, f, parse_bool(data[f]))
    if "max_carry_forward_days" in data:
        lt.max_carry_forward_days = parse_int(data["max_carry_forward_days"], "max_carry_forward_days",
                                              required=True, lo=0, hi=366)
    if "min_encashment_days" in data:
        lt.min_encashment_days = parse_int(data["min_encashment_days"], "min_encashment_days",
                                           required=True, lo=0, hi=366)
    if "encashment_rate_pct" in data:
        rate = to_rate(data["encashment_rate_pct"], "encashment_rate_pct")
        if rate > 100:
            raise ValidationFailed("encashment_rate_pct must be <= 100")
        lt.encashment_rate_pct = rate


def _code_taken(business_id: int, code: str, exclude_id: int | None = None) -> bool:
    with db.session.no_autoflush:
        q = LeaveType.query.filter_by(business_id=business_id, code=code)
        if exclude_id:
            q = q.filter(LeaveType.id != exclude_id)
        return db.session.query(q.exists()).scalar()


def create_leave_type(business_id: int, data: dict) -> LeaveType:
    if not (data.get("name") or "").strip() or not (data.get("code") or "").strip():
        raise ValidationFailed("name and code are required")

    lt = LeaveType(
        business_id=business_id,
        annual_quota=12,
        is_paid=True,
        allow_carry_forward=False,
        max_carry_forward_days=0,
        allow_encashment=False,
        encashment_rate_pct=Decimal("100"),
        min_encashment_days=0,
        is_active=True,
    )
    _apply_type_fields(lt, data)

    if _code_taken(business_id, lt.code):
        raise DuplicateConflict(f"Leave type code '{lt.code}' already exists")

    db.session.add(lt)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateConflict(f"Leave type code '{lt.code}' already exists")
    return lt


def update_leave_type(business_id: int, leave_type_id: int, data: dict) -> LeaveType:
    lt = get_scoped(LeaveType, business_id, leave_type_id, "Leave type")
    _apply_type_fields(lt, data)
    if "code" in data and _code_taken(business_id, lt.code, exclude_id=lt.id):
        db.session.rollback()
        raise DuplicateConflict(f"Leave type code '{lt.code}' already exists")
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateConflict(f"Leave type code '{lt.code}' already exists")
    return lt


def list_leave_types(business_id: int, active_only: bool = False):
    q = LeaveType.query.filter_by(business_id=business_id)
    if active_only:
        q = q.filter(LeaveType.is_active.is_(True))
    return q.order_by(LeaveType.code.asc()).all()


# ---------- balances ----------

def ensure_balances_for_year(business_id: int, staff_id: int, year: int) -> int:
    """
    For every active leave type of the business, create the staff member's
    balance row for ``year`` if it does not exist yet:
        allocated = annual_quota
        carried_forward = min(previous year remaining, max_carry_forward_days)
                          when the type allows carry-forward
    Existing rows are left unchanged. Caller commits.
    """
    created = 0
    for lt in LeaveType.query.filter_by(business_id=business_id, is_active=True).all():
        bal = LeaveBalance.query.filter_by(staff_id=staff_id, leave_type_id=lt.id, year=year).first()
        if bal:
            continue

        carried = Decimal("0")
        if lt.allow_carry_forward:
            prev = LeaveBalance.query.filter_by(staff_id=staff_id, leave_type_id=lt.id, year=year - 1).first()
            if prev is not None:
                carried = max(Decimal("0"), min(prev.remaining_days, Decimal(lt.max_carry_forward_days or 0)))

        db.session.add(LeaveBalance(
            business_id=business_id,
            staff_id=staff_id,
            leave_type_id=lt.id,
            year=year,
            allocated_days=Decimal(lt.annual_quota or 0),
            carried_forward_days=carried,
            used_days=Decimal("0"),
        ))
        created += 1
    db.session.flush()
    return created


def sync_balances_for_business(business_id: int, year: int, staff_ids=None) -> dict:
    from payroll_api.models.business import Staff

    q = Staff.query.filter_by(business_id=business_id, is_active=True)
    if staff_ids:
        q = q.filter(Staff.id.in_(staff_ids))

    total_created = 0
    processed = 0
    for s in q.all():
        total_created += ensure_balances_for_year(business_id, s.id, year)
        processed += 1
    db.session.commit()

    return {
        "business_id": business_id,
        "year": year,
        "staff_processed": processed,
        "balances_created": total_created,
    }


def list_balances(business_id: int, staff_id: int, year: int):
    get_staff(business_id, staff_id)
    return (
        LeaveBalance.query
        .filter_by(business_id=business_id, staff_id=staff_id, year=year)
        .order_by(LeaveBalance.leave_type_id.asc())
        .all()
    )


# ---------- requests ----------

def _span_days(start: date, end: date) -> int:
    return (end - start).days + 1


def _number_of_days(start: date, end: date, is_half_day: bool, supplied) -> Decimal:
    span = Decimal(_span_days(start, end))
    computed = HALF if is_half_day else span
    if supplied is None or supplied == "":
        return computed
    if isinstance(supplied, bool):
        raise ValidationFailed("number_of_days must be numeric")
    try:
        n = Decimal(str(supplied))
    except (InvalidOperation, ValueError):
        raise ValidationFailed("number_of_days must be numeric")
    if not n.is_finite() or n <= 0:
        raise ValidationFailed("number_of_days must be > 0")
    if n > span:
        raise ValidationFailed(f"number_of_days cannot exceed the {span} day(s) requested")
    if is_half_day and n != HALF:
        raise ValidationFailed("half-day requests count 0.5 days")
    return n


def _record_action(req: LeaveRequest, action: str, user_id: int | None, comment: str | None = None):
    db.session.add(LeaveApprovalAction(
        leave_request_id=req.id, action=action, acted_by_user_id=user_id, comment=comment,
    ))


def submit_leave_request(business_id: int, staff_id: int, leave_type_id: int, start_date: date,
                         end_date: date, number_of_days=None, reason: str | None = None,
                         is_half_day: bool = False, half_day_type: str | None = None,
                         requested_by: int | None = None) -> LeaveRequest:
    get_staff(business_id, staff_id)
    lt = get_scoped(LeaveType, business_id, leave_type_id, "Leave type")
    if not lt.is_active:
        raise InvalidState("Leave type is inactive")

    if start_date is None or end_date is None:
        raise ValidationFailed("start_date and end_date are required")
    if start_date > end_date:
        raise InvalidRange("start_date must be on or before end_date")
    if start_date < date.today():
        raise InvalidRange("Cannot request leave for past dates")

    is_half_day = bool(is_half_day)
    if is_half_day:
        if start_date != end_date:
            raise ValidationFailed("half-day leave must start and end on the same day")
        half_day_type = parse_choice(half_day_type, "half_day_type", HALF_DAY_TYPES)
        if not half_day_type:
            raise ValidationFailed("half_day_type is required for half-day leave")
    else:
        half_day_type = None

    days = _number_of_days(start_date, end_date, is_half_day, number_of_days)

    balance = LeaveBalance.query.filter_by(
        staff_id=staff_id, leave_type_id=lt.id, year=start_date.year,
    ).first()

    req = LeaveRequest(
        business_id=business_id,
        staff_id=staff_id,
        leave_type_id=lt.id,
        leave_balance_id=balance.id if balance else None,
        start_date=start_date,
        end_date=end_date,
        is_half_day=is_half_day,
        half_day_type=half_day_type,
        number_of_days=days,
        reason=reason,
        status="pending",
        is_paid=bool(lt.is_paid),
        requested_by=requested_by,
    )
    db.session.add(req)
    db.session.flush()
    _record_action(req, "applied", requested_by, reason)
    db.session.commit()

    log.info("leave request %s submitted: staff=%s type=%s %s..%s (%s days)",
             req.id, staff_id, lt.code, start_date, end_date, days)
    return req


def _pending_for_update(business_id: int, request_id: int) -> LeaveRequest:
    req = (
        LeaveRequest.query
        .filter_by(id=request_id, business_id=business_id)
        .with_for_update()
        .first()
    )
    if req is None:
        raise NotFound("Leave request not found")
    if req.status != "pending":
        db.session.rollback()
        raise InvalidState(f"Leave request is already {req.status}")
    return req


def approve_leave_request(business_id: int, request_id: int, approver_id: int | None,
                          comment: str | None = None) -> LeaveRequest:
    req = _pending_for_update(business_id, request_id)
    req.status = "approved"
    req.approved_by = approver_id
    req.approved_at = datetime.utcnow()
    _record_action(req, "approved", approver_id, comment)
    db.session.commit()
    return req


def reject_leave_request(business_id: int, request_id: int, approver_id: int | None,
                         reason: str | None = None) -> LeaveRequest:
    req = _pending_for_update(business_id, request_id)
    req.status = "rejected"
    req.rejection_reason = reason
    req.approved_by = approver_id
    req.approved_at = datetime.utcnow()
    _record_action(req, "rejected", approver_id, reason)
    db.session.commit()
    return req


def cancel_leave_request(business_id: int, request_id: int, user_id: int | None) -> LeaveRequest:
    req = _pending_for_update(business_id, request_id)
    if req.requested_by != user_id:
        db.session.rollback()
        raise Forbidden("Only the requester can cancel this leave request")
    req.status = "cancelled"
    _record_action(req, "cancelled", user_id)
    db.session.commit()
    return req


def list_leave_requests(business_id: int, status: str | None = None, staff_id: int | None = None):
    status = parse_choice(status, "status", LEAVE_REQUEST_STATUSES)
    q = LeaveRequest.query.filter_by(business_id=business_id)
    if status:
        q = q.filter(LeaveRequest.status == status)
    if staff_id:
        q = q.filter(LeaveRequest.staff_id == staff_id)
    return q.order_by(LeaveRequest.created_at.desc(), LeaveRequest.id.desc()).all()


def request_actions(req: LeaveRequest):
    return (
        LeaveApprovalAction.query
        .filter_by(leave_request_id=req.id)
        .order_by(LeaveApprovalAction.acted_at.asc(), LeaveApprovalAction.id.asc())
        .all()
    )


# ---------- payroll integration ----------

def _overlap_days(req: LeaveRequest, start: date, end: date) -> Decimal:
    lo = max(start, req.start_date)
    hi = min(end, req.end_date)
    if lo > hi:
        return Decimal("0")
    overlap = _span_days(lo, hi)
    span = _span_days(req.start_date, req.end_date)
    days = Decimal(req.number_of_days)
    if overlap == span:
        return days
    return (days * overlap / span).quantize(Decimal("0.01"))


def _approved_overlapping(staff_id: int, start: date, end: date):
    return (
        LeaveRequest.query
        .filter(
            LeaveRequest.staff_id == staff_id,
            LeaveRequest.status == "approved",
            LeaveRequest.start_date <= end,
            LeaveRequest.end_date >= start,
        )
        .all()
    )


def unpaid_leave_days(staff_id: int, start: date, end: date) -> Decimal:
    total = Decimal("0")
    for req in _approved_overlapping(staff_id, start, end):
        if not req.is_paid:
            total += _overlap_days(req, start, end)
    return total


def consume_leave_for_period(staff_id: int, start: date, end: date) -> Decimal:
    """
    Charge approved leave falling in [start, end] to the staff member's
    balances. Days are charged to the balance of the calendar year they fall
    in, so a request crossing new year draws on both years. Years without a
    balance row are not charged. Caller commits.
    """
    consumed = Decimal("0")
    for req in _approved_overlapping(staff_id, start, end):
        lo = max(start, req.start_date)
        hi = min(end, req.end_date)
        for year in range(lo.year, hi.year + 1):
            balance = LeaveBalance.query.filter_by(
                staff_id=staff_id, leave_type_id=req.leave_type_id, year=year,
            ).first()
            if balance is None:
                continue
            days = _overlap_days(req, max(lo, date(year, 1, 1)), min(hi, date(year, 12, 31)))
            balance.used_days = Decimal(balance.used_days or 0) + days
            consumed += days
    return consumed


def leave_encashment(staff_id: int, daily_rate_paisa: int, year: int):
    """
    Encashable remaining leave for an exiting staff member.

    Returns ``(amount_paisa, lines)`` where each line describes one leave type.
    """
    amount = 0
    lines = []
    if not daily_rate_paisa:
        return amount, lines

    balances = (
        LeaveBalance.query
        .join(LeaveType, LeaveType.id == LeaveBalance.leave_type_id)
        .filter(
            LeaveBalance.staff_id == staff_id,
            LeaveBalance.year == year,
            LeaveType.allow_encashment.is_(True),
        )
        .all()
    )
    for bal in balances:
        lt = bal.leave_type
        remaining = bal.remaining_days
        if remaining <= 0 or remaining < Decimal(lt.min_encashment_days or 0):
            continue
        value = round_paisa(Decimal(daily_rate_paisa) * remaining * Decimal(lt.encashment_rate_pct) / Decimal("100"))
        amount += value
        lines.append({
            "leave_type_id": lt.id,
            "code": lt.code,
            "remaining_days": float(remaining),
            "rate_pct": float(lt.encashment_rate_pct),
            "amount_paisa": value,
        })
    return amount, lines
