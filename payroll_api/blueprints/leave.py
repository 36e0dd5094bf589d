from __future__ import annotations

from datetime import datetime

from flask import Blueprint, current_app, request

from payroll_api.common.auth import current_roles, current_user_id, requires_business_access
from payroll_api.common.errors import Forbidden
from payroll_api.common.http import ok, iso, num
from payroll_api.common.parsing import body, paginate, parse_bool, parse_date, parse_int
from payroll_api.services import leave as svc
from payroll_api.services.lookups import get_staff

bp = Blueprint("leave", __name__, url_prefix="/api/v1/businesses/<int:business_id>")

MANAGING_ROLES = {"admin", "owner", "manager"}


# -------- helpers ----------
def _type_row(lt):
    return {
        "id": lt.id,
        "business_id": lt.business_id,
        "code": lt.code,
        "name": lt.name,
        "description": lt.description,
        "annual_quota": lt.annual_quota,
        "is_paid": lt.is_paid,
        "allow_carry_forward": lt.allow_carry_forward,
        "max_carry_forward_days": lt.max_carry_forward_days,
        "allow_encashment": lt.allow_encashment,
        "encashment_rate_pct": num(lt.encashment_rate_pct),
        "min_encashment_days": lt.min_encashment_days,
        "is_active": lt.is_active,
    }


def _balance_row(b):
    return {
        "id": b.id,
        "staff_id": b.staff_id,
        "leave_type_id": b.leave_type_id,
        "leave_type_code": b.leave_type.code if b.leave_type else None,
        "year": b.year,
        "allocated_days": num(b.allocated_days),
        "carried_forward_days": num(b.carried_forward_days),
        "used_days": num(b.used_days),
        "remaining_days": num(b.remaining_days),
    }


def _request_row(r, with_actions=False):
    row = {
        "id": r.id,
        "business_id": r.business_id,
        "staff_id": r.staff_id,
        "staff_name": r.staff.name if r.staff else None,
        "leave_type_id": r.leave_type_id,
        "leave_type_code": r.leave_type.code if r.leave_type else None,
        "leave_balance_id": r.leave_balance_id,
        "start_date": iso(r.start_date),
        "end_date": iso(r.end_date),
        "is_half_day": r.is_half_day,
        "half_day_type": r.half_day_type,
        "number_of_days": num(r.number_of_days),
        "reason": r.reason,
        "status": r.status,
        "is_paid": r.is_paid,
        "requested_by": r.requested_by,
        "approved_by": r.approved_by,
        "approved_at": iso(r.approved_at),
        "rejection_reason": r.rejection_reason,
        "created_at": iso(r.created_at),
    }
    if with_actions:
        row["actions"] = [
            {"action": a.action, "comment": a.comment, "by": a.acted_by_user_id, "at": iso(a.acted_at)}
            for a in svc.request_actions(r)
        ]
    return row


# -------- leave types ----------
@bp.get("/leave-types")
@requires_business_access()
def list_leave_types(business_id: int):
    active_only = parse_bool(request.args.get("active")) or False
    return ok([_type_row(x) for x in svc.list_leave_types(business_id, active_only=active_only)])


@bp.post("/leave-types")
@requires_business_access("owner")
def create_leave_type(business_id: int):
    lt = svc.create_leave_type(business_id, body())
    return ok(_type_row(lt), 201)


@bp.patch("/leave-types/<int:leave_type_id>")
@requires_business_access("owner")
def update_leave_type(business_id: int, leave_type_id: int):
    return ok(_type_row(svc.update_leave_type(business_id, leave_type_id, body())))


# -------- balances ----------
@bp.post("/leave-balances/sync")
@requires_business_access("owner", "manager")
def sync_balances(business_id: int):
    j = body()
    year = parse_int(j.get("year"), "year", lo=2000, hi=2100) or datetime.utcnow().year
    staff_ids = j.get("staff_ids") or None
    result = svc.sync_balances_for_business(business_id, year, staff_ids=staff_ids)
    current_app.logger.info("leave balances synced: %s", result)
    return ok(result)


@bp.get("/staff/<int:staff_id>/leave-balances")
@requires_business_access()
def list_balances(business_id: int, staff_id: int):
    year = parse_int(request.args.get("year"), "year", lo=2000, hi=2100) or datetime.utcnow().year
    return ok([_balance_row(b) for b in svc.list_balances(business_id, staff_id, year)])


# -------- requests ----------
@bp.get("/leave-requests")
@requires_business_access("owner", "manager")
def list_leave_requests(business_id: int):
    rows = svc.list_leave_requests(
        business_id,
        status=request.args.get("status") or None,
        staff_id=parse_int(request.args.get("staff_id"), "staff_id"),
    )
    rows, meta = paginate(rows)
    return ok([_request_row(r) for r in rows], **meta)


@bp.get("/leave-requests/<int:request_id>")
@requires_business_access("owner", "manager")
def get_leave_request(business_id: int, request_id: int):
    from payroll_api.models.leave import LeaveRequest
    from payroll_api.services.lookups import get_scoped

    r = get_scoped(LeaveRequest, business_id, request_id, "Leave request")
    return ok(_request_row(r, with_actions=True))


@bp.post("/staff/<int:staff_id>/leave-requests")
@requires_business_access()
def submit_leave_request(business_id: int, staff_id: int):
    staff = get_staff(business_id, staff_id)
    uid = current_user_id()
    # plain staff users may only apply for themselves
    if not (current_roles() & MANAGING_ROLES) and staff.user_id != uid:
        raise Forbidden("You can only request leave for yourself")

    j = body()
    r = svc.submit_leave_request(
        business_id,
        staff_id,
        leave_type_id=parse_int(j.get("leave_type_id"), "leave_type_id", required=True),
        start_date=parse_date(j.get("start_date"), "start_date", required=True),
        end_date=parse_date(j.get("end_date"), "end_date", required=True),
        number_of_days=j.get("number_of_days"),
        reason=j.get("reason"),
        is_half_day=parse_bool(j.get("is_half_day")) or False,
        half_day_type=j.get("half_day_type"),
        requested_by=uid,
    )
    return ok(_request_row(r), 201)


@bp.put("/leave-requests/<int:request_id>/approve")
@requires_business_access("owner")
def approve_leave_request(business_id: int, request_id: int):
    r = svc.approve_leave_request(business_id, request_id, current_user_id(), comment=body().get("comment"))
    return ok(_request_row(r))


@bp.put("/leave-requests/<int:request_id>/reject")
@requires_business_access("owner")
def reject_leave_request(business_id: int, request_id: int):
    r = svc.reject_leave_request(business_id, request_id, current_user_id(), reason=body().get("reason"))
    return ok(_request_row(r))


@bp.put("/leave-requests/<int:request_id>/cancel")
@requires_business_access()
def cancel_leave_request(business_id: int, request_id: int):
    r = svc.cancel_leave_request(business_id, request_id, current_user_id())
    return ok(_request_row(r))
