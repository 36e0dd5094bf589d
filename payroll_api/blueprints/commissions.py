from __future__ import annotations

from datetime import datetime

from flask import Blueprint, request

from payroll_api.common.auth import current_user_id, requires_business_access
from payroll_api.common.errors import InvalidRange, ValidationFailed
from payroll_api.common.http import ok, iso, num
from payroll_api.common.parsing import body, paginate, parse_bool, parse_date, parse_int
from payroll_api.models.payroll.commission import CommissionStructure
from payroll_api.services import commission as svc
from payroll_api.services.lookups import get_scoped, get_staff

bp = Blueprint("commissions", __name__, url_prefix="/api/v1/businesses/<int:business_id>")


# -------- helpers ----------
def _structure_row(s):
    return {
        "id": s.id,
        "business_id": s.business_id,
        "name": s.name,
        "type": s.type,
        "service_category": s.service_category,
        "base_flat_amount_paisa": s.base_flat_amount_paisa,
        "base_percentage": num(s.base_percentage),
        "tiers": s.tiers or [],
        "is_active": s.is_active,
        "assigned_staff_count": s.assigned_staff_count,
        "created_at": iso(s.created_at),
        "updated_at": iso(s.updated_at),
    }


def _parse_dt(v, field):
    if v in (None, ""):
        return None
    try:
        return datetime.fromisoformat(str(v).replace("Z", "+00:00")).replace(tzinfo=None)
    except ValueError:
        raise ValidationFailed(f"{field} must be an ISO-8601 datetime")


# -------- structures ----------
@bp.get("/commission-structures")
@requires_business_access("owner", "manager")
def list_structures(business_id: int):
    active_only = parse_bool(request.args.get("active")) or False
    rows, meta = paginate(svc.list_structures(business_id, active_only=active_only))
    return ok([_structure_row(s) for s in rows], **meta)


@bp.get("/commission-structures/<int:structure_id>")
@requires_business_access("owner", "manager")
def get_structure(business_id: int, structure_id: int):
    return ok(_structure_row(get_scoped(CommissionStructure, business_id, structure_id, "Commission structure")))


@bp.post("/commission-structures")
@requires_business_access("owner")
def create_structure(business_id: int):
    return ok(_structure_row(svc.create_structure(business_id, body())), 201)


@bp.patch("/commission-structures/<int:structure_id>")
@requires_business_access("owner")
def update_structure(business_id: int, structure_id: int):
    return ok(_structure_row(svc.update_structure(business_id, structure_id, body())))


@bp.post("/commission-structures/<int:structure_id>/deactivate")
@requires_business_access("owner")
def deactivate_structure(business_id: int, structure_id: int):
    return ok(_structure_row(svc.deactivate_structure(business_id, structure_id)))


@bp.delete("/commission-structures/<int:structure_id>")
@requires_business_access("owner")
def delete_structure(business_id: int, structure_id: int):
    svc.delete_structure(business_id, structure_id)
    return ok({"id": structure_id, "deleted": True})


@bp.post("/commission-structures/<int:structure_id>/evaluate")
@requires_business_access("owner", "manager")
def evaluate(business_id: int, structure_id: int):
    """Preview the commission a structure yields for one service value."""
    s = get_scoped(CommissionStructure, business_id, structure_id, "Commission structure")
    j = body()
    amount = svc.evaluate_commission(s, j.get("service_value_paisa"), j.get("service_category"))
    return ok({"structure_id": s.id, "service_value_paisa": j.get("service_value_paisa"),
               "commission_paisa": amount})


# -------- assignment ----------
@bp.put("/staff/<int:staff_id>/commission-structure")
@requires_business_access("owner")
def assign(business_id: int, staff_id: int):
    structure_id = parse_int(body().get("structure_id"), "structure_id", required=True)
    a = svc.assign_structure(business_id, structure_id, staff_id, assigned_by=current_user_id())
    return ok({"staff_id": a.staff_id, "structure_id": a.structure_id, "assigned_at": iso(a.assigned_at)})


@bp.delete("/staff/<int:staff_id>/commission-structure")
@requires_business_access("owner")
def unassign(business_id: int, staff_id: int):
    svc.unassign_structure(business_id, staff_id)
    return ok({"staff_id": staff_id, "structure_id": None})


# -------- revenue feed ----------
@bp.post("/completed-services")
@requires_business_access("owner", "manager")
def record_service(business_id: int):
    j = body()
    svc_row = svc.record_completed_service(
        business_id,
        parse_int(j.get("staff_id"), "staff_id", required=True),
        j.get("service_value_paisa"),
        service_category=j.get("service_category"),
        service_name=j.get("service_name"),
        completed_at=_parse_dt(j.get("completed_at"), "completed_at"),
        external_ref=j.get("external_ref"),
    )
    return ok({
        "id": svc_row.id,
        "staff_id": svc_row.staff_id,
        "service_name": svc_row.service_name,
        "service_category": svc_row.service_category,
        "service_value_paisa": svc_row.service_value_paisa,
        "completed_at": iso(svc_row.completed_at),
        "external_ref": svc_row.external_ref,
    }, 201)


@bp.get("/staff/<int:staff_id>/commission")
@requires_business_access("owner", "manager")
def staff_commission(business_id: int, staff_id: int):
    get_staff(business_id, staff_id)
    start = parse_date(request.args.get("start"), "start")
    end = parse_date(request.args.get("end"), "end") or datetime.utcnow().date()
    if start and start > end:
        raise InvalidRange("start must be <= end")
    amount, count = svc.commission_for_staff(staff_id, start, end)
    return ok({"staff_id": staff_id, "start": iso(start), "end": iso(end),
               "services": count, "commission_paisa": amount})
