from __future__ import annotations

from flask import Blueprint, current_app, request

from payroll_api.common.auth import current_user_id, requires_business_access
from payroll_api.common.http import ok, iso
from payroll_api.common.parsing import body, paginate, parse_date
from payroll_api.services import exits as svc

bp = Blueprint("exits", __name__, url_prefix="/api/v1/businesses/<int:business_id>")


def _exit_row(x):
    return {
        "id": x.id,
        "business_id": x.business_id,
        "staff_id": x.staff_id,
        "staff_name": x.staff.name if x.staff else None,
        "employment_profile_id": x.employment_profile_id,
        "exit_type": x.exit_type,
        "exit_reason": x.exit_reason,
        "resignation_date": iso(x.resignation_date),
        "last_working_date": iso(x.last_working_date),
        "notice_period_served": x.notice_period_served,
        "notice_period_shortfall": x.notice_period_shortfall,
        "pending_commissions_paisa": x.pending_commissions_paisa,
        "pending_tips_paisa": x.pending_tips_paisa,
        "leave_encashment_paisa": x.leave_encashment_paisa,
        "net_settlement_paisa": x.net_settlement_paisa,
        "settlement_status": x.settlement_status,
        "settled_at": iso(x.settled_at),
        "created_by": x.created_by,
        "created_at": iso(x.created_at),
    }


@bp.get("/exit-records")
@requires_business_access("owner", "manager")
def list_exits(business_id: int):
    rows, meta = paginate(svc.list_exits(business_id, settlement_status=request.args.get("status") or None))
    return ok([_exit_row(x) for x in rows], **meta)


@bp.post("/staff/<int:staff_id>/exit")
@requires_business_access("owner")
def record_exit(business_id: int, staff_id: int):
    j = body()
    rec = svc.record_exit(
        business_id,
        staff_id,
        exit_type=j.get("exit_type"),
        resignation_date=parse_date(j.get("resignation_date"), "resignation_date", required=True),
        last_working_date=parse_date(j.get("last_working_date"), "last_working_date", required=True),
        exit_reason=j.get("exit_reason"),
        notice_period_served=j.get("notice_period_served"),
        notice_period_shortfall=j.get("notice_period_shortfall"),
        pending_tips_paisa=j.get("pending_tips_paisa"),
        created_by=current_user_id(),
    )
    current_app.logger.info("exit recorded: business=%s staff=%s type=%s", business_id, staff_id, rec.exit_type)
    return ok(_exit_row(rec), 201)


@bp.post("/exit-records/<int:exit_id>/complete")
@requires_business_access("owner")
def complete_settlement(business_id: int, exit_id: int):
    return ok(_exit_row(svc.complete_settlement(business_id, exit_id)))
