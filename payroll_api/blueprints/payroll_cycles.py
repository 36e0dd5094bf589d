from __future__ import annotations

from flask import Blueprint, current_app, request

from payroll_api.common.auth import current_user_id, requires_business_access
from payroll_api.common.http import ok, iso, num
from payroll_api.common.parsing import body, paginate, parse_int
from payroll_api.services import payroll as svc

bp = Blueprint("payroll_cycles", __name__, url_prefix="/api/v1/businesses/<int:business_id>")


# -------- helpers ----------
def _cycle_row(c):
    return {
        "id": c.id,
        "business_id": c.business_id,
        "period_year": c.period_year,
        "period_month": c.period_month,
        "period_start_date": iso(c.period_start_date),
        "period_end_date": iso(c.period_end_date),
        "status": c.status,
        "total_staff_count": c.total_staff_count,
        "total_gross_salary_paisa": c.total_gross_salary_paisa,
        "total_commissions_paisa": c.total_commissions_paisa,
        "total_deductions_paisa": c.total_deductions_paisa,
        "total_net_payable_paisa": c.total_net_payable_paisa,
        "processing_notes": c.processing_notes,
        "created_by": c.created_by,
        "processed_at": iso(c.processed_at),
        "processed_by": c.processed_by,
        "approved_at": iso(c.approved_at),
        "approved_by": c.approved_by,
        "paid_at": iso(c.paid_at),
        "created_at": iso(c.created_at),
    }


def _entry_row(e):
    return {
        "id": e.id,
        "payroll_cycle_id": e.payroll_cycle_id,
        "staff_id": e.staff_id,
        "staff_name": e.staff.name if e.staff else None,
        "employment_profile_id": e.employment_profile_id,
        "salary_component_id": e.salary_component_id,
        "base_salary_paisa": e.base_salary_paisa,
        "allowances_paisa": e.allowances_paisa,
        "gross_earnings_paisa": e.gross_earnings_paisa,
        "commission_paisa": e.commission_paisa,
        "unpaid_leave_days": num(e.unpaid_leave_days),
        "leave_deduction_paisa": e.leave_deduction_paisa,
        "total_deductions_paisa": e.total_deductions_paisa,
        "net_payable_paisa": e.net_payable_paisa,
        "payment_status": e.payment_status,
        "paid_at": iso(e.paid_at),
        "calc_meta": e.calc_meta,
    }


# -------- routes ----------
@bp.get("/payroll/stats")
@requires_business_access("owner", "manager")
def stats(business_id: int):
    data = svc.payroll_stats(business_id)
    data["last_payroll_date"] = iso(data["last_payroll_date"])
    return ok(data)


@bp.get("/payroll-cycles")
@requires_business_access("owner", "manager")
def list_cycles(business_id: int):
    year = parse_int(request.args.get("year"), "year")
    rows, meta = paginate(svc.list_cycles(business_id, year=year))
    return ok([_cycle_row(c) for c in rows], **meta)


@bp.post("/payroll-cycles")
@requires_business_access("owner")
def create_cycle(business_id: int):
    j = body()
    c = svc.create_cycle(business_id, j.get("year"), j.get("month"), created_by=current_user_id())
    return ok(_cycle_row(c), 201)


@bp.get("/payroll-cycles/<int:cycle_id>")
@requires_business_access("owner", "manager")
def get_cycle(business_id: int, cycle_id: int):
    return ok(_cycle_row(svc.get_cycle(business_id, cycle_id)))


@bp.get("/payroll-cycles/<int:cycle_id>/entries")
@requires_business_access("owner", "manager")
def list_entries(business_id: int, cycle_id: int):
    return ok([_entry_row(e) for e in svc.list_entries(business_id, cycle_id)])


@bp.post("/payroll-cycles/<int:cycle_id>/process")
@requires_business_access("owner")
def process_cycle(business_id: int, cycle_id: int):
    cycle, report = svc.process_cycle(business_id, cycle_id, processed_by=current_user_id())
    if report["skipped"]:
        current_app.logger.warning("payroll cycle %s processed with %d staff skipped",
                                   cycle.id, len(report["skipped"]))
    return ok({"cycle": _cycle_row(cycle), "report": report})


@bp.post("/payroll-cycles/<int:cycle_id>/approve")
@requires_business_access("owner")
def approve_cycle(business_id: int, cycle_id: int):
    return ok(_cycle_row(svc.approve_cycle(business_id, cycle_id, approved_by=current_user_id())))


@bp.post("/payroll-cycles/<int:cycle_id>/pay")
@requires_business_access("owner")
def mark_paid(business_id: int, cycle_id: int):
    return ok(_cycle_row(svc.mark_cycle_paid(business_id, cycle_id)))
