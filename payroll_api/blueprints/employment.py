from __future__ import annotations

from flask import Blueprint, current_app, request

from payroll_api.common.auth import current_user_id, requires_business_access
from payroll_api.common.http import ok, iso, num
from payroll_api.common.parsing import body, paginate, parse_bool, parse_date
from payroll_api.common.errors import ValidationFailed
from payroll_api.models.payroll.salary import MONEY_FIELDS
from payroll_api.services import employment as svc
from payroll_api.services import salary_ledger

bp = Blueprint("employment", __name__, url_prefix="/api/v1/businesses/<int:business_id>")

# -------- helpers ----------
def _profile_row(p):
    return {
        "id": p.id,
        "business_id": p.business_id,
        "staff_id": p.staff_id,
        "staff_name": p.staff.name if p.staff else None,
        "employee_code": p.employee_code,
        "employment_type": p.employment_type,
        "compensation_model": p.compensation_model,
        "status": p.status,
        "joining_date": iso(p.joining_date),
        "probation_end_date": iso(p.probation_end_date),
        "contract_start_date": iso(p.contract_start_date),
        "contract_end_date": iso(p.contract_end_date),
        "notice_period_days": p.notice_period_days,
        "preferred_payout_method": p.preferred_payout_method,
        "bank_account_name": p.bank_account_name,
        "bank_account_number": p.bank_account_number,
        "bank_ifsc_code": p.bank_ifsc_code,
        "bank_name": p.bank_name,
        "upi_id": p.upi_id,
        "pan_number": p.pan_number,
        "aadhar_number": p.aadhar_number,
        "pf_number": p.pf_number,
        "esi_number": p.esi_number,
        "onboarding_checklist": p.onboarding_checklist,
        "onboarding_status": p.onboarding_status,
        "created_at": iso(p.created_at),
        "updated_at": iso(p.updated_at),
    }


def _salary_row(c):
    if c is None:
        return None
    row = {f: getattr(c, f) for f in MONEY_FIELDS}
    row.update({
        "id": c.id,
        "employment_profile_id": c.employment_profile_id,
        "gross_paisa": c.gross_paisa,
        "deductions_paisa": c.deductions_paisa,
        "payout_frequency": c.payout_frequency,
        "payout_day_of_month": c.payout_day_of_month,
        "overtime_rate_multiplier": num(c.overtime_rate_multiplier),
        "weekly_work_hours": c.weekly_work_hours,
        "effective_from": iso(c.effective_from),
        "effective_to": iso(c.effective_to),
        "is_active": c.is_active,
        "created_by": c.created_by,
        "created_at": iso(c.created_at),
    })
    return row


# -------- profiles ----------
@bp.get("/employment-profiles")
@requires_business_access("owner", "manager")
def list_profiles(business_id: int):
    rows = svc.list_profiles(
        business_id,
        status=request.args.get("status") or None,
        onboarding_status=request.args.get("onboarding_status") or None,
    )
    rows, meta = paginate(rows)
    return ok([_profile_row(p) for p in rows], **meta)


@bp.get("/staff/with-salary")
@requires_business_access("owner", "manager")
def staff_with_salary(business_id: int):
    out = []
    for s, profile, comp in svc.staff_with_salary(business_id):
        out.append({
            "id": s.id,
            "name": s.name,
            "email": s.email,
            "phone": s.phone,
            "employment_profile": _profile_row(profile) if profile else None,
            "salary_component": _salary_row(comp),
        })
    return ok(out)


@bp.get("/staff/<int:staff_id>/employment-profile")
@requires_business_access("owner", "manager")
def get_profile(business_id: int, staff_id: int):
    return ok(_profile_row(svc.get_profile(business_id, staff_id)))


@bp.post("/staff/<int:staff_id>/employment-profile")
@requires_business_access("owner")
def create_profile(business_id: int, staff_id: int):
    p = svc.create_employment_profile(business_id, staff_id, body())
    current_app.logger.info("employment profile created: business=%s staff=%s by user=%s",
                            business_id, staff_id, current_user_id())
    return ok(_profile_row(p), 201)


@bp.patch("/staff/<int:staff_id>/employment-profile")
@requires_business_access("owner")
def update_profile(business_id: int, staff_id: int):
    return ok(_profile_row(svc.update_profile(business_id, staff_id, body())))


@bp.put("/staff/<int:staff_id>/employment-profile/status")
@requires_business_access("owner")
def set_status(business_id: int, staff_id: int):
    status = (body().get("status") or "").strip()
    if not status:
        raise ValidationFailed("status is required")
    return ok(_profile_row(svc.set_profile_status(business_id, staff_id, status)))


@bp.patch("/staff/<int:staff_id>/onboarding/<category>/<task_id>")
@requires_business_access("owner", "manager")
def update_onboarding_task(business_id: int, staff_id: int, category: str, task_id: str):
    j = body()
    if "completed" not in j:
        raise ValidationFailed("completed is required")
    p = svc.update_onboarding_task(business_id, staff_id, category, task_id, parse_bool(j["completed"]))
    return ok(_profile_row(p))


# -------- salary ----------
@bp.put("/staff/<int:staff_id>/salary-component")
@requires_business_access("owner")
def replace_salary(business_id: int, staff_id: int):
    j = body()
    effective_from = parse_date(j.get("effective_from"), "effective_from", required=True)
    comp = salary_ledger.replace_active_salary(business_id, staff_id, j, effective_from,
                                               created_by=current_user_id())
    return ok(_salary_row(comp))


@bp.get("/staff/<int:staff_id>/salary-component")
@requires_business_access("owner", "manager")
def get_salary(business_id: int, staff_id: int):
    p = svc.get_profile(business_id, staff_id)
    as_of = parse_date(request.args.get("as_of"), "as_of")
    comp = salary_ledger.salary_as_of(p.id, as_of) if as_of else salary_ledger.active_salary(p.id)
    return ok(_salary_row(comp))


@bp.get("/staff/<int:staff_id>/salary-history")
@requires_business_access("owner")
def salary_history(business_id: int, staff_id: int):
    p = svc.get_profile(business_id, staff_id)
    return ok([_salary_row(c) for c in salary_ledger.salary_history(p.id)])
