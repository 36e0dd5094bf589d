# payroll_api/services/employment.py
"""
Employment profile store.

One profile per (staff, business). A profile is created by onboarding, moves
between ``active``, ``on_leave`` and ``notice_period`` through
``set_profile_status`` and only reaches ``resigned`` / ``terminated`` through
the exit handler, after which it is frozen.
"""
from __future__ import annotations

import copy
import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError

from payroll_api.common.errors import DuplicateConflict, InvalidState, NotFound, ValidationFailed
from payroll_api.common.parsing import parse_choice, parse_date, parse_int
from payroll_api.extensions import db
from payroll_api.models.payroll.employment import (
    COMPENSATION_MODELS,
    EMPLOYMENT_TYPES,
    EmploymentProfile,
    ONBOARDING_STATUSES,
    PAYOUT_METHODS,
    PROFILE_STATUSES,
)
from payroll_api.services.lookups import get_staff

log = logging.getLogger(__name__)

MUTABLE_STATUSES = ("active", "on_leave", "notice_period")

DEFAULT_ONBOARDING_CHECKLIST = {
    "documents": [
        {"id": "id_proof", "name": "ID Proof (Aadhar/PAN)", "completed": False},
        {"id": "address_proof", "name": "Address Proof", "completed": False},
        {"id": "photo", "name": "Passport Photo", "completed": False},
        {"id": "bank_details", "name": "Bank Account Details", "completed": False},
    ],
    "training": [
        {"id": "policies", "name": "Company Policies Review", "completed": False},
        {"id": "system_access", "name": "System Access Setup", "completed": False},
        {"id": "safety_training", "name": "Safety & Hygiene Training", "completed": False},
    ],
    "access": [
        {"id": "system_login", "name": "System Login Created", "completed": False},
        {"id": "uniform", "name": "Uniform Issued", "completed": False},
        {"id": "tools", "name": "Tools & Equipment Issued", "completed": False},
    ],
}

_TEXT_FIELDS = {
    "employee_code": 32,
    "bank_account_name": 120,
    "bank_account_number": 34,
    "bank_ifsc_code": 11,
    "bank_name": 120,
    "upi_id": 120,
    "pan_number": 10,
    "aadhar_number": 12,
    "pf_number": 32,
    "esi_number": 32,
}
_DATE_FIELDS = ("joining_date", "probation_end_date", "contract_start_date", "contract_end_date")


def _apply_fields(p: EmploymentProfile, data: dict) -> None:
    if "employment_type" in data:
        p.employment_type = parse_choice(data["employment_type"], "employment_type", EMPLOYMENT_TYPES,
                                         default=p.employment_type or "full_time")
    if "compensation_model" in data:
        p.compensation_model = parse_choice(data["compensation_model"], "compensation_model", COMPENSATION_MODELS,
                                            default=p.compensation_model or "commission_only")
    if "preferred_payout_method" in data:
        p.preferred_payout_method = parse_choice(data["preferred_payout_method"], "preferred_payout_method",
                                                 PAYOUT_METHODS, default=p.preferred_payout_method or "bank_transfer")
    if "notice_period_days" in data:
        p.notice_period_days = parse_int(data["notice_period_days"], "notice_period_days", required=True, lo=0)

    for f in _DATE_FIELDS:
        if f in data:
            setattr(p, f, parse_date(data[f], f))

    for f, max_len in _TEXT_FIELDS.items():
        if f in data:
            v = data[f]
            v = str(v).strip() if v is not None else ""
            if len(v) > max_len:
                raise ValidationFailed(f"{f} must be at most {max_len} characters")
            setattr(p, f, v or None)

    if p.contract_start_date and p.contract_end_date and p.contract_end_date < p.contract_start_date:
        raise ValidationFailed("contract_end_date must be >= contract_start_date")


def _onboarding_status(checklist: dict) -> str:
    tasks = [t for group in (checklist or {}).values() for t in (group or [])]
    done = sum(1 for t in tasks if t.get("completed"))
    if tasks and done == len(tasks):
        return "complete"
    if done:
        return "in_progress"
    return "pending"


def find_profile(business_id: int, staff_id: int) -> Optional[EmploymentProfile]:
    return EmploymentProfile.query.filter_by(business_id=business_id, staff_id=staff_id).first()


def get_profile(business_id: int, staff_id: int) -> EmploymentProfile:
    p = find_profile(business_id, staff_id)
    if p is None:
        raise NotFound("Employment profile not found. Create employment profile first.")
    return p


def list_profiles(business_id: int, status: str | None = None, onboarding_status: str | None = None):
    status = parse_choice(status, "status", PROFILE_STATUSES)
    onboarding_status = parse_choice(onboarding_status, "onboarding_status", ONBOARDING_STATUSES)
    q = EmploymentProfile.query.filter(EmploymentProfile.business_id == business_id)
    if status:
        q = q.filter(EmploymentProfile.status == status)
    if onboarding_status:
        q = q.filter(EmploymentProfile.onboarding_status == onboarding_status)
    return q.order_by(EmploymentProfile.created_at.desc(), EmploymentProfile.id.desc()).all()


def create_employment_profile(business_id: int, staff_id: int, data: dict | None = None) -> EmploymentProfile:
    data = data or {}
    get_staff(business_id, staff_id)

    if find_profile(business_id, staff_id) is not None:
        raise DuplicateConflict("Employment profile already exists for this staff member in this business")

    p = EmploymentProfile(
        business_id=business_id,
        staff_id=staff_id,
        employment_type="full_time",
        compensation_model="commission_only",
        preferred_payout_method="bank_transfer",
        notice_period_days=30,
        status="active",
        onboarding_checklist=copy.deepcopy(DEFAULT_ONBOARDING_CHECKLIST),
        onboarding_status="pending",
    )
    _apply_fields(p, data)

    db.session.add(p)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateConflict("Employment profile already exists for this staff member in this business")

    log.info("employment profile %s created for staff %s (business %s)", p.id, staff_id, business_id)
    return p


def update_profile(business_id: int, staff_id: int, data: dict) -> EmploymentProfile:
    p = get_profile(business_id, staff_id)
    if p.is_frozen:
        raise InvalidState(f"Employment profile is {p.status} and can no longer be edited")
    _apply_fields(p, data)
    db.session.commit()
    return p


def set_profile_status(business_id: int, staff_id: int, status: str) -> EmploymentProfile:
    p = get_profile(business_id, staff_id)
    if p.is_frozen:
        raise InvalidState(f"Employment profile is {p.status} and can no longer change status")
    if status not in MUTABLE_STATUSES:
        raise InvalidState("resigned/terminated can only be set by recording an exit")
    p.status = status
    db.session.commit()
    return p


def update_onboarding_task(business_id: int, staff_id: int, category: str, task_id: str,
                           completed: bool) -> EmploymentProfile:
    p = get_profile(business_id, staff_id)
    if p.is_frozen:
        raise InvalidState(f"Employment profile is {p.status} and can no longer be edited")

    # JSON columns are not mutation-tracked; write back a fresh document
    checklist = copy.deepcopy(p.onboarding_checklist or {})
    group = checklist.get(category)
    if group is None:
        raise NotFound(f"Onboarding category '{category}' not found")
    task = next((t for t in group if t.get("id") == task_id), None)
    if task is None:
        raise NotFound(f"Onboarding task '{task_id}' not found")
    task["completed"] = bool(completed)

    p.onboarding_checklist = checklist
    p.onboarding_status = _onboarding_status(checklist)
    db.session.commit()
    return p


def staff_with_salary(business_id: int):
    """Every staff member of the business with its profile and active salary (either may be None)."""
    from payroll_api.models.business import Staff
    from payroll_api.services.salary_ledger import active_salary

    rows = []
    for s in Staff.query.filter_by(business_id=business_id).order_by(Staff.name.asc()).all():
        profile = find_profile(business_id, s.id)
        rows.append((s, profile, active_salary(profile.id) if profile else None))
    return rows
