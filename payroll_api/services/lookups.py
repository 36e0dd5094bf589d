# payroll_api/services/lookups.py
from __future__ import annotations

from payroll_api.common.errors import NotFound
from payroll_api.extensions import db
from payroll_api.models.business import Business, Staff


def get_business(business_id: int) -> Business:
    b = db.session.get(Business, business_id)
    if b is None:
        raise NotFound("Business not found")
    return b


def get_staff(business_id: int, staff_id: int) -> Staff:
    """Staff member scoped to the business; another tenant's staff is NotFound."""
    s = Staff.query.filter_by(id=staff_id, business_id=business_id).first()
    if s is None:
        raise NotFound("Staff member not found in this business")
    return s


def get_scoped(model, business_id: int, obj_id: int, label: str):
    obj = model.query.filter_by(id=obj_id, business_id=business_id).first()
    if obj is None:
        raise NotFound(f"{label} not found")
    return obj
