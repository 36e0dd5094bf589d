# payroll_api/services/commission.py
"""
Commission structures: flat, percentage and tiered rules over service value.

Tier tables are checked when a structure is saved (sorted, contiguous,
non-overlapping) and again when evaluated: a value that lands in zero or
several tiers raises ``CommissionConfigError`` instead of picking one.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from sqlalchemy.exc import IntegrityError

from payroll_api.common.errors import (
    AssignedStructureConflict, CommissionConfigError, DuplicateConflict, InvalidState, NotFound,
    ValidationFailed,
)
from payroll_api.common.money import percent_of, to_paisa, to_rate
from payroll_api.common.parsing import parse_bool, parse_choice
from payroll_api.extensions import db
from payroll_api.models.payroll.commission import (
    COMMISSION_TYPES, CommissionStructure, CompletedService, StaffCommissionAssignment,
)
from payroll_api.services.lookups import get_scoped, get_staff

log = logging.getLogger(__name__)


def _json_rate(d: Decimal):
    return int(d) if d == d.to_integral_value() else float(d)


def validate_tiers(tiers) -> list:
    """
    Normalise a tier table to ``[{"min": int, "max": int|None, "rate": num}, ...]``
    sorted by ``min``. Only the last tier may leave ``max`` open.
    """
    if not isinstance(tiers, list) or not tiers:
        raise ValidationFailed("tiered structures need at least one tier")

    out = []
    for i, t in enumerate(tiers):
        if not isinstance(t, dict):
            raise ValidationFailed(f"tiers[{i}] must be an object")
        lo = to_paisa(t.get("min"), f"tiers[{i}].min")
        hi = t.get("max")
        if hi is not None:
            hi = to_paisa(hi, f"tiers[{i}].max")
            if hi < lo:
                raise ValidationFailed(f"tiers[{i}].max must be >= min")
        rate = to_rate(t.get("rate"), f"tiers[{i}].rate")
        if rate > 100:
            raise ValidationFailed(f"tiers[{i}].rate must be <= 100")
        out.append({"min": lo, "max": hi, "rate": _json_rate(rate)})

    out.sort(key=lambda t: t["min"])
    for prev, nxt in zip(out, out[1:]):
        if prev["max"] is None:
            raise ValidationFailed("only the last tier may have an open max")
        if nxt["min"] <= prev["max"]:
            raise ValidationFailed(f"tiers overlap at {nxt['min']}")
        if nxt["min"] != prev["max"] + 1:
            raise ValidationFailed(f"gap between tiers: {prev['max']} .. {nxt['min']}")
    return out


def evaluate_commission(structure, service_value, service_category: str | None = None) -> int:
    value = to_paisa(service_value, "service_value")

    if structure.service_category and service_category != structure.service_category:
        return 0

    if structure.type == "flat":
        return int(structure.base_flat_amount_paisa or 0)

    if structure.type == "percentage":
        return percent_of(value, structure.base_percentage or 0)

    if structure.type == "tiered":
        matches = [
            t for t in (structure.tiers or [])
            if t["min"] <= value and (t.get("max") is None or value <= t["max"])
        ]
        if len(matches) != 1:
            raise CommissionConfigError(
                f"service value {value} falls in {len(matches)} tiers of structure "
                f"'{getattr(structure, 'name', None) or structure.id}'",
                payload={"structure_id": getattr(structure, "id", None), "service_value": value},
            )
        return percent_of(value, matches[0]["rate"])

    raise CommissionConfigError(f"unknown commission type: {structure.type}")


# ---------- structures ----------

def _apply_structure_fields(s: CommissionStructure, data: dict) -> None:
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationFailed("name is required")
        s.name = name
    if "type" in data:
        s.type = parse_choice(data["type"], "type", COMMISSION_TYPES, default=s.type)
    if "service_category" in data:
        s.service_category = (data.get("service_category") or "").strip() or None
    if "base_flat_amount_paisa" in data:
        v = data["base_flat_amount_paisa"]
        s.base_flat_amount_paisa = None if v is None else to_paisa(v, "base_flat_amount_paisa")
    if "base_percentage" in data:
        v = data["base_percentage"]
        if v is None:
            s.base_percentage = None
        else:
            rate = to_rate(v, "base_percentage")
            if rate > 100:
                raise ValidationFailed("base_percentage must be <= 100")
            s.base_percentage = rate
    if "tiers" in data:
        s.tiers = validate_tiers(data["tiers"]) if data["tiers"] else []
    if "is_active" in data and data["is_active"] is not None:
        s.is_active = parse_bool(data["is_active"])

    if not s.type:
        raise ValidationFailed("type is required")
    if s.type == "flat" and s.base_flat_amount_paisa is None:
        raise ValidationFailed("flat structures need base_flat_amount_paisa")
    if s.type == "percentage" and s.base_percentage is None:
        raise ValidationFailed("percentage structures need base_percentage")
    if s.type == "tiered":
        s.tiers = validate_tiers(s.tiers)


def _name_taken(business_id: int, name: str, exclude_id: int | None = None) -> bool:
    with db.session.no_autoflush:
        q = CommissionStructure.query.filter_by(business_id=business_id, name=name)
        if exclude_id:
            q = q.filter(CommissionStructure.id != exclude_id)
        return db.session.query(q.exists()).scalar()


def create_structure(business_id: int, data: dict) -> CommissionStructure:
    s = CommissionStructure(business_id=business_id, tiers=[], is_active=True)
    if not (data.get("name") or "").strip():
        raise ValidationFailed("name is required")
    _apply_structure_fields(s, data)

    if _name_taken(business_id, s.name):
        raise DuplicateConflict(f"Commission structure '{s.name}' already exists")
    db.session.add(s)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateConflict(f"Commission structure '{s.name}' already exists")
    return s


def update_structure(business_id: int, structure_id: int, data: dict) -> CommissionStructure:
    s = get_scoped(CommissionStructure, business_id, structure_id, "Commission structure")
    try:
        _apply_structure_fields(s, data)
    except Exception:
        db.session.rollback()
        raise
    if _name_taken(business_id, s.name, exclude_id=s.id):
        db.session.rollback()
        raise DuplicateConflict(f"Commission structure '{s.name}' already exists")
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateConflict(f"Commission structure '{s.name}' already exists")
    return s


def deactivate_structure(business_id: int, structure_id: int) -> CommissionStructure:
    s = get_scoped(CommissionStructure, business_id, structure_id, "Commission structure")
    s.is_active = False
    db.session.commit()
    return s


def delete_structure(business_id: int, structure_id: int) -> None:
    s = get_scoped(CommissionStructure, business_id, structure_id, "Commission structure")
    assigned = s.assigned_staff_count
    if assigned > 0:
        raise AssignedStructureConflict(
            f"Cannot delete structure assigned to {assigned} staff member(s). Deactivate it instead.",
            payload={"assigned_staff_count": assigned},
        )
    db.session.delete(s)
    db.session.commit()
    log.info("commission structure %s deleted (business %s)", structure_id, business_id)


def list_structures(business_id: int, active_only: bool = False):
    q = CommissionStructure.query.filter_by(business_id=business_id)
    if active_only:
        q = q.filter(CommissionStructure.is_active.is_(True))
    return q.order_by(CommissionStructure.created_at.desc(), CommissionStructure.id.desc()).all()


# ---------- assignment ----------

def assign_structure(business_id: int, structure_id: int, staff_id: int,
                     assigned_by: int | None = None) -> StaffCommissionAssignment:
    get_staff(business_id, staff_id)
    s = get_scoped(CommissionStructure, business_id, structure_id, "Commission structure")
    if not s.is_active:
        raise InvalidState("Only active commission structures can be assigned")

    a = StaffCommissionAssignment.query.filter_by(staff_id=staff_id).first()
    if a is None:
        a = StaffCommissionAssignment(business_id=business_id, staff_id=staff_id)
        db.session.add(a)
    a.structure_id = s.id
    a.assigned_by = assigned_by
    a.assigned_at = datetime.utcnow()
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateConflict("Staff member was assigned concurrently, retry")
    return a


def unassign_structure(business_id: int, staff_id: int) -> None:
    a = StaffCommissionAssignment.query.filter_by(business_id=business_id, staff_id=staff_id).first()
    if a is None:
        raise NotFound("Staff member has no commission structure assigned")
    db.session.delete(a)
    db.session.commit()


def assigned_structure(staff_id: int):
    a = StaffCommissionAssignment.query.filter_by(staff_id=staff_id).first()
    return a.structure if a else None


# ---------- revenue feed ----------

def record_completed_service(business_id: int, staff_id: int, service_value_paisa,
                             service_category: str | None = None, service_name: str | None = None,
                             completed_at: datetime | None = None,
                             external_ref: str | None = None) -> CompletedService:
    get_staff(business_id, staff_id)
    svc = CompletedService(
        business_id=business_id,
        staff_id=staff_id,
        service_name=service_name,
        service_category=(service_category or None),
        service_value_paisa=to_paisa(service_value_paisa, "service_value_paisa"),
        completed_at=completed_at or datetime.utcnow(),
        external_ref=external_ref,
    )
    db.session.add(svc)
    db.session.commit()
    return svc


def commission_for_staff(staff_id: int, start: date | None, end: date) -> tuple[int, int]:
    """
    Commission earned by a staff member on services completed in
    ``[start, end]`` (whole days, ``start`` None = since the beginning).

    Returns ``(amount_paisa, service_count)``.
    """
    structure = assigned_structure(staff_id)
    if structure is None or not structure.is_active:
        return 0, 0

    q = CompletedService.query.filter(
        CompletedService.staff_id == staff_id,
        CompletedService.business_id == structure.business_id,
        CompletedService.completed_at < datetime.combine(end + timedelta(days=1), time.min),
    )
    if start is not None:
        q = q.filter(CompletedService.completed_at >= datetime.combine(start, time.min))

    total = 0
    count = 0
    for svc in q.order_by(CompletedService.completed_at.asc()).all():
        total += evaluate_commission(structure, svc.service_value_paisa, svc.service_category)
        count += 1
    return total, count
