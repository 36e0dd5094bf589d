# payroll_api/services/salary_ledger.py
"""
Versioned salary components.

A component is never edited after insert. ``replace_active_salary`` closes the
current version (``effective_to`` = new ``effective_from``, ``is_active`` off)
and appends the new one in the same transaction, so "salary as of D" is a
plain range scan over ``[effective_from, effective_to)``.
"""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from payroll_api.common.errors import InvalidRange, InvalidState, ValidationFailed
from payroll_api.common.money import to_paisa, to_rate
from payroll_api.common.parsing import parse_choice, parse_int
from payroll_api.extensions import db
from payroll_api.models.payroll.salary import MONEY_FIELDS, PAYOUT_FREQUENCIES, SalaryComponent
from payroll_api.services.employment import get_profile

log = logging.getLogger(__name__)


def _build_component(fields: dict) -> SalaryComponent:
    c = SalaryComponent()
    for f in MONEY_FIELDS:
        setattr(c, f, to_paisa(fields.get(f), f, default=0))

    c.payout_frequency = parse_choice(fields.get("payout_frequency"), "payout_frequency",
                                      PAYOUT_FREQUENCIES, default="monthly")
    c.payout_day_of_month = parse_int(fields.get("payout_day_of_month"), "payout_day_of_month",
                                      lo=1, hi=31) or 1
    c.weekly_work_hours = parse_int(fields.get("weekly_work_hours"), "weekly_work_hours", lo=1, hi=168) or 48

    multiplier = fields.get("overtime_rate_multiplier")
    c.overtime_rate_multiplier = (
        to_rate(multiplier, "overtime_rate_multiplier") if multiplier is not None else Decimal("1.50")
    )
    if c.overtime_rate_multiplier >= Decimal("100"):
        raise ValidationFailed("overtime_rate_multiplier must be < 100")
    return c


def active_salary(profile_id: int) -> Optional[SalaryComponent]:
    return SalaryComponent.query.filter_by(employment_profile_id=profile_id, is_active=True).first()


def salary_as_of(profile_id: int, on_date: date) -> Optional[SalaryComponent]:
    return (
        SalaryComponent.query
        .filter(
            SalaryComponent.employment_profile_id == profile_id,
            SalaryComponent.effective_from <= on_date,
            or_(SalaryComponent.effective_to.is_(None), SalaryComponent.effective_to > on_date),
        )
        .order_by(SalaryComponent.effective_from.desc(), SalaryComponent.id.desc())
        .first()
    )


def salary_history(profile_id: int):
    return (
        SalaryComponent.query
        .filter_by(employment_profile_id=profile_id)
        .order_by(SalaryComponent.effective_from.desc(), SalaryComponent.id.desc())
        .all()
    )


def replace_active_salary(business_id: int, staff_id: int, fields: dict, effective_from: date,
                          created_by: int | None = None) -> SalaryComponent:
    profile = get_profile(business_id, staff_id)
    if profile.is_frozen:
        raise InvalidState(f"Employment profile is {profile.status}; salary can no longer change")
    if effective_from is None:
        raise ValidationFailed("effective_from is required")

    new = _build_component(fields or {})
    new.business_id = business_id
    new.employment_profile_id = profile.id
    new.effective_from = effective_from
    new.is_active = True
    new.created_by = created_by

    try:
        current = (
            SalaryComponent.query
            .filter_by(employment_profile_id=profile.id, is_active=True)
            .with_for_update()
            .first()
        )
        if current is not None:
            if effective_from < current.effective_from:
                raise InvalidRange(
                    "effective_from cannot precede the active component's effective_from "
                    f"({current.effective_from.isoformat()})"
                )
            current.effective_to = effective_from
            current.is_active = False
            # the partial unique index must see the old row closed before the insert
            db.session.flush()

        db.session.add(new)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        log.warning("concurrent salary update for profile %s", profile.id)
        raise InvalidState("Salary was changed concurrently, retry the update")
    except Exception:
        db.session.rollback()
        raise

    log.info("salary component %s active for profile %s from %s (replaced %s)",
             new.id, profile.id, effective_from, current.id if current else None)
    return new
