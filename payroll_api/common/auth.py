# payroll_api/common/auth.py
from __future__ import annotations

from functools import wraps
from typing import Optional, Set

from flask import g
from flask_jwt_extended import jwt_required, get_jwt, get_jwt_identity

from payroll_api.common.http import fail
from payroll_api.extensions import db
from payroll_api.models.user import User
from payroll_api.models.security import Role, UserRole


def _roles_from_db(user_id: int) -> Set[str]:
    rows = (
        db.session.query(Role.code)
        .join(UserRole, UserRole.role_id == Role.id)
        .filter(UserRole.user_id == user_id)
        .all()
    )
    return {code for (code,) in rows}


def current_user_id() -> Optional[int]:
    try:
        uid = get_jwt_identity()
        return int(uid) if uid is not None else None
    except (TypeError, ValueError):
        return None


def current_roles() -> Set[str]:
    """Roles the gate resolved for this request."""
    return getattr(g, "roles", None) or set()


def _caller(uid: int):
    """
    (roles, home business id) for the token holder.

    Tokens issued at login carry both as claims; older or hand-made tokens
    without them are resolved from the users / user_roles tables.
    """
    claims = get_jwt() or {}
    roles = set(claims.get("roles") or [])
    home = claims.get("business_id")
    if roles and ("admin" in roles or home is not None):
        return roles, home

    user = db.session.get(User, uid)
    if user is None or not user.is_active:
        return None, None
    return roles or _roles_from_db(user.id), user.business_id


def requires_business_access(*codes: str):
    """
    Gate for ``/businesses/<business_id>/...`` routes.

    admin: always allowed.
    others: the route's business must be the caller's home business, and
    when ``codes`` are given the caller must hold one of them.
    """
    def outer(fn):
        @wraps(fn)
        @jwt_required()
        def inner(*args, **kwargs):
            uid = current_user_id()
            roles, home = _caller(uid) if uid is not None else (None, None)
            if roles is None:
                return fail("Unauthorized", status=401)
            g.roles = roles

            if "admin" not in roles:
                target = kwargs.get("business_id")
                if target is not None and home != target:
                    return fail("You do not have access to this business", status=403)
                if codes and roles.isdisjoint(codes):
                    return fail("Forbidden", status=403)
            return fn(*args, **kwargs)
        return inner
    return outer
