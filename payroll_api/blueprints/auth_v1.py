from datetime import datetime

from flask import Blueprint, current_app
from flask_jwt_extended import create_access_token, create_refresh_token, jwt_required

from payroll_api.common.auth import current_user_id
from payroll_api.common.http import ok, fail, iso
from payroll_api.common.parsing import body
from payroll_api.extensions import db
from payroll_api.models.user import User

bp = Blueprint("auth_v1", __name__, url_prefix="/api/v1/auth")


def _user_row(u: User):
    return {
        "id": u.id,
        "email": u.email,
        "full_name": u.full_name,
        "business_id": u.business_id,
        "roles": u.role_codes(),
        "last_login_at": iso(u.last_login_at),
    }


def _access_token(u: User) -> str:
    # roles + home business ride in the token so route gates skip the DB
    return create_access_token(
        identity=str(u.id),
        additional_claims={"roles": u.role_codes(), "business_id": u.business_id, "name": u.full_name},
    )


@bp.post("/login")
def login():
    j = body()
    email = (j.get("email") or "").strip().lower()
    u = User.query.filter_by(email=email).first() if email else None
    if u is None or not u.check_password(j.get("password") or ""):
        current_app.logger.info("failed login for %s", email or "<blank>")
        return fail("Invalid credentials", status=401)
    if not u.is_active:
        return fail("Account is disabled", status=403)

    u.last_login_at = datetime.utcnow()
    db.session.commit()

    return ok({
        "access": _access_token(u),
        "refresh": create_refresh_token(identity=str(u.id)),
        "user": _user_row(u),
    })


@bp.post("/refresh")
@jwt_required(refresh=True)
def refresh():
    uid = current_user_id()
    u = db.session.get(User, uid) if uid else None
    if u is None or not u.is_active:
        return fail("Unauthorized", status=401)
    return ok({"access": _access_token(u)})


@bp.get("/me")
@jwt_required()
def me():
    uid = current_user_id()
    u = db.session.get(User, uid) if uid else None
    if u is None:
        return fail("User not found", status=404)
    return ok(_user_row(u))
