# payroll_api/models/security.py
from datetime import datetime

from payroll_api.extensions import db

# admin: platform operator, sees every business
# owner: runs one salon, approves leave and payroll
# manager: day-to-day reads and balance syncs
# staff: self-service only
ROLE_CODES = ("admin", "owner", "manager", "staff")


class Role(db.Model):
    __tablename__ = "roles"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(50), unique=True, nullable=False)
    label = db.Column(db.String(120))

    grants = db.relationship("UserRole", back_populates="role", cascade="all, delete-orphan",
                             passive_deletes=True)

    def __repr__(self) -> str:
        return f"<Role {self.code}>"


class UserRole(db.Model):
    __tablename__ = "user_roles"

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    role_id = db.Column(db.Integer, db.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)
    granted_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    role = db.relationship("Role", back_populates="grants")
    user = db.relationship("User", back_populates="grants")


def ensure_role(code: str) -> Role:
    if code not in ROLE_CODES:
        raise ValueError(f"unknown role code: {code}")
    role = Role.query.filter_by(code=code).first()
    if role is None:
        role = Role(code=code, label=code.title())
        db.session.add(role)
        db.session.flush()
    return role


def grant_role(user, code: str) -> None:
    """Attach ``code`` to ``user`` if not already held. Caller commits."""
    role = ensure_role(code)
    if UserRole.query.filter_by(user_id=user.id, role_id=role.id).first() is None:
        db.session.add(UserRole(user_id=user.id, role_id=role.id))
        db.session.flush()
