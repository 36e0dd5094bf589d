from datetime import datetime

from werkzeug.security import check_password_hash, generate_password_hash

from payroll_api.extensions import db


class User(db.Model):
    """Login identity. Owners, managers and staff belong to one home business; admins to none."""
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, index=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(20), default="active")  # active|disabled
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id", ondelete="SET NULL"), nullable=True)
    last_login_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    grants = db.relationship("UserRole", back_populates="user", cascade="all, delete-orphan",
                             passive_deletes=True, lazy="selectin")

    def set_password(self, raw: str):
        self.password_hash = generate_password_hash(raw)

    def check_password(self, raw: str) -> bool:
        return check_password_hash(self.password_hash, raw)

    @property
    def is_active(self) -> bool:
        return (self.status or "active") == "active"

    def role_codes(self):
        return sorted(g.role.code for g in self.grants)
