from datetime import datetime
from decimal import Decimal
from payroll_api.extensions import db

LEAVE_REQUEST_STATUSES = ("pending", "approved", "rejected", "cancelled")
HALF_DAY_TYPES = ("first_half", "second_half")


class LeaveType(db.Model):
    __tablename__ = "leave_types"
    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    code = db.Column(db.String(10), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)
    annual_quota = db.Column(db.Integer, nullable=False, default=12)  # days
    is_paid = db.Column(db.Boolean, nullable=False, default=True)

    allow_carry_forward = db.Column(db.Boolean, nullable=False, default=False)
    max_carry_forward_days = db.Column(db.Integer, nullable=False, default=0)

    allow_encashment = db.Column(db.Boolean, nullable=False, default=False)
    encashment_rate_pct = db.Column(db.Numeric(5, 2), nullable=False, default=100)
    min_encashment_days = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("business_id", "code", name="uq_leave_type_business_code"),
    )


class LeaveBalance(db.Model):
    __tablename__ = "leave_balances"
    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    staff_id = db.Column(db.Integer, db.ForeignKey("staff.id", ondelete="CASCADE"), nullable=False, index=True)
    leave_type_id = db.Column(db.Integer, db.ForeignKey("leave_types.id", ondelete="CASCADE"), nullable=False, index=True)
    year = db.Column(db.Integer, nullable=False)
    allocated_days = db.Column(db.Numeric(6, 2), nullable=False, default=0)
    carried_forward_days = db.Column(db.Numeric(6, 2), nullable=False, default=0)
    used_days = db.Column(db.Numeric(6, 2), nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("staff_id", "leave_type_id", "year", name="uq_staff_leave_balance_year"),
    )

    @property
    def remaining_days(self) -> Decimal:
        return (Decimal(self.allocated_days or 0) + Decimal(self.carried_forward_days or 0)
                - Decimal(self.used_days or 0))

    leave_type = db.relationship("LeaveType")


class LeaveRequest(db.Model):
    __tablename__ = "leave_requests"
    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    staff_id = db.Column(db.Integer, db.ForeignKey("staff.id", ondelete="CASCADE"), nullable=False, index=True)
    leave_type_id = db.Column(db.Integer, db.ForeignKey("leave_types.id", ondelete="RESTRICT"), nullable=False)
    leave_balance_id = db.Column(db.Integer, db.ForeignKey("leave_balances.id", ondelete="SET NULL"), nullable=True)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    is_half_day = db.Column(db.Boolean, nullable=False, default=False)
    half_day_type = db.Column(db.Enum(*HALF_DAY_TYPES, name="half_day_type_enum"), nullable=True)
    number_of_days = db.Column(db.Numeric(6, 2), nullable=False)
    reason = db.Column(db.Text)
    status = db.Column(db.Enum(*LEAVE_REQUEST_STATUSES, name="leave_request_status_enum"),
                       nullable=False, default="pending")
    # snapshot of LeaveType.is_paid at submission time
    is_paid = db.Column(db.Boolean, nullable=False)

    requested_by = db.Column(db.Integer, db.ForeignKey("users.id"))
    approved_by = db.Column(db.Integer, db.ForeignKey("users.id"))
    approved_at = db.Column(db.DateTime)
    rejection_reason = db.Column(db.Text)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint("start_date <= end_date", name="ck_leave_request_range"),
    )

    staff = db.relationship("Staff")
    leave_type = db.relationship("LeaveType")
    balance = db.relationship("LeaveBalance")


class LeaveApprovalAction(db.Model):
    __tablename__ = "leave_approval_actions"
    id = db.Column(db.Integer, primary_key=True)
    leave_request_id = db.Column(db.Integer, db.ForeignKey("leave_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    action = db.Column(db.String(20), nullable=False)  # applied|approved|rejected|cancelled
    comment = db.Column(db.Text)
    acted_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"))
    acted_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
