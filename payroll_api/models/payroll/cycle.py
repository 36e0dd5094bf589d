from datetime import datetime
from payroll_api.extensions import db

CYCLE_STATUSES = ("draft", "processed", "approved", "paid")
PAYMENT_STATUSES = ("pending", "paid", "failed")


class PayrollCycle(db.Model):
    __tablename__ = "payroll_cycles"

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id", ondelete="RESTRICT"), nullable=False, index=True)
    period_year = db.Column(db.Integer, nullable=False)
    period_month = db.Column(db.Integer, nullable=False)
    period_start_date = db.Column(db.Date, nullable=False)
    period_end_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.Enum(*CYCLE_STATUSES, name="payroll_cycle_status_enum"), nullable=False, default="draft")

    total_staff_count = db.Column(db.Integer, nullable=False, default=0)
    total_gross_salary_paisa = db.Column(db.BigInteger, nullable=False, default=0)
    total_commissions_paisa = db.Column(db.BigInteger, nullable=False, default=0)
    total_deductions_paisa = db.Column(db.BigInteger, nullable=False, default=0)
    total_net_payable_paisa = db.Column(db.BigInteger, nullable=False, default=0)

    processing_notes = db.Column(db.JSON)  # {"processed": [...], "skipped": [...]}

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"))
    processed_at = db.Column(db.DateTime)
    processed_by = db.Column(db.Integer, db.ForeignKey("users.id"))
    approved_at = db.Column(db.DateTime)
    approved_by = db.Column(db.Integer, db.ForeignKey("users.id"))
    paid_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("business_id", "period_year", "period_month", name="uq_payroll_cycle_business_period"),
        db.CheckConstraint("period_month BETWEEN 1 AND 12", name="ck_payroll_cycle_month"),
    )

    entries = db.relationship("PayrollEntry", back_populates="cycle", lazy="dynamic")


class PayrollEntry(db.Model):
    __tablename__ = "payroll_entries"

    id = db.Column(db.Integer, primary_key=True)
    payroll_cycle_id = db.Column(db.Integer, db.ForeignKey("payroll_cycles.id", ondelete="RESTRICT"), nullable=False, index=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id", ondelete="RESTRICT"), nullable=False)
    staff_id = db.Column(db.Integer, db.ForeignKey("staff.id", ondelete="RESTRICT"), nullable=False, index=True)
    employment_profile_id = db.Column(db.Integer, db.ForeignKey("employment_profiles.id"), nullable=False)
    salary_component_id = db.Column(db.Integer, db.ForeignKey("salary_components.id"), nullable=False)

    base_salary_paisa = db.Column(db.BigInteger, nullable=False, default=0)
    allowances_paisa = db.Column(db.BigInteger, nullable=False, default=0)
    gross_earnings_paisa = db.Column(db.BigInteger, nullable=False, default=0)
    commission_paisa = db.Column(db.BigInteger, nullable=False, default=0)
    unpaid_leave_days = db.Column(db.Numeric(6, 2), nullable=False, default=0)
    leave_deduction_paisa = db.Column(db.BigInteger, nullable=False, default=0)
    total_deductions_paisa = db.Column(db.BigInteger, nullable=False, default=0)
    net_payable_paisa = db.Column(db.BigInteger, nullable=False, default=0)

    payment_status = db.Column(db.Enum(*PAYMENT_STATUSES, name="payment_status_enum"), nullable=False, default="pending")
    paid_at = db.Column(db.DateTime)
    calc_meta = db.Column(db.JSON)  # summary of inputs used

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("payroll_cycle_id", "staff_id", name="uq_payroll_entry_cycle_staff"),
    )

    cycle = db.relationship("PayrollCycle", back_populates="entries")
    staff = db.relationship("Staff", lazy="joined")
