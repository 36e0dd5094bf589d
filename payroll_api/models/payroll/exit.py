from datetime import datetime
from payroll_api.extensions import db

EXIT_TYPES = ("resignation", "termination", "retirement", "contract_end", "absconding")
SETTLEMENT_STATUSES = ("pending", "completed")


class ExitRecord(db.Model):
    __tablename__ = "exit_records"

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id", ondelete="RESTRICT"), nullable=False, index=True)
    # lifetime uniqueness: one exit per staff member
    staff_id = db.Column(db.Integer, db.ForeignKey("staff.id", ondelete="RESTRICT"), nullable=False, unique=True)
    employment_profile_id = db.Column(db.Integer, db.ForeignKey("employment_profiles.id"), nullable=True)

    exit_type = db.Column(db.Enum(*EXIT_TYPES, name="exit_type_enum"), nullable=False)
    exit_reason = db.Column(db.Text)
    resignation_date = db.Column(db.Date, nullable=False)
    last_working_date = db.Column(db.Date, nullable=False)
    notice_period_served = db.Column(db.Integer, nullable=False, default=0)  # days
    notice_period_shortfall = db.Column(db.Integer, nullable=False, default=0)  # days

    pending_commissions_paisa = db.Column(db.BigInteger, nullable=False, default=0)
    pending_tips_paisa = db.Column(db.BigInteger, nullable=False, default=0)
    leave_encashment_paisa = db.Column(db.BigInteger, nullable=False, default=0)
    net_settlement_paisa = db.Column(db.BigInteger, nullable=False, default=0)
    settlement_status = db.Column(db.Enum(*SETTLEMENT_STATUSES, name="settlement_status_enum"),
                                  nullable=False, default="pending")
    settled_at = db.Column(db.DateTime)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"))
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    staff = db.relationship("Staff", lazy="joined")
