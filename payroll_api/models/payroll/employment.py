from datetime import datetime
from payroll_api.extensions import db

EMPLOYMENT_TYPES = ("full_time", "part_time", "contract", "freelancer")
COMPENSATION_MODELS = ("fixed_salary", "hourly", "commission_only", "salary_plus_commission")
PROFILE_STATUSES = ("active", "on_leave", "notice_period", "resigned", "terminated")
EXITED_STATUSES = ("resigned", "terminated")
PAYOUT_METHODS = ("bank_transfer", "upi", "cash")
ONBOARDING_STATUSES = ("pending", "in_progress", "complete")


class EmploymentProfile(db.Model):
    __tablename__ = "employment_profiles"

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id", ondelete="RESTRICT"), nullable=False, index=True)
    staff_id = db.Column(db.Integer, db.ForeignKey("staff.id", ondelete="RESTRICT"), nullable=False, index=True)
    employee_code = db.Column(db.String(32))

    employment_type = db.Column(db.Enum(*EMPLOYMENT_TYPES, name="employment_type_enum"), nullable=False, default="full_time")
    compensation_model = db.Column(db.Enum(*COMPENSATION_MODELS, name="compensation_model_enum"),
                                   nullable=False, default="commission_only")
    status = db.Column(db.Enum(*PROFILE_STATUSES, name="employment_status_enum"), nullable=False, default="active")

    joining_date = db.Column(db.Date)
    probation_end_date = db.Column(db.Date)
    contract_start_date = db.Column(db.Date)
    contract_end_date = db.Column(db.Date)
    notice_period_days = db.Column(db.Integer, nullable=False, default=30)

    # payout
    preferred_payout_method = db.Column(db.Enum(*PAYOUT_METHODS, name="payout_method_enum"),
                                        nullable=False, default="bank_transfer")
    bank_account_name = db.Column(db.String(120))
    bank_account_number = db.Column(db.String(34))
    bank_ifsc_code = db.Column(db.String(11))
    bank_name = db.Column(db.String(120))
    upi_id = db.Column(db.String(120))

    # identity
    pan_number = db.Column(db.String(10))
    aadhar_number = db.Column(db.String(12))
    pf_number = db.Column(db.String(32))
    esi_number = db.Column(db.String(32))

    # {"documents": [{"id","name","completed"}], "training": [...], "access": [...]}
    onboarding_checklist = db.Column(db.JSON, nullable=False, default=dict)
    onboarding_status = db.Column(db.Enum(*ONBOARDING_STATUSES, name="onboarding_status_enum"),
                                  nullable=False, default="pending")

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("staff_id", "business_id", name="uq_employment_profile_staff_business"),
    )

    staff = db.relationship("Staff", lazy="joined")

    @property
    def is_frozen(self) -> bool:
        return self.status in EXITED_STATUSES
