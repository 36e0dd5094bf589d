from datetime import datetime
from decimal import Decimal
from payroll_api.extensions import db

PAYOUT_FREQUENCIES = ("weekly", "bi_weekly", "monthly")

ALLOWANCE_FIELDS = (
    "hra_allowance_paisa",
    "travel_allowance_paisa",
    "meal_allowance_paisa",
    "other_allowances_paisa",
)
DEDUCTION_FIELDS = (
    "pf_deduction_paisa",
    "esi_deduction_paisa",
    "professional_tax_paisa",
    "tds_deduction_paisa",
)
RATE_FIELDS = ("base_salary_paisa", "hourly_rate_paisa", "daily_rate_paisa")
MONEY_FIELDS = RATE_FIELDS + ALLOWANCE_FIELDS + DEDUCTION_FIELDS


class SalaryComponent(db.Model):
    """
    One version of a staff member's pay structure.

    Rows are never edited in place: a new version closes the previous one by
    setting ``effective_to`` and clearing ``is_active``. The window is
    half-open, ``[effective_from, effective_to)``.
    """
    __tablename__ = "salary_components"

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id", ondelete="RESTRICT"), nullable=False, index=True)
    employment_profile_id = db.Column(db.Integer, db.ForeignKey("employment_profiles.id", ondelete="RESTRICT"),
                                      nullable=False, index=True)

    base_salary_paisa = db.Column(db.BigInteger, nullable=False, default=0)
    hourly_rate_paisa = db.Column(db.BigInteger, nullable=False, default=0)
    daily_rate_paisa = db.Column(db.BigInteger, nullable=False, default=0)

    hra_allowance_paisa = db.Column(db.BigInteger, nullable=False, default=0)
    travel_allowance_paisa = db.Column(db.BigInteger, nullable=False, default=0)
    meal_allowance_paisa = db.Column(db.BigInteger, nullable=False, default=0)
    other_allowances_paisa = db.Column(db.BigInteger, nullable=False, default=0)

    pf_deduction_paisa = db.Column(db.BigInteger, nullable=False, default=0)
    esi_deduction_paisa = db.Column(db.BigInteger, nullable=False, default=0)
    professional_tax_paisa = db.Column(db.BigInteger, nullable=False, default=0)
    tds_deduction_paisa = db.Column(db.BigInteger, nullable=False, default=0)

    payout_frequency = db.Column(db.Enum(*PAYOUT_FREQUENCIES, name="payout_frequency_enum"),
                                 nullable=False, default="monthly")
    payout_day_of_month = db.Column(db.Integer, nullable=False, default=1)
    overtime_rate_multiplier = db.Column(db.Numeric(4, 2), nullable=False, default=Decimal("1.50"))
    weekly_work_hours = db.Column(db.Integer, nullable=False, default=48)

    effective_from = db.Column(db.Date, nullable=False)
    effective_to = db.Column(db.Date)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"))
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    __table_args__ = (
        # at most one active version per profile
        db.Index(
            "uq_salary_component_active_profile",
            "employment_profile_id",
            unique=True,
            postgresql_where=db.text("is_active"),
            sqlite_where=db.text("is_active = 1"),
        ),
        db.Index("ix_salary_component_window", "employment_profile_id", "effective_from", "effective_to"),
    )

    employment_profile = db.relationship("EmploymentProfile", backref=db.backref("salary_components", lazy="dynamic"))

    @property
    def allowances_paisa(self) -> int:
        return sum(getattr(self, f) or 0 for f in ALLOWANCE_FIELDS)

    @property
    def gross_paisa(self) -> int:
        return (self.base_salary_paisa or 0) + self.allowances_paisa

    @property
    def deductions_paisa(self) -> int:
        return sum(getattr(self, f) or 0 for f in DEDUCTION_FIELDS)
