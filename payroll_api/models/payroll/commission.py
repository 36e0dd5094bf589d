from datetime import datetime
from payroll_api.extensions import db

COMMISSION_TYPES = ("flat", "percentage", "tiered")


class CommissionStructure(db.Model):
    __tablename__ = "commission_structures"

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    type = db.Column(db.Enum(*COMMISSION_TYPES, name="commission_type_enum"), nullable=False)
    service_category = db.Column(db.String(60), nullable=True)  # NULL => all categories

    base_flat_amount_paisa = db.Column(db.BigInteger)
    base_percentage = db.Column(db.Numeric(5, 2))
    tiers = db.Column(db.JSON, nullable=False, default=list)  # [{"min": int, "max": int, "rate": num}]

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("business_id", "name", name="uq_commission_structure_business_name"),
    )

    assignments = db.relationship("StaffCommissionAssignment", back_populates="structure", lazy="dynamic")

    @property
    def assigned_staff_count(self) -> int:
        return self.assignments.count()


class StaffCommissionAssignment(db.Model):
    __tablename__ = "staff_commission_assignments"

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    staff_id = db.Column(db.Integer, db.ForeignKey("staff.id", ondelete="CASCADE"), nullable=False, unique=True)
    structure_id = db.Column(db.Integer, db.ForeignKey("commission_structures.id", ondelete="RESTRICT"),
                             nullable=False, index=True)
    assigned_by = db.Column(db.Integer, db.ForeignKey("users.id"))
    assigned_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    structure = db.relationship("CommissionStructure", back_populates="assignments")


class CompletedService(db.Model):
    """Revenue-bearing service a staff member finished; the commission base."""
    __tablename__ = "completed_services"

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    staff_id = db.Column(db.Integer, db.ForeignKey("staff.id", ondelete="CASCADE"), nullable=False)
    service_name = db.Column(db.String(160))
    service_category = db.Column(db.String(60))
    service_value_paisa = db.Column(db.BigInteger, nullable=False)
    completed_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    external_ref = db.Column(db.String(64))  # e.g. appointment id

    __table_args__ = (
        db.Index("ix_completed_services_staff_time", "staff_id", "completed_at"),
    )
