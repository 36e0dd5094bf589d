# payroll_api/models/payroll/__init__.py
# Import order matters: profiles first, then the ledgers that point at them.
from payroll_api.extensions import db  # noqa

from .employment import EmploymentProfile
from .salary import SalaryComponent
from .commission import CommissionStructure, StaffCommissionAssignment, CompletedService
from .cycle import PayrollCycle, PayrollEntry
from .exit import ExitRecord

__all__ = [
    "EmploymentProfile", "SalaryComponent",
    "CommissionStructure", "StaffCommissionAssignment", "CompletedService",
    "PayrollCycle", "PayrollEntry", "ExitRecord",
]
