from datetime import date
from decimal import Decimal

import pytest

from payroll_api.common.errors import InvalidRange, NotFound, ValidationFailed
from payroll_api.extensions import db
from payroll_api.models.payroll.salary import SalaryComponent
from payroll_api.services import salary_ledger
from payroll_api.services.employment import create_employment_profile


@pytest.fixture
def profile(business, make_staff):
    s = make_staff(business)
    return create_employment_profile(business.id, s.id)


def _active_count(profile_id):
    return SalaryComponent.query.filter_by(employment_profile_id=profile_id, is_active=True).count()


def test_salary_requires_profile(business, make_staff):
    s = make_staff(business)
    with pytest.raises(NotFound):
        salary_ledger.replace_active_salary(business.id, s.id, {"base_salary_paisa": 1000}, date(2025, 1, 1))


def test_first_component_defaults(business, profile):
    c = salary_ledger.replace_active_salary(business.id, profile.staff_id, {"base_salary_paisa": 50000},
                                            date(2025, 1, 1))
    assert c.is_active is True
    assert c.hra_allowance_paisa == 0
    assert c.payout_frequency == "monthly"
    assert c.payout_day_of_month == 1
    assert c.overtime_rate_multiplier == Decimal("1.50")
    assert c.weekly_work_hours == 48
    assert c.effective_to is None


def test_replace_closes_previous_window(business, profile):
    first = salary_ledger.replace_active_salary(business.id, profile.staff_id, {"base_salary_paisa": 50000},
                                                date(2025, 1, 1))
    second = salary_ledger.replace_active_salary(
        business.id, profile.staff_id, {"base_salary_paisa": 60000, "hra_allowance_paisa": 5000},
        date(2025, 4, 1),
    )

    first = db.session.get(SalaryComponent, first.id)
    assert first.is_active is False
    assert first.effective_to == second.effective_from == date(2025, 4, 1)
    assert second.base_salary_paisa == 60000
    assert second.hra_allowance_paisa == 5000
    assert _active_count(profile.id) == 1


def test_only_one_active_after_many_replacements(business, profile):
    for month in (1, 2, 3, 4, 5):
        salary_ledger.replace_active_salary(business.id, profile.staff_id,
                                            {"base_salary_paisa": 1000 * month}, date(2025, month, 1))
    assert _active_count(profile.id) == 1
    assert salary_ledger.active_salary(profile.id).base_salary_paisa == 5000
    assert len(salary_ledger.salary_history(profile.id)) == 5


def test_salary_as_of_is_a_range_lookup(business, profile):
    salary_ledger.replace_active_salary(business.id, profile.staff_id, {"base_salary_paisa": 100}, date(2025, 1, 1))
    salary_ledger.replace_active_salary(business.id, profile.staff_id, {"base_salary_paisa": 200}, date(2025, 3, 1))

    assert salary_ledger.salary_as_of(profile.id, date(2024, 12, 31)) is None
    assert salary_ledger.salary_as_of(profile.id, date(2025, 2, 28)).base_salary_paisa == 100
    # window is half-open: the boundary day belongs to the new version
    assert salary_ledger.salary_as_of(profile.id, date(2025, 3, 1)).base_salary_paisa == 200


def test_backdated_replacement_rejected(business, profile):
    salary_ledger.replace_active_salary(business.id, profile.staff_id, {"base_salary_paisa": 100}, date(2025, 3, 1))
    with pytest.raises(InvalidRange):
        salary_ledger.replace_active_salary(business.id, profile.staff_id, {"base_salary_paisa": 200},
                                            date(2025, 2, 1))
    assert salary_ledger.active_salary(profile.id).base_salary_paisa == 100


def test_money_fields_must_be_integer_paisa(business, profile):
    with pytest.raises(ValidationFailed):
        salary_ledger.replace_active_salary(business.id, profile.staff_id, {"base_salary_paisa": 100.5},
                                            date(2025, 1, 1))
    with pytest.raises(ValidationFailed):
        salary_ledger.replace_active_salary(business.id, profile.staff_id, {"pf_deduction_paisa": -5},
                                            date(2025, 1, 1))
