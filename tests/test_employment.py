import pytest

from payroll_api.common.errors import DuplicateConflict, InvalidState, NotFound, ValidationFailed
from payroll_api.services import employment as svc


def test_create_profile_defaults(business, make_staff):
    s = make_staff(business)
    p = svc.create_employment_profile(business.id, s.id)

    assert p.employment_type == "full_time"
    assert p.compensation_model == "commission_only"
    assert p.notice_period_days == 30
    assert p.preferred_payout_method == "bank_transfer"
    assert p.status == "active"
    assert p.onboarding_status == "pending"
    assert [t["id"] for t in p.onboarding_checklist["documents"]] == [
        "id_proof", "address_proof", "photo", "bank_details",
    ]
    assert set(p.onboarding_checklist) == {"documents", "training", "access"}


def test_duplicate_profile_conflicts(business, make_staff):
    s = make_staff(business)
    svc.create_employment_profile(business.id, s.id)
    with pytest.raises(DuplicateConflict):
        svc.create_employment_profile(business.id, s.id)


def test_profile_for_staff_of_other_business_is_not_found(business, other_business, make_staff):
    s = make_staff(other_business)
    with pytest.raises(NotFound):
        svc.create_employment_profile(business.id, s.id)


def test_create_validates_choices(business, make_staff):
    s = make_staff(business)
    with pytest.raises(ValidationFailed):
        svc.create_employment_profile(business.id, s.id, {"compensation_model": "piece_rate"})


def test_status_changes_only_among_working_states(business, make_staff):
    s = make_staff(business)
    svc.create_employment_profile(business.id, s.id)

    assert svc.set_profile_status(business.id, s.id, "notice_period").status == "notice_period"
    with pytest.raises(InvalidState):
        svc.set_profile_status(business.id, s.id, "resigned")


def test_frozen_profile_rejects_updates(business, make_staff):
    s = make_staff(business)
    p = svc.create_employment_profile(business.id, s.id)
    p.status = "terminated"

    with pytest.raises(InvalidState):
        svc.update_profile(business.id, s.id, {"bank_name": "HDFC"})


def test_onboarding_status_follows_tasks(business, make_staff):
    s = make_staff(business)
    p = svc.create_employment_profile(business.id, s.id)

    p = svc.update_onboarding_task(business.id, s.id, "documents", "photo", True)
    assert p.onboarding_status == "in_progress"

    for category, tasks in p.onboarding_checklist.items():
        for t in tasks:
            p = svc.update_onboarding_task(business.id, s.id, category, t["id"], True)
    assert p.onboarding_status == "complete"

    p = svc.update_onboarding_task(business.id, s.id, "access", "tools", False)
    assert p.onboarding_status == "in_progress"

    with pytest.raises(NotFound):
        svc.update_onboarding_task(business.id, s.id, "access", "keys", True)


def test_list_profiles_filters(business, make_staff):
    a = make_staff(business, "A")
    b = make_staff(business, "B")
    svc.create_employment_profile(business.id, a.id)
    svc.create_employment_profile(business.id, b.id)
    svc.set_profile_status(business.id, b.id, "on_leave")

    rows = svc.list_profiles(business.id, status="on_leave")
    assert [p.staff_id for p in rows] == [b.id]
    assert len(svc.list_profiles(business.id)) == 2

    with pytest.raises(ValidationFailed):
        svc.list_profiles(business.id, status="fired")
    with pytest.raises(ValidationFailed):
        svc.list_profiles(business.id, onboarding_status="done")
