from datetime import date

from payroll_api.extensions import db
from payroll_api.models.security import grant_role
from payroll_api.services.employment import create_employment_profile
from payroll_api.services.salary_ledger import replace_active_salary


def _base(business):
    return f"/api/v1/businesses/{business.id}"


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.get_json()["data"]["status"] == "ok"


def test_login_and_me(client, business, make_user):
    u = make_user("owner@salon.test", business, password="pa55word")
    grant_role(u, "owner")
    db.session.commit()

    r = client.post("/api/v1/auth/login", json={"email": "OWNER@salon.test", "password": "pa55word"})
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["user"]["roles"] == ["owner"]
    assert data["user"]["business_id"] == business.id
    assert data["user"]["last_login_at"] is not None

    me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {data['access']}"})
    assert me.status_code == 200
    assert me.get_json()["data"]["email"] == "owner@salon.test"

    bad = client.post("/api/v1/auth/login", json={"email": "owner@salon.test", "password": "nope"})
    assert bad.status_code == 401


def test_missing_token_is_401(client, business):
    r = client.get(f"{_base(business)}/leave-types")
    assert r.status_code == 401


def test_leave_type_create_and_duplicate(client, business, auth_headers):
    h = auth_headers(1, ["owner"], business.id)
    r = client.post(f"{_base(business)}/leave-types", json={"name": "Casual", "code": "cl"}, headers=h)
    assert r.status_code == 201
    assert r.get_json()["data"]["code"] == "CL"

    dup = client.post(f"{_base(business)}/leave-types", json={"name": "Casual 2", "code": "CL"}, headers=h)
    assert dup.status_code == 409
    assert dup.get_json()["error"]["code"] == "DUPLICATE"


def test_other_business_is_forbidden(client, business, other_business, auth_headers):
    h = auth_headers(1, ["owner"], other_business.id)
    r = client.get(f"{_base(business)}/leave-types", headers=h)
    assert r.status_code == 403

    admin = auth_headers(2, ["admin"])
    assert client.get(f"{_base(business)}/leave-types", headers=admin).status_code == 200


def test_manager_cannot_create_cycle(client, business, auth_headers):
    h = auth_headers(1, ["manager"], business.id)
    r = client.post(f"{_base(business)}/payroll-cycles", json={"year": 2025, "month": 3}, headers=h)
    assert r.status_code == 403


def test_cycle_lifecycle_over_http(client, business, make_staff, auth_headers):
    s = make_staff(business, "A")
    create_employment_profile(business.id, s.id)
    replace_active_salary(business.id, s.id, {"base_salary_paisa": 50000}, date(2025, 1, 1))
    h = auth_headers(1, ["owner"], business.id)

    r = client.post(f"{_base(business)}/payroll-cycles", json={"year": 2025, "month": 3}, headers=h)
    assert r.status_code == 201
    cycle_id = r.get_json()["data"]["id"]

    again = client.post(f"{_base(business)}/payroll-cycles", json={"year": 2025, "month": 3}, headers=h)
    assert again.status_code == 409
    assert again.get_json()["error"]["code"] == "DUPLICATE_PERIOD"

    r = client.post(f"{_base(business)}/payroll-cycles/{cycle_id}/process", headers=h)
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["cycle"]["status"] == "processed"
    assert data["cycle"]["total_net_payable_paisa"] == 50000
    assert data["report"]["processed"] == [{"staff_id": s.id, "net_payable_paisa": 50000}]

    r = client.post(f"{_base(business)}/payroll-cycles/{cycle_id}/process", headers=h)
    assert r.status_code == 409
    assert r.get_json()["error"]["code"] == "INVALID_STATE"

    entries = client.get(f"{_base(business)}/payroll-cycles/{cycle_id}/entries", headers=h).get_json()["data"]
    assert [e["net_payable_paisa"] for e in entries] == [50000]


def test_cycle_not_visible_from_other_business(client, business, other_business, auth_headers):
    h = auth_headers(1, ["owner"], business.id)
    cycle_id = client.post(f"{_base(business)}/payroll-cycles", json={"year": 2025, "month": 3},
                           headers=h).get_json()["data"]["id"]

    other = auth_headers(2, ["owner"], other_business.id)
    r = client.get(f"{_base(other_business)}/payroll-cycles/{cycle_id}", headers=other)
    assert r.status_code == 404


def test_staff_user_requests_leave_only_for_self(client, business, make_user, make_staff, auth_headers,
                                                 future_day):
    u = make_user("meera@salon.test", business)
    me = make_staff(business, "Meera", user=u)
    colleague = make_staff(business, "Ravi")
    owner = auth_headers(99, ["owner"], business.id)
    lt_id = client.post(f"{_base(business)}/leave-types", json={"name": "Casual", "code": "CL"},
                        headers=owner).get_json()["data"]["id"]

    h = auth_headers(u.id, ["staff"], business.id)
    payload = {"leave_type_id": lt_id, "start_date": future_day(7).isoformat(),
               "end_date": future_day(8).isoformat()}

    r = client.post(f"{_base(business)}/staff/{colleague.id}/leave-requests", json=payload, headers=h)
    assert r.status_code == 403

    r = client.post(f"{_base(business)}/staff/{me.id}/leave-requests", json=payload, headers=h)
    assert r.status_code == 201
    assert r.get_json()["data"]["number_of_days"] == 2

    past = dict(payload, start_date="2020-01-01")
    r = client.post(f"{_base(business)}/staff/{me.id}/leave-requests", json=past, headers=h)
    assert r.status_code == 422
    assert r.get_json()["error"]["code"] == "INVALID_RANGE"


def test_commission_evaluate_preview(client, business, auth_headers):
    h = auth_headers(1, ["owner"], business.id)
    r = client.post(f"{_base(business)}/commission-structures", headers=h, json={
        "name": "Tiered", "type": "tiered",
        "tiers": [{"min": 0, "max": 50000, "rate": 10}, {"min": 50001, "max": 100000, "rate": 15}],
    })
    assert r.status_code == 201
    sid = r.get_json()["data"]["id"]

    r = client.post(f"{_base(business)}/commission-structures/{sid}/evaluate", headers=h,
                    json={"service_value_paisa": 60000})
    assert r.status_code == 200
    assert r.get_json()["data"]["commission_paisa"] == 9000

    gap = client.post(f"{_base(business)}/commission-structures", headers=h, json={
        "name": "Gap", "type": "tiered",
        "tiers": [{"min": 0, "max": 100, "rate": 10}, {"min": 200, "max": 300, "rate": 15}],
    })
    assert gap.status_code == 422
