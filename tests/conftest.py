from datetime import date, timedelta

import pytest
from flask_jwt_extended import create_access_token

from payroll_api import create_app
from payroll_api.extensions import db
from payroll_api.models.business import Business, Staff
from payroll_api.models.user import User


@pytest.fixture
def app():
    app = create_app("payroll_api.config.TestConfig")
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def business(app):
    b = Business(code="SALON1", name="Salon One")
    db.session.add(b)
    db.session.commit()
    return b


@pytest.fixture
def other_business(app):
    b = Business(code="SALON2", name="Salon Two")
    db.session.add(b)
    db.session.commit()
    return b


@pytest.fixture
def make_staff(app):
    def _make(business, name="Stylist", user=None):
        s = Staff(business_id=business.id, name=name, user_id=user.id if user else None)
        db.session.add(s)
        db.session.commit()
        return s
    return _make


@pytest.fixture
def make_user(app):
    def _make(email, business=None, full_name="Test User", password="secret"):
        u = User(email=email, full_name=full_name, status="active",
                 business_id=business.id if business else None)
        u.set_password(password)
        db.session.add(u)
        db.session.commit()
        return u
    return _make


@pytest.fixture
def auth_headers(app):
    """Bearer header for a user id with the given roles / home business claims."""
    def _headers(user_id, roles, business_id=None):
        token = create_access_token(
            identity=str(user_id),
            additional_claims={"roles": list(roles), "business_id": business_id},
        )
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def future_day():
    """A day safely in the future, used wherever leave must not start in the past."""
    def _day(offset=10):
        return date.today() + timedelta(days=offset)
    return _day
