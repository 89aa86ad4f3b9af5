"""
Pytest fixtures for SaleSavvy backend tests.

In-memory SQLite (StaticPool) shared by the app and the fixtures; every table is
cleared before each test, along with the process-local audit trail, drafts and
rate limiters.
"""

import os
from datetime import date

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DEBUG"] = "true"
os.environ["PRIVILEGED_EMAIL"] = "owner@salesavvy.test"
os.environ["LOG_DIR"] = ""

import pytest
from fastapi.testclient import TestClient

from salesavvy.main import app
from salesavvy.database import Base, SessionLocal
from salesavvy.models import Customer, Employee, PriceHistory, Product
from salesavvy.permissions import PermissionSet
from salesavvy.routes.auth import hash_password
from salesavvy.services.audit_trail import audit_trail
from salesavvy.services.order_composer import draft_registry
from salesavvy.stores.user_store import UserStore
from salesavvy.utils.jwt_auth import create_access_token
from salesavvy.utils.rate_limiter import api_limiter, login_limiter

PASSWORD = "Password123"


@pytest.fixture(scope="function")
def db_session():
    """Create fresh database for each test."""
    session = SessionLocal()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()

    audit_trail.clear()
    draft_registry.clear()
    login_limiter.reset()
    api_limiter.reset()

    yield session

    session.rollback()
    session.close()


@pytest.fixture(scope="function")
def client(db_session):
    return TestClient(app)


@pytest.fixture(scope="function")
def make_user(db_session):
    """Factory: create a user with the given permission flags."""

    def _make(email, full_name=None, is_admin=False, is_blocked=False, **flags):
        users = UserStore(db_session)
        user = users.create(email, hash_password(PASSWORD), full_name=full_name, is_admin=is_admin)
        if flags or is_blocked:
            user = users.set_permissions(user, PermissionSet(**flags), is_blocked=is_blocked)
        return user

    return _make


def headers_for(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


@pytest.fixture(scope="function")
def auth_headers():
    return headers_for


@pytest.fixture(scope="function")
def admin_headers(make_user):
    return headers_for(make_user("admin@salesavvy.test", full_name="Ada Admin", is_admin=True))


@pytest.fixture(scope="function")
def clerk(make_user):
    """Sales clerk allowed to create orders only."""
    return make_user("clerk@salesavvy.test", full_name="Carl Clerk", add_sales=True, add_sales_detail=True)


@pytest.fixture(scope="function")
def clerk_headers(clerk):
    return headers_for(clerk)


@pytest.fixture(scope="function")
def viewer_headers(make_user):
    """Signed-in user with no permissions."""
    return headers_for(make_user("viewer@salesavvy.test"))


@pytest.fixture(scope="function")
def catalog(db_session):
    """One customer, one employee and two products with price history."""
    db_session.add(Customer(custno="C001", custname="Acme Trading", address="Manila", payterm="30D"))
    db_session.add(Employee(empno="E001", firstname="Ana", lastname="Reyes", hiredate=date(2020, 4, 1)))
    db_session.add(Product(prodcode="P001", description="Notebook", unit="pc"))
    db_session.add(Product(prodcode="P002", description="Ballpen", unit="box"))
    db_session.add_all([
        PriceHistory(prodcode="P001", effdate=date(2024, 1, 1), unitprice=10.0),
        PriceHistory(prodcode="P001", effdate=date(2024, 6, 1), unitprice=12.5),
        PriceHistory(prodcode="P002", effdate=date(2024, 1, 1), unitprice=5.0),
    ])
    db_session.commit()
    return {"custno": "C001", "empno": "E001", "products": ["P001", "P002"]}
