"""
Shared pytest fixtures.

The environment is pointed at a throwaway SQLite file and upload directory
BEFORE pharmacy_api is imported, because settings are read at import time.
Every test starts from freshly created tables.
"""
import itertools
import os
import tempfile
from decimal import Decimal

_TMP_DIR = tempfile.mkdtemp(prefix="pharmacy-api-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["UPLOAD_DIR"] = os.path.join(_TMP_DIR, "uploads")
os.environ["JWT_SECRET"] = "test-secret-not-for-production"
os.environ["ENVIRONMENT"] = "test"
os.environ["ALLOWED_HOSTS"] = "*"
os.environ["RATE_LIMIT_REQUESTS"] = "100000"
os.environ["LOGIN_RATE_LIMIT"] = "1000"
os.environ["REGISTER_RATE_LIMIT"] = "1000"
os.environ["ORDER_RATE_LIMIT"] = "1000"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from pharmacy_api.core.rate_limiter import rate_limiter  # noqa: E402
from pharmacy_api.core.security import (  # noqa: E402
    ROLE_ADMIN,
    ROLE_USER,
    create_access_token,
    get_password_hash,
)
from pharmacy_api.db.base import Base  # noqa: E402
from pharmacy_api.db.session import SessionLocal, engine  # noqa: E402
from pharmacy_api.main import app  # noqa: E402
from pharmacy_api.models import Admin, Doctor, Drug, User  # noqa: E402

TEST_PASSWORD = "secret123"
_PASSWORD_HASH = get_password_hash(TEST_PASSWORD)


def headers_for(account, role: str = ROLE_USER) -> dict:
    token = create_access_token(subject=str(account.id), email=account.email, role=role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(autouse=True)
def fresh_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    rate_limiter.reset()
    yield


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    def _make(name: str = "Test User", email: str = None) -> User:
        n = next(counter)
        user = User(
            email=email or f"user{n}@example.com",
            name=name,
            password_hash=_PASSWORD_HASH,
            address="12 Baker Street",
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def user(make_user):
    return make_user("Alice Patient", "alice@example.com")


@pytest.fixture
def user_headers(user):
    return headers_for(user)


@pytest.fixture
def other_user(make_user):
    return make_user("Bob Patient", "bob@example.com")


@pytest.fixture
def other_headers(other_user):
    return headers_for(other_user)


@pytest.fixture
def admin(db):
    account = Admin(email="admin@pharmacy.com", name="Admin User", password_hash=_PASSWORD_HASH, role="admin")
    db.add(account)
    db.commit()
    db.refresh(account)
    return account


@pytest.fixture
def admin_headers(admin):
    return headers_for(admin, role=ROLE_ADMIN)


@pytest.fixture
def make_drug(db):
    def _make(name: str = "Paracetamol 500mg", price: str = "15.99", stock: int = 100,
              requires_prescription: bool = False, description: str = "Pain reliever") -> Drug:
        drug = Drug(
            name=name,
            description=description,
            price=Decimal(price),
            stock_quantity=stock,
            requires_prescription=requires_prescription,
        )
        db.add(drug)
        db.commit()
        db.refresh(drug)
        return drug

    return _make


@pytest.fixture
def make_doctor(db):
    counter = itertools.count(1)

    def _make(name: str = "Dr. Sarah Johnson", is_active: bool = True, fee: str = "150.00") -> Doctor:
        n = next(counter)
        doctor = Doctor(
            name=name,
            email=f"doctor{n}@hospital.com",
            specialization="General Practitioner",
            license_number=f"MD{100000 + n}",
            hospital_clinic="City General Hospital",
            consultation_fee=Decimal(fee),
            available_days="Mon,Wed,Fri",
            is_active=is_active,
        )
        db.add(doctor)
        db.commit()
        db.refresh(doctor)
        return doctor

    return _make


@pytest.fixture
def stock_of():
    """Current stock read through a fresh session."""
    def _stock(drug_id: int) -> int:
        session = SessionLocal()
        try:
            return session.query(Drug.stock_quantity).filter(Drug.id == drug_id).scalar()
        finally:
            session.close()

    return _stock
