import os

# Must be set before the application modules read their settings
os.environ["TESTING"] = "1"
os.environ["TEST_DATABASE_URL"] = "sqlite:///./test.db"
os.environ["ADMIN_EMAIL"] = ""
os.environ["ADMIN_PASSWORD"] = ""

import pytest
from fastapi.testclient import TestClient

from medibook.main import app
from medibook.core.database import Base, InMemoryRedis, SessionLocal, engine, get_redis, init_db
from medibook.core.security import UserRole, create_token_pair, get_password_hash
from medibook.models.doctor import Doctor
from medibook.models.user import User

TEST_PASSWORD = "TestPassword123"

@pytest.fixture(scope="function")
def test_db():
    init_db()
    yield
    Base.metadata.drop_all(bind=engine)

@pytest.fixture
def db(test_db):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()

@pytest.fixture
def client(test_db):
    fake_redis = InMemoryRedis()
    app.dependency_overrides[get_redis] = lambda: fake_redis
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client
    app.dependency_overrides.pop(get_redis, None)

def create_user(db, email, role=UserRole.PATIENT, username=None, password=TEST_PASSWORD, is_active=True):
    user = User(
        username=username or email.split("@")[0].title(),
        email=email,
        password_hash=get_password_hash(password),
        role=role,
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user

def create_doctor(db, email, fee=500, verified=True, specialization="Cardiology", license_number=None, username=None):
    user = create_user(db, email, role=UserRole.DOCTOR, username=username)
    profile = Doctor(
        user_id=user.id,
        specialization=specialization,
        license_number=license_number or f"LIC-{user.id}",
        qualifications=["MBBS"],
        experience=5,
        bio="",
        consultation_fee=fee,
        is_verified=verified,
    )
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return user, profile

def auth_headers(user):
    tokens = create_token_pair(user.id, user.email, user.role)
    return {"Authorization": f"Bearer {tokens.access_token}"}

@pytest.fixture
def patient(db):
    return create_user(db, "patient.p@example.com", username="Patient P")

@pytest.fixture
def other_patient(db):
    return create_user(db, "patient.q@example.com", username="Patient Q")

@pytest.fixture
def admin(db):
    return create_user(db, "admin@example.com", role=UserRole.ADMIN, username="System Admin")

@pytest.fixture
def doctor(db):
    """Verified doctor account and profile with a fee of 500."""
    return create_doctor(db, "doctor.d@example.com", fee=500, username="Dr Dee")
