"""
Shared fixtures.

Tests run against an in-memory SQLite database (StaticPool); the
test session is handed to the app by overriding get_session.
Tokens are minted with the same secret the app verifies against.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from app.core.config import get_settings
from app.database import get_session
from app.main import app
from app.models.medication import Medication
from app.models.user import User


def make_token(user_id: uuid.UUID, email: str, expires_in: timedelta = timedelta(hours=1)) -> str:
    settings = get_settings()
    claims = {
        "sub": str(user_id),
        "email": email,
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def test_client(session):
    def override_get_session():
        return session

    app.dependency_overrides[get_session] = override_get_session
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def token_factory():
    return make_token


@pytest.fixture
def user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def auth_headers(user_id) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, 'jane.doe@example.com')}"}


@pytest.fixture
def admin_headers(session) -> dict[str, str]:
    admin = User(id=uuid.uuid4(), email="admin@example.com", name="admin", role="admin")
    session.add(admin)
    session.commit()
    return {"Authorization": f"Bearer {make_token(admin.id, admin.email)}"}


@pytest.fixture
def make_medication(session):
    """Factory inserting a committed medication; keyword args override defaults."""

    def _make(**overrides) -> Medication:
        fields = {
            "name": "Paracetamol",
            "generic_name": "Acetaminophen",
            "description": "Pain reliever and fever reducer",
            "category": "pain-relief",
            "dosage_form": "Tablet",
            "strength": "500mg",
            "sku": f"SKU-{uuid.uuid4().hex[:8].upper()}",
            "price": 9.99,
            "stock": 10,
        }
        fields.update(overrides)
        medication = Medication(**fields)
        session.add(medication)
        session.commit()
        session.refresh(medication)
        return medication

    return _make
