from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

# registra as tabelas em SQLModel.metadata
from app.models import booking, config_entry, payment, recurring, user  # noqa: F401
from app.core.security import create_access_token
from app.core.time_utils import utc_now
from app.database import get_session
from app.main import app
from app.models.booking import BookingSource
from app.models.user import User
from app.services import config_service, lifecycle


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        config_service.initialize_config(session)
        yield session


@pytest.fixture
def client(session):
    def override_get_session():
        yield session

    app.dependency_overrides[get_session] = override_get_session
    yield TestClient(app)
    app.dependency_overrides.clear()


def _make_user(session, email, role="user", account_type="domestic"):
    u = User(
        name=email.split("@")[0].title(),
        email=email,
        role=role,
        account_type=account_type,
        password_hash="not-a-real-hash",
    )
    session.add(u)
    session.commit()
    session.refresh(u)
    return u


@pytest.fixture
def client_user(session):
    return _make_user(session, "client@example.com")


@pytest.fixture
def other_user(session):
    return _make_user(session, "other@example.com")


@pytest.fixture
def admin_user(session):
    return _make_user(session, "admin@example.com", role="admin")


def auth_headers(user):
    token = create_access_token({"sub": user.email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_headers(client_user):
    return auth_headers(client_user)


@pytest.fixture
def admin_headers(admin_user):
    return auth_headers(admin_user)


@pytest.fixture
def make_booking(session, client_user):
    """Cria um booking que começa `days_ahead` dias a partir de agora."""

    def _make(days_ahead=5, user=None, source=BookingSource.ADMIN.value, paid=False, now=None):
        start = (now or utc_now()) + timedelta(days=days_ahead)
        b = lifecycle.create_booking(
            session,
            user or client_user,
            start,
            start + timedelta(minutes=50),
            amount=8000,
            source=source,
        )
        if paid:
            p = lifecycle.get_payment_for_booking(session, b.id)
            lifecycle.transition_payment(session, p, "Completed")
        return b

    return _make


@pytest.fixture
def headers_for():
    return auth_headers
