from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from lostfound.db.db import init_db
from lostfound.main import create_app
from lostfound.models.item import Item
from lostfound.utils.auth_helper import CallerIdentity

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

ENV_VARS = (
    "AUTH_VERIFY_TOKENS",
    "FIREBASE_PROJECT_ID",
    "DEMO_LOGIN_ENABLED",
    "DEMO_USER",
    "DEMO_PASSWORD",
    "OPERATOR_API_KEY",
    "CLEANUP_INTERVAL_HOURS",
    "CLEANUP_RETENTION_DAYS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(engine):
    app = create_app(engine)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def finder():
    return CallerIdentity(user_id="finder-uid", email="finder@campus.edu")


@pytest.fixture
def alice():
    return CallerIdentity(user_id="alice-uid", email="alice@campus.edu")


@pytest.fixture
def bob():
    return CallerIdentity(user_id="bob-uid", email="bob@campus.edu")


@pytest.fixture
def make_token():
    def _make(user_id=None, email=None, id_field="user_id"):
        claims = {}
        if user_id:
            claims[id_field] = user_id
        if email:
            claims["email"] = email
        # signature is never checked in the default mode
        return jwt.encode(claims, "test-signing-key", algorithm="HS256")

    return _make


@pytest.fixture
def headers_for(make_token):
    def _headers(identity: CallerIdentity):
        return {"Authorization": f"Bearer {make_token(identity.user_id, identity.email)}"}

    return _headers


@pytest.fixture
def add_item(session):
    counter = {"n": 0}

    def _add(**fields):
        counter["n"] += 1
        data = {
            "title": "Blue umbrella",
            "status": "found",
            "created_at": T0 + timedelta(minutes=counter["n"]),
        }
        data.update(fields)
        item = Item(**data)
        session.add(item)
        session.commit()
        session.refresh(item)
        return item

    return _add
