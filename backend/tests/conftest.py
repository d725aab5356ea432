import os

# Settings are read at import time; pin a test configuration before importing the app
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["SMTP_HOST"] = ""
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["RESTAURANT_ACCESS_KEY"] = ""
os.environ["INITIAL_ORGANIZER_EMAIL"] = ""
os.environ["FRONTEND_BASE_URL"] = "http://party.test"

from decimal import Decimal
from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import settings
from app.core.deps import get_db
from app.main import app
from app.models import Base, MenuItem, Rsvp, RsvpStatus, User
from app.services.email import PreviewMailer

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

RESTAURANT_KEY = "kitchen-secret"


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def mailer():
    previous = app.state.mailer
    app.state.mailer = PreviewMailer()
    yield app.state.mailer
    app.state.mailer = previous


@pytest.fixture
def restaurant_key(monkeypatch):
    monkeypatch.setattr(settings, "RESTAURANT_ACCESS_KEY", RESTAURANT_KEY)
    return RESTAURANT_KEY


@pytest.fixture
def make_client(db, mailer):
    """Each client carries its own cookie jar, so one test can act as several users."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    clients = []

    def _make(**kwargs):
        c = TestClient(app, **kwargs)
        clients.append(c)
        return c

    yield _make
    for c in clients:
        c.close()
    app.dependency_overrides.clear()


@pytest.fixture
def client(make_client):
    return make_client()


@pytest.fixture
def make_user(db):
    def _make(name="Guest", email=None, is_organizer=False, **fields):
        user = User(
            name=name,
            email=email.lower() if email else None,
            is_organizer=is_organizer,
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_menu_item(db):
    def _make(name="Dumplings", price="10.00", is_available=True, **fields):
        item = MenuItem(name=name, price=Decimal(price), is_available=is_available, **fields)
        db.add(item)
        db.commit()
        db.refresh(item)
        return item

    return _make


@pytest.fixture
def make_rsvp(db):
    def _make(user, status=RsvpStatus.attending, **fields):
        rsvp = Rsvp(user_id=user.id, status=status, **fields)
        db.add(rsvp)
        db.commit()
        db.refresh(rsvp)
        return rsvp

    return _make


def token_from_link(url: str) -> str:
    return parse_qs(urlparse(url).query)["token"][0]


def login(client: TestClient, email: str) -> dict:
    """Sign in the way a browser would: request a link, then follow it."""
    res = client.post("/api/auth/login", json={"email": email})
    assert res.status_code == 200, res.text
    token = token_from_link(res.json()["magicLinkUrl"])
    res = client.get("/api/auth/verify", params={"token": token})
    assert res.status_code == 200, res.text
    return client.get("/api/auth/session").json()["user"]


@pytest.fixture
def guest(make_user):
    return make_user(name="Alice", email="alice@example.com")


@pytest.fixture
def organizer(make_user):
    return make_user(name="Olivia", email="olivia@example.com", is_organizer=True)


@pytest.fixture
def guest_client(make_client, guest):
    c = make_client()
    login(c, guest.email)
    return c


@pytest.fixture
def organizer_client(make_client, organizer):
    c = make_client()
    login(c, organizer.email)
    return c
