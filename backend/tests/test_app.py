from fastapi import APIRouter
from jose import jwt

from app.core.auth import (
    Capability,
    RestaurantPrincipal,
    SessionPrincipal,
    has_capability,
    principals_for,
)
from app.core.security import create_session_token, decode_session_token, restaurant_key_matches
from app.main import app
from app.schemas.auth import SessionUser
from app.services.email import PreviewMailer, SmtpMailer, build_mailer
from app.services.tokens import magic_link_url, safe_redirect


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json()["status"] == "ok"
    assert res.json()["database"] == "connected"
    assert res.json()["email"] == "preview"


def test_unknown_route_uses_error_shape(client):
    res = client.get("/api/nothing-here")
    assert res.status_code == 404
    assert res.json() == {"error": "Not Found", "code": "NOT_FOUND"}


def test_unhandled_errors_become_500(make_client):
    boom = APIRouter()

    @boom.get("/boom")
    def explode():
        raise RuntimeError("kaboom")

    app.include_router(boom, prefix="/test-only")
    try:
        c = make_client(raise_server_exceptions=False)
        res = c.get("/test-only/boom")
        assert res.status_code == 500
        assert res.json() == {"error": "Internal server error", "code": "INTERNAL_ERROR"}
    finally:
        app.router.routes[:] = [r for r in app.router.routes if getattr(r, "path", "") != "/test-only/boom"]


def test_session_token_round_trip_and_tamper():
    token = create_session_token(7, "a@example.com", "A", True)
    assert decode_session_token(token) == {
        "id": 7,
        "email": "a@example.com",
        "name": "A",
        "isOrganizer": True,
    }
    forged = jwt.encode({"id": 7, "name": "A", "isOrganizer": True}, "not-the-secret", algorithm="HS256")
    assert decode_session_token(forged) is None


def test_restaurant_key_comparison(monkeypatch):
    from app.core.config import settings

    monkeypatch.setattr(settings, "RESTAURANT_ACCESS_KEY", "")
    assert restaurant_key_matches("") is False
    assert restaurant_key_matches("anything") is False

    monkeypatch.setattr(settings, "RESTAURANT_ACCESS_KEY", "k1")
    assert restaurant_key_matches("k1") is True
    assert restaurant_key_matches("k2") is False
    assert restaurant_key_matches(None) is False


def test_capabilities(monkeypatch):
    from app.core.config import settings

    monkeypatch.setattr(settings, "RESTAURANT_ACCESS_KEY", "k1")
    guest = SessionUser(id=1, email="g@example.com", name="G", is_organizer=False)
    boss = SessionUser(id=2, email="o@example.com", name="O", is_organizer=True)

    assert not has_capability(principals_for(guest, None), Capability.view_all_orders)
    assert has_capability(principals_for(boss, None), Capability.manage_organizers)

    staff = principals_for(None, "k1")
    assert staff == [RestaurantPrincipal()]
    assert has_capability(staff, Capability.manage_orders)
    assert not has_capability(staff, Capability.manage_menu)

    mixed = principals_for(guest, "k1")
    assert isinstance(mixed[0], SessionPrincipal)
    assert has_capability(mixed, Capability.view_all_orders)

    assert principals_for(None, "wrong") == []


def test_magic_link_url():
    assert magic_link_url("abc") == "http://party.test/invitation/verify?token=abc"
    assert magic_link_url("abc", is_organizer=True) == "http://party.test/organizer/verify?token=abc"
    assert magic_link_url("abc", redirect="/menu") == "http://party.test/invitation/verify?token=abc&redirect=%2Fmenu"


def test_safe_redirect():
    assert safe_redirect("/menu", "/invitation") == "/menu"
    assert safe_redirect(None, "/invitation") == "/invitation"
    assert safe_redirect("https://evil.example.com", "/invitation") == "/invitation"
    assert safe_redirect("//evil.example.com", "/invitation") == "/invitation"
    assert safe_redirect("/\\evil.example.com", "/invitation") == "/invitation"
    assert safe_redirect("/menu\\..\\x", "/invitation") == "/invitation"
    assert safe_redirect("/orders?tab=mine", "/invitation") == "/orders?tab=mine"


def test_build_mailer_picks_transport():
    from app.core.config import Settings

    assert isinstance(build_mailer(Settings(ENVIRONMENT="development", SMTP_HOST="smtp.example.com")), PreviewMailer)
    assert isinstance(build_mailer(Settings(ENVIRONMENT="production", SMTP_HOST="")), PreviewMailer)
    assert isinstance(build_mailer(Settings(ENVIRONMENT="production", SMTP_HOST="smtp.example.com")), SmtpMailer)
