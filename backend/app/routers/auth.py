import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from app.core.auth import clear_session_cookie, get_session, set_session_cookie
from app.core.deps import get_db, get_mailer
from app.core.errors import InternalError, NotFound, ValidationError
from app.schemas.auth import LoginRequest, LoginResponse, SessionResponse, SessionUser, VerifyResponse
from app.services.email import Mailer, send_magic_link
from app.services.invites import find_user_by_email
from app.services.tokens import consume_invitation, issue_invitation, safe_redirect

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login", response_model=LoginResponse)
def login(
    body: LoginRequest,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    """Issue a magic link for a known guest or organizer."""
    user = find_user_by_email(db, body.email)
    if not user:
        logger.info("Login requested for an address not on the guest list")
        if mailer.preview:
            raise NotFound(
                "Email not found on invitation list. Please try a different email or add this user first."
            )
        # Don't reveal whether an address is on the list
        return LoginResponse(
            success=True,
            message="If your email is in our system, you will receive a magic link",
        )

    invitation = issue_invitation(db, user)
    result = send_magic_link(
        mailer,
        user.email,
        invitation.token,
        is_organizer=bool(user.is_organizer),
        name=user.name,
    )
    if not result.sent:
        raise InternalError("Failed to send magic link")
    if result.magic_link_url:
        return LoginResponse(
            success=True,
            message="Magic link generated for preview",
            magic_link_url=result.magic_link_url,
        )
    return LoginResponse(success=True, message="Magic link sent")


@router.get("/verify", response_model=VerifyResponse)
def verify(
    response: Response,
    token: Optional[str] = Query(None, description="Token from the magic link"),
    redirect: Optional[str] = Query(None, description="Relative path to land on after login"),
    db: Session = Depends(get_db),
):
    """Consume a magic link token and start a session."""
    if not token:
        raise ValidationError("Token is required")
    user = consume_invitation(db, token)
    set_session_cookie(response, user)
    default = "/organizer" if user.is_organizer else "/invitation"
    return VerifyResponse(redirect_url=safe_redirect(redirect, default))


@router.post("/logout")
def logout(response: Response):
    clear_session_cookie(response)
    return {"success": True}


@router.get("/session", response_model=SessionResponse)
def session(current: Optional[SessionUser] = Depends(get_session)):
    return SessionResponse(user=current)
