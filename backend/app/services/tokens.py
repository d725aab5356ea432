"""Magic link tokens: issue, consume, build links."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import urlencode, urlsplit

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import Forbidden, InvalidOrExpiredToken
from app.core.security import generate_invite_token
from app.models.invitation import Invitation
from app.models.user import User

logger = logging.getLogger(__name__)


def magic_link_url(token: str, is_organizer: bool = False, redirect: Optional[str] = None) -> str:
    base = settings.FRONTEND_BASE_URL.rstrip("/")
    area = "organizer" if is_organizer else "invitation"
    query = {"token": token}
    if redirect:
        query["redirect"] = redirect
    return f"{base}/{area}/verify?{urlencode(query)}"


def safe_redirect(redirect: Optional[str], default: str) -> str:
    """Only same-site relative paths are accepted as post-login targets."""
    if not redirect or not redirect.startswith("/") or "\\" in redirect:
        return default
    parts = urlsplit(redirect)
    if parts.scheme or parts.netloc:
        return default
    return redirect


def issue_invitation(db: Session, user: User) -> Invitation:
    invitation = Invitation(
        user_id=user.id,
        token=generate_invite_token(),
        is_used=False,
        expires_at=datetime.now(timezone.utc) + timedelta(days=settings.INVITE_TOKEN_EXPIRE_DAYS),
    )
    db.add(invitation)
    db.commit()
    db.refresh(invitation)
    logger.info("Issued invitation %s for user %s", invitation.id, user.id)
    return invitation


def consume_invitation(db: Session, token: str, organizer_only: bool = False) -> User:
    """Mark a live invitation used and return its user.

    The lookup locks the invitation row so two concurrent verifications of the same
    token cannot both succeed.
    """
    now = datetime.now(timezone.utc)
    invitation = (
        db.query(Invitation)
        .join(User, Invitation.user_id == User.id)
        .filter(
            Invitation.token == token,
            Invitation.is_used.is_(False),
            Invitation.expires_at > now,
        )
        .with_for_update(of=Invitation)
        .first()
    )
    if not invitation:
        logger.info("Rejected magic link token (unknown, used or expired)")
        raise InvalidOrExpiredToken()

    user = invitation.user
    if organizer_only and not user.is_organizer:
        db.rollback()
        logger.warning("Non-organizer user %s tried the organizer verify link", user.id)
        raise Forbidden("Invalid organizer token")

    invitation.is_used = True
    db.commit()
    logger.info("Invitation %s consumed by user %s", invitation.id, user.id)
    return user
