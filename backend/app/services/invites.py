import logging
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.user import User
from app.services.email import DispatchResult, Mailer, send_magic_link, send_menu_link
from app.services.tokens import issue_invitation

logger = logging.getLogger(__name__)


def find_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()


def invite_user(db: Session, mailer: Mailer, user: User) -> DispatchResult:
    """Issue a fresh token for the user and email them the magic link."""
    invitation = issue_invitation(db, user)
    result = send_magic_link(
        mailer,
        user.email,
        invitation.token,
        is_organizer=bool(user.is_organizer),
        name=user.name,
    )
    if result.sent and not user.email_sent:
        user.email_sent = True
        db.commit()
    return result


def send_bulk_invites(db: Session, mailer: Mailer, users: Iterable[User]) -> int:
    """Invite each user in turn. A failure for one recipient is logged and skipped."""
    sent = 0
    for user in users:
        if not user.email:
            logger.info("Skipping guest %s: no email address", user.id)
            continue
        try:
            result = invite_user(db, mailer, user)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Could not issue invitation for guest %s", user.id)
            continue
        if result.sent:
            sent += 1
    logger.info("Bulk invite finished: %s sent", sent)
    return sent


def send_bulk_menu_links(db: Session, mailer: Mailer, users: Iterable[User]) -> int:
    sent = 0
    for user in users:
        if not user.email:
            continue
        try:
            invitation = issue_invitation(db, user)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Could not issue menu link for guest %s", user.id)
            continue
        if send_menu_link(mailer, user.email, invitation.token, name=user.name):
            sent += 1
    logger.info("Menu emails finished: %s sent", sent)
    return sent
