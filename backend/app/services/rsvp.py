"""Guest responses and the organizer-facing views over them."""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import case, func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import NotFound
from app.models.notification import Notification
from app.models.rsvp import Rsvp, RsvpStatus
from app.models.user import User
from app.services.email import Mailer, notify_organizers

logger = logging.getLogger(__name__)


def _apply(rsvp: Rsvp, status: RsvpStatus, plus_one: bool, plus_one_name: Optional[str]) -> None:
    rsvp.status = status
    rsvp.plus_one = plus_one
    rsvp.plus_one_name = plus_one_name
    rsvp.updated_at = datetime.now(timezone.utc)


def upsert_rsvp(
    db: Session,
    user_id: int,
    status: RsvpStatus,
    plus_one: bool = False,
    plus_one_name: Optional[str] = None,
) -> Rsvp:
    """Create or update the user's single RSVP.

    The existing row is locked while it is updated. If two first-time submissions
    race, the unique constraint on user_id rejects the second insert, which is then
    applied as an update.
    """
    if not db.query(User.id).filter(User.id == user_id).first():
        raise NotFound("Guest not found")

    rsvp = db.query(Rsvp).filter(Rsvp.user_id == user_id).with_for_update().first()
    if rsvp is not None:
        _apply(rsvp, status, plus_one, plus_one_name)
        db.commit()
    else:
        rsvp = Rsvp(user_id=user_id, joined_wechat=False)
        _apply(rsvp, status, plus_one, plus_one_name)
        db.add(rsvp)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.info("Concurrent RSVP insert for user %s; updating instead", user_id)
            rsvp = db.query(Rsvp).filter(Rsvp.user_id == user_id).with_for_update().one()
            _apply(rsvp, status, plus_one, plus_one_name)
            db.commit()
    db.refresh(rsvp)
    logger.info("RSVP for user %s is now %s", user_id, rsvp.status.value)
    return rsvp


def rsvp_message(name: str, rsvp: Rsvp) -> str:
    if rsvp.status == RsvpStatus.attending:
        verb = "accepted"
    elif rsvp.status == RsvpStatus.not_attending:
        verb = "declined"
    else:
        verb = "not yet decided on"
    message = f"{name} has {verb} the invitation"
    if rsvp.plus_one and rsvp.plus_one_name:
        message += f" and is bringing {rsvp.plus_one_name}"
    return message + "."


def rsvp_subject(name: str, rsvp: Rsvp) -> str:
    state = "attending" if rsvp.status == RsvpStatus.attending else "not attending"
    return f"RSVP Update: {name} is {state}"


def notify_rsvp_change(db: Session, mailer: Mailer, guest_name: str, rsvp: Rsvp) -> None:
    """One inbox notification per organizer, plus an email to each.

    Runs after the RSVP is committed; failures here are logged and never undo it.
    """
    rsvp_id = rsvp.id
    message = rsvp_message(guest_name, rsvp)
    subject = rsvp_subject(guest_name, rsvp)
    organizers = db.query(User).filter(User.is_organizer.is_(True)).all()
    recipients = [o.email for o in organizers]

    try:
        for organizer in organizers:
            db.add(Notification(user_id=organizer.id, message=message))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Could not store organizer notifications for RSVP %s", rsvp_id)

    try:
        notify_organizers(mailer, recipients, subject, message)
    except Exception:
        logger.exception("Organizer notification email failed for RSVP %s", rsvp_id)


def set_wechat_joined(db: Session, user_id: int) -> Rsvp:
    rsvp = db.query(Rsvp).filter(Rsvp.user_id == user_id).with_for_update().first()
    if not rsvp:
        raise NotFound("RSVP not found")
    rsvp.joined_wechat = True
    db.commit()
    db.refresh(rsvp)
    return rsvp


def list_guests(db: Session) -> List[dict]:
    """All non-organizer users with their RSVP; guests who have not answered read as pending."""
    rows = (
        db.query(User, Rsvp)
        .outerjoin(Rsvp, Rsvp.user_id == User.id)
        .filter(User.is_organizer.is_(False))
        .order_by(User.name)
        .all()
    )
    now = datetime.now(timezone.utc)
    guests = []
    for user, rsvp in rows:
        guests.append(
            {
                "id": user.id,
                "email": user.email,
                "name": user.name,
                "wechat_id": user.wechat_id,
                "email_sent": bool(user.email_sent),
                "status": rsvp.status if rsvp else RsvpStatus.pending,
                "plus_one": bool(rsvp.plus_one) if rsvp else False,
                "plus_one_name": rsvp.plus_one_name if rsvp else None,
                "updated_at": (rsvp.updated_at or now) if rsvp else now,
                "joined_wechat": bool(rsvp.joined_wechat) if rsvp else False,
            }
        )
    return guests


def guest_stats(db: Session) -> dict:
    row = (
        db.query(
            func.count(User.id),
            func.count(case((Rsvp.status == RsvpStatus.attending, 1))),
            func.count(case((Rsvp.status == RsvpStatus.not_attending, 1))),
            func.count(case((or_(Rsvp.id.is_(None), Rsvp.status == RsvpStatus.pending), 1))),
            func.count(case((Rsvp.plus_one.is_(True), 1))),
        )
        .select_from(User)
        .outerjoin(Rsvp, Rsvp.user_id == User.id)
        .filter(User.is_organizer.is_(False))
        .one()
    )
    total, attending, not_attending, pending, plus_ones = row
    return {
        "total_guests": total,
        "attending": attending,
        "not_attending": not_attending,
        "pending": pending,
        "plus_ones": plus_ones,
    }


def pending_guests(db: Session) -> List[User]:
    return (
        db.query(User)
        .outerjoin(Rsvp, Rsvp.user_id == User.id)
        .filter(User.is_organizer.is_(False))
        .filter(or_(Rsvp.id.is_(None), Rsvp.status == RsvpStatus.pending))
        .order_by(User.name)
        .all()
    )


def attending_guests(db: Session) -> List[User]:
    return (
        db.query(User)
        .join(Rsvp, Rsvp.user_id == User.id)
        .filter(Rsvp.status == RsvpStatus.attending)
        .order_by(User.name)
        .all()
    )
