from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.auth import get_current_session
from app.core.deps import get_db, get_mailer
from app.core.errors import Forbidden
from app.models.rsvp import Rsvp
from app.models.user import User
from app.schemas.auth import SessionUser
from app.schemas.rsvp import MyRsvpResponse, RsvpResponse, RsvpUpsert, RsvpUpsertResponse
from app.services.email import Mailer
from app.services.rsvp import notify_rsvp_change, upsert_rsvp

router = APIRouter()


@router.post("", response_model=RsvpUpsertResponse)
def submit_rsvp(
    body: RsvpUpsert,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
    session: SessionUser = Depends(get_current_session),
):
    """Create or update an RSVP. Guests may only answer for themselves."""
    if body.user_id != session.id and not session.is_organizer:
        raise Forbidden()
    rsvp = upsert_rsvp(db, body.user_id, body.status, body.plus_one, body.plus_one_name)
    guest = db.get(User, body.user_id)
    notify_rsvp_change(db, mailer, guest.name, rsvp)
    return RsvpUpsertResponse(rsvp=RsvpResponse.model_validate(rsvp))


@router.get("", response_model=MyRsvpResponse)
def my_rsvp(
    db: Session = Depends(get_db),
    session: SessionUser = Depends(get_current_session),
):
    rsvp: Optional[Rsvp] = db.query(Rsvp).filter(Rsvp.user_id == session.id).first()
    return MyRsvpResponse(rsvp=RsvpResponse.model_validate(rsvp) if rsvp else None)
