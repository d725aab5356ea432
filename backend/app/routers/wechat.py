from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.auth import get_current_session
from app.core.deps import get_db
from app.core.errors import Forbidden
from app.schemas.auth import SessionUser
from app.schemas.rsvp import RsvpResponse, RsvpUpsertResponse, WechatJoinRequest
from app.services.rsvp import set_wechat_joined

router = APIRouter()


@router.post("/join", response_model=RsvpUpsertResponse)
def join_wechat_group(
    body: WechatJoinRequest,
    db: Session = Depends(get_db),
    session: SessionUser = Depends(get_current_session),
):
    """Record that the guest joined the event's WeChat group."""
    if body.user_id != session.id and not session.is_organizer:
        raise Forbidden()
    rsvp = set_wechat_joined(db, body.user_id)
    return RsvpUpsertResponse(rsvp=RsvpResponse.model_validate(rsvp))
