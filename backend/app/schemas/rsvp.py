from datetime import datetime
from typing import Optional

from app.models.rsvp import RsvpStatus
from app.schemas.common import CamelModel


class RsvpUpsert(CamelModel):
    user_id: int
    status: RsvpStatus
    plus_one: bool = False
    plus_one_name: Optional[str] = None


class RsvpResponse(CamelModel):
    id: int
    user_id: int
    status: RsvpStatus
    plus_one: bool
    plus_one_name: Optional[str] = None
    joined_wechat: bool
    updated_at: Optional[datetime] = None


class RsvpUpsertResponse(CamelModel):
    success: bool = True
    rsvp: RsvpResponse


class MyRsvpResponse(CamelModel):
    rsvp: Optional[RsvpResponse] = None


class WechatJoinRequest(CamelModel):
    user_id: int
