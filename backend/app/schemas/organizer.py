from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

from app.models.rsvp import RsvpStatus
from app.schemas.common import CamelModel


class AddGuestRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    no_email: bool = False
    wechat_id: Optional[str] = None

    @model_validator(mode="after")
    def email_unless_no_email(self) -> "AddGuestRequest":
        if not self.no_email and not self.email:
            raise ValueError("Email is required unless noEmail is set")
        return self


class UpdateGuestRequest(CamelModel):
    guest_id: int
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    wechat_id: Optional[str] = None


class GuestUser(CamelModel):
    id: int
    email: Optional[str] = None
    name: str
    wechat_id: Optional[str] = None
    email_sent: bool


class AddGuestResponse(CamelModel):
    success: bool = True
    user: GuestUser
    magic_link_url: Optional[str] = None


# Guest rows keep the snake_case column names the dashboard reads
class GuestRow(BaseModel):
    id: int
    email: Optional[str] = None
    name: str
    wechat_id: Optional[str] = None
    email_sent: bool
    status: RsvpStatus
    plus_one: bool
    plus_one_name: Optional[str] = None
    updated_at: datetime
    joined_wechat: bool


class GuestListResponse(BaseModel):
    success: bool = True
    guests: list[GuestRow]


class GuestStats(BaseModel):
    total_guests: int
    attending: int
    not_attending: int
    pending: int
    plus_ones: int


class SendInviteRequest(CamelModel):
    guest_id: int
    email: Optional[EmailStr] = None
    name: Optional[str] = None


class GenerateLinkRequest(CamelModel):
    guest_id: int


class GenerateLinkResponse(CamelModel):
    success: bool = True
    invite_link: str


class BulkSendResponse(CamelModel):
    success: bool = True
    count: Optional[int] = None


class OrganizerAdd(CamelModel):
    email: EmailStr
    name: Optional[str] = None


class OrganizerRemove(CamelModel):
    organizer_id: int


class OrganizerRename(CamelModel):
    organizer_id: int
    name: str = Field(..., min_length=1, max_length=255)


class OrganizerResponse(CamelModel):
    id: int
    email: Optional[str] = None
    name: str


class OrganizerListResponse(CamelModel):
    organizers: list[OrganizerResponse]


class NotificationResponse(CamelModel):
    id: int
    message: str
    is_read: bool
    created_at: Optional[datetime] = None


class SendInviteResponse(CamelModel):
    success: bool = True
    # Only populated in email preview mode
    magic_link_url: Optional[str] = None
