from typing import Optional

from pydantic import EmailStr

from app.schemas.common import CamelModel


class LoginRequest(CamelModel):
    email: EmailStr


class LoginResponse(CamelModel):
    success: bool
    message: str
    # Only populated in email preview mode
    magic_link_url: Optional[str] = None


class VerifyResponse(CamelModel):
    success: bool = True
    redirect_url: str


class SessionUser(CamelModel):
    id: int
    email: Optional[str] = None
    name: str
    is_organizer: bool


class SessionResponse(CamelModel):
    user: Optional[SessionUser] = None
