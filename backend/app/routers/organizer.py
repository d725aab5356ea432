import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from app.core.auth import require_organizer, set_session_cookie
from app.core.deps import get_db, get_mailer
from app.core.errors import InternalError, NotFound, ValidationError
from app.models.notification import Notification
from app.models.user import User
from app.schemas.auth import SessionUser, VerifyResponse
from app.schemas.common import MessageResponse
from app.schemas.organizer import (
    AddGuestRequest,
    AddGuestResponse,
    BulkSendResponse,
    GenerateLinkRequest,
    GenerateLinkResponse,
    GuestListResponse,
    GuestStats,
    GuestUser,
    NotificationResponse,
    OrganizerAdd,
    OrganizerListResponse,
    OrganizerRemove,
    OrganizerRename,
    OrganizerResponse,
    SendInviteRequest,
    SendInviteResponse,
    UpdateGuestRequest,
)
from app.services.email import Mailer, send_magic_link, send_organizer_status_email
from app.services.invites import (
    find_user_by_email,
    invite_user,
    send_bulk_invites,
    send_bulk_menu_links,
)
from app.services.rsvp import attending_guests, guest_stats, list_guests, pending_guests
from app.services.tokens import consume_invitation, issue_invitation, magic_link_url, safe_redirect

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_guest(db: Session, guest_id: int) -> User:
    guest = db.query(User).filter(User.id == guest_id).first()
    if not guest:
        raise NotFound("Guest not found")
    return guest


# ---------- Guests ----------


@router.post("/add-guest", response_model=AddGuestResponse)
def add_guest(
    body: AddGuestRequest,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
    organizer: SessionUser = Depends(require_organizer),
):
    """Add a guest. Unless noEmail is set, the guest is emailed a magic link straight away."""
    email = body.email.lower() if body.email else None
    if email and find_user_by_email(db, email):
        raise ValidationError("A guest with this email already exists")

    guest = User(
        email=email,
        name=body.name.strip(),
        wechat_id=body.wechat_id,
        is_organizer=False,
        email_sent=False,
    )
    db.add(guest)
    db.commit()
    db.refresh(guest)
    logger.info("Guest %s added by organizer %s", guest.id, organizer.id)

    link = None
    if email and not body.no_email:
        result = invite_user(db, mailer, guest)
        if not result.sent:
            logger.warning("Guest %s was added but the invitation email failed", guest.id)
        link = result.magic_link_url
        db.refresh(guest)
    return AddGuestResponse(user=GuestUser.model_validate(guest), magic_link_url=link)


@router.post("/update-guest", response_model=MessageResponse)
def update_guest(
    body: UpdateGuestRequest,
    db: Session = Depends(get_db),
    organizer: SessionUser = Depends(require_organizer),
):
    guest = _get_guest(db, body.guest_id)
    if body.email is not None:
        email = body.email.lower()
        other = find_user_by_email(db, email)
        if other and other.id != guest.id:
            raise ValidationError("A guest with this email already exists")
        guest.email = email
    if body.name is not None:
        guest.name = body.name.strip()
    if "wechat_id" in body.model_fields_set:
        guest.wechat_id = body.wechat_id
    db.commit()
    logger.info("Guest %s updated by organizer %s", guest.id, organizer.id)
    return MessageResponse(message="Guest updated")


@router.get("/guests", response_model=GuestListResponse)
def guests(
    db: Session = Depends(get_db),
    organizer: SessionUser = Depends(require_organizer),
):
    return GuestListResponse(guests=list_guests(db))


@router.get("/stats", response_model=GuestStats)
def stats(
    db: Session = Depends(get_db),
    organizer: SessionUser = Depends(require_organizer),
):
    return GuestStats(**guest_stats(db))


# ---------- Invitations ----------


@router.post("/send-invite", response_model=SendInviteResponse)
def send_invite(
    body: SendInviteRequest,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
    organizer: SessionUser = Depends(require_organizer),
):
    """Email one guest a fresh magic link, optionally to an address other than the one on file."""
    guest = _get_guest(db, body.guest_id)
    to_email = body.email or guest.email
    if not to_email:
        raise ValidationError("Guest has no email address")

    invitation = issue_invitation(db, guest)
    result = send_magic_link(
        mailer,
        to_email,
        invitation.token,
        is_organizer=bool(guest.is_organizer),
        name=body.name or guest.name,
    )
    if not result.sent:
        raise InternalError("Failed to send invite")
    guest.email_sent = True
    db.commit()
    return SendInviteResponse(magic_link_url=result.magic_link_url)


@router.post("/send-all-invites", response_model=BulkSendResponse, response_model_exclude_none=True)
def send_all_invites(
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
    organizer: SessionUser = Depends(require_organizer),
):
    targets = db.query(User).filter(User.is_organizer.is_(False)).order_by(User.name).all()
    send_bulk_invites(db, mailer, targets)
    return BulkSendResponse()


@router.post("/send-pending-invites", response_model=BulkSendResponse, response_model_exclude_none=True)
def send_pending_invites(
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
    organizer: SessionUser = Depends(require_organizer),
):
    """Re-invite only guests who have not answered yet."""
    send_bulk_invites(db, mailer, pending_guests(db))
    return BulkSendResponse()


@router.post("/send-menu-emails", response_model=BulkSendResponse)
def send_menu_emails(
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
    organizer: SessionUser = Depends(require_organizer),
):
    """Email every attending guest a link that signs them in and opens the menu."""
    targets = attending_guests(db)
    send_bulk_menu_links(db, mailer, targets)
    return BulkSendResponse(count=len(targets))


@router.post("/generate-link", response_model=GenerateLinkResponse)
def generate_link(
    body: GenerateLinkRequest,
    db: Session = Depends(get_db),
    organizer: SessionUser = Depends(require_organizer),
):
    """A magic link for sharing by hand, e.g. with guests who have no email."""
    guest = _get_guest(db, body.guest_id)
    invitation = issue_invitation(db, guest)
    return GenerateLinkResponse(invite_link=magic_link_url(invitation.token))


# ---------- Organizers ----------


@router.get("/manage", response_model=OrganizerListResponse)
def list_organizers(
    db: Session = Depends(get_db),
    organizer: SessionUser = Depends(require_organizer),
):
    organizers = db.query(User).filter(User.is_organizer.is_(True)).order_by(User.name).all()
    return OrganizerListResponse(
        organizers=[OrganizerResponse.model_validate(o) for o in organizers]
    )


@router.post("/manage", response_model=MessageResponse)
def add_organizer(
    body: OrganizerAdd,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
    organizer: SessionUser = Depends(require_organizer),
):
    """Promote an existing user to organizer."""
    user = find_user_by_email(db, body.email)
    if not user:
        raise ValidationError("User does not exist. They need to be added as a guest first.")
    user.is_organizer = True
    if body.name:
        user.name = body.name.strip()
    db.commit()
    logger.info("User %s promoted to organizer by %s", user.id, organizer.id)
    send_organizer_status_email(mailer, user.email, user.name, added=True)
    return MessageResponse(message="Organizer added successfully")


@router.delete("/manage", response_model=MessageResponse)
def remove_organizer(
    body: OrganizerRemove,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
    organizer: SessionUser = Depends(require_organizer),
):
    user = (
        db.query(User)
        .filter(User.id == body.organizer_id, User.is_organizer.is_(True))
        .first()
    )
    if not user:
        raise NotFound("Organizer not found")
    user.is_organizer = False
    db.commit()
    logger.info("Organizer %s demoted by %s", user.id, organizer.id)
    if user.email:
        send_organizer_status_email(mailer, user.email, user.name, added=False)
    return MessageResponse(message="Organizer removed successfully")


@router.patch("/manage", response_model=MessageResponse)
def rename_organizer(
    body: OrganizerRename,
    db: Session = Depends(get_db),
    organizer: SessionUser = Depends(require_organizer),
):
    user = (
        db.query(User)
        .filter(User.id == body.organizer_id, User.is_organizer.is_(True))
        .first()
    )
    if not user:
        raise NotFound("Organizer not found")
    user.name = body.name.strip()
    db.commit()
    return MessageResponse(message="Organizer updated successfully")


@router.get("/verify", response_model=VerifyResponse)
def organizer_verify(
    response: Response,
    token: Optional[str] = Query(None, description="Token from the organizer magic link"),
    redirect: Optional[str] = Query(None, description="Relative path to land on after login"),
    db: Session = Depends(get_db),
):
    """Like /api/auth/verify, but only organizers may use the token here."""
    if not token:
        raise ValidationError("Token is required")
    user = consume_invitation(db, token, organizer_only=True)
    set_session_cookie(response, user)
    return VerifyResponse(redirect_url=safe_redirect(redirect, "/organizer"))


# ---------- Notifications ----------


@router.get("/notifications", response_model=list[NotificationResponse])
def list_notifications(
    unread_only: bool = Query(False, alias="unreadOnly"),
    db: Session = Depends(get_db),
    organizer: SessionUser = Depends(require_organizer),
):
    query = db.query(Notification).filter(Notification.user_id == organizer.id)
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).all()


@router.post("/notifications/{notification_id}/read", response_model=NotificationResponse)
def mark_notification_read(
    notification_id: int,
    db: Session = Depends(get_db),
    organizer: SessionUser = Depends(require_organizer),
):
    notification = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == organizer.id)
        .first()
    )
    if not notification:
        raise NotFound("Notification not found")
    notification.is_read = True
    db.commit()
    db.refresh(notification)
    return notification
