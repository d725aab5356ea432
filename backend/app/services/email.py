"""Outbound email: magic links, organizer updates, role changes.

The transport is a Mailer strategy picked once at startup from settings. In preview
mode (non-production, or no SMTP_HOST) nothing is sent; messages are logged and the
magic link is handed back to the caller instead.
"""

import html
import logging
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Iterable, List, Optional

from app.core.config import Settings, settings
from app.services.tokens import magic_link_url

logger = logging.getLogger(__name__)

# Avoid blocking the request forever if SMTP is slow or unreachable
SMTP_TIMEOUT_SECONDS = 15


@dataclass
class OutgoingEmail:
    to_email: str
    subject: str
    html: str
    text: str


@dataclass
class DispatchResult:
    sent: bool
    # Set only in preview mode, so the API can surface the link directly
    magic_link_url: Optional[str] = None


class Mailer:
    preview = False

    def send(self, message: OutgoingEmail) -> None:
        raise NotImplementedError


class SmtpMailer(Mailer):
    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        from_email: str,
        from_name: str,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.from_email = from_email
        self.from_name = from_name

    def send(self, message: OutgoingEmail) -> None:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = message.to_email
        msg.attach(MIMEText(message.text, "plain"))
        msg.attach(MIMEText(message.html, "html"))

        with smtplib.SMTP(self.host, self.port, timeout=SMTP_TIMEOUT_SECONDS) as server:
            server.starttls()
            if self.user:
                server.login(self.user, self.password)
            server.sendmail(self.from_email, [message.to_email], msg.as_string())


class PreviewMailer(Mailer):
    """Logs instead of sending. Keeps an outbox so local runs and tests can inspect it."""

    preview = True

    def __init__(self):
        self.outbox: List[OutgoingEmail] = []

    def send(self, message: OutgoingEmail) -> None:
        logger.info(
            "PREVIEW MODE - email would be sent to %s: %s\n%s",
            message.to_email,
            message.subject,
            message.text,
        )
        self.outbox.append(message)


def build_mailer(cfg: Settings = settings) -> Mailer:
    if cfg.email_preview_mode:
        logger.warning("Email preview mode: messages are logged, not sent.")
        return PreviewMailer()
    return SmtpMailer(
        host=cfg.SMTP_HOST,
        port=cfg.SMTP_PORT,
        user=cfg.SMTP_USER,
        password=cfg.SMTP_PASSWORD,
        from_email=cfg.SMTP_FROM_EMAIL,
        from_name=cfg.SMTP_FROM_NAME,
    )


def deliver(mailer: Mailer, message: OutgoingEmail) -> bool:
    """Send one message. Returns False (after logging) instead of raising."""
    try:
        mailer.send(message)
    except smtplib.SMTPAuthenticationError as e:
        logger.exception("SMTP login failed for %s: %s", message.to_email, e)
        return False
    except smtplib.SMTPException as e:
        logger.exception("Failed to send '%s' to %s: %s", message.subject, message.to_email, e)
        return False
    except OSError as e:
        logger.exception("SMTP connection error (timeout or network) for %s: %s", message.to_email, e)
        return False
    logger.info("Email '%s' dispatched to %s", message.subject, message.to_email)
    return True


def _page(body: str) -> str:
    return f"""
<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family: sans-serif; max-width: 560px; margin: 0 auto; padding: 24px;">
{body}
  <p style="font-size: 12px; color: #a3a3a3; margin-top: 32px;">
    {html.escape(settings.EVENT_NAME)}
  </p>
</body>
</html>
"""


def _button(url: str, label: str) -> str:
    return (
        f'<p style="margin: 24px 0;"><a href="{html.escape(url)}" '
        'style="display: inline-block; padding: 12px 24px; background-color: #D4AF37; '
        'color: white; text-decoration: none; border-radius: 6px; font-weight: 500;">'
        f"{label}</a></p>"
    )


def magic_link_email(
    to_email: str,
    url: str,
    is_organizer: bool = False,
    name: Optional[str] = None,
) -> OutgoingEmail:
    greeting = f"Dear {name}," if name else "Hello,"
    if is_organizer:
        subject = "Organizer Access Link"
        intro = "Click the link below to access the organizer dashboard."
        label = "Access Dashboard"
    else:
        subject = f"Your Invitation to {settings.EVENT_NAME}"
        intro = f"You're cordially invited to {settings.EVENT_NAME}. Please let us know if you can make it."
        label = "RSVP Now"
    body = (
        f'<p style="font-size: 16px;">{html.escape(greeting)}</p>'
        f'<p style="font-size: 16px;">{html.escape(intro)}</p>'
        f"{_button(url, label)}"
        '<p style="font-size: 14px; color: #737373;">This link will expire after use.</p>'
    )
    text = f"{greeting}\n\n{intro}\n\n{url}\n\nThis link will expire after use.\n"
    return OutgoingEmail(to_email=to_email, subject=subject, html=_page(body), text=text)


def send_magic_link(
    mailer: Mailer,
    to_email: str,
    token: str,
    is_organizer: bool = False,
    name: Optional[str] = None,
    redirect: Optional[str] = None,
) -> DispatchResult:
    url = magic_link_url(token, is_organizer=is_organizer, redirect=redirect)
    sent = deliver(mailer, magic_link_email(to_email, url, is_organizer, name))
    return DispatchResult(sent=sent, magic_link_url=url if mailer.preview else None)


def send_menu_link(mailer: Mailer, to_email: str, token: str, name: Optional[str] = None) -> bool:
    url = magic_link_url(token, redirect="/menu")
    greeting = f"Dear {name}," if name else "Hello,"
    intro = "The menu is ready. Use the link below to pre-order your food for the celebration."
    body = (
        f'<p style="font-size: 16px;">{html.escape(greeting)}</p>'
        f'<p style="font-size: 16px;">{html.escape(intro)}</p>'
        f"{_button(url, 'View Menu')}"
    )
    text = f"{greeting}\n\n{intro}\n\n{url}\n"
    message = OutgoingEmail(
        to_email=to_email,
        subject=f"Pre-order your food for {settings.EVENT_NAME}",
        html=_page(body),
        text=text,
    )
    return deliver(mailer, message)


def notify_organizers(mailer: Mailer, recipients: Iterable[str], subject: str, message: str) -> int:
    """Email each organizer separately so one bad address does not block the rest.

    Returns how many messages went out.
    """
    dashboard_url = f"{settings.FRONTEND_BASE_URL.rstrip('/')}/organizer"
    body = (
        '<h2 style="color: #D4AF37;">Celebration Update</h2>'
        f'<p style="font-size: 16px;">{html.escape(message)}</p>'
        f"{_button(dashboard_url, 'View Dashboard')}"
    )
    sent = 0
    for to_email in recipients:
        if not to_email:
            continue
        outgoing = OutgoingEmail(
            to_email=to_email,
            subject=subject,
            html=_page(body),
            text=f"{message}\n\n{dashboard_url}\n",
        )
        if deliver(mailer, outgoing):
            sent += 1
    return sent


def send_organizer_status_email(mailer: Mailer, to_email: str, name: str, added: bool) -> bool:
    if added:
        subject = "You are now an organizer"
        line = f"You have been added as an organizer for {settings.EVENT_NAME}."
    else:
        subject = "Organizer access removed"
        line = f"Your organizer access for {settings.EVENT_NAME} has been removed."
    greeting = f"Dear {name},"
    body = (
        f'<p style="font-size: 16px;">{html.escape(greeting)}</p>'
        f'<p style="font-size: 16px;">{html.escape(line)}</p>'
    )
    message = OutgoingEmail(
        to_email=to_email,
        subject=subject,
        html=_page(body),
        text=f"{greeting}\n\n{line}\n",
    )
    return deliver(mailer, message)
