"""Email sending functionality."""

import logging
from dataclasses import dataclass, field
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Optional

import aiosmtplib

from promptminder.config import Settings, get_settings
from promptminder.errors import RateLimited, UpstreamFailure
from promptminder.utils.time import utcnow

logger = logging.getLogger(__name__)

# SMTP replies that mean "slow down" rather than "broken"
THROTTLE_CODES = (421, 451)


@dataclass
class EmailConfigStatus:
    valid: bool
    dev_mode: bool
    errors: list[str] = field(default_factory=list)


@dataclass
class EmailResult:
    sent: bool
    message_id: Optional[str] = None
    dev_mode: bool = False
    preview_url: Optional[str] = None


def check_email_config(settings: Optional[Settings] = None) -> EmailConfigStatus:
    """Validate SMTP configuration. No SMTP host means dev mode."""
    settings = settings or get_settings()
    errors = []

    if not settings.public_url:
        errors.append("PUBLIC_URL is not configured")

    if not settings.smtp_host:
        logger.warning("SMTP not configured, emails will be logged instead of sent")
        return EmailConfigStatus(valid=not errors, dev_mode=True, errors=errors)

    if not (settings.smtp_from_address or settings.smtp_username):
        errors.append("SMTP_FROM_ADDRESS is not configured")

    return EmailConfigStatus(valid=not errors, dev_mode=False, errors=errors)


async def send_email(
    to_email: str,
    subject: str,
    body: str,
    html_body: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> EmailResult:
    """
    Send an email.

    Args:
        to_email: Recipient email address
        subject: Email subject
        body: Plain text body
        html_body: Optional HTML body

    Returns:
        EmailResult; in dev mode nothing is sent and the message is logged.

    Raises:
        RateLimited: the SMTP server asked us to back off
        UpstreamFailure: any other delivery failure
    """
    settings = settings or get_settings()

    if not settings.smtp_host:
        logger.info(f"[dev email] to={to_email} subject={subject}\n{body}")
        return EmailResult(
            sent=True,
            message_id=f"dev-{int(utcnow().timestamp() * 1000)}",
            dev_mode=True,
        )

    # Create message
    if html_body:
        msg = MIMEMultipart("alternative")
        msg.attach(MIMEText(body, "plain"))
        msg.attach(MIMEText(html_body, "html"))
    else:
        msg = MIMEText(body, "plain")

    msg["Subject"] = subject
    msg["From"] = settings.smtp_from_address or settings.smtp_username
    msg["To"] = to_email

    try:
        await aiosmtplib.send(
            msg,
            hostname=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            start_tls=True,
        )
    except aiosmtplib.SMTPResponseException as e:
        logger.error(f"Failed to send email to {to_email}: {e.code} {e.message}")
        if e.code in THROTTLE_CODES or "rate" in e.message.lower():
            raise RateLimited() from e
        raise UpstreamFailure("Email could not be sent") from e
    except aiosmtplib.SMTPException as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        raise UpstreamFailure("Email could not be sent") from e

    logger.info(f"Email sent to {to_email}: {subject}")
    return EmailResult(sent=True, message_id=msg.get("Message-ID"))


def invitation_url(token: str, settings: Optional[Settings] = None) -> str:
    settings = settings or get_settings()
    return f"{settings.public_url.rstrip('/')}/invite/{token}"


def generate_invitation_content(inviter_name: str, invite_url: str) -> tuple[str, str, str]:
    """Subject, plain text body and HTML body for an invitation."""
    subject = f"{inviter_name} invited you to PromptMinder"
    body = f"""{inviter_name} has invited you to join PromptMinder.

Accept the invitation and create your account:
{invite_url}

This link expires in 7 days. If you were not expecting this email you can
ignore it.
"""
    html_body = (
        f"<p><strong>{escape(inviter_name)}</strong> has invited you to join "
        f"<strong>PromptMinder</strong>.</p>"
        f'<p><a href="{escape(invite_url)}">Accept the invitation</a></p>'
        f"<p>This link expires in 7 days.</p>"
    )
    return subject, body, html_body


async def send_invitation_email(
    to_email: str, token: str, inviter_name: str
) -> EmailResult:
    """Send an invitation link. In dev mode the link is returned for preview."""
    settings = get_settings()
    url = invitation_url(token, settings)
    subject, body, html_body = generate_invitation_content(inviter_name, url)

    result = await send_email(to_email, subject, body, html_body, settings=settings)
    if result.dev_mode:
        result.preview_url = url
    return result


async def send_test_email(to_email: str) -> EmailResult:
    """Send a test email to verify configuration."""
    return await send_email(
        to_email=to_email,
        subject="PromptMinder - Test Email",
        body="This is a test email from PromptMinder.\n\nIf you received this, your email configuration is working correctly.",
    )
