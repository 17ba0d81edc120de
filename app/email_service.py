"""
Email Service using Resend
Session emails are written in MJML and compiled to responsive HTML before sending
"""

import asyncio
import logging
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import EMAIL_FROM_ADDRESS, RESEND_API_KEY
from .email_templates import (
    session_cancelled_template,
    session_confirmed_template,
    session_reminder_template,
    session_scheduled_template,
)

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY

if not RESEND_API_KEY:
    logger.warning("⚠️ RESEND_API_KEY not set. Email functionality will be disabled.")


class EmailDeliveryError(Exception):
    """Raised when an email could not be handed to the provider"""


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(mjml_content)
        # mjml_to_html returns a dict-like result with 'html' and 'errors'
        if isinstance(result, dict):
            if result.get("errors"):
                logger.warning(f"MJML compilation warnings: {result['errors']}")
            return result.get("html", "")
        html = getattr(result, "html", None)
        if html is not None:
            if getattr(result, "errors", None):
                logger.warning(f"MJML compilation warnings: {result.errors}")
            return html
        return str(result)
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise EmailDeliveryError(f"Failed to compile MJML template: {str(e)}") from e


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
) -> dict:
    """
    Send an email through Resend

    Args:
        to: Recipient email(s)
        subject: Email subject line
        mjml_content: MJML template content (will be compiled to HTML)
        from_address: Optional custom from address

    Returns:
        Resend response dict

    Raises:
        EmailDeliveryError: provider not configured or the send failed
    """
    if not RESEND_API_KEY:
        logger.warning(f"⚠️ Email not sent - RESEND_API_KEY not configured: {subject}")
        raise EmailDeliveryError("Email service not configured")

    html_content = compile_mjml_to_html(mjml_content)
    recipients = [to] if isinstance(to, str) else to

    try:
        logger.info(f"📧 Sending email via Resend to: {recipients}")
        email_data = {
            "from": from_address or EMAIL_FROM_ADDRESS,
            "to": recipients,
            "subject": subject,
            "html": html_content,
        }
        # The Resend SDK is synchronous
        response = await asyncio.to_thread(resend.Emails.send, email_data)
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return response
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        raise EmailDeliveryError(f"Failed to send email: {str(e)}") from e


# ============================================
# Session lifecycle emails
# ============================================


async def send_session_scheduled_email(
    to: str,
    recipient_name: str,
    title: str,
    scheduled_at: str,
    duration: int,
    meeting_link: Optional[str] = None,
    is_client: bool = True,
) -> dict:
    """New session request, to whichever party did not request it"""
    mjml_content = session_scheduled_template(
        recipient_name=recipient_name,
        title=title,
        scheduled_at=scheduled_at,
        duration=duration,
        meeting_link=meeting_link,
        is_client=is_client,
    )
    subject = f"New Session Scheduled: {title}" if is_client else f"Session Request: {title}"
    return await send_email(to=to, subject=subject, mjml_content=mjml_content)


async def send_session_confirmed_email(
    to: str,
    recipient_name: str,
    title: str,
    scheduled_at: str,
    duration: int,
    meeting_link: Optional[str] = None,
    confirmed_by: str = "coach",
) -> dict:
    mjml_content = session_confirmed_template(
        recipient_name=recipient_name,
        title=title,
        scheduled_at=scheduled_at,
        duration=duration,
        meeting_link=meeting_link,
        confirmed_by=confirmed_by,
    )
    return await send_email(to=to, subject=f"Session Confirmed: {title}", mjml_content=mjml_content)


async def send_session_reminder_email(
    to: str,
    recipient_name: str,
    title: str,
    scheduled_at: str,
    duration: int,
    meeting_link: Optional[str] = None,
) -> dict:
    mjml_content = session_reminder_template(
        recipient_name=recipient_name,
        title=title,
        scheduled_at=scheduled_at,
        duration=duration,
        meeting_link=meeting_link,
    )
    return await send_email(
        to=to, subject=f"Reminder: Upcoming Coaching Session - {title}", mjml_content=mjml_content
    )


async def send_session_cancelled_email(
    to: str,
    recipient_name: str,
    title: str,
    scheduled_at: str,
    cancelled_by: str,
) -> dict:
    mjml_content = session_cancelled_template(
        recipient_name=recipient_name,
        title=title,
        scheduled_at=scheduled_at,
        cancelled_by=cancelled_by,
    )
    return await send_email(to=to, subject=f"Session Cancelled: {title}", mjml_content=mjml_content)
