"""
MJML Email Templates
Session lifecycle emails, compiled to HTML by email_service
"""

from typing import Optional

from .config import APP_URL
from .utils.sanitization import sanitize_string

# App theme colors - Slate blue scheme
THEME = {
    "primary": "#3A5A6D",
    "primary_dark": "#2B4453",
    "primary_light": "#E3ECF1",
    "background": "#f8fafc",
    "card_bg": "#ffffff",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
    "success": "#14b8a6",
    "warning": "#f59e0b",
    "danger": "#DC2626",
}


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="{THEME['primary']}" padding="24px 40px">
          <mj-column>
            <mj-text font-size="22px" font-weight="600" color="#ffffff" padding="0">
              {title}
            </mj-text>
          </mj-column>
        </mj-section>

        <!-- Main Content -->
        <mj-section background-color="#ffffff" padding="32px 40px 48px 40px">
          <mj-column>
            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <!-- Footer -->
        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="12px" color="#94a3b8" padding="0">
              You're receiving this because you have an account with your coaching portal.
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def session_details_block(
    title: str,
    scheduled_at: str,
    duration: Optional[int] = None,
    meeting_link: Optional[str] = None,
    accent: Optional[str] = None,
) -> str:
    """Title / date / duration / meeting link rows shared by the session emails"""
    accent = accent or THEME["primary"]
    rows = [
        f"<strong style=\"color: {accent};\">Title:</strong> {sanitize_string(title)}",
        f"<strong style=\"color: {accent};\">Date &amp; Time:</strong> {scheduled_at}",
    ]
    if duration:
        rows.append(f"<strong style=\"color: {accent};\">Duration:</strong> {duration} minutes")
    if meeting_link:
        link = sanitize_string(meeting_link)
        rows.append(
            f"<strong style=\"color: {accent};\">Meeting Link:</strong> "
            f"<a href=\"{link}\" style=\"color: {accent};\">{link}</a>"
        )

    return f"""
    <mj-text container-background-color="{THEME['primary_light']}" padding="16px 20px" line-height="2">
      {'<br/>'.join(rows)}
    </mj-text>
    """


def session_scheduled_template(
    recipient_name: str,
    title: str,
    scheduled_at: str,
    duration: int,
    meeting_link: Optional[str] = None,
    is_client: bool = True,
) -> str:
    """New session request. To a client it comes from the coach, to a coach from a client."""
    role = "Your coach" if is_client else "Your client"
    verb = "scheduled" if is_client else "requested"
    action = "confirm" if is_client else "review"

    content = f"""
    <mj-text>
      Hi {sanitize_string(recipient_name)},
    </mj-text>

    <mj-text>
      {role} has {verb} a coaching session:
    </mj-text>

    {session_details_block(title, scheduled_at, duration, meeting_link)}

    <mj-text padding="20px 0 0 0">
      Please {action} this session in your coaching portal.
    </mj-text>
    """

    return get_base_template(
        title="New Session Scheduled" if is_client else "Session Request",
        preview_text=f"{'New Session Scheduled' if is_client else 'Session Request'}: {sanitize_string(title)}",
        content_sections=content,
        cta_url=APP_URL,
        cta_label="View Session",
    )


def session_confirmed_template(
    recipient_name: str,
    title: str,
    scheduled_at: str,
    duration: int,
    meeting_link: Optional[str] = None,
    confirmed_by: str = "coach",
) -> str:
    """Sent to the original requester once the other party confirms"""
    content = f"""
    <mj-text>
      Hi {sanitize_string(recipient_name)},
    </mj-text>

    <mj-text>
      Good news! Your {confirmed_by} has confirmed your coaching session.
    </mj-text>

    <mj-text align="center" font-size="18px" font-weight="600" color="{THEME['success']}" padding="20px 0">
      ✓ Session Confirmed
    </mj-text>

    {session_details_block(title, scheduled_at, duration, meeting_link)}
    """

    return get_base_template(
        title="Session Confirmed",
        preview_text=f"Session Confirmed: {sanitize_string(title)}",
        content_sections=content,
        cta_url=APP_URL,
        cta_label="View Session",
    )


def session_reminder_template(
    recipient_name: str,
    title: str,
    scheduled_at: str,
    duration: int,
    meeting_link: Optional[str] = None,
) -> str:
    """Reminder sent by the reminder sweep ahead of the session"""
    content = f"""
    <mj-text>
      Hi {sanitize_string(recipient_name)},
    </mj-text>

    <mj-text>
      This is a reminder that you have an upcoming coaching session:
    </mj-text>

    {session_details_block(title, scheduled_at, duration, meeting_link)}

    <mj-text padding="20px 0 0 0">
      We look forward to seeing you!
    </mj-text>
    """

    return get_base_template(
        title="Session Reminder",
        preview_text=f"Reminder: {sanitize_string(title)}",
        content_sections=content,
        cta_url=APP_URL,
        cta_label="View Session Details",
    )


def session_cancelled_template(
    recipient_name: str,
    title: str,
    scheduled_at: str,
    cancelled_by: str,
) -> str:
    """Cancellation notice to the other party"""
    content = f"""
    <mj-text>
      Hi {sanitize_string(recipient_name)},
    </mj-text>

    <mj-text>
      The following coaching session has been cancelled:
    </mj-text>

    {session_details_block(title, scheduled_at, accent=THEME['danger'])}

    <mj-text color="{THEME['text_muted']}" font-size="14px" padding="16px 0 0 0">
      Cancelled by: {sanitize_string(cancelled_by)}
    </mj-text>

    <mj-text>
      If you'd like to reschedule, you can request a new session from your portal.
    </mj-text>
    """

    return get_base_template(
        title="Session Cancelled",
        preview_text=f"Session Cancelled: {sanitize_string(title)}",
        content_sections=content,
        cta_url=APP_URL,
        cta_label="Open Portal",
    )


__all__ = [
    "session_scheduled_template",
    "session_confirmed_template",
    "session_reminder_template",
    "session_cancelled_template",
    "THEME",
]
