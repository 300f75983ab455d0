"""Email service - transactional email via Resend"""
import html
import logging

import resend

from heydj.core.config import settings

logger = logging.getLogger(__name__)


def validate_email_config() -> tuple[bool, str]:
    """
    Validate email service configuration.

    Returns:
        tuple: (is_valid, error_message)
    """
    if not settings.RESEND_API_KEY:
        return False, "RESEND_API_KEY is not set in environment variables"

    if not settings.CONTACT_EMAIL:
        return False, "CONTACT_EMAIL is not set in environment variables"

    return True, ""


def _send_email(to: str, subject: str, body_html: str, reply_to: str = None) -> bool:
    """
    Internal helper function to send email via Resend API.

    Returns:
        bool: True on success, False on failure
    """
    if not settings.RESEND_API_KEY:
        logger.warning("RESEND_API_KEY is not set; skipping email")
        return False

    params = {
        "from": settings.RESEND_FROM_EMAIL,
        "to": to,
        "subject": subject,
        "html": body_html,
    }
    if reply_to:
        params["reply_to"] = reply_to

    try:
        resend.api_key = settings.RESEND_API_KEY
        response = resend.Emails.send(params)

        # Resend returns a dict with 'id' on success
        email_id = None
        if isinstance(response, dict):
            email_id = response.get('id')
        elif hasattr(response, 'id'):
            email_id = response.id

        if email_id:
            logger.info(f"Email sent successfully to {to} (id: {email_id})")
            return True
        logger.error(f"Email send returned invalid response: {response}")
        return False

    except Exception as exc:
        logger.error(f"Failed to send email to {to}: {exc}", exc_info=True)
        return False


def send_contact_message(name: str, email: str, message: str) -> bool:
    """
    Forward a contact-form message to the support inbox.

    Args:
        name: Sender's name
        email: Sender's address (used as reply-to)
        message: Message body as typed by the sender

    Returns:
        bool: True on success, False on failure
    """
    body = f"""
    <p><strong>From:</strong> {html.escape(name)} &lt;{html.escape(email)}&gt;</p>
    <p style="white-space: pre-wrap;">{html.escape(message)}</p>
    """
    return _send_email(
        settings.CONTACT_EMAIL,
        f"Hey DJ contact form: {name}",
        body,
        reply_to=email
    )
