"""Contact form route"""
import logging
from fastapi import APIRouter, HTTPException

from heydj.schemas.contact import ContactMessage
from heydj.services.email_service import validate_email_config, send_contact_message

router = APIRouter(prefix="/api/contact", tags=["contact"])
logger = logging.getLogger(__name__)


@router.post("")
def contact(contact_message: ContactMessage):
    """Forward a message to the support inbox"""
    is_valid, error = validate_email_config()
    if not is_valid:
        logger.warning(f"Contact form unavailable: {error}")
        raise HTTPException(503, "Contact form is not available right now")

    if not send_contact_message(contact_message.name, contact_message.email, contact_message.message):
        raise HTTPException(502, "Failed to send message. Please try again later.")
    return {"success": True}
