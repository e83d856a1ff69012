"""
Public Submission Endpoints
Contact form and consultation booking. No auth; alerts are sent detached.
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Request, status

from covercredit.api.v1.dependencies import get_lifecycle_manager
from covercredit.domain.models.variants import BOOKING, CONTACT
from covercredit.services.lead_lifecycle import LeadLifecycleManager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["submissions"])

CONTACT_THANKS = "Thank you! We will contact you within 24 hours."
BOOKING_THANKS = "Booking confirmed! We will call you shortly to confirm your time slot."


def client_ip(request: Request) -> str:
    """First X-Forwarded-For hop when behind a proxy, else the socket peer"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else ""


@router.post("/contact", status_code=status.HTTP_201_CREATED)
async def submit_contact(
    request: Request,
    payload: Dict[str, Any] = Body(...),
    lifecycle: LeadLifecycleManager = Depends(get_lifecycle_manager)
):
    """
    Save a contact-form lead.

    Admin-only keys in the payload (status, source, notes, reminder) are ignored.
    """
    lead = await lifecycle.submit(CONTACT, payload, ip_address=client_ip(request))
    logger.info(f"New contact lead {lead.id} ({lead.interest})")
    return {"success": True, "message": CONTACT_THANKS, "id": lead.id}


@router.post("/book", status_code=status.HTTP_201_CREATED)
async def submit_booking(
    request: Request,
    payload: Dict[str, Any] = Body(...),
    lifecycle: LeadLifecycleManager = Depends(get_lifecycle_manager)
):
    """Save a consultation booking and return its reference (CC-<year>-XXXX)."""
    lead = await lifecycle.submit(BOOKING, payload, ip_address=client_ip(request))
    logger.info(f"New booking {lead.reference} ({lead.department})")
    return {
        "success": True,
        "message": BOOKING_THANKS,
        "id": lead.id,
        "reference": lead.reference,
    }
