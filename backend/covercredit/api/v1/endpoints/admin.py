"""
Admin Endpoints
Lead dashboard, listing, allow-listed updates, call notes, reminders and deletion.

Every route requires a bearer token with role "admin". Routes are shared by
both lead collections: /admin/contacts/... and /admin/bookings/...
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Request

from covercredit.api.v1.dependencies import (
    get_lifecycle_manager,
    get_reminder_worker,
    require_admin,
    resolve_variant,
)
from covercredit.domain.errors import NotFound
from covercredit.domain.models.variants import LeadVariant
from covercredit.domain.services.lead_query import total_pages
from covercredit.services.lead_lifecycle import LeadLifecycleManager
from covercredit.workers.reminder_worker import ReminderWorker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


def _dump(lead) -> Dict[str, Any]:
    return lead.model_dump(mode="json")


@router.get("/stats")
async def get_stats(lifecycle: LeadLifecycleManager = Depends(get_lifecycle_manager)):
    """Totals, new-lead counts, category breakdowns and the latest leads of each kind"""
    stats = await lifecycle.stats()
    stats["recent_contacts"] = [_dump(lead) for lead in stats["recent_contacts"]]
    stats["recent_bookings"] = [_dump(lead) for lead in stats["recent_bookings"]]
    return {"success": True, "data": stats}


@router.get("/reminders/worker")
async def get_worker_stats(worker: Optional[ReminderWorker] = Depends(get_reminder_worker)):
    if worker is None:
        return {"success": True, "data": {"running": False, "enabled": False}}
    return {"success": True, "data": {"enabled": True, **worker.get_stats()}}


@router.get("/{collection}")
async def list_leads(
    request: Request,
    variant: LeadVariant = Depends(resolve_variant),
    lifecycle: LeadLifecycleManager = Depends(get_lifecycle_manager)
):
    """
    Paginated listing, newest first.

    Query: page, limit (max 100), status, department (bookings) or
    interest (contacts), search.
    """
    items, total, query = await lifecycle.list(variant, dict(request.query_params))
    return {
        "success": True,
        "data": [_dump(lead) for lead in items],
        "pagination": {
            "page": query.page,
            "limit": query.limit,
            "total": total,
            "pages": total_pages(total, query.limit),
        },
    }


@router.get("/{collection}/{lead_id}")
async def get_lead(
    lead_id: str,
    variant: LeadVariant = Depends(resolve_variant),
    lifecycle: LeadLifecycleManager = Depends(get_lifecycle_manager)
):
    lead = await lifecycle.get(variant, lead_id)
    return {"success": True, "data": _dump(lead)}


@router.patch("/{collection}/{lead_id}")
async def update_lead(
    lead_id: str,
    payload: Dict[str, Any] = Body(...),
    variant: LeadVariant = Depends(resolve_variant),
    lifecycle: LeadLifecycleManager = Depends(get_lifecycle_manager)
):
    """Contacts accept {status}; bookings accept {status, scheduled_at}. Anything else is rejected."""
    lead = await lifecycle.update(variant, lead_id, payload)
    return {"success": True, "data": _dump(lead)}


@router.post("/{collection}/{lead_id}/notes")
async def add_call_note(
    lead_id: str,
    payload: Dict[str, Any] = Body(...),
    variant: LeadVariant = Depends(resolve_variant),
    lifecycle: LeadLifecycleManager = Depends(get_lifecycle_manager)
):
    lead = await lifecycle.append_note(variant, lead_id, payload.get("text"))
    return {"success": True, "data": _dump(lead)}


@router.put("/{collection}/{lead_id}/reminder")
async def set_reminder(
    lead_id: str,
    payload: Dict[str, Any] = Body(...),
    variant: LeadVariant = Depends(resolve_variant),
    lifecycle: LeadLifecycleManager = Depends(get_lifecycle_manager)
):
    """
    Replace the lead's reminder. Body: {scheduled_at, note}.

    scheduled_at must be an ISO-8601 instant strictly in the future.
    """
    scheduled_at = payload.get("scheduled_at", payload.get("scheduledAt"))
    lead = await lifecycle.set_reminder(variant, lead_id, scheduled_at, payload.get("note", ""))
    return {"success": True, "data": _dump(lead)}


@router.delete("/{collection}/{lead_id}")
async def delete_lead(
    lead_id: str,
    variant: LeadVariant = Depends(resolve_variant),
    lifecycle: LeadLifecycleManager = Depends(get_lifecycle_manager)
):
    deleted = await lifecycle.delete(variant, lead_id)
    if not deleted:
        raise NotFound(variant.label, lead_id)
    return {"success": True, "message": f"{variant.label} deleted."}
