"""
Health Endpoint
"""
from typing import Optional

from fastapi import APIRouter, Depends

from covercredit.api.v1.dependencies import get_app_settings, get_reminder_worker
from covercredit.core.config import Settings
from covercredit.utils.time import utc_now
from covercredit.workers.reminder_worker import ReminderWorker

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(
    settings: Settings = Depends(get_app_settings),
    worker: Optional[ReminderWorker] = Depends(get_reminder_worker)
):
    return {
        "success": True,
        "message": "Cover Credit API is running",
        "timestamp": utc_now().isoformat() + "Z",
        "environment": settings.environment,
        "reminder_worker": bool(worker and worker.running),
    }
