"""
API Dependencies
Shared dependencies for admin authentication and access to the lead services
"""
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from pydantic import BaseModel

from covercredit.core.config import Settings, get_settings
from covercredit.core.security import decode_access_token
from covercredit.domain.models.variants import LeadVariant, get_variant
from covercredit.services.lead_lifecycle import LeadLifecycleManager
from covercredit.workers.reminder_worker import ReminderWorker


class CurrentAdmin(BaseModel):
    """Authenticated admin taken from the bearer token"""
    id: str
    email: Optional[str] = None
    role: str = "user"


def get_app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def get_lifecycle_manager(request: Request) -> LeadLifecycleManager:
    return request.app.state.lifecycle


def get_reminder_worker(request: Request) -> Optional[ReminderWorker]:
    return getattr(request.app.state, "reminder_worker", None)


def resolve_variant(collection: str) -> LeadVariant:
    """Map the {collection} path segment ("contacts" / "bookings") to its variant."""
    try:
        return get_variant(collection)
    except KeyError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown collection: {collection}"
        )


async def get_current_admin(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    settings: Settings = Depends(get_app_settings)
) -> CurrentAdmin:
    """
    Dependency to get the current user from a bearer JWT.

    Raises:
        HTTPException: 401 if the header is missing or malformed,
            403 if the token is invalid or expired
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access denied. No token provided.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Extract token from "Bearer <token>"
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format. Use: Bearer <token>",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_access_token(parts[1], settings)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid or expired token."
        )

    return CurrentAdmin(
        id=str(payload.get("sub") or payload.get("id") or ""),
        email=payload.get("email"),
        role=payload.get("role", "user"),
    )


async def require_admin(
    current_user: CurrentAdmin = Depends(get_current_admin)
) -> CurrentAdmin:
    """
    Dependency to require admin role.

    Raises:
        HTTPException: If user is not an admin
    """
    if current_user.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return current_user
