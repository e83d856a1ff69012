"""
Lead Domain Errors
Failure kinds shared by the store, the lifecycle manager and the reminder worker.
"""
from typing import Dict, List, Optional


class LeadError(Exception):
    """Base class for lead domain failures."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class ValidationError(LeadError):
    """
    Malformed, missing or out-of-range input.

    Always user-correctable. `field` and `message` describe the first failing
    field; `errors` holds every failure found.
    """
    def __init__(
        self,
        field: str,
        message: str,
        errors: Optional[List[Dict[str, str]]] = None
    ):
        self.field = field
        self.errors = errors or [{"field": field, "message": message}]
        super().__init__(message)


class NotFound(LeadError):
    """Raised when an id does not resolve to a live record."""
    def __init__(self, kind: str, lead_id: str):
        self.kind = kind
        self.lead_id = lead_id
        super().__init__(f"{kind} {lead_id} not found")


class ConflictIgnored(LeadError):
    """Reminder compare-and-set found a different reminder than the one read as due."""
    pass


class GatewayFailure(LeadError):
    """Notification delivery failed. Logged, never propagated to callers."""
    pass


class StoreFailure(LeadError):
    """Underlying persistence is unavailable or rejected the operation."""
    pass
