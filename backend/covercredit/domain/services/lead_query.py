"""
Lead Query Builder
Maps untyped admin query parameters onto typed filter and paging arguments.
Never fails: anything unusable falls back to "no filter" or the default.
"""
import sys
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from covercredit.domain.models.variants import LeadVariant


DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
MAX_LIMIT = 100
# Largest page whose OFFSET still fits a signed 64-bit integer
MAX_PAGE = sys.maxsize // MAX_LIMIT


@dataclass(frozen=True)
class LeadFilter:
    """Conjunction of optional predicates; None means unfiltered"""
    status: Optional[str] = None
    category: Optional[str] = None
    search: Optional[str] = None


@dataclass(frozen=True)
class LeadQuery:
    filter: LeadFilter
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def _parse_int(value: Any, default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def clamp_page(value: Any) -> int:
    return min(MAX_PAGE, max(1, _parse_int(value, DEFAULT_PAGE)))


def clamp_limit(value: Any) -> int:
    return min(MAX_LIMIT, max(1, _parse_int(value, DEFAULT_LIMIT)))


def _choice(value: Any, allowed) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not value or value == "all":
        return None
    return value if value in allowed else None


def build_lead_query(variant: LeadVariant, params: Mapping[str, Any]) -> LeadQuery:
    """
    Build a LeadQuery from raw parameters (status, <category>, search, page, limit).

    The categorical filter is read from the variant's category field name
    ("department" for bookings, "interest" for contacts); "category" is
    accepted as a generic alias.
    """
    category_raw = params.get(variant.category_field)
    if category_raw is None:
        category_raw = params.get("category")

    search = params.get("search")
    search = search.strip() if isinstance(search, str) else ""

    lead_filter = LeadFilter(
        status=_choice(params.get("status"), variant.statuses),
        category=_choice(category_raw, variant.categories),
        search=search or None,
    )
    return LeadQuery(
        filter=lead_filter,
        page=clamp_page(params.get("page")),
        limit=clamp_limit(params.get("limit")),
    )


def total_pages(total: int, limit: int) -> int:
    """ceil(total / limit)"""
    if total <= 0:
        return 0
    return (total + limit - 1) // limit
