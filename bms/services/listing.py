"""Filter spec parsing, clamping and page arithmetic for tender listings."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 50
MAX_LIMIT = 100
# keeps (page - 1) * limit inside a signed 64-bit OFFSET
MAX_PAGE = (2**63 - 1) // MAX_LIMIT

SORT_FIELDS = ("deadline", "value", "createdAt", "title")


def clamp_page(page: int) -> int:
    return min(MAX_PAGE, max(1, page))


def clamp_limit(limit: int) -> int:
    return min(MAX_LIMIT, max(1, limit))


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / clamp_limit(limit))


def _int_or(raw, default: int) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


def _clean(raw: Optional[str]) -> Optional[str]:
    if raw is None:
        return None
    raw = raw.strip()
    return raw or None


@dataclass(frozen=True)
class FilterSpec:
    search: Optional[str] = None
    source: Optional[str] = None
    status: Optional[str] = None  # None hides missed opportunities, "all" shows everything
    assigned_to: Optional[str] = None
    sort_by: str = "deadline"
    sort_order: str = "asc"
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    def __post_init__(self):
        object.__setattr__(self, "page", clamp_page(self.page))
        object.__setattr__(self, "limit", clamp_limit(self.limit))
        if self.sort_by not in SORT_FIELDS:
            object.__setattr__(self, "sort_by", "deadline")
        if self.sort_order not in ("asc", "desc"):
            object.__setattr__(self, "sort_order", "asc")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @classmethod
    def from_query(cls, params: Mapping[str, str]) -> "FilterSpec":
        source = _clean(params.get("source"))
        if source == "all":
            source = None
        assigned_to = _clean(params.get("assignedTo"))
        if assigned_to == "all":
            assigned_to = None
        return cls(
            search=_clean(params.get("search")),
            source=source,
            status=_clean(params.get("status")),
            assigned_to=assigned_to,
            sort_by=_clean(params.get("sortBy")) or "deadline",
            sort_order=(_clean(params.get("sortOrder")) or "asc").lower(),
            page=_int_or(params.get("page"), DEFAULT_PAGE),
            limit=_int_or(params.get("limit"), DEFAULT_LIMIT),
        )


@dataclass
class ListResult:
    items: Sequence = field(default_factory=list)
    total: int = 0
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @property
    def total_pages(self) -> int:
        return total_pages(self.total, self.limit)


async def list_tenders(repo, spec: FilterSpec) -> ListResult:
    """Count the filtered set, then fetch one page of it."""
    total = await repo.count(spec)
    items = await repo.find(spec)
    return ListResult(items=items, total=total, page=spec.page, limit=spec.limit)
