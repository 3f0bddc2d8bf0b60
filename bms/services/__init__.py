"""Application-level service helpers."""

from .listing import FilterSpec, ListResult, list_tenders
from .tender_repo import TenderChange, TenderRepository

__all__ = [
    "FilterSpec",
    "ListResult",
    "list_tenders",
    "TenderChange",
    "TenderRepository",
]
