"""Role/permission policy and the authorization decision."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from bms.auth.session import SessionUser
from bms.errors import BMSError, InsufficientPermission, InsufficientRole, Unauthenticated

# ============ ROLE PERMISSIONS ============

ALL_PERMISSIONS = frozenset(
    {
        "view_tenders",
        "create_tenders",
        "edit_tenders",
        "delete_tenders",
        "assign_tenders",
        "upload_documents",
        "import_tenders",
        "create_bids",
        "view_reports",
        "finance",
        "manage_users",
    }
)

ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    "admin": ALL_PERMISSIONS,
    "senior_bidder": frozenset(
        {
            "view_tenders",
            "create_tenders",
            "edit_tenders",
            "assign_tenders",
            "upload_documents",
            "import_tenders",
            "create_bids",
        }
    ),
    "finance_manager": frozenset({"view_tenders", "view_reports", "finance"}),
    "bidder": frozenset({"view_tenders", "create_bids", "upload_documents"}),
    "manager": frozenset({"view_tenders", "create_bids", "upload_documents"}),
}


def permissions_for(role: str | None) -> frozenset[str]:
    return ROLE_PERMISSIONS.get(role or "", frozenset())


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None  # error code when denied

    def raise_for_denial(self) -> None:
        if self.allowed:
            return
        raise _DENIALS[self.reason]()


_DENIALS: dict[str, type[BMSError]] = {
    Unauthenticated.code: Unauthenticated,
    InsufficientRole.code: InsufficientRole,
    InsufficientPermission.code: InsufficientPermission,
}

ALLOW = Decision(True)


def authorize(
    session: SessionUser | None,
    required_role: str | None = None,
    required_permission: str | None = None,
) -> Decision:
    if session is None:
        return Decision(False, Unauthenticated.code)
    if required_role is not None and session.role != required_role:
        return Decision(False, InsufficientRole.code)
    if required_permission is not None and required_permission not in permissions_for(session.role):
        return Decision(False, InsufficientPermission.code)
    return ALLOW
