"""Authentication utilities exposed at the package level."""

from .auth import DEMO_USERS, Authenticator, CredentialStore, seed_users_if_missing
from .auth_utils import get_optional_user, require, require_admin, require_login
from .gate import ROLE_PERMISSIONS, Decision, authorize, permissions_for
from .session import SESSION_COOKIE_NAME, SessionTokens, SessionUser

__all__ = [
    "DEMO_USERS",
    "Authenticator",
    "CredentialStore",
    "seed_users_if_missing",
    "get_optional_user",
    "require",
    "require_admin",
    "require_login",
    "ROLE_PERMISSIONS",
    "Decision",
    "authorize",
    "permissions_for",
    "SESSION_COOKIE_NAME",
    "SessionTokens",
    "SessionUser",
]
