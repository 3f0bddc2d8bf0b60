# bms/auth/auth_utils.py
from typing import Optional

from fastapi import Depends, Request

from bms.auth.gate import authorize
from bms.auth.session import SESSION_COOKIE_NAME, SessionUser


def get_optional_user(request: Request) -> Optional[SessionUser]:
    """Resolve the caller from a bearer token, falling back to the session cookie."""
    tokens = request.app.state.tokens
    header = request.headers.get("authorization") or ""
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return tokens.parse_token(credentials.strip())
    return tokens.parse_cookie(request.cookies.get(SESSION_COOKIE_NAME))


def require_login(user: Optional[SessionUser] = Depends(get_optional_user)) -> SessionUser:
    authorize(user).raise_for_denial()
    return user


def require(role: str | None = None, permission: str | None = None):
    """Dependency factory: allow only sessions holding ``role`` and/or ``permission``."""

    def _guard(user: Optional[SessionUser] = Depends(get_optional_user)) -> SessionUser:
        authorize(user, required_role=role, required_permission=permission).raise_for_denial()
        return user

    return _guard


require_admin = require(role="admin")
