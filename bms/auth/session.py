# bms/auth/session.py

from __future__ import annotations

import datetime as dt
from dataclasses import asdict, dataclass

import jwt
from itsdangerous import BadSignature, SignatureExpired, TimedSerializer

SESSION_COOKIE_NAME = "bms_session"
SESSION_SALT = "bms-session"
JWT_ALGORITHM = "HS256"


@dataclass(frozen=True)
class SessionUser:
    """What a request proves about its caller. Never carries a password."""

    id: str
    username: str
    email: str
    role: str
    name: str

    @classmethod
    def from_user(cls, user) -> "SessionUser":
        return cls(id=user.id, username=user.username, email=user.email, role=user.role, name=user.name)

    @classmethod
    def from_claims(cls, data: dict) -> "SessionUser | None":
        try:
            return cls(
                id=str(data["id"]),
                username=str(data["username"]),
                email=str(data.get("email") or ""),
                role=str(data["role"]),
                name=str(data.get("name") or ""),
            )
        except (KeyError, TypeError):
            return None

    def to_claims(self) -> dict:
        return asdict(self)


class SessionTokens:
    """Issues and parses bearer tokens (JWT) and session cookies (itsdangerous)."""

    def __init__(self, secret_key: str, expires_minutes: int):
        self.secret_key = secret_key
        self.expires_minutes = expires_minutes

    # -------------------- bearer token --------------------

    def create_token(self, user: SessionUser) -> str:
        now = dt.datetime.now(dt.timezone.utc)
        payload = {
            **user.to_claims(),
            "sub": user.id,
            "iat": now,
            "exp": now + dt.timedelta(minutes=self.expires_minutes),
        }
        return jwt.encode(payload, self.secret_key, algorithm=JWT_ALGORITHM)

    def parse_token(self, token: str | None) -> SessionUser | None:
        if not token:
            return None
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[JWT_ALGORITHM])
        except jwt.PyJWTError:
            return None
        return SessionUser.from_claims(payload)

    # -------------------- session cookie --------------------

    def _serializer(self) -> TimedSerializer:
        return TimedSerializer(self.secret_key, salt=SESSION_SALT)

    def create_cookie(self, user: SessionUser) -> str:
        # Expiration is enforced at loads() time; the cookie just stores data.
        return self._serializer().dumps(user.to_claims())

    def parse_cookie(self, raw: str | None) -> SessionUser | None:
        if not raw:
            return None
        try:
            data = self._serializer().loads(raw, max_age=self.expires_minutes * 60)
        except (SignatureExpired, BadSignature):
            return None
        if not isinstance(data, dict):
            return None
        return SessionUser.from_claims(data)
