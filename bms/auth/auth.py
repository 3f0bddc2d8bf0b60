import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bms.auth.session import SessionUser
from bms.domain.models import User
from bms.errors import InvalidCredentials, ValidationError
from bms.security import burn_password_check, hash_password, verify_password

logger = logging.getLogger("bms.auth")

# Seeded on first start when SEED_DEMO_USERS is on; hashed before insert.
DEMO_USERS = [
    {
        "username": "admin",
        "password": "admin123",
        "email": "admin@techconstruct.com",
        "name": "System Administrator",
        "role": "admin",
    },
    {
        "username": "senior_bidder",
        "password": "bidder123",
        "email": "bidder@techconstruct.com",
        "name": "Rahul Kumar",
        "role": "senior_bidder",
    },
    {
        "username": "finance_manager",
        "password": "finance123",
        "email": "finance@techconstruct.com",
        "name": "Priya Sharma",
        "role": "finance_manager",
    },
]


class CredentialStore:
    """User lookups by username/id over an async session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_username(self, username: str) -> User | None:
        res = await self.db.execute(select(User).where(User.username == username))
        return res.scalar_one_or_none()

    async def get_by_id(self, user_id: str) -> User | None:
        return await self.db.get(User, user_id)

    async def add(self, username: str, password: str, email: str, name: str, role: str) -> User:
        u = User(
            username=username,
            password_hash=hash_password(password),
            email=email,
            name=name,
            role=role,
        )
        self.db.add(u)
        await self.db.flush()
        return u


class Authenticator:
    def __init__(self, store: CredentialStore):
        self.store = store

    async def login(self, username: str, password: str) -> SessionUser:
        """Check a username/password pair; return the session user on success.

        Unknown user and wrong password fail identically.
        """
        if not isinstance(username, str) or not isinstance(password, str) or not username or not password:
            raise ValidationError("Username and password are required")

        user = await self.store.get_by_username(username)
        if user is None:
            burn_password_check(password)
            logger.info("login failed for username=%s", username)
            raise InvalidCredentials()
        if not verify_password(password, user.password_hash):
            logger.info("login failed for username=%s", username)
            raise InvalidCredentials()

        logger.info("login ok username=%s role=%s", user.username, user.role)
        return SessionUser.from_user(user)


async def seed_users_if_missing(db: AsyncSession, users: list[dict] = DEMO_USERS) -> int:
    """Ensure the given users exist; existing usernames are left untouched."""
    store = CredentialStore(db)
    created = 0
    for entry in users:
        if await store.get_by_username(entry["username"]):
            continue
        await store.add(**entry)
        created += 1
    await db.commit()
    if created:
        logger.info("seeded %d user(s)", created)
    return created
