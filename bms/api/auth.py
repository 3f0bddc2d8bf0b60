from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from bms.auth import Authenticator, CredentialStore, SESSION_COOKIE_NAME, SessionUser, require_login
from bms.core.db import get_session
from bms.errors import Unauthenticated
from bms.schemas import LoginIn, LoginOut, UserOut

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login")
async def login(payload: LoginIn, request: Request, response: Response, db: AsyncSession = Depends(get_session)):
    user = await Authenticator(CredentialStore(db)).login(payload.username, payload.password)

    tokens = request.app.state.tokens
    response.set_cookie(
        SESSION_COOKIE_NAME,
        tokens.create_cookie(user),
        max_age=tokens.expires_minutes * 60,
        httponly=True,
        samesite="lax",
    )
    out = LoginOut(
        token=tokens.create_token(user),
        user=UserOut(id=user.id, username=user.username, email=user.email, name=user.name, role=user.role),
    )
    return out.model_dump(by_alias=True)


@router.post("/logout")
async def logout(response: Response):
    response.delete_cookie(SESSION_COOKIE_NAME)
    return {"success": True, "message": "Logout successful"}


@router.get("/user")
async def current_user(user: SessionUser = Depends(require_login), db: AsyncSession = Depends(get_session)):
    stored = await CredentialStore(db).get_by_id(user.id)
    if stored is None:
        # token outlived its account
        raise Unauthenticated()
    return UserOut.from_model(stored).model_dump(by_alias=True)
