# app/utils/get_user.py
from fastapi import Request, Depends, HTTPException, Header
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.models.user_models import User
from app.core.db import get_db
from app.core.security import decode_token


def _read_token(token: str | None, authorization: str | None) -> str:
    # Support either header
    if token:
        return token
    if authorization and authorization.startswith("Bearer "):
        return authorization.split("Bearer ")[1]
    raise HTTPException(status_code=401, detail="Missing access token")


async def get_current_user(
    request: Request,
    token: str | None = Header(default=None),
    authorization: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Resolve the signed-in user. Every pricing and discount query is scoped by
    the returned user's org_id, so a token whose org claim no longer matches
    the account is refused.
    """
    try:
        payload = decode_token(_read_token(token, authorization))
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    username = payload.get("sub")
    token_version = payload.get("token_version")
    if not username or token_version is None or payload.get("type") != "access":
        raise HTTPException(status_code=401, detail="Invalid token payload")

    result = await db.execute(select(User).where(User.username == username))
    user = result.scalars().first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    if user.token_version != token_version:
        raise HTTPException(status_code=401, detail="Token invalidated. Please log in again.")
    if payload.get("org_id") != user.org_id:
        raise HTTPException(status_code=401, detail="Token organization mismatch. Please log in again.")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="User account is inactive.")

    request.state.user = user
    # plain values for the activity middleware; `user` may be expired by then
    request.state.user_id = user.id
    request.state.username = user.username
    request.state.org_id = user.org_id
    return user
