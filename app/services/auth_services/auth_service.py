# app/services/auth_services/auth_service.py
from datetime import timedelta
from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.models.user_models import User
from app.core.security import verify_password, create_access_token, user_claims
from app.core.config import ACCESS_TOKEN_EXPIRE_MINUTES, ADMIN_ACCESS_TOKEN_EXPIRE_MINUTES
from app.utils.activity_helpers import log_user_activity
from app.utils.check_roles import has_authority
from app.utils.time_utils import utcnow


async def authenticate_user(db: AsyncSession, username: str, password: str) -> User:
    result = await db.execute(select(User).where(User.username == username))
    user = result.scalars().first()
    if not user or not verify_password(password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials"
        )
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is inactive.")
    return user


async def create_access_token_for(db: AsyncSession, user: User) -> str:
    """
    Issue an access token carrying org and role.
    token_version lets a password change or logout invalidate old tokens.
    """
    expire_minutes = (
        ADMIN_ACCESS_TOKEN_EXPIRE_MINUTES
        if has_authority(user.role, "admin")
        else ACCESS_TOKEN_EXPIRE_MINUTES
    )
    access_token = create_access_token(
        user_claims(user),
        token_version=user.token_version,
        expires_delta=timedelta(minutes=expire_minutes),
    )

    user.last_login = utcnow()
    await log_user_activity(db, user_id=user.id, username=user.username, org_id=user.org_id, message="Logged in")
    await db.commit()
    return access_token
