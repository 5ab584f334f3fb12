# app/routers/auth/auth.py
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.db import get_db
from app.schemas.auth_schemas import UserLogin, TokenResponse
from app.services.auth_services.auth_service import authenticate_user, create_access_token_for

router = APIRouter(prefix="/auth", tags=["Auth"])

@router.post("/login", response_model=TokenResponse)
async def login(data: UserLogin, db: AsyncSession = Depends(get_db)):
    user = await authenticate_user(db, data.username, data.password)
    access_token = await create_access_token_for(db, user)
    return TokenResponse(access_token=access_token, role=user.role, org_id=user.org_id)
