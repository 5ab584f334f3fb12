# app/schemas/auth_schemas.py
from pydantic import BaseModel, EmailStr
from typing import Literal


class UserLogin(BaseModel):
    username: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: Literal["bearer"] = "bearer"
    role: str
    org_id: int
