# app/routers/discounts/codes.py
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.schemas.discount_schemas import (
    DiscountCodeCreate,
    DiscountCodeOut,
    DiscountCodeUpdate,
    DiscountCodeUsageOut,
)
from app.schemas.response_schemas import ListResponse, ResponseMessage
from app.services.discount_services.code_service import (
    create_discount_code,
    deactivate_discount_code,
    get_code_usage,
    get_discount_code,
    list_discount_codes,
    update_discount_code,
)
from app.utils.check_roles import MANAGER_ROLES, require_role
from app.utils.get_user import get_current_user

router = APIRouter(prefix="/discounts/codes", tags=["Discount Codes"])


# ---------------------------
# CREATE
# ---------------------------
@router.post("/", response_model=ResponseMessage[DiscountCodeOut], status_code=status.HTTP_201_CREATED)
@require_role(MANAGER_ROLES)
async def create_code_route(
    payload: DiscountCodeCreate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    code = await create_discount_code(db, _user.org_id, payload, _user)
    return {"message": f"Discount code '{code.code}' created", "data": code}


# ---------------------------
# READ
# ---------------------------
@router.get("/", response_model=ListResponse[DiscountCodeOut])
async def list_codes_route(
    active_only: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    codes = await list_discount_codes(db, _user.org_id, active_only)
    return {"message": f"{len(codes)} discount code(s) fetched", "total": len(codes), "data": codes}


@router.get("/{code_id}", response_model=ResponseMessage[DiscountCodeOut])
async def get_code_route(code_id: int, db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    code = await get_discount_code(db, _user.org_id, code_id)
    return {"message": "Discount code fetched", "data": code}


@router.get("/{code_id}/usage", response_model=ListResponse[DiscountCodeUsageOut])
@require_role(MANAGER_ROLES)
async def code_usage_route(code_id: int, db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    usages = await get_code_usage(db, _user.org_id, code_id)
    return {"message": f"{len(usages)} usage(s) fetched", "total": len(usages), "data": usages}


# ---------------------------
# UPDATE / DEACTIVATE
# ---------------------------
@router.put("/{code_id}", response_model=ResponseMessage[DiscountCodeOut])
@require_role(MANAGER_ROLES)
async def update_code_route(
    code_id: int,
    payload: DiscountCodeUpdate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    code = await update_discount_code(db, _user.org_id, code_id, payload, _user)
    return {"message": f"Discount code '{code.code}' updated", "data": code}


@router.delete("/{code_id}", response_model=ResponseMessage[DiscountCodeOut])
@require_role(MANAGER_ROLES)
async def deactivate_code_route(code_id: int, db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    code = await deactivate_discount_code(db, _user.org_id, code_id, _user)
    return {"message": f"Discount code '{code.code}' deactivated", "data": code}
