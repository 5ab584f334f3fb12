# app/routers/discounts/loyalty.py
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.schemas.loyalty_schemas import (
    CustomerLoyaltyOut,
    EnrollRequest,
    LoyaltyBalanceResponse,
    LoyaltyProgramOut,
    LoyaltyProgramUpsert,
)
from app.schemas.response_schemas import ResponseMessage
from app.services.discount_services.loyalty_service import (
    enroll_customer,
    get_balance,
    get_program,
    list_transactions,
    points_value,
    upsert_program,
)
from app.utils.check_roles import ADMIN_ROLES, require_role
from app.utils.get_user import get_current_user

router = APIRouter(prefix="/discounts/loyalty", tags=["Loyalty"])


# ---------------------------
# PROGRAM
# ---------------------------
@router.get("/program", response_model=ResponseMessage[LoyaltyProgramOut])
async def get_program_route(db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    program = await get_program(db, _user.org_id)
    if not program:
        raise HTTPException(status_code=404, detail="Loyalty program is not configured")
    return {"message": "Loyalty program fetched", "data": program}


@router.put("/program", response_model=ResponseMessage[LoyaltyProgramOut])
@require_role(ADMIN_ROLES)
async def put_program_route(
    payload: LoyaltyProgramUpsert,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    program = await upsert_program(db, _user.org_id, payload, _user)
    return {"message": "Loyalty program saved", "data": program}


# ---------------------------
# CUSTOMERS
# ---------------------------
@router.post("/enroll", response_model=ResponseMessage[CustomerLoyaltyOut], status_code=status.HTTP_201_CREATED)
async def enroll_route(payload: EnrollRequest, db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    account = await enroll_customer(db, _user.org_id, payload.client_id, _user)
    return {"message": f"Client {account.client_id} enrolled", "data": account}


@router.get("/customers/{client_id}", response_model=LoyaltyBalanceResponse)
async def balance_route(
    client_id: int,
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    account = await get_balance(db, _user.org_id, client_id)
    program = await get_program(db, _user.org_id)
    transactions = await list_transactions(db, _user.org_id, client_id, limit)
    return {
        "message": "Loyalty balance fetched",
        "data": account,
        "currency_value": points_value(program, account.current_points),
        "transactions": transactions,
    }
