# app/routers/pricing/pricing_router.py
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.schemas.pricing_schemas import (
    CalculationContext,
    CalculationRequest,
    CalculationResponse,
    FinalizeRequest,
    FinalizeResponse,
    FinalizedProposalOut,
)
from app.schemas.discount_schemas import ValidateCodeRequest, ValidateCodeResult
from app.schemas.response_schemas import ResponseMessage
from app.services.pricing_services.calculation_service import calculate
from app.services.pricing_services.finalization_service import finalize_proposal
from app.services.discount_services.code_service import validate_promotional_code
from app.utils.get_user import get_current_user

router = APIRouter(prefix="/pricing", tags=["Pricing"])


# ---------------------------
# CALCULATE (preview, no side effects)
# ---------------------------
@router.post("/calculate", response_model=CalculationResponse)
async def calculate_route(
    payload: CalculationRequest,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    result = await calculate(db, CalculationContext.for_user(payload, _user))
    message = "Price calculated"
    if result.provisional:
        message = f"Price calculated; discount is provisional ({result.approval.state.value})"
    return CalculationResponse(message=message, data=result)


# ---------------------------
# VALIDATE CODE
# ---------------------------
@router.post("/validate-code", response_model=ResponseMessage[ValidateCodeResult])
async def validate_code_route(
    payload: ValidateCodeRequest,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    result = await validate_promotional_code(db, _user.org_id, payload)
    return {"message": "Code is valid" if result.valid else result.error, "data": result}


# ---------------------------
# FINALIZE
# ---------------------------
@router.post("/finalize", response_model=FinalizeResponse)
async def finalize_route(
    payload: FinalizeRequest,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    row, already = await finalize_proposal(db, CalculationContext.for_user(payload, _user), _user)
    message = f"Proposal '{row.proposal_ref}' already finalized" if already else f"Proposal '{row.proposal_ref}' finalized"
    return FinalizeResponse(
        message=message,
        already_finalized=already,
        data=FinalizedProposalOut.model_validate(row),
    )
