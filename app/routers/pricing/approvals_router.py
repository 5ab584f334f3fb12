# app/routers/pricing/approvals_router.py
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.schemas.approval_schemas import (
    ApprovalPolicyOut,
    ApprovalPolicyUpsert,
    ApprovalRequestCreate,
    ApprovalRequestOut,
    ApprovalReview,
)
from app.schemas.pricing_schemas import CalculationContext
from app.schemas.response_schemas import ListResponse, ResponseMessage
from app.services.pricing_services.approval_service import (
    create_approval_request,
    get_approval_request,
    get_policy,
    list_pending_requests,
    review_approval_request,
    upsert_policy,
)
from app.services.pricing_services.calculation_service import calculate
from app.utils.check_roles import ADMIN_ROLES, MANAGER_ROLES, require_role
from app.utils.get_user import get_current_user

router = APIRouter(prefix="/approvals", tags=["Discount Approvals"])


# ---------------------------
# POLICY
# ---------------------------
@router.get("/policy", response_model=ResponseMessage[ApprovalPolicyOut])
@require_role(MANAGER_ROLES)
async def get_policy_route(db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    policy = await get_policy(db, _user.org_id)
    if not policy:
        raise HTTPException(status_code=404, detail="No approval policy configured")
    return {"message": "Approval policy fetched", "data": policy}


@router.put("/policy", response_model=ResponseMessage[ApprovalPolicyOut])
@require_role(ADMIN_ROLES)
async def put_policy_route(
    payload: ApprovalPolicyUpsert,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    policy = await upsert_policy(db, _user.org_id, payload, _user)
    return {"message": "Approval policy saved", "data": policy}


# ---------------------------
# REQUESTS
# ---------------------------
@router.post("/", response_model=ResponseMessage[ApprovalRequestOut], status_code=status.HTTP_201_CREATED)
async def create_request_route(
    payload: ApprovalRequestCreate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    context = CalculationContext.for_user(payload, _user)
    result = await calculate(db, context)
    request = await create_approval_request(
        db,
        context,
        result,
        reason=payload.reason,
        supporting_notes=payload.supporting_notes,
        username=_user.username,
    )
    return {"message": f"Approval request #{request.id} submitted", "data": request}


@router.get("/pending", response_model=ListResponse[ApprovalRequestOut])
@require_role(MANAGER_ROLES)
async def list_pending_route(db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    requests = await list_pending_requests(db, _user.org_id)
    return {"message": f"{len(requests)} pending request(s)", "total": len(requests), "data": requests}


@router.get("/{request_id}", response_model=ResponseMessage[ApprovalRequestOut])
async def get_request_route(request_id: int, db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    request = await get_approval_request(db, _user.org_id, request_id)
    return {"message": "Approval request fetched", "data": request}


@router.post("/{request_id}/review", response_model=ResponseMessage[ApprovalRequestOut])
async def review_request_route(
    request_id: int,
    payload: ApprovalReview,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    request = await review_approval_request(db, _user.org_id, request_id, payload.decision, _user, payload.notes)
    return {"message": f"Approval request #{request.id} {request.status.value}", "data": request}
