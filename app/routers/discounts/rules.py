# app/routers/discounts/rules.py
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.schemas.discount_schemas import AutoRuleCreate, AutoRuleOut
from app.schemas.response_schemas import ListResponse, ResponseMessage
from app.services.discount_services.rule_service import create_rule, deactivate_rule, list_rules
from app.utils.check_roles import MANAGER_ROLES, require_role
from app.utils.get_user import get_current_user

router = APIRouter(prefix="/discounts/auto-rules", tags=["Automatic Discount Rules"])


@router.post("/", response_model=ResponseMessage[AutoRuleOut], status_code=status.HTTP_201_CREATED)
@require_role(MANAGER_ROLES)
async def create_rule_route(
    payload: AutoRuleCreate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    rule = await create_rule(db, _user.org_id, payload, _user)
    return {"message": f"Rule '{rule.name}' created", "data": rule}


@router.get("/", response_model=ListResponse[AutoRuleOut])
async def list_rules_route(
    active_only: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    rules = await list_rules(db, _user.org_id, active_only)
    return {"message": f"{len(rules)} rule(s) fetched", "total": len(rules), "data": rules}


@router.delete("/{rule_id}", response_model=ResponseMessage[AutoRuleOut])
@require_role(MANAGER_ROLES)
async def deactivate_rule_route(rule_id: int, db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    rule = await deactivate_rule(db, _user.org_id, rule_id, _user)
    return {"message": f"Rule '{rule.name}' deactivated", "data": rule}
