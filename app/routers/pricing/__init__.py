from fastapi import APIRouter
from .pricing_router import router as pricing_router
from .approvals_router import router as approvals_router

router = APIRouter()

router.include_router(pricing_router)
router.include_router(approvals_router)
