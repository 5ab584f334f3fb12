from fastapi import APIRouter
from .codes import router as codes_router
from .campaigns import router as campaigns_router
from .volume import router as volume_router
from .rules import router as rules_router
from .loyalty import router as loyalty_router

router = APIRouter()

router.include_router(codes_router)
router.include_router(campaigns_router)
router.include_router(volume_router)
router.include_router(rules_router)
router.include_router(loyalty_router)
