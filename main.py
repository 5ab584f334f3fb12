# main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.routers import auth
from app.routers import pricing
from app.routers import discounts
from app.core.db import init_models
from app.core.logging_config import setup_logging
from app.middleware.activity_logger import ActivityLoggerMiddleware

setup_logging()

app = FastAPI(
    title="Proposal Pricing API",
    description="FastAPI backend for proposal pricing, discounts and discount approvals",
    version="0.1.0"
)
# CORS setup
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # adjust for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ActivityLoggerMiddleware)

# Health check endpoint
@app.get("/", tags=["Health"])
async def health_check():
    return {"status": "ok", "message": "Backend is running"}

# Register routers
app.include_router(auth.router)
app.include_router(pricing.router)
app.include_router(discounts.router)


@app.on_event("startup")
async def on_startup():
    await init_models()
