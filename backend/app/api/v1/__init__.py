"""
API v1 Router - FitSense
"""
from fastapi import APIRouter
from app.api.v1.endpoints.admin import router as admin_router

router = APIRouter()

# Admin (member ledger)
router.include_router(
    admin_router,
    prefix="/admin",
    tags=["admin"]
)
