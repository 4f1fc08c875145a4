"""
Admin endpoints - requires admin authentication
"""
from fastapi import APIRouter
from . import member_records

router = APIRouter()

# Member ledger (manual entries, payments, reconciliation)
router.include_router(member_records.router)
