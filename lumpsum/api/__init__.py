"""
API routes for the lump-sum payout model.
"""

from fastapi import APIRouter

from lumpsum.api import calculations

router = APIRouter()

# Include sub-routers
router.include_router(calculations.router, prefix="/calculate", tags=["calculations"])
