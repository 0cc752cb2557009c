"""API v1 router aggregator.

All v1 endpoint routers are included here, mounted at /api/v1.
"""

from fastapi import APIRouter

from snapbuy_auth.api.v1 import auth, otp, ott

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(otp.router, prefix="/otp", tags=["otp"])
router.include_router(ott.router, prefix="/ott", tags=["ott"])
