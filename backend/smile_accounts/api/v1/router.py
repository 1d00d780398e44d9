"""API v1 router aggregator.

All v1 endpoint routers are included here, mounted at /api/v1.
"""

from fastapi import APIRouter

from smile_accounts.api.v1 import accounts, auth, devices

router = APIRouter()

# =============================================================================
# Authentication
# =============================================================================

router.include_router(auth.router, prefix="/auth", tags=["auth"])

# =============================================================================
# Account Resources
# =============================================================================

router.include_router(accounts.router, prefix="/accounts", tags=["accounts"])
router.include_router(devices.router, prefix="/devices", tags=["devices"])
