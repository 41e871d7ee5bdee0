"""API v1 router aggregator.

All v1 endpoint routers are included here and mounted at /api/v1.
"""

from fastapi import APIRouter

from hireflow.api.v1 import admin, onboarding, uploads

router = APIRouter()

# =============================================================================
# Applicant Routers
# =============================================================================

router.include_router(onboarding.router, prefix="/onboarding", tags=["onboarding"])
router.include_router(uploads.router, prefix="/uploads", tags=["uploads"])

# =============================================================================
# Admin Routers
# =============================================================================

router.include_router(admin.router, prefix="/admin", tags=["admin"])
