"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from emergency_backend.app.api.v1.endpoints import auth, admin, driver, emergency

router = APIRouter()

# Include authentication endpoints
router.include_router(auth.router)

# Include admin endpoints
router.include_router(admin.router)

# Emergency dispatch
router.include_router(emergency.router)
router.include_router(driver.router)
