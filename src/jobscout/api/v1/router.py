"""API v1 main router.

Aggregates all v1 API routers into a single router for inclusion in the app.
"""

from fastapi import APIRouter

from jobscout.api.v1.agents import router as agents_router

router = APIRouter()

# Include sub-routers
router.include_router(agents_router, prefix="/agents", tags=["Agents"])
