"""API Routes."""

from fastapi import APIRouter

from .admin_actions import router as admin_actions_router
from .billing import router as billing_router
from .health import router as health_router
from .subscription import router as subscription_router
from .usage import router as usage_router

# Create main API router
api_router = APIRouter()

# Include route modules
api_router.include_router(health_router, tags=["Health"])
api_router.include_router(usage_router)
api_router.include_router(subscription_router)
api_router.include_router(billing_router)
api_router.include_router(admin_actions_router)
