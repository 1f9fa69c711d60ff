"""
Registration flow routes aggregator.
Combines all route modules into a single router.
"""

from fastapi import APIRouter

from .flow_routes import router as flow_router
from .payment_routes import router as payment_router

# Create main router with prefix
router = APIRouter(prefix="/registration", tags=["registration-flow"])

# Include all sub-routers
# flow_router first - its literal paths must win over /{session_id}
router.include_router(flow_router)
router.include_router(payment_router)
