"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import delivery_fees, commissions, admin_commissions

router = APIRouter()

# Pricing (fee quotes, multi-merchant split, active config)
router.include_router(delivery_fees.router)
router.include_router(delivery_fees.pricing_router)

# Settlement hooks for the order and dispatch collaborators
router.include_router(commissions.router)

# Admin transitions and reporting
router.include_router(admin_commissions.router)
