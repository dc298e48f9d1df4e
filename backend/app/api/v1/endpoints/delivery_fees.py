"""
Delivery Fee API Endpoints.

Quotes delivery fees against the active pricing snapshot and exposes the
config collaborator's read-only view.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import ConfigInactiveError
from backend.app.core.redis_client import get_redis
from backend.app.db.session import get_db
from backend.app.domain.pricing.fee_calculator import compute_from_snapshot
from backend.app.domain.pricing.fee_distribution import MerchantShareInput, distribute_fee
from backend.app.domain.pricing.holidays import HolidayCalendar, default_holiday_calendar
from backend.app.domain.pricing.pricing_provider import PricingProvider
from backend.app.domain.pricing.types import OrderContext
from backend.app.schemas.pricing import (
    FeeQuoteRequest, FeeBreakdownResponse, PricingSnapshotResponse,
    FeeDistributionRequest, FeeDistributionResponse, MerchantFeeShare,
)

router = APIRouter(prefix="/delivery-fees", tags=["Delivery Fees"])
pricing_router = APIRouter(prefix="/pricing", tags=["Pricing"])


def get_holiday_calendar() -> HolidayCalendar:
    return default_holiday_calendar()


@router.post("/quote", response_model=FeeBreakdownResponse)
async def quote_delivery_fee(
    request: FeeQuoteRequest,
    db: AsyncSession = Depends(get_db),
    cache=Depends(get_redis),
    holiday_calendar: HolidayCalendar = Depends(get_holiday_calendar),
):
    """
    Compute the delivery fee breakdown for an order context.

    Returns 503 ERR_PRICING_INACTIVE when no pricing is published and
    422 ERR_INVALID_FIELD naming the field when the context is out of range.
    """
    snapshot = await PricingProvider.load_snapshot(db, cache=cache)
    context = OrderContext(
        subtotal=request.subtotal,
        distance_km=request.distance_km,
        stop_count=request.stop_count,
        placed_at=request.placed_at,
        zone_id=request.zone_id,
        order_id=request.order_id,
    )
    return compute_from_snapshot(context, snapshot, holiday_calendar)


@router.post("/distribute", response_model=FeeDistributionResponse)
async def distribute_delivery_fee(request: FeeDistributionRequest):
    """
    Split one delivery fee across the merchants of a multi-merchant order.
    """
    shares = distribute_fee(
        request.total_fee,
        [MerchantShareInput(merchant_id=m.merchant_id, subtotal=m.subtotal) for m in request.merchants],
        request.method,
    )
    return FeeDistributionResponse(
        total_fee=request.total_fee,
        method=request.method,
        shares=[MerchantFeeShare.model_validate(share) for share in shares],
    )


@pricing_router.get("/active", response_model=PricingSnapshotResponse)
async def get_active_pricing(
    db: AsyncSession = Depends(get_db),
    cache=Depends(get_redis),
):
    """
    Active pricing configuration with its active time slots and zones.
    """
    snapshot = await PricingProvider.load_snapshot(db, cache=cache)
    if snapshot.config is None:
        raise ConfigInactiveError()
    return PricingSnapshotResponse(
        config=snapshot.config,
        time_slots=list(snapshot.time_slots),
        zones=list(snapshot.zones),
        taken_at=snapshot.taken_at,
    )
