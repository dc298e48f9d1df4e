"""
Settlement hooks for the order and dispatch collaborators.

Order placement and driver (re)assignment arrive as independent events, in any
order and possibly concurrently. Both end in CommissionEngine.settle() for the
same order_id, which keeps a single record per order.
"""

import logging
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import ValidationError
from backend.app.core.reliability import retry_with_backoff
from backend.app.domain.commission.commission_engine import CommissionEngine
from backend.app.domain.pricing.fee_calculator import compute_from_snapshot
from backend.app.domain.pricing.holidays import HolidayCalendar, default_holiday_calendar
from backend.app.domain.pricing.pricing_provider import PricingProvider
from backend.app.domain.pricing.types import FeeBreakdown, OrderContext
from backend.app.models.commission_record import CommissionRecord

logger = logging.getLogger(__name__)


async def _settle_with_retry(db: AsyncSession, **kwargs) -> CommissionRecord:
    return await retry_with_backoff(
        lambda: CommissionEngine.settle(db, **kwargs),
        attempts=settings.settle_retry_attempts,
        base_delay=settings.settle_retry_base_delay,
    )


async def on_order_placed(
    db: AsyncSession,
    context: OrderContext,
    driver_id: Optional[str] = None,
    commission_percent=None,
    cache=None,
    holiday_calendar: Optional[HolidayCalendar] = None,
) -> Tuple[FeeBreakdown, CommissionRecord]:
    """
    Price the order with the active snapshot and settle its commission.

    Raises:
        ConfigInactiveError: No active pricing (checkout must be blocked)
        ValidationError: Bad order context
        CommissionFinalizedError: Order already paid/cancelled
        PersistenceError: Storage still failing after retries
    """
    if not context.order_id:
        raise ValidationError("order_id", "is required")

    snapshot = await PricingProvider.load_snapshot(db, cache=cache)
    breakdown = compute_from_snapshot(context, snapshot, holiday_calendar or default_holiday_calendar())

    record = await _settle_with_retry(
        db,
        order_id=context.order_id,
        delivery_fee=breakdown.total_fee,
        driver_id=driver_id,
        commission_percent=commission_percent,
    )
    logger.info("Order %s placed: delivery fee %s", context.order_id, breakdown.total_fee)
    return breakdown, record


async def on_driver_assigned(
    db: AsyncSession,
    order_id: str,
    driver_id: str,
    delivery_fee: Optional[Decimal] = None,
    commission_percent=None,
) -> CommissionRecord:
    """
    Settle (again) with the newly assigned driver.

    When the event carries no fee, the fee already recorded for the order is
    reused; an assignment that arrives before any fee is known is rejected.

    Raises:
        NotFoundError: No fee supplied and no record exists for the order
        CommissionFinalizedError: Order already paid/cancelled
        PersistenceError: Storage still failing after retries
    """
    if not driver_id:
        raise ValidationError("driver_id", "is required", driver_id)

    if delivery_fee is None:
        existing = await CommissionEngine.get_commission(db, order_id)
        delivery_fee = existing.delivery_fee
        if commission_percent is None:
            commission_percent = existing.commission_percent

    record = await _settle_with_retry(
        db,
        order_id=order_id,
        delivery_fee=delivery_fee,
        driver_id=driver_id,
        commission_percent=commission_percent,
    )
    logger.info("Driver %s assigned to order %s", driver_id, order_id)
    return record
