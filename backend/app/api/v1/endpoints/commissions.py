"""
Commission Settlement API Endpoints.

Entry points for the order and dispatch collaborators. Placement and driver
assignment may arrive in any order; both converge on one record per order.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Path
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import CommissionFinalizedError
from backend.app.core.redis_client import get_redis
from backend.app.db.session import get_db
from backend.app.api.v1.endpoints.delivery_fees import get_holiday_calendar
from backend.app.domain.commission.commission_engine import CommissionEngine
from backend.app.domain.pricing.holidays import HolidayCalendar
from backend.app.domain.pricing.types import OrderContext
from backend.app.schemas.commission import (
    SettleRequest, OrderPlacedRequest, DriverAssignedRequest,
    CommissionResponse, OrderPlacedResponse,
)
from backend.app.services.audit import log_event, AuditAction
from backend.app.services.settlement_hooks import on_order_placed, on_driver_assigned

router = APIRouter(tags=["Commissions - Settlement"])


async def _audit_settlement(db: AsyncSession, record, actor_id: Optional[str], source: str) -> None:
    await log_event(
        db=db,
        action=AuditAction.COMMISSION_SETTLED,
        order_id=record.order_id,
        actor_id=actor_id,
        metadata={
            "source": source,
            "driver_id": record.driver_id,
            "delivery_fee": str(record.delivery_fee),
            "commission_percent": str(record.commission_percent),
        },
    )


async def _audit_rejection(db: AsyncSession, exc: CommissionFinalizedError, actor_id: Optional[str], source: str) -> None:
    await log_event(
        db=db,
        action=AuditAction.COMMISSION_REJECTED,
        order_id=exc.order_id,
        actor_id=actor_id,
        metadata={"source": source, "status": exc.current_status},
    )


@router.post("/commissions/settle", response_model=CommissionResponse)
async def settle_commission(
    request: SettleRequest,
    x_actor_id: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
):
    """
    Create or update the commission record of an order (idempotent).
    """
    try:
        record = await CommissionEngine.settle(
            db,
            order_id=request.order_id,
            delivery_fee=request.delivery_fee,
            driver_id=request.driver_id,
            commission_percent=request.commission_percent,
        )
    except CommissionFinalizedError as exc:
        await _audit_rejection(db, exc, x_actor_id, "settle")
        raise

    await _audit_settlement(db, record, x_actor_id, "settle")
    return record


@router.post("/orders/{order_id}/placed", response_model=OrderPlacedResponse)
async def order_placed(
    request: OrderPlacedRequest,
    order_id: str = Path(..., min_length=1, max_length=64, description="Order ID"),
    x_actor_id: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
    cache=Depends(get_redis),
    holiday_calendar: HolidayCalendar = Depends(get_holiday_calendar),
):
    """
    Order placement hook: price the order, then settle its commission.
    """
    context = OrderContext(
        subtotal=request.subtotal,
        distance_km=request.distance_km,
        stop_count=request.stop_count,
        placed_at=request.placed_at,
        zone_id=request.zone_id,
        order_id=order_id,
    )
    try:
        breakdown, record = await on_order_placed(
            db,
            context,
            driver_id=request.driver_id,
            commission_percent=request.commission_percent,
            cache=cache,
            holiday_calendar=holiday_calendar,
        )
    except CommissionFinalizedError as exc:
        await _audit_rejection(db, exc, x_actor_id, "order_placed")
        raise

    await _audit_settlement(db, record, x_actor_id, "order_placed")
    return OrderPlacedResponse(fee=breakdown, commission=record)


@router.post("/orders/{order_id}/driver-assigned", response_model=CommissionResponse)
async def driver_assigned(
    request: DriverAssignedRequest,
    order_id: str = Path(..., min_length=1, max_length=64, description="Order ID"),
    x_actor_id: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
):
    """
    Driver (re)assignment hook: settle again with the new driver.
    """
    try:
        record = await on_driver_assigned(
            db,
            order_id=order_id,
            driver_id=request.driver_id,
            delivery_fee=request.delivery_fee,
            commission_percent=request.commission_percent,
        )
    except CommissionFinalizedError as exc:
        await _audit_rejection(db, exc, x_actor_id, "driver_assigned")
        raise

    await _audit_settlement(db, record, x_actor_id, "driver_assigned")
    return record
