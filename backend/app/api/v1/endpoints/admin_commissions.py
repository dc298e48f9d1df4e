"""
Admin Commission API Endpoints.

Status transitions (mark paid / cancel), record lookup and reporting.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import CommissionFinalizedError
from backend.app.db.session import get_db
from backend.app.domain.commission.commission_engine import CommissionEngine
from backend.app.domain.commission.commission_ledger import CommissionLedger, LedgerFilter
from backend.app.schemas.commission import CommissionResponse
from backend.app.schemas.ledger import CommissionStats
from backend.app.services.audit import log_event, get_audit_trail, AuditAction

router = APIRouter(prefix="/admin/commissions", tags=["Admin - Commissions"])


@router.get("/stats", response_model=CommissionStats)
async def commission_stats(
    period: Optional[str] = Query(None, description="day, week, month or year"),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    driver_id: Optional[str] = Query(None),
    top: Optional[int] = Query(None, ge=0, le=100),
    db: AsyncSession = Depends(get_db),
):
    """
    Aggregate commission records (totals, statuses, rollups, top drivers).
    """
    return await CommissionLedger.aggregate(
        db,
        LedgerFilter(
            period=period,
            start=start_date,
            end=end_date,
            driver_id=driver_id,
            top_n=top,
        ),
    )


@router.get("/{order_id}", response_model=CommissionResponse)
async def get_commission(
    order_id: str = Path(..., description="Order ID"),
    db: AsyncSession = Depends(get_db),
):
    """
    Commission record of an order.
    """
    return await CommissionEngine.get_commission(db, order_id)


@router.get("/{order_id}/audit")
async def get_commission_audit(
    order_id: str = Path(..., description="Order ID"),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
) -> List[dict]:
    """
    Audit trail of an order's commission, newest first.
    """
    entries = await get_audit_trail(db, order_id=order_id, limit=limit)
    return [
        {
            "action": entry.action,
            "actor_id": entry.actor_id,
            "actor_username": entry.actor_username,
            "metadata": entry.meta_data,
            "timestamp": entry.timestamp,
        }
        for entry in entries
    ]


async def _transition(db: AsyncSession, order_id: str, action: str, actor_id: Optional[str], actor_name: Optional[str]):
    operation = CommissionEngine.mark_paid if action == AuditAction.COMMISSION_PAID else CommissionEngine.cancel
    try:
        record = await operation(db, order_id)
    except CommissionFinalizedError as exc:
        await log_event(
            db=db,
            action=AuditAction.COMMISSION_REJECTED,
            order_id=order_id,
            actor_id=actor_id,
            actor_username=actor_name,
            metadata={"attempted": action, "status": exc.current_status},
        )
        raise

    await log_event(
        db=db,
        action=action,
        order_id=order_id,
        actor_id=actor_id,
        actor_username=actor_name,
        metadata={"driver_id": record.driver_id, "driver_amount": str(record.driver_amount)},
    )
    return record


@router.post("/{order_id}/mark-paid", response_model=CommissionResponse)
async def mark_commission_paid(
    order_id: str = Path(..., description="Order ID"),
    x_actor_id: Optional[str] = Header(None),
    x_actor_name: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
):
    """
    Mark a PENDING commission as PAID. Repeating the call is a no-op.
    """
    return await _transition(db, order_id, AuditAction.COMMISSION_PAID, x_actor_id, x_actor_name)


@router.post("/{order_id}/cancel", response_model=CommissionResponse)
async def cancel_commission(
    order_id: str = Path(..., description="Order ID"),
    x_actor_id: Optional[str] = Header(None),
    x_actor_name: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
):
    """
    Cancel a PENDING commission. Repeating the call is a no-op.
    """
    return await _transition(db, order_id, AuditAction.COMMISSION_CANCELLED, x_actor_id, x_actor_name)
