"""
Commission settlement schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from backend.app.models.commission_enums import CommissionStatus
from backend.app.schemas.pricing import FeeBreakdownResponse


class SettleRequest(BaseModel):
    """Settlement call from the order collaborator."""
    order_id: str = Field(..., min_length=1, max_length=64)
    delivery_fee: Decimal
    driver_id: Optional[str] = Field(None, max_length=64)
    commission_percent: Optional[Decimal] = None


class OrderPlacedRequest(BaseModel):
    """Order placement event: context to price, optional early driver."""
    subtotal: Decimal
    distance_km: Decimal
    stop_count: int = 1
    placed_at: datetime
    zone_id: Optional[int] = None
    driver_id: Optional[str] = Field(None, max_length=64)
    commission_percent: Optional[Decimal] = None


class DriverAssignedRequest(BaseModel):
    """Driver (re)assignment event. Fee defaults to the recorded one."""
    driver_id: str = Field(..., min_length=1, max_length=64)
    delivery_fee: Optional[Decimal] = None
    commission_percent: Optional[Decimal] = None


class CommissionResponse(BaseModel):
    """Persisted commission record."""
    order_id: str
    driver_id: Optional[str]
    delivery_fee: Decimal
    commission_percent: Decimal
    platform_amount: Decimal
    driver_amount: Decimal
    status: CommissionStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class OrderPlacedResponse(BaseModel):
    fee: FeeBreakdownResponse
    commission: CommissionResponse
