"""
Delivery pricing schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime, time
from decimal import Decimal
from typing import List, Optional

from backend.app.models.commission_enums import MultiplierSource


class FeeQuoteRequest(BaseModel):
    """Order context to price. Range checks happen in the fee calculator."""
    subtotal: Decimal
    distance_km: Decimal
    stop_count: int = 1
    placed_at: datetime
    zone_id: Optional[int] = None
    order_id: Optional[str] = None


class FeeBreakdownResponse(BaseModel):
    """Every intermediate pricing term plus the rounded total."""
    base_fee: Decimal
    distance_fee: Decimal
    remote_fee: Decimal
    zone_fee: Decimal
    multi_stop_fee: Decimal
    subtotal_fee: Decimal
    time_multiplier: Decimal
    total_fee: Decimal
    multiplier_source: MultiplierSource
    time_slot_name: Optional[str] = None
    zone_name: Optional[str] = None

    class Config:
        from_attributes = True


class PricingConfigResponse(BaseModel):
    id: Optional[int]
    name: str
    base_fee: Decimal
    price_per_km: Decimal
    free_delivery_threshold: Decimal
    max_free_distance_km: Decimal
    remote_zone_fee: Decimal
    remote_zone_distance_km: Decimal
    multi_stop_fee: Decimal
    rush_hour_multiplier: Decimal
    weekend_multiplier: Decimal
    holiday_multiplier: Decimal
    is_active: bool

    class Config:
        from_attributes = True


class TimeSlotResponse(BaseModel):
    id: Optional[int]
    name: str
    start_time: time
    end_time: time
    multiplier: Decimal

    class Config:
        from_attributes = True


class ZoneResponse(BaseModel):
    id: int
    name: str
    fee: Decimal

    class Config:
        from_attributes = True


class PricingSnapshotResponse(BaseModel):
    """Active pricing as seen by the fee calculator."""
    config: PricingConfigResponse
    time_slots: List[TimeSlotResponse]
    zones: List[ZoneResponse]
    taken_at: Optional[datetime]


class MerchantSubtotal(BaseModel):
    merchant_id: str = Field(..., min_length=1)
    subtotal: Decimal


class FeeDistributionRequest(BaseModel):
    total_fee: Decimal
    method: str = "proportional"
    merchants: List[MerchantSubtotal]


class MerchantFeeShare(BaseModel):
    merchant_id: str
    subtotal: Decimal
    fee: Decimal
    percentage: Decimal

    class Config:
        from_attributes = True


class FeeDistributionResponse(BaseModel):
    total_fee: Decimal
    method: str
    shares: List[MerchantFeeShare]
