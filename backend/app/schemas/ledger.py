"""
Commission ledger schemas (reporting).
"""

from pydantic import BaseModel
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional


class PeriodBucket(BaseModel):
    """Rollup of one time bucket (HH:00, YYYY-MM-DD HH:00 or YYYY-MM-DD)."""
    key: str
    count: int
    total_delivery_fees: Decimal
    total_platform_amount: Decimal
    total_driver_amount: Decimal


class DriverRanking(BaseModel):
    driver_id: str
    count: int
    total_amount: Decimal


class CommissionStats(BaseModel):
    """Aggregated commission statistics for a date range."""
    period: Optional[str]
    start: datetime
    end: datetime
    bucket: str  # "hour", "date_hour" or "day"
    driver_id: Optional[str] = None

    total_commissions: int
    total_delivery_fees: Decimal
    total_platform_amount: Decimal
    total_driver_amount: Decimal
    average_commission_percent: Decimal

    by_status: Dict[str, int]
    by_period: List[PeriodBucket]
    top_drivers: List[DriverRanking]
