"""
Commission Ledger (Reporting).

Aggregates existing commission records for dashboards.
Focused on READ-ONLY operations: nothing here writes to the database.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import PersistenceError, ValidationError
from backend.app.models.commission_enums import CommissionStatus
from backend.app.models.commission_record import CommissionRecord
from backend.app.schemas.ledger import CommissionStats, DriverRanking, PeriodBucket

PERIODS = ("day", "week", "month", "year")
DEFAULT_PERIOD = "month"

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


@dataclass(frozen=True)
class LedgerFilter:
    period: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    driver_id: Optional[str] = None
    top_n: Optional[int] = None
    now: Optional[datetime] = None  # Reference time for named periods


def _naive_utc(moment: Optional[datetime]) -> Optional[datetime]:
    # Stored timestamps are naive UTC
    if moment is None or moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def resolve_range(ledger_filter: LedgerFilter) -> Tuple[Optional[str], datetime, datetime, str]:
    """
    Return (period, start, end, bucket) for a filter.

    An explicit start/end pair wins over the period. Weeks start on Sunday.
    """
    start, end = _naive_utc(ledger_filter.start), _naive_utc(ledger_filter.end)
    if (start is None) != (end is None):
        raise ValidationError("start" if start is None else "end", "start and end must be given together")

    if start is not None:
        if start > end:
            raise ValidationError("start", "must not be after end", start)
        if start.date() == end.date():
            bucket = "hour"
        elif end - start <= timedelta(days=1):
            # Crosses midnight, so hour keys carry the date to stay ordered
            bucket = "date_hour"
        else:
            bucket = "day"
        return None, start, end, bucket

    period = ledger_filter.period or DEFAULT_PERIOD
    if period not in PERIODS:
        raise ValidationError("period", f"must be one of {', '.join(PERIODS)}", period)

    now = _naive_utc(ledger_filter.now) or datetime.utcnow()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "day":
        start = midnight
    elif period == "week":
        start = midnight - timedelta(days=(now.weekday() + 1) % 7)
    elif period == "month":
        start = midnight.replace(day=1)
    else:
        start = midnight.replace(month=1, day=1)
    return period, start, now, "hour" if period == "day" else "day"


def _bucket_key(moment: datetime, bucket: str) -> str:
    if bucket == "hour":
        return moment.strftime("%H:00")
    if bucket == "date_hour":
        return moment.strftime("%Y-%m-%d %H:00")
    return moment.strftime("%Y-%m-%d")


def _money(amount: Decimal) -> Decimal:
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


class CommissionLedger:

    @staticmethod
    async def aggregate(db: AsyncSession, ledger_filter: LedgerFilter) -> CommissionStats:
        """
        Aggregate commission records created within the filter's range.

        Computes totals, average commission percent, counts by status,
        time-bucketed rollups and (without a driver filter) the top-N drivers
        by driver_amount (ties by driver_id ascending).
        """
        period, start, end, bucket = resolve_range(ledger_filter)
        top_n = ledger_filter.top_n if ledger_filter.top_n is not None else settings.ledger_top_drivers
        if top_n < 0:
            raise ValidationError("top_n", "must be >= 0", top_n)

        query = select(CommissionRecord).where(
            CommissionRecord.created_at >= start,
            CommissionRecord.created_at <= end,
        )
        if ledger_filter.driver_id:
            query = query.where(CommissionRecord.driver_id == ledger_filter.driver_id)
        query = query.order_by(CommissionRecord.created_at, CommissionRecord.id)

        try:
            records = (await db.execute(query)).scalars().all()
        except (OperationalError, InterfaceError) as exc:
            raise PersistenceError("Could not read commission records") from exc

        total_fees = sum((r.delivery_fee for r in records), ZERO)
        total_platform = sum((r.platform_amount for r in records), ZERO)
        total_driver = sum((r.driver_amount for r in records), ZERO)
        average_percent = ZERO
        if records:
            average_percent = _money(sum((r.commission_percent for r in records), ZERO) / len(records))

        by_status: Dict[str, int] = {status.value: 0 for status in CommissionStatus}
        for record in records:
            by_status[record.status.value] += 1

        buckets: Dict[str, Dict[str, Decimal]] = defaultdict(
            lambda: {"count": 0, "fees": ZERO, "platform": ZERO, "driver": ZERO}
        )
        for record in records:
            entry = buckets[_bucket_key(_naive_utc(record.created_at), bucket)]
            entry["count"] += 1
            entry["fees"] += record.delivery_fee
            entry["platform"] += record.platform_amount
            entry["driver"] += record.driver_amount

        by_period = [
            PeriodBucket(
                key=key,
                count=entry["count"],
                total_delivery_fees=_money(entry["fees"]),
                total_platform_amount=_money(entry["platform"]),
                total_driver_amount=_money(entry["driver"]),
            )
            for key, entry in sorted(buckets.items())
        ]

        top_drivers: List[DriverRanking] = []
        if not ledger_filter.driver_id:
            per_driver: Dict[str, Dict[str, Decimal]] = defaultdict(lambda: {"count": 0, "amount": ZERO})
            for record in records:
                if record.driver_id is None:
                    continue
                per_driver[record.driver_id]["count"] += 1
                per_driver[record.driver_id]["amount"] += record.driver_amount
            ranked = sorted(per_driver.items(), key=lambda item: (-item[1]["amount"], item[0]))
            top_drivers = [
                DriverRanking(driver_id=driver_id, count=entry["count"], total_amount=_money(entry["amount"]))
                for driver_id, entry in ranked[:top_n]
            ]

        return CommissionStats(
            period=period,
            start=start,
            end=end,
            bucket=bucket,
            driver_id=ledger_filter.driver_id,
            total_commissions=len(records),
            total_delivery_fees=_money(total_fees),
            total_platform_amount=_money(total_platform),
            total_driver_amount=_money(total_driver),
            average_commission_percent=average_percent,
            by_status=by_status,
            by_period=by_period,
            top_drivers=top_drivers,
        )
