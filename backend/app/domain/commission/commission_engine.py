"""
Commission Engine (Domain Logic).

Splits an order's delivery fee between the platform and the driver and keeps
exactly one commission record per order.

Settlement is triggered independently by order placement and by driver
(re)assignment. Both paths call settle(); the UNIQUE(order_id) constraint plus
a single INSERT ... ON CONFLICT DO UPDATE ... WHERE status = 'pending'
statement make the calls idempotent and race-free without application locks.
"""

import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import (
    CommissionFinalizedError, NotFoundError, PersistenceError, ValidationError,
)
from backend.app.domain.pricing.types import to_decimal
from backend.app.models.commission_enums import CommissionStatus
from backend.app.models.commission_record import CommissionRecord
from backend.app.models.platform_setting import PlatformSetting, DELIVERY_COMMISSION_PERCENT_KEY

logger = logging.getLogger(__name__)

# The only silent default in pricing/settlement: used when neither the caller
# nor the platform_settings table provides a commission percent.
FALLBACK_COMMISSION_PERCENT = Decimal("20.0")

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
# Largest amount a Numeric(10, 2) column holds
MAX_FEE = Decimal("99999999.99")

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _is_transient(exc: DBAPIError) -> bool:
    return isinstance(exc, (OperationalError, InterfaceError)) or exc.connection_invalidated


async def _rollback_quietly(db: AsyncSession) -> None:
    try:
        await db.rollback()
    except SQLAlchemyError as exc:
        logger.warning("Rollback after storage failure also failed: %s", exc)


def validate_fee(delivery_fee) -> Decimal:
    fee = to_decimal(delivery_fee, "delivery_fee")
    if fee < 0:
        raise ValidationError("delivery_fee", "must be >= 0", delivery_fee)
    if fee != fee.quantize(CENT):
        raise ValidationError("delivery_fee", "must be expressed in whole cents", delivery_fee)
    if fee > MAX_FEE:
        raise ValidationError("delivery_fee", f"must be <= {MAX_FEE}", delivery_fee)
    return fee.quantize(CENT)


def validate_identifier(value: Optional[str], field_name: str) -> Optional[str]:
    if value is None:
        return None
    value = str(value)
    max_length = CommissionRecord.__table__.c[field_name].type.length
    if len(value) > max_length:
        raise ValidationError(field_name, f"must be at most {max_length} characters", value)
    return value


def validate_percent(commission_percent, field_name: str = "commission_percent") -> Decimal:
    percent = to_decimal(commission_percent, field_name)
    if percent < 0 or percent > HUNDRED:
        raise ValidationError(field_name, "must be between 0 and 100", commission_percent)
    if percent != percent.quantize(CENT):
        raise ValidationError(field_name, "at most two decimal places", commission_percent)
    return percent.quantize(CENT)


def split_fee(delivery_fee: Decimal, commission_percent: Decimal) -> Tuple[Decimal, Decimal]:
    """
    Return (platform_amount, driver_amount).

    The driver amount is derived by subtraction so the two always sum to the fee.
    """
    platform_amount = (delivery_fee * commission_percent / HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)
    driver_amount = delivery_fee - platform_amount
    return platform_amount, driver_amount


class CommissionEngine:

    @staticmethod
    async def resolve_commission_percent(db: AsyncSession, commission_percent=None) -> Decimal:
        """
        Caller value, else the platform default setting, else 20.0.

        Raises:
            ValidationError: If the stored platform setting is not a valid percent.
        """
        if commission_percent is not None:
            return validate_percent(commission_percent)

        result = await db.execute(
            select(PlatformSetting.value).where(PlatformSetting.key == DELIVERY_COMMISSION_PERCENT_KEY)
        )
        stored = result.scalar_one_or_none()
        if stored is None or str(stored).strip() == "":
            logger.info("No %s setting, using fallback %s%%", DELIVERY_COMMISSION_PERCENT_KEY, FALLBACK_COMMISSION_PERCENT)
            return FALLBACK_COMMISSION_PERCENT
        return validate_percent(str(stored).strip(), field_name=DELIVERY_COMMISSION_PERCENT_KEY)

    @staticmethod
    async def settle(
        db: AsyncSession,
        order_id: str,
        delivery_fee,
        driver_id: Optional[str] = None,
        commission_percent=None,
    ) -> CommissionRecord:
        """
        Create or update the commission record of an order.

        Flow:
        1. Validate fee and resolve commission percent
        2. Split fee (platform rounded half-up, driver by subtraction)
        3. Atomic upsert keyed by order_id, guarded by status = pending
        4. Commit

        Args:
            db: Database session
            order_id: Order being settled
            delivery_fee: Final delivery fee of the order
            driver_id: Assigned driver, None before assignment
            commission_percent: Explicit percent, overrides the platform default

        Returns:
            The persisted CommissionRecord

        Raises:
            ValidationError: Bad fee or percent, or an id too long to store
            CommissionFinalizedError: Record is paid or cancelled (nothing changed)
            PersistenceError: Transient storage failure, safe to retry
        """
        if not order_id or not str(order_id).strip():
            raise ValidationError("order_id", "is required", order_id)
        order_id = validate_identifier(order_id, "order_id")
        driver_id = validate_identifier(driver_id, "driver_id")
        fee = validate_fee(delivery_fee)

        try:
            percent = await CommissionEngine.resolve_commission_percent(db, commission_percent)
            platform_amount, driver_amount = split_fee(fee, percent)
            now = datetime.utcnow()

            dialect = db.get_bind().dialect.name
            insert = _UPSERT_DIALECTS.get(dialect)
            if insert is None:
                raise RuntimeError(f"Atomic upsert not supported for dialect '{dialect}'")

            stmt = insert(CommissionRecord).values(
                order_id=order_id,
                driver_id=driver_id,
                delivery_fee=fee,
                commission_percent=percent,
                platform_amount=platform_amount,
                driver_amount=driver_amount,
                status=CommissionStatus.PENDING,
                created_at=now,
                updated_at=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[CommissionRecord.order_id],
                set_={
                    "driver_id": func.coalesce(stmt.excluded.driver_id, CommissionRecord.driver_id),
                    "delivery_fee": stmt.excluded.delivery_fee,
                    "commission_percent": stmt.excluded.commission_percent,
                    "platform_amount": stmt.excluded.platform_amount,
                    "driver_amount": stmt.excluded.driver_amount,
                    "updated_at": stmt.excluded.updated_at,
                },
                where=CommissionRecord.status == CommissionStatus.PENDING,
            ).returning(CommissionRecord)

            result = await db.execute(stmt, execution_options={"populate_existing": True})
            record = result.scalar_one_or_none()

            if record is None:
                # Conflict with a terminal row: the guarded update touched nothing
                existing = (await db.execute(
                    select(CommissionRecord).where(CommissionRecord.order_id == order_id),
                    execution_options={"populate_existing": True},
                )).scalar_one_or_none()
                current_status = existing.status.value if existing is not None else None
                await db.rollback()
                if current_status is None:
                    raise PersistenceError("Commission upsert returned no row", details={"order_id": order_id})
                logger.warning("Rejected settlement of order %s: commission already %s", order_id, current_status)
                raise CommissionFinalizedError(order_id, current_status, "settle")

            await db.commit()
        except DBAPIError as exc:
            if not _is_transient(exc):
                await _rollback_quietly(db)
                raise
            await _rollback_quietly(db)
            logger.warning("Transient storage failure settling order %s: %s", order_id, exc)
            raise PersistenceError(details={"order_id": order_id}) from exc

        logger.info(
            "Settled order %s: fee=%s pct=%s platform=%s driver=%s driver_id=%s",
            order_id, fee, percent, platform_amount, driver_amount, driver_id,
        )
        return record

    @staticmethod
    async def get_commission(db: AsyncSession, order_id: str) -> CommissionRecord:
        """
        Raises:
            NotFoundError: If the order has no commission record.
        """
        result = await db.execute(
            select(CommissionRecord).where(CommissionRecord.order_id == order_id),
            execution_options={"populate_existing": True},
        )
        record = result.scalar_one_or_none()
        if record is None:
            raise NotFoundError("Commission for order", order_id)
        return record

    @staticmethod
    async def mark_paid(db: AsyncSession, order_id: str) -> CommissionRecord:
        """PENDING -> PAID. No-op if already PAID."""
        return await CommissionEngine._transition(db, order_id, CommissionStatus.PAID)

    @staticmethod
    async def cancel(db: AsyncSession, order_id: str) -> CommissionRecord:
        """PENDING -> CANCELLED. No-op if already CANCELLED."""
        return await CommissionEngine._transition(db, order_id, CommissionStatus.CANCELLED)

    @staticmethod
    async def _transition(db: AsyncSession, order_id: str, target: CommissionStatus) -> CommissionRecord:
        try:
            result = await db.execute(
                update(CommissionRecord)
                .where(
                    CommissionRecord.order_id == order_id,
                    CommissionRecord.status == CommissionStatus.PENDING,
                )
                .values(status=target, updated_at=datetime.utcnow())
                .execution_options(synchronize_session=False)
            )
            changed = result.rowcount == 1

            record = (await db.execute(
                select(CommissionRecord).where(CommissionRecord.order_id == order_id),
                execution_options={"populate_existing": True},
            )).scalar_one_or_none()
            # Sessions use expire_on_commit=False, so record stays loaded
            await db.commit()
        except DBAPIError as exc:
            await _rollback_quietly(db)
            if not _is_transient(exc):
                raise
            logger.warning("Transient storage failure on %s for order %s: %s", target.value, order_id, exc)
            raise PersistenceError(details={"order_id": order_id}) from exc

        if record is None:
            raise NotFoundError("Commission for order", order_id)
        if changed:
            logger.info("Commission for order %s marked %s", order_id, target.value)
            return record
        if record.status == target:
            return record
        raise CommissionFinalizedError(order_id, record.status.value, f"mark {target.value}")
