"""
Pricing Configuration Provider.

Read-only queries over the pricing tables owned by the admin collaborator:
1. get_active_pricing_config
2. list_active_time_slots
3. list_active_zones

load_snapshot() reads all three in one transaction (REPEATABLE READ on
PostgreSQL) and optionally caches the whole snapshot in Redis. A cached
snapshot is served only while its config is still the active one.
"""

import json
import logging
from datetime import datetime, time
from decimal import Decimal
from typing import List, Optional

from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.exc import OperationalError, InterfaceError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import PersistenceError
from backend.app.domain.pricing.types import (
    PricingConfigData, PricingSnapshot, TimeSlotRule, ZoneRule,
)
from backend.app.models.pricing_config import PricingConfig
from backend.app.models.time_slot import TimeSlot
from backend.app.models.zone import Zone

logger = logging.getLogger(__name__)

SNAPSHOT_CACHE_KEY = "pricing:snapshot:v1"


def _config_data(row: PricingConfig) -> PricingConfigData:
    return PricingConfigData(
        id=row.id,
        name=row.name,
        base_fee=Decimal(row.base_fee),
        price_per_km=Decimal(row.price_per_km),
        free_delivery_threshold=Decimal(row.free_delivery_threshold),
        max_free_distance_km=Decimal(row.max_free_distance_km),
        remote_zone_fee=Decimal(row.remote_zone_fee),
        remote_zone_distance_km=Decimal(row.remote_zone_distance_km),
        multi_stop_fee=Decimal(row.multi_stop_fee),
        rush_hour_multiplier=Decimal(row.rush_hour_multiplier),
        weekend_multiplier=Decimal(row.weekend_multiplier),
        holiday_multiplier=Decimal(row.holiday_multiplier),
        is_active=row.is_active,
    )


class PricingProvider:

    @staticmethod
    async def get_active_pricing_config(db: AsyncSession) -> Optional[PricingConfigData]:
        """Return the single active configuration, or None."""
        result = await db.execute(
            select(PricingConfig).where(PricingConfig.is_active == True).limit(1)  # noqa: E712
        )
        row = result.scalar_one_or_none()
        return _config_data(row) if row else None

    @staticmethod
    async def active_config_id(db: AsyncSession) -> Optional[int]:
        """Id of the active configuration; used to validate a cached snapshot."""
        began = not db.in_transaction()
        try:
            result = await db.execute(
                select(PricingConfig.id).where(PricingConfig.is_active == True).limit(1)  # noqa: E712
            )
            active_id = result.scalar_one_or_none()
            if began:
                await db.commit()
        except (OperationalError, InterfaceError) as exc:
            logger.warning("Active pricing check failed: %s", exc)
            raise PersistenceError("Could not read pricing configuration") from exc
        return active_id

    @staticmethod
    async def list_active_time_slots(db: AsyncSession) -> List[TimeSlotRule]:
        result = await db.execute(
            select(TimeSlot).where(TimeSlot.is_active == True).order_by(TimeSlot.start_time, TimeSlot.id)  # noqa: E712
        )
        return [
            TimeSlotRule(
                id=slot.id,
                name=slot.name,
                start_time=slot.start_time,
                end_time=slot.end_time,
                multiplier=Decimal(slot.multiplier),
                is_active=slot.is_active,
            )
            for slot in result.scalars().all()
        ]

    @staticmethod
    async def list_active_zones(db: AsyncSession) -> List[ZoneRule]:
        result = await db.execute(
            select(Zone).where(Zone.is_active == True).order_by(Zone.id)  # noqa: E712
        )
        return [
            ZoneRule(id=zone.id, name=zone.name, fee=Decimal(zone.fee), is_active=zone.is_active)
            for zone in result.scalars().all()
        ]

    @staticmethod
    async def load_snapshot(db: AsyncSession, cache=None) -> PricingSnapshot:
        """
        Build a consistent pricing snapshot.

        Args:
            db: Database session
            cache: Optional async Redis client; snapshots with an active config
                are cached for settings.pricing_cache_ttl_seconds.

        Raises:
            PersistenceError: If the database is unreachable.
        """
        if cache is not None and settings.pricing_cache_ttl_seconds > 0:
            cached = await _read_cached(cache)
            if cached is not None:
                # Deactivation or replacement must stop quoting immediately
                active_id = await PricingProvider.active_config_id(db)
                if cached.config is not None and cached.config.id == active_id:
                    return cached
                logger.info("Cached pricing snapshot is stale (active config %s)", active_id)
                await invalidate_snapshot_cache(cache)

        began = not db.in_transaction()
        try:
            if began and db.get_bind().dialect.name == "postgresql":
                await db.connection(execution_options={"isolation_level": "REPEATABLE READ"})
            config = await PricingProvider.get_active_pricing_config(db)
            slots = await PricingProvider.list_active_time_slots(db)
            zones = await PricingProvider.list_active_zones(db)
            if began:
                await db.commit()
        except (OperationalError, InterfaceError) as exc:
            logger.warning("Pricing snapshot read failed: %s", exc)
            raise PersistenceError("Could not read pricing configuration") from exc

        snapshot = PricingSnapshot(
            config=config,
            time_slots=tuple(slots),
            zones=tuple(zones),
            taken_at=datetime.utcnow(),
        )

        # Missing config is never cached so a newly published config applies at once
        if cache is not None and config is not None and settings.pricing_cache_ttl_seconds > 0:
            await _write_cached(cache, snapshot)
        return snapshot


def serialize_snapshot(snapshot: PricingSnapshot) -> str:
    config = snapshot.config
    payload = {
        "config": None if config is None else {
            "id": config.id,
            "name": config.name,
            "base_fee": str(config.base_fee),
            "price_per_km": str(config.price_per_km),
            "free_delivery_threshold": str(config.free_delivery_threshold),
            "max_free_distance_km": str(config.max_free_distance_km),
            "remote_zone_fee": str(config.remote_zone_fee),
            "remote_zone_distance_km": str(config.remote_zone_distance_km),
            "multi_stop_fee": str(config.multi_stop_fee),
            "rush_hour_multiplier": str(config.rush_hour_multiplier),
            "weekend_multiplier": str(config.weekend_multiplier),
            "holiday_multiplier": str(config.holiday_multiplier),
            "is_active": config.is_active,
        },
        "time_slots": [
            {
                "id": slot.id,
                "name": slot.name,
                "start_time": slot.start_time.isoformat(),
                "end_time": slot.end_time.isoformat(),
                "multiplier": str(slot.multiplier),
                "is_active": slot.is_active,
            }
            for slot in snapshot.time_slots
        ],
        "zones": [
            {"id": zone.id, "name": zone.name, "fee": str(zone.fee), "is_active": zone.is_active}
            for zone in snapshot.zones
        ],
        "taken_at": snapshot.taken_at.isoformat() if snapshot.taken_at else None,
    }
    return json.dumps(payload)


def deserialize_snapshot(raw: str) -> PricingSnapshot:
    payload = json.loads(raw)
    config = payload["config"]
    config_data = None
    if config is not None:
        config_data = PricingConfigData(
            id=config["id"],
            name=config["name"],
            is_active=config["is_active"],
            **{
                key: Decimal(config[key])
                for key in (
                    "base_fee", "price_per_km", "free_delivery_threshold",
                    "max_free_distance_km", "remote_zone_fee", "remote_zone_distance_km",
                    "multi_stop_fee", "rush_hour_multiplier", "weekend_multiplier",
                    "holiday_multiplier",
                )
            },
        )
    return PricingSnapshot(
        config=config_data,
        time_slots=tuple(
            TimeSlotRule(
                id=slot["id"],
                name=slot["name"],
                start_time=time.fromisoformat(slot["start_time"]),
                end_time=time.fromisoformat(slot["end_time"]),
                multiplier=Decimal(slot["multiplier"]),
                is_active=slot["is_active"],
            )
            for slot in payload["time_slots"]
        ),
        zones=tuple(
            ZoneRule(id=zone["id"], name=zone["name"], fee=Decimal(zone["fee"]), is_active=zone["is_active"])
            for zone in payload["zones"]
        ),
        taken_at=datetime.fromisoformat(payload["taken_at"]) if payload["taken_at"] else None,
    )


async def _read_cached(cache) -> Optional[PricingSnapshot]:
    # Cache is best-effort; the database stays the source of truth
    try:
        raw = await cache.get(SNAPSHOT_CACHE_KEY)
    except RedisError as exc:
        logger.warning("Pricing cache read failed: %s", exc)
        return None
    if raw is None:
        logger.debug("Pricing cache miss")
        return None
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    logger.debug("Pricing cache hit")
    return deserialize_snapshot(raw)


async def _write_cached(cache, snapshot: PricingSnapshot) -> None:
    try:
        await cache.set(SNAPSHOT_CACHE_KEY, serialize_snapshot(snapshot), ex=settings.pricing_cache_ttl_seconds)
    except RedisError as exc:
        logger.warning("Pricing cache write failed: %s", exc)


async def invalidate_snapshot_cache(cache) -> None:
    """Drop the cached snapshot (called by the admin collaborator after edits)."""
    try:
        await cache.delete(SNAPSHOT_CACHE_KEY)
    except RedisError as exc:
        logger.warning("Pricing cache invalidation failed: %s", exc)
