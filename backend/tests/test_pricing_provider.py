"""
Pricing Provider Tests.

Snapshot reads, the single-active-config rule and the Redis snapshot cache.
"""

import pytest
from datetime import datetime, time
from decimal import Decimal
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.exc import IntegrityError

from backend.app.core.exceptions import ConfigInactiveError
from backend.app.domain.pricing.fee_calculator import compute_from_snapshot
from backend.app.domain.pricing.pricing_provider import (
    PricingProvider, SNAPSHOT_CACHE_KEY, deserialize_snapshot,
    invalidate_snapshot_cache, serialize_snapshot,
)
from backend.app.domain.pricing.types import OrderContext
from backend.app.models.pricing_config import PricingConfig
from backend.app.models.time_slot import TimeSlot
from backend.app.models.zone import Zone


class FailingRedis:
    async def get(self, key):
        raise RedisConnectionError("redis down")

    async def set(self, key, value, ex=None):
        raise RedisConnectionError("redis down")

    async def delete(self, key):
        raise RedisConnectionError("redis down")


@pytest.fixture
async def pricing_tables(db_session, active_pricing):
    db_session.add_all([
        TimeSlot(name="dinner", start_time=time(18, 0), end_time=time(21, 0), multiplier=Decimal("1.4")),
        TimeSlot(name="lunch", start_time=time(11, 30), end_time=time(13, 30), multiplier=Decimal("1.25")),
        TimeSlot(name="retired", start_time=time(6, 0), end_time=time(8, 0), multiplier=Decimal("2"), is_active=False),
        Zone(name="Downtown", fee=Decimal("1.50")),
        Zone(name="Airport", fee=Decimal("4.00"), is_active=False),
    ])
    await db_session.commit()
    return active_pricing


@pytest.mark.asyncio
async def test_no_active_config_returns_none(db_session, pricing_values):
    db_session.add(PricingConfig(name="draft", is_active=False, **pricing_values))
    await db_session.commit()

    assert await PricingProvider.get_active_pricing_config(db_session) is None


@pytest.mark.asyncio
async def test_active_config_values(db_session, active_pricing):
    config = await PricingProvider.get_active_pricing_config(db_session)

    assert config.id == active_pricing.id
    assert config.base_fee == Decimal("2.99")
    assert config.holiday_multiplier == Decimal("1.3")
    assert config.is_active is True


@pytest.mark.asyncio
async def test_only_active_slots_and_zones(db_session, pricing_tables):
    slots = await PricingProvider.list_active_time_slots(db_session)
    zones = await PricingProvider.list_active_zones(db_session)

    assert [slot.name for slot in slots] == ["lunch", "dinner"]
    assert [zone.name for zone in zones] == ["Downtown"]


@pytest.mark.asyncio
async def test_second_active_config_rejected(db_session, active_pricing, pricing_values):
    db_session.add(PricingConfig(name="competing", is_active=True, **pricing_values))
    with pytest.raises(IntegrityError):
        await db_session.commit()
    await db_session.rollback()


@pytest.mark.asyncio
async def test_snapshot_reads_everything(db_session, pricing_tables):
    snapshot = await PricingProvider.load_snapshot(db_session)

    assert snapshot.config.name == "default"
    assert len(snapshot.time_slots) == 2
    assert len(snapshot.zones) == 1
    assert snapshot.taken_at is not None


@pytest.mark.asyncio
async def test_snapshot_is_cached(db_session, pricing_tables, redis_client_session):
    await PricingProvider.load_snapshot(db_session, cache=redis_client_session)
    assert SNAPSHOT_CACHE_KEY in redis_client_session.store

    # Edits are invisible until the cache entry expires or is invalidated
    pricing_tables.base_fee = Decimal("9.99")
    await db_session.commit()
    cached = await PricingProvider.load_snapshot(db_session, cache=redis_client_session)
    assert cached.config.base_fee == Decimal("2.99")

    await invalidate_snapshot_cache(redis_client_session)
    fresh = await PricingProvider.load_snapshot(db_session, cache=redis_client_session)
    assert fresh.config.base_fee == Decimal("9.99")


@pytest.mark.asyncio
async def test_missing_config_is_not_cached(db_session, redis_client_session):
    snapshot = await PricingProvider.load_snapshot(db_session, cache=redis_client_session)

    assert snapshot.config is None
    assert SNAPSHOT_CACHE_KEY not in redis_client_session.store


@pytest.mark.asyncio
async def test_cache_failure_falls_back_to_database(db_session, pricing_tables):
    cache = FailingRedis()

    snapshot = await PricingProvider.load_snapshot(db_session, cache=cache)
    await invalidate_snapshot_cache(cache)

    assert snapshot.config.base_fee == Decimal("2.99")


@pytest.mark.asyncio
async def test_serialized_snapshot_keeps_decimals_and_times(db_session, pricing_tables):
    snapshot = await PricingProvider.load_snapshot(db_session)

    restored = deserialize_snapshot(serialize_snapshot(snapshot))

    assert restored == snapshot
    assert isinstance(restored.config.multi_stop_fee, Decimal)
    assert restored.time_slots[0].start_time == time(11, 30)


@pytest.mark.asyncio
async def test_deactivated_config_stops_quoting_despite_cache(db_session, pricing_tables, redis_client_session):
    await PricingProvider.load_snapshot(db_session, cache=redis_client_session)
    assert SNAPSHOT_CACHE_KEY in redis_client_session.store

    pricing_tables.is_active = False
    await db_session.commit()

    snapshot = await PricingProvider.load_snapshot(db_session, cache=redis_client_session)

    assert snapshot.config is None
    assert SNAPSHOT_CACHE_KEY not in redis_client_session.store
    with pytest.raises(ConfigInactiveError):
        compute_from_snapshot(
            OrderContext(subtotal=Decimal("20"), distance_km=Decimal("3"), placed_at=datetime(2026, 10, 14, 12, 0)),
            snapshot,
        )


@pytest.mark.asyncio
async def test_replacement_config_is_picked_up_despite_cache(db_session, pricing_tables, redis_client_session, pricing_values):
    await PricingProvider.load_snapshot(db_session, cache=redis_client_session)

    pricing_tables.is_active = False
    await db_session.commit()
    db_session.add(PricingConfig(name="winter", is_active=True, **{**pricing_values, "base_fee": Decimal("4.49")}))
    await db_session.commit()

    snapshot = await PricingProvider.load_snapshot(db_session, cache=redis_client_session)

    assert snapshot.config.name == "winter"
    assert snapshot.config.base_fee == Decimal("4.49")
    assert deserialize_snapshot(redis_client_session.store[SNAPSHOT_CACHE_KEY]).config.name == "winter"
