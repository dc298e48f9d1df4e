"""
Delivery pricing configuration database model.

Base pricing parameters consumed by the fee calculator.
"""

from sqlalchemy import Column, Integer, String, Numeric, DateTime, Boolean, Index, text
from sqlalchemy.sql import func
from backend.app.db.session import Base


class PricingConfig(Base):
    """
    Pricing configuration model.

    Owned and edited by the admin collaborator; read-only for this service.
    Exactly one row may be active at a time (partial unique index).
    """
    __tablename__ = "delivery_pricing_configs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False, default="default")

    # Fees
    base_fee = Column(Numeric(10, 2), nullable=False)
    price_per_km = Column(Numeric(10, 2), nullable=False)
    free_delivery_threshold = Column(Numeric(10, 2), nullable=False)
    max_free_distance_km = Column(Numeric(8, 2), nullable=False)
    remote_zone_fee = Column(Numeric(10, 2), nullable=False)
    remote_zone_distance_km = Column(Numeric(8, 2), nullable=False)
    multi_stop_fee = Column(Numeric(10, 2), nullable=False)

    # Multipliers
    rush_hour_multiplier = Column(Numeric(6, 3), nullable=False, default=1)
    weekend_multiplier = Column(Numeric(6, 3), nullable=False, default=1)
    holiday_multiplier = Column(Numeric(6, 3), nullable=False, default=1)

    is_active = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        Index(
            "uq_delivery_pricing_configs_single_active",
            "is_active",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    def __repr__(self):
        return f"<PricingConfig(id={self.id}, name='{self.name}', active={self.is_active})>"
