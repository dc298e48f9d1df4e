"""
Delivery zone database model.
"""

from sqlalchemy import Column, Integer, String, Numeric, DateTime, Boolean, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base


class Zone(Base):
    """
    Geographic zone with a flat delivery surcharge.

    `bounds` is the membership predicate (polygon, bbox, postal prefixes...).
    It is opaque here: callers resolve the zone_id before pricing.
    """
    __tablename__ = "delivery_zones"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)
    bounds = Column(JSON, nullable=True)
    fee = Column(Numeric(10, 2), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Zone(id={self.id}, name='{self.name}', fee={self.fee})>"
