"""
Delivery time slot database model.

Named time-of-day windows carrying a fee multiplier.
"""

from sqlalchemy import Column, Integer, String, Numeric, Time, DateTime, Boolean
from sqlalchemy.sql import func
from backend.app.db.session import Base


class TimeSlot(Base):
    """
    Time slot model.

    A window may wrap past midnight (start_time > end_time).
    Several active slots may overlap; the fee calculator takes the highest multiplier.
    """
    __tablename__ = "delivery_time_slots"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    multiplier = Column(Numeric(6, 3), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<TimeSlot(id={self.id}, name='{self.name}', {self.start_time}-{self.end_time} x{self.multiplier})>"
