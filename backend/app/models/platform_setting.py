"""
Platform settings database model.

Key/value settings shared with the admin collaborator.
"""

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from backend.app.db.session import Base


DELIVERY_COMMISSION_PERCENT_KEY = "delivery_commission_percent"


class PlatformSetting(Base):
    """Single platform setting, stored as text and parsed by its consumer."""
    __tablename__ = "platform_settings"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    key = Column(String(100), nullable=False, unique=True, index=True)
    value = Column(String(255), nullable=False)
    description = Column(String(255), nullable=True)
    category = Column(String(50), nullable=False, default="general")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<PlatformSetting(key='{self.key}', value='{self.value}')>"
