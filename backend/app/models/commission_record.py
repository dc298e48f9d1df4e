"""
Delivery commission database model.

One row per order: the platform/driver split of the order's delivery fee.
"""

from sqlalchemy import Column, Integer, String, Numeric, DateTime, Enum, CheckConstraint, UniqueConstraint
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.commission_enums import CommissionStatus


class CommissionRecord(Base):
    """
    Commission record model.

    Created PENDING on first settlement, updated in place while PENDING,
    frozen once PAID or CANCELLED.
    platform_amount + driver_amount == delivery_fee, to the cent.
    """
    __tablename__ = "delivery_commissions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Parties
    order_id = Column(String(64), nullable=False, index=True)
    driver_id = Column(String(64), nullable=True, index=True)  # Null until assignment

    # Financials
    delivery_fee = Column(Numeric(10, 2), nullable=False)
    commission_percent = Column(Numeric(5, 2), nullable=False)
    platform_amount = Column(Numeric(10, 2), nullable=False)
    driver_amount = Column(Numeric(10, 2), nullable=False)

    # Status
    status = Column(
        Enum(CommissionStatus, name="commission_status", values_callable=lambda e: [m.value for m in e]),
        default=CommissionStatus.PENDING,
        nullable=False,
        index=True,
    )

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("order_id", name="uq_delivery_commissions_order_id"),
        CheckConstraint("delivery_fee >= 0", name="ck_delivery_commissions_fee"),
        CheckConstraint(
            "commission_percent >= 0 AND commission_percent <= 100",
            name="ck_delivery_commissions_percent",
        ),
        CheckConstraint("platform_amount >= 0", name="ck_delivery_commissions_platform"),
        CheckConstraint("driver_amount >= 0", name="ck_delivery_commissions_driver"),
    )

    def __repr__(self):
        return f"<CommissionRecord(order_id='{self.order_id}', status='{self.status.value}', fee={self.delivery_fee})>"
