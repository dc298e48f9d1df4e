"""
Audit logging service for commission actions.

Audit rows are written after the commission write has committed, in their
own transaction, so they never widen the settlement write.
"""

import logging
from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from sqlalchemy.exc import SQLAlchemyError
from backend.app.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    COMMISSION_SETTLED = "COMMISSION_SETTLED"
    COMMISSION_PAID = "COMMISSION_PAID"
    COMMISSION_CANCELLED = "COMMISSION_CANCELLED"
    COMMISSION_REJECTED = "COMMISSION_REJECTED"


async def log_event(
    db: AsyncSession,
    action: str,
    order_id: Optional[str] = None,
    actor_id: Optional[str] = None,
    actor_username: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Optional[AuditLog]:
    """
    Log a commission event to the audit log.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        order_id: Order the event applies to
        actor_id: ID of user performing the action (None for system)
        actor_username: Username of actor
        metadata: Additional context as JSON

    Returns:
        Created AuditLog instance, or None if the audit write failed
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        actor_username=actor_username,
        action=action,
        order_id=order_id,
        meta_data=metadata,
    )

    # The audited operation has already committed; a failed audit write is logged, not raised
    try:
        db.add(audit_log)
        await db.commit()
        await db.refresh(audit_log)
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Audit write failed for %s on order %s: %s", action, order_id, exc)
        return None

    return audit_log


async def get_audit_trail(
    db: AsyncSession,
    order_id: Optional[str] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering, newest first.
    """
    query = select(AuditLog)

    if order_id:
        query = query.where(AuditLog.order_id == order_id)

    if action:
        query = query.where(AuditLog.action == action)

    query = query.order_by(desc(AuditLog.timestamp), desc(AuditLog.id)).limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())
