"""
Audit logging service for operator actions on customer ledgers.

Every ledger mutation the console forwards is recorded here with the
operator, the customer and the remote identifiers involved.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from backend.app.core.observability import current_correlation_id
from backend.app.models.audit_log import AuditLog


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    PAYMENT_RECORDED = "PAYMENT_RECORDED"
    PAYMENT_DELETED = "PAYMENT_DELETED"
    BALANCE_ADJUSTED = "BALANCE_ADJUSTED"
    ADD_ON_BILLED = "ADD_ON_BILLED"
    INVOICE_GENERATED = "INVOICE_GENERATED"
    TRANSACTION_DELETED = "TRANSACTION_DELETED"
    PENDING_CHARGE_ADDED = "PENDING_CHARGE_ADDED"
    PENDING_CHARGE_UPDATED = "PENDING_CHARGE_UPDATED"
    PENDING_CHARGE_REMOVED = "PENDING_CHARGE_REMOVED"


async def log_event(
    db: AsyncSession,
    action: str,
    customer_id: str,
    operator: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Log an operator action to the audit log.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        customer_id: Customer whose ledger was changed
        operator: Operator name from the X-Operator header, if any
        metadata: Remote ids, amounts and other context as JSON

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        operator=operator,
        action=action,
        customer_id=str(customer_id),
        meta_data=metadata,
        correlation_id=current_correlation_id() or None
    )

    db.add(audit_log)
    await db.commit()
    await db.refresh(audit_log)

    return audit_log


async def get_audit_trail(
    db: AsyncSession,
    customer_id: Optional[str] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering.

    Args:
        db: Database session
        customer_id: Filter by customer
        action: Filter by action type
        limit: Maximum number of records to return

    Returns:
        List of AuditLog instances, most recent first
    """
    query = select(AuditLog).order_by(desc(AuditLog.timestamp), desc(AuditLog.id))

    if customer_id:
        query = query.where(AuditLog.customer_id == str(customer_id))

    if action:
        query = query.where(AuditLog.action == action)

    query = query.limit(limit)

    result = await db.execute(query)
    return result.scalars().all()
