"""
Audit Log Database Model.

Tracks ledger-mutating operator actions taken through the console.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model for operator actions.

    Events logged:
    - PAYMENT_RECORDED / PAYMENT_DELETED
    - BALANCE_ADJUSTED
    - ADD_ON_BILLED
    - INVOICE_GENERATED
    - TRANSACTION_DELETED
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None when the console cannot tell)
    operator = Column(String(100), nullable=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # Customer whose ledger was touched
    customer_id = Column(String(64), index=True, nullable=False)

    # Remote identifiers and amounts (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    correlation_id = Column(String(64), nullable=True)

    # Timestamp
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', operator={self.operator}, customer={self.customer_id})>"
