"""
Audit trail for risk-classified catalog and ledger mutations.
"""

from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, Text, JSON, Enum as SQLEnum
import enum

from schoollib.core.database import Base


class AuditAction(enum.Enum):
    """Type of audited action."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class ResourceType(enum.Enum):
    """Kind of record an audit entry refers to."""
    BOOK = "book"
    STUDENT = "student"
    TRANSACTION = "transaction"
    DEBT = "debt"


class RiskLevel(enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AuditLog(Base):
    """Append-only; rows are never updated or deleted by the services."""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    # What
    action = Column(SQLEnum(AuditAction), nullable=False)
    resource_type = Column(SQLEnum(ResourceType), nullable=False)
    resource_id = Column(Integer, nullable=True)

    # Who
    user_id = Column(String(100), nullable=False)

    # Details
    previous_state = Column(JSON, nullable=True)
    new_state = Column(JSON, nullable=True)
    risk_level = Column(SQLEnum(RiskLevel), nullable=False, index=True)
    notes = Column(Text, nullable=True)

    def __repr__(self):
        return f"<AuditLog(action='{self.action}', resource='{self.resource_type}', risk='{self.risk_level}')>"
