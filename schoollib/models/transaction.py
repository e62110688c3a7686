"""
Circulation ledger model.

Every borrow, return, loss or damage event is a row. A borrow row also carries
the mutable state of the loan it opened (`status`), which only ever moves from
active to one of the terminal states.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, DateTime, Text, Enum as SQLEnum
import enum

from schoollib.core.database import Base


class TransactionAction(enum.Enum):
    BORROW = "borrow"
    RETURN = "return"
    LOST = "lost"
    DAMAGED = "damaged"


class TransactionStatus(enum.Enum):
    ACTIVE = "active"
    RETURNED = "returned"
    OVERDUE = "overdue"  # display label; legacy rows may still carry it
    LOST = "lost"
    DAMAGED = "damaged"


OPEN_STATUSES = (TransactionStatus.ACTIVE, TransactionStatus.OVERDUE)
TERMINAL_STATUSES = (TransactionStatus.RETURNED, TransactionStatus.LOST, TransactionStatus.DAMAGED)


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # No foreign keys: books may be deleted while loans still reference them
    book_id = Column(Integer, nullable=False, index=True)
    student_id = Column(Integer, nullable=False, index=True)
    action = Column(SQLEnum(TransactionAction), nullable=False, index=True)
    date = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    due_date = Column(DateTime, nullable=True)
    return_date = Column(DateTime, nullable=True)
    status = Column(SQLEnum(TransactionStatus), nullable=False, default=TransactionStatus.ACTIVE, index=True)
    notes = Column(Text, nullable=True)

    def is_overdue(self, now: datetime) -> bool:
        return (
            self.status in OPEN_STATUSES
            and self.due_date is not None
            and self.due_date < now
        )

    def __repr__(self):
        return f"<Transaction(book_id={self.book_id}, action='{self.action}', status='{self.status}')>"
