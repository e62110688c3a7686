from datetime import datetime
from sqlalchemy import Column, Integer, Float, DateTime, Text, ForeignKey, Enum as SQLEnum
import enum

from schoollib.core.database import Base


class BadDebtStatus(enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    WAIVED = "waived"


class BadDebtType(enum.Enum):
    LOST = "lost"
    DAMAGED = "damaged"


class BadDebt(Base):
    """Charge raised when a loan is closed as lost or damaged."""
    __tablename__ = "bad_debts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id"), nullable=False, unique=True)
    book_id = Column(Integer, nullable=False, index=True)
    student_id = Column(Integer, nullable=False, index=True)
    amount = Column(Float, nullable=False)
    date = Column(DateTime, nullable=False, default=datetime.utcnow)
    status = Column(SQLEnum(BadDebtStatus), nullable=False, default=BadDebtStatus.PENDING, index=True)
    type = Column(SQLEnum(BadDebtType), nullable=False)
    notes = Column(Text, nullable=True)
    paid_date = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<BadDebt(transaction_id={self.transaction_id}, amount={self.amount}, status='{self.status}')>"
