"""
Pydantic schemas for the circulation ledger.
"""

from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict

from schoollib.models.transaction import TransactionAction, TransactionStatus
from schoollib.models.bad_debt import BadDebtType


class TransactionCreate(BaseModel):
    """Borrow or return request. The book is resolved by id, barcode or title."""
    action: TransactionAction
    book_id: Optional[int] = None
    barcode: Optional[str] = None
    title: Optional[str] = None
    student_id: Optional[int] = Field(None, description="Required to borrow; narrows the loan on return")
    due_date: Optional[datetime] = None
    notes: Optional[str] = None


class TransactionUpdate(BaseModel):
    status: Optional[TransactionStatus] = None
    due_date: Optional[datetime] = None
    return_date: Optional[datetime] = None
    notes: Optional[str] = None


class TransactionResponse(BaseModel):
    id: int
    book_id: int
    student_id: int
    action: TransactionAction
    date: datetime
    due_date: Optional[datetime] = None
    return_date: Optional[datetime] = None
    status: TransactionStatus
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class TransactionListItem(TransactionResponse):
    """Ledger row with display-only fields computed at read time."""
    book_title: str
    student_name: str
    is_overdue: bool = False
    display_status: str


class ReturnResult(BaseModel):
    loan: TransactionResponse
    return_record: TransactionResponse


class LossReport(BaseModel):
    """Close an active loan as lost or damaged."""
    type: BadDebtType
    amount: Optional[float] = Field(None, description="Defaults to the book price")
    notes: Optional[str] = None


class TransactionListResponse(BaseModel):
    transactions: List[TransactionListItem]
    total: int
