from typing import Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict

from schoollib.models.bad_debt import BadDebtStatus, BadDebtType


class BadDebtCreate(BaseModel):
    transaction_id: int
    book_id: int
    student_id: int
    type: BadDebtType
    amount: Optional[float] = None  # defaults to the book price
    notes: Optional[str] = None


class BadDebtUpdate(BaseModel):
    status: Optional[BadDebtStatus] = None
    amount: Optional[float] = None
    notes: Optional[str] = None
    paid_date: Optional[datetime] = None


class BadDebtResponse(BaseModel):
    id: int
    transaction_id: int
    book_id: int
    student_id: int
    amount: float
    date: datetime
    status: BadDebtStatus
    type: BadDebtType
    notes: Optional[str] = None
    paid_date: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
