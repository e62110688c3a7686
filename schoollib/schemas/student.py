from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict

from schoollib.schemas.transaction import TransactionListItem
from schoollib.schemas.bad_debt import BadDebtResponse


class StudentBase(BaseModel):
    student_id: str = Field(..., min_length=1, max_length=40)  # admission number
    name: str = Field(..., min_length=1, max_length=255)
    class_name: str = Field(..., min_length=1, max_length=50)
    contact: Optional[str] = Field(None, max_length=100)


class StudentCreate(StudentBase):
    pass


class StudentUpdate(BaseModel):
    student_id: Optional[str] = Field(None, min_length=1, max_length=40)
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    class_name: Optional[str] = Field(None, min_length=1, max_length=50)
    contact: Optional[str] = Field(None, max_length=100)


class StudentResponse(StudentBase):
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class StudentListResponse(BaseModel):
    students: List[StudentResponse]
    total: int


class StudentProfile(BaseModel):
    """Student with their loan history and charges."""
    student: StudentResponse
    loans: List[TransactionListItem]
    active_loans: int
    overdue_loans: int
    debts: List[BadDebtResponse]
    outstanding_debt: float
