"""
Pydantic schemas for Book model.
"""

from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional, List
from datetime import datetime

from schoollib.models.book import BookStatus


def _normalise_grades(value: Optional[List[int]]) -> Optional[List[int]]:
    if value is None:
        return value
    for grade in value:
        if grade < 1 or grade > 12:
            raise ValueError("Grades must be between 1 and 12")
    return sorted(set(value))


# Book Base Schema
class BookBase(BaseModel):
    barcode: str = Field(..., min_length=1, max_length=64)
    title: str = Field(..., min_length=1, max_length=255)
    category: str = Field("", max_length=120)
    subject: Optional[str] = Field(None, max_length=120, description="Defaults to the category")
    grades: List[int] = Field(default_factory=list, description="Grades 1-12 the book is used in")
    quantity: int = Field(..., ge=0)
    price: float = Field(0, ge=0)
    status: BookStatus = BookStatus.ACTIVE

    @field_validator("grades")
    @classmethod
    def validate_grades(cls, value):
        return _normalise_grades(value)


class BookCreate(BookBase):
    """Schema for creating a new book. Available copies default to quantity."""
    available_quantity: Optional[int] = Field(None, ge=0)


class BookUpdate(BaseModel):
    """Schema for updating a book. All fields optional."""
    barcode: Optional[str] = Field(None, min_length=1, max_length=64)
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    category: Optional[str] = Field(None, max_length=120)
    subject: Optional[str] = Field(None, max_length=120)
    grades: Optional[List[int]] = None
    quantity: Optional[int] = Field(None, ge=0)
    available_quantity: Optional[int] = Field(None, ge=0)
    price: Optional[float] = Field(None, ge=0)
    status: Optional[BookStatus] = None

    @field_validator("grades")
    @classmethod
    def validate_grades(cls, value):
        return _normalise_grades(value)


class BookResponse(BaseModel):
    """Schema for book response."""
    id: int
    barcode: str
    title: str
    category: str
    subject: Optional[str] = None
    grades: Optional[List[int]] = None
    quantity: Optional[int] = None
    available_quantity: Optional[int] = None
    price: Optional[float] = None
    status: Optional[BookStatus] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class BookListResponse(BaseModel):
    """Schema for list of books response."""
    books: List[BookResponse]
    total: int
