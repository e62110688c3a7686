"""
Pydantic schemas for library reports and imports.
"""

from pydantic import BaseModel, Field
from typing import List, Optional


class TopBook(BaseModel):
    title: str
    borrowed: int


class DashboardStats(BaseModel):
    """Headline numbers for the librarian dashboard."""
    total_titles: int
    total_copies: int = Field(..., description="Sum of quantity over all books")
    available_copies: int
    borrowed_copies: int
    active_loans: int
    overdue_loans: int
    pending_debt_total: float
    top_books: List[TopBook]

    class Config:
        json_schema_extra = {
            "example": {
                "total_titles": 14,
                "total_copies": 143,
                "available_copies": 131,
                "borrowed_copies": 12,
                "active_loans": 12,
                "overdue_loans": 2,
                "pending_debt_total": 850.0,
                "top_books": [{"title": "The Good Earth", "borrowed": 5}]
            }
        }


class RowError(BaseModel):
    field: str
    error: str


class RowRejection(BaseModel):
    row_number: int
    errors: List[RowError]


class ImportSummary(BaseModel):
    file_name: str
    total_records: int
    successful_records: int
    failed_records: int
    errors: Optional[List[RowRejection]] = []
