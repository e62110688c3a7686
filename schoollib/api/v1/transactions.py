"""
API endpoints for the circulation ledger.
"""

from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from schoollib.core.database import get_db
from schoollib.models.transaction import TransactionStatus
from schoollib.services.circulation_service import CirculationService
from schoollib.schemas.bad_debt import BadDebtResponse
from schoollib.schemas.transaction import (
    TransactionCreate,
    TransactionUpdate,
    TransactionResponse,
    TransactionListResponse,
    LossReport,
)

router = APIRouter()


@router.get("/transactions", response_model=TransactionListResponse)
async def get_transactions(
    transaction_status: Optional[TransactionStatus] = Query(None, alias="status"),
    book_id: Optional[int] = Query(None),
    student_id: Optional[int] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    db: AsyncSession = Depends(get_db)
):
    """
    Ledger rows newest first.

    `status=overdue` returns open loans past their due date.
    """
    transactions = await CirculationService.list_transactions(
        db, status=transaction_status, book_id=book_id, student_id=student_id, limit=limit
    )
    return TransactionListResponse(transactions=transactions, total=len(transactions))


@router.post("/transactions", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
async def create_transaction(
    data: TransactionCreate,
    db: AsyncSession = Depends(get_db)
):
    """Borrow or return a book. A return answers with the appended return row."""
    return await CirculationService.add_transaction(db, data)


@router.put("/transactions/{transaction_id}", response_model=TransactionResponse)
async def update_transaction(
    transaction_id: int,
    data: TransactionUpdate,
    db: AsyncSession = Depends(get_db)
):
    return await CirculationService.update_transaction(db, transaction_id, data)


@router.post("/transactions/{transaction_id}/loss", response_model=BadDebtResponse, status_code=status.HTTP_201_CREATED)
async def report_loss(
    transaction_id: int,
    report: LossReport,
    db: AsyncSession = Depends(get_db)
):
    """Close an active loan as lost or damaged and raise the charge."""
    _, debt = await CirculationService.mark_lost_or_damaged(
        db, transaction_id, report.type, amount=report.amount, notes=report.notes
    )
    return debt
