from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from schoollib.core.database import get_db
from schoollib.core.security import require_capability
from schoollib.models.bad_debt import BadDebtStatus
from schoollib.services.bad_debt_service import BadDebtService
from schoollib.schemas.bad_debt import BadDebtCreate, BadDebtUpdate, BadDebtResponse

router = APIRouter()


@router.get("/bad-debts", response_model=List[BadDebtResponse])
async def get_bad_debts(
    debt_status: Optional[BadDebtStatus] = Query(None, alias="status"),
    student_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db)
):
    return await BadDebtService.get_bad_debts(db, status=debt_status, student_id=student_id)


@router.post("/bad-debts", response_model=BadDebtResponse, status_code=status.HTTP_201_CREATED)
async def create_bad_debt(
    data: BadDebtCreate,
    db: AsyncSession = Depends(get_db)
):
    return await BadDebtService.add_bad_debt(db, data)


@router.put(
    "/bad-debts/{debt_id}",
    response_model=BadDebtResponse,
    dependencies=[Depends(require_capability)]
)
async def update_bad_debt(
    debt_id: int,
    data: BadDebtUpdate,
    db: AsyncSession = Depends(get_db)
):
    """Mark a debt paid or waived, or amend a pending one. Requires the library PIN."""
    return await BadDebtService.update_bad_debt(db, debt_id, data)
