from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from schoollib.core.database import get_db
from schoollib.services.report_service import ReportService
from schoollib.schemas.report import DashboardStats

router = APIRouter()


@router.get("/reports/dashboard", response_model=DashboardStats)
async def get_dashboard(db: AsyncSession = Depends(get_db)):
    """Catalog totals, open loans, pending charges and the most borrowed titles."""
    return await ReportService.get_dashboard_stats(db)
