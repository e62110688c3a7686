from fastapi import APIRouter

from .books import router as books_router
from .students import router as students_router
from .transactions import router as transactions_router
from .bad_debts import router as bad_debts_router
from .audit_logs import router as audit_logs_router
from .taxonomy import router as taxonomy_router
from .reports import router as reports_router

# Create main API router
api_router = APIRouter()

# Include all routers
api_router.include_router(books_router, tags=["Books"])
api_router.include_router(students_router, tags=["Students"])
api_router.include_router(transactions_router, tags=["Transactions"])
api_router.include_router(bad_debts_router, tags=["Bad Debts"])
api_router.include_router(audit_logs_router, tags=["Audit Logs"])
api_router.include_router(taxonomy_router, tags=["Taxonomy"])
api_router.include_router(reports_router, tags=["Reports"])
