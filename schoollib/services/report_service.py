"""
Report Service
Read-only summaries over the catalog and the circulation ledger.
"""

import logging
from datetime import datetime
from sqlalchemy import select, func, desc
from sqlalchemy.ext.asyncio import AsyncSession

from schoollib.models.bad_debt import BadDebt, BadDebtStatus
from schoollib.models.book import Book
from schoollib.models.transaction import Transaction, TransactionAction, OPEN_STATUSES
from schoollib.schemas.bad_debt import BadDebtResponse
from schoollib.schemas.report import DashboardStats, TopBook
from schoollib.schemas.student import StudentProfile, StudentResponse
from schoollib.services.bad_debt_service import BadDebtService
from schoollib.services.circulation_service import CirculationService
from schoollib.services.student_service import StudentService

logger = logging.getLogger(__name__)

TOP_BOOKS_LIMIT = 5


class ReportService:

    @staticmethod
    async def get_dashboard_stats(db: AsyncSession) -> DashboardStats:
        totals = await db.execute(
            select(
                func.count(Book.id),
                func.coalesce(func.sum(Book.quantity), 0),
                func.coalesce(func.sum(Book.available_quantity), 0),
            )
        )
        total_titles, total_copies, available_copies = totals.one()

        now = datetime.utcnow()
        open_loans = select(Transaction).where(
            Transaction.action == TransactionAction.BORROW,
            Transaction.status.in_(OPEN_STATUSES)
        ).subquery()
        active_result = await db.execute(select(func.count()).select_from(open_loans))
        overdue_result = await db.execute(
            select(func.count()).select_from(open_loans).where(
                open_loans.c.due_date.is_not(None),
                open_loans.c.due_date < now
            )
        )

        pending_result = await db.execute(
            select(func.coalesce(func.sum(BadDebt.amount), 0)).where(
                BadDebt.status == BadDebtStatus.PENDING
            )
        )

        borrow_count = func.count(Transaction.id).label("borrowed")
        top_result = await db.execute(
            select(Book.title, borrow_count)
            .join(Transaction, Transaction.book_id == Book.id)
            .where(Transaction.action == TransactionAction.BORROW)
            .group_by(Book.id, Book.title)
            .order_by(desc(borrow_count), Book.title)
            .limit(TOP_BOOKS_LIMIT)
        )

        return DashboardStats(
            total_titles=total_titles,
            total_copies=int(total_copies),
            available_copies=int(available_copies),
            borrowed_copies=int(total_copies) - int(available_copies),
            active_loans=active_result.scalar() or 0,
            overdue_loans=overdue_result.scalar() or 0,
            pending_debt_total=float(pending_result.scalar() or 0),
            top_books=[TopBook(title=title, borrowed=count) for title, count in top_result.all()],
        )

    @staticmethod
    async def get_student_profile(db: AsyncSession, student_pk: int) -> StudentProfile:
        """Student record with their ledger rows and charges."""
        student = await StudentService.get_student(db, student_pk)
        loans = await CirculationService.list_transactions(db, student_id=student.id)
        debts = await BadDebtService.get_bad_debts(db, student_id=student.id)

        open_loans = [
            loan for loan in loans
            if loan.action == TransactionAction.BORROW and loan.status in OPEN_STATUSES
        ]
        return StudentProfile(
            student=StudentResponse.model_validate(student),
            loans=loans,
            active_loans=len(open_loans),
            overdue_loans=sum(1 for loan in open_loans if loan.is_overdue),
            debts=[BadDebtResponse.model_validate(debt) for debt in debts],
            outstanding_debt=sum(d.amount for d in debts if d.status == BadDebtStatus.PENDING),
        )
