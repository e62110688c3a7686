"""
Circulation ledger: borrow, return and lost/damaged protocols.

Each protocol writes the ledger rows, the availability change and any debt
record in a single database transaction, so a failure leaves the catalog and
the ledger as they were. Work on the same book is serialised through a
per-book lock within this process.
"""

import asyncio
import logging
import weakref
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from schoollib.core.config import settings
from schoollib.core.exceptions import BookUnavailable, NoActiveLoan, NotFound, ValidationError
from schoollib.models.audit_log import AuditAction, ResourceType
from schoollib.models.bad_debt import BadDebt, BadDebtType
from schoollib.models.book import Book
from schoollib.models.student import Student
from schoollib.models.transaction import (
    Transaction, TransactionAction, TransactionStatus, OPEN_STATUSES, TERMINAL_STATUSES
)
from schoollib.schemas.bad_debt import BadDebtCreate
from schoollib.schemas.transaction import TransactionCreate, TransactionUpdate, TransactionListItem
from schoollib.services.audit_service import AuditService
from schoollib.services.availability import adjust_availability
from schoollib.services.bad_debt_service import BadDebtService
from schoollib.services.book_service import BookService
from schoollib.services.student_service import StudentService
from schoollib.utils.snapshot import snapshot

logger = logging.getLogger(__name__)


class BookLocks:
    """asyncio.Lock per book id, scoped to the running event loop."""

    def __init__(self):
        self._locks = weakref.WeakKeyDictionary()

    def for_book(self, book_id: int) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        locks: Dict[int, asyncio.Lock] = self._locks.setdefault(loop, {})
        if book_id not in locks:
            locks[book_id] = asyncio.Lock()
        return locks[book_id]


book_locks = BookLocks()


class CirculationService:

    @staticmethod
    async def _resolve_book(
        db: AsyncSession,
        book_id: Optional[int] = None,
        barcode: Optional[str] = None,
        title: Optional[str] = None
    ) -> Book:
        if book_id is not None:
            return await BookService.get_book(db, book_id)
        if not barcode and not title:
            raise ValidationError("A book id, barcode or title is required")
        book = await BookService.find_book(db, barcode=barcode, title=title)
        if book is None:
            raise NotFound("Book", barcode or title)
        return book

    @staticmethod
    async def _find_active_loan(
        db: AsyncSession,
        book_id: int,
        student_id: Optional[int] = None
    ) -> Transaction:
        """Oldest open borrow row for the book (optionally for one student)."""
        query = select(Transaction).where(
            Transaction.book_id == book_id,
            Transaction.action == TransactionAction.BORROW,
            Transaction.status.in_(OPEN_STATUSES)
        )
        if student_id is not None:
            query = query.where(Transaction.student_id == student_id)
        query = query.order_by(Transaction.date, Transaction.id)
        result = await db.execute(query)
        loan = result.scalars().first()
        if loan is None:
            raise NoActiveLoan(f"Book {book_id} has no active loan")
        return loan

    @staticmethod
    async def borrow_book(
        db: AsyncSession,
        student_id: int,
        book_id: Optional[int] = None,
        barcode: Optional[str] = None,
        title: Optional[str] = None,
        due_date: Optional[datetime] = None,
        notes: Optional[str] = None
    ) -> Transaction:
        """Open a loan and take one copy off the shelf."""
        book = await CirculationService._resolve_book(db, book_id, barcode, title)
        student = await StudentService.get_student(db, student_id)

        async with book_locks.for_book(book.id):
            await db.refresh(book)
            if (book.available_quantity or 0) <= 0:
                raise BookUnavailable(book.id, book.title)

            now = datetime.utcnow()
            loan = Transaction(
                book_id=book.id,
                student_id=student.id,
                action=TransactionAction.BORROW,
                status=TransactionStatus.ACTIVE,
                date=now,
                due_date=due_date or now + timedelta(days=settings.DEFAULT_LOAN_DAYS),
                notes=notes,
            )
            try:
                db.add(loan)
                await adjust_availability(db, book.id, -1)
                await db.commit()
            except SQLAlchemyError:
                await db.rollback()
                raise

        await db.refresh(loan)
        logger.info(f"Loan {loan.id}: '{book.title}' to {student.name}, due {loan.due_date:%Y-%m-%d}")

        await AuditService(db).record_mutation(
            AuditAction.CREATE, ResourceType.TRANSACTION, loan.id, None, snapshot(loan)
        )
        return loan

    @staticmethod
    async def return_book(
        db: AsyncSession,
        book_id: Optional[int] = None,
        barcode: Optional[str] = None,
        title: Optional[str] = None,
        student_id: Optional[int] = None,
        notes: Optional[str] = None
    ) -> Tuple[Transaction, Transaction]:
        """
        Close the book's active loan and put the copy back on the shelf.

        The loan row is marked returned and a separate `return` row is appended
        to the ledger as its history entry. Returns (loan, return_record).
        """
        book = await CirculationService._resolve_book(db, book_id, barcode, title)

        async with book_locks.for_book(book.id):
            loan = await CirculationService._find_active_loan(db, book.id, student_id)
            previous_state = snapshot(loan)

            now = datetime.utcnow()
            loan.status = TransactionStatus.RETURNED
            loan.return_date = now
            return_record = Transaction(
                book_id=book.id,
                student_id=loan.student_id,
                action=TransactionAction.RETURN,
                status=TransactionStatus.RETURNED,
                date=now,
                return_date=now,
                notes=notes,
            )
            try:
                db.add(return_record)
                await adjust_availability(db, book.id, +1)
                await db.commit()
            except SQLAlchemyError:
                await db.rollback()
                raise

        await db.refresh(loan)
        await db.refresh(return_record)
        logger.info(f"Loan {loan.id} returned: '{book.title}'")

        audit = AuditService(db)
        await audit.record_mutation(
            AuditAction.UPDATE, ResourceType.TRANSACTION, loan.id, previous_state, snapshot(loan)
        )
        await audit.record_mutation(
            AuditAction.CREATE, ResourceType.TRANSACTION, return_record.id, None, snapshot(return_record)
        )
        return loan, return_record

    @staticmethod
    async def mark_lost_or_damaged(
        db: AsyncSession,
        transaction_id: int,
        loss_type: BadDebtType,
        amount: Optional[float] = None,
        notes: Optional[str] = None
    ) -> Tuple[Transaction, BadDebt]:
        """
        Close an active loan as lost or damaged and raise a pending charge.

        Available copies are left untouched: the copy stays counted as out.
        """
        loan = await db.get(Transaction, transaction_id)
        if loan is None:
            raise NotFound("Transaction", transaction_id)

        async with book_locks.for_book(loan.book_id):
            await db.refresh(loan)
            if loan.action != TransactionAction.BORROW or loan.status not in OPEN_STATUSES:
                raise NoActiveLoan(f"Transaction {transaction_id} is not an active loan")

            debt = await BadDebtService.build_bad_debt(db, BadDebtCreate(
                transaction_id=loan.id,
                book_id=loan.book_id,
                student_id=loan.student_id,
                type=loss_type,
                amount=amount,
                notes=notes,
            ))
            previous_state = snapshot(loan)

            loan.status = TransactionStatus(loss_type.value)
            loan.action = TransactionAction(loss_type.value)
            loan.notes = notes
            try:
                db.add(debt)
                await db.commit()
            except SQLAlchemyError:
                await db.rollback()
                raise

        await db.refresh(loan)
        await db.refresh(debt)
        logger.info(f"Loan {loan.id} closed as {loss_type.value}; debt {debt.id} of {debt.amount:.2f} raised")

        audit = AuditService(db)
        await audit.record_mutation(
            AuditAction.UPDATE, ResourceType.TRANSACTION, loan.id, previous_state, snapshot(loan)
        )
        await audit.record_mutation(
            AuditAction.CREATE, ResourceType.DEBT, debt.id, None, snapshot(debt)
        )
        return loan, debt

    @staticmethod
    async def add_transaction(db: AsyncSession, data: TransactionCreate) -> Transaction:
        """Run the borrow or return protocol and return the row it appended."""
        if data.action == TransactionAction.BORROW:
            if data.student_id is None:
                raise ValidationError("A student is required to borrow a book")
            return await CirculationService.borrow_book(
                db,
                student_id=data.student_id,
                book_id=data.book_id,
                barcode=data.barcode,
                title=data.title,
                due_date=data.due_date,
                notes=data.notes,
            )
        if data.action == TransactionAction.RETURN:
            _, return_record = await CirculationService.return_book(
                db,
                book_id=data.book_id,
                barcode=data.barcode,
                title=data.title,
                student_id=data.student_id,
                notes=data.notes,
            )
            return return_record
        raise ValidationError("Lost and damaged loans are closed through the loss report")

    @staticmethod
    async def update_transaction(
        db: AsyncSession,
        transaction_id: int,
        data: TransactionUpdate
    ) -> Transaction:
        """
        Patch a ledger row. A closed loan cannot be reopened or moved to another
        terminal state; lost and damaged closures go through mark_lost_or_damaged.
        """
        transaction = await db.get(Transaction, transaction_id)
        if transaction is None:
            raise NotFound("Transaction", transaction_id)
        previous_state = snapshot(transaction)

        update_data = data.model_dump(exclude_unset=True)
        new_status = update_data.pop("status", None)
        if new_status is not None and new_status != transaction.status:
            if new_status == TransactionStatus.OVERDUE:
                raise ValidationError("Overdue is derived from the due date and cannot be set")
            if new_status in (TransactionStatus.LOST, TransactionStatus.DAMAGED):
                raise ValidationError(
                    f"Use the loss report to close transaction {transaction_id} as {new_status.value}"
                )
            if transaction.status in TERMINAL_STATUSES:
                raise ValidationError(
                    f"Transaction {transaction_id} is already {transaction.status.value}"
                )
            transaction.status = new_status

        for field, value in update_data.items():
            setattr(transaction, field, value)

        await db.commit()
        await db.refresh(transaction)
        logger.info(f"Updated transaction {transaction.id}")

        await AuditService(db).record_mutation(
            AuditAction.UPDATE, ResourceType.TRANSACTION, transaction.id, previous_state, snapshot(transaction)
        )
        return transaction

    @staticmethod
    async def list_transactions(
        db: AsyncSession,
        status: Optional[TransactionStatus] = None,
        book_id: Optional[int] = None,
        student_id: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[TransactionListItem]:
        """
        Ledger rows newest first, with book title and student name looked up
        at read time. Filtering by OVERDUE selects open loans past their due date.
        """
        query = select(Transaction)
        if status == TransactionStatus.OVERDUE or status == TransactionStatus.ACTIVE:
            query = query.where(Transaction.status.in_(OPEN_STATUSES))
        elif status:
            query = query.where(Transaction.status == status)
        if book_id is not None:
            query = query.where(Transaction.book_id == book_id)
        if student_id is not None:
            query = query.where(Transaction.student_id == student_id)
        query = query.order_by(Transaction.date.desc(), Transaction.id.desc())
        result = await db.execute(query)
        transactions = list(result.scalars().all())

        book_ids = {t.book_id for t in transactions}
        student_ids = {t.student_id for t in transactions}
        titles = {}
        names = {}
        if book_ids:
            rows = await db.execute(select(Book.id, Book.title).where(Book.id.in_(book_ids)))
            titles = {row[0]: row[1] for row in rows}
        if student_ids:
            rows = await db.execute(select(Student.id, Student.name).where(Student.id.in_(student_ids)))
            names = {row[0]: row[1] for row in rows}

        now = datetime.utcnow()
        items = []
        for transaction in transactions:
            overdue = transaction.is_overdue(now)
            if status == TransactionStatus.OVERDUE and not overdue:
                continue
            items.append(TransactionListItem(
                id=transaction.id,
                book_id=transaction.book_id,
                student_id=transaction.student_id,
                action=transaction.action,
                date=transaction.date,
                due_date=transaction.due_date,
                return_date=transaction.return_date,
                status=transaction.status,
                notes=transaction.notes,
                book_title=titles.get(transaction.book_id, "Unknown Book"),
                student_name=names.get(transaction.student_id, "Unknown Student"),
                is_overdue=overdue,
                display_status="overdue" if overdue else transaction.status.value,
            ))
        if limit is not None:
            items = items[:limit]
        return items
