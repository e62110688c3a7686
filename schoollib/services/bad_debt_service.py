"""
Debt ledger: charges raised when a loan closes as lost or damaged.
"""

import logging
from datetime import datetime
from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from schoollib.core.exceptions import NotFound, ValidationError
from schoollib.models.audit_log import AuditAction, ResourceType
from schoollib.models.bad_debt import BadDebt, BadDebtStatus
from schoollib.models.book import Book
from schoollib.models.transaction import Transaction, TransactionStatus, OPEN_STATUSES
from schoollib.schemas.bad_debt import BadDebtCreate, BadDebtUpdate
from schoollib.services.audit_service import AuditService
from schoollib.utils.snapshot import snapshot

logger = logging.getLogger(__name__)

SETTLED_STATUSES = (BadDebtStatus.PAID, BadDebtStatus.WAIVED)
LOSS_STATUSES = (TransactionStatus.LOST, TransactionStatus.DAMAGED)


class BadDebtService:

    @staticmethod
    async def get_bad_debts(
        db: AsyncSession,
        status: Optional[BadDebtStatus] = None,
        student_id: Optional[int] = None
    ) -> List[BadDebt]:
        query = select(BadDebt)
        if status:
            query = query.where(BadDebt.status == status)
        if student_id is not None:
            query = query.where(BadDebt.student_id == student_id)
        query = query.order_by(BadDebt.date.desc(), BadDebt.id.desc())
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def get_bad_debt(db: AsyncSession, debt_id: int) -> BadDebt:
        debt = await db.get(BadDebt, debt_id)
        if debt is None:
            raise NotFound("Bad debt", debt_id)
        return debt

    @staticmethod
    async def build_bad_debt(db: AsyncSession, data: BadDebtCreate) -> BadDebt:
        """
        Validate a charge and return it unsaved, status pending.

        The transaction must be a loan that is still open (about to be closed
        by the loss protocol) or already closed as lost or damaged, and the
        book and student must be the loan's own. The amount defaults to the
        book price; it must end up greater than zero.
        """
        transaction = await db.get(Transaction, data.transaction_id)
        if transaction is None:
            raise NotFound("Transaction", data.transaction_id)
        if transaction.status not in OPEN_STATUSES + LOSS_STATUSES:
            raise ValidationError(
                f"Transaction {transaction.id} is {transaction.status.value}; only lost or damaged loans carry a debt"
            )
        if data.book_id != transaction.book_id or data.student_id != transaction.student_id:
            raise ValidationError(
                f"Book and student must match transaction {transaction.id}"
            )

        existing = await db.execute(
            select(BadDebt.id).where(BadDebt.transaction_id == data.transaction_id)
        )
        if existing.first():
            raise ValidationError(f"Transaction {data.transaction_id} already has a debt record")

        amount = data.amount
        if amount is None:
            book = await db.get(Book, data.book_id)
            if book is None:
                raise NotFound("Book", data.book_id)
            amount = book.price or 0
        if amount <= 0:
            raise ValidationError("Amount must be greater than zero")

        return BadDebt(
            transaction_id=data.transaction_id,
            book_id=data.book_id,
            student_id=data.student_id,
            amount=amount,
            date=datetime.utcnow(),
            status=BadDebtStatus.PENDING,
            type=data.type,
            notes=data.notes,
        )

    @staticmethod
    async def add_bad_debt(db: AsyncSession, data: BadDebtCreate) -> BadDebt:
        """Record a missing charge for a loan already closed as lost or damaged."""
        transaction = await db.get(Transaction, data.transaction_id)
        if transaction is None:
            raise NotFound("Transaction", data.transaction_id)
        if transaction.status not in LOSS_STATUSES:
            raise ValidationError(
                f"Transaction {transaction.id} is not closed as lost or damaged; use the loss report"
            )
        if transaction.status.value != data.type.value:
            raise ValidationError(
                f"Debt type {data.type.value} does not match transaction status {transaction.status.value}"
            )

        debt = await BadDebtService.build_bad_debt(db, data)
        db.add(debt)
        await db.commit()
        await db.refresh(debt)
        logger.info(f"Recorded {debt.type.value} debt of {debt.amount:.2f} for transaction {debt.transaction_id}")

        await AuditService(db).record_mutation(
            AuditAction.CREATE, ResourceType.DEBT, debt.id, None, snapshot(debt)
        )
        return debt

    @staticmethod
    async def update_bad_debt(db: AsyncSession, debt_id: int, data: BadDebtUpdate) -> BadDebt:
        """Settle (paid/waived) or amend a pending debt. Settled debts are final."""
        debt = await BadDebtService.get_bad_debt(db, debt_id)
        previous_state = snapshot(debt)
        update_data = data.model_dump(exclude_unset=True)

        new_status = update_data.get("status")
        if debt.status in SETTLED_STATUSES:
            if (new_status is not None and new_status != debt.status) or update_data.get("amount") is not None:
                raise ValidationError(f"Debt {debt_id} is already {debt.status.value}")

        if update_data.get("amount") is not None and update_data["amount"] <= 0:
            raise ValidationError("Amount must be greater than zero")

        if new_status is not None and new_status != debt.status:
            debt.status = new_status
            if new_status == BadDebtStatus.PAID:
                debt.paid_date = update_data.get("paid_date") or datetime.utcnow()
        if update_data.get("amount") is not None:
            debt.amount = update_data["amount"]
        if "notes" in update_data:
            debt.notes = update_data["notes"]

        await db.commit()
        await db.refresh(debt)
        logger.info(f"Updated debt {debt.id}: {debt.status.value}")

        await AuditService(db).record_mutation(
            AuditAction.UPDATE, ResourceType.DEBT, debt.id, previous_state, snapshot(debt)
        )
        return debt
