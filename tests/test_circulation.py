import asyncio
from datetime import datetime, timedelta

import pytest
from sqlalchemy import select

from schoollib.core.exceptions import BookUnavailable, NoActiveLoan, NotFound, ValidationError
from schoollib.models.audit_log import AuditAction, AuditLog, ResourceType, RiskLevel
from schoollib.models.bad_debt import BadDebt, BadDebtStatus, BadDebtType
from schoollib.models.book import Book
from schoollib.models.transaction import Transaction, TransactionAction, TransactionStatus
from schoollib.schemas.transaction import TransactionCreate, TransactionUpdate
from schoollib.services.circulation_service import CirculationService


async def test_borrow_then_return(db, make_book, make_student):
    book = await make_book(quantity=5)
    student = await make_student()

    loan = await CirculationService.borrow_book(db, student.id, barcode=book.barcode)
    await db.refresh(book)
    assert book.available_quantity == 4
    assert loan.status == TransactionStatus.ACTIVE
    assert loan.action == TransactionAction.BORROW
    assert loan.due_date is not None

    returned, record = await CirculationService.return_book(db, book_id=book.id)
    await db.refresh(book)
    assert book.available_quantity == 5
    assert returned.id == loan.id
    assert returned.status == TransactionStatus.RETURNED
    assert returned.return_date is not None
    assert record.id != loan.id
    assert record.action == TransactionAction.RETURN
    assert record.status == TransactionStatus.RETURNED


async def test_borrow_without_copies_fails(db, make_book, make_student):
    book = await make_book(quantity=5, available_quantity=0)
    student = await make_student()

    with pytest.raises(BookUnavailable):
        await CirculationService.borrow_book(db, student.id, book_id=book.id)

    await db.refresh(book)
    assert book.available_quantity == 0
    result = await db.execute(select(Transaction))
    assert result.scalars().all() == []


async def test_borrow_resolves_title_case_insensitively(db, make_book, make_student):
    book = await make_book(title="The Good Earth")
    student = await make_student()

    loan = await CirculationService.borrow_book(db, student.id, title="the good earth")
    assert loan.book_id == book.id


async def test_borrow_unknown_book(db, make_student):
    student = await make_student()
    with pytest.raises(NotFound):
        await CirculationService.borrow_book(db, student.id, barcode="NOPE")


async def test_borrow_requires_a_book_reference(db, make_student):
    student = await make_student()
    with pytest.raises(ValidationError):
        await CirculationService.borrow_book(db, student.id)


async def test_default_due_date(db, make_book, make_student):
    book = await make_book()
    student = await make_student()

    loan = await CirculationService.borrow_book(db, student.id, book_id=book.id)
    expected = loan.date + timedelta(days=14)
    assert abs((loan.due_date - expected).total_seconds()) < 1


async def test_return_without_active_loan(db, make_book):
    book = await make_book()
    with pytest.raises(NoActiveLoan):
        await CirculationService.return_book(db, book_id=book.id)


async def test_return_picks_oldest_loan(db, make_book, make_student):
    book = await make_book(quantity=2)
    first = await make_student()
    second = await make_student()

    loan_one = await CirculationService.borrow_book(db, first.id, book_id=book.id)
    await CirculationService.borrow_book(db, second.id, book_id=book.id)

    returned, _ = await CirculationService.return_book(db, book_id=book.id)
    assert returned.id == loan_one.id


async def test_return_for_specific_student(db, make_book, make_student):
    book = await make_book(quantity=2)
    first = await make_student()
    second = await make_student()

    await CirculationService.borrow_book(db, first.id, book_id=book.id)
    loan_two = await CirculationService.borrow_book(db, second.id, book_id=book.id)

    returned, record = await CirculationService.return_book(db, book_id=book.id, student_id=second.id)
    assert returned.id == loan_two.id
    assert record.student_id == second.id


async def test_mark_lost_keeps_availability(db, make_book, make_student):
    book = await make_book(quantity=5, price=500)
    student = await make_student()
    loan = await CirculationService.borrow_book(db, student.id, book_id=book.id)

    closed, debt = await CirculationService.mark_lost_or_damaged(
        db, loan.id, BadDebtType.LOST, amount=850, notes="Left on the bus"
    )

    await db.refresh(book)
    assert book.available_quantity == 4
    assert closed.status == TransactionStatus.LOST
    assert closed.action == TransactionAction.LOST
    assert closed.notes == "Left on the bus"
    assert debt.status == BadDebtStatus.PENDING
    assert debt.amount == 850
    assert debt.type == BadDebtType.LOST
    assert debt.transaction_id == loan.id
    assert debt.student_id == student.id


async def test_mark_damaged_defaults_to_book_price(db, make_book, make_student):
    book = await make_book(price=640)
    student = await make_student()
    loan = await CirculationService.borrow_book(db, student.id, book_id=book.id)

    closed, debt = await CirculationService.mark_lost_or_damaged(db, loan.id, BadDebtType.DAMAGED)
    assert closed.status == TransactionStatus.DAMAGED
    assert debt.amount == 640


async def test_mark_lost_twice_is_rejected(db, make_book, make_student):
    book = await make_book()
    student = await make_student()
    loan = await CirculationService.borrow_book(db, student.id, book_id=book.id)
    await CirculationService.mark_lost_or_damaged(db, loan.id, BadDebtType.LOST)

    with pytest.raises(NoActiveLoan):
        await CirculationService.mark_lost_or_damaged(db, loan.id, BadDebtType.LOST)
    result = await db.execute(select(BadDebt))
    assert len(result.scalars().all()) == 1


async def test_mark_lost_with_zero_price_and_no_amount(db, make_book, make_student):
    book = await make_book(price=0)
    student = await make_student()
    loan = await CirculationService.borrow_book(db, student.id, book_id=book.id)

    with pytest.raises(ValidationError):
        await CirculationService.mark_lost_or_damaged(db, loan.id, BadDebtType.LOST)
    await db.refresh(loan)
    assert loan.status == TransactionStatus.ACTIVE


async def test_lost_loan_cannot_be_returned(db, make_book, make_student):
    book = await make_book(quantity=1)
    student = await make_student()
    loan = await CirculationService.borrow_book(db, student.id, book_id=book.id)
    await CirculationService.mark_lost_or_damaged(db, loan.id, BadDebtType.LOST)

    with pytest.raises(NoActiveLoan):
        await CirculationService.return_book(db, book_id=book.id)


async def test_add_transaction_dispatch(db, make_book, make_student):
    book = await make_book()
    student = await make_student()

    loan = await CirculationService.add_transaction(db, TransactionCreate(
        action=TransactionAction.BORROW, barcode=book.barcode, student_id=student.id
    ))
    assert loan.action == TransactionAction.BORROW

    record = await CirculationService.add_transaction(db, TransactionCreate(
        action=TransactionAction.RETURN, barcode=book.barcode
    ))
    assert record.action == TransactionAction.RETURN

    with pytest.raises(ValidationError):
        await CirculationService.add_transaction(db, TransactionCreate(
            action=TransactionAction.BORROW, barcode=book.barcode
        ))
    with pytest.raises(ValidationError):
        await CirculationService.add_transaction(db, TransactionCreate(
            action=TransactionAction.LOST, barcode=book.barcode, student_id=student.id
        ))


async def test_closed_loan_cannot_be_reopened(db, make_book, make_student):
    book = await make_book()
    student = await make_student()
    loan = await CirculationService.borrow_book(db, student.id, book_id=book.id)
    await CirculationService.return_book(db, book_id=book.id)

    with pytest.raises(ValidationError):
        await CirculationService.update_transaction(
            db, loan.id, TransactionUpdate(status=TransactionStatus.ACTIVE)
        )
    with pytest.raises(ValidationError):
        await CirculationService.update_transaction(
            db, loan.id, TransactionUpdate(status=TransactionStatus.LOST)
        )


async def test_update_transaction_notes_and_due_date(db, make_book, make_student):
    book = await make_book()
    student = await make_student()
    loan = await CirculationService.borrow_book(db, student.id, book_id=book.id)

    new_due = datetime.utcnow() + timedelta(days=30)
    updated = await CirculationService.update_transaction(
        db, loan.id, TransactionUpdate(due_date=new_due, notes="Extended")
    )
    assert updated.due_date == new_due
    assert updated.notes == "Extended"
    assert updated.status == TransactionStatus.ACTIVE


async def test_overdue_cannot_be_set(db, make_book, make_student):
    book = await make_book()
    student = await make_student()
    loan = await CirculationService.borrow_book(db, student.id, book_id=book.id)

    with pytest.raises(ValidationError):
        await CirculationService.update_transaction(
            db, loan.id, TransactionUpdate(status=TransactionStatus.OVERDUE)
        )


async def test_list_transactions_overdue_filter(db, make_book, make_student):
    book = await make_book(title="Atlas")
    student = await make_student(name="Amina")
    past_due = datetime.utcnow() - timedelta(days=3)
    late = await CirculationService.borrow_book(db, student.id, book_id=book.id, due_date=past_due)
    await CirculationService.borrow_book(db, student.id, book_id=book.id)

    overdue = await CirculationService.list_transactions(db, status=TransactionStatus.OVERDUE)
    assert [item.id for item in overdue] == [late.id]
    assert overdue[0].is_overdue
    assert overdue[0].display_status == "overdue"
    assert overdue[0].book_title == "Atlas"
    assert overdue[0].student_name == "Amina"

    active = await CirculationService.list_transactions(db, status=TransactionStatus.ACTIVE)
    assert len(active) == 2


async def test_list_transactions_survives_deleted_book(db, make_book, make_student):
    from schoollib.services.book_service import BookService

    book = await make_book()
    student = await make_student()
    await CirculationService.borrow_book(db, student.id, book_id=book.id)
    await BookService.delete_book(db, book.id)

    items = await CirculationService.list_transactions(db)
    assert items[0].book_title == "Unknown Book"


async def test_availability_matches_open_loans(db, make_book, make_student):
    book = await make_book(quantity=3)
    students = [await make_student() for _ in range(3)]

    loans = [await CirculationService.borrow_book(db, s.id, book_id=book.id) for s in students]
    await CirculationService.return_book(db, book_id=book.id)
    await CirculationService.mark_lost_or_damaged(db, loans[1].id, BadDebtType.DAMAGED)

    await db.refresh(book)
    open_loans = await db.execute(
        select(Transaction).where(
            Transaction.book_id == book.id,
            Transaction.status == TransactionStatus.ACTIVE
        )
    )
    # one copy back on the shelf, one lost to damage, one still out
    assert len(open_loans.scalars().all()) == 1
    assert book.available_quantity == 1


async def test_concurrent_borrows_of_last_copy(session_factory, make_book, make_student):
    book = await make_book(quantity=1)
    first = await make_student()
    second = await make_student()

    async def attempt(student_id):
        async with session_factory() as session:
            try:
                await CirculationService.borrow_book(session, student_id, book_id=book.id)
                return True
            except BookUnavailable:
                return False

    outcomes = await asyncio.gather(attempt(first.id), attempt(second.id))
    assert sorted(outcomes) == [False, True]

    async with session_factory() as session:
        stored = await session.get(Book, book.id)
        assert stored.available_quantity == 0


@pytest.mark.parametrize("closure", [TransactionStatus.LOST, TransactionStatus.DAMAGED])
async def test_update_cannot_close_loan_as_lost_or_damaged(db, make_book, make_student, closure):
    book = await make_book()
    student = await make_student()
    loan = await CirculationService.borrow_book(db, student.id, book_id=book.id)

    with pytest.raises(ValidationError, match="loss report"):
        await CirculationService.update_transaction(db, loan.id, TransactionUpdate(status=closure))

    await db.refresh(loan)
    assert loan.status == TransactionStatus.ACTIVE
    assert loan.action == TransactionAction.BORROW
    debts = await db.execute(select(BadDebt))
    assert debts.scalars().all() == []


async def test_returned_without_return_date_is_audited_medium(db, make_book, make_student):
    book = await make_book()
    student = await make_student()
    loan = await CirculationService.borrow_book(db, student.id, book_id=book.id)

    await CirculationService.update_transaction(
        db, loan.id, TransactionUpdate(status=TransactionStatus.RETURNED)
    )

    result = await db.execute(select(AuditLog).where(AuditLog.resource_type == ResourceType.TRANSACTION))
    logs = result.scalars().all()
    assert len(logs) == 1
    assert logs[0].risk_level == RiskLevel.MEDIUM
    assert logs[0].action == AuditAction.UPDATE
    assert logs[0].resource_id == loan.id
    assert logs[0].previous_state["status"] == "active"
    assert logs[0].new_state["status"] == "returned"
    assert logs[0].new_state["return_date"] is None


async def test_returned_with_return_date_is_not_audited(db, make_book, make_student):
    book = await make_book()
    student = await make_student()
    loan = await CirculationService.borrow_book(db, student.id, book_id=book.id)

    await CirculationService.update_transaction(
        db, loan.id, TransactionUpdate(status=TransactionStatus.RETURNED, return_date=datetime.utcnow())
    )

    result = await db.execute(select(AuditLog))
    assert result.scalars().all() == []
