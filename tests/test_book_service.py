import pytest
from sqlalchemy import select

from schoollib.core.exceptions import NotFound, ValidationError
from schoollib.models.audit_log import AuditLog, RiskLevel
from schoollib.models.book import Book, BookGrade, BookStatus
from schoollib.schemas.book import BookCreate, BookUpdate
from schoollib.services.availability import clamp_availability
from schoollib.services.book_service import BookService
from schoollib.services.circulation_service import CirculationService


async def _audit_logs(db):
    result = await db.execute(select(AuditLog).order_by(AuditLog.id))
    return result.scalars().all()


async def test_create_book_defaults(db, make_book):
    book = await make_book(category="Science", quantity=4)
    assert book.available_quantity == 4
    assert book.subject == "Science"
    assert book.status == BookStatus.ACTIVE
    assert await _audit_logs(db) == []


async def test_create_book_rejects_available_above_quantity(db):
    with pytest.raises(ValidationError):
        await BookService.create_book(db, BookCreate(
            barcode="X1", title="Too many", quantity=2, available_quantity=3
        ))


async def test_barcode_must_be_unique(db, make_book):
    await make_book(barcode="DUP-1")
    with pytest.raises(ValidationError):
        await make_book(barcode="DUP-1")


async def test_update_barcode_to_existing_is_rejected(db, make_book):
    await make_book(barcode="A-1")
    other = await make_book(barcode="B-1")
    with pytest.raises(ValidationError):
        await BookService.update_book(db, other.id, BookUpdate(barcode="A-1"))


async def test_large_quantity_change_is_audited_high(db, make_book):
    book = await make_book(quantity=10)
    await BookService.update_book(db, book.id, BookUpdate(quantity=20))

    logs = await _audit_logs(db)
    assert len(logs) == 1
    assert logs[0].risk_level == RiskLevel.HIGH
    assert logs[0].previous_state["quantity"] == 10
    assert logs[0].new_state["quantity"] == 20
    assert logs[0].user_id == "librarian"


async def test_large_price_change_is_audited_high(db, make_book):
    book = await make_book(price=850)
    await BookService.update_book(db, book.id, BookUpdate(price=425))

    logs = await _audit_logs(db)
    assert len(logs) == 1
    assert logs[0].risk_level == RiskLevel.HIGH
    assert "price" in logs[0].notes.lower()


async def test_small_update_is_not_audited(db, make_book):
    book = await make_book(quantity=10, price=100)
    await BookService.update_book(db, book.id, BookUpdate(quantity=12, title="Renamed"))
    assert await _audit_logs(db) == []


async def test_status_change_is_audited_low(db, make_book):
    book = await make_book()
    await BookService.update_book(db, book.id, BookUpdate(status=BookStatus.DAMAGED))

    logs = await _audit_logs(db)
    assert logs[0].risk_level == RiskLevel.LOW


async def test_delete_with_copies_on_loan_is_audited_and_proceeds(db, make_book, make_student):
    book = await make_book(quantity=5)
    student = await make_student()
    await CirculationService.borrow_book(db, student.id, book_id=book.id)
    await CirculationService.borrow_book(db, student.id, book_id=book.id)
    await db.refresh(book)
    assert book.available_quantity == 3

    await BookService.delete_book(db, book.id)

    logs = await _audit_logs(db)
    assert len(logs) == 1
    assert logs[0].risk_level == RiskLevel.HIGH
    assert logs[0].new_state is None
    assert await db.get(Book, book.id) is None


async def test_quantity_cut_clamps_availability(db, make_book):
    book = await make_book(quantity=10, available_quantity=8)
    updated = await BookService.update_book(db, book.id, BookUpdate(quantity=6))
    assert updated.available_quantity == 6


async def test_update_rejects_available_above_quantity(db, make_book):
    book = await make_book(quantity=5)
    with pytest.raises(ValidationError):
        await BookService.update_book(db, book.id, BookUpdate(available_quantity=6))


async def test_grade_filter_uses_index(db, make_book):
    seven = await make_book(grades=[7, 8])
    await make_book(grades=[9])

    books = await BookService.get_all_books(db, grade=7)
    assert [b.id for b in books] == [seven.id]
    assert await BookService.get_books_count(db, grade=8) == 1

    await BookService.update_book(db, seven.id, BookUpdate(grades=[10]))
    assert await BookService.get_all_books(db, grade=7) == []
    rows = await db.execute(select(BookGrade.grade).where(BookGrade.book_id == seven.id))
    assert rows.scalars().all() == [10]


async def test_search_and_category_filters(db, make_book):
    await make_book(title="Kiswahili Mufti", category="Languages")
    await make_book(title="Mathematics Form 1", category="Sciences")

    found = await BookService.get_all_books(db, search="mufti")
    assert [b.title for b in found] == ["Kiswahili Mufti"]
    assert await BookService.get_books_count(db, category="Sciences") == 1


async def test_get_missing_book(db):
    with pytest.raises(NotFound):
        await BookService.get_book(db, 999)


def test_grades_are_validated():
    with pytest.raises(ValueError):
        BookCreate(barcode="G1", title="Grades", quantity=1, grades=[0])
    assert BookCreate(barcode="G2", title="Grades", quantity=1, grades=[8, 7, 8]).grades == [7, 8]


@pytest.mark.parametrize("current,delta,quantity,expected", [
    (4, 1, 5, 5),
    (5, 1, 5, 5),
    (0, -1, 5, 0),
    (3, -1, 5, 2),
])
def test_clamp_availability(current, delta, quantity, expected):
    assert clamp_availability(current, delta, quantity) == expected
