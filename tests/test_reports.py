from datetime import datetime, timedelta

from schoollib.models.bad_debt import BadDebtType
from schoollib.services.circulation_service import CirculationService
from schoollib.services.report_service import ReportService


async def test_dashboard_stats(db, make_book, make_student):
    popular = await make_book(title="Popular", quantity=4, price=500)
    await make_book(title="Quiet", quantity=2)
    student = await make_student()

    first = await CirculationService.borrow_book(db, student.id, book_id=popular.id)
    await CirculationService.borrow_book(
        db, student.id, book_id=popular.id, due_date=datetime.utcnow() - timedelta(days=1)
    )
    await CirculationService.borrow_book(db, student.id, book_id=popular.id)
    await CirculationService.mark_lost_or_damaged(db, first.id, BadDebtType.LOST)

    stats = await ReportService.get_dashboard_stats(db)
    assert stats.total_titles == 2
    assert stats.total_copies == 6
    assert stats.available_copies == 3
    assert stats.borrowed_copies == 3
    assert stats.active_loans == 2
    assert stats.overdue_loans == 1
    assert stats.pending_debt_total == 500
    assert stats.top_books[0].title == "Popular"
    # the lost loan no longer counts as a borrow row
    assert stats.top_books[0].borrowed == 2


async def test_dashboard_on_empty_store(db):
    stats = await ReportService.get_dashboard_stats(db)
    assert stats.total_titles == 0
    assert stats.total_copies == 0
    assert stats.top_books == []


async def test_student_profile(db, make_book, make_student):
    book = await make_book(price=300)
    student = await make_student(name="Amina Yusuf")
    other = await make_student()

    late = await CirculationService.borrow_book(
        db, student.id, book_id=book.id, due_date=datetime.utcnow() - timedelta(days=2)
    )
    lost = await CirculationService.borrow_book(db, student.id, book_id=book.id)
    await CirculationService.mark_lost_or_damaged(db, lost.id, BadDebtType.LOST)
    await CirculationService.borrow_book(db, other.id, book_id=book.id)

    profile = await ReportService.get_student_profile(db, student.id)
    assert profile.student.name == "Amina Yusuf"
    assert {loan.id for loan in profile.loans} == {late.id, lost.id}
    assert profile.active_loans == 1
    assert profile.overdue_loans == 1
    assert len(profile.debts) == 1
    assert profile.outstanding_debt == 300
