"""
Service for managing books in the library catalog.
"""

import logging
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, delete, or_

from schoollib.core.exceptions import NotFound, ValidationError
from schoollib.models.audit_log import AuditAction, ResourceType
from schoollib.models.book import Book, BookGrade, BookStatus
from schoollib.schemas.book import BookCreate, BookUpdate
from schoollib.services.audit_service import AuditService
from schoollib.utils.snapshot import snapshot

logger = logging.getLogger(__name__)

BOOK_SNAPSHOT_EXCLUDE = ("quantity_purchased", "quantity_donated", "grade", "created_at", "updated_at")


def book_snapshot(book: Book) -> dict:
    return snapshot(book, exclude=BOOK_SNAPSHOT_EXCLUDE)


async def sync_grade_index(db: AsyncSession, book: Book) -> None:
    """Rewrite the book_grades rows of a flushed book from book.grades."""
    await db.execute(delete(BookGrade).where(BookGrade.book_id == book.id))
    for grade in book.grades or []:
        db.add(BookGrade(book_id=book.id, grade=grade))


class BookService:
    """Service for managing catalog books."""

    @staticmethod
    async def get_book_by_id(
        db: AsyncSession,
        book_id: int
    ) -> Optional[Book]:
        """Get a book by its ID."""
        return await db.get(Book, book_id)

    @staticmethod
    async def get_book(db: AsyncSession, book_id: int) -> Book:
        """Get a book by its ID or raise NotFound."""
        book = await db.get(Book, book_id)
        if book is None:
            raise NotFound("Book", book_id)
        return book

    @staticmethod
    async def find_book(
        db: AsyncSession,
        barcode: Optional[str] = None,
        title: Optional[str] = None
    ) -> Optional[Book]:
        """Look a book up by exact barcode, falling back to a case-insensitive title match."""
        if barcode:
            result = await db.execute(select(Book).where(Book.barcode == barcode.strip()))
            book = result.scalars().first()
            if book:
                return book
        if title:
            result = await db.execute(
                select(Book)
                .where(func.lower(Book.title) == title.strip().lower())
                .order_by(Book.id)
            )
            return result.scalars().first()
        return None

    @staticmethod
    def _filtered(
        query,
        category: Optional[str] = None,
        subject: Optional[str] = None,
        grade: Optional[int] = None,
        status: Optional[BookStatus] = None,
        search: Optional[str] = None
    ):
        if category:
            query = query.where(Book.category == category)
        if subject:
            query = query.where(Book.subject == subject)
        if grade is not None:
            query = query.where(
                Book.id.in_(select(BookGrade.book_id).where(BookGrade.grade == grade))
            )
        if status:
            query = query.where(Book.status == status)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(or_(Book.title.ilike(pattern), Book.barcode.ilike(pattern)))
        return query

    @staticmethod
    async def get_all_books(
        db: AsyncSession,
        category: Optional[str] = None,
        subject: Optional[str] = None,
        grade: Optional[int] = None,
        status: Optional[BookStatus] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[Book]:
        """Get all books with optional filtering."""
        query = BookService._filtered(select(Book), category, subject, grade, status, search)
        query = query.order_by(Book.title).offset(skip).limit(limit)

        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def get_books_count(
        db: AsyncSession,
        category: Optional[str] = None,
        subject: Optional[str] = None,
        grade: Optional[int] = None,
        status: Optional[BookStatus] = None,
        search: Optional[str] = None
    ) -> int:
        """Get total count of books with optional filtering."""
        query = BookService._filtered(select(func.count(Book.id)), category, subject, grade, status, search)
        result = await db.execute(query)
        return result.scalar() or 0

    @staticmethod
    async def _ensure_unique_barcode(db: AsyncSession, barcode: str, book_id: Optional[int] = None) -> None:
        query = select(Book.id).where(Book.barcode == barcode)
        if book_id is not None:
            query = query.where(Book.id != book_id)
        result = await db.execute(query)
        if result.first():
            raise ValidationError(f"A book with barcode {barcode} already exists")

    @staticmethod
    def build_book(book_data: BookCreate) -> Book:
        """Turn validated input into an unsaved Book, applying defaults."""
        available = book_data.available_quantity
        if available is None:
            available = book_data.quantity
        if available > book_data.quantity:
            raise ValidationError("Available copies cannot exceed quantity")

        return Book(
            barcode=book_data.barcode.strip(),
            title=book_data.title.strip(),
            category=book_data.category.strip(),
            subject=(book_data.subject or book_data.category).strip(),
            grades=book_data.grades,
            quantity=book_data.quantity,
            available_quantity=available,
            price=book_data.price,
            status=book_data.status,
        )

    @staticmethod
    async def create_book(
        db: AsyncSession,
        book_data: BookCreate
    ) -> Book:
        """Create a new book."""
        book = BookService.build_book(book_data)
        await BookService._ensure_unique_barcode(db, book.barcode)

        db.add(book)
        await db.flush()
        await sync_grade_index(db, book)
        await db.commit()
        await db.refresh(book)
        logger.info(f"Created book: {book.title} ({book.barcode})")

        await AuditService(db).record_mutation(
            AuditAction.CREATE, ResourceType.BOOK, book.id, None, book_snapshot(book)
        )
        return book

    @staticmethod
    async def update_book(
        db: AsyncSession,
        book_id: int,
        book_data: BookUpdate
    ) -> Book:
        """Update a book, keeping available copies within [0, quantity]."""
        book = await BookService.get_book(db, book_id)
        previous_state = book_snapshot(book)

        update_data = book_data.model_dump(exclude_unset=True)
        if update_data.get("barcode") and update_data["barcode"] != book.barcode:
            await BookService._ensure_unique_barcode(db, update_data["barcode"], book.id)

        quantity = update_data.get("quantity")
        if quantity is None:
            quantity = book.quantity or 0
        if "available_quantity" in update_data and update_data["available_quantity"] is not None:
            if update_data["available_quantity"] > quantity:
                raise ValidationError("Available copies cannot exceed quantity")

        # Update only provided fields
        for field, value in update_data.items():
            if value is None and field not in ("subject", "grades"):
                continue
            setattr(book, field, value)

        # A quantity cut below the shelf count drops the surplus available copies
        book.available_quantity = max(0, min(book.available_quantity or 0, book.quantity or 0))

        if "grades" in update_data:
            await sync_grade_index(db, book)

        await db.commit()
        await db.refresh(book)
        logger.info(f"Updated book: {book.title}")

        await AuditService(db).record_mutation(
            AuditAction.UPDATE, ResourceType.BOOK, book.id, previous_state, book_snapshot(book)
        )
        return book

    @staticmethod
    async def delete_book(
        db: AsyncSession,
        book_id: int
    ) -> dict:
        """
        Delete a book. Copies still on loan do not block the delete; the
        audit trail records it instead. Returns the deleted book's snapshot.
        """
        book = await BookService.get_book(db, book_id)
        previous_state = book_snapshot(book)

        await db.execute(delete(BookGrade).where(BookGrade.book_id == book.id))
        await db.delete(book)
        await db.commit()
        logger.info(f"Deleted book: {previous_state['title']}")

        await AuditService(db).record_mutation(
            AuditAction.DELETE, ResourceType.BOOK, book_id, previous_state, None
        )
        return previous_state
