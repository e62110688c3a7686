"""
Book model for the library catalog.

A book row describes one title with `quantity` physical copies, of which
`available_quantity` are on the shelf. Loans move copies between the two
through the circulation ledger.
"""

from datetime import datetime
from sqlalchemy import Column, String, Integer, Float, DateTime, ForeignKey, JSON, Enum as SQLEnum
import enum

from schoollib.core.database import Base


class BookStatus(enum.Enum):
    ACTIVE = "active"
    LOST = "lost"
    DAMAGED = "damaged"


class Book(Base):
    """
    Catalog entry.

    `quantity`, `available_quantity`, `subject`, `price`, `status` and `grades`
    are nullable only because rows written by the first schema revision lack
    them; the v3 migration fills them in. The `quantity_purchased`,
    `quantity_donated` and `grade` columns hold that legacy layout until the
    migration folds them into `quantity` and `grades`.
    """
    __tablename__ = "books"

    id = Column(Integer, primary_key=True, autoincrement=True)
    barcode = Column(String(64), unique=True, nullable=False, index=True)
    title = Column(String(255), nullable=False, index=True)
    category = Column(String(120), nullable=False, default="")
    subject = Column(String(120), nullable=True)
    grades = Column(JSON, nullable=True)  # sorted list of ints 1-12
    quantity = Column(Integer, nullable=True)
    available_quantity = Column(Integer, nullable=True)
    price = Column(Float, nullable=True)
    status = Column(SQLEnum(BookStatus), nullable=True)

    # Legacy layout
    quantity_purchased = Column(Integer, nullable=True)
    quantity_donated = Column(Integer, nullable=True)
    grade = Column(String(50), nullable=True)

    # Metadata
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Book(barcode='{self.barcode}', title='{self.title}')>"


class BookGrade(Base):
    """Multi-valued index over Book.grades: one row per (book, grade)."""
    __tablename__ = "book_grades"

    id = Column(Integer, primary_key=True, autoincrement=True)
    book_id = Column(Integer, ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True)
    grade = Column(Integer, nullable=False, index=True)
