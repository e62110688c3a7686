"""
Keeps a book's available copies in step with the circulation ledger.
"""

import logging
from sqlalchemy.ext.asyncio import AsyncSession

from schoollib.core.exceptions import NotFound
from schoollib.models.book import Book

logger = logging.getLogger(__name__)


def clamp_availability(current: int, delta: int, quantity: int) -> int:
    """Apply delta and clamp the result to [0, quantity]. Never raises."""
    return max(0, min(quantity, current + delta))


async def adjust_availability(db: AsyncSession, book_id: int, delta: int) -> Book:
    """
    Shift `available_quantity` by delta within [0, quantity].

    Does not commit: the caller owns the transaction that also appends the
    ledger row.
    """
    book = await db.get(Book, book_id)
    if book is None:
        raise NotFound("Book", book_id)

    before = book.available_quantity or 0
    book.available_quantity = clamp_availability(before, delta, book.quantity or 0)
    logger.debug(f"Availability of book {book_id}: {before} -> {book.available_quantity}")
    return book
