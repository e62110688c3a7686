"""
Ordered schema migrations for the library store.

Every step is written to be replayed safely against data that is already
partly or fully migrated, so `apply_migration` can run a step again without
double-counting quantities or duplicating taxonomy rows.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, List, Optional
from sqlalchemy import select, func, inspect, text
from sqlalchemy.ext.asyncio import AsyncSession

from schoollib.core.database import Base
from schoollib.models.bad_debt import BadDebt
from schoollib.models.audit_log import AuditLog
from schoollib.models.book import Book, BookGrade, BookStatus
from schoollib.models.student import Student
from schoollib.models.taxonomy import TaxonomyEntry, TaxonomyType, SchemaVersion
from schoollib.models.transaction import Transaction
from schoollib.services.availability import clamp_availability
from schoollib.services.book_service import sync_grade_index
from schoollib.services.taxonomy_service import TaxonomyService

logger = logging.getLogger(__name__)

_DIGITS = re.compile(r"\d+")


@dataclass(frozen=True)
class Migration:
    version: int
    description: str
    apply: Callable[[AsyncSession], Awaitable[None]]


async def _create_tables(db: AsyncSession, tables) -> None:
    await db.run_sync(
        lambda session: Base.metadata.create_all(session.connection(), tables=tables)
    )


async def _add_missing_columns(db: AsyncSession, table) -> None:
    """Bring a table created by an older revision up to the current columns."""
    def add_columns(session):
        connection = session.connection()
        existing = {column["name"] for column in inspect(connection).get_columns(table.name)}
        for column in table.columns:
            if column.name in existing:
                continue
            column_type = column.type.compile(dialect=connection.dialect)
            connection.execute(text(f'ALTER TABLE {table.name} ADD COLUMN "{column.name}" {column_type}'))
            logger.info(f"Added column {table.name}.{column.name}")

    await db.run_sync(add_columns)


def parse_legacy_grade(value: Optional[str]) -> List[int]:
    """'Grade 7' -> [7]; no digits or out of range -> []."""
    if not value:
        return []
    match = _DIGITS.search(value)
    if not match:
        return []
    grade = int(match.group())
    return [grade] if 1 <= grade <= 12 else []


async def _v1_base_tables(db: AsyncSession) -> None:
    await _create_tables(db, [
        Book.__table__, Student.__table__, Transaction.__table__,
        BadDebt.__table__, AuditLog.__table__,
    ])


async def _v2_grade_index(db: AsyncSession) -> None:
    await _create_tables(db, [BookGrade.__table__])


async def _v3_normalise_books(db: AsyncSession) -> None:
    await _add_missing_columns(db, Book.__table__)

    result = await db.execute(select(Book))
    changed = 0
    for book in result.scalars().all():
        touched = False
        if book.quantity is None:
            book.quantity = (book.quantity_purchased or 0) + (book.quantity_donated or 0)
            touched = True
        if book.quantity_purchased is not None or book.quantity_donated is not None:
            book.quantity_purchased = None
            book.quantity_donated = None
            touched = True
        if book.subject is None:
            book.subject = book.category
            touched = True
        if book.price is None:
            book.price = 0
            touched = True
        if book.status is None:
            book.status = BookStatus.ACTIVE
            touched = True
        if book.available_quantity is None:
            book.available_quantity = book.quantity
            touched = True
        clamped = clamp_availability(book.available_quantity, 0, book.quantity)
        if clamped != book.available_quantity:
            book.available_quantity = clamped
            touched = True
        if book.grades is None:
            book.grades = parse_legacy_grade(book.grade)
            await sync_grade_index(db, book)
            touched = True
        if touched:
            changed += 1
    await db.flush()
    logger.info(f"Normalised {changed} legacy book rows")


async def _v4_seed_taxonomy(db: AsyncSession) -> None:
    await _create_tables(db, [TaxonomyEntry.__table__])

    categories = await db.execute(select(Book.category).distinct())
    subjects = await db.execute(select(Book.subject).distinct())
    created = await TaxonomyService.ensure_entries(db, TaxonomyType.CATEGORY, categories.scalars().all())
    created += await TaxonomyService.ensure_entries(db, TaxonomyType.SUBJECT, subjects.scalars().all())
    logger.info(f"Seeded {len(created)} taxonomy entries")


MIGRATIONS: List[Migration] = [
    Migration(1, "Base tables", _v1_base_tables),
    Migration(2, "Grade index", _v2_grade_index),
    Migration(3, "Merge legacy quantities; add subject, price, status, grades", _v3_normalise_books),
    Migration(4, "Seed taxonomy from existing categories and subjects", _v4_seed_taxonomy),
]


async def _ensure_version_table(db: AsyncSession) -> None:
    await _create_tables(db, [SchemaVersion.__table__])


async def get_current_version(db: AsyncSession) -> int:
    await _ensure_version_table(db)
    result = await db.execute(select(func.max(SchemaVersion.version)))
    return result.scalar() or 0


async def apply_migration(db: AsyncSession, migration: Migration) -> None:
    """Run one step and record it. Replaying an applied step is allowed."""
    await _ensure_version_table(db)
    await migration.apply(db)
    if await db.get(SchemaVersion, migration.version) is None:
        db.add(SchemaVersion(
            version=migration.version,
            description=migration.description,
            applied_at=datetime.utcnow(),
        ))
    await db.commit()
    logger.info(f"Applied schema migration v{migration.version}: {migration.description}")


async def run_migrations(db: AsyncSession) -> List[int]:
    """Apply pending migrations in order. Returns the versions applied."""
    current = await get_current_version(db)
    applied = []
    for migration in MIGRATIONS:
        if migration.version > current:
            await apply_migration(db, migration)
            applied.append(migration.version)
    if not applied:
        logger.info(f"Schema is up to date (v{current})")
    return applied
