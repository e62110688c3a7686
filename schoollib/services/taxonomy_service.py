"""
Service for the category/subject vocabulary used by the catalog.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from schoollib.core.exceptions import NotFound, ValidationError
from schoollib.models.taxonomy import TaxonomyEntry, TaxonomyType

logger = logging.getLogger(__name__)


class TaxonomyService:

    @staticmethod
    async def get_entries(
        db: AsyncSession,
        entry_type: Optional[TaxonomyType] = None
    ) -> List[TaxonomyEntry]:
        """List entries ordered by name, optionally for one type."""
        query = select(TaxonomyEntry)
        if entry_type:
            query = query.where(TaxonomyEntry.type == entry_type)
        query = query.order_by(TaxonomyEntry.name)
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def add_entry(
        db: AsyncSession,
        entry_type: TaxonomyType,
        name: str
    ) -> TaxonomyEntry:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Name is required")

        existing = await db.execute(
            select(TaxonomyEntry).where(
                TaxonomyEntry.type == entry_type,
                TaxonomyEntry.name == name
            )
        )
        if existing.scalars().first():
            raise ValidationError(f"{entry_type.value.title()} '{name}' already exists")

        entry = TaxonomyEntry(type=entry_type, name=name, created_at=datetime.utcnow())
        db.add(entry)
        await db.commit()
        await db.refresh(entry)
        logger.info(f"Added {entry_type.value}: {name}")
        return entry

    @staticmethod
    async def delete_entry(db: AsyncSession, entry_id: int) -> None:
        entry = await db.get(TaxonomyEntry, entry_id)
        if entry is None:
            raise NotFound("Taxonomy entry", entry_id)
        await db.delete(entry)
        await db.commit()
        logger.info(f"Deleted {entry.type.value}: {entry.name}")

    @staticmethod
    async def ensure_entries(
        db: AsyncSession,
        entry_type: TaxonomyType,
        names: Iterable[str]
    ) -> List[TaxonomyEntry]:
        """
        Add the names not yet present for this type. Does not commit.

        Safe to call repeatedly with the same names.
        """
        wanted = {name.strip() for name in names if name and name.strip()}
        if not wanted:
            return []

        result = await db.execute(
            select(TaxonomyEntry.name).where(TaxonomyEntry.type == entry_type)
        )
        present = set(result.scalars().all())

        created = []
        now = datetime.utcnow()
        for name in sorted(wanted - present):
            entry = TaxonomyEntry(type=entry_type, name=name, created_at=now)
            db.add(entry)
            created.append(entry)
        if created:
            await db.flush()
        return created
