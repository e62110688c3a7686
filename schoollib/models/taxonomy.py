from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, UniqueConstraint, Enum as SQLEnum
import enum

from schoollib.core.database import Base


class TaxonomyType(enum.Enum):
    CATEGORY = "category"
    SUBJECT = "subject"


class TaxonomyEntry(Base):
    """Controlled vocabulary for book categories and subjects."""
    __tablename__ = "taxonomy"
    __table_args__ = (
        UniqueConstraint("type", "name", name="uq_taxonomy_type_name"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(SQLEnum(TaxonomyType), nullable=False, index=True)
    name = Column(String(120), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<TaxonomyEntry(type='{self.type}', name='{self.name}')>"


class SchemaVersion(Base):
    """One row per applied schema migration."""
    __tablename__ = "schema_versions"

    version = Column(Integer, primary_key=True, autoincrement=False)
    description = Column(String(255), nullable=False)
    applied_at = Column(DateTime, default=datetime.utcnow, nullable=False)
