import io
import re
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union
import pandas as pd
from pydantic import BaseModel, ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from schoollib.core.config import settings
from schoollib.core.exceptions import ValidationError
from schoollib.models.book import Book
from schoollib.models.student import Student
from schoollib.models.taxonomy import TaxonomyType
from schoollib.schemas.book import BookCreate
from schoollib.schemas.report import ImportSummary, RowError, RowRejection
from schoollib.schemas.student import StudentCreate
from schoollib.services.book_service import BookService, sync_grade_index
from schoollib.services.taxonomy_service import TaxonomyService


logger = logging.getLogger(__name__)

# Canonical field -> accepted column headers (compared after normalisation)
BOOK_COLUMN_ALIASES: Dict[str, Tuple[str, ...]] = {
    "barcode": ("barcode", "bar code", "book code", "code", "isbn", "accession number", "accession no"),
    "title": ("title", "book title", "book name", "name"),
    "category": ("category", "book category", "type", "section"),
    "subject": ("subject", "subject area"),
    "grades": ("grades", "grade", "grade level", "level", "class"),
    "quantity": ("quantity", "qty", "copies", "total quantity", "total copies", "total"),
    "quantity_purchased": ("quantity purchased", "purchased", "qty purchased"),
    "quantity_donated": ("quantity donated", "donated", "qty donated"),
    "price": ("price", "unit price", "cost", "price ksh", "amount"),
}

STUDENT_COLUMN_ALIASES: Dict[str, Tuple[str, ...]] = {
    "student_id": ("student id", "studentid", "admission number", "admission no", "adm no", "reg no", "id"),
    "name": ("name", "student name", "full name"),
    "class_name": ("class", "class name", "form", "stream", "grade"),
    "contact": ("contact", "phone", "phone number", "parent contact", "guardian contact"),
}

_SEPARATORS = re.compile(r"[\s_\-\.]+")
_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")


def normalise_header(header: str) -> str:
    """'Quantity_Purchased ' -> 'quantity purchased'."""
    cleaned = re.sub(r"[()\[\]:#]", " ", str(header))
    return _SEPARATORS.sub(" ", cleaned).strip().lower()


def map_columns(row: Dict[str, Any], aliases: Dict[str, Tuple[str, ...]]) -> Dict[str, str]:
    """Pick each canonical field from the first matching non-empty column."""
    normalised = {normalise_header(key): value for key, value in row.items() if key != "row_number"}
    mapped = {}
    for field_name, names in aliases.items():
        for name in names:
            value = normalised.get(name)
            if value is not None and str(value).strip() != "":
                mapped[field_name] = str(value).strip()
                break
    return mapped


def parse_number(value: Optional[str]) -> Optional[float]:
    """'KSH 1,250.00' -> 1250.0"""
    if value is None:
        return None
    match = _NUMBER.search(value.replace(",", ""))
    return float(match.group()) if match else None


def parse_grades(value: Optional[str]) -> List[int]:
    """'Grade 7, 8' -> [7, 8]"""
    if not value:
        return []
    return sorted({int(number) for number in re.findall(r"\d+", value)})


@dataclass
class RowAccepted:
    row_number: int
    value: BaseModel


@dataclass
class RowRejected:
    row_number: int
    errors: List[Dict[str, str]] = field(default_factory=list)

    def to_schema(self) -> RowRejection:
        return RowRejection(
            row_number=self.row_number,
            errors=[RowError(**error) for error in self.errors]
        )


RowResult = Union[RowAccepted, RowRejected]


def _rejected_from_pydantic(row_number: int, exc: PydanticValidationError) -> RowRejected:
    errors = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "row"
        errors.append({"field": location, "error": error.get("msg", "Invalid value")})
    return RowRejected(row_number=row_number, errors=errors)


def parse_book_row(row: Dict[str, Any], row_number: int) -> RowResult:
    """Map one spreadsheet row onto BookCreate."""
    mapped = map_columns(row, BOOK_COLUMN_ALIASES)
    errors = []

    quantity = parse_number(mapped.get("quantity"))
    if quantity is None and ("quantity_purchased" in mapped or "quantity_donated" in mapped):
        purchased = parse_number(mapped.get("quantity_purchased")) or 0
        donated = parse_number(mapped.get("quantity_donated")) or 0
        quantity = purchased + donated
    if quantity is None:
        errors.append({"field": "quantity", "error": "Quantity is required"})
    elif quantity != int(quantity):
        errors.append({"field": "quantity", "error": "Quantity must be a whole number"})

    price = 0.0
    if "price" in mapped:
        price = parse_number(mapped["price"])
        if price is None:
            errors.append({"field": "price", "error": "Price must be a number"})

    if errors:
        return RowRejected(row_number=row_number, errors=errors)

    try:
        book = BookCreate(
            barcode=mapped.get("barcode", ""),
            title=mapped.get("title", ""),
            category=mapped.get("category", ""),
            subject=mapped.get("subject"),
            grades=parse_grades(mapped.get("grades")),
            quantity=int(quantity),
            price=price,
        )
    except PydanticValidationError as e:
        return _rejected_from_pydantic(row_number, e)
    return RowAccepted(row_number=row_number, value=book)


def parse_student_row(row: Dict[str, Any], row_number: int) -> RowResult:
    """Map one spreadsheet row onto StudentCreate."""
    mapped = map_columns(row, STUDENT_COLUMN_ALIASES)
    try:
        student = StudentCreate(
            student_id=mapped.get("student_id", ""),
            name=mapped.get("name", ""),
            class_name=mapped.get("class_name", ""),
            contact=mapped.get("contact"),
        )
    except PydanticValidationError as e:
        return _rejected_from_pydantic(row_number, e)
    return RowAccepted(row_number=row_number, value=student)


class CSVProcessorService:
    ALLOWED_EXTENSIONS = (".csv", ".xlsx")

    @classmethod
    def validate_file(cls, filename: str, content: bytes) -> None:
        """Validate file type and size."""
        if not filename or not filename.lower().endswith(cls.ALLOWED_EXTENSIONS):
            raise ValidationError("File must be a CSV or Excel (.xlsx) file")
        if len(content) > settings.MAX_IMPORT_SIZE:
            raise ValidationError("File size exceeds 10MB limit")
        if not content.strip():
            raise ValidationError("File is empty")

    @classmethod
    def read_rows(cls, filename: str, content: bytes) -> List[dict]:
        """Read the sheet as text and return one dict per non-empty row."""
        cls.validate_file(filename, content)
        try:
            if filename.lower().endswith(".xlsx"):
                frame = pd.read_excel(io.BytesIO(content), dtype=str, keep_default_na=False)
            else:
                frame = pd.read_csv(io.BytesIO(content), dtype=str, keep_default_na=False, encoding="utf-8-sig")
        except UnicodeDecodeError:
            raise ValidationError("File encoding error. Please use UTF-8")
        except (ValueError, pd.errors.ParserError) as e:
            raise ValidationError(f"Could not read file: {str(e)}")

        rows = []
        for index, record in enumerate(frame.to_dict(orient="records")):
            cleaned = {str(k).strip(): str(v).strip() for k, v in record.items()}
            # Skip empty rows (rows where all values are empty)
            if all(not value for value in cleaned.values()):
                continue
            cleaned["row_number"] = index + 2  # header is row 1
            rows.append(cleaned)
        return rows

    @classmethod
    async def import_books(cls, db: AsyncSession, filename: str, content: bytes) -> ImportSummary:
        """Import catalog rows; rows with errors or known barcodes are reported, not inserted."""
        rows = cls.read_rows(filename, content)
        results = [parse_book_row(row, row["row_number"]) for row in rows]

        existing = await db.execute(select(Book.barcode))
        seen = {barcode.upper() for barcode in existing.scalars().all()}

        accepted: List[Book] = []
        rejected: List[RowRejected] = [r for r in results if isinstance(r, RowRejected)]
        for result in results:
            if not isinstance(result, RowAccepted):
                continue
            key = result.value.barcode.strip().upper()
            if key in seen:
                rejected.append(RowRejected(result.row_number, [
                    {"field": "barcode", "error": f"Barcode {result.value.barcode} already exists"}
                ]))
                continue
            try:
                book = BookService.build_book(result.value)
            except ValidationError as e:
                rejected.append(RowRejected(result.row_number, [{"field": "quantity", "error": e.detail}]))
                continue
            seen.add(key)
            accepted.append(book)

        try:
            db.add_all(accepted)
            await db.flush()
            for book in accepted:
                await sync_grade_index(db, book)
            await TaxonomyService.ensure_entries(db, TaxonomyType.CATEGORY, [b.category for b in accepted])
            await TaxonomyService.ensure_entries(db, TaxonomyType.SUBJECT, [b.subject for b in accepted])
            await db.commit()
        except SQLAlchemyError:
            await db.rollback()
            raise

        logger.info(f"Imported {len(accepted)} books from {filename}; {len(rejected)} rows rejected")
        return cls._summary(filename, len(results), len(accepted), rejected)

    @classmethod
    async def import_students(cls, db: AsyncSession, filename: str, content: bytes) -> ImportSummary:
        rows = cls.read_rows(filename, content)
        results = [parse_student_row(row, row["row_number"]) for row in rows]

        existing = await db.execute(select(Student.student_id))
        seen = {code.upper() for code in existing.scalars().all()}

        accepted: List[Student] = []
        rejected: List[RowRejected] = [r for r in results if isinstance(r, RowRejected)]
        for result in results:
            if not isinstance(result, RowAccepted):
                continue
            code = result.value.student_id.strip()
            if code.upper() in seen:
                rejected.append(RowRejected(result.row_number, [
                    {"field": "student_id", "error": f"Student ID {code} already exists"}
                ]))
                continue
            seen.add(code.upper())
            accepted.append(Student(
                student_id=code,
                name=result.value.name.strip(),
                class_name=result.value.class_name.strip(),
                contact=result.value.contact,
            ))

        try:
            db.add_all(accepted)
            await db.commit()
        except SQLAlchemyError:
            await db.rollback()
            raise

        logger.info(f"Imported {len(accepted)} students from {filename}; {len(rejected)} rows rejected")
        return cls._summary(filename, len(results), len(accepted), rejected)

    @staticmethod
    def _summary(filename: str, total: int, imported: int, rejected: List[RowRejected]) -> ImportSummary:
        rejected = sorted(rejected, key=lambda r: r.row_number)
        return ImportSummary(
            file_name=filename,
            total_records=total,
            successful_records=imported,
            failed_records=len(rejected),
            errors=[r.to_schema() for r in rejected],
        )
