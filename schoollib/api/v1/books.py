"""
API endpoints for the book catalog.
"""

from fastapi import APIRouter, Depends, status, Query, UploadFile, File
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from schoollib.core.database import get_db
from schoollib.core.security import require_capability
from schoollib.models.book import BookStatus
from schoollib.services.book_service import BookService
from schoollib.services.csv_processor import CSVProcessorService
from schoollib.schemas.book import (
    BookCreate,
    BookUpdate,
    BookResponse,
    BookListResponse,
)
from schoollib.schemas.report import ImportSummary

router = APIRouter()


@router.get("/books", response_model=BookListResponse)
async def get_all_books(
    category: Optional[str] = Query(None, description="Filter by category"),
    subject: Optional[str] = Query(None, description="Filter by subject"),
    grade: Optional[int] = Query(None, ge=1, le=12, description="Filter by grade"),
    book_status: Optional[BookStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, description="Match title or barcode"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db)
):
    """Get the catalog with optional filtering."""
    books = await BookService.get_all_books(
        db, category=category, subject=subject, grade=grade,
        status=book_status, search=search, skip=skip, limit=limit
    )
    total = await BookService.get_books_count(
        db, category=category, subject=subject, grade=grade, status=book_status, search=search
    )
    return BookListResponse(books=books, total=total)


@router.post("/books", response_model=BookResponse, status_code=status.HTTP_201_CREATED)
async def create_book(
    book_data: BookCreate,
    db: AsyncSession = Depends(get_db)
):
    return await BookService.create_book(db, book_data)


@router.post("/books/import", response_model=ImportSummary)
async def import_books(
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db)
):
    """Import books from a CSV or Excel sheet. Known barcodes are skipped."""
    content = await file.read()
    return await CSVProcessorService.import_books(db, file.filename, content)


@router.get("/books/{book_id}", response_model=BookResponse)
async def get_book(
    book_id: int,
    db: AsyncSession = Depends(get_db)
):
    return await BookService.get_book(db, book_id)


@router.put("/books/{book_id}", response_model=BookResponse)
async def update_book(
    book_id: int,
    book_data: BookUpdate,
    db: AsyncSession = Depends(get_db)
):
    return await BookService.update_book(db, book_id, book_data)


@router.delete(
    "/books/{book_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_capability)]
)
async def delete_book(
    book_id: int,
    db: AsyncSession = Depends(get_db)
):
    """Delete a book. Requires the library PIN."""
    await BookService.delete_book(db, book_id)
    return None
