"""
API endpoints for borrowers.
"""

from fastapi import APIRouter, Depends, status, Query, UploadFile, File
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from schoollib.core.database import get_db
from schoollib.core.security import require_capability
from schoollib.services.csv_processor import CSVProcessorService
from schoollib.services.report_service import ReportService
from schoollib.services.student_service import StudentService
from schoollib.schemas.report import ImportSummary
from schoollib.schemas.student import (
    StudentCreate,
    StudentUpdate,
    StudentResponse,
    StudentListResponse,
    StudentProfile,
)

router = APIRouter()


@router.get("/students", response_model=StudentListResponse)
async def get_all_students(
    search: Optional[str] = Query(None, description="Match name or student id"),
    class_name: Optional[str] = Query(None, alias="class"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db)
):
    students = await StudentService.get_all_students(
        db, search=search, class_name=class_name, skip=skip, limit=limit
    )
    total = await StudentService.get_students_count(db)
    return StudentListResponse(students=students, total=total)


@router.post("/students", response_model=StudentResponse, status_code=status.HTTP_201_CREATED)
async def create_student(
    student_data: StudentCreate,
    db: AsyncSession = Depends(get_db)
):
    return await StudentService.create_student(db, student_data)


@router.post("/students/import", response_model=ImportSummary)
async def import_students(
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db)
):
    """Import students from a CSV or Excel sheet. Known student ids are skipped."""
    content = await file.read()
    return await CSVProcessorService.import_students(db, file.filename, content)


@router.get("/students/{student_id}", response_model=StudentResponse)
async def get_student(
    student_id: int,
    db: AsyncSession = Depends(get_db)
):
    return await StudentService.get_student(db, student_id)


@router.get("/students/{student_id}/profile", response_model=StudentProfile)
async def get_student_profile(
    student_id: int,
    db: AsyncSession = Depends(get_db)
):
    """Student with loan history, open loan counts and charges."""
    return await ReportService.get_student_profile(db, student_id)


@router.put("/students/{student_id}", response_model=StudentResponse)
async def update_student(
    student_id: int,
    student_data: StudentUpdate,
    db: AsyncSession = Depends(get_db)
):
    return await StudentService.update_student(db, student_id, student_data)


@router.delete(
    "/students/{student_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_capability)]
)
async def delete_student(
    student_id: int,
    db: AsyncSession = Depends(get_db)
):
    """Delete a student. Requires the library PIN."""
    await StudentService.delete_student(db, student_id)
    return None
