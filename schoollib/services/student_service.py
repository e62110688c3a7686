import logging
from typing import List, Optional
from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from schoollib.core.exceptions import NotFound, ValidationError
from schoollib.models.audit_log import AuditAction, ResourceType
from schoollib.models.student import Student
from schoollib.schemas.student import StudentCreate, StudentUpdate
from schoollib.services.audit_service import AuditService
from schoollib.utils.snapshot import snapshot


logger = logging.getLogger(__name__)


class StudentService:

    @staticmethod
    async def get_student(db: AsyncSession, student_id: int) -> Student:
        """Get a student by primary key or raise NotFound."""
        student = await db.get(Student, student_id)
        if student is None:
            raise NotFound("Student", student_id)
        return student

    @staticmethod
    async def find_by_student_id(db: AsyncSession, code: str) -> Optional[Student]:
        """Find a student by admission number (case-insensitive)."""
        result = await db.execute(
            select(Student).where(func.upper(Student.student_id) == code.strip().upper())
        )
        return result.scalars().first()

    @staticmethod
    async def get_all_students(
        db: AsyncSession,
        search: Optional[str] = None,
        class_name: Optional[str] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[Student]:
        query = select(Student)
        if class_name:
            query = query.where(Student.class_name == class_name)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(or_(Student.name.ilike(pattern), Student.student_id.ilike(pattern)))
        query = query.order_by(Student.name).offset(skip).limit(limit)
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def get_students_count(db: AsyncSession) -> int:
        result = await db.execute(select(func.count(Student.id)))
        return result.scalar() or 0

    @staticmethod
    async def _ensure_unique_code(db: AsyncSession, code: str, student_pk: Optional[int] = None) -> None:
        existing = await StudentService.find_by_student_id(db, code)
        if existing and existing.id != student_pk:
            raise ValidationError(f"Student ID {code} already exists")

    @staticmethod
    async def create_student(db: AsyncSession, student_data: StudentCreate) -> Student:
        """Register a borrower."""
        code = student_data.student_id.strip()
        await StudentService._ensure_unique_code(db, code)

        student = Student(
            student_id=code,
            name=student_data.name.strip(),
            class_name=student_data.class_name.strip(),
            contact=student_data.contact,
        )
        db.add(student)
        await db.commit()
        await db.refresh(student)
        logger.info(f"Created student: {student.name} ({student.student_id})")

        await AuditService(db).record_mutation(
            AuditAction.CREATE, ResourceType.STUDENT, student.id, None, snapshot(student)
        )
        return student

    @staticmethod
    async def update_student(db: AsyncSession, student_pk: int, student_data: StudentUpdate) -> Student:
        student = await StudentService.get_student(db, student_pk)
        previous_state = snapshot(student)

        update_data = student_data.model_dump(exclude_unset=True)
        if update_data.get("student_id"):
            await StudentService._ensure_unique_code(db, update_data["student_id"].strip(), student.id)

        for field, value in update_data.items():
            if value is None and field != "contact":
                continue
            setattr(student, field, value.strip() if isinstance(value, str) else value)

        await db.commit()
        await db.refresh(student)
        logger.info(f"Updated student: {student.name}")

        await AuditService(db).record_mutation(
            AuditAction.UPDATE, ResourceType.STUDENT, student.id, previous_state, snapshot(student)
        )
        return student

    @staticmethod
    async def delete_student(db: AsyncSession, student_pk: int) -> dict:
        """Delete a student. Their ledger rows are kept for history."""
        student = await StudentService.get_student(db, student_pk)
        previous_state = snapshot(student)

        await db.delete(student)
        await db.commit()
        logger.info(f"Deleted student: {previous_state['name']}")

        await AuditService(db).record_mutation(
            AuditAction.DELETE, ResourceType.STUDENT, student_pk, previous_state, None
        )
        return previous_state
