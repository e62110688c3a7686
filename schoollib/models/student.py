from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime

from schoollib.core.database import Base


class Student(Base):
    __tablename__ = "students"

    id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(String(40), unique=True, nullable=False, index=True)  # admission number
    name = Column(String(255), nullable=False, index=True)
    class_name = Column("class", String(50), nullable=False, index=True)
    contact = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Student(student_id='{self.student_id}', name='{self.name}')>"
