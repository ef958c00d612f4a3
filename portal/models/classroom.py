"""Class and enrollment model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from portal.database import Base
from portal.models.profile import new_id


class Class(Base):
    """A teacher-owned class that students enroll in."""
    __tablename__ = "classes"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    description = Column(Text)
    subject = Column(String)
    grade_level = Column(String)
    created_by = Column(String(36), ForeignKey("profiles.id"), index=True, nullable=False)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    enrollments = relationship("ClassStudent", back_populates="classroom", cascade="all, delete-orphan")


class ClassStudent(Base):
    """Enrollment of a student profile in a class."""
    __tablename__ = "class_students"
    __table_args__ = (UniqueConstraint("class_id", "student_id", name="uq_class_students_class_student"),)

    id = Column(String(36), primary_key=True, default=new_id)
    class_id = Column(String(36), ForeignKey("classes.id", ondelete="CASCADE"), index=True, nullable=False)
    student_id = Column(String(36), ForeignKey("profiles.id"), index=True, nullable=False)
    joined_at = Column(DateTime, default=datetime.now)

    classroom = relationship("Class", back_populates="enrollments")
    student = relationship("Profile")
