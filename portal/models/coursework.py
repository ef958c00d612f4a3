"""Lesson, quiz and activity model definitions."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from portal.database import Base
from portal.models.profile import new_id


class Lesson(Base):
    __tablename__ = "lessons"

    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(String, nullable=False)
    class_id = Column(String(36), ForeignKey("classes.id"), index=True)
    created_by = Column(String(36), ForeignKey("profiles.id"), index=True)
    is_published = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.now)


class LessonProgress(Base):
    __tablename__ = "lesson_progress"

    id = Column(String(36), primary_key=True, default=new_id)
    lesson_id = Column(String(36), ForeignKey("lessons.id"), index=True)
    student_id = Column(String(36), ForeignKey("profiles.id"), index=True)
    status = Column(String, default="in_progress")
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    lesson = relationship("Lesson")


class Quiz(Base):
    __tablename__ = "quizzes"

    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(String, nullable=False)
    class_id = Column(String(36), ForeignKey("classes.id"), index=True)
    created_by = Column(String(36), ForeignKey("profiles.id"), index=True)
    created_at = Column(DateTime, default=datetime.now)


class QuizResult(Base):
    __tablename__ = "quiz_results"

    id = Column(String(36), primary_key=True, default=new_id)
    quiz_id = Column(String(36), ForeignKey("quizzes.id"), index=True)
    student_id = Column(String(36), ForeignKey("profiles.id"), index=True)
    score = Column(Float, default=0)
    total_points = Column(Float, default=0)
    submitted_at = Column(DateTime, default=datetime.now)

    quiz = relationship("Quiz")


class Activity(Base):
    __tablename__ = "activities"

    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(String, nullable=False)
    description = Column(Text)
    class_id = Column(String(36), ForeignKey("classes.id"), index=True)
    assigned_by = Column(String(36), ForeignKey("profiles.id"), index=True)
    deadline = Column(DateTime)
    created_at = Column(DateTime, default=datetime.now)


class Submission(Base):
    __tablename__ = "submissions"

    id = Column(String(36), primary_key=True, default=new_id)
    activity_id = Column(String(36), ForeignKey("activities.id"), index=True)
    student_id = Column(String(36), ForeignKey("profiles.id"), index=True)
    score = Column(Float)
    submitted_at = Column(DateTime, default=datetime.now)

    activity = relationship("Activity")
