"""VARK module model definitions."""

from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from portal.database import Base
from portal.models.profile import new_id


class VARKModuleCategory(Base):
    """Subject / grade / learning style bucket that modules are filed under."""
    __tablename__ = "vark_module_categories"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    description = Column(Text, default="")
    subject = Column(String, index=True)
    grade_level = Column(String, index=True)
    learning_style = Column(String, index=True)
    icon_name = Column(String, default="")
    color_scheme = Column(String, default="")
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)


class VARKModule(Base):
    """A learning module with content tailored to VARK learning styles."""
    __tablename__ = "vark_modules"

    id = Column(String(36), primary_key=True, default=new_id)
    category_id = Column(String(36), ForeignKey("vark_module_categories.id"), index=True)
    title = Column(String, nullable=False)
    description = Column(Text, default="")
    learning_objectives = Column(JSON, default=list)
    content_structure = Column(JSON, default=dict)
    difficulty_level = Column(String, default="beginner")
    estimated_duration_minutes = Column(Integer, default=0)
    prerequisites = Column(JSON, default=list)
    multimedia_content = Column(JSON, default=dict)
    interactive_elements = Column(JSON, default=dict)
    assessment_questions = Column(JSON, default=list)
    module_metadata = Column(JSON, default=dict)
    is_published = Column(Boolean, default=False)
    target_class_id = Column(String(36), ForeignKey("classes.id"), index=True)
    target_learning_styles = Column(JSON, default=list)
    created_by = Column(String(36), ForeignKey("profiles.id"), index=True, nullable=False)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    category = relationship("VARKModuleCategory")
    teacher = relationship("Profile", foreign_keys=[created_by])

    @property
    def section_ids(self) -> list[str]:
        sections = (self.content_structure or {}).get("sections") or []
        return [section.get("id") for section in sections if isinstance(section, dict) and section.get("id")]


class VARKModuleProgress(Base):
    __tablename__ = "vark_module_progress"
    __table_args__ = (UniqueConstraint("student_id", "module_id", name="uq_vark_progress_student_module"),)

    id = Column(String(36), primary_key=True, default=new_id)
    student_id = Column(String(36), ForeignKey("profiles.id"), index=True, nullable=False)
    module_id = Column(String(36), ForeignKey("vark_modules.id", ondelete="CASCADE"), index=True, nullable=False)
    status = Column(String, default="not_started")
    progress_percentage = Column(Integer, default=0)
    current_section_id = Column(String)
    time_spent_minutes = Column(Integer, default=0)
    completed_sections = Column(JSON, default=list)
    assessment_scores = Column(JSON, default=dict)
    started_at = Column(DateTime)
    completed_at = Column(DateTime)
    last_accessed_at = Column(DateTime, default=datetime.now)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    module = relationship("VARKModule")


class VARKModuleAssignment(Base):
    __tablename__ = "vark_module_assignments"

    id = Column(String(36), primary_key=True, default=new_id)
    module_id = Column(String(36), ForeignKey("vark_modules.id", ondelete="CASCADE"), index=True, nullable=False)
    assigned_by = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    assigned_to_type = Column(String, nullable=False)  # student/class
    assigned_to_id = Column(String(36), index=True, nullable=False)
    due_date = Column(DateTime)
    is_required = Column(Boolean, default=True)
    assigned_at = Column(DateTime, default=datetime.now)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    module = relationship("VARKModule")
    assigner = relationship("Profile", foreign_keys=[assigned_by])


class VARKLearningPath(Base):
    __tablename__ = "vark_learning_paths"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    description = Column(Text, default="")
    subject = Column(String)
    grade_level = Column(String)
    learning_style = Column(String, index=True)
    module_sequence = Column(JSON, default=list)
    total_duration_hours = Column(Float, default=0)
    difficulty_progression = Column(String, default="linear")
    is_published = Column(Boolean, default=False)
    created_by = Column(String(36), ForeignKey("profiles.id"))
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    teacher = relationship("Profile", foreign_keys=[created_by])


class VARKModuleFeedback(Base):
    __tablename__ = "vark_module_feedback"
    __table_args__ = (UniqueConstraint("student_id", "module_id", name="uq_vark_feedback_student_module"),)

    id = Column(String(36), primary_key=True, default=new_id)
    module_id = Column(String(36), ForeignKey("vark_modules.id", ondelete="CASCADE"), index=True, nullable=False)
    student_id = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    rating = Column(Integer, nullable=False)
    feedback_text = Column(Text)
    difficulty_rating = Column(Integer)
    engagement_rating = Column(Integer)
    submitted_at = Column(DateTime, default=datetime.now)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    student = relationship("Profile", foreign_keys=[student_id])
