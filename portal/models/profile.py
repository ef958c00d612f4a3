"""Profile model definitions."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, String

from portal.database import Base

LEARNING_STYLES = ("visual", "auditory", "reading_writing", "kinesthetic")


def new_id() -> str:
    return str(uuid.uuid4())


class Profile(Base):
    """Application-level user record stored beside the login credentials."""
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String, nullable=False)

    first_name = Column(String)
    middle_name = Column(String)
    last_name = Column(String)
    full_name = Column(String)
    phone = Column(String)
    avatar_url = Column(String)
    is_verified = Column(Boolean, default=False)
    last_login = Column(DateTime)

    # osca
    department = Column(String)
    position = Column(String)
    employee_id = Column(String)

    # basca
    barangay = Column(String)
    barangay_code = Column(String)

    # senior
    date_of_birth = Column(Date)
    address = Column(String)
    osca_id = Column(String)
    emergency_contact_name = Column(String)
    emergency_contact_phone = Column(String)
    emergency_contact_relationship = Column(String)

    # student / teacher
    grade_level = Column(String)
    profile_photo = Column(String)
    learning_style = Column(String)
    onboarding_completed = Column(Boolean, default=False)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    @property
    def display_name(self) -> str:
        if self.full_name:
            return self.full_name
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


def compose_full_name(first_name: str | None, middle_name: str | None, last_name: str | None) -> str | None:
    parts = [part.strip() for part in (first_name, middle_name, last_name) if part and part.strip()]
    return " ".join(parts) or None
