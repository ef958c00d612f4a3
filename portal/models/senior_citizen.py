"""Senior citizen and beneficiary model definitions."""

from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, Float, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from portal.database import Base
from portal.models.profile import new_id


class SeniorCitizen(Base):
    """A senior citizen registered with the OSCA office."""
    __tablename__ = "senior_citizens"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("profiles.id"), index=True)

    first_name = Column(String)
    last_name = Column(String)
    date_of_birth = Column(Date, nullable=False)
    gender = Column(String, nullable=False, default="other")

    barangay = Column(String, index=True, nullable=False)
    barangay_code = Column(String, default="")
    region_code = Column(String)
    province_code = Column(String)
    city_code = Column(String)
    address = Column(String, default="")

    contact_person = Column(String)
    contact_phone = Column(String)
    contact_relationship = Column(String)
    emergency_contact_name = Column(String)
    emergency_contact_phone = Column(String)
    emergency_contact_relationship = Column(String)

    medical_conditions = Column(JSON, default=list)
    medications = Column(JSON, default=list)
    notes = Column(Text)

    housing_condition = Column(String)
    physical_health_condition = Column(String)
    monthly_income = Column(Float, default=0)
    monthly_pension = Column(Float, default=0)
    living_condition = Column(String)

    senior_id_photo = Column(String)
    profile_picture = Column(String)
    documents = Column(JSON, default=list)

    status = Column(String, default="active")
    registration_date = Column(DateTime, default=datetime.now)
    created_by = Column(String(36), ForeignKey("profiles.id"))
    updated_by = Column(String(36), ForeignKey("profiles.id"))
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    beneficiaries = relationship(
        "Beneficiary",
        back_populates="senior_citizen",
        cascade="all, delete-orphan",
        order_by="Beneficiary.created_at",
    )
    user = relationship("Profile", foreign_keys=[user_id])


class Beneficiary(Base):
    """A dependent or beneficiary listed on a senior citizen's record."""
    __tablename__ = "beneficiaries"

    id = Column(String(36), primary_key=True, default=new_id)
    senior_citizen_id = Column(String(36), ForeignKey("senior_citizens.id", ondelete="CASCADE"), index=True)
    name = Column(String, nullable=False)
    relationship_to_senior = Column("relationship", String, nullable=False)
    date_of_birth = Column(Date)
    gender = Column(String)
    address = Column(String)
    contact_phone = Column(String)
    occupation = Column(String)
    monthly_income = Column(Float, default=0)
    is_dependent = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.now)

    senior_citizen = relationship("SeniorCitizen", back_populates="beneficiaries")
