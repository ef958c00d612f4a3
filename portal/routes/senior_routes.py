import logging
from datetime import date, datetime
from typing import Literal

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from portal.auth.dependencies import require_roles
from portal.database import get_db
from portal.models.profile import Profile
from portal.models.senior_citizen import Beneficiary, SeniorCitizen
from portal.routes.common import MessageResponse, database_unavailable, forbidden, not_found

router = APIRouter(tags=['senior-citizens'])

logger = logging.getLogger(__name__)

MINIMUM_SENIOR_AGE = 60
MIN_ADDRESS_LENGTH = 10
MIN_PHONE_LENGTH = 10

Gender = Literal['male', 'female', 'other']
HousingCondition = Literal['owned', 'rented', 'with_family', 'institution', 'other']
PhysicalHealthCondition = Literal['excellent', 'good', 'fair', 'poor', 'critical']
LivingCondition = Literal['independent', 'with_family', 'with_caregiver', 'institution', 'other']


def calculate_age(date_of_birth: date, today: date | None = None) -> int:
    today = today or date.today()
    age = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


def _check_senior_age(value: date | None) -> date | None:
    if value is not None and calculate_age(value) < MINIMUM_SENIOR_AGE:
        raise ValueError(f'Senior citizen must be at least {MINIMUM_SENIOR_AGE} years old')
    return value


def _check_min_length(value: str | None, length: int, message: str) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    if len(normalized) < length:
        raise ValueError(message)
    return normalized


class RegionData(BaseModel):
    region_code: str
    region_name: str


class ProvinceData(BaseModel):
    province_code: str
    province_name: str


class CityData(BaseModel):
    city_code: str
    city_name: str


class BarangayData(BaseModel):
    brgy_code: str
    brgy_name: str


class AddressData(BaseModel):
    region: RegionData | None = None
    province: ProvinceData | None = None
    city: CityData | None = None
    barangay: BarangayData | None = None


class BeneficiaryInput(BaseModel):
    name: str
    relationship: str
    date_of_birth: date
    gender: Gender
    address: str | None = None
    contact_phone: str | None = None
    occupation: str | None = None
    monthly_income: float = Field(default=0, ge=0)
    is_dependent: bool = False

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _check_min_length(value, 2, 'Beneficiary name must be at least 2 characters')

    @field_validator('relationship')
    @classmethod
    def validate_relationship(cls, value: str) -> str:
        return _check_min_length(value, 2, 'Relationship is required')


class SeniorCitizenFields(BaseModel):
    """Validation rules shared by the create and update forms."""

    @field_validator('first_name', 'last_name', check_fields=False)
    @classmethod
    def validate_names(cls, value: str | None) -> str | None:
        return _check_min_length(value, 2, 'Names must be at least 2 characters')

    @field_validator('date_of_birth', check_fields=False)
    @classmethod
    def validate_date_of_birth(cls, value: date | None) -> date | None:
        return _check_senior_age(value)

    @field_validator('address', check_fields=False)
    @classmethod
    def validate_address(cls, value: str | None) -> str | None:
        return _check_min_length(value, MIN_ADDRESS_LENGTH, 'Address must be at least 10 characters')

    @field_validator('emergency_contact_name', 'emergency_contact_relationship', check_fields=False)
    @classmethod
    def validate_emergency_contact(cls, value: str | None) -> str | None:
        return _check_min_length(value, 2, 'Emergency contact details are required')

    @field_validator('emergency_contact_phone', check_fields=False)
    @classmethod
    def validate_emergency_contact_phone(cls, value: str | None) -> str | None:
        return _check_min_length(value, MIN_PHONE_LENGTH, 'Emergency contact phone is required')


class CreateSeniorCitizenRequest(SeniorCitizenFields):
    user_id: str | None = None
    first_name: str
    last_name: str
    date_of_birth: date
    gender: Gender
    barangay: str = Field(min_length=1)
    barangay_code: str = Field(min_length=1)
    address: str
    address_data: AddressData | None = None
    contact_person: str | None = None
    contact_phone: str | None = None
    contact_relationship: str | None = None
    emergency_contact_name: str
    emergency_contact_phone: str
    emergency_contact_relationship: str
    medical_conditions: list[str] = Field(default_factory=list)
    medications: list[str] = Field(default_factory=list)
    notes: str | None = None
    housing_condition: HousingCondition
    physical_health_condition: PhysicalHealthCondition
    monthly_income: float = Field(ge=0)
    monthly_pension: float = Field(ge=0)
    living_condition: LivingCondition
    profile_picture: str | None = None
    senior_id_photo: str | None = None
    beneficiaries: list[BeneficiaryInput] = Field(default_factory=list)


class UpdateSeniorCitizenRequest(SeniorCitizenFields):
    first_name: str | None = None
    last_name: str | None = None
    date_of_birth: date | None = None
    gender: Gender | None = None
    barangay: str | None = Field(default=None, min_length=1)
    barangay_code: str | None = Field(default=None, min_length=1)
    address: str | None = None
    address_data: AddressData | None = None
    contact_person: str | None = None
    contact_phone: str | None = None
    contact_relationship: str | None = None
    emergency_contact_name: str | None = None
    emergency_contact_phone: str | None = None
    emergency_contact_relationship: str | None = None
    medical_conditions: list[str] | None = None
    medications: list[str] | None = None
    notes: str | None = None
    housing_condition: HousingCondition | None = None
    physical_health_condition: PhysicalHealthCondition | None = None
    monthly_income: float | None = Field(default=None, ge=0)
    monthly_pension: float | None = Field(default=None, ge=0)
    living_condition: LivingCondition | None = None
    profile_picture: str | None = None
    senior_id_photo: str | None = None
    beneficiaries: list[BeneficiaryInput] | None = None


class BeneficiaryResponse(BaseModel):
    id: str
    name: str
    relationship: str
    date_of_birth: date | None = None
    gender: str | None = None
    address: str | None = None
    contact_phone: str | None = None
    occupation: str | None = None
    monthly_income: float = 0
    is_dependent: bool = False


class SeniorAccountResponse(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    email: str
    phone: str | None = None


class SeniorCitizenResponse(BaseModel):
    id: str
    user_id: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    date_of_birth: date
    age: int
    gender: str
    barangay: str
    barangay_code: str | None = None
    region_code: str | None = None
    province_code: str | None = None
    city_code: str | None = None
    address: str | None = None
    contact_person: str | None = None
    contact_phone: str | None = None
    contact_relationship: str | None = None
    emergency_contact_name: str | None = None
    emergency_contact_phone: str | None = None
    emergency_contact_relationship: str | None = None
    medical_conditions: list[str] = Field(default_factory=list)
    medications: list[str] = Field(default_factory=list)
    notes: str | None = None
    housing_condition: str | None = None
    physical_health_condition: str | None = None
    monthly_income: float = 0
    monthly_pension: float = 0
    living_condition: str | None = None
    profile_picture: str | None = None
    senior_id_photo: str | None = None
    status: str
    registration_date: datetime | None = None
    created_by: str | None = None
    updated_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    beneficiaries: list[BeneficiaryResponse] = Field(default_factory=list)
    account: SeniorAccountResponse | None = None


class SeniorCitizenMutationResponse(MessageResponse):
    data: SeniorCitizenResponse


def serialize_beneficiary(beneficiary: Beneficiary) -> BeneficiaryResponse:
    return BeneficiaryResponse(
        id=beneficiary.id,
        name=beneficiary.name,
        relationship=beneficiary.relationship_to_senior,
        date_of_birth=beneficiary.date_of_birth,
        gender=beneficiary.gender,
        address=beneficiary.address,
        contact_phone=beneficiary.contact_phone,
        occupation=beneficiary.occupation,
        monthly_income=beneficiary.monthly_income or 0,
        is_dependent=bool(beneficiary.is_dependent),
    )


def serialize_senior(senior: SeniorCitizen) -> SeniorCitizenResponse:
    account = None
    if senior.user is not None:
        account = SeniorAccountResponse(
            first_name=senior.user.first_name,
            last_name=senior.user.last_name,
            email=senior.user.email,
            phone=senior.user.phone,
        )

    return SeniorCitizenResponse(
        id=senior.id,
        user_id=senior.user_id,
        first_name=senior.first_name,
        last_name=senior.last_name,
        date_of_birth=senior.date_of_birth,
        age=calculate_age(senior.date_of_birth),
        gender=senior.gender,
        barangay=senior.barangay,
        barangay_code=senior.barangay_code,
        region_code=senior.region_code,
        province_code=senior.province_code,
        city_code=senior.city_code,
        address=senior.address,
        contact_person=senior.contact_person,
        contact_phone=senior.contact_phone,
        contact_relationship=senior.contact_relationship,
        emergency_contact_name=senior.emergency_contact_name,
        emergency_contact_phone=senior.emergency_contact_phone,
        emergency_contact_relationship=senior.emergency_contact_relationship,
        medical_conditions=senior.medical_conditions or [],
        medications=senior.medications or [],
        notes=senior.notes,
        housing_condition=senior.housing_condition,
        physical_health_condition=senior.physical_health_condition,
        monthly_income=senior.monthly_income or 0,
        monthly_pension=senior.monthly_pension or 0,
        living_condition=senior.living_condition,
        profile_picture=senior.profile_picture,
        senior_id_photo=senior.senior_id_photo,
        status=senior.status or 'active',
        registration_date=senior.registration_date,
        created_by=senior.created_by,
        updated_by=senior.updated_by,
        created_at=senior.created_at,
        updated_at=senior.updated_at,
        beneficiaries=[serialize_beneficiary(beneficiary) for beneficiary in senior.beneficiaries],
        account=account,
    )


def build_beneficiaries(senior_citizen_id: str, beneficiaries: list[BeneficiaryInput]) -> list[Beneficiary]:
    return [
        Beneficiary(
            senior_citizen_id=senior_citizen_id,
            name=beneficiary.name,
            relationship_to_senior=beneficiary.relationship,
            date_of_birth=beneficiary.date_of_birth,
            gender=beneficiary.gender,
            address=beneficiary.address,
            contact_phone=beneficiary.contact_phone,
            occupation=beneficiary.occupation,
            monthly_income=beneficiary.monthly_income or 0,
            is_dependent=beneficiary.is_dependent,
        )
        for beneficiary in beneficiaries
    ]


def apply_address_codes(senior: SeniorCitizen, address_data: AddressData | None) -> None:
    if address_data is None:
        return
    if address_data.region:
        senior.region_code = address_data.region.region_code
    if address_data.province:
        senior.province_code = address_data.province.province_code
    if address_data.city:
        senior.city_code = address_data.city.city_code


def ensure_barangay_access(current_user: Profile, barangay: str) -> None:
    if current_user.role == 'basca' and barangay != current_user.barangay:
        raise forbidden('BASCA accounts can only manage senior citizens in their own barangay.')


def sync_account_name(senior: SeniorCitizen, db: Session) -> None:
    if not senior.user_id:
        return
    account = db.query(Profile).filter(Profile.id == senior.user_id).first()
    if account is None or account.role != 'senior':
        return
    if senior.first_name:
        account.first_name = senior.first_name
    if senior.last_name:
        account.last_name = senior.last_name


def get_senior_or_404(senior_id: str, db: Session) -> SeniorCitizen:
    senior = db.query(SeniorCitizen).options(
        selectinload(SeniorCitizen.beneficiaries),
        selectinload(SeniorCitizen.user),
    ).filter(SeniorCitizen.id == senior_id).first()
    if senior is None:
        raise not_found('Senior citizen not found.')
    return senior


def replace_beneficiaries(senior: SeniorCitizen, beneficiaries: list[BeneficiaryInput], db: Session) -> None:
    db.query(Beneficiary).filter(Beneficiary.senior_citizen_id == senior.id).delete(synchronize_session=False)
    db.add_all(build_beneficiaries(senior.id, beneficiaries))
    db.flush()
    db.expire(senior, ['beneficiaries'])


@router.post('', response_model=SeniorCitizenMutationResponse, status_code=status.HTTP_201_CREATED)
def create_senior_citizen(
    data: CreateSeniorCitizenRequest,
    current_user: Profile = Depends(require_roles('osca', 'basca')),
    db: Session = Depends(get_db),
):
    ensure_barangay_access(current_user, data.barangay)

    try:
        senior = SeniorCitizen(
            user_id=data.user_id,
            first_name=data.first_name,
            last_name=data.last_name,
            barangay=data.barangay,
            barangay_code=data.barangay_code,
            date_of_birth=data.date_of_birth,
            gender=data.gender,
            address=data.address,
            contact_person=data.contact_person,
            contact_phone=data.contact_phone,
            contact_relationship=data.contact_relationship,
            emergency_contact_name=data.emergency_contact_name,
            emergency_contact_phone=data.emergency_contact_phone,
            emergency_contact_relationship=data.emergency_contact_relationship,
            medical_conditions=data.medical_conditions,
            medications=data.medications,
            housing_condition=data.housing_condition,
            physical_health_condition=data.physical_health_condition,
            monthly_income=data.monthly_income,
            monthly_pension=data.monthly_pension,
            living_condition=data.living_condition,
            senior_id_photo=data.senior_id_photo,
            profile_picture=data.profile_picture,
            notes=data.notes,
            status='active',
            registration_date=datetime.now(),
            documents=[],
            created_by=current_user.id,
        )
        apply_address_codes(senior, data.address_data)
        db.add(senior)
        db.flush()

        if data.beneficiaries:
            replace_beneficiaries(senior, data.beneficiaries, db)

        sync_account_name(senior, db)
        db.commit()
        logger.info('Senior citizen %s created by %s', senior.id, current_user.id)

        senior = get_senior_or_404(senior.id, db)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return SeniorCitizenMutationResponse(
        success=True,
        message='Senior citizen created successfully',
        data=serialize_senior(senior),
    )


@router.patch('/{senior_id}', response_model=SeniorCitizenMutationResponse)
def update_senior_citizen(
    senior_id: str,
    data: UpdateSeniorCitizenRequest,
    current_user: Profile = Depends(require_roles('osca', 'basca')),
    db: Session = Depends(get_db),
):
    try:
        senior = get_senior_or_404(senior_id, db)
        ensure_barangay_access(current_user, senior.barangay)

        updates = data.model_dump(exclude_unset=True, exclude={'address_data', 'beneficiaries'})
        if 'barangay' in updates and updates['barangay'] is not None:
            ensure_barangay_access(current_user, updates['barangay'])

        for field_name, value in updates.items():
            if value is not None:
                setattr(senior, field_name, value)

        apply_address_codes(senior, data.address_data)
        senior.updated_by = current_user.id
        senior.updated_at = datetime.now()

        if data.beneficiaries is not None:
            replace_beneficiaries(senior, data.beneficiaries, db)

        if data.first_name or data.last_name:
            sync_account_name(senior, db)

        db.commit()
        logger.info('Senior citizen %s updated by %s', senior.id, current_user.id)

        senior = get_senior_or_404(senior_id, db)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return SeniorCitizenMutationResponse(
        success=True,
        message='Senior citizen updated successfully',
        data=serialize_senior(senior),
    )


@router.get('/{senior_id}', response_model=SeniorCitizenResponse)
def get_senior_citizen(
    senior_id: str,
    current_user: Profile = Depends(require_roles('osca', 'basca', 'senior')),
    db: Session = Depends(get_db),
):
    try:
        senior = get_senior_or_404(senior_id, db)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    if current_user.role == 'senior' and senior.user_id != current_user.id:
        raise forbidden('Senior accounts can only view their own record.')
    ensure_barangay_access(current_user, senior.barangay)

    return serialize_senior(senior)


@router.get('', response_model=list[SeniorCitizenResponse])
def list_senior_citizens(
    barangay: str | None = Query(default=None),
    current_user: Profile = Depends(require_roles('osca', 'basca')),
    db: Session = Depends(get_db),
):
    if current_user.role == 'basca':
        if not current_user.barangay:
            raise forbidden('BASCA accounts must be assigned to a barangay.')
        barangay = current_user.barangay

    try:
        query = db.query(SeniorCitizen).options(
            selectinload(SeniorCitizen.beneficiaries),
            selectinload(SeniorCitizen.user),
        )
        if barangay:
            query = query.filter(SeniorCitizen.barangay == barangay)

        seniors = query.order_by(SeniorCitizen.created_at.desc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return [serialize_senior(senior) for senior in seniors]


@router.delete('/{senior_id}', response_model=MessageResponse)
def delete_senior_citizen(
    senior_id: str,
    current_user: Profile = Depends(require_roles('osca')),
    db: Session = Depends(get_db),
):
    try:
        senior = db.query(SeniorCitizen).filter(SeniorCitizen.id == senior_id).first()
        if senior is None:
            raise not_found('Senior citizen not found.')

        db.query(Beneficiary).filter(Beneficiary.senior_citizen_id == senior_id).delete(synchronize_session=False)
        db.delete(senior)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Senior citizen %s deleted by %s', senior_id, current_user.id)
    return MessageResponse(success=True, message='Senior citizen deleted successfully')
