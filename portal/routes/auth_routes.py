import asyncio
import logging
from datetime import date, datetime
from typing import Literal
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

import jwt
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, EmailStr, field_validator, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portal.auth import jwt_handler
from portal.auth.dependencies import get_current_user
from portal.auth.passwords import hash_password, verify_password
from portal.core import config
from portal.database import SessionLocal, get_db
from portal.models.profile import Profile, compose_full_name
from portal.models.senior_citizen import SeniorCitizen
from portal.routes.common import MessageResponse, database_unavailable

router = APIRouter(tags=['auth'])

logger = logging.getLogger(__name__)

Role = Literal['osca', 'basca', 'senior', 'teacher', 'student']

MIN_PASSWORD_LENGTH = 6
MIN_PHONE_LENGTH = 10
MIN_ADDRESS_LENGTH = 10
FORGOT_PASSWORD_MESSAGE = 'If an account exists for this email, a password reset link has been sent.'

HOME_ROUTES = {
    'teacher': '/teacher/dashboard',
    'osca': '/dashboard/osca',
    'basca': '/dashboard/basca',
    'senior': '/dashboard/senior',
}
STUDENT_DASHBOARD_ROUTE = '/student/dashboard'
ONBOARDING_ROUTE = '/onboarding/vark'
DEFAULT_HOME_ROUTE = '/dashboard'


def _normalize_email(value: str) -> str:
    return value.strip().lower()


def _require_min_length(value: str | None, length: int, message: str) -> None:
    if value is None or len(value.strip()) < length:
        raise ValueError(message)


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    confirm_password: str
    first_name: str
    last_name: str
    phone: str
    role: Role

    # osca
    department: str | None = None
    position: str | None = None
    employee_id: str | None = None

    # basca
    barangay: str | None = None
    barangay_code: str | None = None

    # senior
    date_of_birth: date | None = None
    address: str | None = None
    emergency_contact_name: str | None = None
    emergency_contact_phone: str | None = None
    emergency_contact_relationship: str | None = None

    # student / teacher
    grade_level: str | None = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return _normalize_email(value)

    @field_validator('first_name')
    @classmethod
    def validate_first_name(cls, value: str) -> str:
        _require_min_length(value, 2, 'First name must be at least 2 characters')
        return value.strip()

    @field_validator('last_name')
    @classmethod
    def validate_last_name(cls, value: str) -> str:
        _require_min_length(value, 2, 'Last name must be at least 2 characters')
        return value.strip()

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, value: str) -> str:
        _require_min_length(value, MIN_PHONE_LENGTH, 'Phone number must be at least 10 digits')
        return value.strip()

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        if len(value) < MIN_PASSWORD_LENGTH:
            raise ValueError('Password must be at least 6 characters')
        return value

    @model_validator(mode='after')
    def validate_role_fields(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords don't match")

        if self.role == 'osca':
            _require_min_length(self.department, 1, 'Department is required')
            _require_min_length(self.position, 1, 'Position is required')
            _require_min_length(self.employee_id, 1, 'Employee ID is required')
        elif self.role == 'basca':
            _require_min_length(self.barangay, 1, 'Barangay is required')
            _require_min_length(self.barangay_code, 1, 'Barangay code is required')
        elif self.role == 'senior':
            if self.date_of_birth is None:
                raise ValueError('Date of birth is required')
            _require_min_length(self.address, MIN_ADDRESS_LENGTH, 'Address must be at least 10 characters')
            _require_min_length(self.emergency_contact_name, 2, 'Emergency contact name is required')
            _require_min_length(self.emergency_contact_phone, MIN_PHONE_LENGTH, 'Emergency contact phone is required')
            _require_min_length(self.emergency_contact_relationship, 1, 'Relationship is required')

        return self


class LoginRequest(BaseModel):
    email: EmailStr
    password: str
    role: Role | None = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return _normalize_email(value)

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        if len(value) < MIN_PASSWORD_LENGTH:
            raise ValueError('Password must be at least 6 characters')
        return value


class ForgotPasswordRequest(BaseModel):
    email: EmailStr
    role: Role | None = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return _normalize_email(value)


class ResetPasswordRequest(BaseModel):
    token: str
    password: str
    confirm_password: str

    @model_validator(mode='after')
    def validate_passwords(self):
        if len(self.password) < MIN_PASSWORD_LENGTH:
            raise ValueError('Password must be at least 6 characters')
        if self.password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self


class EmergencyContact(BaseModel):
    name: str
    phone: str
    relationship: str


class UserResponse(BaseModel):
    id: str
    email: str
    role: str
    first_name: str | None = None
    middle_name: str | None = None
    last_name: str | None = None
    full_name: str | None = None
    phone: str | None = None
    avatar: str | None = None
    is_verified: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None
    last_login: datetime | None = None
    department: str | None = None
    position: str | None = None
    employee_id: str | None = None
    barangay: str | None = None
    barangay_code: str | None = None
    date_of_birth: date | None = None
    address: str | None = None
    osca_id: str | None = None
    emergency_contact: EmergencyContact | None = None
    grade_level: str | None = None
    profile_photo: str | None = None
    learning_style: str | None = None
    onboarding_completed: bool = False


class AuthResponse(BaseModel):
    success: bool
    message: str
    user: UserResponse
    access_token: str
    token_type: str = 'bearer'
    redirect_to: str


class CurrentUserResponse(BaseModel):
    user: UserResponse
    redirect_to: str


class ForgotPasswordResponse(MessageResponse):
    reset_url: str | None = None


def serialize_user(profile: Profile) -> UserResponse:
    emergency_contact = None
    if profile.emergency_contact_name:
        emergency_contact = EmergencyContact(
            name=profile.emergency_contact_name,
            phone=profile.emergency_contact_phone or '',
            relationship=profile.emergency_contact_relationship or '',
        )

    return UserResponse(
        id=profile.id,
        email=profile.email,
        role=profile.role,
        first_name=profile.first_name,
        middle_name=profile.middle_name,
        last_name=profile.last_name,
        full_name=profile.full_name,
        phone=profile.phone,
        avatar=profile.avatar_url,
        is_verified=bool(profile.is_verified),
        created_at=profile.created_at,
        updated_at=profile.updated_at,
        last_login=profile.last_login,
        department=profile.department,
        position=profile.position,
        employee_id=profile.employee_id,
        barangay=profile.barangay,
        barangay_code=profile.barangay_code,
        date_of_birth=profile.date_of_birth,
        address=profile.address,
        osca_id=profile.osca_id,
        emergency_contact=emergency_contact,
        grade_level=profile.grade_level,
        profile_photo=profile.profile_photo,
        learning_style=profile.learning_style,
        onboarding_completed=bool(profile.onboarding_completed),
    )


def get_home_route(profile: Profile) -> str:
    if profile.role == 'student':
        return STUDENT_DASHBOARD_ROUTE if profile.onboarding_completed else ONBOARDING_ROUTE
    return HOME_ROUTES.get(profile.role, DEFAULT_HOME_ROUTE)


def build_reset_url(token: str) -> str:
    parsed = urlparse(config.PASSWORD_RESET_REDIRECT_URL)
    query = dict(parse_qsl(parsed.query))
    query.update({'token': token})
    return urlunparse(parsed._replace(query=urlencode(query)))


def _create_senior_record(profile: Profile, data: RegisterRequest, db: Session) -> None:
    try:
        db.add(
            SeniorCitizen(
                user_id=profile.id,
                first_name=profile.first_name,
                last_name=profile.last_name,
                barangay=data.barangay,
                barangay_code=data.barangay_code or '',
                date_of_birth=data.date_of_birth,
                gender='other',
                address=data.address or '',
                emergency_contact_name=data.emergency_contact_name,
                emergency_contact_phone=data.emergency_contact_phone,
                emergency_contact_relationship=data.emergency_contact_relationship,
                status='active',
                created_by=profile.id,
            )
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception('Senior citizen record creation failed for profile %s', profile.id)


@router.post('/register', response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(data: RegisterRequest, db: Session = Depends(get_db)):
    logger.info('Starting registration for %s with role %s', data.email, data.role)

    try:
        existing = db.query(Profile).filter(Profile.email == data.email).first()
        if existing:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='An account with this email already exists.',
            )

        profile = Profile(
            email=data.email,
            hashed_password=hash_password(data.password),
            role=data.role,
            first_name=data.first_name,
            last_name=data.last_name,
            full_name=compose_full_name(data.first_name, None, data.last_name),
            phone=data.phone,
            is_verified=False,
            onboarding_completed=False,
        )

        if data.role == 'osca':
            profile.department = data.department
            profile.position = data.position
            profile.employee_id = data.employee_id
        elif data.role == 'basca':
            profile.barangay = data.barangay
            profile.barangay_code = data.barangay_code
        elif data.role == 'senior':
            profile.barangay = data.barangay
            profile.barangay_code = data.barangay_code
            profile.date_of_birth = data.date_of_birth
            profile.address = data.address
            profile.emergency_contact_name = data.emergency_contact_name
            profile.emergency_contact_phone = data.emergency_contact_phone
            profile.emergency_contact_relationship = data.emergency_contact_relationship
        else:
            profile.grade_level = data.grade_level

        db.add(profile)
        db.commit()
        db.refresh(profile)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    if data.role == 'senior' and data.barangay and data.date_of_birth:
        _create_senior_record(profile, data, db)

    logger.info('Profile %s created', profile.id)

    return AuthResponse(
        success=True,
        message='Registration successful! Please check your email to verify your account.',
        user=serialize_user(profile),
        access_token=jwt_handler.create_access_token(subject=profile.id, role=profile.role),
        redirect_to=get_home_route(profile),
    )


def authenticate(data: LoginRequest) -> Profile:
    db = SessionLocal()
    try:
        profile = db.query(Profile).filter(Profile.email == data.email).first()
        if profile is None or not verify_password(data.password, profile.hashed_password):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail='Invalid login credentials',
            )

        if data.role and profile.role != data.role:
            logger.warning('Role mismatch on login for %s: requested %s', data.email, data.role)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f'Invalid credentials for {data.role} account',
            )

        profile.last_login = datetime.now()
        db.commit()
        db.refresh(profile)
        return profile
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
    finally:
        db.close()


@router.post('/login', response_model=AuthResponse)
async def login(data: LoginRequest):
    try:
        profile = await asyncio.wait_for(
            run_in_threadpool(authenticate, data),
            timeout=config.LOGIN_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError as exc:
        logger.error('Login timed out for %s', data.email)
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail='Login timed out. Please try again.',
        ) from exc

    return AuthResponse(
        success=True,
        message='Login successful',
        user=serialize_user(profile),
        access_token=jwt_handler.create_access_token(subject=profile.id, role=profile.role),
        redirect_to=get_home_route(profile),
    )


@router.post('/logout', response_model=MessageResponse)
def logout(current_user: Profile = Depends(get_current_user)):
    logger.info('Profile %s logged out', current_user.id)
    return MessageResponse(success=True, message='Logged out successfully')


@router.get('/me', response_model=CurrentUserResponse)
def me(current_user: Profile = Depends(get_current_user)):
    return CurrentUserResponse(user=serialize_user(current_user), redirect_to=get_home_route(current_user))


@router.post('/forgot-password', response_model=ForgotPasswordResponse)
def forgot_password(data: ForgotPasswordRequest, db: Session = Depends(get_db)):
    try:
        profile = db.query(Profile).filter(Profile.email == data.email).first()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    if profile is None or (data.role and profile.role != data.role):
        return ForgotPasswordResponse(success=True, message=FORGOT_PASSWORD_MESSAGE)

    reset_url = build_reset_url(jwt_handler.create_password_reset_token(profile.id))
    logger.info('Password reset requested for profile %s', profile.id)

    return ForgotPasswordResponse(
        success=True,
        message=FORGOT_PASSWORD_MESSAGE,
        reset_url=reset_url if config.EXPOSE_RESET_LINKS else None,
    )


@router.post('/reset-password', response_model=MessageResponse)
def reset_password(data: ResetPasswordRequest, db: Session = Depends(get_db)):
    try:
        profile_id = jwt_handler.decode_password_reset_token(data.token)
    except jwt.PyJWTError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Password reset link is invalid or has expired.',
        ) from exc

    try:
        profile = db.query(Profile).filter(Profile.id == profile_id).first()
        if profile is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Password reset link is invalid or has expired.',
            )

        profile.hashed_password = hash_password(data.password)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return MessageResponse(success=True, message='Password updated successfully')
