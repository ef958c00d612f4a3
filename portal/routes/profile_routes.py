import logging
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portal.auth.dependencies import get_current_user
from portal.auth.passwords import hash_password, verify_password
from portal.database import get_db
from portal.models.profile import Profile, compose_full_name
from portal.routes.auth_routes import MIN_PASSWORD_LENGTH, UserResponse, serialize_user
from portal.routes.common import MessageResponse, database_unavailable, forbidden, not_found

router = APIRouter(tags=['profiles'])

logger = logging.getLogger(__name__)

PROFILE_READER_ROLES = ('teacher', 'osca')


class ProfileUpdateRequest(BaseModel):
    first_name: str | None = None
    middle_name: str | None = None
    last_name: str | None = None
    grade_level: str | None = None
    profile_photo: str | None = None
    learning_style: Literal['visual', 'auditory', 'reading_writing', 'kinesthetic'] | None = None
    onboarding_completed: bool | None = None

    @field_validator('first_name', 'last_name')
    @classmethod
    def validate_names(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if len(normalized) < 2:
            raise ValueError('Names must be at least 2 characters')
        return normalized


class PasswordUpdateRequest(BaseModel):
    current_password: str
    new_password: str

    @field_validator('new_password')
    @classmethod
    def validate_new_password(cls, value: str) -> str:
        if len(value) < MIN_PASSWORD_LENGTH:
            raise ValueError('Password must be at least 6 characters')
        return value


class ProfileUpdateResponse(MessageResponse):
    user: UserResponse


@router.get('/me', response_model=UserResponse)
def get_my_profile(current_user: Profile = Depends(get_current_user)):
    return serialize_user(current_user)


@router.patch('/me', response_model=ProfileUpdateResponse)
def update_my_profile(
    data: ProfileUpdateRequest,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    updates = data.model_dump(exclude_unset=True)
    logger.info('Profile %s update fields: %s', current_user.id, sorted(updates))

    try:
        for field_name, value in updates.items():
            setattr(current_user, field_name, value)

        if {'first_name', 'middle_name', 'last_name'} & updates.keys():
            current_user.full_name = compose_full_name(
                current_user.first_name,
                current_user.middle_name,
                current_user.last_name,
            )

        db.commit()
        db.refresh(current_user)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return ProfileUpdateResponse(
        success=True,
        message='Profile updated successfully',
        user=serialize_user(current_user),
    )


@router.post('/me/password', response_model=MessageResponse)
def update_my_password(
    data: PasswordUpdateRequest,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not verify_password(data.current_password, current_user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Current password is incorrect.',
        )

    try:
        current_user.hashed_password = hash_password(data.new_password)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return MessageResponse(success=True, message='Password updated successfully')


@router.get('/{user_id}', response_model=UserResponse)
def get_profile(
    user_id: str,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if user_id != current_user.id and current_user.role not in PROFILE_READER_ROLES:
        raise forbidden('You can only view your own profile.')

    try:
        profile = db.query(Profile).filter(Profile.id == user_id).first()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    if profile is None:
        raise not_found('Profile not found')

    return serialize_user(profile)
