import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portal.auth.dependencies import require_roles
from portal.database import get_db
from portal.models.classroom import Class, ClassStudent
from portal.models.profile import Profile
from portal.models.vark_module import VARKModule, VARKModuleProgress
from portal.routes.common import MessageResponse, database_unavailable, forbidden, not_found

router = APIRouter(tags=['classes'])

logger = logging.getLogger(__name__)


class CreateClassRequest(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None
    subject: str | None = None
    grade_level: str | None = None


class EnrollStudentRequest(BaseModel):
    student_id: str


class ClassResponse(BaseModel):
    id: str
    name: str
    description: str | None = None
    subject: str | None = None
    grade_level: str | None = None
    created_by: str
    created_at: datetime | None = None
    student_count: int = 0


class EnrolledClassResponse(ClassResponse):
    joined_at: datetime | None = None


class ClassModuleResponse(BaseModel):
    id: str
    title: str
    description: str | None = None
    difficulty_level: str | None = None
    estimated_duration_minutes: int = 0
    progress_status: str = 'not_started'
    progress_percentage: int = 0


class ClassDetailsResponse(EnrolledClassResponse):
    modules: list[ClassModuleResponse] = Field(default_factory=list)


def student_counts(class_ids: list[str], db: Session) -> dict[str, int]:
    if not class_ids:
        return {}
    rows = db.query(ClassStudent.class_id, func.count(ClassStudent.id)).filter(
        ClassStudent.class_id.in_(class_ids),
    ).group_by(ClassStudent.class_id).all()
    return {class_id: count for class_id, count in rows}


def serialize_class(classroom: Class, student_count: int = 0) -> ClassResponse:
    return ClassResponse(
        id=classroom.id,
        name=classroom.name,
        description=classroom.description,
        subject=classroom.subject,
        grade_level=classroom.grade_level,
        created_by=classroom.created_by,
        created_at=classroom.created_at,
        student_count=student_count,
    )


@router.get('', response_model=list[ClassResponse])
def list_teacher_classes(
    current_user: Profile = Depends(require_roles('teacher')),
    db: Session = Depends(get_db),
):
    try:
        classes = db.query(Class).filter(Class.created_by == current_user.id).order_by(Class.created_at.desc()).all()
        counts = student_counts([classroom.id for classroom in classes], db)
    except SQLAlchemyError as exc:
        logger.exception('Error fetching teacher classes')
        raise database_unavailable() from exc

    return [serialize_class(classroom, counts.get(classroom.id, 0)) for classroom in classes]


@router.post('', response_model=ClassResponse, status_code=status.HTTP_201_CREATED)
def create_class(
    data: CreateClassRequest,
    current_user: Profile = Depends(require_roles('teacher')),
    db: Session = Depends(get_db),
):
    try:
        classroom = Class(**data.model_dump(), created_by=current_user.id)
        db.add(classroom)
        db.commit()
        db.refresh(classroom)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Error creating class')
        raise database_unavailable() from exc

    logger.info('Class %s created by %s', classroom.id, current_user.id)
    return serialize_class(classroom)


@router.post('/{class_id}/students', response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
def enroll_student(
    class_id: str,
    data: EnrollStudentRequest,
    current_user: Profile = Depends(require_roles('teacher')),
    db: Session = Depends(get_db),
):
    try:
        classroom = db.query(Class).filter(Class.id == class_id).first()
        if classroom is None:
            raise not_found('Class not found.')
        if classroom.created_by != current_user.id:
            raise forbidden('Students can only be enrolled in your own classes.')

        student = db.query(Profile).filter(Profile.id == data.student_id, Profile.role == 'student').first()
        if student is None:
            raise not_found('Student not found.')

        existing = db.query(ClassStudent).filter(
            ClassStudent.class_id == class_id,
            ClassStudent.student_id == student.id,
        ).first()
        if existing is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='Student is already enrolled in this class.',
            )

        db.add(ClassStudent(class_id=class_id, student_id=student.id))
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Error enrolling student in class %s', class_id)
        raise database_unavailable() from exc

    return MessageResponse(success=True, message='Student enrolled successfully')


@router.get('/enrolled', response_model=list[EnrolledClassResponse])
def list_enrolled_classes(
    current_user: Profile = Depends(require_roles('student')),
    db: Session = Depends(get_db),
):
    try:
        rows = db.query(Class, ClassStudent.joined_at).join(
            ClassStudent, ClassStudent.class_id == Class.id,
        ).filter(
            ClassStudent.student_id == current_user.id,
        ).order_by(ClassStudent.joined_at.desc()).all()
        counts = student_counts([classroom.id for classroom, _ in rows], db)
    except SQLAlchemyError as exc:
        logger.exception('Error fetching enrolled classes')
        raise database_unavailable() from exc

    return [
        EnrolledClassResponse(
            **serialize_class(classroom, counts.get(classroom.id, 0)).model_dump(),
            joined_at=joined_at,
        )
        for classroom, joined_at in rows
    ]


@router.get('/enrolled/{class_id}', response_model=ClassDetailsResponse)
def get_enrolled_class_details(
    class_id: str,
    current_user: Profile = Depends(require_roles('student')),
    db: Session = Depends(get_db),
):
    try:
        row = db.query(Class, ClassStudent.joined_at).join(
            ClassStudent, ClassStudent.class_id == Class.id,
        ).filter(
            Class.id == class_id,
            ClassStudent.student_id == current_user.id,
        ).first()
        if row is None:
            raise not_found('Class not found or you are not enrolled in it.')
        classroom, joined_at = row

        modules = db.query(VARKModule).filter(
            VARKModule.target_class_id == class_id,
            VARKModule.is_published.is_(True),
        ).order_by(VARKModule.created_at.asc()).all()
        progress_by_module = {
            progress.module_id: progress
            for progress in db.query(VARKModuleProgress).filter(
                VARKModuleProgress.student_id == current_user.id,
                VARKModuleProgress.module_id.in_([module.id for module in modules]),
            ).all()
        } if modules else {}
        counts = student_counts([class_id], db)
    except SQLAlchemyError as exc:
        logger.exception('Error fetching class details for %s', class_id)
        raise database_unavailable() from exc

    module_rows = []
    for module in modules:
        progress = progress_by_module.get(module.id)
        module_rows.append(
            ClassModuleResponse(
                id=module.id,
                title=module.title,
                description=module.description,
                difficulty_level=module.difficulty_level,
                estimated_duration_minutes=module.estimated_duration_minutes or 0,
                progress_status=progress.status if progress else 'not_started',
                progress_percentage=(progress.progress_percentage or 0) if progress else 0,
            )
        )

    return ClassDetailsResponse(
        **serialize_class(classroom, counts.get(class_id, 0)).model_dump(),
        joined_at=joined_at,
        modules=module_rows,
    )
