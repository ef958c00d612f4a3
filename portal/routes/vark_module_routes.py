import logging
from datetime import datetime
from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from portal.auth.dependencies import get_current_user, require_roles
from portal.database import get_db
from portal.models.classroom import Class, ClassStudent
from portal.models.profile import Profile
from portal.models.vark_module import (
    VARKLearningPath,
    VARKModule,
    VARKModuleAssignment,
    VARKModuleCategory,
    VARKModuleFeedback,
    VARKModuleProgress,
)
from portal.routes.common import MessageResponse, database_unavailable, forbidden, not_found

router = APIRouter(tags=['vark-modules'])

logger = logging.getLogger(__name__)

DEFAULT_SECTION_COUNT = 4
DEFAULT_RECOMMENDATION_LIMIT = 6
DEFAULT_LEARNING_STYLE = 'visual'
UNKNOWN_TEACHER = 'Unknown Teacher'
UNKNOWN_STUDENT = 'Unknown Student'
UNKNOWN_MODULE = 'Unknown Module'

LearningStyle = Literal['visual', 'auditory', 'reading_writing', 'kinesthetic']
DifficultyLevel = Literal['beginner', 'intermediate', 'advanced']


class CategoryResponse(BaseModel):
    id: str
    name: str
    description: str | None = None
    subject: str | None = None
    grade_level: str | None = None
    learning_style: str | None = None
    icon_name: str | None = None
    color_scheme: str | None = None
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


def _validate_content_structure(value: dict[str, Any] | None) -> dict[str, Any] | None:
    if value is None:
        return None

    sections = value.get('sections', [])
    if not isinstance(sections, list):
        raise ValueError('content_structure.sections must be a list.')

    seen_ids: set[str] = set()
    for section in sections:
        section_id = section.get('id') if isinstance(section, dict) else None
        if not section_id:
            raise ValueError('Every content section needs an id.')
        if section_id in seen_ids:
            raise ValueError(f'Duplicate content section id: {section_id}.')
        seen_ids.add(section_id)

    return value


class CreateModuleRequest(BaseModel):
    category_id: str | None = None
    title: str = Field(min_length=1)
    description: str = ''
    learning_objectives: list[str] = Field(default_factory=list)
    content_structure: dict[str, Any] = Field(default_factory=dict)
    difficulty_level: DifficultyLevel = 'beginner'
    estimated_duration_minutes: int = Field(default=0, ge=0)
    prerequisites: list[str] = Field(default_factory=list)
    multimedia_content: dict[str, Any] = Field(default_factory=dict)
    interactive_elements: dict[str, Any] = Field(default_factory=dict)
    assessment_questions: list[dict[str, Any]] = Field(default_factory=list)
    module_metadata: dict[str, Any] = Field(default_factory=dict)
    is_published: bool = False
    target_class_id: str | None = None
    target_learning_styles: list[LearningStyle] = Field(default_factory=list)

    @field_validator('content_structure')
    @classmethod
    def validate_content_structure(cls, value: dict[str, Any]) -> dict[str, Any]:
        return _validate_content_structure(value)


class UpdateModuleRequest(BaseModel):
    category_id: str | None = None
    title: str | None = Field(default=None, min_length=1)
    description: str | None = None
    learning_objectives: list[str] | None = None
    content_structure: dict[str, Any] | None = None
    difficulty_level: DifficultyLevel | None = None
    estimated_duration_minutes: int | None = Field(default=None, ge=0)
    prerequisites: list[str] | None = None
    multimedia_content: dict[str, Any] | None = None
    interactive_elements: dict[str, Any] | None = None
    assessment_questions: list[dict[str, Any]] | None = None
    module_metadata: dict[str, Any] | None = None
    is_published: bool | None = None
    target_class_id: str | None = None
    target_learning_styles: list[LearningStyle] | None = None

    @field_validator('content_structure')
    @classmethod
    def validate_content_structure(cls, value: dict[str, Any] | None) -> dict[str, Any] | None:
        return _validate_content_structure(value)


class PublishRequest(BaseModel):
    is_published: bool


class ModuleResponse(BaseModel):
    id: str
    category_id: str | None = None
    title: str
    description: str | None = None
    learning_objectives: list[str] = Field(default_factory=list)
    content_structure: dict[str, Any] = Field(default_factory=dict)
    difficulty_level: str | None = None
    estimated_duration_minutes: int = 0
    prerequisites: list[str] = Field(default_factory=list)
    multimedia_content: dict[str, Any] = Field(default_factory=dict)
    interactive_elements: dict[str, Any] = Field(default_factory=dict)
    assessment_questions: list[dict[str, Any]] = Field(default_factory=list)
    module_metadata: dict[str, Any] = Field(default_factory=dict)
    is_published: bool = False
    target_class_id: str | None = None
    target_learning_styles: list[str] = Field(default_factory=list)
    created_by: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
    category: CategoryResponse | None = None
    teacher_name: str = UNKNOWN_TEACHER


class ProgressResponse(BaseModel):
    id: str
    student_id: str
    module_id: str
    status: str
    progress_percentage: int = 0
    current_section_id: str | None = None
    time_spent_minutes: int = 0
    completed_sections: list[str] = Field(default_factory=list)
    assessment_scores: dict[str, float] = Field(default_factory=dict)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    last_accessed_at: datetime | None = None
    module_title: str | None = None


class AssignRequest(BaseModel):
    due_date: datetime | None = None


class AssignStudentRequest(AssignRequest):
    student_id: str


class AssignClassRequest(AssignRequest):
    class_id: str


class AssignmentResponse(BaseModel):
    id: str
    module_id: str
    assigned_by: str
    assigned_to_type: str
    assigned_to_id: str
    due_date: datetime | None = None
    is_required: bool = True
    assigned_at: datetime | None = None
    module: ModuleResponse | None = None
    assigned_by_name: str = UNKNOWN_TEACHER


class LearningPathResponse(BaseModel):
    id: str
    name: str
    description: str | None = None
    subject: str | None = None
    grade_level: str | None = None
    learning_style: str | None = None
    module_sequence: list[str] = Field(default_factory=list)
    total_duration_hours: float = 0
    difficulty_progression: str | None = None
    is_published: bool = False
    created_by: str | None = None
    created_at: datetime | None = None
    teacher_name: str = UNKNOWN_TEACHER


class FeedbackRequest(BaseModel):
    rating: int = Field(ge=1, le=5)
    feedback_text: str | None = None
    difficulty_rating: int = Field(ge=1, le=5)
    engagement_rating: int = Field(ge=1, le=5)


class FeedbackResponse(BaseModel):
    id: str
    module_id: str
    student_id: str
    rating: int
    feedback_text: str | None = None
    difficulty_rating: int | None = None
    engagement_rating: int | None = None
    submitted_at: datetime | None = None
    student_name: str = UNKNOWN_STUDENT


class ModuleStatsResponse(BaseModel):
    total_modules: int
    completed_modules: int
    in_progress_modules: int
    not_started_modules: int
    completion_rate: int
    average_rating: float
    total_time_spent: int


def person_name(profile: Profile | None, fallback: str) -> str:
    if profile is None:
        return fallback
    return f"{profile.first_name or ''} {profile.last_name or ''}".strip() or fallback


def serialize_module(module: VARKModule) -> ModuleResponse:
    return ModuleResponse(
        id=module.id,
        category_id=module.category_id,
        title=module.title,
        description=module.description,
        learning_objectives=module.learning_objectives or [],
        content_structure=module.content_structure or {},
        difficulty_level=module.difficulty_level,
        estimated_duration_minutes=module.estimated_duration_minutes or 0,
        prerequisites=module.prerequisites or [],
        multimedia_content=module.multimedia_content or {},
        interactive_elements=module.interactive_elements or {},
        assessment_questions=module.assessment_questions or [],
        module_metadata=module.module_metadata or {},
        is_published=bool(module.is_published),
        target_class_id=module.target_class_id,
        target_learning_styles=module.target_learning_styles or [],
        created_by=module.created_by,
        created_at=module.created_at,
        updated_at=module.updated_at,
        category=CategoryResponse.model_validate(module.category) if module.category else None,
        teacher_name=person_name(module.teacher, UNKNOWN_TEACHER),
    )


def serialize_progress(progress: VARKModuleProgress) -> ProgressResponse:
    return ProgressResponse(
        id=progress.id,
        student_id=progress.student_id,
        module_id=progress.module_id,
        status=progress.status,
        progress_percentage=progress.progress_percentage or 0,
        current_section_id=progress.current_section_id,
        time_spent_minutes=progress.time_spent_minutes or 0,
        completed_sections=progress.completed_sections or [],
        assessment_scores=progress.assessment_scores or {},
        started_at=progress.started_at,
        completed_at=progress.completed_at,
        last_accessed_at=progress.last_accessed_at,
        module_title=progress.module.title if progress.module else UNKNOWN_MODULE,
    )


def section_completion_percentage(completed_count: int, section_count: int) -> int:
    section_count = section_count or DEFAULT_SECTION_COUNT
    return min(100, round(completed_count / section_count * 100))


def compute_module_stats(statuses: list[tuple[str, int | None]], ratings: list[int]) -> ModuleStatsResponse:
    """Aggregate (status, time_spent_minutes) progress rows and feedback ratings."""
    total = len(statuses)
    completed = sum(1 for status_value, _ in statuses if status_value == 'completed')
    in_progress = sum(1 for status_value, _ in statuses if status_value == 'in_progress')
    not_started = sum(1 for status_value, _ in statuses if status_value == 'not_started')
    average_rating = sum(ratings) / len(ratings) if ratings else 0

    return ModuleStatsResponse(
        total_modules=total,
        completed_modules=completed,
        in_progress_modules=in_progress,
        not_started_modules=not_started,
        completion_rate=round(completed / total * 100) if total else 0,
        average_rating=round(average_rating, 1),
        total_time_spent=sum(minutes or 0 for _, minutes in statuses),
    )


def module_query(db: Session):
    return db.query(VARKModule).options(
        selectinload(VARKModule.category),
        selectinload(VARKModule.teacher),
    )


def get_module_or_404(module_id: str, db: Session) -> VARKModule:
    module = module_query(db).filter(VARKModule.id == module_id).first()
    if module is None:
        raise not_found('VARK module not found.')
    return module


def get_owned_module(module_id: str, current_user: Profile, db: Session) -> VARKModule:
    module = get_module_or_404(module_id, db)
    if module.created_by != current_user.id:
        raise forbidden('Only the teacher who created this module can change it.')
    return module


def upsert_progress(student_id: str, module_id: str, db: Session, **fields) -> VARKModuleProgress:
    progress = db.query(VARKModuleProgress).filter(
        VARKModuleProgress.student_id == student_id,
        VARKModuleProgress.module_id == module_id,
    ).first()
    if progress is None:
        progress = VARKModuleProgress(student_id=student_id, module_id=module_id)
        db.add(progress)

    for field_name, value in fields.items():
        setattr(progress, field_name, value)

    db.commit()
    db.refresh(progress)
    return progress


def enrolled_class_ids(student_id: str, db: Session) -> set[str]:
    rows = db.query(ClassStudent.class_id).filter(ClassStudent.student_id == student_id).all()
    return {class_id for (class_id,) in rows}


def is_module_available_to(module: VARKModule, learning_style: str, class_ids: set[str]) -> bool:
    if not module.is_published:
        return False
    if module.target_class_id and module.target_class_id not in class_ids:
        return False
    if module.target_learning_styles:
        return learning_style in module.target_learning_styles
    return True


@router.get('/categories', response_model=list[CategoryResponse])
def list_categories(
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return db.query(VARKModuleCategory).filter(
            VARKModuleCategory.is_active.is_(True),
        ).order_by(VARKModuleCategory.name.asc()).all()
    except SQLAlchemyError as exc:
        logger.exception('Error fetching VARK module categories')
        raise database_unavailable() from exc


@router.get('/categories/{category_id}', response_model=CategoryResponse)
def get_category(
    category_id: str,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        category = db.query(VARKModuleCategory).filter(VARKModuleCategory.id == category_id).first()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    if category is None:
        raise not_found('VARK module category not found.')
    return category


@router.get('/available', response_model=list[ModuleResponse])
def list_available_modules(
    current_user: Profile = Depends(require_roles('student')),
    db: Session = Depends(get_db),
):
    learning_style = current_user.learning_style or DEFAULT_LEARNING_STYLE

    try:
        class_ids = enrolled_class_ids(current_user.id, db)
        modules = module_query(db).filter(
            VARKModule.is_published.is_(True),
        ).order_by(VARKModule.created_at.desc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return [
        serialize_module(module)
        for module in modules
        if is_module_available_to(module, learning_style, class_ids)
    ]


@router.get('/progress', response_model=list[ProgressResponse])
def list_my_progress(
    current_user: Profile = Depends(require_roles('student')),
    db: Session = Depends(get_db),
):
    try:
        progress_rows = db.query(VARKModuleProgress).options(
            selectinload(VARKModuleProgress.module),
        ).filter(
            VARKModuleProgress.student_id == current_user.id,
        ).order_by(VARKModuleProgress.last_accessed_at.desc()).all()
    except SQLAlchemyError as exc:
        logger.exception('Error fetching student module progress')
        raise database_unavailable() from exc

    return [serialize_progress(progress) for progress in progress_rows]


@router.get('/assignments', response_model=list[AssignmentResponse])
def list_assignments(
    assigned_to_type: Literal['student', 'class'] = Query(...),
    assigned_to_id: str = Query(...),
    current_user: Profile = Depends(require_roles('teacher', 'student')),
    db: Session = Depends(get_db),
):
    try:
        if current_user.role == 'student':
            allowed = (
                assigned_to_id == current_user.id
                if assigned_to_type == 'student'
                else assigned_to_id in enrolled_class_ids(current_user.id, db)
            )
            if not allowed:
                raise forbidden('Students can only view their own assignments.')

        assignments = db.query(VARKModuleAssignment).options(
            selectinload(VARKModuleAssignment.module).selectinload(VARKModule.category),
            selectinload(VARKModuleAssignment.module).selectinload(VARKModule.teacher),
            selectinload(VARKModuleAssignment.assigner),
        ).filter(
            VARKModuleAssignment.assigned_to_type == assigned_to_type,
            VARKModuleAssignment.assigned_to_id == assigned_to_id,
        ).order_by(VARKModuleAssignment.assigned_at.desc()).all()
    except SQLAlchemyError as exc:
        logger.exception('Error fetching module assignments')
        raise database_unavailable() from exc

    return [
        AssignmentResponse(
            id=assignment.id,
            module_id=assignment.module_id,
            assigned_by=assignment.assigned_by,
            assigned_to_type=assignment.assigned_to_type,
            assigned_to_id=assignment.assigned_to_id,
            due_date=assignment.due_date,
            is_required=bool(assignment.is_required),
            assigned_at=assignment.assigned_at,
            module=serialize_module(assignment.module) if assignment.module else None,
            assigned_by_name=person_name(assignment.assigner, UNKNOWN_TEACHER),
        )
        for assignment in assignments
    ]


@router.get('/learning-paths', response_model=list[LearningPathResponse])
def list_learning_paths(
    learning_style: LearningStyle | None = Query(default=None),
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(VARKLearningPath).options(
            selectinload(VARKLearningPath.teacher),
        ).filter(VARKLearningPath.is_published.is_(True))
        if learning_style:
            query = query.filter(VARKLearningPath.learning_style == learning_style)
        paths = query.order_by(VARKLearningPath.created_at.desc()).all()
    except SQLAlchemyError as exc:
        logger.exception('Error fetching learning paths')
        raise database_unavailable() from exc

    return [
        LearningPathResponse(
            id=path.id,
            name=path.name,
            description=path.description,
            subject=path.subject,
            grade_level=path.grade_level,
            learning_style=path.learning_style,
            module_sequence=path.module_sequence or [],
            total_duration_hours=path.total_duration_hours or 0,
            difficulty_progression=path.difficulty_progression,
            is_published=bool(path.is_published),
            created_by=path.created_by,
            created_at=path.created_at,
            teacher_name=person_name(path.teacher, UNKNOWN_TEACHER),
        )
        for path in paths
    ]


@router.get('/by-learning-style/{learning_style}', response_model=list[ModuleResponse])
def list_modules_by_learning_style(
    learning_style: LearningStyle,
    limit: int = Query(default=DEFAULT_RECOMMENDATION_LIMIT, ge=1, le=50),
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        modules = module_query(db).join(VARKModule.category).filter(
            VARKModule.is_published.is_(True),
            VARKModuleCategory.learning_style == learning_style,
        ).order_by(VARKModule.created_at.desc()).limit(limit).all()
    except SQLAlchemyError as exc:
        logger.exception('Error fetching modules by learning style')
        raise database_unavailable() from exc

    return [serialize_module(module) for module in modules]


@router.get('/recommended', response_model=list[ModuleResponse])
def list_recommended_modules(
    limit: int = Query(default=DEFAULT_RECOMMENDATION_LIMIT, ge=1, le=50),
    current_user: Profile = Depends(require_roles('student')),
    db: Session = Depends(get_db),
):
    if not current_user.learning_style:
        return []

    try:
        started_module_ids = select(VARKModuleProgress.module_id).where(
            VARKModuleProgress.student_id == current_user.id,
            VARKModuleProgress.status.in_(('in_progress', 'completed')),
        )
        modules = module_query(db).join(VARKModule.category).filter(
            VARKModule.is_published.is_(True),
            VARKModuleCategory.learning_style == current_user.learning_style,
            VARKModule.id.not_in(started_module_ids),
        ).order_by(VARKModule.created_at.desc()).limit(limit).all()
    except SQLAlchemyError as exc:
        logger.exception('Error fetching recommended modules')
        raise database_unavailable() from exc

    return [serialize_module(module) for module in modules]


@router.get('', response_model=list[ModuleResponse])
def list_modules(
    subject: str | None = Query(default=None),
    grade_level: str | None = Query(default=None),
    learning_style: LearningStyle | None = Query(default=None),
    difficulty_level: DifficultyLevel | None = Query(default=None),
    search: str | None = Query(default=None),
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        query = module_query(db)

        if subject or grade_level or learning_style:
            query = query.join(VARKModule.category)
            if subject:
                query = query.filter(VARKModuleCategory.subject == subject)
            if grade_level:
                query = query.filter(VARKModuleCategory.grade_level == grade_level)
            if learning_style:
                query = query.filter(VARKModuleCategory.learning_style == learning_style)
        if difficulty_level:
            query = query.filter(VARKModule.difficulty_level == difficulty_level)
        if search and search.strip():
            pattern = f'%{search.strip()}%'
            query = query.filter(or_(VARKModule.title.ilike(pattern), VARKModule.description.ilike(pattern)))

        modules = query.order_by(VARKModule.created_at.desc()).all()
    except SQLAlchemyError as exc:
        logger.exception('Error fetching VARK modules')
        raise database_unavailable() from exc

    return [serialize_module(module) for module in modules]


@router.post('', response_model=ModuleResponse, status_code=status.HTTP_201_CREATED)
def create_module(
    data: CreateModuleRequest,
    current_user: Profile = Depends(require_roles('teacher')),
    db: Session = Depends(get_db),
):
    try:
        module = VARKModule(**data.model_dump(), created_by=current_user.id)
        db.add(module)
        db.commit()
        module = get_module_or_404(module.id, db)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Error creating VARK module')
        raise database_unavailable() from exc

    logger.info('VARK module %s created by %s', module.id, current_user.id)
    return serialize_module(module)


@router.get('/{module_id}', response_model=ModuleResponse)
def get_module(
    module_id: str,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        module = get_module_or_404(module_id, db)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc
    return serialize_module(module)


@router.patch('/{module_id}', response_model=ModuleResponse)
def update_module(
    module_id: str,
    data: UpdateModuleRequest,
    current_user: Profile = Depends(require_roles('teacher')),
    db: Session = Depends(get_db),
):
    try:
        module = get_owned_module(module_id, current_user, db)
        for field_name, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(module, field_name, value)
        db.commit()
        module = get_module_or_404(module_id, db)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Error updating VARK module %s', module_id)
        raise database_unavailable() from exc

    return serialize_module(module)


@router.delete('/{module_id}', response_model=MessageResponse)
def delete_module(
    module_id: str,
    current_user: Profile = Depends(require_roles('teacher')),
    db: Session = Depends(get_db),
):
    try:
        module = get_owned_module(module_id, current_user, db)
        for dependent in (VARKModuleProgress, VARKModuleAssignment, VARKModuleFeedback):
            db.query(dependent).filter(dependent.module_id == module_id).delete(synchronize_session=False)
        db.delete(module)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Error deleting VARK module %s', module_id)
        raise database_unavailable() from exc

    logger.info('VARK module %s deleted by %s', module_id, current_user.id)
    return MessageResponse(success=True, message='VARK module deleted successfully')


@router.post('/{module_id}/publish', response_model=ModuleResponse)
def toggle_module_publish(
    module_id: str,
    data: PublishRequest,
    current_user: Profile = Depends(require_roles('teacher')),
    db: Session = Depends(get_db),
):
    try:
        module = get_owned_module(module_id, current_user, db)
        module.is_published = data.is_published
        db.commit()
        module = get_module_or_404(module_id, db)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Error toggling module publish status')
        raise database_unavailable() from exc

    return serialize_module(module)


@router.get('/{module_id}/progress', response_model=ProgressResponse | None)
def get_module_progress(
    module_id: str,
    current_user: Profile = Depends(require_roles('student')),
    db: Session = Depends(get_db),
):
    try:
        progress = db.query(VARKModuleProgress).options(
            selectinload(VARKModuleProgress.module),
        ).filter(
            VARKModuleProgress.module_id == module_id,
            VARKModuleProgress.student_id == current_user.id,
        ).first()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return serialize_progress(progress) if progress else None


@router.post('/{module_id}/start', response_model=ProgressResponse)
def start_module(
    module_id: str,
    current_user: Profile = Depends(require_roles('student')),
    db: Session = Depends(get_db),
):
    try:
        module = get_module_or_404(module_id, db)
        now = datetime.now()
        progress = upsert_progress(
            current_user.id,
            module.id,
            db,
            status='in_progress',
            progress_percentage=0,
            started_at=now,
            last_accessed_at=now,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Error starting module %s', module_id)
        raise database_unavailable() from exc

    return serialize_progress(progress)


@router.post('/{module_id}/sections/{section_id}/complete', response_model=ProgressResponse)
def complete_module_section(
    module_id: str,
    section_id: str,
    current_user: Profile = Depends(require_roles('student')),
    db: Session = Depends(get_db),
):
    try:
        module = get_module_or_404(module_id, db)
        progress = db.query(VARKModuleProgress).filter(
            VARKModuleProgress.module_id == module_id,
            VARKModuleProgress.student_id == current_user.id,
        ).first()
        if progress is None:
            raise not_found('Module progress not found')

        section_ids = module.section_ids
        if section_ids and section_id not in section_ids:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Section does not belong to this module.',
            )

        completed_sections = list(progress.completed_sections or [])
        if section_id not in completed_sections:
            completed_sections.append(section_id)

        percentage = section_completion_percentage(len(completed_sections), len(section_ids))
        progress_status = 'completed' if percentage == 100 else 'in_progress'
        now = datetime.now()

        progress = upsert_progress(
            current_user.id,
            module_id,
            db,
            status=progress_status,
            progress_percentage=percentage,
            completed_sections=completed_sections,
            current_section_id=section_id,
            completed_at=now if progress_status == 'completed' else None,
            last_accessed_at=now,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Error updating module progress')
        raise database_unavailable() from exc

    return serialize_progress(progress)


@router.post('/{module_id}/assign/student', response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
def assign_module_to_student(
    module_id: str,
    data: AssignStudentRequest,
    current_user: Profile = Depends(require_roles('teacher')),
    db: Session = Depends(get_db),
):
    try:
        get_module_or_404(module_id, db)
        student = db.query(Profile).filter(Profile.id == data.student_id, Profile.role == 'student').first()
        if student is None:
            raise not_found('Student not found.')

        db.add(
            VARKModuleAssignment(
                module_id=module_id,
                assigned_by=current_user.id,
                assigned_to_type='student',
                assigned_to_id=student.id,
                due_date=data.due_date,
                is_required=True,
            )
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Error assigning module to student')
        raise database_unavailable() from exc

    return MessageResponse(success=True, message='Module assigned to student')


@router.post('/{module_id}/assign/class', response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
def assign_module_to_class(
    module_id: str,
    data: AssignClassRequest,
    current_user: Profile = Depends(require_roles('teacher')),
    db: Session = Depends(get_db),
):
    try:
        get_module_or_404(module_id, db)
        classroom = db.query(Class).filter(Class.id == data.class_id).first()
        if classroom is None:
            raise not_found('Class not found.')
        if classroom.created_by != current_user.id:
            raise forbidden('Modules can only be assigned to your own classes.')

        db.add(
            VARKModuleAssignment(
                module_id=module_id,
                assigned_by=current_user.id,
                assigned_to_type='class',
                assigned_to_id=classroom.id,
                due_date=data.due_date,
                is_required=True,
            )
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Error assigning module to class')
        raise database_unavailable() from exc

    return MessageResponse(success=True, message='Module assigned to class')


@router.post('/{module_id}/feedback', response_model=FeedbackResponse)
def submit_module_feedback(
    module_id: str,
    data: FeedbackRequest,
    current_user: Profile = Depends(require_roles('student')),
    db: Session = Depends(get_db),
):
    try:
        get_module_or_404(module_id, db)
        feedback = db.query(VARKModuleFeedback).filter(
            VARKModuleFeedback.module_id == module_id,
            VARKModuleFeedback.student_id == current_user.id,
        ).first()
        if feedback is None:
            feedback = VARKModuleFeedback(module_id=module_id, student_id=current_user.id)
            db.add(feedback)

        feedback.rating = data.rating
        feedback.feedback_text = data.feedback_text
        feedback.difficulty_rating = data.difficulty_rating
        feedback.engagement_rating = data.engagement_rating
        feedback.submitted_at = datetime.now()
        db.commit()
        db.refresh(feedback)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Error submitting module feedback')
        raise database_unavailable() from exc

    return FeedbackResponse(
        id=feedback.id,
        module_id=feedback.module_id,
        student_id=feedback.student_id,
        rating=feedback.rating,
        feedback_text=feedback.feedback_text,
        difficulty_rating=feedback.difficulty_rating,
        engagement_rating=feedback.engagement_rating,
        submitted_at=feedback.submitted_at,
        student_name=person_name(current_user, UNKNOWN_STUDENT),
    )


@router.get('/{module_id}/feedback', response_model=list[FeedbackResponse])
def list_module_feedback(
    module_id: str,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        feedback_rows = db.query(VARKModuleFeedback).options(
            selectinload(VARKModuleFeedback.student),
        ).filter(
            VARKModuleFeedback.module_id == module_id,
        ).order_by(VARKModuleFeedback.submitted_at.desc()).all()
    except SQLAlchemyError as exc:
        logger.exception('Error fetching module feedback')
        raise database_unavailable() from exc

    return [
        FeedbackResponse(
            id=feedback.id,
            module_id=feedback.module_id,
            student_id=feedback.student_id,
            rating=feedback.rating,
            feedback_text=feedback.feedback_text,
            difficulty_rating=feedback.difficulty_rating,
            engagement_rating=feedback.engagement_rating,
            submitted_at=feedback.submitted_at,
            student_name=person_name(feedback.student, UNKNOWN_STUDENT),
        )
        for feedback in feedback_rows
    ]


@router.get('/{module_id}/stats', response_model=ModuleStatsResponse)
def get_module_stats(
    module_id: str,
    current_user: Profile = Depends(require_roles('teacher')),
    db: Session = Depends(get_db),
):
    try:
        statuses = db.query(
            VARKModuleProgress.status,
            VARKModuleProgress.time_spent_minutes,
        ).filter(VARKModuleProgress.module_id == module_id).all()
        ratings = db.query(VARKModuleFeedback.rating).filter(VARKModuleFeedback.module_id == module_id).all()
    except SQLAlchemyError as exc:
        logger.exception('Error fetching module statistics')
        raise database_unavailable() from exc

    return compute_module_stats(
        [(status_value, minutes) for status_value, minutes in statuses],
        [rating for (rating,) in ratings],
    )
