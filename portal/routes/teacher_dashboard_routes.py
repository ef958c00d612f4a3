import logging
from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portal.auth.dependencies import require_roles
from portal.database import get_db
from portal.models.classroom import Class, ClassStudent
from portal.models.coursework import Activity, Lesson, Quiz, QuizResult, Submission
from portal.models.profile import LEARNING_STYLES, Profile
from portal.routes.common import database_unavailable

router = APIRouter(tags=['teacher-dashboard'])

logger = logging.getLogger(__name__)

RECENT_SUBMISSION_LIMIT = 10


class TeacherDashboardStatsResponse(BaseModel):
    total_students: int
    active_lessons: int
    quizzes_created: int
    pending_grades: int


class LearningStyleDistributionResponse(BaseModel):
    visual: int = 0
    auditory: int = 0
    reading_writing: int = 0
    kinesthetic: int = 0


class RecentSubmissionResponse(BaseModel):
    id: str
    title: str
    student_name: str
    type: Literal['activity', 'quiz']
    submitted_at: datetime | None = None
    status: Literal['pending', 'graded']
    score: float | None = None


class QuickAccessResponse(BaseModel):
    total_classes: int
    total_lessons: int
    total_quizzes: int
    total_activities: int


class TeacherStudentResponse(BaseModel):
    id: str
    name: str
    email: str
    grade_level: str | None = None
    learning_style: str | None = None
    class_id: str
    class_name: str
    subject: str | None = None
    joined_at: datetime | None = None
    onboarding_completed: bool = False


def student_name(profile: Profile | None) -> str:
    return profile.display_name if profile else ''


def count_learning_styles(styles: list[str | None]) -> LearningStyleDistributionResponse:
    distribution = {style: 0 for style in LEARNING_STYLES}
    for style in styles:
        if style in distribution:
            distribution[style] += 1
    return LearningStyleDistributionResponse(**distribution)


def merge_recent_submissions(
    submissions: list[RecentSubmissionResponse],
    limit: int = RECENT_SUBMISSION_LIMIT,
) -> list[RecentSubmissionResponse]:
    ordered = sorted(submissions, key=lambda submission: submission.submitted_at or datetime.min, reverse=True)
    return ordered[:limit]


def enrolled_students_query(teacher_id: str, db: Session):
    return db.query(ClassStudent, Class, Profile).join(
        Class, Class.id == ClassStudent.class_id,
    ).join(
        Profile, Profile.id == ClassStudent.student_id,
    ).filter(Class.created_by == teacher_id)


@router.get('/stats', response_model=TeacherDashboardStatsResponse)
def get_dashboard_stats(
    current_user: Profile = Depends(require_roles('teacher')),
    db: Session = Depends(get_db),
):
    try:
        total_students = db.query(ClassStudent.student_id).join(
            Class, Class.id == ClassStudent.class_id,
        ).filter(Class.created_by == current_user.id).distinct().count()
        active_lessons = db.query(Lesson).filter(
            Lesson.created_by == current_user.id,
            Lesson.is_published.is_(True),
        ).count()
        quizzes_created = db.query(Quiz).filter(Quiz.created_by == current_user.id).count()
        pending_grades = db.query(Submission).join(
            Activity, Activity.id == Submission.activity_id,
        ).filter(
            Activity.assigned_by == current_user.id,
            Submission.score.is_(None),
        ).count()
    except SQLAlchemyError as exc:
        logger.exception('Error fetching teacher dashboard stats')
        raise database_unavailable() from exc

    return TeacherDashboardStatsResponse(
        total_students=total_students,
        active_lessons=active_lessons,
        quizzes_created=quizzes_created,
        pending_grades=pending_grades,
    )


@router.get('/learning-style-distribution', response_model=LearningStyleDistributionResponse)
def get_learning_style_distribution(
    current_user: Profile = Depends(require_roles('teacher')),
    db: Session = Depends(get_db),
):
    try:
        rows = db.query(Profile.id, Profile.learning_style).join(
            ClassStudent, ClassStudent.student_id == Profile.id,
        ).join(
            Class, Class.id == ClassStudent.class_id,
        ).filter(Class.created_by == current_user.id).distinct().all()
    except SQLAlchemyError as exc:
        logger.exception('Error fetching learning style distribution')
        raise database_unavailable() from exc

    return count_learning_styles([learning_style for _, learning_style in rows])


@router.get('/recent-submissions', response_model=list[RecentSubmissionResponse])
def get_recent_submissions(
    current_user: Profile = Depends(require_roles('teacher')),
    db: Session = Depends(get_db),
):
    try:
        activity_rows = db.query(Submission, Activity, Profile).join(
            Activity, Activity.id == Submission.activity_id,
        ).outerjoin(
            Profile, Profile.id == Submission.student_id,
        ).filter(
            Activity.assigned_by == current_user.id,
        ).order_by(Submission.submitted_at.desc()).limit(RECENT_SUBMISSION_LIMIT).all()
        quiz_rows = db.query(QuizResult, Quiz, Profile).join(
            Quiz, Quiz.id == QuizResult.quiz_id,
        ).outerjoin(
            Profile, Profile.id == QuizResult.student_id,
        ).filter(
            Quiz.created_by == current_user.id,
        ).order_by(QuizResult.submitted_at.desc()).limit(RECENT_SUBMISSION_LIMIT).all()
    except SQLAlchemyError as exc:
        logger.exception('Error fetching recent submissions')
        raise database_unavailable() from exc

    submissions = [
        RecentSubmissionResponse(
            id=submission.id,
            title=activity.title or 'Unknown Activity',
            student_name=student_name(student),
            type='activity',
            submitted_at=submission.submitted_at,
            status='pending' if submission.score is None else 'graded',
            score=submission.score,
        )
        for submission, activity, student in activity_rows
    ]
    submissions.extend(
        RecentSubmissionResponse(
            id=result.id,
            title=quiz.title or 'Unknown Quiz',
            student_name=student_name(student),
            type='quiz',
            submitted_at=result.submitted_at,
            status='graded',
            score=result.score,
        )
        for result, quiz, student in quiz_rows
    )

    return merge_recent_submissions(submissions)


@router.get('/quick-access', response_model=QuickAccessResponse)
def get_quick_access_data(
    current_user: Profile = Depends(require_roles('teacher')),
    db: Session = Depends(get_db),
):
    try:
        return QuickAccessResponse(
            total_classes=db.query(Class).filter(Class.created_by == current_user.id).count(),
            total_lessons=db.query(Lesson).filter(Lesson.created_by == current_user.id).count(),
            total_quizzes=db.query(Quiz).filter(Quiz.created_by == current_user.id).count(),
            total_activities=db.query(Activity).filter(Activity.assigned_by == current_user.id).count(),
        )
    except SQLAlchemyError as exc:
        logger.exception('Error fetching quick access data')
        raise database_unavailable() from exc


@router.get('/students', response_model=list[TeacherStudentResponse])
def list_students(
    current_user: Profile = Depends(require_roles('teacher')),
    db: Session = Depends(get_db),
):
    try:
        rows = enrolled_students_query(current_user.id, db).order_by(ClassStudent.joined_at.desc()).all()
    except SQLAlchemyError as exc:
        logger.exception('Error fetching student list')
        raise database_unavailable() from exc

    return [
        TeacherStudentResponse(
            id=student.id,
            name=student_name(student),
            email=student.email,
            grade_level=student.grade_level,
            learning_style=student.learning_style,
            class_id=classroom.id,
            class_name=classroom.name,
            subject=classroom.subject,
            joined_at=enrollment.joined_at,
            onboarding_completed=bool(student.onboarding_completed),
        )
        for enrollment, classroom, student in rows
    ]
