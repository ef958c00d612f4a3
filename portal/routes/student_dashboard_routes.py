"""Read-only aggregates shown on the student dashboard.

Every endpoint here degrades to an empty or zero-valued payload when the
database cannot be read, so the dashboard always renders.
"""

import logging
from datetime import datetime, timedelta
from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from portal.auth.dependencies import require_roles
from portal.database import get_db
from portal.models.classroom import ClassStudent
from portal.models.coursework import Activity, Lesson, LessonProgress, QuizResult, Submission
from portal.models.profile import Profile

router = APIRouter(tags=['student-dashboard'])

logger = logging.getLogger(__name__)

RECENT_LESSON_LIMIT = 3
RECENT_QUIZ_LIMIT = 2
RECENT_SUBMISSION_LIMIT = 2
RECENT_ACTIVITY_LIMIT = 5
UPCOMING_DEADLINE_LIMIT = 5
HOURS_PER_COMPLETED_LESSON = 0.5
HOURS_PER_QUIZ = 0.25
URGENT_WINDOW = timedelta(hours=24)


class DashboardStatsResponse(BaseModel):
    lessons_completed: int = 0
    total_lessons: int = 0
    quiz_average: int = 0
    activities_submitted: int = 0
    total_activities: int = 0
    total_time_spent: int = 0


class RecentActivityResponse(BaseModel):
    id: str
    type: Literal['lesson', 'quiz', 'activity']
    title: str
    status: Literal['completed', 'in_progress', 'pending', 'urgent']
    timestamp: datetime | None = None
    icon: str
    color: str


class LessonProgressSummary(BaseModel):
    completed: int = 0
    total: int = 0
    percentage: int = 0


class QuizProgressSummary(BaseModel):
    average: int = 0
    total_taken: int = 0


class ActivityProgressSummary(BaseModel):
    submitted: int = 0
    total: int = 0
    percentage: int = 0


class ProgressDataResponse(BaseModel):
    lessons: LessonProgressSummary = Field(default_factory=LessonProgressSummary)
    quizzes: QuizProgressSummary = Field(default_factory=QuizProgressSummary)
    activities: ActivityProgressSummary = Field(default_factory=ActivityProgressSummary)


class AssignedLessonResponse(BaseModel):
    id: str
    title: str
    class_id: str | None = None
    created_at: datetime | None = None
    status: str = 'not_started'


class DeadlineResponse(BaseModel):
    id: str
    title: str
    description: str | None = None
    class_id: str | None = None
    deadline: datetime
    submitted: bool = False


def percentage(part: int, whole: int) -> int:
    return round(part / whole * 100) if whole else 0


def quiz_percentages(results: list[tuple[float | None, float | None]]) -> list[float]:
    return [(score or 0) / total * 100 if total else 0 for score, total in results]


def quiz_average(results: list[tuple[float | None, float | None]]) -> int:
    scores = quiz_percentages(results)
    return round(sum(scores) / len(scores)) if scores else 0


def estimate_time_spent(lessons_completed: int, quizzes_taken: int) -> int:
    return round(lessons_completed * HOURS_PER_COMPLETED_LESSON + quizzes_taken * HOURS_PER_QUIZ)


def is_urgent(deadline: datetime | None, now: datetime) -> bool:
    """A submission is urgent when its deadline passed within the last day."""
    if deadline is None:
        return False
    return now - URGENT_WINDOW < deadline < now


def enrolled_class_ids(student_id: str, db: Session) -> list[str]:
    return [class_id for (class_id,) in db.query(ClassStudent.class_id).filter(ClassStudent.student_id == student_id)]


def count_class_activities(class_ids: list[str], db: Session) -> int:
    if not class_ids:
        return 0
    return db.query(Activity).filter(Activity.class_id.in_(class_ids)).count()


def count_submitted_activities(student_id: str, db: Session) -> int:
    return db.query(Submission.activity_id).filter(Submission.student_id == student_id).distinct().count()


def lesson_statuses(student_id: str, db: Session) -> list[str]:
    return [status for (status,) in db.query(LessonProgress.status).filter(LessonProgress.student_id == student_id)]


def quiz_scores(student_id: str, db: Session) -> list[tuple[float | None, float | None]]:
    return [
        (score, total)
        for score, total in db.query(QuizResult.score, QuizResult.total_points).filter(QuizResult.student_id == student_id)
    ]


@router.get('/stats', response_model=DashboardStatsResponse)
def get_dashboard_stats(
    current_user: Profile = Depends(require_roles('student')),
    db: Session = Depends(get_db),
):
    try:
        statuses = lesson_statuses(current_user.id, db)
        quizzes = quiz_scores(current_user.id, db)
        activities_submitted = count_submitted_activities(current_user.id, db)
        total_activities = count_class_activities(enrolled_class_ids(current_user.id, db), db)
    except SQLAlchemyError:
        logger.exception('Error fetching dashboard stats for %s', current_user.id)
        return DashboardStatsResponse()

    lessons_completed = statuses.count('completed')

    return DashboardStatsResponse(
        lessons_completed=lessons_completed,
        total_lessons=len(statuses),
        quiz_average=quiz_average(quizzes),
        activities_submitted=activities_submitted,
        total_activities=max(total_activities, activities_submitted),
        total_time_spent=estimate_time_spent(lessons_completed, len(quizzes)),
    )


@router.get('/recent-activities', response_model=list[RecentActivityResponse])
def get_recent_activities(
    current_user: Profile = Depends(require_roles('student')),
    db: Session = Depends(get_db),
):
    now = datetime.now()
    activities: list[RecentActivityResponse] = []

    try:
        lesson_rows = db.query(LessonProgress).options(selectinload(LessonProgress.lesson)).filter(
            LessonProgress.student_id == current_user.id,
        ).order_by(LessonProgress.updated_at.desc()).limit(RECENT_LESSON_LIMIT).all()
        quiz_rows = db.query(QuizResult).options(selectinload(QuizResult.quiz)).filter(
            QuizResult.student_id == current_user.id,
        ).order_by(QuizResult.submitted_at.desc()).limit(RECENT_QUIZ_LIMIT).all()
        submission_rows = db.query(Submission).options(selectinload(Submission.activity)).filter(
            Submission.student_id == current_user.id,
        ).order_by(Submission.submitted_at.desc()).limit(RECENT_SUBMISSION_LIMIT).all()
    except SQLAlchemyError:
        logger.exception('Error fetching recent activities for %s', current_user.id)
        return []

    for progress in lesson_rows:
        completed = progress.status == 'completed'
        activities.append(
            RecentActivityResponse(
                id=progress.id,
                type='lesson',
                title=progress.lesson.title if progress.lesson else 'Unknown Lesson',
                status='completed' if completed else 'in_progress',
                timestamp=progress.updated_at,
                icon='BookOpen',
                color='blue' if completed else 'yellow',
            )
        )

    for result in quiz_rows:
        activities.append(
            RecentActivityResponse(
                id=result.id,
                type='quiz',
                title=result.quiz.title if result.quiz else 'Unknown Quiz',
                status='completed',
                timestamp=result.submitted_at,
                icon='FileText',
                color='green',
            )
        )

    for submission in submission_rows:
        urgent = is_urgent(submission.activity.deadline if submission.activity else None, now)
        activities.append(
            RecentActivityResponse(
                id=submission.id,
                type='activity',
                title=submission.activity.title if submission.activity else 'Unknown Activity',
                status='urgent' if urgent else 'completed',
                timestamp=submission.submitted_at,
                icon='Activity',
                color='red' if urgent else 'purple',
            )
        )

    activities.sort(key=lambda activity: activity.timestamp or datetime.min, reverse=True)
    return activities[:RECENT_ACTIVITY_LIMIT]


@router.get('/progress', response_model=ProgressDataResponse)
def get_progress_data(
    current_user: Profile = Depends(require_roles('student')),
    db: Session = Depends(get_db),
):
    try:
        statuses = lesson_statuses(current_user.id, db)
        quizzes = quiz_scores(current_user.id, db)
        submitted = count_submitted_activities(current_user.id, db)
        total_activities = max(count_class_activities(enrolled_class_ids(current_user.id, db), db), submitted)
    except SQLAlchemyError:
        logger.exception('Error fetching progress data for %s', current_user.id)
        return ProgressDataResponse()

    lessons_completed = statuses.count('completed')

    return ProgressDataResponse(
        lessons=LessonProgressSummary(
            completed=lessons_completed,
            total=len(statuses),
            percentage=percentage(lessons_completed, len(statuses)),
        ),
        quizzes=QuizProgressSummary(average=quiz_average(quizzes), total_taken=len(quizzes)),
        activities=ActivityProgressSummary(
            submitted=submitted,
            total=total_activities,
            percentage=percentage(submitted, total_activities),
        ),
    )


@router.get('/assigned-lessons', response_model=list[AssignedLessonResponse])
def get_assigned_lessons(
    current_user: Profile = Depends(require_roles('student')),
    db: Session = Depends(get_db),
):
    try:
        class_ids = enrolled_class_ids(current_user.id, db)
        if not class_ids:
            return []

        lessons = db.query(Lesson).filter(
            Lesson.class_id.in_(class_ids),
            Lesson.is_published.is_(True),
        ).order_by(Lesson.created_at.desc()).all()
        statuses = {
            lesson_id: status
            for lesson_id, status in db.query(LessonProgress.lesson_id, LessonProgress.status).filter(
                LessonProgress.student_id == current_user.id,
            )
        }
    except SQLAlchemyError:
        logger.exception('Error fetching assigned lessons for %s', current_user.id)
        return []

    return [
        AssignedLessonResponse(
            id=lesson.id,
            title=lesson.title,
            class_id=lesson.class_id,
            created_at=lesson.created_at,
            status=statuses.get(lesson.id, 'not_started'),
        )
        for lesson in lessons
    ]


@router.get('/upcoming-deadlines', response_model=list[DeadlineResponse])
def get_upcoming_deadlines(
    current_user: Profile = Depends(require_roles('student')),
    db: Session = Depends(get_db),
):
    try:
        class_ids = enrolled_class_ids(current_user.id, db)
        if not class_ids:
            return []

        activities = db.query(Activity).filter(
            Activity.class_id.in_(class_ids),
            Activity.deadline >= datetime.now(),
        ).order_by(Activity.deadline.asc()).limit(UPCOMING_DEADLINE_LIMIT).all()
        submitted_ids = {
            activity_id
            for (activity_id,) in db.query(Submission.activity_id).filter(Submission.student_id == current_user.id)
        }
    except SQLAlchemyError:
        logger.exception('Error fetching upcoming deadlines for %s', current_user.id)
        return []

    return [
        DeadlineResponse(
            id=activity.id,
            title=activity.title,
            description=activity.description,
            class_id=activity.class_id,
            deadline=activity.deadline,
            submitted=activity.id in submitted_ids,
        )
        for activity in activities
    ]
