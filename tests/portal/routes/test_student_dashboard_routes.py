from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import SQLAlchemyError

from portal.models.classroom import Class, ClassStudent
from portal.models.coursework import Activity, Lesson, LessonProgress, Quiz, QuizResult, Submission
from portal.routes import student_dashboard_routes
from portal.routes.student_dashboard_routes import (
    estimate_time_spent,
    get_assigned_lessons,
    get_dashboard_stats,
    get_progress_data,
    get_recent_activities,
    get_upcoming_deadlines,
    is_urgent,
    quiz_average,
)


@pytest.fixture
def enrolled_student(db, make_profile):
    teacher = make_profile(role='teacher')
    student = make_profile(role='student', learning_style='visual', onboarding_completed=True)
    classroom = Class(name='Biology 7-A', created_by=teacher.id)
    db.add(classroom)
    db.commit()
    db.add(ClassStudent(class_id=classroom.id, student_id=student.id))
    db.commit()
    return student, classroom, teacher


def test_quiz_average_rounds_percentages() -> None:
    assert quiz_average([(8, 10), (6, 10)]) == 70
    assert quiz_average([(2, 3)]) == 67
    assert quiz_average([]) == 0


def test_quiz_average_treats_zero_point_quizzes_as_zero() -> None:
    assert quiz_average([(5, 0), (10, 10)]) == 50


def test_estimate_time_spent() -> None:
    assert estimate_time_spent(4, 4) == 3
    assert estimate_time_spent(0, 0) == 0


@pytest.mark.parametrize(
    ('hours_ago', 'expected'),
    [
        (1, True),
        (23, True),
        (25, False),
        (-2, False),
    ],
)
def test_is_urgent_only_for_deadlines_passed_within_a_day(hours_ago: int, expected: bool) -> None:
    now = datetime(2026, 3, 10, 12, 0)

    assert is_urgent(now - timedelta(hours=hours_ago), now) is expected


def test_is_urgent_without_deadline() -> None:
    assert is_urgent(None, datetime(2026, 3, 10, 12, 0)) is False


def test_new_student_sees_zero_state(db, make_profile) -> None:
    student = make_profile(role='student')

    stats = get_dashboard_stats(current_user=student, db=db)
    progress = get_progress_data(current_user=student, db=db)

    assert stats.model_dump() == {
        'lessons_completed': 0,
        'total_lessons': 0,
        'quiz_average': 0,
        'activities_submitted': 0,
        'total_activities': 0,
        'total_time_spent': 0,
    }
    assert progress.lessons.percentage == 0
    assert progress.activities.percentage == 0
    assert get_recent_activities(current_user=student, db=db) == []
    assert get_assigned_lessons(current_user=student, db=db) == []
    assert get_upcoming_deadlines(current_user=student, db=db) == []


def test_dashboard_stats_aggregate_student_work(db, enrolled_student) -> None:
    student, classroom, teacher = enrolled_student
    lessons = [Lesson(title=f'Lesson {index}', class_id=classroom.id, created_by=teacher.id) for index in range(2)]
    quizzes = [Quiz(title=f'Quiz {index}', class_id=classroom.id, created_by=teacher.id) for index in range(2)]
    activities = [Activity(title=f'Activity {index}', class_id=classroom.id, assigned_by=teacher.id) for index in range(2)]
    db.add_all(lessons + quizzes + activities)
    db.commit()
    db.add_all([
        LessonProgress(lesson_id=lessons[0].id, student_id=student.id, status='completed'),
        LessonProgress(lesson_id=lessons[1].id, student_id=student.id, status='in_progress'),
        QuizResult(quiz_id=quizzes[0].id, student_id=student.id, score=8, total_points=10),
        QuizResult(quiz_id=quizzes[1].id, student_id=student.id, score=6, total_points=10),
        Submission(activity_id=activities[0].id, student_id=student.id),
    ])
    db.commit()

    stats = get_dashboard_stats(current_user=student, db=db)
    progress = get_progress_data(current_user=student, db=db)

    assert stats.lessons_completed == 1
    assert stats.total_lessons == 2
    assert stats.quiz_average == 70
    assert stats.activities_submitted == 1
    assert stats.total_activities == 2
    assert stats.total_time_spent == 1
    assert progress.lessons.percentage == 50
    assert progress.quizzes.total_taken == 2
    assert progress.activities.percentage == 50


def test_dashboard_stats_degrade_to_zero_state_on_database_errors(db, make_profile, monkeypatch: pytest.MonkeyPatch) -> None:
    student = make_profile(role='student')

    def broken_query(*_args, **_kwargs):
        raise SQLAlchemyError('database is down')

    monkeypatch.setattr(student_dashboard_routes, 'lesson_statuses', broken_query)

    stats = get_dashboard_stats(current_user=student, db=db)
    progress = get_progress_data(current_user=student, db=db)

    assert stats.total_lessons == 0
    assert stats.quiz_average == 0
    assert progress.quizzes.total_taken == 0


def test_recent_activities_merge_newest_first_and_flag_urgent(db, enrolled_student) -> None:
    student, classroom, teacher = enrolled_student
    now = datetime.now()
    lessons = [Lesson(title=f'Lesson {index}', class_id=classroom.id) for index in range(3)]
    quizzes = [Quiz(title=f'Quiz {index}', class_id=classroom.id) for index in range(2)]
    late = Activity(title='Lab report', class_id=classroom.id, deadline=now - timedelta(hours=2))
    old = Activity(title='Essay', class_id=classroom.id, deadline=now - timedelta(days=5))
    db.add_all(lessons + quizzes + [late, old])
    db.commit()
    db.add_all([
        LessonProgress(lesson_id=lessons[0].id, student_id=student.id, status='completed', updated_at=now - timedelta(hours=7)),
        LessonProgress(lesson_id=lessons[1].id, student_id=student.id, status='in_progress', updated_at=now - timedelta(hours=6)),
        LessonProgress(lesson_id=lessons[2].id, student_id=student.id, status='completed', updated_at=now - timedelta(hours=5)),
        QuizResult(quiz_id=quizzes[0].id, student_id=student.id, score=5, total_points=5, submitted_at=now - timedelta(hours=4)),
        QuizResult(quiz_id=quizzes[1].id, student_id=student.id, score=3, total_points=5, submitted_at=now - timedelta(hours=3)),
        Submission(activity_id=late.id, student_id=student.id, submitted_at=now - timedelta(hours=1)),
        Submission(activity_id=old.id, student_id=student.id, submitted_at=now - timedelta(hours=2)),
    ])
    db.commit()

    activities = get_recent_activities(current_user=student, db=db)

    assert [(activity.type, activity.title) for activity in activities] == [
        ('activity', 'Lab report'),
        ('activity', 'Essay'),
        ('quiz', 'Quiz 1'),
        ('quiz', 'Quiz 0'),
        ('lesson', 'Lesson 2'),
    ]
    assert activities[0].status == 'urgent'
    assert activities[0].color == 'red'
    assert activities[1].status == 'completed'


def test_assigned_lessons_and_upcoming_deadlines(db, enrolled_student) -> None:
    student, classroom, teacher = enrolled_student
    now = datetime.now()
    published = Lesson(title='Cell Parts', class_id=classroom.id, created_by=teacher.id, is_published=True)
    draft = Lesson(title='Draft', class_id=classroom.id, created_by=teacher.id, is_published=False)
    soon = Activity(title='Worksheet', class_id=classroom.id, deadline=now + timedelta(days=1))
    later = Activity(title='Project', class_id=classroom.id, deadline=now + timedelta(days=7))
    past = Activity(title='Quiz prep', class_id=classroom.id, deadline=now - timedelta(days=1))
    db.add_all([published, draft, soon, later, past])
    db.commit()
    db.add(Submission(activity_id=soon.id, student_id=student.id))
    db.commit()

    lessons = get_assigned_lessons(current_user=student, db=db)
    deadlines = get_upcoming_deadlines(current_user=student, db=db)

    assert [(lesson.title, lesson.status) for lesson in lessons] == [('Cell Parts', 'not_started')]
    assert [(deadline.title, deadline.submitted) for deadline in deadlines] == [('Worksheet', True), ('Project', False)]
