import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from portal.models.classroom import Class, ClassStudent
from portal.models.vark_module import VARKLearningPath, VARKModuleCategory, VARKModuleFeedback
from portal.routes.vark_module_routes import (
    AssignClassRequest,
    AssignStudentRequest,
    CreateModuleRequest,
    FeedbackRequest,
    PublishRequest,
    UpdateModuleRequest,
    assign_module_to_class,
    assign_module_to_student,
    complete_module_section,
    compute_module_stats,
    create_module,
    delete_module,
    get_category,
    get_module_progress,
    list_assignments,
    list_available_modules,
    list_categories,
    list_learning_paths,
    list_module_feedback,
    list_modules,
    list_modules_by_learning_style,
    list_my_progress,
    list_recommended_modules,
    section_completion_percentage,
    start_module,
    submit_module_feedback,
    toggle_module_publish,
    update_module,
)

TWO_SECTIONS = {
    'sections': [
        {'id': 'intro', 'title': 'Cells at a glance', 'content_type': 'video'},
        {'id': 'practice', 'title': 'Label the cell', 'content_type': 'activity'},
    ]
}


@pytest.fixture
def category(db):
    visual = VARKModuleCategory(name='Biology Visuals', subject='Biology', grade_level='Grade 7', learning_style='visual')
    db.add(visual)
    db.commit()
    db.refresh(visual)
    return visual


def _module(teacher, db, **overrides):
    payload = {'title': 'The Cell', 'description': 'Parts of the cell', 'content_structure': TWO_SECTIONS}
    payload.update(overrides)
    return create_module(CreateModuleRequest(**payload), current_user=teacher, db=db)


def _list_modules(user, db, **filters):
    params = {'subject': None, 'grade_level': None, 'learning_style': None, 'difficulty_level': None, 'search': None}
    params.update(filters)
    return list_modules(**params, current_user=user, db=db)


@pytest.mark.parametrize(
    ('completed', 'section_count', 'expected'),
    [
        (1, 0, 25),
        (4, 0, 100),
        (1, 3, 33),
        (2, 2, 100),
        (3, 2, 100),
    ],
)
def test_section_completion_percentage(completed: int, section_count: int, expected: int) -> None:
    assert section_completion_percentage(completed, section_count) == expected


def test_compute_module_stats_rounds_rates() -> None:
    stats = compute_module_stats(
        [('completed', 30), ('in_progress', 10), ('not_started', None)],
        [4, 5, 5],
    )

    assert stats.total_modules == 3
    assert stats.completed_modules == 1
    assert stats.completion_rate == 33
    assert stats.average_rating == 4.7
    assert stats.total_time_spent == 40


def test_compute_module_stats_handles_no_progress() -> None:
    stats = compute_module_stats([], [])

    assert stats.completion_rate == 0
    assert stats.average_rating == 0


def test_create_module_request_rejects_duplicate_section_ids() -> None:
    with pytest.raises(ValidationError):
        CreateModuleRequest(title='Dup', content_structure={'sections': [{'id': 'a'}, {'id': 'a'}]})


def test_list_categories_returns_active_categories_by_name(db, make_profile, category) -> None:
    db.add(VARKModuleCategory(name='Auditory Lessons', learning_style='auditory'))
    db.add(VARKModuleCategory(name='Archived', is_active=False))
    db.commit()

    categories = list_categories(current_user=make_profile(role='teacher'), db=db)

    assert [item.name for item in categories] == ['Auditory Lessons', 'Biology Visuals']


def test_create_module_sets_owner_and_teacher_name(db, make_profile, category) -> None:
    teacher = make_profile(role='teacher', first_name='Grace', last_name='Lim')

    module = _module(teacher, db, category_id=category.id)

    assert module.created_by == teacher.id
    assert module.teacher_name == 'Grace Lim'
    assert module.category.learning_style == 'visual'


def test_list_modules_filters_by_category_and_search(db, make_profile, category) -> None:
    teacher = make_profile(role='teacher')
    _module(teacher, db, category_id=category.id)
    _module(teacher, db, title='Photosynthesis', description='Plants and light')

    by_style = _list_modules(teacher, db, learning_style='visual')
    by_search = _list_modules(teacher, db, search='PLANTS')

    assert [module.title for module in by_style] == ['The Cell']
    assert [module.title for module in by_search] == ['Photosynthesis']


def test_update_module_is_limited_to_owner(db, make_profile) -> None:
    owner = make_profile(role='teacher')
    other = make_profile(role='teacher')
    module = _module(owner, db)

    with pytest.raises(HTTPException) as exception_info:
        update_module(module.id, UpdateModuleRequest(title='Hijacked'), current_user=other, db=db)

    assert exception_info.value.status_code == 403
    updated = update_module(module.id, UpdateModuleRequest(title='The Living Cell'), current_user=owner, db=db)
    assert updated.title == 'The Living Cell'
    assert updated.description == 'Parts of the cell'


def test_update_module_ignores_null_fields(db, make_profile) -> None:
    teacher = make_profile(role='teacher')
    module = _module(teacher, db)

    updated = update_module(
        module.id,
        UpdateModuleRequest.model_validate({'title': None, 'is_published': None, 'description': 'Cell organelles'}),
        current_user=teacher,
        db=db,
    )

    assert updated.title == 'The Cell'
    assert updated.is_published is False
    assert updated.description == 'Cell organelles'


def test_toggle_publish_and_delete_module(db, make_profile) -> None:
    teacher = make_profile(role='teacher')
    module = _module(teacher, db)

    published = toggle_module_publish(module.id, PublishRequest(is_published=True), current_user=teacher, db=db)
    delete_module(module.id, current_user=teacher, db=db)

    assert published.is_published is True
    assert _list_modules(teacher, db) == []


def test_section_completion_tracks_progress_until_completed(db, make_profile) -> None:
    teacher = make_profile(role='teacher')
    student = make_profile(role='student')
    module = _module(teacher, db, is_published=True)

    started = start_module(module.id, current_user=student, db=db)
    first = complete_module_section(module.id, 'intro', current_user=student, db=db)
    repeated = complete_module_section(module.id, 'intro', current_user=student, db=db)
    finished = complete_module_section(module.id, 'practice', current_user=student, db=db)

    assert started.status == 'in_progress'
    assert started.progress_percentage == 0
    assert first.progress_percentage == 50
    assert repeated.completed_sections == ['intro']
    assert finished.status == 'completed'
    assert finished.progress_percentage == 100
    assert finished.completed_at is not None
    assert [row.module_title for row in list_my_progress(current_user=student, db=db)] == ['The Cell']


def test_complete_section_without_progress_returns_404(db, make_profile) -> None:
    teacher = make_profile(role='teacher')
    student = make_profile(role='student')
    module = _module(teacher, db)

    with pytest.raises(HTTPException) as exception_info:
        complete_module_section(module.id, 'intro', current_user=student, db=db)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Module progress not found'


def test_complete_section_uses_default_section_count(db, make_profile) -> None:
    teacher = make_profile(role='teacher')
    student = make_profile(role='student')
    module = _module(teacher, db, content_structure={})
    start_module(module.id, current_user=student, db=db)

    progress = complete_module_section(module.id, 'anything', current_user=student, db=db)

    assert progress.progress_percentage == 25


def test_available_modules_respect_target_learning_styles(db, make_profile) -> None:
    teacher = make_profile(role='teacher')
    student = make_profile(role='student', learning_style='auditory')
    _module(teacher, db, title='For listeners', is_published=True, target_learning_styles=['auditory'])
    _module(teacher, db, title='For watchers', is_published=True, target_learning_styles=['visual'])
    _module(teacher, db, title='For everyone', is_published=True)
    _module(teacher, db, title='Draft', is_published=False)

    titles = {module.title for module in list_available_modules(current_user=student, db=db)}

    assert titles == {'For listeners', 'For everyone'}


def test_recommended_modules_skip_started_ones(db, make_profile, category) -> None:
    teacher = make_profile(role='teacher')
    student = make_profile(role='student', learning_style='visual')
    started = _module(teacher, db, title='Started', category_id=category.id, is_published=True)
    _module(teacher, db, title='Fresh', category_id=category.id, is_published=True)
    start_module(started.id, current_user=student, db=db)

    recommended = list_recommended_modules(limit=6, current_user=student, db=db)

    assert [module.title for module in recommended] == ['Fresh']


def test_recommended_modules_empty_without_learning_style(db, make_profile) -> None:
    student = make_profile(role='student')

    assert list_recommended_modules(limit=6, current_user=student, db=db) == []


def test_feedback_is_upserted_per_student(db, make_profile) -> None:
    teacher = make_profile(role='teacher')
    student = make_profile(role='student', first_name='Mika', last_name='Tan')
    module = _module(teacher, db)

    submit_module_feedback(
        module.id,
        FeedbackRequest(rating=3, difficulty_rating=2, engagement_rating=3),
        current_user=student,
        db=db,
    )
    submit_module_feedback(
        module.id,
        FeedbackRequest(rating=5, feedback_text='Loved it', difficulty_rating=2, engagement_rating=5),
        current_user=student,
        db=db,
    )

    feedback = list_module_feedback(module.id, current_user=teacher, db=db)
    assert db.query(VARKModuleFeedback).count() == 1
    assert feedback[0].rating == 5
    assert feedback[0].student_name == 'Mika Tan'


def test_feedback_rejects_out_of_range_rating() -> None:
    with pytest.raises(ValidationError):
        FeedbackRequest(rating=6, difficulty_rating=2, engagement_rating=3)


def test_assign_module_to_class_and_list_for_enrolled_student(db, make_profile) -> None:
    teacher = make_profile(role='teacher', first_name='Grace', last_name='Lim')
    student = make_profile(role='student')
    classroom = Class(name='Biology 7-A', created_by=teacher.id)
    db.add(classroom)
    db.commit()
    db.add(ClassStudent(class_id=classroom.id, student_id=student.id))
    db.commit()
    module = _module(teacher, db)

    assign_module_to_class(module.id, AssignClassRequest(class_id=classroom.id), current_user=teacher, db=db)
    assignments = list_assignments(
        assigned_to_type='class',
        assigned_to_id=classroom.id,
        current_user=student,
        db=db,
    )

    assert len(assignments) == 1
    assert assignments[0].is_required is True
    assert assignments[0].assigned_by_name == 'Grace Lim'
    assert assignments[0].module.title == 'The Cell'


def test_students_cannot_list_other_students_assignments(db, make_profile) -> None:
    student = make_profile(role='student')

    with pytest.raises(HTTPException) as exception_info:
        list_assignments(assigned_to_type='student', assigned_to_id='someone-else', current_user=student, db=db)

    assert exception_info.value.status_code == 403


def test_assign_module_to_foreign_class_is_forbidden(db, make_profile) -> None:
    teacher = make_profile(role='teacher')
    other = make_profile(role='teacher')
    classroom = Class(name='Chemistry', created_by=other.id)
    db.add(classroom)
    db.commit()
    module = _module(teacher, db)

    with pytest.raises(HTTPException) as exception_info:
        assign_module_to_class(module.id, AssignClassRequest(class_id=classroom.id), current_user=teacher, db=db)

    assert exception_info.value.status_code == 403


def test_get_category_returns_404_for_unknown_id(db, make_profile, category) -> None:
    teacher = make_profile(role='teacher')

    assert get_category(category.id, current_user=teacher, db=db).name == 'Biology Visuals'
    with pytest.raises(HTTPException) as exception_info:
        get_category('missing', current_user=teacher, db=db)

    assert exception_info.value.status_code == 404


def test_modules_by_learning_style_only_lists_published(db, make_profile, category) -> None:
    teacher = make_profile(role='teacher')
    _module(teacher, db, title='Published', category_id=category.id, is_published=True)
    _module(teacher, db, title='Hidden', category_id=category.id, is_published=False)

    modules = list_modules_by_learning_style('visual', limit=6, current_user=teacher, db=db)

    assert [module.title for module in modules] == ['Published']


def test_module_progress_is_none_before_starting(db, make_profile) -> None:
    teacher = make_profile(role='teacher')
    student = make_profile(role='student')
    module = _module(teacher, db)

    assert get_module_progress(module.id, current_user=student, db=db) is None
    start_module(module.id, current_user=student, db=db)
    assert get_module_progress(module.id, current_user=student, db=db).status == 'in_progress'


def test_assign_module_to_student_and_list_own_assignments(db, make_profile) -> None:
    teacher = make_profile(role='teacher')
    student = make_profile(role='student')
    module = _module(teacher, db)

    assign_module_to_student(module.id, AssignStudentRequest(student_id=student.id), current_user=teacher, db=db)
    assignments = list_assignments(assigned_to_type='student', assigned_to_id=student.id, current_user=student, db=db)

    assert [assignment.module_id for assignment in assignments] == [module.id]


def test_assign_module_to_non_student_is_rejected(db, make_profile) -> None:
    teacher = make_profile(role='teacher')
    module = _module(teacher, db)

    with pytest.raises(HTTPException) as exception_info:
        assign_module_to_student(module.id, AssignStudentRequest(student_id=teacher.id), current_user=teacher, db=db)

    assert exception_info.value.status_code == 404


def test_learning_paths_filter_published_by_style(db, make_profile) -> None:
    teacher = make_profile(role='teacher', first_name='Grace', last_name='Lim')
    db.add_all([
        VARKLearningPath(name='Seeing Biology', learning_style='visual', is_published=True, created_by=teacher.id),
        VARKLearningPath(name='Hearing Biology', learning_style='auditory', is_published=True, created_by=teacher.id),
        VARKLearningPath(name='Unreleased', learning_style='visual', is_published=False, created_by=teacher.id),
    ])
    db.commit()

    paths = list_learning_paths(learning_style='visual', current_user=teacher, db=db)

    assert [(path.name, path.teacher_name) for path in paths] == [('Seeing Biology', 'Grace Lim')]
