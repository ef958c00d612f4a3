import pytest
from fastapi import HTTPException

from portal.models.vark_module import VARKModule, VARKModuleProgress
from portal.routes.class_routes import (
    CreateClassRequest,
    EnrollStudentRequest,
    create_class,
    enroll_student,
    get_enrolled_class_details,
    list_enrolled_classes,
    list_teacher_classes,
)


def test_teacher_creates_class_and_enrolls_students(db, make_profile) -> None:
    teacher = make_profile(role='teacher')
    student = make_profile(role='student')

    classroom = create_class(CreateClassRequest(name='Biology 7-A', subject='Biology'), current_user=teacher, db=db)
    enroll_student(classroom.id, EnrollStudentRequest(student_id=student.id), current_user=teacher, db=db)

    classes = list_teacher_classes(current_user=teacher, db=db)
    assert [(item.name, item.student_count) for item in classes] == [('Biology 7-A', 1)]
    assert [item.id for item in list_enrolled_classes(current_user=student, db=db)] == [classroom.id]


def test_enroll_student_rejects_duplicates(db, make_profile) -> None:
    teacher = make_profile(role='teacher')
    student = make_profile(role='student')
    classroom = create_class(CreateClassRequest(name='Biology 7-A'), current_user=teacher, db=db)
    enroll_student(classroom.id, EnrollStudentRequest(student_id=student.id), current_user=teacher, db=db)

    with pytest.raises(HTTPException) as exception_info:
        enroll_student(classroom.id, EnrollStudentRequest(student_id=student.id), current_user=teacher, db=db)

    assert exception_info.value.status_code == 409


@pytest.mark.parametrize('target_role', ['teacher', 'osca'])
def test_enroll_student_requires_a_student_account(db, make_profile, target_role: str) -> None:
    teacher = make_profile(role='teacher')
    not_a_student = make_profile(role=target_role)
    classroom = create_class(CreateClassRequest(name='Biology 7-A'), current_user=teacher, db=db)

    with pytest.raises(HTTPException) as exception_info:
        enroll_student(classroom.id, EnrollStudentRequest(student_id=not_a_student.id), current_user=teacher, db=db)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Student not found.'


def test_enroll_student_in_foreign_class_is_forbidden(db, make_profile) -> None:
    owner = make_profile(role='teacher')
    other = make_profile(role='teacher')
    student = make_profile(role='student')
    classroom = create_class(CreateClassRequest(name='Biology 7-A'), current_user=owner, db=db)

    with pytest.raises(HTTPException) as exception_info:
        enroll_student(classroom.id, EnrollStudentRequest(student_id=student.id), current_user=other, db=db)

    assert exception_info.value.status_code == 403


def test_class_details_include_module_progress(db, make_profile) -> None:
    teacher = make_profile(role='teacher')
    student = make_profile(role='student')
    classroom = create_class(CreateClassRequest(name='Biology 7-A'), current_user=teacher, db=db)
    enroll_student(classroom.id, EnrollStudentRequest(student_id=student.id), current_user=teacher, db=db)
    started = VARKModule(title='The Cell', created_by=teacher.id, target_class_id=classroom.id, is_published=True)
    untouched = VARKModule(title='Genetics', created_by=teacher.id, target_class_id=classroom.id, is_published=True)
    draft = VARKModule(title='Draft', created_by=teacher.id, target_class_id=classroom.id, is_published=False)
    db.add_all([started, untouched, draft])
    db.commit()
    db.add(VARKModuleProgress(student_id=student.id, module_id=started.id, status='in_progress', progress_percentage=50))
    db.commit()

    details = get_enrolled_class_details(classroom.id, current_user=student, db=db)

    progress = {module.title: (module.progress_status, module.progress_percentage) for module in details.modules}
    assert details.name == 'Biology 7-A'
    assert progress == {'The Cell': ('in_progress', 50), 'Genetics': ('not_started', 0)}


def test_class_details_require_enrollment(db, make_profile) -> None:
    teacher = make_profile(role='teacher')
    student = make_profile(role='student')
    classroom = create_class(CreateClassRequest(name='Biology 7-A'), current_user=teacher, db=db)

    with pytest.raises(HTTPException) as exception_info:
        get_enrolled_class_details(classroom.id, current_user=student, db=db)

    assert exception_info.value.status_code == 404
