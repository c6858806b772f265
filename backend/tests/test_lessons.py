import pytest

from discipleship import models, services
from discipleship.errors import InvalidTransitionError, NotFoundError


@pytest.fixture
def setup(session, church, make_user, make_student):
    teacher = make_user(church, 'teacher')
    student = make_student(church, teacher)
    study = services.StudyService(session).create(church.id, {
        'student_id': student.id, 'teacher_id': teacher.id, 'curriculum': 'exploring-gods-word',
    })
    return teacher, student, study


def test_list_by_study_is_ordered(session, church, setup):
    _teacher, _student, study = setup
    lessons = services.LessonService(session).list_by_study(study.id, church.id)
    assert [lesson.lesson_number for lesson in lessons] == list(range(1, 9))


def test_list_by_study_in_other_church(session, setup, make_church):
    _teacher, _student, study = setup
    with pytest.raises(NotFoundError):
        services.LessonService(session).list_by_study(study.id, make_church('other').id)


def test_lesson_transitions(session, church, setup):
    svc = services.LessonService(session)
    lesson = setup[2].lessons[0]
    started = svc.update(lesson.id, church.id, {'status': 'in-progress'})
    assert started.status == 'in-progress'
    assert started.completed_date is None
    done = svc.update(lesson.id, church.id, {'status': 'completed'})
    assert done.completed_date is not None
    with pytest.raises(InvalidTransitionError):
        svc.update(lesson.id, church.id, {'status': 'not-started'})
    reopened = svc.update(lesson.id, church.id, {'status': 'in-progress'})
    assert reopened.completed_date is None


def test_mark_complete_and_notes(session, church, setup):
    svc = services.LessonService(session)
    lesson = setup[2].lessons[1]
    done = svc.mark_complete(lesson.id, church.id, notes='Great discussion')
    assert done.status == 'completed'
    assert done.teacher_notes == 'Great discussion'
    svc.add_note(lesson.id, church.id, 'student', '  first  ')
    noted = svc.add_note(lesson.id, church.id, 'student', 'second')
    assert noted.student_notes == 'first\nsecond'
    with pytest.raises(NotFoundError):
        svc.mark_complete('missing', church.id)


def test_lesson_api(client, session, church, setup, headers_for):
    teacher, student, study = setup
    lesson_id = study.lessons[0].id
    headers = headers_for(teacher)
    listed = client.get(f'/api/v1/lessons/study/{study.id}', headers=headers)
    assert listed.status_code == 200
    assert len(listed.json()) == 8

    r = client.post(f'/api/v1/lessons/{lesson_id}/complete', headers=headers, json={'notes': 'done'})
    assert r.status_code == 200
    assert r.json()['status'] == 'completed'

    r = client.patch(f'/api/v1/lessons/{lesson_id}', headers=headers, json={'status': 'not-started'})
    assert r.status_code == 409

    student_user = session.get(models.User, student.user_id)
    student_headers = headers_for(student_user)
    r = client.post(f'/api/v1/lessons/{lesson_id}/notes', headers=student_headers,
                    json={'type': 'student', 'content': 'I have a question'})
    assert r.status_code == 200
    assert r.json()['student_notes'] == 'I have a question'
    r = client.post(f'/api/v1/lessons/{lesson_id}/notes', headers=student_headers,
                    json={'type': 'teacher', 'content': 'sneaky'})
    assert r.status_code == 403
    assert client.patch(f'/api/v1/lessons/{lesson_id}', headers=student_headers,
                        json={'status': 'in-progress'}).status_code == 403


def test_completing_twice_keeps_first_date(session, church, setup):
    svc = services.LessonService(session)
    lesson_id = setup[2].lessons[2].id
    first = svc.mark_complete(lesson_id, church.id).completed_date
    again = svc.mark_complete(lesson_id, church.id, notes='Reviewed')
    assert again.completed_date == first
    assert again.teacher_notes == 'Reviewed'
    reopened = svc.update(lesson_id, church.id, {'status': 'in-progress'})
    assert reopened.completed_date is None
    assert svc.mark_complete(lesson_id, church.id).completed_date is not None
