import pytest

from discipleship import services


@pytest.fixture
def two_churches(session, make_church, make_user, make_student):
    out = {}
    for slug in ('alpha', 'beta'):
        church = make_church(slug)
        pastor = make_user(church, 'pastor')
        teacher = make_user(church, 'teacher')
        student = make_student(church, teacher)
        study = services.StudyService(session).create(church.id, {
            'student_id': student.id, 'teacher_id': teacher.id, 'curriculum': 'search-for-truth',
        })
        out[slug] = {'church': church, 'pastor': pastor, 'student': student, 'study': study,
                     'lesson_id': study.lessons[0].id}
    return out


def test_foreign_ids_look_missing(client, two_churches, headers_for):
    alpha, beta = two_churches['alpha'], two_churches['beta']
    headers = headers_for(alpha['pastor'])
    assert client.get(f"/api/v1/students/{beta['student'].id}", headers=headers).status_code == 404
    assert client.get(f"/api/v1/studies/{beta['study'].id}", headers=headers).status_code == 404
    assert client.get(f"/api/v1/lessons/{beta['lesson_id']}", headers=headers).status_code == 404
    assert client.get(f"/api/v1/lessons/study/{beta['study'].id}", headers=headers).status_code == 404
    assert client.get(f"/api/v1/users/{beta['pastor'].id}", headers=headers).status_code == 404
    r = client.patch(f"/api/v1/studies/{beta['study'].id}", headers=headers, json={'title': 'Taken'})
    assert r.status_code == 404
    assert r.json()['code'] == 'STUDY_NOT_FOUND'
    r = client.post(f"/api/v1/lessons/{beta['lesson_id']}/complete", headers=headers, json={})
    assert r.status_code == 404


def test_lists_are_scoped(client, two_churches, headers_for):
    alpha, beta = two_churches['alpha'], two_churches['beta']
    headers = headers_for(alpha['pastor'])
    students = client.get('/api/v1/students', headers=headers).json()['items']
    assert [s['id'] for s in students] == [alpha['student'].id]
    studies = client.get('/api/v1/studies', headers=headers).json()['items']
    assert [s['id'] for s in studies] == [alpha['study'].id]
    users = client.get('/api/v1/users', headers=headers).json()['items']
    assert users and all(u['church_id'] == alpha['church'].id for u in users)
    assert client.get('/api/v1/churches/me', headers=headers).json()['id'] == alpha['church'].id


def test_repository_update_in_wrong_church(session, two_churches):
    alpha, beta = two_churches['alpha'], two_churches['beta']
    svc = services.StudentService(session)
    assert svc.get_by_id(beta['student'].id, alpha['church'].id) is None
    assert svc.get_by_user_id(beta['student'].user_id, alpha['church'].id) is None
    assert services.LessonService(session).get_by_id(beta['lesson_id'], alpha['church'].id) is None


def test_create_study_for_foreign_student(client, two_churches, headers_for):
    alpha, beta = two_churches['alpha'], two_churches['beta']
    r = client.post('/api/v1/studies', headers=headers_for(alpha['pastor']),
                    json={'student_id': beta['student'].id, 'curriculum': 'custom'})
    assert r.status_code == 404
    assert r.json()['code'] == 'STUDENT_NOT_FOUND'
