import pytest

from discipleship import repositories
from discipleship.errors import ValidationError


def test_cursor_round_trip_and_rejects_garbage():
    cursor = repositories.encode_cursor('abc')
    assert repositories.decode_cursor(cursor) == 'abc'
    for bad in ('not base64 !!', repositories.encode_cursor('x')[:-3] + '@@@', 'W10='):
        with pytest.raises(ValidationError):
            repositories.decode_cursor(bad)


def test_students_page_through(client, church, make_user, make_student, headers_for):
    ids = {make_student(church).id for _ in range(5)}
    headers = headers_for(make_user(church, 'pastor'))
    seen, cursor, pages = [], None, 0
    while True:
        params = {'limit': 2}
        if cursor:
            params['cursor'] = cursor
        body = client.get('/api/v1/students', headers=headers, params=params).json()
        seen.extend(s['id'] for s in body['items'])
        pages += 1
        cursor = body['next_cursor']
        if not cursor:
            break
    assert pages == 3
    assert seen == sorted(ids)


def test_page_limits(client, church, make_user, headers_for, session):
    headers = headers_for(make_user(church, 'pastor'))
    assert client.get('/api/v1/students', headers=headers, params={'limit': 0}).status_code == 422
    assert client.get('/api/v1/students', headers=headers, params={'limit': 500}).status_code == 422
    r = client.get('/api/v1/studies', headers=headers, params={'cursor': 'garbage!'})
    assert r.status_code == 400
    assert r.json()['code'] == 'INVALID_CURSOR'
    with pytest.raises(ValidationError):
        repositories.StudentRepository(session).list_by_church(church.id, limit=0)


def test_exact_page_has_no_cursor(session, church, make_student):
    for _ in range(2):
        make_student(church)
    page = repositories.StudentRepository(session).list_by_church(church.id, limit=2)
    assert len(page.items) == 2
    assert page.next_cursor is None
