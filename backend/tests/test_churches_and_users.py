from discipleship import services


def test_platform_admin_manages_churches(client, church, make_user, headers_for):
    root = make_user(church, 'platform_admin')
    headers = headers_for(root)
    payload = {
        'name': 'Hope Chapel', 'slug': 'hope-chapel',
        'address': {'street': '2 Elm St', 'city': 'Dayton', 'state': 'OH', 'zip': '45402'},
        'settings': {'enabled_curriculums': ['search-for-truth']},
    }
    r = client.post('/api/v1/churches', headers=headers, json=payload)
    assert r.status_code == 201
    body = r.json()
    assert body['subscription'] == 'free'
    assert body['settings']['enabled_curriculums'] == ['search-for-truth']
    assert body['settings']['timezone'] == 'America/New_York'

    dup = client.post('/api/v1/churches', headers=headers, json=payload)
    assert dup.status_code == 409
    assert dup.json()['code'] == 'SLUG_EXISTS'
    bad = client.post('/api/v1/churches', headers=headers, json={**payload, 'slug': 'Not A Slug'})
    assert bad.status_code == 422

    slugs = [c['slug'] for c in client.get('/api/v1/churches', headers=headers).json()]
    assert set(slugs) == {'grace', 'hope-chapel'}

    pastor = make_user(church, 'pastor')
    assert client.get('/api/v1/churches', headers=headers_for(pastor)).status_code == 403


def test_church_settings_merge(client, church, make_user, headers_for):
    admin = make_user(church, 'admin')
    r = client.patch('/api/v1/churches/me', headers=headers_for(admin),
                     json={'settings': {'timezone': 'America/Chicago'}, 'phone': '555-0100'})
    assert r.status_code == 200
    body = r.json()
    assert body['settings']['timezone'] == 'America/Chicago'
    assert 'search-for-truth' in body['settings']['enabled_curriculums']
    assert body['phone'] == '555-0100'
    teacher = make_user(church, 'teacher')
    assert client.patch('/api/v1/churches/me', headers=headers_for(teacher), json={'phone': 'x'}).status_code == 403


def test_church_stats_endpoint(client, session, church, make_user, make_student, headers_for):
    teacher = make_user(church, 'teacher')
    student = make_student(church, teacher)
    services.StudyService(session).create(church.id, {
        'student_id': student.id, 'teacher_id': teacher.id, 'curriculum': 'custom',
    })
    stats = client.get('/api/v1/churches/me/stats', headers=headers_for(teacher)).json()
    assert stats['total_students'] == 1
    assert stats['active_studies'] == 1


def test_user_role_assignment(client, church, make_user, headers_for):
    pastor = make_user(church, 'pastor')
    headers = headers_for(pastor)
    new_user = {'email': 'helper@example.com', 'password': 'password123', 'first_name': 'Helen', 'last_name': 'Helper'}
    r = client.post('/api/v1/users', headers=headers, json={**new_user, 'role': 'teacher'})
    assert r.status_code == 201
    created = r.json()
    assert created['role'] == 'teacher'
    r = client.post('/api/v1/users', headers=headers, json={**new_user, 'email': 'boss@example.com', 'role': 'admin'})
    assert r.status_code == 403
    r = client.patch(f"/api/v1/users/{created['id']}", headers=headers, json={'role': 'pastor'})
    assert r.status_code == 403
    r = client.patch(f"/api/v1/users/{created['id']}", headers=headers, json={'phone': '555-0101'})
    assert r.status_code == 200
    assert r.json()['phone'] == '555-0101'

    member = make_user(church, 'member')
    assert client.get(f'/api/v1/users/{member.id}', headers=headers_for(member)).status_code == 200
    assert client.get(f'/api/v1/users/{pastor.id}', headers=headers_for(member)).status_code == 403


def test_null_for_required_fields_is_rejected(client, church, make_user, headers_for):
    admin = make_user(church, 'admin')
    headers = headers_for(admin)
    for body in ({'name': None}, {'address': None}):
        r = client.patch('/api/v1/churches/me', headers=headers, json=body)
        assert r.status_code == 400
        assert r.json()['code'] == 'NULL_NOT_ALLOWED'
    r = client.get('/api/v1/churches/me', headers=headers)
    assert r.status_code == 200
    assert r.json()['name'] == 'Grace Church'
    assert r.json()['address']['city'] == 'Springfield'

    member = make_user(church, 'member')
    r = client.patch(f'/api/v1/users/{member.id}', headers=headers, json={'is_active': None, 'phone': '555'})
    assert r.status_code == 400
    assert r.json()['code'] == 'NULL_NOT_ALLOWED'
    fetched = client.get(f'/api/v1/users/{member.id}', headers=headers).json()
    assert fetched['is_active'] is True
    assert fetched['phone'] is None

    # nullable columns can still be cleared
    client.patch('/api/v1/churches/me', headers=headers, json={'phone': '555-0100'})
    r = client.patch('/api/v1/churches/me', headers=headers, json={'phone': None})
    assert r.status_code == 200
    assert r.json()['phone'] is None
