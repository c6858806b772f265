from discipleship import services

PASSWORD = 'password123'


def _register(client, church, **extra):
    payload = {
        'email': 'new.person@example.com', 'password': PASSWORD,
        'first_name': 'New', 'last_name': 'Person', 'church_id': church.id,
    }
    payload.update(extra)
    return client.post('/api/v1/auth/register', json=payload)


def test_register_login_and_me(client, church):
    r = _register(client, church)
    assert r.status_code == 201
    body = r.json()
    assert body['token_type'] == 'bearer'
    assert body['user']['role'] == 'student'
    assert body['user']['church_id'] == church.id
    assert 'password_hash' not in body['user']

    login = client.post('/api/v1/auth/login', json={'email': 'New.Person@example.com', 'password': PASSWORD})
    assert login.status_code == 200
    token = login.json()['access_token']
    me = client.get('/api/v1/auth/me', headers={'Authorization': f'Bearer {token}'})
    assert me.status_code == 200
    assert me.json()['email'] == 'new.person@example.com'
    assert me.json()['last_login_at'] is not None


def test_register_rejects_elevated_role_and_duplicates(client, church):
    r = _register(client, church, role='admin')
    assert r.status_code == 403
    assert _register(client, church, role='member').status_code == 201
    dup = _register(client, church)
    assert dup.status_code == 409
    assert dup.json()['code'] == 'EMAIL_EXISTS'


def test_register_unknown_church(client, church):
    r = _register(client, church, church_id='missing')
    assert r.status_code == 404
    assert r.json()['code'] == 'CHURCH_NOT_FOUND'


def test_login_failures(client, church, make_user, session):
    user = make_user(church, 'teacher')
    bad = client.post('/api/v1/auth/login', json={'email': user.email, 'password': 'wrong-password'})
    assert bad.status_code == 401
    assert bad.json()['code'] == 'INVALID_CREDENTIALS'

    services.UserService(session).update(user.id, church.id, 'admin', {'is_active': False})
    disabled = client.post('/api/v1/auth/login', json={'email': user.email, 'password': PASSWORD})
    assert disabled.status_code == 401
    assert disabled.json()['code'] == 'ACCOUNT_DISABLED'


def test_protected_routes_require_token(client, church, make_user, headers_for, session):
    r = client.get('/api/v1/students')
    assert r.status_code in (401, 403)
    r = client.get('/api/v1/students', headers={'Authorization': 'Bearer not-a-jwt'})
    assert r.status_code == 401

    user = make_user(church, 'pastor')
    headers = headers_for(user)
    assert client.get('/api/v1/auth/me', headers=headers).status_code == 200
    services.UserService(session).update(user.id, church.id, 'admin', {'is_active': False})
    assert client.get('/api/v1/auth/me', headers=headers).status_code == 401


def test_expired_token(client, church, make_user, settings):
    settings.JWT_EXPIRE_HOURS = -1
    token = services.AuthService(None, settings).issue_token(make_user(church))
    r = client.get('/api/v1/auth/me', headers={'Authorization': f'Bearer {token}'})
    assert r.status_code == 401
    assert r.json()['detail'] == 'token expired'


def test_change_password(client, church, make_user, headers_for):
    user = make_user(church)
    headers = headers_for(user)
    wrong = client.post('/api/v1/auth/change-password', headers=headers,
                        json={'current_password': 'nope-nope', 'new_password': 'another-pass'})
    assert wrong.status_code == 401
    ok = client.post('/api/v1/auth/change-password', headers=headers,
                     json={'current_password': PASSWORD, 'new_password': 'another-pass'})
    assert ok.status_code == 200
    login = client.post('/api/v1/auth/login', json={'email': user.email, 'password': 'another-pass'})
    assert login.status_code == 200
