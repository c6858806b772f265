from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from discipleship import services
from discipleship.config import Settings
from discipleship.database import Database
from discipleship.main import create_app

PASSWORD = 'password123'
ADDRESS = {'street': '1 Main St', 'city': 'Springfield', 'state': 'IL', 'zip': '62701'}


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a fresh SQLite file per test."""
    return Settings(DATABASE_URL=f"sqlite:///{tmp_path / 'test.db'}", ENV='dev', LOG_LEVEL='WARNING')


@pytest.fixture
def db(settings):
    database = Database.from_settings(settings)
    database.create_all()
    yield database
    database.dispose()


@pytest.fixture
def session(db):
    with db.session() as s:
        yield s


@pytest.fixture
def app(settings, db):
    return create_app(settings=settings, database=db)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_church(session):
    def _make(slug='grace', **extra):
        data = {'name': f'{slug.title()} Church', 'slug': slug, 'address': dict(ADDRESS)}
        data.update(extra)
        return services.ChurchService(session).create(data)
    return _make


@pytest.fixture
def church(make_church):
    return make_church()


@pytest.fixture
def make_user(session):
    def _make(church, role='member', email=None):
        email = email or f'{role}-{uuid4().hex[:8]}@example.com'
        return services.UserService(session).create(church.id, 'platform_admin', {
            'email': email, 'password': PASSWORD, 'first_name': role.title(), 'last_name': 'Tester', 'role': role,
        })
    return _make


@pytest.fixture
def headers_for(settings):
    def _headers(user):
        token = services.AuthService(None, settings).issue_token(user)
        return {'Authorization': f'Bearer {token}'}
    return _headers


@pytest.fixture
def make_student(session, make_user):
    def _make(church, teacher=None, email=None):
        user = make_user(church, 'student', email=email)
        return services.StudentService(session).create(church.id, {
            'user_id': user.id, 'assigned_teacher_id': teacher.id if teacher else None,
        })
    return _make
