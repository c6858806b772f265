import pytest
from fastapi.testclient import TestClient

from discipleship.config import DEFAULT_JWT_SECRET, Settings
from discipleship.database import Database
from discipleship.main import create_app


def test_health_endpoints(client):
    for path in ('/health', '/api/v1/health'):
        r = client.get(path)
        assert r.status_code == 200
        body = r.json()
        assert body['status'] == 'healthy'
        assert body['version'] == '0.1.0'
        assert body['timestamp']


def test_request_id_is_echoed(client):
    r = client.get('/health', headers={'X-Request-ID': 'abc123'})
    assert r.headers['X-Request-ID'] == 'abc123'
    assert client.get('/health').headers['X-Request-ID']


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv('JWT_EXPIRE_HOURS', '2')
    monkeypatch.setenv('CORS_ORIGINS', 'https://a.example, https://b.example')
    monkeypatch.setenv('PUBLIC_API_URL', 'http://api.internal:3001')
    s = Settings()
    assert s.JWT_EXPIRE_HOURS == 2
    assert s.CORS_ORIGINS == ['https://a.example', 'https://b.example']
    assert s.PUBLIC_API_URL == 'http://api.internal:3001'


def test_settings_overrides_and_validation():
    s = Settings(DATABASE_URL='sqlite:///:memory:')
    assert s.DATABASE_URL == 'sqlite:///:memory:'
    with pytest.raises(TypeError):
        Settings(NOT_A_SETTING=1)
    with pytest.raises(RuntimeError):
        Settings(ENV='prod', JWT_SECRET=DEFAULT_JWT_SECRET)
    with pytest.raises(RuntimeError):
        Settings(JWT_EXPIRE_HOURS=0)
    assert Settings(ENV='prod', JWT_SECRET='s3cret').ENV == 'prod'


def test_health_does_not_touch_the_store(settings, tmp_path, make_user, church, headers_for):
    unreachable = Database(f"sqlite:///{tmp_path / 'missing-dir' / 'down.db'}")
    app = create_app(settings=settings, database=Database.from_settings(settings))
    app.state.db.dispose()
    app.state.db = unreachable
    with TestClient(app) as client:
        for path in ('/health', '/api/v1/health'):
            r = client.get(path)
            assert r.status_code == 200
            assert r.json()['status'] == 'healthy'
        r = client.get('/api/v1/auth/me', headers=headers_for(make_user(church)))
        assert r.status_code == 500
        assert r.json()['code'] == 'STORE_ERROR'
