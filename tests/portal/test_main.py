import pytest
from fastapi.testclient import TestClient

from portal.database import get_db
from portal.main import app
from portal.routes import auth_routes


@pytest.fixture
def client(db, session_factory, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(auth_routes, 'SessionLocal', session_factory)

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _register(client: TestClient, **overrides) -> dict:
    payload = {
        'email': 'juan@example.com',
        'password': 'secret123',
        'confirm_password': 'secret123',
        'first_name': 'Juan',
        'last_name': 'Dela Cruz',
        'phone': '09171234567',
        'role': 'student',
    }
    payload.update(overrides)
    return client.post('/auth/register', json=payload)


def _auth(token: str) -> dict:
    return {'Authorization': f'Bearer {token}'}


def test_root_reports_status(client) -> None:
    response = client.get('/')

    assert response.status_code == 200
    assert response.json() == {'status': 'Community Portal API Running'}


def test_student_registers_onboards_and_reaches_dashboard(client) -> None:
    registered = _register(client)
    assert registered.status_code == 201
    token = registered.json()['access_token']
    assert registered.json()['redirect_to'] == '/onboarding/vark'

    statements = client.get('/onboarding/vark/statements').json()
    ratings = {str(item['id']): 5 if item['category'] == 'kinesthetic' else 2 for item in statements}
    onboarding = client.post('/onboarding/vark', json={'ratings': ratings}, headers=_auth(token))

    assert onboarding.status_code == 200
    assert onboarding.json()['dominant_style'] == 'kinesthetic'
    assert onboarding.json()['redirect_to'] == '/student/dashboard'

    stats = client.get('/student/dashboard/stats', headers=_auth(token))
    assert stats.status_code == 200
    assert stats.json()['lessons_completed'] == 0


def test_register_reports_validation_errors(client) -> None:
    response = _register(client, confirm_password='mismatch1')

    assert response.status_code == 422
    assert "Passwords don't match" in response.text


def test_login_with_wrong_role_is_rejected_without_token(client) -> None:
    _register(client, role='teacher')

    response = client.post(
        '/auth/login',
        json={'email': 'juan@example.com', 'password': 'secret123', 'role': 'student'},
    )

    assert response.status_code == 403
    assert response.json() == {'detail': 'Invalid credentials for student account'}


def test_login_and_me_round_trip(client) -> None:
    _register(client, role='teacher')

    login = client.post('/auth/login', json={'email': 'juan@example.com', 'password': 'secret123', 'role': 'teacher'})
    me = client.get('/auth/me', headers=_auth(login.json()['access_token']))

    assert login.status_code == 200
    assert me.json()['redirect_to'] == '/teacher/dashboard'
    assert me.json()['user']['email'] == 'juan@example.com'


def test_students_cannot_use_teacher_dashboard(client) -> None:
    token = _register(client).json()['access_token']

    response = client.get('/teacher/dashboard/stats', headers=_auth(token))

    assert response.status_code == 403
    assert response.json() == {'detail': 'Only teacher accounts can access this resource.'}


def test_invalid_token_is_rejected(client) -> None:
    response = client.get('/auth/me', headers=_auth('not-a-token'))

    assert response.status_code == 401
    assert response.json() == {'detail': 'Invalid token'}


def test_module_update_ignores_null_fields(client) -> None:
    token = _register(client, role='teacher').json()['access_token']
    created = client.post('/vark-modules', json={'title': 'The Cell'}, headers=_auth(token))

    response = client.patch(f"/vark-modules/{created.json()['id']}", json={'title': None}, headers=_auth(token))

    assert response.status_code == 200
    assert response.json()['title'] == 'The Cell'
