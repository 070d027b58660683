import pytest
from fastapi import Depends, FastAPI, Request
from fastapi.testclient import TestClient

from app.api.deps import enforce_account_block, get_session_service
from app.api.guards import AuthGuard, extract_bearer_token
from app.core.errors import ConflictError, ServiceError, UnauthorizedError
from app.main import handle_service_error
from app.services import credential_store


def _bearer(token):
    return f'Bearer {token}'


@pytest.fixture
def guard(session_service):
    return AuthGuard(session_service)


@pytest.mark.parametrize(
    'header, expected',
    [
        ('Bearer abc', 'abc'),
        ('bearer abc', 'abc'),
        ('Basic abc', None),
        ('Bearer', None),
        ('', None),
        (None, None),
    ],
)
def test_extract_bearer_token(header, expected):
    assert extract_bearer_token(header) == expected


def test_public_route_skips_checks(guard, db):
    decision = guard.check(db, None, is_public=True)

    assert decision.allowed
    assert decision.claims is None
    assert not decision.refreshed


def test_missing_token_is_rejected(guard, db):
    with pytest.raises(UnauthorizedError, match='token missing'):
        guard.check(db, None)
    with pytest.raises(UnauthorizedError, match='token missing'):
        guard.check(db, 'Basic dXNlcjpwYXNz')


def test_valid_token_is_accepted_as_is(guard, db, make_user, session_service):
    user = make_user()
    login = session_service.login(db, 'a@x.com', 'secret123')

    decision = guard.check(db, _bearer(login.access_token))

    assert decision.allowed
    assert decision.claims['sub'] == str(user.id)
    assert not decision.refreshed


def test_invalid_token_never_attempts_refresh(guard, db, make_user, session_service, monkeypatch):
    make_user()
    session_service.login(db, 'a@x.com', 'secret123')
    calls = []
    monkeypatch.setattr(session_service, 'refresh_access_token', lambda *args: calls.append(args))

    with pytest.raises(UnauthorizedError, match='invalid token'):
        guard.check(db, _bearer('a.b.c'))

    assert calls == []


def test_expired_token_is_silently_refreshed(guard, db, make_user, session_service, clock):
    user = make_user()
    login = session_service.login(db, 'a@x.com', 'secret123')
    clock.advance(minutes=2)

    decision = guard.check(db, _bearer(login.access_token))

    assert decision.allowed
    assert decision.refreshed
    new_token = decision.authorization.split(' ', 1)[1]
    assert new_token != login.access_token
    assert decision.claims['sub'] == str(user.id)
    assert credential_store.find_access_token_by_user_id(db, user.id).token == new_token


def test_expired_token_without_refresh_row(guard, db, make_user, session_service, clock):
    user = make_user()
    login = session_service.login(db, 'a@x.com', 'secret123')
    credential_store.delete_refresh_token(db, user.id)
    clock.advance(minutes=2)

    with pytest.raises(UnauthorizedError, match='refresh token missing'):
        guard.check(db, _bearer(login.access_token))


def test_expired_token_with_expired_refresh_token(guard, db, make_user, session_service, clock):
    make_user()
    login = session_service.login(db, 'a@x.com', 'secret123')
    clock.advance(days=31)

    with pytest.raises(UnauthorizedError, match='invalid refresh token'):
        guard.check(db, _bearer(login.access_token))


def test_valid_token_of_logged_out_user(guard, db, make_user, session_service):
    user = make_user()
    login = session_service.login(db, 'a@x.com', 'secret123')
    session_service.logout(db, user.id)

    with pytest.raises(UnauthorizedError, match='user is not logged in'):
        guard.check(db, _bearer(login.access_token))


def test_expired_request_is_transparently_refreshed(client, make_user, db, clock):
    user = make_user()
    login = client.post('/api/v1/auth/login', json={'email': 'a@x.com', 'password': 'secret123'}).json()
    clock.advance(minutes=5)

    response = client.get('/api/v1/users/me', headers={'Authorization': _bearer(login['access_token'])})

    assert response.status_code == 200
    assert response.json()['email'] == 'a@x.com'
    stored = credential_store.find_access_token_by_user_id(db, user.id)
    assert stored.token != login['access_token']


def test_handler_sees_rewritten_authorization(make_user, db, session_service, clock):
    make_user()
    login = session_service.login(db, 'a@x.com', 'secret123')
    clock.advance(minutes=5)

    side_app = FastAPI()
    side_app.add_exception_handler(ServiceError, handle_service_error)
    side_app.dependency_overrides[get_session_service] = lambda: session_service
    seen = []

    @side_app.get('/whoami')
    def read_whoami(request: Request, user=Depends(enforce_account_block)):
        seen.append(request.headers.get('authorization'))
        return {'user_id': user.id}

    with TestClient(side_app) as side_client:
        response = side_client.get('/whoami', headers={'Authorization': _bearer(login.access_token)})

    assert response.status_code == 200
    assert len(seen) == 1
    stored = credential_store.find_access_token_by_user_id(db, response.json()['user_id'])
    assert seen[0] == _bearer(stored.token)
    assert seen[0] != _bearer(login.access_token)


def test_failed_refresh_does_not_reach_handler(make_user, db, session_service, clock):
    user = make_user()
    login = session_service.login(db, 'a@x.com', 'secret123')
    credential_store.delete_refresh_token(db, user.id)
    clock.advance(minutes=5)

    side_app = FastAPI()
    side_app.add_exception_handler(ServiceError, handle_service_error)
    side_app.dependency_overrides[get_session_service] = lambda: session_service
    seen = []

    @side_app.get('/whoami')
    def read_whoami(user=Depends(enforce_account_block)):
        seen.append(user)
        return {}

    with TestClient(side_app) as side_client:
        response = side_client.get('/whoami', headers={'Authorization': _bearer(login.access_token)})

    assert response.status_code == 401
    assert response.json() == {'detail': 'refresh token missing', 'code': 'unauthorized'}
    assert seen == []


def test_store_conflict_during_silent_refresh_is_unauthorized(guard, db, make_user, session_service, clock, monkeypatch):
    make_user()
    login = session_service.login(db, 'a@x.com', 'secret123')
    clock.advance(minutes=2)

    def colliding(session, user_id, token, expires_at):
        raise ConflictError('Such access token already exists')

    monkeypatch.setattr(credential_store, 'save_access_token', colliding)

    with pytest.raises(UnauthorizedError, match='invalid refresh token'):
        guard.check(db, _bearer(login.access_token))
