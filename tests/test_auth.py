import json

import pytest

from app.models.AuditLog import AuditLog
from app.models.Token import Token
from app.models.User import User
from app.security_utils import reset_rate_limits
from conftest import ADMIN_PASSWORD


def login(client, identifier, password):
    return client.post('/api/v1/auth/login',
                       data=json.dumps({'identifier': identifier, 'password': password}),
                       content_type='application/json')


class TestLogin:
    """Admin login and session endpoints."""

    def test_login_by_email(self, client, admin_user):
        response = login(client, 'admin@example.com', ADMIN_PASSWORD)

        assert response.status_code == 200
        data = response.get_json()
        assert data['access_token']
        assert data['refresh_token']
        assert data['is_admin'] is True
        assert data['user']['email'] == 'admin@example.com'
        assert 'password_hash' not in data['user']
        assert 'admin' in data['user']['roles']
        assert client.get_cookie('access_token_cookie') is not None

    def test_login_by_username(self, client, admin_user):
        response = login(client, 'admin', ADMIN_PASSWORD)
        assert response.status_code == 200

    def test_login_plain_user_is_not_admin(self, client, create_user):
        create_user()
        response = login(client, 'test@example.com', 'User#2024pass')
        assert response.status_code == 200
        assert response.get_json()['is_admin'] is False

    def test_bad_password(self, client, admin_user):
        response = login(client, 'admin@example.com', 'Wrong#2024pass')
        assert response.status_code == 401
        assert response.get_json()['error'] == 'invalid_credentials'
        assert AuditLog.query.filter_by(event='login_failed').count() == 1

    def test_unknown_user(self, client):
        response = login(client, 'nobody@example.com', 'Whatever#1')
        assert response.status_code == 401

    def test_missing_fields(self, client):
        response = client.post('/api/v1/auth/login', data=json.dumps({'identifier': 'admin'}),
                               content_type='application/json')
        assert response.status_code == 400
        assert response.get_json()['error'] == 'validation_error'
        assert 'password' in response.get_json()['details']

    def test_successful_login_is_audited(self, client, admin_user):
        login(client, 'admin', ADMIN_PASSWORD)
        entry = AuditLog.query.filter_by(event='login').one()
        assert entry.user_id == str(admin_user.id)


class TestSession:

    def test_me(self, client, admin_headers):
        response = client.get('/api/v1/auth/me', headers=admin_headers)
        assert response.status_code == 200
        assert response.get_json()['username'] == 'admin'
        assert response.get_json()['is_admin'] is True

    def test_me_requires_token(self, client):
        response = client.get('/api/v1/auth/me')
        assert response.status_code == 401
        assert response.get_json()['error'] == 'auth_required'

    def test_logout_revokes_token(self, client, admin_user):
        token = login(client, 'admin', ADMIN_PASSWORD).get_json()['access_token']
        headers = {'Authorization': f'Bearer {token}'}

        response = client.post('/api/v1/auth/logout', headers=headers)
        assert response.status_code == 200
        assert Token.query.count() == 1

        client.delete_cookie('access_token_cookie')
        response = client.get('/api/v1/auth/me', headers=headers)
        assert response.status_code == 401

    def test_admin_check(self, client, admin_headers, user_headers):
        assert client.get('/api/admin/check').get_json() == {'is_admin': False}
        assert client.get('/api/admin/check', headers=user_headers).get_json() == {'is_admin': False}
        assert client.get('/api/admin/check', headers=admin_headers).get_json() == {'is_admin': True}

    def test_admin_check_with_garbage_token(self, client):
        response = client.get('/api/admin/check', headers={'Authorization': 'Bearer not.a.token'})
        assert response.status_code == 200
        assert response.get_json() == {'is_admin': False}

    def test_clear_session(self, client, admin_headers):
        response = client.post('/api/admin/clear-session', headers=admin_headers)
        assert response.status_code == 200
        assert Token.query.count() == 1
        assert client.get('/api/admin/check', headers=admin_headers).get_json() == {'is_admin': False}

    def test_clear_session_without_token(self, client):
        response = client.get('/api/admin/clear-session')
        assert response.status_code == 200
        assert Token.query.count() == 0


class TestLockout:

    def test_account_locks_after_repeated_failures(self, client, admin_user):
        for _ in range(5):
            assert login(client, 'admin', 'Wrong#2024pass').status_code == 401

        user = User.query.filter_by(username='admin').one()
        assert user.is_locked()

        # the right password no longer helps while locked
        assert login(client, 'admin', ADMIN_PASSWORD).status_code == 401

    def test_success_resets_counter(self, client, admin_user):
        login(client, 'admin', 'Wrong#2024pass')
        login(client, 'admin', ADMIN_PASSWORD)
        assert User.query.filter_by(username='admin').one().failed_login_attempts == 0


class TestLoginThrottle:

    @pytest.fixture(autouse=True)
    def throttled(self, app):
        app.config['RATE_LIMIT_ENABLED'] = True
        reset_rate_limits()
        yield
        reset_rate_limits()

    def test_eleventh_attempt_is_rejected(self, client):
        statuses = [login(client, 'nobody@example.com', 'Whatever#1').status_code for _ in range(11)]
        assert statuses[:10] == [401] * 10
        assert statuses[10] == 429

    def test_throttle_is_per_path(self, client):
        for _ in range(10):
            login(client, 'nobody@example.com', 'Whatever#1')
        assert login(client, 'nobody@example.com', 'Whatever#1').get_json() == {'error': 'rate_limited'}
        assert client.get('/api/admin/check').status_code != 429

    def test_disabled_throttle_lets_everything_through(self, app, client):
        app.config['RATE_LIMIT_ENABLED'] = False
        statuses = {login(client, 'nobody@example.com', 'Whatever#1').status_code for _ in range(12)}
        assert statuses == {401}
