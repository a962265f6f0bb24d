"""End-to-end tests for the /api/auth endpoints."""

from datetime import timedelta

import pytest

from conftest import DEFAULT_PASSWORD, reload_user
from myhome.auth.sessions import session_manager
from myhome.auth.tokens import token_service
from myhome.extensions import db
from myhome.models import AuditLog, User
from myhome.utils.time_util import utcnow


def login(client, email, password=DEFAULT_PASSWORD):
    return client.post('/api/auth/login', json={'email': email, 'password': password})


class TestRegisterLoginLogout:
    def test_full_account_lifecycle(self, client, admin, auth_headers):
        registered = client.post('/api/auth/register', headers=auth_headers(admin), json={
            'email': 'c@x.com', 'password': 'Abcd123!', 'name': 'Carol Giver', 'role': 'caregiver',
        })
        assert registered.status_code == 201
        user = registered.get_json()['data']['user']
        assert user['email'] == 'c@x.com'
        assert user['role'] == 'caregiver'
        assert 'passwordHash' not in user and 'password_hash' not in user

        logged_in = login(client, 'c@x.com', 'Abcd123!')
        assert logged_in.status_code == 200
        body = logged_in.get_json()
        assert body['success'] is True
        tokens = body['data']
        assert tokens['user']['id'] == user['id']
        assert session_manager.store.get(user['id']) is not None

        profile = client.get('/api/auth/profile', headers={'Authorization': f"Bearer {tokens['accessToken']}"})
        assert profile.status_code == 200
        assert profile.get_json()['data']['user']['email'] == 'c@x.com'
        assert profile.get_json()['data']['profile'] is not None

        logged_out = client.post('/api/auth/logout', json={'refreshToken': tokens['refreshToken']})
        assert logged_out.status_code == 200
        assert session_manager.store.get(user['id']) is None

    def test_register_defaults_to_caregiver(self, client, admin, auth_headers):
        response = client.post('/api/auth/register', headers=auth_headers(admin), json={
            'email': 'Someone@X.com', 'password': 'Abcd123!', 'name': 'Some One',
        })

        user = response.get_json()['data']['user']
        assert user['role'] == 'caregiver'
        assert user['email'] == 'someone@x.com'

    def test_register_duplicate_email_is_conflict(self, client, admin, make_user, auth_headers):
        make_user(email='c@x.com')

        response = client.post('/api/auth/register', headers=auth_headers(admin), json={
            'email': 'C@x.com', 'password': 'Abcd123!', 'name': 'Carol Giver',
        })

        assert response.status_code == 409
        assert response.get_json()['code'] == 'DUPLICATE_EMAIL'

    def test_register_rejects_weak_password_and_bad_role(self, client, admin, auth_headers):
        weak = client.post('/api/auth/register', headers=auth_headers(admin), json={
            'email': 'c@x.com', 'password': 'password', 'name': 'Carol Giver',
        })
        bad_role = client.post('/api/auth/register', headers=auth_headers(admin), json={
            'email': 'c@x.com', 'password': 'Abcd123!', 'name': 'Carol Giver', 'role': 'janitor',
        })

        assert weak.status_code == 400
        assert {error['field'] for error in weak.get_json()['errors']} == {'password'}
        assert bad_role.status_code == 400
        assert User.query.filter_by(email='c@x.com').first() is None

    def test_register_rejects_unknown_facility(self, client, admin, auth_headers):
        response = client.post('/api/auth/register', headers=auth_headers(admin), json={
            'email': 'c@x.com', 'password': 'Abcd123!', 'name': 'Carol Giver', 'facilityId': 999,
        })

        assert response.status_code == 400
        assert response.get_json()['message'] == 'Invalid facility ID'

    def test_register_with_facility(self, client, admin, make_facility, auth_headers):
        facility = make_facility()

        response = client.post('/api/auth/register', headers=auth_headers(admin), json={
            'email': 'c@x.com', 'password': 'Abcd123!', 'name': 'Carol Giver', 'facilityId': facility.id,
        })

        assert response.status_code == 201
        assert response.get_json()['data']['user']['facilityId'] == facility.id

    def test_register_requires_authentication(self, client):
        response = client.post('/api/auth/register', json={
            'email': 'c@x.com', 'password': 'Abcd123!', 'name': 'Carol Giver',
        })

        assert response.status_code == 401


class TestLoginEndpoint:
    def test_missing_fields(self, client):
        response = client.post('/api/auth/login', json={})

        assert response.status_code == 400
        body = response.get_json()
        assert body['success'] is False
        assert {error['field'] for error in body['errors']} == {'email', 'password'}

    def test_wrong_password_and_unknown_email_look_the_same(self, client, make_user):
        make_user(email='c@x.com')

        wrong = login(client, 'c@x.com', 'Wrong123!')
        unknown = login(client, 'nobody@x.com', 'Wrong123!')

        assert wrong.status_code == unknown.status_code == 401
        assert wrong.get_json() == unknown.get_json()

    def test_locked_account_is_423(self, client, make_user):
        user = make_user(email='c@x.com')
        user.failed_login_attempts = 5
        user.locked_until = utcnow() + timedelta(minutes=30)
        db.session.commit()

        response = login(client, 'c@x.com')

        assert response.status_code == 423
        assert response.get_json()['code'] == 'ACCOUNT_LOCKED'

    def test_deactivated_account_is_401(self, client, make_user):
        make_user(email='c@x.com', is_active=False)

        response = login(client, 'c@x.com')

        assert response.status_code == 401
        assert response.get_json()['message'] == 'Account is deactivated'

    def test_login_records_last_login_and_audit_entry(self, client, make_user):
        user = make_user(email='c@x.com')

        login(client, 'c@x.com')

        assert reload_user(user.id).last_login is not None
        entry = AuditLog.query.filter_by(action='USER_LOGIN').one()
        assert entry.success is True


class TestRefreshEndpoint:
    def test_refresh_returns_new_access_token(self, client, make_user):
        user = make_user(email='c@x.com')
        tokens = login(client, 'c@x.com').get_json()['data']

        response = client.post('/api/auth/refresh-token', json={'refreshToken': tokens['refreshToken']})

        assert response.status_code == 200
        access_token = response.get_json()['data']['accessToken']
        assert token_service.verify(access_token).identity_id == user.id
        assert session_manager.store.get(user.id).tokens.access_token == access_token

    def test_access_token_cannot_be_used_to_refresh(self, client, make_user):
        make_user(email='c@x.com')
        tokens = login(client, 'c@x.com').get_json()['data']

        response = client.post('/api/auth/refresh-token', json={'refreshToken': tokens['accessToken']})

        assert response.status_code == 401
        assert response.get_json()['message'] == 'Invalid refresh token'

    def test_missing_refresh_token(self, client):
        response = client.post('/api/auth/refresh-token', json={})

        assert response.status_code == 401
        assert response.get_json()['message'] == 'Refresh token required'

    def test_refresh_for_deactivated_user_is_refused(self, client, make_user):
        user = make_user(email='c@x.com')
        tokens = login(client, 'c@x.com').get_json()['data']
        user.is_active = False
        db.session.commit()

        response = client.post('/api/auth/refresh-token', json={'refreshToken': tokens['refreshToken']})

        assert response.status_code == 401
        assert response.get_json()['code'] == 'ACCOUNT_DEACTIVATED'


class TestLogoutEndpoint:
    @pytest.mark.parametrize('payload', [{}, {'refreshToken': 'garbage'}, None])
    def test_logout_always_succeeds(self, client, payload):
        response = client.post('/api/auth/logout', json=payload)

        assert response.status_code == 200
        assert response.get_json() == {'success': True, 'message': 'Logout successful'}

    def test_access_token_stays_valid_after_logout(self, client, make_user):
        """Logout ends the session but does not revoke already issued access tokens."""
        make_user(email='c@x.com')
        tokens = login(client, 'c@x.com').get_json()['data']

        client.post('/api/auth/logout', json={'refreshToken': tokens['refreshToken']})
        profile = client.get('/api/auth/profile', headers={'Authorization': f"Bearer {tokens['accessToken']}"})

        assert profile.status_code == 200

    def test_access_token_does_not_end_the_session(self, client, make_user):
        user = make_user(email='c@x.com')
        tokens = login(client, 'c@x.com').get_json()['data']

        response = client.post('/api/auth/logout', json={'refreshToken': tokens['accessToken']})

        assert response.status_code == 200
        assert session_manager.store.get(user.id) is not None

    def test_refresh_token_ends_the_session(self, client, make_user):
        user = make_user(email='c@x.com')
        tokens = login(client, 'c@x.com').get_json()['data']

        client.post('/api/auth/logout', json={'refreshToken': tokens['refreshToken']})

        assert session_manager.store.get(user.id) is None


class TestEnvelope:
    def test_unknown_route_is_enveloped(self, client):
        response = client.get('/api/does-not-exist')

        assert response.status_code == 404
        assert response.get_json() == {'success': False, 'message': 'Resource not found', 'code': 'NOT_FOUND'}

    def test_wrong_method_is_enveloped(self, client):
        response = client.get('/api/auth/login')

        assert response.status_code == 405
        assert response.get_json()['success'] is False

    def test_health(self, client):
        response = client.get('/api/health')

        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['status'] == 'ok'
        assert data['environment'] == 'testing'
        assert data['activeSessions'] == 0
