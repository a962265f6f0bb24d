"""Tests for single-use reset tokens and the forgot/reset password endpoints."""

import threading
from datetime import datetime, timedelta

import pytest

from conftest import DEFAULT_PASSWORD, reload_user
from myhome.api.controllers.auth_controller import RESET_REQUESTED_MESSAGE
from myhome.auth import service as auth_service
from myhome.auth.credentials import verify_password
from myhome.auth.password_reset import digest_token, password_reset_service
from myhome.auth.sessions import session_manager
from myhome.errors import InvalidOrExpiredResetToken
from myhome.extensions import db
from myhome.models import PasswordResetToken

T0 = datetime(2026, 1, 5, 9, 0, 0)
NEW_PASSWORD = 'Newpass1!'


class TestResetTokenService:
    def test_token_is_stored_as_digest_only(self, make_user):
        user = make_user()

        token = password_reset_service.issue(user, now=T0)

        row = db.session.execute(db.select(PasswordResetToken)).scalar_one()
        assert len(token) == 64
        assert row.token_hash == digest_token(token)
        assert row.token_hash != token
        assert row.expires_at == T0 + timedelta(hours=1)
        assert row.used is False

    def test_consume_sets_password_and_marks_token_used(self, make_user):
        user = make_user()
        token = password_reset_service.issue(user, now=T0)

        user_id = password_reset_service.consume(token, NEW_PASSWORD, now=T0 + timedelta(minutes=10))

        assert user_id == user.id
        stored = reload_user(user.id)
        assert verify_password(NEW_PASSWORD, stored.password_hash)
        assert not verify_password(DEFAULT_PASSWORD, stored.password_hash)
        assert stored.password_changed_at == T0 + timedelta(minutes=10)
        row = db.session.execute(db.select(PasswordResetToken)).scalar_one()
        assert row.used is True
        assert row.used_at == T0 + timedelta(minutes=10)

    def test_token_can_only_be_used_once(self, make_user):
        user = make_user()
        token = password_reset_service.issue(user, now=T0)
        password_reset_service.consume(token, NEW_PASSWORD, now=T0)

        with pytest.raises(InvalidOrExpiredResetToken):
            password_reset_service.consume(token, 'Another1!', now=T0)

        assert verify_password(NEW_PASSWORD, reload_user(user.id).password_hash)

    def test_expired_token_is_rejected(self, make_user):
        user = make_user()
        token = password_reset_service.issue(user, now=T0)

        with pytest.raises(InvalidOrExpiredResetToken):
            password_reset_service.consume(token, NEW_PASSWORD, now=T0 + timedelta(hours=1))

        assert verify_password(DEFAULT_PASSWORD, reload_user(user.id).password_hash)

    @pytest.mark.parametrize('token', ['', None, 'not-a-real-token'])
    def test_unknown_token_is_rejected(self, app, token):
        with pytest.raises(InvalidOrExpiredResetToken):
            password_reset_service.consume(token, NEW_PASSWORD, now=T0)

    def test_earlier_tokens_stay_valid(self, make_user):
        """Issuing a new token does not revoke the previous ones."""
        user = make_user()
        first = password_reset_service.issue(user, now=T0)
        second = password_reset_service.issue(user, now=T0)

        password_reset_service.consume(second, NEW_PASSWORD, now=T0)
        password_reset_service.consume(first, 'Another1!', now=T0)

        assert verify_password('Another1!', reload_user(user.id).password_hash)

    def test_reset_clears_lockout(self, make_user):
        user = make_user()
        user.failed_login_attempts = 5
        user.locked_until = T0 + timedelta(minutes=30)
        db.session.commit()
        token = password_reset_service.issue(user, now=T0)

        password_reset_service.consume(token, NEW_PASSWORD, now=T0 + timedelta(minutes=1))

        stored = reload_user(user.id)
        assert stored.failed_login_attempts == 0
        assert stored.locked_until is None

    def test_reset_closes_the_session(self, make_user):
        user = make_user(email='c@x.com')
        auth_service.login('c@x.com', DEFAULT_PASSWORD)
        assert session_manager.store.get(user.id) is not None
        token = password_reset_service.issue(user)

        auth_service.reset_password(token, NEW_PASSWORD)

        assert session_manager.store.get(user.id) is None


class TestForgotPasswordEndpoint:
    def test_known_and_unknown_emails_get_the_same_answer(self, client, make_user):
        make_user(email='c@x.com')

        known = client.post('/api/auth/forgot-password', json={'email': 'c@x.com'})
        unknown = client.post('/api/auth/forgot-password', json={'email': 'nobody@x.com'})

        assert known.status_code == unknown.status_code == 200
        assert known.get_json() == unknown.get_json()
        assert known.get_json()['message'] == RESET_REQUESTED_MESSAGE
        assert 'resetToken' not in (known.get_json().get('data') or {})

    def test_inactive_account_gets_no_token(self, client, make_user):
        make_user(email='c@x.com', is_active=False)

        client.post('/api/auth/forgot-password', json={'email': 'c@x.com'})

        assert db.session.execute(db.select(PasswordResetToken)).first() is None

    def test_invalid_email_is_a_validation_error(self, client):
        response = client.post('/api/auth/forgot-password', json={'email': 'not-an-email'})

        assert response.status_code == 400
        assert response.get_json()['code'] == 'VALIDATION_FAILED'


class TestExposedResetTokens:
    @pytest.fixture
    def app_config(self, tmp_path):
        return {
            'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'myhome_test.db'}",
            'EXPOSE_RESET_TOKENS': True,
        }

    def test_token_is_echoed_and_resets_the_password(self, client, make_user):
        user = make_user(email='c@x.com')

        forgot = client.post('/api/auth/forgot-password', json={'email': 'c@x.com'})
        token = forgot.get_json()['data']['resetToken']
        reset = client.post('/api/auth/reset-password', json={'token': token, 'newPassword': NEW_PASSWORD})
        again = client.post('/api/auth/reset-password', json={'token': token, 'newPassword': 'Another1!'})

        assert reset.status_code == 200
        assert again.status_code == 400
        assert again.get_json()['message'] == 'Invalid or expired reset token'
        assert verify_password(NEW_PASSWORD, reload_user(user.id).password_hash)

    def test_unknown_email_still_has_no_token(self, client):
        response = client.post('/api/auth/forgot-password', json={'email': 'nobody@x.com'})

        assert response.get_json().get('data') is None


class TestResetPasswordEndpoint:
    def test_weak_password_is_rejected_before_the_token_is_spent(self, client, make_user):
        user = make_user()
        token = password_reset_service.issue(user)

        weak = client.post('/api/auth/reset-password', json={'token': token, 'newPassword': 'weak'})
        strong = client.post('/api/auth/reset-password', json={'token': token, 'newPassword': NEW_PASSWORD})

        assert weak.status_code == 400
        assert weak.get_json()['code'] == 'VALIDATION_FAILED'
        assert strong.status_code == 200

    def test_missing_fields(self, client):
        response = client.post('/api/auth/reset-password', json={})

        assert response.status_code == 400
        fields = {error['field'] for error in response.get_json()['errors']}
        assert fields == {'token', 'newPassword'}


class TestConcurrentConsume:
    def test_racing_consumers_spend_the_token_once(self, app, make_user):
        user = make_user()
        token = password_reset_service.issue(user, now=T0)
        user_id = user.id
        db.session.commit()

        barrier = threading.Barrier(2)
        results = []

        def consume(new_password):
            with app.app_context():
                barrier.wait()
                try:
                    password_reset_service.consume(token, new_password, now=T0)
                    results.append('ok')
                except InvalidOrExpiredResetToken:
                    results.append('invalid')

        threads = [threading.Thread(target=consume, args=(pw,)) for pw in (NEW_PASSWORD, 'Another1!')]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert sorted(results) == ['invalid', 'ok']
        stored = reload_user(user_id)
        matches = [verify_password(pw, stored.password_hash) for pw in (NEW_PASSWORD, 'Another1!')]
        assert matches.count(True) == 1
