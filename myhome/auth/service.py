# /myhome/auth/service.py
"""Login, refresh, logout and password-reset flows built on the auth components."""
import secrets
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from flask import current_app
from sqlalchemy import func

from myhome.auth.credentials import hash_password, verify_password
from myhome.auth.lockout import lockout_tracker
from myhome.auth.password_reset import password_reset_service
from myhome.auth.sessions import session_manager
from myhome.auth.tokens import TokenPair, token_service
from myhome.errors import (
    AccountDeactivated, AccountLocked, APIError, InvalidCredentials, InvalidToken,
)
from myhome.extensions import db
from myhome.models.user_models import User
from myhome.utils.email_util import send_password_reset_email
from myhome.utils.time_util import utcnow


@lru_cache(maxsize=1)
def _dummy_hash():
    """Checked against when the email is unknown so both paths cost one bcrypt comparison."""
    return hash_password(secrets.token_hex(16))


def _count_failed_attempt(user):
    """
    Increments the failure counter in SQL and reloads it.
    The UPDATE holds the row's write lock until commit, also on backends
    where SELECT ... FOR UPDATE is a no-op (SQLite).
    """
    db.session.execute(
        db.update(User)
        .where(User.id == user.id)
        .values(failed_login_attempts=func.coalesce(User.failed_login_attempts, 0) + 1)
        .execution_options(synchronize_session=False)
    )
    db.session.refresh(user, ['failed_login_attempts'])


@dataclass
class LoginResult:
    user: User
    tokens: TokenPair


def login(email: str, password: str, now=None) -> LoginResult:
    """
    Verifies credentials under the lockout rules and opens a session.

    The user row is locked for the duration of the check and the failure
    counter is incremented in SQL, so concurrent failures for one account
    cannot lose counter updates.
    """
    now = now or utcnow()
    audit = current_app.audit_logger

    user = User.find_by_email(email, for_update=True)
    if user is None:
        verify_password(password, _dummy_hash())
        db.session.rollback()
        audit.info(f"Action='LOGIN', Email='{User.normalize_email(email)}', Success='False', Details='unknown email'")
        raise InvalidCredentials()

    released = lockout_tracker.release_expired(user, now)

    if lockout_tracker.is_locked(user, now):
        db.session.rollback()
        audit.warning(f"Action='LOGIN', UserID='{user.id}', Success='False', Details='account locked'")
        raise AccountLocked()

    if not user.is_active:
        if released:
            db.session.commit()
        else:
            db.session.rollback()
        audit.info(f"Action='LOGIN', UserID='{user.id}', Success='False', Details='account deactivated'")
        raise AccountDeactivated()

    if not verify_password(password, user.password_hash):
        _count_failed_attempt(user)
        locked = lockout_tracker.lock_if_exhausted(user, now)
        attempts = user.failed_login_attempts
        user_id = user.id
        db.session.commit()
        if locked:
            audit.warning(f"Action='LOGIN', UserID='{user_id}', Success='False', Details='locked after {attempts} failed attempts'")
        else:
            audit.info(f"Action='LOGIN', UserID='{user_id}', Success='False', Details='bad password ({attempts} failed attempts)'")
        raise InvalidCredentials()

    lockout_tracker.record_success(user, now)
    db.session.commit()

    tokens = token_service.issue_pair(user.id)
    session_manager.store.create(user.id, tokens)
    audit.info(f"Action='LOGIN', UserID='{user.id}', Success='True'")
    return LoginResult(user=user, tokens=tokens)


def refresh(refresh_token: str) -> str:
    """New access token for a valid refresh token whose owner is still active."""
    identity_id, access_token = token_service.refresh_access_token(refresh_token)

    user = db.session.get(User, identity_id)
    if user is None:
        raise InvalidToken('Invalid refresh token')
    if not user.is_active:
        raise AccountDeactivated()

    session_manager.store.update(identity_id, TokenPair(access_token=access_token, refresh_token=refresh_token))
    return access_token


def logout(refresh_token: Optional[str]) -> bool:
    """Best-effort session removal. Returns True when a token identified the session."""
    if not refresh_token:
        return False
    try:
        payload = token_service.verify(refresh_token)
    except APIError as e:
        current_app.logger.info(f'Logout with unusable refresh token: {e.message}')
        return False
    if not payload.is_refresh:
        current_app.logger.info(f'Logout with a {payload.token_type} token ignored (user_id={payload.identity_id})')
        return False
    session_manager.store.remove(payload.identity_id)
    current_app.audit_logger.info(f"Action='LOGOUT', UserID='{payload.identity_id}', Success='True'")
    return True


def request_password_reset(email: str) -> Optional[str]:
    """
    Issues and mails a reset token when ``email`` belongs to an active user.
    Returns the raw token, or None. Callers must answer identically either way.
    """
    user = User.find_by_email(email)
    if user is None or not user.is_active:
        current_app.audit_logger.info(
            f"Action='FORGOT_PASSWORD', Email='{User.normalize_email(email)}', Success='False', Details='no active account'"
        )
        return None

    token = password_reset_service.issue(user)
    send_password_reset_email(user.email, user.name, token)
    current_app.audit_logger.info(f"Action='FORGOT_PASSWORD', UserID='{user.id}', Success='True'")
    if current_app.config.get('EXPOSE_RESET_TOKENS'):
        current_app.logger.debug(f'Password reset token for {user.email}: {token}')
    return token


def reset_password(token: str, new_password: str) -> int:
    user_id = password_reset_service.consume(token, new_password)
    # Old tokens stay valid until expiry, but the current session is closed
    session_manager.store.remove(user_id)
    current_app.audit_logger.info(f"Action='RESET_PASSWORD', UserID='{user_id}', Success='True'")
    return user_id


def change_password(user: User, new_password: str):
    user.password_hash = hash_password(new_password)
    user.password_changed_at = utcnow()
    db.session.commit()
    session_manager.store.remove(user.id)
