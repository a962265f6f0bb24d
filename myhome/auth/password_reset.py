# /myhome/auth/password_reset.py
import hashlib
import secrets

from flask import current_app

from myhome.auth.credentials import hash_password
from myhome.auth.lockout import LockoutTracker
from myhome.errors import InvalidOrExpiredResetToken
from myhome.extensions import db
from myhome.models.system_models import PasswordResetToken
from myhome.models.user_models import User
from myhome.utils.time_util import utcnow

# 32 random bytes = 256 bits of entropy
TOKEN_BYTES = 32


def digest_token(token: str) -> str:
    """Creates a SHA-256 hash for a reset token value."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


class PasswordResetService:
    """
    Single-use, time-limited password reset tokens.

    Issuing never revokes earlier tokens for the same user; each one is
    independently usable once until it expires.
    """

    def __init__(self, ttl=None):
        self._ttl = ttl

    @property
    def ttl(self):
        if self._ttl is not None:
            return self._ttl
        return current_app.config['PASSWORD_RESET_TOKEN_TTL']

    def issue(self, user: User, now=None) -> str:
        """Persists a new token for ``user`` and returns its raw value."""
        now = now or utcnow()
        token = secrets.token_hex(TOKEN_BYTES)
        db.session.add(PasswordResetToken(
            user_id=user.id,
            token_hash=digest_token(token),
            expires_at=now + self.ttl,
            used=False,
        ))
        db.session.commit()
        return token

    def consume(self, token: str, new_password: str, now=None) -> int:
        """
        Spends ``token`` and sets the owner's new password in one transaction.

        The token is claimed with a conditional UPDATE, so of two concurrent
        calls with the same token exactly one sees a matched row. Any lockout
        on the account is cleared as well.

        Returns:
            The id of the user whose password was reset.
        Raises:
            InvalidOrExpiredResetToken: unknown, used or expired token.
        """
        if not token or not isinstance(token, str):
            raise InvalidOrExpiredResetToken()

        now = now or utcnow()
        token_hash = digest_token(token)
        # Hash before claiming the token so the transaction stays short
        password_hash = hash_password(new_password)

        try:
            claimed = db.session.execute(
                db.update(PasswordResetToken)
                .where(
                    PasswordResetToken.token_hash == token_hash,
                    PasswordResetToken.used.is_(False),
                    PasswordResetToken.expires_at > now,
                )
                .values(used=True, used_at=now)
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount != 1:
                db.session.rollback()
                raise InvalidOrExpiredResetToken()

            user_id = db.session.execute(
                db.select(PasswordResetToken.user_id).where(PasswordResetToken.token_hash == token_hash)
            ).scalar_one()
            user = db.session.get(User, user_id, with_for_update=True)
            if user is None:
                db.session.rollback()
                raise InvalidOrExpiredResetToken()

            user.password_hash = password_hash
            user.password_changed_at = now
            LockoutTracker.clear(user)
            db.session.commit()
        except InvalidOrExpiredResetToken:
            raise
        except Exception:
            db.session.rollback()
            raise
        return user_id


password_reset_service = PasswordResetService()
