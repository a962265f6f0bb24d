# /myhome/auth/lockout.py
from flask import current_app

from myhome.utils.time_util import utcnow


class LockoutTracker:
    """
    Failed-login bookkeeping stored on the user row.

    A user is either unlocked with ``failed_login_attempts`` in ``0..N`` or
    locked until ``locked_until``. The tracker only mutates the user object;
    the caller holds the row lock and commits, so each transition is
    persisted atomically with the login attempt that caused it.
    """

    def __init__(self, max_attempts=None, lockout_duration=None):
        self._max_attempts = max_attempts
        self._lockout_duration = lockout_duration

    @property
    def max_attempts(self):
        if self._max_attempts is not None:
            return self._max_attempts
        return current_app.config['SECURITY_MAX_FAILED_ATTEMPTS']

    @property
    def lockout_duration(self):
        if self._lockout_duration is not None:
            return self._lockout_duration
        return current_app.config['SECURITY_LOCKOUT_DURATION']

    @staticmethod
    def is_locked(user, now=None) -> bool:
        now = now or utcnow()
        return user.locked_until is not None and now < user.locked_until

    def release_expired(self, user, now=None) -> bool:
        """An expired lock becomes a clean slate. Returns True when a lock was released."""
        now = now or utcnow()
        if user.locked_until is not None and now >= user.locked_until:
            user.locked_until = None
            user.failed_login_attempts = 0
            return True
        return False

    def record_failure(self, user, now=None) -> bool:
        """Counts a wrong password. Returns True when this failure locked the account."""
        user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
        return self.lock_if_exhausted(user, now)

    def lock_if_exhausted(self, user, now=None) -> bool:
        """Locks the account once the already-counted failures reach the threshold."""
        now = now or utcnow()
        if (user.failed_login_attempts or 0) >= self.max_attempts:
            user.locked_until = now + self.lockout_duration
            return True
        return False

    @staticmethod
    def record_success(user, now=None):
        user.failed_login_attempts = 0
        user.locked_until = None
        user.last_login = now or utcnow()

    @staticmethod
    def clear(user):
        user.failed_login_attempts = 0
        user.locked_until = None


lockout_tracker = LockoutTracker()
