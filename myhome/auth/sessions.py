# /myhome/auth/sessions.py
"""
Login sessions, one per user.

The default store lives in process memory: it is lost on restart and is not
shared between workers. Deployments with more than one process need a
``SessionStore`` backed by a shared service instead; the gates never read
sessions, so swapping the store does not change authorization.
"""
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from flask import current_app

from myhome.auth.tokens import TokenPair
from myhome.utils.time_util import utcnow

DEFAULT_SESSION_LIFETIME = timedelta(hours=24)


@dataclass(frozen=True)
class Session:
    user_id: int
    tokens: TokenPair
    created_at: datetime
    last_activity: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def to_dict(self):
        return {
            'userId': self.user_id,
            'createdAt': self.created_at.isoformat(),
            'lastActivity': self.last_activity.isoformat(),
            'expiresAt': self.expires_at.isoformat(),
        }


class SessionStore(ABC):
    """What the login, refresh and logout flows need from a session backend."""

    @abstractmethod
    def create(self, user_id: int, tokens: TokenPair) -> Session:
        """Starts a session, replacing any existing one for the user."""

    @abstractmethod
    def update(self, user_id: int, tokens: TokenPair) -> Optional[Session]:
        """Swaps in new tokens and bumps last activity. None when there is no session."""

    @abstractmethod
    def get(self, user_id: int) -> Optional[Session]:
        """The user's live session, if any."""

    @abstractmethod
    def remove(self, user_id: int) -> None:
        """Drops the user's session. Removing a missing session is not an error."""

    @abstractmethod
    def sweep(self) -> int:
        """Evicts expired sessions and returns how many were removed."""

    @abstractmethod
    def __len__(self) -> int:
        ...


class InMemorySessionStore(SessionStore):
    """
    Thread-safe dict keyed by user id.

    Every operation is a single short read-modify-write under one lock, so
    operations on the same user serialize (last writer wins) and no caller
    holds the lock while doing anything slow. Sessions are immutable values;
    readers never see a half-updated one.
    """

    def __init__(self, lifetime: timedelta = DEFAULT_SESSION_LIFETIME,
                 clock: Callable[[], datetime] = utcnow):
        self.lifetime = lifetime
        self.clock = clock
        self._sessions: Dict[int, Session] = {}
        self._lock = threading.Lock()

    def create(self, user_id, tokens):
        now = self.clock()
        session = Session(
            user_id=user_id,
            tokens=tokens,
            created_at=now,
            last_activity=now,
            expires_at=now + self.lifetime,
        )
        with self._lock:
            self._sessions[user_id] = session
        return session

    def update(self, user_id, tokens):
        now = self.clock()
        with self._lock:
            session = self._sessions.get(user_id)
            if session is None:
                return None
            session = replace(session, tokens=tokens, last_activity=now)
            self._sessions[user_id] = session
        return session

    def get(self, user_id):
        now = self.clock()
        with self._lock:
            session = self._sessions.get(user_id)
            if session is not None and session.is_expired(now):
                del self._sessions[user_id]
                return None
        return session

    def remove(self, user_id):
        with self._lock:
            self._sessions.pop(user_id, None)

    def sweep(self):
        now = self.clock()
        with self._lock:
            expired = [user_id for user_id, session in self._sessions.items() if session.is_expired(now)]
            for user_id in expired:
                del self._sessions[user_id]
        return len(expired)

    def __len__(self):
        with self._lock:
            return len(self._sessions)


class SessionSweeper:
    """Background thread that calls ``store.sweep()`` every ``interval`` seconds."""

    def __init__(self, store: SessionStore, interval: float, logger=None):
        self.store = store
        self.interval = interval
        self.logger = logger
        self._stop = threading.Event()
        self._thread = None

    def start(self):
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name='session-sweeper', daemon=True)
        self._thread.start()

    def stop(self, timeout=None):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self):
        while not self._stop.wait(self.interval):
            try:
                removed = self.store.sweep()
            except Exception:
                if self.logger:
                    self.logger.exception('Session sweep failed')
                continue
            if removed and self.logger:
                self.logger.info(f'Session sweep removed {removed} expired session(s)')


class SessionManager:
    """
    Binds one SessionStore per application.
    ``init_app`` accepts a store so tests and multi-process deployments can inject their own.
    """
    extension_key = 'myhome.sessions'

    def __init__(self, app=None, store=None):
        if app:
            self.init_app(app, store)

    def init_app(self, app, store: SessionStore = None):
        if store is None:
            store = InMemorySessionStore(lifetime=app.config.get('SESSION_LIFETIME', DEFAULT_SESSION_LIFETIME))
        sweeper = SessionSweeper(store, app.config.get('SESSION_SWEEP_INTERVAL', 3600), logger=app.logger)
        app.extensions[self.extension_key] = {'store': store, 'sweeper': sweeper}
        if app.config.get('SESSION_SWEEP_ENABLED'):
            sweeper.start()

    @property
    def store(self) -> SessionStore:
        return current_app.extensions[self.extension_key]['store']

    @property
    def sweeper(self) -> SessionSweeper:
        return current_app.extensions[self.extension_key]['sweeper']


session_manager = SessionManager()
