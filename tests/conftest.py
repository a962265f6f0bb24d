import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from myhome import create_app  # noqa: E402
from myhome.auth.credentials import hash_password  # noqa: E402
from myhome.auth.tokens import token_service  # noqa: E402
from myhome.extensions import db  # noqa: E402
from myhome.models import Facility, User, UserProfile  # noqa: E402

DEFAULT_PASSWORD = 'Abcd123!'


@pytest.fixture
def app_config(tmp_path):
    """Per-test overrides on top of the testing configuration."""
    return {'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'myhome_test.db'}"}


@pytest.fixture
def app(app_config):
    app = create_app('testing', app_config)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    """Factory for persisted users; the password defaults to DEFAULT_PASSWORD."""
    counter = {'n': 0}

    def _make_user(email=None, password=DEFAULT_PASSWORD, role='caregiver', name='Test User',
                   facility_id=None, is_active=True):
        counter['n'] += 1
        user = User(
            email=User.normalize_email(email or f"user{counter['n']}@example.com"),
            password_hash=hash_password(password),
            name=name,
            role=role,
            facility_id=facility_id,
            is_active=is_active,
            failed_login_attempts=0,
        )
        user.profile = UserProfile()
        db.session.add(user)
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def make_facility(app):
    def _make_facility(name='Sunrise Care Home', owner_id=None, is_active=True):
        facility = Facility(name=name, owner_id=owner_id, is_active=is_active, status='active')
        db.session.add(facility)
        db.session.commit()
        return facility

    return _make_facility


@pytest.fixture
def admin(make_user):
    return make_user(email='admin@example.com', password='Admin123!', role='admin', name='Admin User')


@pytest.fixture
def auth_headers(app):
    """Builds an Authorization header carrying a fresh access token for ``user``."""
    def _auth_headers(user):
        return {'Authorization': f'Bearer {token_service.issue_access_token(user.id)}'}

    return _auth_headers


def reload_user(user_id):
    """Fresh copy of a user row, bypassing anything cached in the session."""
    db.session.expire_all()
    return db.session.get(User, user_id)
