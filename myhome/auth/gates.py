# /myhome/auth/gates.py
"""
Request gates.

``authenticated`` verifies the bearer token and stores a typed ``Principal``
on ``flask.g``; every other gate only reads that principal (and the
``FacilityScope`` derived from it) and never looks at the token again.
Gates are plain view decorators and stack in the order they are applied:

    @api_bp.route('/users')
    @authenticated
    @require_permission('view_users')
    @facility_scoped
    def list_users(): ...
"""
from dataclasses import dataclass
from functools import wraps
from typing import Optional

from flask import current_app, g, request
from sqlalchemy.exc import SQLAlchemyError

from myhome.auth.facility_scope import FacilityScope, resolve_facility_scope
from myhome.auth.roles import Role, permission_registry
from myhome.auth.tokens import token_service
from myhome.errors import (
    AccessDenied, AccountDeactivated, InfrastructureError, InsufficientPermission,
    InsufficientRole, InvalidToken, MissingToken, Unauthenticated, UnknownIdentity,
)
from myhome.extensions import db
from myhome.models.user_models import User

BEARER_SCHEME = 'Bearer'


@dataclass(frozen=True)
class Principal:
    """The authenticated caller, as seen by the authorization gates."""
    id: int
    email: str
    role: str
    facility_id: Optional[int] = None

    @classmethod
    def from_user(cls, user):
        return cls(id=user.id, email=user.email, role=user.role, facility_id=user.facility_id)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value

    def to_dict(self):
        return {'id': self.id, 'email': self.email, 'role': self.role, 'facilityId': self.facility_id}


def extract_bearer_token(header_value) -> str:
    """Accepts exactly ``Bearer <token>``: case-sensitive scheme, one space, no further spaces."""
    if not header_value:
        raise MissingToken()
    scheme, separator, token = header_value.partition(' ')
    if scheme != BEARER_SCHEME or not separator or not token or ' ' in token:
        raise MissingToken()
    return token


def authenticate_header(header_value) -> Principal:
    """
    Runs the whole authentication check for one Authorization header value.

    Raises, in priority order: MissingToken, InvalidToken, ExpiredToken,
    UnknownIdentity, AccountDeactivated, InfrastructureError.
    """
    token = extract_bearer_token(header_value)
    payload = token_service.verify(token)
    if payload.is_refresh:
        # Refresh tokens only mint access tokens
        raise InvalidToken()

    try:
        user = db.session.get(User, payload.identity_id)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception(f'User lookup failed during authentication (user_id={payload.identity_id})')
        raise InfrastructureError()

    if user is None:
        raise UnknownIdentity()
    if not user.is_active:
        raise AccountDeactivated()
    return Principal.from_user(user)


def current_principal() -> Optional[Principal]:
    return g.get('principal')


def current_facility_scope() -> Optional[FacilityScope]:
    return g.get('facility_scope')


def _require_principal() -> Principal:
    principal = current_principal()
    if principal is None:
        raise Unauthenticated()
    return principal


# --- Checks (usable outside a decorator) ---

def check_role(principal, allowed_roles):
    if principal is None:
        raise Unauthenticated()
    allowed = {Role.parse(role) for role in allowed_roles}
    if Role.parse(principal.role) not in allowed:
        raise InsufficientRole()


def check_permission(principal, permission: str):
    if principal is None:
        raise Unauthenticated()
    if not permission_registry.has_permission(principal.role, permission):
        raise InsufficientPermission(permission)


def check_self_or_admin(principal, target_id):
    if principal is None:
        raise Unauthenticated()
    if principal.is_admin:
        return
    try:
        same_user = principal.id == int(target_id)
    except (TypeError, ValueError):
        same_user = False
    if not same_user:
        raise AccessDenied()


def check_facility_access(principal, facility_id, scope: FacilityScope):
    """Admins and doctors may open any facility; everyone else only the one in their scope."""
    if principal is None:
        raise Unauthenticated()
    role = Role.parse(principal.role)
    if role in (Role.ADMIN, Role.DOCTOR):
        return
    if facility_id is not None and not scope.allows(facility_id):
        if role is Role.SUPERVISOR:
            raise AccessDenied('Access denied: You can only access your owned facilities')
        raise AccessDenied('Access denied: You can only access your assigned facility')


# --- Decorators ---

def authenticated(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.principal = authenticate_header(request.headers.get('Authorization'))
        return f(*args, **kwargs)
    return decorated_function


def require_role(*allowed_roles):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            check_role(current_principal(), allowed_roles)
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def require_permission(permission):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            check_permission(current_principal(), permission)
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def require_self_or_admin(id_arg='user_id'):
    """Compares the principal with the URL parameter ``id_arg``."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            check_self_or_admin(current_principal(), kwargs.get(id_arg))
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def facility_scoped(f):
    """Derives the caller's FacilityScope and stores it on ``g`` for the data layer."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        principal = _require_principal()
        g.facility_scope = resolve_facility_scope(
            principal, fallback=current_app.config.get('FACILITY_SCOPE_FALLBACK', 'allow')
        )
        return f(*args, **kwargs)
    return decorated_function


def require_facility_access(id_arg='facility_id'):
    """Needs ``facility_scoped`` applied before it."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            scope = current_facility_scope()
            if scope is None:
                raise Unauthenticated()
            check_facility_access(current_principal(), kwargs.get(id_arg), scope)
            return f(*args, **kwargs)
        return decorated_function
    return decorator
