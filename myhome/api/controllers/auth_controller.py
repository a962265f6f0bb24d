from flask import current_app
from sqlalchemy.exc import IntegrityError

from myhome.auth import service as auth_service
from myhome.auth.credentials import hash_password
from myhome.auth.gates import current_principal
from myhome.auth.roles import Role
from myhome.errors import DuplicateEmail, InvalidFacility, MissingToken, ResourceNotFound, ValidationFailed
from myhome.extensions import db
from myhome.models.facility_models import Facility
from myhome.models.user_models import User, UserProfile
from myhome.utils.responses import envelope
from myhome.utils.validation import (
    check_email, check_password, field_error, json_body, optional_int, require_fields,
)

RESET_REQUESTED_MESSAGE = 'If an account with that email exists, a password reset link has been sent'


def register_user():
    """Creates a staff account. Admin only (enforced by the route)."""
    data = json_body()
    require_fields(data, ['email', 'password', 'name'])
    check_email(data['email'])
    check_password(data['password'])

    name = str(data['name']).strip()
    if not 2 <= len(name) <= 100:
        raise ValidationFailed(errors=[field_error('name', 'Name must be between 2 and 100 characters')])

    role = Role.parse(data.get('role') or Role.CAREGIVER.value)
    if role is None:
        raise ValidationFailed(errors=[field_error('role', f"Role must be one of: {', '.join(Role.values())}")])

    facility_id = optional_int(data.get('facilityId'), 'facilityId')
    if facility_id is not None and Facility.get_active(facility_id) is None:
        raise InvalidFacility()

    email = User.normalize_email(data['email'])
    if User.find_by_email(email):
        raise DuplicateEmail()

    user = User(
        email=email,
        password_hash=hash_password(data['password']),
        name=name,
        role=role.value,
        facility_id=facility_id,
        is_active=True,
        email_verified=False,
    )
    user.profile = UserProfile()
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateEmail()

    current_app.audit_logger.info(
        f"Action='USER_REGISTRATION', UserID='{user.id}', CreatedBy='{current_principal().id}', Role='{user.role}'"
    )
    return envelope('User registered successfully', {'user': user.to_dict()}, 201)


def login_user():
    data = json_body()
    require_fields(data, ['email', 'password'])
    check_email(data['email'])

    result = auth_service.login(data['email'], data['password'])
    return envelope('Login successful', {
        'accessToken': result.tokens.access_token,
        'refreshToken': result.tokens.refresh_token,
        'user': result.user.to_dict(),
    })


def refresh_token():
    data = json_body()
    token = data.get('refreshToken')
    if not token:
        raise MissingToken('Refresh token required')

    access_token = auth_service.refresh(token)
    return envelope('Token refreshed successfully', {'accessToken': access_token})


def logout_user():
    auth_service.logout(json_body().get('refreshToken'))
    return envelope('Logout successful')


def get_profile():
    user = db.session.get(User, current_principal().id)
    if user is None:
        raise ResourceNotFound('User not found')

    return envelope(data={
        'user': user.to_dict(),
        'profile': user.profile.to_dict() if user.profile else None,
    })


def forgot_password():
    data = json_body()
    require_fields(data, ['email'])
    check_email(data['email'])

    token = auth_service.request_password_reset(data['email'])

    payload = None
    if token and current_app.config.get('EXPOSE_RESET_TOKENS'):
        payload = {'resetToken': token}
    return envelope(RESET_REQUESTED_MESSAGE, payload)


def reset_password():
    data = json_body()
    require_fields(data, ['token', 'newPassword'])
    check_password(data['newPassword'], field='newPassword')

    auth_service.reset_password(data['token'], data['newPassword'])
    return envelope('Password reset successfully')
