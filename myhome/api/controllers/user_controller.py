from datetime import date

from flask import current_app, request
from sqlalchemy.exc import IntegrityError

from myhome.auth import service as auth_service
from myhome.auth.credentials import verify_password
from myhome.auth.gates import current_facility_scope, current_principal
from myhome.auth.roles import Role
from myhome.auth.sessions import session_manager
from myhome.errors import (
    AccessDenied, DuplicateEmail, InvalidCredentials, InvalidFacility, ResourceNotFound, ValidationFailed,
)
from myhome.extensions import db
from myhome.models.facility_models import Facility
from myhome.models.user_models import User, UserProfile
from myhome.utils.responses import envelope
from myhome.utils.validation import (
    check_email, check_password, field_error, json_body, optional_int, require_fields,
)

MAX_PAGE_SIZE = 100

# JSON key -> UserProfile column
PROFILE_FIELDS = {
    'phone': 'phone',
    'address': 'address',
    'city': 'city',
    'state': 'state',
    'country': 'country',
    'postalCode': 'postal_code',
    'bio': 'bio',
    'avatarUrl': 'avatar_url',
}


def _get_user_or_404(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        raise ResourceNotFound('User not found')
    return user


def _page_args():
    try:
        page = max(int(request.args.get('page', 1)), 1)
        limit = min(max(int(request.args.get('limit', 20)), 1), MAX_PAGE_SIZE)
    except ValueError:
        raise ValidationFailed(errors=[field_error('page', 'page and limit must be integers')])
    return page, limit


def get_all_users():
    """Lists users visible under the caller's facility scope."""
    page, limit = _page_args()
    query = current_facility_scope().apply(User.query, User.facility_id)

    role = request.args.get('role')
    if role:
        if Role.parse(role) is None:
            raise ValidationFailed(errors=[field_error('role', 'Unknown role')])
        query = query.filter(User.role == role)

    total = query.count()
    users = query.order_by(User.id).offset((page - 1) * limit).limit(limit).all()
    return envelope(data={
        'users': [user.to_dict() for user in users],
        'pagination': {'page': page, 'limit': limit, 'total': total},
    })


def get_user_by_id(user_id):
    user = _get_user_or_404(user_id)
    return envelope(data={'user': user.to_dict()})


def update_profile(user_id):
    """Updates name, email and contact details. Only the keys present in the body change."""
    user = _get_user_or_404(user_id)
    data = json_body()

    if 'name' in data:
        name = str(data['name'] or '').strip()
        if not 2 <= len(name) <= 100:
            raise ValidationFailed(errors=[field_error('name', 'Name must be between 2 and 100 characters')])
        user.name = name

    if 'email' in data:
        check_email(data['email'])
        email = User.normalize_email(data['email'])
        taken = User.query.filter(User.email == email, User.id != user.id).first()
        if taken:
            raise DuplicateEmail('Email already in use')
        user.email = email

    if user.profile is None:
        user.profile = UserProfile()
    for key, column in PROFILE_FIELDS.items():
        if key in data:
            setattr(user.profile, column, data[key] or None)

    if 'dateOfBirth' in data:
        try:
            user.profile.date_of_birth = date.fromisoformat(data['dateOfBirth']) if data['dateOfBirth'] else None
        except (TypeError, ValueError):
            raise ValidationFailed(errors=[field_error('dateOfBirth', 'dateOfBirth must be a YYYY-MM-DD date')])

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateEmail('Email already in use')

    current_app.audit_logger.info(f"Action='UPDATE_PROFILE', UserID='{user.id}', By='{current_principal().id}'")
    return envelope('Profile updated successfully', {
        'user': user.to_dict(),
        'profile': user.profile.to_dict(),
    })


def change_password(user_id):
    user = _get_user_or_404(user_id)
    data = json_body()
    require_fields(data, ['newPassword'])
    check_password(data['newPassword'], field='newPassword')

    # Admins resetting someone else's password don't know the old one
    if current_principal().id == user.id:
        require_fields(data, ['currentPassword'])
        if not verify_password(data['currentPassword'], user.password_hash):
            raise InvalidCredentials('Current password is incorrect')

    auth_service.change_password(user, data['newPassword'])
    current_app.audit_logger.info(f"Action='PASSWORD_CHANGE', UserID='{user.id}', By='{current_principal().id}'")
    return envelope('Password changed successfully')


def update_user_role(user_id):
    user = _get_user_or_404(user_id)
    data = json_body()
    require_fields(data, ['role'])
    role = Role.parse(data['role'])
    if role is None:
        raise ValidationFailed(errors=[field_error('role', f"Role must be one of: {', '.join(Role.values())}")])

    user.role = role.value
    db.session.commit()
    return envelope('User role updated successfully', {'user': user.to_dict()})


def deactivate_user(user_id):
    user = _get_user_or_404(user_id)
    if user.id == current_principal().id:
        raise AccessDenied('You cannot deactivate your own account')

    user.is_active = False
    db.session.commit()
    session_manager.store.remove(user.id)
    return envelope('User deactivated successfully', {'user': user.to_dict()})


def activate_user(user_id):
    user = _get_user_or_404(user_id)
    user.is_active = True
    db.session.commit()
    return envelope('User activated successfully', {'user': user.to_dict()})


def assign_user_to_facility(user_id):
    user = _get_user_or_404(user_id)
    data = json_body()
    require_fields(data, ['facilityId'])
    facility = Facility.get_active(optional_int(data['facilityId'], 'facilityId'))
    if facility is None:
        raise InvalidFacility()

    user.facility_id = facility.id
    db.session.commit()
    return envelope('User assigned to facility successfully', {'user': user.to_dict()})


def remove_user_from_facility(user_id):
    user = _get_user_or_404(user_id)
    user.facility_id = None
    db.session.commit()
    return envelope('User removed from facility successfully', {'user': user.to_dict()})
