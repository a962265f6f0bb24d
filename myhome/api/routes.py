# /myhome/api/routes.py
from flask import current_app, jsonify

from . import api_bp
from myhome.extensions import limiter
from myhome.auth.gates import (
    authenticated, facility_scoped, require_facility_access, require_permission,
    require_role, require_self_or_admin,
)
from myhome.auth.roles import Role
from myhome.auth.sessions import session_manager
from myhome.utils.decorators import audit_log
from .controllers import auth_controller, user_controller, facility_controller


# --- Health ---
@api_bp.route('/health', methods=['GET'])
def health():
    return jsonify({
        'success': True,
        'data': {
            'status': 'ok',
            'environment': current_app.config.get('ENV_NAME'),
            'activeSessions': len(session_manager.store),
        }
    }), 200


# --- Authentication Endpoints ---
@api_bp.route('/auth/register', methods=['POST'])
@limiter.limit("20 per hour")
@authenticated
@require_role(Role.ADMIN)
@audit_log("USER_REGISTRATION", "users")
def register():
    return auth_controller.register_user()

@api_bp.route('/auth/login', methods=['POST'])
@limiter.limit("10 per minute")
@audit_log("USER_LOGIN", "authentication")
def login():
    return auth_controller.login_user()

@api_bp.route('/auth/refresh-token', methods=['POST'])
def refresh():
    return auth_controller.refresh_token()

@api_bp.route('/auth/logout', methods=['POST'])
@audit_log("USER_LOGOUT", "authentication")
def logout():
    return auth_controller.logout_user()

@api_bp.route('/auth/profile', methods=['GET'])
@authenticated
def profile():
    return auth_controller.get_profile()

@api_bp.route('/auth/forgot-password', methods=['POST'])
@limiter.limit("5 per hour")
@audit_log("FORGOT_PASSWORD", "authentication")
def forgot_password():
    return auth_controller.forgot_password()

@api_bp.route('/auth/reset-password', methods=['POST'])
@audit_log("RESET_PASSWORD", "authentication")
def reset_password():
    return auth_controller.reset_password()


# --- User Administration Endpoints ---
@api_bp.route('/users', methods=['GET'])
@authenticated
@require_permission('view_users')
@facility_scoped
@audit_log("VIEW_USERS", "users")
def get_users():
    return user_controller.get_all_users()

@api_bp.route('/users/<int:user_id>', methods=['GET'])
@authenticated
@require_self_or_admin()
@audit_log("VIEW_USER", "users")
def get_user(user_id):
    return user_controller.get_user_by_id(user_id)

@api_bp.route('/users/<int:user_id>', methods=['PUT'])
@authenticated
@require_self_or_admin()
@audit_log("UPDATE_PROFILE", "users")
def update_profile(user_id):
    return user_controller.update_profile(user_id)

@api_bp.route('/users/<int:user_id>/password', methods=['PUT'])
@authenticated
@require_self_or_admin()
@audit_log("PASSWORD_CHANGE", "users")
def change_password(user_id):
    return user_controller.change_password(user_id)

@api_bp.route('/users/<int:user_id>/role', methods=['PUT'])
@authenticated
@require_role(Role.ADMIN)
@audit_log("UPDATE_USER_ROLE", "users")
def update_user_role(user_id):
    return user_controller.update_user_role(user_id)

@api_bp.route('/users/<int:user_id>/deactivate', methods=['PUT'])
@authenticated
@require_role(Role.ADMIN)
@audit_log("DEACTIVATE_USER", "users")
def deactivate_user(user_id):
    return user_controller.deactivate_user(user_id)

@api_bp.route('/users/<int:user_id>/activate', methods=['PUT'])
@authenticated
@require_role(Role.ADMIN)
@audit_log("ACTIVATE_USER", "users")
def activate_user(user_id):
    return user_controller.activate_user(user_id)

@api_bp.route('/users/<int:user_id>/facility', methods=['PUT'])
@authenticated
@require_role(Role.ADMIN)
@audit_log("ASSIGN_USER_FACILITY", "users")
def assign_user_facility(user_id):
    return user_controller.assign_user_to_facility(user_id)

@api_bp.route('/users/<int:user_id>/facility', methods=['DELETE'])
@authenticated
@require_role(Role.ADMIN)
@audit_log("REMOVE_USER_FACILITY", "users")
def remove_user_facility(user_id):
    return user_controller.remove_user_from_facility(user_id)


# --- Facility Endpoints ---
@api_bp.route('/facilities', methods=['GET'])
@authenticated
@facility_scoped
def get_facilities():
    return facility_controller.get_accessible_facilities()

@api_bp.route('/facilities/<int:facility_id>', methods=['GET'])
@authenticated
@facility_scoped
@require_facility_access()
@audit_log("VIEW_FACILITY", "facilities")
def get_facility(facility_id):
    return facility_controller.get_facility(facility_id)
