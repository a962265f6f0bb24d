# /myhome/errors.py
"""Error taxonomy for the API.

Every failure a gate, service or controller can report is an ``APIError``.
The handlers in ``myhome.utils.error_handlers`` turn them into the uniform
response envelope, so callers only ever ``raise``.
"""


class APIError(Exception):
    status_code = 500
    code = 'INTERNAL_ERROR'
    message = 'Internal server error'

    def __init__(self, message=None, errors=None):
        super().__init__(message or self.message)
        if message:
            self.message = message
        self.errors = errors

    def to_dict(self):
        body = {'success': False, 'message': self.message, 'code': self.code}
        if self.errors:
            body['errors'] = self.errors
        return body


# --- Authentication (401) ---

class MissingToken(APIError):
    status_code = 401
    code = 'MISSING_TOKEN'
    message = 'Access token required'


class InvalidToken(APIError):
    status_code = 401
    code = 'INVALID_TOKEN'
    message = 'Invalid token'


class ExpiredToken(APIError):
    status_code = 401
    code = 'TOKEN_EXPIRED'
    message = 'Token expired'


class UnknownIdentity(APIError):
    status_code = 401
    code = 'UNKNOWN_IDENTITY'
    message = 'User not found'


class AccountDeactivated(APIError):
    status_code = 401
    code = 'ACCOUNT_DEACTIVATED'
    message = 'Account is deactivated'


class InvalidCredentials(APIError):
    status_code = 401
    code = 'INVALID_CREDENTIALS'
    message = 'Invalid credentials'


class Unauthenticated(APIError):
    status_code = 401
    code = 'UNAUTHENTICATED'
    message = 'Authentication required'


class AccountLocked(APIError):
    status_code = 423
    code = 'ACCOUNT_LOCKED'
    message = 'Account is temporarily locked due to multiple failed login attempts'


# --- Authorization (403) ---

class InsufficientRole(APIError):
    status_code = 403
    code = 'INSUFFICIENT_ROLE'
    message = 'Insufficient permissions'


class InsufficientPermission(APIError):
    status_code = 403
    code = 'INSUFFICIENT_PERMISSION'

    def __init__(self, permission):
        super().__init__(f"Permission '{permission}' required")
        self.permission = permission


class AccessDenied(APIError):
    status_code = 403
    code = 'ACCESS_DENIED'
    message = 'Access denied'


# --- Request problems ---

class ValidationFailed(APIError):
    status_code = 400
    code = 'VALIDATION_FAILED'
    message = 'Validation failed'


class InvalidOrExpiredResetToken(APIError):
    status_code = 400
    code = 'INVALID_RESET_TOKEN'
    message = 'Invalid or expired reset token'


class InvalidFacility(APIError):
    status_code = 400
    code = 'INVALID_FACILITY'
    message = 'Invalid facility ID'


class ResourceNotFound(APIError):
    status_code = 404
    code = 'NOT_FOUND'
    message = 'Resource not found'


class DuplicateEmail(APIError):
    status_code = 409
    code = 'DUPLICATE_EMAIL'
    message = 'User with this email already exists'


class InfrastructureError(APIError):
    status_code = 500
    code = 'INFRASTRUCTURE_ERROR'
    message = 'Authentication error'
