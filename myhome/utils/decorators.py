from functools import wraps
from flask import request, current_app, make_response
from sqlalchemy.exc import SQLAlchemyError

from myhome.auth.gates import current_principal
from myhome.errors import APIError
from myhome.extensions import db
from myhome.models.system_models import AuditLog


def _write_audit_entry(user_id, action, resource, resource_id, success, details):
    log_entry = AuditLog(
        user_id=user_id,
        action=action,
        resource=resource,
        resource_id=resource_id,
        ip_address=request.remote_addr,
        user_agent=(request.headers.get('User-Agent') or '')[:255],
        success=success,
        details=details
    )
    try:
        db.session.add(log_entry)
        db.session.commit()
    except SQLAlchemyError as db_error:
        db.session.rollback()
        current_app.audit_logger.error(f"Failed to log audit entry due to DB error: {db_error}")


def audit_log(action, resource):
    """
    Records every call of the decorated view in the audit trail.
    Place it below ``authenticated`` so the caller's id is known.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            principal = current_principal()
            user_id = principal.id if principal else None
            resource_id = next((str(value) for key, value in kwargs.items() if key.endswith('_id')), None)

            try:
                response = make_response(f(*args, **kwargs))
            except APIError as e:
                details = f"Rejected: {e.code} ({e.status_code})"
                _write_audit_entry(user_id, action, resource, resource_id, False, details)
                current_app.audit_logger.info(
                    f"Action='{action}', Resource='{resource}', UserID='{user_id}', Success='False', Details='{details}'"
                )
                raise
            except Exception as e:
                details = f"An error occurred: {type(e).__name__}"
                db.session.rollback()
                _write_audit_entry(user_id, action, resource, resource_id, False, details)
                current_app.audit_logger.error(
                    f"Action='{action}', Resource='{resource}', UserID='{user_id}', Success='False', Details='{details}'"
                )
                raise

            success = response.status_code < 400
            details = f"Request completed. Status: {response.status_code}"
            _write_audit_entry(user_id, action, resource, resource_id, success, details)
            current_app.audit_logger.info(
                f"Action='{action}', Resource='{resource}', UserID='{user_id}', Success='{success}', Details='{details}'"
            )
            return response

        return decorated_function
    return decorator
