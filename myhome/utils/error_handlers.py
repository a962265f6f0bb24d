# /myhome/utils/error_handlers.py
from flask import jsonify, current_app
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from myhome.errors import APIError
from myhome.extensions import db


def _error_body(message, code, errors=None):
    body = {'success': False, 'message': message, 'code': code}
    if errors:
        body['errors'] = errors
    return body


def register_error_handlers(app):
    @app.errorhandler(APIError)
    def api_error(error):
        if error.status_code >= 500:
            db.session.rollback()
            current_app.logger.error(f"{error.code}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found(error):
        return jsonify(_error_body('Resource not found', 'NOT_FOUND')), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify(_error_body('Method not allowed', 'METHOD_NOT_ALLOWED')), 405

    @app.errorhandler(429)
    def rate_limited(error):
        return jsonify(_error_body('Too many requests, please try again later.', 'RATE_LIMITED')), 429

    @app.errorhandler(HTTPException)
    def http_error(error):
        return jsonify(_error_body(error.description or error.name, error.name.upper().replace(' ', '_'))), error.code

    @app.errorhandler(SQLAlchemyError)
    def database_error(error):
        db.session.rollback()
        current_app.logger.exception("Database error")
        current_app.audit_logger.error(f"Database error: {type(error).__name__}")
        return jsonify(_error_body('Internal server error', 'INFRASTRUCTURE_ERROR')), 500

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        current_app.audit_logger.error(f"Internal server error: {str(error)}")
        return jsonify(_error_body('Internal server error', 'INTERNAL_ERROR')), 500
