# /myhome/utils/validation.py
import re
from flask import request

from myhome.auth.credentials import password_problems
from myhome.errors import ValidationFailed

EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


def json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return {}
    return data


def field_error(field, message):
    return {'field': field, 'message': message}


def require_fields(data, fields):
    missing = [field_error(field, f'{field} is required') for field in fields if data.get(field) in (None, '')]
    if missing:
        raise ValidationFailed(errors=missing)


def check_email(value, field='email'):
    if not isinstance(value, str) or not EMAIL_PATTERN.match(value.strip()):
        raise ValidationFailed(errors=[field_error(field, 'Please provide a valid email')])


def check_password(value, field='password'):
    problems = password_problems(value)
    if problems:
        raise ValidationFailed(errors=[field_error(field, problem) for problem in problems])


def optional_int(value, field):
    if value in (None, ''):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationFailed(errors=[field_error(field, f'{field} must be an integer')])
