# /myhome/auth/credentials.py
import string

from myhome.extensions import bcrypt

SPECIAL_CHARACTERS = '!@#$%^&*()_+-=[]{}|;:,.<>?'
MIN_PASSWORD_LENGTH = 8
# bcrypt only looks at the first 72 bytes
MAX_PASSWORD_BYTES = 72


def hash_password(password: str, rounds: int = None) -> str:
    """Salted bcrypt hash. The cost factor comes from BCRYPT_LOG_ROUNDS unless given."""
    return bcrypt.generate_password_hash(password, rounds).decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time check of ``password`` against a stored hash. Malformed hashes never match."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.check_password_hash(password_hash, password)
    except (ValueError, TypeError):
        return False


def password_problems(password) -> list:
    """Lists every complexity rule the password breaks; empty means acceptable."""
    if not isinstance(password, str):
        return ['Password is required']

    problems = []
    if len(password) < MIN_PASSWORD_LENGTH:
        problems.append(f'Password must be at least {MIN_PASSWORD_LENGTH} characters long')
    if len(password.encode('utf-8')) > MAX_PASSWORD_BYTES:
        problems.append(f'Password must be at most {MAX_PASSWORD_BYTES} bytes long')
    if not any(c in string.ascii_uppercase for c in password):
        problems.append('Password must contain at least one uppercase letter')
    if not any(c in string.ascii_lowercase for c in password):
        problems.append('Password must contain at least one lowercase letter')
    if not any(c.isdigit() for c in password):
        problems.append('Password must contain at least one number')
    if not any(c in SPECIAL_CHARACTERS for c in password):
        problems.append('Password must contain at least one special character')
    return problems
