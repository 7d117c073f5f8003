"""
Security utilities for account input validation
"""
import re

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')

MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_LENGTH = 128


def validate_email(email: str) -> bool:
    """Validate email format"""
    return bool(email) and EMAIL_PATTERN.match(email) is not None


def validate_password_strength(password: str) -> None:
    """
    Validate password according to account requirements.

    Enforces:
    - Minimum length: 6 characters
    - Maximum length: 128 characters (bounds hashing work per request)

    Args:
        password: Password string to validate

    Raises:
        ValueError: If password does not meet requirements
    """
    if not password:
        raise ValueError("Password cannot be empty")

    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")

    if len(password) > MAX_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_LENGTH} characters long")
