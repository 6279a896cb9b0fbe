"""
Security utilities for credential and address validation
"""
import re

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')

MIN_PASSWORD_LENGTH = 8


def validate_email(email: str) -> bool:
    """Validate email format"""
    return EMAIL_PATTERN.match(email or "") is not None


def normalize_email(email: str) -> str:
    """
    Strip and lowercase an email address after checking its format.

    Raises:
        ValueError: If the address is malformed
    """
    email = (email or "").strip().lower()
    if not validate_email(email):
        raise ValueError("Invalid email format")
    return email


def validate_password_strength(password: str) -> None:
    """
    Validate password strength.

    Enforces:
    - Non-empty
    - Minimum length: 8 characters

    Raises:
        ValueError: If password does not meet strength requirements
    """
    if not password:
        raise ValueError("Password cannot be empty")

    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
