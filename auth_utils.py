"""
Authentication utilities: Password hashing and JWT token management
"""

import jwt
from datetime import timedelta
from passlib.context import CryptContext
from typing import Optional

from config import settings
from utils.shared_utils import utcnow

# Password hashing context
pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto"
)

# JWT configuration
ALGORITHM = "HS256"


def hash_password(password: str) -> str:
    """Hash a password using argon2"""
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash"""
    return pwd_context.verify(password, password_hash)


def _require_secret() -> str:
    if not settings.jwt_secret_key:
        raise ValueError("JWT_SECRET_KEY is not set. Cannot sign or verify JWT tokens.")
    return settings.jwt_secret_key


def create_jwt(
    user_id: int,
    email: str,
    expires_in: Optional[timedelta] = None,
    original_admin_id: Optional[int] = None,
) -> str:
    """
    Create a signed JWT for a user.

    Passing original_admin_id marks the token as an admin "switch user"
    session: the payload then carries admin_switched=True and the id of the
    admin who issued it.
    """
    secret = _require_secret()
    expires_in = expires_in or timedelta(days=settings.jwt_expire_days)

    payload = {
        "sub": str(user_id),
        "email": email,
        "exp": utcnow() + expires_in,
    }
    if original_admin_id is not None:
        payload["admin_switched"] = True
        payload["original_admin_id"] = str(original_admin_id)
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def decode_jwt(token: str) -> Optional[dict]:
    """Decode a JWT token. Returns None if invalid or expired."""
    secret = _require_secret()

    try:
        return jwt.decode(token, secret, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def create_expired_jwt(user_id: int, email: str, expired_seconds_ago: int = 1) -> str:
    """
    Create an expired JWT token for testing purposes.

    Raises:
        ValueError: If JWT_SECRET_KEY is not set
    """
    return create_jwt(user_id, email, expires_in=timedelta(seconds=-expired_seconds_ago))
