"""Authentication utilities: password hashing and identity tokens."""
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from jose import JWTError, jwt

from timetracker.config import settings
from timetracker.models.user import Caller


def normalize_email(email: str) -> str:
    """Canonical form of an e-mail for storage and lookups."""
    return email.strip().lower()


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Example:
        >>> hashed = hash_password("mypassword123")
        >>> hashed.startswith("$2b$")
        True
    """
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a bcrypt hash."""
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


def create_access_token(
    user_id: str,
    email: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Issue a JWT carrying the user's id (``sub``) and e-mail.

    Args:
        user_id: User ID to encode in token
        email: User e-mail
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.jwt_expiration_minutes)

    to_encode = {
        "sub": user_id,
        "email": email,
        "exp": datetime.now(timezone.utc) + expires_delta,
    }
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_access_token(token: str) -> Caller:
    """
    Verify a JWT and turn it into the caller's session context.

    Args:
        token: JWT token string to verify

    Returns:
        Caller with user id and e-mail

    Raises:
        JWTError: If token is invalid, expired or has no subject

    Example:
        >>> token = create_access_token(user_id="user123", email="a@b.com")
        >>> verify_access_token(token).user_id
        'user123'
    """
    payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    user_id = payload.get("sub")
    if user_id is None:
        raise JWTError("Token payload missing 'sub' claim")

    return Caller(user_id=user_id, email=payload.get("email"))
