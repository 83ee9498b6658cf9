from datetime import datetime, timedelta, timezone
from typing import Dict, Optional
import logging

import bcrypt
from fastapi import HTTPException, status
from jose import jwt, JWTError
from jose.exceptions import ExpiredSignatureError

from ..config.settings import ACCESS_TOKEN_EXPIRE_MINUTES, JWT_ALGORITHM, JWT_SECRET_KEY
from ..core.errors import UnauthenticatedError

logger = logging.getLogger(__name__)

# bcrypt rejects longer inputs
MAX_PASSWORD_BYTES = 72


# ────────────────────────────────────────────────────────────────────
#  Password helpers
# ────────────────────────────────────────────────────────────────────
def _password_bytes(password: str) -> bytes:
    password_bytes = password.encode("utf-8")
    if len(password_bytes) > MAX_PASSWORD_BYTES:
        logger.warning("Password exceeds bcrypt 72-byte limit; truncating")
        return password_bytes[:MAX_PASSWORD_BYTES]
    return password_bytes


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(plain), hashed.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


# ────────────────────────────────────────────────────────────────────
#  Token helpers
# ────────────────────────────────────────────────────────────────────
def create_access_token(
    subject: str,
    extra_claims: Optional[Dict] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a new JWT access token.

    Args:
        subject: The profile id
        extra_claims: Additional payload fields
        expires_delta: Optional custom expiration time

    Returns:
        str: The encoded JWT token
    """
    if not subject:
        raise ValueError("subject must be provided")

    try:
        now = datetime.now(timezone.utc)
        data = {"sub": str(subject)}
        if extra_claims:
            data.update(extra_claims)

        expire = now + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
        data.update({"exp": expire, "iat": now})

        return jwt.encode(data, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)
    except Exception as e:
        logger.error(f"Token creation failed: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not create access token",
        )


def verify_token(token: str) -> Dict:
    """
    Verify and decode a JWT token.

    Raises:
        UnauthenticatedError: If the token is invalid, expired or incomplete
    """
    try:
        payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except ExpiredSignatureError:
        logger.warning("Authentication failed: token has expired")
        raise UnauthenticatedError("Token has expired")
    except JWTError as e:
        logger.warning(f"Token validation failed: {str(e)}")
        raise UnauthenticatedError("Invalid token")

    if not all(key in payload for key in ["sub", "exp", "iat"]):
        logger.warning("Authentication failed: token missing required claims")
        raise UnauthenticatedError("Token missing required claims")

    return payload
