"""Password hashing, token primitives and RBAC request dependencies."""

import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from pds_api.core.config import settings
from pds_api.core.exceptions import AuthorizationError, InvalidTokenError, ValidationError
from pds_api.db.session import get_db
from pds_api.models.user import User

# bcrypt only ever reads the first 72 bytes; newer releases refuse anything longer
MAX_PASSWORD_BYTES = 72

# JWT bearer scheme
security_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt with a fresh salt."""
    pwd_bytes = password.encode("utf-8")
    if len(pwd_bytes) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must not exceed {MAX_PASSWORD_BYTES} bytes")
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    hashed = bcrypt.hashpw(pwd_bytes, salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


def token_claims(user: User) -> dict:
    return {"sub": user.id, "email": user.email, "role": user.role_name}


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(hours=settings.ACCESS_TOKEN_EXPIRY_HOURS)
    )
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Decode and validate a JWT access token.

    Raises:
        InvalidTokenError: If the signature, expiry or token type is wrong.
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise InvalidTokenError("Invalid or expired token")
    if payload.get("type") != "access" or not payload.get("sub"):
        raise InvalidTokenError("Invalid token payload")
    return payload


def generate_opaque_token(nbytes: int = 32) -> str:
    """Random hex token for refresh, verification and reset flows."""
    return secrets.token_hex(nbytes)


def hash_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the active user behind the Bearer access token."""
    if credentials is None:
        raise InvalidTokenError("Not authenticated")
    payload = decode_access_token(credentials.credentials)
    user = db.query(User).filter(User.id == payload["sub"]).first()
    if not user or not user.is_active:
        raise InvalidTokenError("User not found or inactive")
    return user


async def require_verified(user: User = Depends(get_current_user)) -> User:
    if not user.is_verified:
        raise AuthorizationError("Email verification required")
    return user


class RequireRole:
    """Dependency that checks if the user has a required role level."""

    ROLE_LEVELS = {
        "USER": 10,
        "HR": 50,
        "ADMIN": 100,
    }

    def __init__(self, min_role: str, message: str = "Insufficient permissions"):
        self.min_level = self.ROLE_LEVELS[min_role]
        self.message = message

    async def __call__(self, user: User = Depends(get_current_user)) -> User:
        if self.ROLE_LEVELS.get(user.role_name, 0) < self.min_level:
            raise AuthorizationError(self.message)
        return user


# Convenience dependency instances
require_hr = RequireRole("HR", "HR access required")
require_admin = RequireRole("ADMIN", "Admin access required")
