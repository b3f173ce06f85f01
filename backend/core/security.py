"""
Password hashing and identity tokens.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from jose import JWTError
from jose import jwt as jose_jwt
from passlib.context import CryptContext

from core import config
from core.errors import AuthenticationError
from core.models import Role
from core.permissions import Actor

logger = logging.getLogger(__name__)

pwd_context = CryptContext(
    schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=config.BCRYPT_ROUNDS
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError) as e:
        logger.error(f"Password verification error: {e}")
        return False


def create_access_token(user_id: str, role: str, expires_delta: Optional[timedelta] = None) -> str:
    """Issue a signed token carrying the user id and role"""
    expire = datetime.utcnow() + (expires_delta or timedelta(days=config.JWT_EXPIRE_DAYS))
    to_encode = {"userId": user_id, "role": role, "exp": expire}
    return jose_jwt.encode(to_encode, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def verify_access_token(token: Optional[str]) -> Actor:
    """Decode a token into an Actor, raising AuthenticationError if unusable"""
    if not token:
        raise AuthenticationError("No token provided")

    try:
        payload = jose_jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
        return Actor(user_id=payload["userId"], role=Role(payload["role"]))
    except (JWTError, KeyError, ValueError) as e:
        logger.warning(f"JWT verification failed: {e}")
        raise AuthenticationError("Invalid token")
