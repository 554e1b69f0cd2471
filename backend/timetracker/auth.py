from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt
from passlib.context import CryptContext

from timetracker.config import settings


def build_pwd_context(rounds: Optional[int] = None) -> CryptContext:
    return CryptContext(
        schemes=["bcrypt"],
        deprecated="auto",
        bcrypt__rounds=rounds or settings.bcrypt_rounds,
    )


# Password hashing
pwd_context = build_pwd_context()


def verify_password(plain_password, hashed_password, context: Optional[CryptContext] = None) -> bool:
    if not hashed_password:
        return False
    try:
        return (context or pwd_context).verify(plain_password, hashed_password)
    except ValueError:
        # Not a recognizable bcrypt hash
        return False


def get_password_hash(password, context: Optional[CryptContext] = None) -> str:
    return (context or pwd_context).hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Claims of a valid token; raises jose.JWTError when invalid or expired."""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
