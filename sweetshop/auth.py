import time
from typing import NamedTuple, Optional

import jwt
from passlib.context import CryptContext

from .config import Settings
from .errors import InvalidTokenError, TokenExpiredError, TokenNotYetValidError

# Use pbkdf2_sha256 as default to avoid bcrypt 72-byte limitation in some envs
pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")

ALGORITHM = "HS256"


class Principal(NamedTuple):
    """Identity resolved from a verified access token."""
    user_id: int
    username: str
    role: str


def create_access_token(user, settings: Settings, expires_delta: Optional[int] = None) -> str:
    now = int(time.time())
    exp = now + (settings.jwt_expires_in if expires_delta is None else expires_delta)
    payload = {
        "sub": str(user.id),
        "username": user.username,
        "role": user.role,
        "iat": now,
        "nbf": now,
        "exp": exp,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=ALGORITHM)


def decode_access_token(token: str, settings: Settings) -> dict:
    """Verify signature and time claims, mapping each failure to its own error."""
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[ALGORITHM],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError("Token expired")
    except jwt.ImmatureSignatureError:
        raise TokenNotYetValidError("Token not yet valid")
    except jwt.InvalidSignatureError:
        raise InvalidTokenError("Invalid token signature")
    except jwt.PyJWTError:
        raise InvalidTokenError("Invalid token")


def principal_from_token(token: str, settings: Settings) -> Principal:
    payload = decode_access_token(token, settings)
    try:
        return Principal(int(payload["sub"]), payload.get("username", ""), payload.get("role", ""))
    except (TypeError, ValueError):
        raise InvalidTokenError("Invalid token")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)
