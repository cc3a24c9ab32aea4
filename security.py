"""
Password hashing and bearer tokens.

Passwords are hashed with argon2id by default; bcrypt stays selectable through
PASSWORD_ALGO. The algorithm used is stored next to each hash so both verify.
Tokens are HS256 JWTs carrying the user id as ``sub``.
"""
import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional, Tuple

import jwt  # PyJWT
from argon2 import PasswordHasher as Argon2Hasher
from argon2.exceptions import InvalidHashError, VerificationError
from passlib.hash import bcrypt as bcrypt_hasher

from config import get_settings
from errors import TokenExpired, TokenInvalid

logger = logging.getLogger(__name__)

ALGORITHMS = ("argon2", "bcrypt")


@lru_cache
def _argon2(time_cost: int, memory_cost: int, parallelism: int) -> Argon2Hasher:
    return Argon2Hasher(time_cost=time_cost, memory_cost=memory_cost, parallelism=parallelism)


def argon2_hasher() -> Argon2Hasher:
    s = get_settings()
    return _argon2(s.argon2_time_cost, s.argon2_memory_cost, s.argon2_parallelism)


def hash_password(password: str, algo: Optional[str] = None) -> Tuple[str, str]:
    """Hash ``password`` and return ``(hash, algo_used)``."""
    settings = get_settings()
    algo = algo or settings.password_algo
    if algo not in ALGORITHMS:
        raise ValueError(f"Unknown password algorithm: {algo}")
    if algo == "bcrypt":
        return bcrypt_hasher.using(rounds=settings.bcrypt_rounds).hash(password), "bcrypt"
    return argon2_hasher().hash(password), "argon2"


def verify_password(password: str, password_hash: Optional[str], algo: str = "argon2") -> bool:
    if not password_hash:
        return False
    if algo == "bcrypt":
        try:
            return bcrypt_hasher.verify(password, password_hash)
        except ValueError:
            logger.warning("Malformed bcrypt hash encountered")
            return False
    try:
        return argon2_hasher().verify(password_hash, password)
    except VerificationError:
        return False
    except InvalidHashError:
        logger.warning("Malformed argon2 hash encountered")
        return False


def issue_token(user_id: str, minutes: Optional[int] = None) -> str:
    settings = get_settings()
    if minutes is None:
        minutes = settings.jwt_expire_min
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=minutes)
    payload = {"sub": str(user_id), "iat": int(now.timestamp()), "exp": int(exp.timestamp())}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> str:
    """Return the user id carried by ``token``.

    Raises:
        TokenExpired: the signature is valid but ``exp`` has passed
        TokenInvalid: bad signature, malformed token, or no subject
    """
    settings = get_settings()
    try:
        data = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpired()
    except jwt.InvalidTokenError:
        raise TokenInvalid()
    user_id = data.get("sub")
    if not isinstance(user_id, str) or not user_id:
        raise TokenInvalid()
    return user_id
