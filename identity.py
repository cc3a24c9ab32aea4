"""
Identity resolution for incoming requests.

Two modes, both stateless:

- mandatory (``require_identity``): any failure is a 401
- optional (``optional_identity``): any failure yields ANONYMOUS

The resolution itself (``resolve_user``) only needs a database handle and a
token string; the FastAPI dependencies at the bottom adapt it to requests.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pymongo.database import Database

from database import get_db
from errors import TokenInvalid, Unauthenticated
from security import verify_token

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """The caller of a request; ``user`` is None for anonymous callers."""

    user: Optional[Dict[str, Any]] = None

    @property
    def is_anonymous(self) -> bool:
        return self.user is None

    @property
    def id(self) -> Optional[ObjectId]:
        return self.user["_id"] if self.user else None


ANONYMOUS = Identity()


def resolve_user(db: Database, token: Optional[str]) -> Dict[str, Any]:
    """Resolve a bearer token to a user record without its password hash.

    Raises:
        Unauthenticated: no token, bad or expired token, or deleted user
    """
    if not token:
        raise Unauthenticated("No token provided, authorization denied")
    user_id = verify_token(token)
    try:
        oid = ObjectId(user_id)
    except InvalidId:
        raise TokenInvalid()
    user = db["users"].find_one({"_id": oid}, {"passwordHash": 0})
    if not user:
        raise Unauthenticated("User not found, authorization denied")
    return user


def resolve_identity(db: Database, token: Optional[str], optional: bool = False) -> Identity:
    try:
        return Identity(user=resolve_user(db, token))
    except Unauthenticated as exc:
        if not optional:
            raise
        logger.debug("Continuing anonymously: %s", exc.message)
        return ANONYMOUS


bearer = HTTPBearer(auto_error=False)


def require_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    db: Database = Depends(get_db),
) -> Identity:
    token = credentials.credentials if credentials else None
    return resolve_identity(db, token)


def optional_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    db: Database = Depends(get_db),
) -> Identity:
    token = credentials.credentials if credentials else None
    return resolve_identity(db, token, optional=True)
