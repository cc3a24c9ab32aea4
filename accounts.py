"""
User registration, credential verification and profile updates.

Uniqueness of username and email is enforced by unique indexes on the users
collection; the lookups below only pick the friendlier error message.
"""
import logging
from typing import Any, Dict, Optional, Tuple

from bson import ObjectId
from email_validator import EmailNotValidError, validate_email
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from errors import DuplicateIdentity, InvalidCredential, NotFound, WeakCredential
from schemas import User
from security import hash_password, issue_token, verify_password

logger = logging.getLogger(__name__)

USERNAME_MIN = 3
USERNAME_MAX = 30
PASSWORD_MIN = 6


def normalize_username(username: str) -> str:
    username = (username or "").strip().lower()
    if not USERNAME_MIN <= len(username) <= USERNAME_MAX:
        raise WeakCredential(f"Username must be between {USERNAME_MIN} and {USERNAME_MAX} characters")
    return username


def normalize_email(email: str) -> str:
    try:
        validate_email(email or "", check_deliverability=False)
    except EmailNotValidError:
        raise WeakCredential("Please provide a valid email address")
    return email.strip().lower()


def public_profile(user: Dict[str, Any], include_email: bool = True) -> Dict[str, Any]:
    profile = {
        "_id": str(user["_id"]),
        "username": user.get("username"),
        "dateJoined": user.get("dateJoined"),
    }
    if include_email:
        profile["email"] = user.get("email")
    return profile


def _duplicate_field(db: Database, username: Optional[str], email: Optional[str], exclude: Optional[ObjectId] = None) -> Optional[str]:
    clauses = []
    if username:
        clauses.append({"username": username})
    if email:
        clauses.append({"email": email})
    if not clauses:
        return None
    query: Dict[str, Any] = {"$or": clauses}
    if exclude is not None:
        query["_id"] = {"$ne": exclude}
    existing = db["users"].find_one(query)
    if not existing:
        return None
    return "email" if email and existing.get("email") == email else "username"


def _field_from_duplicate_key(exc: DuplicateKeyError) -> str:
    details = exc.details or {}
    key = details.get("keyPattern") or details.get("keyValue") or {}
    if "email" in key or "email" in str(exc):
        return "email"
    return "username"


def register(db: Database, username: str, email: str, password: str) -> Tuple[Dict[str, Any], str]:
    """Create a user and return ``(user, token)``.

    Raises:
        WeakCredential: password shorter than 6, bad username length, bad email
        DuplicateIdentity: username or email already taken
    """
    username = normalize_username(username)
    email = normalize_email(email)
    if len(password or "") < PASSWORD_MIN:
        raise WeakCredential(f"Password must be at least {PASSWORD_MIN} characters long")

    taken = _duplicate_field(db, username, email)
    if taken:
        raise DuplicateIdentity(taken)

    password_hash, algo = hash_password(password)
    user = User(username=username, email=email, password_hash=password_hash, algo=algo).model_dump(by_alias=True)
    try:
        user["_id"] = db["users"].insert_one(user).inserted_id
    except DuplicateKeyError as exc:
        # lost a race against a concurrent registration
        raise DuplicateIdentity(_field_from_duplicate_key(exc))

    logger.info("Registered user %s", user["_id"])
    return user, issue_token(str(user["_id"]))


def verify_credentials(db: Database, email: str, password: str) -> Tuple[Dict[str, Any], str]:
    """Check an email/password pair and return ``(user, token)``.

    Unknown email and wrong password both raise the same InvalidCredential.
    """
    user = db["users"].find_one({"email": (email or "").strip().lower()})
    if not user or not verify_password(password, user.get("passwordHash"), user.get("algo", "argon2")):
        logger.debug("Failed login attempt")
        raise InvalidCredential()
    return user, issue_token(str(user["_id"]))


def update_profile(
    db: Database,
    user_id: ObjectId,
    username: Optional[str] = None,
    email: Optional[str] = None,
) -> Dict[str, Any]:
    update: Dict[str, Any] = {}
    if username is not None:
        update["username"] = normalize_username(username)
    if email is not None:
        update["email"] = normalize_email(email)

    if update:
        taken = _duplicate_field(db, update.get("username"), update.get("email"), exclude=user_id)
        if taken:
            raise DuplicateIdentity(taken)
        try:
            db["users"].update_one({"_id": user_id}, {"$set": update})
        except DuplicateKeyError as exc:
            raise DuplicateIdentity(_field_from_duplicate_key(exc))

    user = db["users"].find_one({"_id": user_id}, {"passwordHash": 0})
    if not user:
        raise NotFound("User not found")
    return user
