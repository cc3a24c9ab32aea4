"""
Error types for the Community Hub API.

Every domain failure raised below the HTTP layer is a CommunityError. The
app translates them into JSON bodies of the form ``{"message": ...}`` plus an
``errors`` list for validation failures:

- ValidationError (400): malformed or out-of-range input
- Unauthenticated (401): missing, invalid or expired credentials
- Forbidden (403): authenticated but not allowed
- NotFound (404): the id does not resolve
- Conflict (409): duplicates, full events, lost compare-and-set races
- InternalError (500): storage or unexpected failure
"""
from typing import List, Optional


class CommunityError(Exception):
    """Base exception for all API errors.

    Attributes:
        message: Message shown to the client
        code: Error code for programmatic handling
        errors: Field-level messages suitable for form display
    """

    status_code = 500
    default_code = "COMMUNITY_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        errors: Optional[List[str]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.errors = errors or []

    def to_dict(self) -> dict:
        body = {"message": self.message}
        if self.errors:
            body["errors"] = list(self.errors)
        return body


class ValidationError(CommunityError):
    status_code = 400
    default_code = "VALIDATION_ERROR"


class WeakCredential(ValidationError):
    """Password too short, username out of range, or malformed email."""

    default_code = "WEAK_CREDENTIAL"


class InvalidVoteType(ValidationError):
    default_code = "INVALID_VOTE_TYPE"

    def __init__(self, vote_type: object) -> None:
        super().__init__("Invalid vote type")
        self.vote_type = vote_type


class InvalidRating(ValidationError):
    default_code = "INVALID_RATING"

    def __init__(self, rating: object) -> None:
        super().__init__("Rating must be between 1 and 5")
        self.rating = rating


class Unauthenticated(CommunityError):
    status_code = 401
    default_code = "UNAUTHENTICATED"


class InvalidCredential(Unauthenticated):
    """Unknown email and wrong password are reported identically."""

    default_code = "INVALID_CREDENTIAL"

    def __init__(self) -> None:
        super().__init__("Invalid email or password")


class TokenInvalid(Unauthenticated):
    default_code = "TOKEN_INVALID"

    def __init__(self, message: str = "Invalid token, authorization denied") -> None:
        super().__init__(message)


class TokenExpired(Unauthenticated):
    default_code = "TOKEN_EXPIRED"

    def __init__(self, message: str = "Token expired, please login again") -> None:
        super().__init__(message)


class Forbidden(CommunityError):
    status_code = 403
    default_code = "FORBIDDEN"


class EventPrivate(Forbidden):
    default_code = "EVENT_PRIVATE"

    def __init__(self) -> None:
        super().__init__("Cannot RSVP to private event")


class NotFound(CommunityError):
    status_code = 404
    default_code = "NOT_FOUND"


class Conflict(CommunityError):
    status_code = 409
    default_code = "CONFLICT"


class DuplicateIdentity(Conflict):
    default_code = "DUPLICATE_IDENTITY"

    def __init__(self, field_name: str) -> None:
        super().__init__(f"User with this {field_name} already exists")
        self.field_name = field_name


class DuplicateReview(Conflict):
    default_code = "DUPLICATE_REVIEW"

    def __init__(self, target: str) -> None:
        super().__init__(f"You have already reviewed this {target}")
        self.target = target


class EventFull(Conflict):
    default_code = "EVENT_FULL"

    def __init__(self) -> None:
        super().__init__("Event is full")


class ConcurrentModification(Conflict):
    default_code = "CONCURRENT_MODIFICATION"


class InternalError(CommunityError):
    status_code = 500
    default_code = "INTERNAL_ERROR"
