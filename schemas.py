"""
Database Schemas for the Community Hub

Each top-level Pydantic model maps to a MongoDB collection (noted in its
docstring). Field names are snake_case in Python and camelCase in the stored
documents and on the wire.
"""
import re
from datetime import datetime
from typing import Annotated, List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator
from pydantic.alias_generators import to_camel

from database import to_utc, utcnow

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^\+?[1-9]\d{0,15}$")

Title = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
Name = Title
PostContent = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=5000)]
CommentContent = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=1000)]
LongText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=2000)]
ShortText = Annotated[str, StringConstraints(strip_whitespace=True, max_length=1000)]
Address = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=300)]
Phone = Annotated[str, StringConstraints(strip_whitespace=True, max_length=20)]

PostCategory = Literal["newcomers", "events", "general"]
ResourceType = Literal["church", "grocery"]
EventCategory = Literal["cultural", "business", "social", "educational", "religious", "sports", "community", "other"]
EventStatus = Literal["draft", "published", "cancelled", "completed"]
RsvpStatus = Literal["attending", "maybe", "not_attending"]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )


# Embedded value types

class Coordinates(CamelModel):
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)


class EventLocation(CamelModel):
    address: Address
    venue: Optional[str] = None
    coordinates: Optional[Coordinates] = None


class Price(CamelModel):
    amount: Optional[float] = Field(None, ge=0)
    currency: Literal["CAD", "USD"] = "CAD"


class ContactInfo(CamelModel):
    email: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None

    @field_validator("email")
    @classmethod
    def _email(cls, v: Optional[str]) -> Optional[str]:
        if v and not EMAIL_RE.match(v):
            raise ValueError("Invalid email format")
        return v

    @field_validator("phone")
    @classmethod
    def _phone(cls, v: Optional[str]) -> Optional[str]:
        if v and not PHONE_RE.match(re.sub(r"[\s\-()]", "", v)):
            raise ValueError("Invalid phone number format")
        return v


class Requirements(CamelModel):
    age_restriction: Optional[Literal["none", "18+", "21+", "family_friendly"]] = None
    dresscode: Optional[str] = None
    other: Optional[str] = None


class Review(CamelModel):
    """Embedded in businesses and resources, one per user."""

    user: ObjectId
    rating: int = Field(..., ge=1, le=5)
    comment: str = ""
    created_at: datetime = Field(default_factory=utcnow)


class Attendee(CamelModel):
    """Embedded in events, one per user."""

    user: ObjectId
    status: RsvpStatus = "attending"
    rsvp_date: datetime = Field(default_factory=utcnow)


# Collections

class User(CamelModel):
    """
    Collection: "users"
    """
    username: str = Field(..., min_length=3, max_length=30)
    email: str
    password_hash: str
    algo: Literal["argon2", "bcrypt"] = "argon2"
    date_joined: datetime = Field(default_factory=utcnow)


class Post(CamelModel):
    """
    Collection: "posts"
    """
    title: Title
    content: PostContent
    category: PostCategory = "general"
    user: ObjectId
    upvotes: int = Field(0, ge=0)
    created_at: datetime = Field(default_factory=utcnow)


class Comment(CamelModel):
    """
    Collection: "comments"
    """
    post_id: ObjectId
    user: ObjectId
    content: CommentContent
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Business(CamelModel):
    """
    Collection: "businesses"
    Unique on (owner, name).
    """
    name: Name
    owner: ObjectId
    description: LongText
    contact_email: Optional[str] = None
    phone: Optional[Phone] = None
    address: Optional[str] = None
    category: Optional[str] = None
    reviews: List[Review] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)


class Resource(CamelModel):
    """
    Collection: "resources"
    Unique on (name, address).
    """
    name: Name
    type: ResourceType
    address: Address
    location: Optional[Coordinates] = None
    hours: Optional[str] = None
    description: Optional[ShortText] = None
    created_by: Optional[ObjectId] = None
    reviews: List[Review] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)


class Event(CamelModel):
    """
    Collection: "events"
    attendeeCount, isFull, isPast and isUpcoming are derived on read.
    """
    title: Title
    description: LongText
    date: datetime
    end_date: Optional[datetime] = None
    location: EventLocation
    organizer: ObjectId
    category: EventCategory = "community"
    attendees: List[Attendee] = Field(default_factory=list)
    max_attendees: Optional[int] = Field(None, ge=1, le=10000)
    is_public: bool = True
    is_free: bool = True
    price: Optional[Price] = None
    contact_info: Optional[ContactInfo] = None
    tags: List[str] = Field(default_factory=list)
    requirements: Optional[Requirements] = None
    status: EventStatus = "published"
    revision: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("tags")
    @classmethod
    def _tags(cls, v: List[str]) -> List[str]:
        return [t.strip().lower() for t in v if t and t.strip()]

    @field_validator("date", "end_date")
    @classmethod
    def _utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_utc(v) if v is not None else v
