import logging
import re
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import EmailStr, Field, field_validator
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

import accounts
import events as event_rules
import reviews
import rsvp as rsvp_ledger
import votes
from config import get_settings, warn_insecure_defaults
from database import (
    ensure_indexes,
    get_db,
    object_id,
    paginate,
    populate_users,
    serialize,
    to_utc,
    utcnow,
)
from errors import CommunityError, Conflict, Forbidden, InternalError, NotFound, ValidationError
from identity import Identity, optional_identity, require_identity
from ownership import ensure_owner
from schemas import (
    Address,
    Business,
    CamelModel,
    Comment,
    CommentContent,
    ContactInfo,
    Coordinates,
    Event,
    EventCategory,
    EventLocation,
    EventStatus,
    LongText,
    Name,
    Phone,
    Post,
    PostCategory,
    PostContent,
    Price,
    Requirements,
    Resource,
    ResourceType,
    ShortText,
    Title,
)

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    warn_insecure_defaults(settings)
    try:
        ensure_indexes(get_db())
    except PyMongoError as exc:
        logger.warning("Could not ensure indexes at startup: %s", exc)
    yield


app = FastAPI(title="Community Hub API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
)


# -------------------------------------------------------------------
# Error translation
# -------------------------------------------------------------------
def _describe(error: Dict[str, Any]) -> str:
    loc = ".".join(str(p) for p in error.get("loc", ()) if p != "body")
    msg = error.get("msg", "Invalid value")
    return f"{loc}: {msg}" if loc else msg


@app.exception_handler(CommunityError)
async def community_error_handler(request: Request, exc: CommunityError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [_describe(e) for e in exc.errors()]
    return JSONResponse(status_code=400, content={"message": "Validation error", "errors": errors})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)})


def _internal_error(exc: Exception) -> JSONResponse:
    error = InternalError("Internal server error")
    body = error.to_dict()
    if settings.debug:
        body["detail"] = str(exc)
    return JSONResponse(status_code=error.status_code, content=body)


@app.exception_handler(PyMongoError)
async def storage_error_handler(request: Request, exc: PyMongoError):
    logger.error("Storage failure on %s %s", request.method, request.url.path, exc_info=exc)
    return _internal_error(exc)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return _internal_error(exc)


# -------------------------------------------------------------------
# Models
# -------------------------------------------------------------------
class RegisterIn(CamelModel):
    username: str
    email: str
    password: str


class LoginIn(CamelModel):
    email: EmailStr
    password: str


class ProfileUpdateIn(CamelModel):
    username: Optional[str] = None
    email: Optional[str] = None


class PostCreateIn(CamelModel):
    title: Title
    content: PostContent
    category: Optional[PostCategory] = None


class PostUpdateIn(CamelModel):
    title: Optional[Title] = None
    content: Optional[PostContent] = None
    category: Optional[PostCategory] = None


class VoteIn(CamelModel):
    vote_type: Optional[str] = None


class CommentCreateIn(CamelModel):
    post_id: str
    content: CommentContent


class CommentUpdateIn(CamelModel):
    content: CommentContent


class BusinessCreateIn(CamelModel):
    name: Name
    description: LongText
    contact_email: Optional[EmailStr] = None
    phone: Optional[Phone] = None
    address: Optional[str] = None
    category: Optional[str] = None


class BusinessUpdateIn(CamelModel):
    name: Optional[Name] = None
    description: Optional[LongText] = None
    contact_email: Optional[EmailStr] = None
    phone: Optional[Phone] = None
    address: Optional[str] = None
    category: Optional[str] = None


class ResourceCreateIn(CamelModel):
    name: Name
    type: ResourceType
    address: Address
    location: Optional[Coordinates] = None
    hours: Optional[str] = None
    description: Optional[ShortText] = None


class ResourceUpdateIn(CamelModel):
    name: Optional[Name] = None
    type: Optional[ResourceType] = None
    address: Optional[Address] = None
    location: Optional[Coordinates] = None
    hours: Optional[str] = None
    description: Optional[ShortText] = None


class ReviewIn(CamelModel):
    rating: Optional[float] = None
    comment: Optional[str] = Field(None, max_length=1000)


class EventCreateIn(CamelModel):
    title: Title
    description: LongText
    date: datetime
    end_date: Optional[datetime] = None
    location: EventLocation
    category: Optional[EventCategory] = None
    max_attendees: Optional[int] = Field(None, ge=1, le=10000)
    is_public: bool = True
    is_free: bool = True
    price: Optional[Price] = None
    contact_info: Optional[ContactInfo] = None
    tags: List[str] = Field(default_factory=list)
    requirements: Optional[Requirements] = None
    status: EventStatus = "published"


class EventUpdateIn(CamelModel):
    title: Optional[Title] = None
    description: Optional[LongText] = None
    date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    location: Optional[EventLocation] = None
    category: Optional[EventCategory] = None
    max_attendees: Optional[int] = Field(None, ge=1, le=10000)
    is_public: Optional[bool] = None
    is_free: Optional[bool] = None
    price: Optional[Price] = None
    contact_info: Optional[ContactInfo] = None
    tags: Optional[List[str]] = None
    requirements: Optional[Requirements] = None
    status: Optional[EventStatus] = None

    @field_validator("date", "end_date")
    @classmethod
    def _utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_utc(v) if v is not None else v

    @field_validator("tags")
    @classmethod
    def _tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        return [t.strip().lower() for t in v if t and t.strip()]


class RsvpIn(CamelModel):
    status: str = "attending"


# -------------------------------------------------------------------
# Rendering helpers
# -------------------------------------------------------------------
POST_SORTS = {
    "createdAt": [("createdAt", ASCENDING)],
    "-createdAt": [("createdAt", DESCENDING)],
    "upvotes": [("upvotes", ASCENDING)],
    "-upvotes": [("upvotes", DESCENDING)],
    "title": [("title", ASCENDING)],
}
BUSINESS_SORTS = {
    "name": [("name", ASCENDING)],
    "-name": [("name", DESCENDING)],
    "createdAt": [("createdAt", ASCENDING)],
    "-createdAt": [("createdAt", DESCENDING)],
    "category": [("category", ASCENDING)],
}
RESOURCE_SORTS = {
    "name": [("name", ASCENDING)],
    "-name": [("name", DESCENDING)],
    "type": [("type", ASCENDING), ("name", ASCENDING)],
    "createdAt": [("createdAt", ASCENDING)],
    "-createdAt": [("createdAt", DESCENDING)],
}
EVENT_SORTS = {
    "date": [("date", ASCENDING)],
    "-date": [("date", DESCENDING)],
    "created": [("createdAt", DESCENDING)],
    "title": [("title", ASCENDING)],
}


def _search(term: str, *fields: str) -> Dict[str, Any]:
    pattern = {"$regex": re.escape(term), "$options": "i"}
    return {"$or": [{f: pattern} for f in fields]}


def _load(db: Database, collection: str, doc_id: str, label: str) -> Dict[str, Any]:
    doc = db[collection].find_one({"_id": object_id(doc_id)})
    if not doc:
        raise NotFound(f"{label} not found")
    return doc


def render_posts(db: Database, docs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return serialize(populate_users(db, docs, "user"))


def render_comments(db: Database, docs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return serialize(populate_users(db, docs, "user"))


def render_reviewed(db: Database, docs: List[Dict[str, Any]], *paths: str) -> List[Dict[str, Any]]:
    out = serialize(populate_users(db, docs, "reviews.user", *paths))
    return [{**d, **reviews.rating_summary(d.get("reviews"))} for d in out]


def render_events(db: Database, docs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    now = utcnow()
    docs = [event_rules.with_derived(d, now) for d in docs]
    return serialize(populate_users(db, docs, "organizer", "attendees.user"))


# -------------------------------------------------------------------
# Health
# -------------------------------------------------------------------
@app.get("/api")
def api_index():
    return {
        "message": "Community Hub API",
        "version": app.version,
        "endpoints": {
            "users": "/api/users",
            "posts": "/api/posts",
            "comments": "/api/comments",
            "businesses": "/api/businesses",
            "resources": "/api/resources",
            "events": "/api/events",
            "health": "/api/health",
        },
    }


@app.get("/api/health")
def health(db: Database = Depends(get_db)):
    response = {
        "status": "OK",
        "message": "Community Hub API is running",
        "timestamp": utcnow().isoformat(),
        "database": "Disconnected",
    }
    try:
        db.command("ping")
        response["database"] = "Connected"
    except PyMongoError as exc:
        logger.warning("Health check could not reach the database: %s", exc)
    return response


# -------------------------------------------------------------------
# Users
# -------------------------------------------------------------------
@app.post("/api/users/register", status_code=201)
def register_user(body: RegisterIn, db: Database = Depends(get_db)):
    user, token = accounts.register(db, body.username, body.email, body.password)
    return {
        "message": "User registered successfully",
        "token": token,
        "user": serialize(accounts.public_profile(user)),
    }


@app.post("/api/users/login")
def login_user(body: LoginIn, db: Database = Depends(get_db)):
    user, token = accounts.verify_credentials(db, body.email, body.password)
    return {
        "message": "Login successful",
        "token": token,
        "user": serialize(accounts.public_profile(user)),
    }


@app.get("/api/users/profile")
def get_profile(identity: Identity = Depends(require_identity)):
    return {"user": serialize(accounts.public_profile(identity.user))}


@app.put("/api/users/profile")
def update_profile(
    body: ProfileUpdateIn,
    identity: Identity = Depends(require_identity),
    db: Database = Depends(get_db),
):
    user = accounts.update_profile(db, identity.id, username=body.username, email=body.email)
    return {
        "message": "Profile updated successfully",
        "user": serialize(accounts.public_profile(user)),
    }


@app.get("/api/users/{user_id}")
def get_user(user_id: str, db: Database = Depends(get_db)):
    user = _load(db, "users", user_id, "User")
    return {"user": serialize(accounts.public_profile(user, include_email=False))}


# -------------------------------------------------------------------
# Posts
# -------------------------------------------------------------------
@app.get("/api/posts")
def list_posts(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1),
    category: Optional[str] = None,
    search: Optional[str] = None,
    author: Optional[str] = None,
    sort: str = "-createdAt",
    db: Database = Depends(get_db),
):
    query: Dict[str, Any] = {}
    if category and category != "all":
        query["category"] = category
    if author:
        query["user"] = object_id(author)
    if search:
        query.update(_search(search, "title", "content"))
    docs, pagination = paginate(
        db["posts"], query, POST_SORTS.get(sort, POST_SORTS["-createdAt"]), page, limit, "Posts"
    )
    return {"posts": render_posts(db, docs), "pagination": pagination}


@app.post("/api/posts", status_code=201)
def create_post(
    body: PostCreateIn,
    identity: Identity = Depends(require_identity),
    db: Database = Depends(get_db),
):
    doc = Post(
        title=body.title,
        content=body.content,
        category=body.category or "general",
        user=identity.id,
    ).model_dump(by_alias=True)
    doc["_id"] = db["posts"].insert_one(doc).inserted_id
    return {"message": "Post created successfully", "post": render_posts(db, [doc])[0]}


@app.get("/api/posts/{post_id}")
def get_post(post_id: str, db: Database = Depends(get_db)):
    post = _load(db, "posts", post_id, "Post")
    return {"post": render_posts(db, [post])[0]}


@app.put("/api/posts/{post_id}")
def update_post(
    post_id: str,
    body: PostUpdateIn,
    identity: Identity = Depends(require_identity),
    db: Database = Depends(get_db),
):
    post = _load(db, "posts", post_id, "Post")
    ensure_owner(identity.id, post, "user", "update", "post")
    changes = body.model_dump(by_alias=True, exclude_unset=True, exclude_none=True)
    if changes:
        post = db["posts"].find_one_and_update(
            {"_id": post["_id"]}, {"$set": changes}, return_document=ReturnDocument.AFTER
        )
        if post is None:
            raise NotFound("Post not found")
    return {"message": "Post updated successfully", "post": render_posts(db, [post])[0]}


@app.delete("/api/posts/{post_id}")
def delete_post(
    post_id: str,
    identity: Identity = Depends(require_identity),
    db: Database = Depends(get_db),
):
    post = _load(db, "posts", post_id, "Post")
    ensure_owner(identity.id, post, "user", "delete", "post")
    db["posts"].delete_one({"_id": post["_id"]})
    removed = db["comments"].delete_many({"postId": post["_id"]}).deleted_count
    logger.info("Deleted post %s and %d comments", post["_id"], removed)
    return {"message": "Post and associated comments deleted successfully"}


@app.post("/api/posts/{post_id}/vote")
def vote_on_post(
    post_id: str,
    body: VoteIn,
    identity: Identity = Depends(require_identity),
    db: Database = Depends(get_db),
):
    upvotes = votes.apply_vote(db["posts"], object_id(post_id), body.vote_type)
    return {"message": "Vote recorded successfully", "upvotes": upvotes}


# -------------------------------------------------------------------
# Comments
# -------------------------------------------------------------------
@app.get("/api/comments/post/{post_id}")
def list_comments(
    post_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    sort: str = "createdAt",
    db: Database = Depends(get_db),
):
    post = _load(db, "posts", post_id, "Post")
    direction = DESCENDING if sort == "-createdAt" else ASCENDING
    docs, pagination = paginate(
        db["comments"], {"postId": post["_id"]}, [("createdAt", direction)], page, limit, "Comments"
    )
    return {"comments": render_comments(db, docs), "pagination": pagination}


@app.post("/api/comments", status_code=201)
def create_comment(
    body: CommentCreateIn,
    identity: Identity = Depends(require_identity),
    db: Database = Depends(get_db),
):
    post = _load(db, "posts", body.post_id, "Post")
    doc = Comment(post_id=post["_id"], user=identity.id, content=body.content).model_dump(by_alias=True)
    doc["_id"] = db["comments"].insert_one(doc).inserted_id
    return {"message": "Comment created successfully", "comment": render_comments(db, [doc])[0]}


@app.get("/api/comments/{comment_id}")
def get_comment(comment_id: str, db: Database = Depends(get_db)):
    comment = _load(db, "comments", comment_id, "Comment")
    return {"comment": render_comments(db, [comment])[0]}


@app.put("/api/comments/{comment_id}")
def update_comment(
    comment_id: str,
    body: CommentUpdateIn,
    identity: Identity = Depends(require_identity),
    db: Database = Depends(get_db),
):
    comment = _load(db, "comments", comment_id, "Comment")
    ensure_owner(identity.id, comment, "user", "update", "comment")
    comment = db["comments"].find_one_and_update(
        {"_id": comment["_id"]},
        {"$set": {"content": body.content, "updatedAt": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if comment is None:
        raise NotFound("Comment not found")
    return {"message": "Comment updated successfully", "comment": render_comments(db, [comment])[0]}


@app.delete("/api/comments/{comment_id}")
def delete_comment(
    comment_id: str,
    identity: Identity = Depends(require_identity),
    db: Database = Depends(get_db),
):
    comment = _load(db, "comments", comment_id, "Comment")
    ensure_owner(identity.id, comment, "user", "delete", "comment")
    db["comments"].delete_one({"_id": comment["_id"]})
    return {"message": "Comment deleted successfully"}


# -------------------------------------------------------------------
# Businesses
# -------------------------------------------------------------------
DUPLICATE_BUSINESS = "You already have a business with this name"


@app.get("/api/businesses")
def list_businesses(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1),
    category: Optional[str] = None,
    search: Optional[str] = None,
    owner: Optional[str] = None,
    sort: str = "name",
    db: Database = Depends(get_db),
):
    query: Dict[str, Any] = {}
    if category and category != "all":
        query["category"] = category
    if owner:
        query["owner"] = object_id(owner)
    if search:
        query.update(_search(search, "name", "description", "category"))
    docs, pagination = paginate(
        db["businesses"], query, BUSINESS_SORTS.get(sort, BUSINESS_SORTS["name"]), page, limit, "Businesses"
    )
    return {"businesses": render_reviewed(db, docs, "owner"), "pagination": pagination}


@app.post("/api/businesses", status_code=201)
def create_business(
    body: BusinessCreateIn,
    identity: Identity = Depends(require_identity),
    db: Database = Depends(get_db),
):
    doc = Business(
        name=body.name,
        owner=identity.id,
        description=body.description,
        contact_email=body.contact_email.lower() if body.contact_email else None,
        phone=body.phone,
        address=body.address,
        category=body.category,
    ).model_dump(by_alias=True, exclude_none=True)
    try:
        doc["_id"] = db["businesses"].insert_one(doc).inserted_id
    except DuplicateKeyError:
        raise Conflict(DUPLICATE_BUSINESS)
    return {"message": "Business created successfully", "business": render_reviewed(db, [doc], "owner")[0]}


@app.get("/api/businesses/my/listings")
def my_businesses(identity: Identity = Depends(require_identity), db: Database = Depends(get_db)):
    docs = list(db["businesses"].find({"owner": identity.id}).sort("createdAt", DESCENDING))
    return {"businesses": render_reviewed(db, docs, "owner")}


@app.get("/api/businesses/{business_id}")
def get_business(business_id: str, db: Database = Depends(get_db)):
    business = _load(db, "businesses", business_id, "Business")
    return {"business": render_reviewed(db, [business], "owner")[0]}


@app.put("/api/businesses/{business_id}")
def update_business(
    business_id: str,
    body: BusinessUpdateIn,
    identity: Identity = Depends(require_identity),
    db: Database = Depends(get_db),
):
    business = _load(db, "businesses", business_id, "Business")
    ensure_owner(identity.id, business, "owner", "update", "business")
    changes = body.model_dump(by_alias=True, exclude_unset=True, exclude_none=True)
    if "contactEmail" in changes:
        changes["contactEmail"] = changes["contactEmail"].lower()
    if changes:
        try:
            business = db["businesses"].find_one_and_update(
                {"_id": business["_id"]}, {"$set": changes}, return_document=ReturnDocument.AFTER
            )
        except DuplicateKeyError:
            raise Conflict(DUPLICATE_BUSINESS)
        if business is None:
            raise NotFound("Business not found")
    return {"message": "Business updated successfully", "business": render_reviewed(db, [business], "owner")[0]}


@app.delete("/api/businesses/{business_id}")
def delete_business(
    business_id: str,
    identity: Identity = Depends(require_identity),
    db: Database = Depends(get_db),
):
    business = _load(db, "businesses", business_id, "Business")
    ensure_owner(identity.id, business, "owner", "delete", "business")
    db["businesses"].delete_one({"_id": business["_id"]})
    return {"message": "Business deleted successfully"}


@app.post("/api/businesses/{business_id}/review", status_code=201)
def review_business(
    business_id: str,
    body: ReviewIn,
    identity: Identity = Depends(require_identity),
    db: Database = Depends(get_db),
):
    business = reviews.add_review(
        db["businesses"], object_id(business_id), identity.id, body.rating, body.comment, kind="business"
    )
    return {"message": "Review added successfully", "business": render_reviewed(db, [business], "owner")[0]}


# -------------------------------------------------------------------
# Resources
# -------------------------------------------------------------------
DUPLICATE_RESOURCE = "A resource with this name and address already exists"


@app.get("/api/resources")
def list_resources(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    type: Optional[str] = None,
    search: Optional[str] = None,
    sort: str = "name",
    db: Database = Depends(get_db),
):
    query: Dict[str, Any] = {}
    if type and type != "all":
        query["type"] = type
    if search:
        query.update(_search(search, "name", "description", "address"))
    docs, pagination = paginate(
        db["resources"], query, RESOURCE_SORTS.get(sort, RESOURCE_SORTS["name"]), page, limit, "Resources"
    )
    return {"resources": render_reviewed(db, docs), "pagination": pagination}


@app.get("/api/resources/type/{resource_type}")
def list_resources_by_type(resource_type: str, db: Database = Depends(get_db)):
    if resource_type not in ("church", "grocery"):
        raise ValidationError("Invalid type. Must be 'church' or 'grocery'")
    docs = list(db["resources"].find({"type": resource_type}).sort("name", ASCENDING))
    return {"resources": render_reviewed(db, docs), "type": resource_type, "count": len(docs)}


@app.post("/api/resources", status_code=201)
def create_resource(
    body: ResourceCreateIn,
    identity: Identity = Depends(require_identity),
    db: Database = Depends(get_db),
):
    doc = Resource(
        name=body.name,
        type=body.type,
        address=body.address,
        location=body.location,
        hours=body.hours,
        description=body.description,
        created_by=identity.id,
    ).model_dump(by_alias=True, exclude_none=True)
    try:
        doc["_id"] = db["resources"].insert_one(doc).inserted_id
    except DuplicateKeyError:
        raise Conflict(DUPLICATE_RESOURCE)
    return {"message": "Resource created successfully", "resource": render_reviewed(db, [doc])[0]}


@app.get("/api/resources/{resource_id}")
def get_resource(resource_id: str, db: Database = Depends(get_db)):
    resource = _load(db, "resources", resource_id, "Resource")
    return {"resource": render_reviewed(db, [resource])[0]}


@app.put("/api/resources/{resource_id}")
def update_resource(
    resource_id: str,
    body: ResourceUpdateIn,
    identity: Identity = Depends(require_identity),
    db: Database = Depends(get_db),
):
    # resources are community maintained, any signed-in user may edit them
    resource = _load(db, "resources", resource_id, "Resource")
    changes = body.model_dump(by_alias=True, exclude_unset=True, exclude_none=True)
    if changes:
        try:
            resource = db["resources"].find_one_and_update(
                {"_id": resource["_id"]}, {"$set": changes}, return_document=ReturnDocument.AFTER
            )
        except DuplicateKeyError:
            raise Conflict(DUPLICATE_RESOURCE)
        if resource is None:
            raise NotFound("Resource not found")
    logger.info("Resource %s updated by %s", resource["_id"], identity.id)
    return {"message": "Resource updated successfully", "resource": render_reviewed(db, [resource])[0]}


@app.delete("/api/resources/{resource_id}")
def delete_resource(
    resource_id: str,
    identity: Identity = Depends(require_identity),
    db: Database = Depends(get_db),
):
    resource = _load(db, "resources", resource_id, "Resource")
    db["resources"].delete_one({"_id": resource["_id"]})
    logger.info("Resource %s deleted by %s", resource["_id"], identity.id)
    return {"message": "Resource deleted successfully"}


@app.post("/api/resources/{resource_id}/review", status_code=201)
def review_resource(
    resource_id: str,
    body: ReviewIn,
    identity: Identity = Depends(require_identity),
    db: Database = Depends(get_db),
):
    resource = reviews.add_review(
        db["resources"], object_id(resource_id), identity.id, body.rating, body.comment, kind="resource"
    )
    return {"message": "Review added successfully", "resource": render_reviewed(db, [resource])[0]}


# -------------------------------------------------------------------
# Events
# -------------------------------------------------------------------
@app.get("/api/events")
def list_events(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1),
    category: Optional[str] = None,
    upcoming: bool = False,
    search: Optional[str] = None,
    organizer: Optional[str] = None,
    sort: str = "date",
    db: Database = Depends(get_db),
):
    query: Dict[str, Any] = {"isPublic": True, "status": "published"}
    if category and category != "all":
        query["category"] = category
    if upcoming:
        query["date"] = {"$gte": utcnow()}
    if organizer:
        query["organizer"] = object_id(organizer)
    if search:
        query.update(_search(search, "title", "description", "location.address"))
    docs, pagination = paginate(
        db["events"], query, EVENT_SORTS.get(sort, EVENT_SORTS["date"]), page, limit, "Events"
    )
    return {"events": render_events(db, docs), "pagination": pagination}


@app.post("/api/events", status_code=201)
def create_event(
    body: EventCreateIn,
    identity: Identity = Depends(require_identity),
    db: Database = Depends(get_db),
):
    if body.status not in event_rules.INITIAL_STATUSES:
        raise ValidationError("New events must be draft or published")
    event_rules.validate_schedule(body.date, body.end_date)
    fields = body.model_dump(exclude_none=True)
    fields["category"] = fields.get("category") or "community"
    doc = Event(**fields, organizer=identity.id).model_dump(by_alias=True, exclude_none=True)
    doc["_id"] = db["events"].insert_one(doc).inserted_id
    logger.info("Event %s created by %s", doc["_id"], identity.id)
    return {"message": "Event created successfully", "event": render_events(db, [doc])[0]}


@app.get("/api/events/my/organized")
def my_organized_events(identity: Identity = Depends(require_identity), db: Database = Depends(get_db)):
    docs = list(db["events"].find({"organizer": identity.id}).sort("date", ASCENDING))
    return {"events": render_events(db, docs)}


@app.get("/api/events/my/attending")
def my_attending_events(identity: Identity = Depends(require_identity), db: Database = Depends(get_db)):
    query = {"attendees": {"$elemMatch": {"user": identity.id, "status": rsvp_ledger.ATTENDING}}}
    docs = list(db["events"].find(query).sort("date", ASCENDING))
    return {"events": render_events(db, docs)}


@app.get("/api/events/{event_id}")
def get_event(
    event_id: str,
    identity: Identity = Depends(optional_identity),
    db: Database = Depends(get_db),
):
    event = _load(db, "events", event_id, "Event")
    if not event_rules.can_view(event, identity.id):
        raise Forbidden("Access denied to private event")
    return {"event": render_events(db, [event])[0]}


@app.put("/api/events/{event_id}")
def update_event(
    event_id: str,
    body: EventUpdateIn,
    identity: Identity = Depends(require_identity),
    db: Database = Depends(get_db),
):
    event = _load(db, "events", event_id, "Event")
    ensure_owner(identity.id, event, "organizer", "update", "event")
    changes = body.model_dump(by_alias=True, exclude_unset=True, exclude_none=True)
    event_rules.validate_update(event, changes)
    event = db["events"].find_one_and_update(
        {"_id": event["_id"]},
        {"$set": {**changes, "updatedAt": utcnow()}, "$inc": {"revision": 1}},
        return_document=ReturnDocument.AFTER,
    )
    if event is None:
        raise NotFound("Event not found")
    return {"message": "Event updated successfully", "event": render_events(db, [event])[0]}


@app.delete("/api/events/{event_id}")
def delete_event(
    event_id: str,
    identity: Identity = Depends(require_identity),
    db: Database = Depends(get_db),
):
    event = _load(db, "events", event_id, "Event")
    ensure_owner(identity.id, event, "organizer", "delete", "event")
    db["events"].delete_one({"_id": event["_id"]})
    return {"message": "Event deleted successfully"}


@app.post("/api/events/{event_id}/rsvp")
def rsvp_to_event(
    event_id: str,
    body: RsvpIn,
    identity: Identity = Depends(require_identity),
    db: Database = Depends(get_db),
):
    count = rsvp_ledger.rsvp(db["events"], object_id(event_id), identity.id, body.status)
    return {"message": f"RSVP updated to {body.status}", "attendeeCount": count}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
