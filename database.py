"""
MongoDB access for the Community Hub API.

Collections: users, posts, comments, businesses, resources, events.
Documents use the client's camelCase keys; datetimes are stored as naive UTC.
"""
import logging
from datetime import datetime, timezone
from math import ceil
from typing import Any, Dict, Iterable, List, Sequence, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database

from config import get_settings
from errors import ValidationError

logger = logging.getLogger(__name__)

settings = get_settings()

# MongoClient connects lazily, importing this module never touches the network
_client = MongoClient(settings.database_url, serverSelectionTimeoutMS=5000)
db = _client[settings.database_name]

HIDDEN_FIELDS = {"passwordHash", "revision"}


def get_db() -> Database:
    """FastAPI dependency returning the shared database handle."""
    return db


def ensure_indexes(database: Database) -> None:
    database["users"].create_index([("username", ASCENDING)], unique=True)
    database["users"].create_index([("email", ASCENDING)], unique=True)
    database["businesses"].create_index([("owner", ASCENDING), ("name", ASCENDING)], unique=True)
    database["resources"].create_index([("name", ASCENDING), ("address", ASCENDING)], unique=True)
    database["posts"].create_index([("createdAt", DESCENDING)])
    database["posts"].create_index([("user", ASCENDING)])
    database["comments"].create_index([("postId", ASCENDING), ("createdAt", ASCENDING)])
    database["events"].create_index([("date", ASCENDING)])
    database["events"].create_index([("organizer", ASCENDING)])
    database["events"].create_index([("isPublic", ASCENDING), ("status", ASCENDING)])
    logger.info("Indexes ensured on database %s", database.name)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc(value: datetime) -> datetime:
    """Normalize any datetime to naive UTC, the stored representation."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def object_id(value: Any) -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        raise ValidationError("Invalid ID format")


def serialize(value: Any) -> Any:
    """Convert a stored document into JSON-ready data for the wire."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: serialize(v) for k, v in value.items() if k not in HIDDEN_FIELDS}
    if isinstance(value, (list, tuple)):
        return [serialize(v) for v in value]
    return value


def paginate(
    collection: Collection,
    query: Dict[str, Any],
    sort: Sequence[Tuple[str, int]],
    page: int,
    limit: int,
    label: str,
) -> Tuple[List[Dict[str, Any]], Dict[str, Any]]:
    """Run a listing query and build the pagination block the client expects.

    ``label`` names the total counter, e.g. ``"Posts"`` yields ``totalPosts``.
    """
    page = max(page, 1)
    limit = max(min(limit, settings.max_page_size), 1)
    cursor = collection.find(query)
    if sort:
        cursor = cursor.sort(list(sort))
    docs = list(cursor.skip((page - 1) * limit).limit(limit))
    total = collection.count_documents(query)
    total_pages = ceil(total / limit)
    pagination = {
        "currentPage": page,
        "totalPages": total_pages,
        f"total{label}": total,
        "hasNext": page < total_pages,
        "hasPrev": page > 1,
    }
    return docs, pagination


def _user_refs(doc: Dict[str, Any], path: str) -> Iterable[Any]:
    head, _, rest = path.partition(".")
    value = doc.get(head)
    if not rest:
        if value is not None:
            yield value
        return
    for item in value or []:
        if isinstance(item, dict) and item.get(rest) is not None:
            yield item[rest]


def populate_users(
    database: Database,
    docs: List[Dict[str, Any]],
    *paths: str,
) -> List[Dict[str, Any]]:
    """Replace user id references with ``{"_id", "username"}`` stubs.

    Paths are either top level (``"user"``) or one level into an embedded
    array (``"reviews.user"``). Returns shallow copies; the input is untouched.
    """
    ids = {ref for doc in docs for path in paths for ref in _user_refs(doc, path)}
    users = {}
    if ids:
        for u in database["users"].find({"_id": {"$in": list(ids)}}, {"username": 1}):
            users[u["_id"]] = {"_id": u["_id"], "username": u.get("username")}

    out = []
    for doc in docs:
        d = dict(doc)
        for path in paths:
            head, _, rest = path.partition(".")
            if head not in d:
                continue
            if not rest:
                d[head] = users.get(d[head], d[head])
            else:
                d[head] = [
                    {**item, rest: users.get(item.get(rest), item.get(rest))}
                    for item in d[head] or []
                ]
        out.append(d)
    return out
