"""
RSVP ledger: the per-user attendance roster embedded in an event.

Invariants:
    - At most one roster entry per (event, user); re-RSVP overwrites status
      and rsvpDate in place
    - ``attendeeCount`` is derived: entries whose status is exactly "attending"
    - Capacity is checked against the roster as it was before this RSVP, not
      counting the caller's own "attending" slot
    - A rejected RSVP never touches the roster

Concurrency:
    Each write is a compare-and-set on the event's ``revision`` counter. If
    another write landed between our read and our update, we re-read and
    re-validate, up to ``rsvp_max_attempts`` times.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.collection import Collection

from config import get_settings
from database import utcnow
from errors import ConcurrentModification, EventFull, EventPrivate, NotFound, ValidationError
from schemas import Attendee

logger = logging.getLogger(__name__)

ATTENDING = "attending"
RSVP_STATUSES = (ATTENDING, "maybe", "not_attending")


def attendee_count(roster: Optional[List[Mapping[str, Any]]]) -> int:
    return sum(1 for entry in roster or [] if entry.get("status") == ATTENDING)


def find_entry(roster: Optional[List[Mapping[str, Any]]], user_id: Any) -> Optional[Mapping[str, Any]]:
    for entry in roster or []:
        if str(entry.get("user")) == str(user_id):
            return entry
    return None


def check_rsvp(event: Mapping[str, Any], user_id: Any, status: str) -> None:
    """Validate an RSVP against the current state of ``event``.

    Raises:
        ValidationError: unknown status, or the event is not published
        EventPrivate: the event is not public
        EventFull: no attending slot is left for this user
    """
    if status not in RSVP_STATUSES:
        raise ValidationError("Invalid RSVP status", errors=[f"status must be one of {', '.join(RSVP_STATUSES)}"])
    if not event.get("isPublic", True):
        raise EventPrivate()
    if event.get("status", "published") != "published":
        raise ValidationError("Cannot RSVP to an event that is not published")

    max_attendees = event.get("maxAttendees")
    if status != ATTENDING or not max_attendees:
        return
    roster = event.get("attendees") or []
    taken = attendee_count(roster)
    own = find_entry(roster, user_id)
    if own is not None and own.get("status") == ATTENDING:
        taken -= 1
    if taken >= max_attendees:
        raise EventFull()


def rsvp(
    events: Collection,
    event_id: ObjectId,
    user_id: ObjectId,
    status: str,
    now: Optional[datetime] = None,
) -> int:
    """Record ``user_id``'s RSVP on the event and return its attendeeCount."""
    attempts = get_settings().rsvp_max_attempts
    for attempt in range(attempts):
        event = events.find_one({"_id": event_id})
        if event is None:
            raise NotFound("Event not found")
        check_rsvp(event, user_id, status)

        stamp = now or utcnow()
        revision = event.get("revision", 0)
        if find_entry(event.get("attendees"), user_id) is not None:
            query: Dict[str, Any] = {"_id": event_id, "revision": revision, "attendees.user": user_id}
            update: Dict[str, Any] = {
                "$set": {"attendees.$.status": status, "attendees.$.rsvpDate": stamp},
                "$inc": {"revision": 1},
            }
        else:
            query = {"_id": event_id, "revision": revision, "attendees.user": {"$ne": user_id}}
            update = {
                "$push": {"attendees": Attendee(user=user_id, status=status, rsvp_date=stamp).model_dump(by_alias=True)},
                "$inc": {"revision": 1},
            }
        if "revision" not in event:
            # documents written before revisions existed
            query["revision"] = {"$exists": False}

        updated = events.find_one_and_update(query, update, return_document=ReturnDocument.AFTER)
        if updated is not None:
            count = attendee_count(updated.get("attendees"))
            logger.info("RSVP %s by %s on event %s (attending=%d)", status, user_id, event_id, count)
            return count
        logger.debug("RSVP compare-and-set lost on event %s (attempt %d)", event_id, attempt + 1)

    raise ConcurrentModification("Event was modified concurrently, please retry")
