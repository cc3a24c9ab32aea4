"""
Event lifecycle and derived views.

Status moves draft -> published -> cancelled | completed, only through organizer
updates. Nothing transitions automatically when the date passes; isPast and
isUpcoming are computed on read together with attendeeCount and isFull.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, Mapping, Optional

from database import to_utc, utcnow
from errors import ValidationError
from ownership import can_mutate
from rsvp import attendee_count

CATEGORIES = ("cultural", "business", "social", "educational", "religious", "sports", "community", "other")
STATUSES = ("draft", "published", "cancelled", "completed")
INITIAL_STATUSES = ("draft", "published")
TRANSITIONS = {
    "draft": {"published"},
    "published": {"cancelled", "completed"},
    "cancelled": set(),
    "completed": set(),
}
UPCOMING_WINDOW = timedelta(days=7)


def ensure_transition(current: str, new: str) -> None:
    if new not in STATUSES:
        raise ValidationError("Invalid event status", errors=[f"status must be one of {', '.join(STATUSES)}"])
    if new == current:
        return
    if new not in TRANSITIONS.get(current, set()):
        raise ValidationError(f"Cannot change event status from {current} to {new}")


def validate_schedule(date: datetime, end_date: Optional[datetime] = None, now: Optional[datetime] = None) -> None:
    now = now or utcnow()
    errors = []
    if to_utc(date) <= now:
        errors.append("Event date must be in the future")
    if end_date is not None and to_utc(end_date) <= to_utc(date):
        errors.append("End date must be after start date")
    if errors:
        raise ValidationError(errors[0], errors=errors)


def validate_update(event: Mapping[str, Any], changes: Mapping[str, Any], now: Optional[datetime] = None) -> None:
    """Check an organizer's field changes against the event's current state."""
    if "status" in changes:
        ensure_transition(event.get("status", "published"), changes["status"])
    if "date" in changes:
        validate_schedule(changes["date"], changes.get("endDate", event.get("endDate")), now)
    elif changes.get("endDate") is not None and isinstance(event.get("date"), datetime):
        if to_utc(changes["endDate"]) <= to_utc(event["date"]):
            raise ValidationError("End date must be after start date")


def derived_fields(event: Mapping[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or utcnow()
    count = attendee_count(event.get("attendees"))
    max_attendees = event.get("maxAttendees")
    date = event.get("date")
    date = to_utc(date) if isinstance(date, datetime) else None
    return {
        "attendeeCount": count,
        "isFull": bool(max_attendees) and count >= max_attendees,
        "isPast": date is not None and date < now,
        "isUpcoming": date is not None and now <= date <= now + UPCOMING_WINDOW,
    }


def with_derived(event: Mapping[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    return {**event, **derived_fields(event, now)}


def can_view(event: Mapping[str, Any], viewer_id: Any) -> bool:
    """Public events are visible to anyone, private ones to their organizer."""
    return bool(event.get("isPublic", True)) or can_mutate(viewer_id, event.get("organizer"))
