"""
Unit tests for event lifecycle rules and derived fields.
"""

from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId

from events import can_view, derived_fields, ensure_transition, validate_schedule, validate_update
from errors import ValidationError

NOW = datetime(2030, 6, 1, 12, 0)


class TestTransitions:
    """Tests for ensure_transition."""

    @pytest.mark.parametrize(
        "current,new",
        [
            ("draft", "published"),
            ("published", "cancelled"),
            ("published", "completed"),
            ("published", "published"),
        ],
    )
    def test_allowed(self, current, new):
        ensure_transition(current, new)

    @pytest.mark.parametrize(
        "current,new",
        [
            ("cancelled", "published"),
            ("completed", "draft"),
            ("published", "draft"),
            ("draft", "completed"),
        ],
    )
    def test_rejected(self, current, new):
        with pytest.raises(ValidationError):
            ensure_transition(current, new)

    def test_unknown_status(self):
        with pytest.raises(ValidationError):
            ensure_transition("draft", "archived")


class TestSchedule:

    def test_future_date(self):
        validate_schedule(NOW + timedelta(hours=1), now=NOW)

    def test_past_date(self):
        with pytest.raises(ValidationError) as info:
            validate_schedule(NOW - timedelta(hours=1), now=NOW)
        assert info.value.message == "Event date must be in the future"

    def test_end_before_start(self):
        start = NOW + timedelta(days=1)
        with pytest.raises(ValidationError) as info:
            validate_schedule(start, start - timedelta(hours=1), now=NOW)
        assert "End date must be after start date" in info.value.errors

    def test_aware_dates_are_normalized(self):
        aware = (NOW + timedelta(hours=2)).replace(tzinfo=timezone.utc)
        validate_schedule(aware, now=NOW)

    def test_update_checks_end_against_stored_date(self):
        event = {"status": "published", "date": NOW + timedelta(days=2)}
        with pytest.raises(ValidationError):
            validate_update(event, {"endDate": NOW + timedelta(days=1)}, now=NOW)
        validate_update(event, {"endDate": NOW + timedelta(days=3)}, now=NOW)

    def test_update_rejects_bad_transition(self):
        with pytest.raises(ValidationError):
            validate_update({"status": "cancelled"}, {"status": "published"}, now=NOW)


class TestDerivedFields:
    """Tests for attendeeCount, isFull, isPast and isUpcoming."""

    def test_counts_only_attending(self):
        event = {
            "date": NOW + timedelta(days=1),
            "maxAttendees": 2,
            "attendees": [
                {"user": ObjectId(), "status": "attending"},
                {"user": ObjectId(), "status": "maybe"},
                {"user": ObjectId(), "status": "attending"},
            ],
        }
        derived = derived_fields(event, NOW)
        assert derived["attendeeCount"] == 2
        assert derived["isFull"] is True
        assert derived["isUpcoming"] is True
        assert derived["isPast"] is False

    def test_past_event(self):
        derived = derived_fields({"date": NOW - timedelta(days=1)}, NOW)
        assert derived["isPast"] is True
        assert derived["isUpcoming"] is False

    def test_far_future_is_not_upcoming(self):
        derived = derived_fields({"date": NOW + timedelta(days=30)}, NOW)
        assert derived["isUpcoming"] is False

    def test_no_capacity_is_never_full(self):
        event = {"date": NOW, "attendees": [{"user": ObjectId(), "status": "attending"}]}
        assert derived_fields(event, NOW)["isFull"] is False


class TestVisibility:

    def test_public_visible_to_anyone(self):
        assert can_view({"isPublic": True, "organizer": ObjectId()}, None)

    def test_private_only_for_organizer(self):
        organizer = ObjectId()
        event = {"isPublic": False, "organizer": organizer}
        assert can_view(event, organizer)
        assert not can_view(event, ObjectId())
        assert not can_view(event, None)
