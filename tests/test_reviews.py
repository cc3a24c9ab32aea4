"""
Unit tests for the review ledger.
"""

import pytest
from bson import ObjectId

from errors import DuplicateReview, InvalidRating, NotFound
from reviews import add_review, rating_summary, validate_rating


def make_business(db):
    return db["businesses"].insert_one({"name": "Bakery", "owner": ObjectId(), "reviews": []}).inserted_id


class TestValidateRating:

    @pytest.mark.parametrize("rating", [1, 3, 5, 4.0])
    def test_accepted(self, rating):
        assert validate_rating(rating) == int(rating)

    @pytest.mark.parametrize("rating", [0, 6, 2.5, None, "4", True])
    def test_rejected(self, rating):
        with pytest.raises(InvalidRating):
            validate_rating(rating)


class TestAddReview:
    """Tests for add_review."""

    def test_first_review(self, db):
        business_id = make_business(db)
        user = ObjectId()
        doc = add_review(db["businesses"], business_id, user, 4, "  Great bread ")
        assert len(doc["reviews"]) == 1
        review = doc["reviews"][0]
        assert review["user"] == user
        assert review["rating"] == 4
        assert review["comment"] == "Great bread"
        assert "_id" in review

    def test_second_review_by_same_user_conflicts(self, db):
        business_id = make_business(db)
        user = ObjectId()
        add_review(db["businesses"], business_id, user, 4)
        with pytest.raises(DuplicateReview) as info:
            add_review(db["businesses"], business_id, user, 1)
        assert info.value.message == "You have already reviewed this business"
        stored = db["businesses"].find_one({"_id": business_id})
        assert [r["rating"] for r in stored["reviews"]] == [4]

    def test_other_user_can_review(self, db):
        business_id = make_business(db)
        add_review(db["businesses"], business_id, ObjectId(), 4)
        doc = add_review(db["businesses"], business_id, ObjectId(), 2)
        assert len(doc["reviews"]) == 2

    def test_missing_target(self, db):
        with pytest.raises(NotFound) as info:
            add_review(db["resources"], ObjectId(), ObjectId(), 3, kind="resource")
        assert info.value.message == "Resource not found"

    def test_invalid_rating_is_not_stored(self, db):
        business_id = make_business(db)
        with pytest.raises(InvalidRating):
            add_review(db["businesses"], business_id, ObjectId(), 9)
        assert db["businesses"].find_one({"_id": business_id})["reviews"] == []


class TestRatingSummary:

    def test_empty(self):
        assert rating_summary([]) == {"averageRating": None, "reviewCount": 0}
        assert rating_summary(None)["reviewCount"] == 0

    def test_average(self):
        summary = rating_summary([{"rating": 4}, {"rating": 5}, {"rating": 2}])
        assert summary == {"averageRating": 3.67, "reviewCount": 3}
