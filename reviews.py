"""
Review ledger for businesses and resources.

One review per (target, user). The append is a single conditional update that
only matches while the target holds no review by that user, so two identical
requests racing each other cannot both land. Reviews cannot be edited.
"""
import logging
from typing import Any, Dict, List, Mapping, Optional

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.collection import Collection

from errors import DuplicateReview, InvalidRating, NotFound
from schemas import Review

logger = logging.getLogger(__name__)

RATING_MIN = 1
RATING_MAX = 5


def validate_rating(rating: Any) -> int:
    if isinstance(rating, bool) or not isinstance(rating, (int, float)):
        raise InvalidRating(rating)
    if rating != int(rating) or not RATING_MIN <= rating <= RATING_MAX:
        raise InvalidRating(rating)
    return int(rating)


def rating_summary(reviews: Optional[List[Mapping[str, Any]]]) -> Dict[str, Any]:
    ratings = [r["rating"] for r in reviews or [] if r.get("rating") is not None]
    average = round(sum(ratings) / len(ratings), 2) if ratings else None
    return {"averageRating": average, "reviewCount": len(ratings)}


def add_review(
    collection: Collection,
    target_id: ObjectId,
    user_id: ObjectId,
    rating: Any,
    comment: Optional[str] = None,
    kind: str = "business",
) -> Dict[str, Any]:
    """Append a review and return the updated target document.

    Raises:
        InvalidRating: rating is not an integer in [1, 5]
        NotFound: no target with ``target_id``
        DuplicateReview: ``user_id`` already reviewed this target
    """
    rating = validate_rating(rating)
    review = Review(user=user_id, rating=rating, comment=(comment or "").strip()).model_dump(by_alias=True)
    review["_id"] = ObjectId()
    doc = collection.find_one_and_update(
        {"_id": target_id, "reviews.user": {"$ne": user_id}},
        {"$push": {"reviews": review}},
        return_document=ReturnDocument.AFTER,
    )
    if doc is None:
        if collection.find_one({"_id": target_id}) is None:
            raise NotFound(f"{kind.capitalize()} not found")
        raise DuplicateReview(kind)

    logger.info("Review by %s added to %s %s", user_id, kind, target_id)
    return doc
