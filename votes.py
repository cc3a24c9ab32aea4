"""
Vote ledger for forum posts.

Votes adjust the post's ``upvotes`` counter in place: "up" adds one, "down"
removes one but never takes the counter below zero. Individual votes are not
tracked, so a user may vote repeatedly.
"""
import logging
from typing import Any

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.collection import Collection

from errors import InvalidVoteType, NotFound

logger = logging.getLogger(__name__)

VOTE_DELTAS = {"up": 1, "down": -1}


def vote_delta(vote_type: Any) -> int:
    try:
        return VOTE_DELTAS[vote_type]
    except (KeyError, TypeError):
        raise InvalidVoteType(vote_type)


def apply_vote(posts: Collection, post_id: ObjectId, vote_type: Any) -> int:
    """Apply a vote atomically and return the new counter.

    The decrement only matches while ``upvotes > 0``; when it does not match
    the post is re-read to tell "already at zero" from "no such post".
    """
    delta = vote_delta(vote_type)
    query = {"_id": post_id}
    if delta < 0:
        query["upvotes"] = {"$gt": 0}

    doc = posts.find_one_and_update(
        query,
        {"$inc": {"upvotes": delta}},
        return_document=ReturnDocument.AFTER,
    )
    if doc is None and delta < 0:
        doc = posts.find_one({"_id": post_id})
    if doc is None:
        raise NotFound("Post not found")

    logger.debug("Vote %s on post %s -> %s", vote_type, post_id, doc.get("upvotes"))
    return doc.get("upvotes", 0)
