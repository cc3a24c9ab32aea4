"""
Ownership guard: only the owning user may update or delete a document.

Callers look the document up first and raise NotFound themselves, so a 404
always means "no such id" and a 403 always means "not yours".
"""
from typing import Any, Mapping

from errors import Forbidden


def can_mutate(actor_id: Any, owner_id: Any) -> bool:
    if actor_id is None or owner_id is None:
        return False
    return str(actor_id) == str(owner_id)


def ensure_owner(actor_id: Any, doc: Mapping[str, Any], owner_field: str, action: str, kind: str) -> None:
    """Raise Forbidden unless ``actor_id`` owns ``doc``.

    ``ensure_owner(uid, post, "user", "update", "post")`` fails with
    "Not authorized to update this post".
    """
    if not can_mutate(actor_id, doc.get(owner_field)):
        raise Forbidden(f"Not authorized to {action} this {kind}")
