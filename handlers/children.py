# handlers/children.py
import logging
from typing import Iterable, NamedTuple, Optional

from sqlalchemy.orm import Session

from crud import list_children

logger = logging.getLogger(__name__)


class ChildMatch(NamedTuple):
    child_id: Optional[int]
    matched: bool
    reason: str


def _norm(s: Optional[str]) -> str:
    return (s or "").strip().lower()


def resolve_child(hint: Optional[str], children: Iterable) -> ChildMatch:
    """
    Map a free-text child name to a known child.
    Case-insensitive exact match only; the first matching child wins.
    """
    wanted = _norm(hint)
    if not wanted:
        return ChildMatch(None, False, "no child name given")

    for child in children:
        if _norm(getattr(child, "name", None)) == wanted:
            return ChildMatch(child.id, True, f"matched child {child.name!r}")

    logger.info("No matching child found for %r", hint)
    return ChildMatch(None, False, f"no child named {hint!r}")


def resolve_child_for_owner(db: Session, owner_id: int, hint: Optional[str]) -> ChildMatch:
    if not _norm(hint):
        return ChildMatch(None, False, "no child name given")
    return resolve_child(hint, list_children(db, owner_id))
