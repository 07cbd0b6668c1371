# handlers/dedup.py
import logging
from typing import Optional

from sqlalchemy.orm import Session

from crud import find_event
from models import Event
from schemas import EventCandidate

logger = logging.getLogger(__name__)


def find_duplicate(
    db: Session,
    owner_id: int,
    candidate: EventCandidate,
    child_id: Optional[int] = None,
) -> Optional[Event]:
    """
    Existing event with the same (owner, title, start date) and, when a child was
    resolved, the same child. This is a read followed later by a separate insert;
    two requests for the same owner can both pass it.
    """
    existing = find_event(
        db,
        owner_id,
        title=candidate.title,
        start_date=candidate.start_date,
        child_id=child_id,
    )
    if existing is not None:
        logger.info(
            "Skipping duplicate event %r on %s for user %s (existing id %s)",
            candidate.title, candidate.start_date, owner_id, existing.id,
        )
    return existing


def is_duplicate(db: Session, owner_id: int, candidate: EventCandidate, child_id: Optional[int] = None) -> bool:
    return find_duplicate(db, owner_id, candidate, child_id) is not None
