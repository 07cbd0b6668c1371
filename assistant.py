# assistant.py
"""
Content-to-calendar pipeline.

    raw content -> normalizer -> classifier -> validator
                -> child resolver -> duplicate check -> record store

Candidates are handled one at a time, each store round trip finishing before
the next candidate starts, so the duplicate check sees events created earlier
in the same request. A failing candidate is rolled back and reported in
`errors`; the rest of the batch still runs.
"""
from __future__ import annotations

import logging
from datetime import date as _date
from typing import List, Optional, Sequence, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from crud import create_event, get_child, list_children
from errors import ChildNotFoundError, MissingContentError
from handlers.children import resolve_child
from handlers.dedup import is_duplicate
from llm_handler import EventClassifier, get_classifier
from normalizer import clean_text
from schemas import AnalysisResult, ClassificationResult, PersistedEvent, PhotoContent, RawContent

logger = logging.getLogger(__name__)

_MIME_BY_EXT = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
}


def get_image_mime_type(filename: Optional[str]) -> str:
    ext = (filename or "").lower().rsplit(".", 1)[-1]
    return _MIME_BY_EXT.get(ext, "image/jpeg")


def verify_child(db: Session, owner_id: int, child_id) -> Optional[int]:
    """None for no child; the int id if owner_id owns it; ChildNotFoundError otherwise."""
    if child_id in (None, ""):
        return None
    try:
        cid = int(child_id)
    except (TypeError, ValueError):
        raise ChildNotFoundError(child_id, owner_id)
    if get_child(db, owner_id, cid) is None:
        logger.warning("Child %s not found for user %s", child_id, owner_id)
        raise ChildNotFoundError(child_id, owner_id)
    return cid


def persist_candidates(
    db: Session,
    owner_id: int,
    classification: ClassificationResult,
    *,
    child_id: Optional[int] = None,
    children: Optional[Sequence] = None,
) -> AnalysisResult:
    """
    Create events for every candidate that is not already on record.
    An explicit child_id applies to all candidates; otherwise each candidate's
    child name hint is resolved against `children`.
    """
    errors: List[str] = list(classification.errors)
    if not classification.events:
        logger.info("No events detected for user %s", owner_id)
        return AnalysisResult(has_events=False, analysis=classification.analysis, errors=errors)

    if children is None:
        children = list_children(db, owner_id)

    created: List[PersistedEvent] = []
    skipped = 0
    for cand in classification.events:
        try:
            if child_id is not None:
                target_child = child_id
            else:
                target_child = resolve_child(cand.child_name_hint, children).child_id

            if is_duplicate(db, owner_id, cand, target_child):
                skipped += 1
                continue

            event = create_event(db, owner_id, cand, target_child)
            created.append(PersistedEvent.model_validate(event))
            logger.debug("Event created: id=%s title=%r child=%s", event.id, cand.title, target_child)
        except (SQLAlchemyError, ValueError) as e:
            db.rollback()
            logger.warning("Error creating event %r for user %s: %s", cand.title, owner_id, e)
            errors.append(f"Failed to create event: {cand.title} - {e}")

    logger.info(
        "Analysis finished for user %s: detected=%d created=%d skipped=%d errors=%d",
        owner_id, len(classification.events), len(created), skipped, len(errors),
    )
    return AnalysisResult(
        has_events=True,
        events_created=len(created),
        events=created,
        skipped=skipped,
        analysis=classification.analysis,
        errors=errors,
    )


def analyze_content(
    db: Session,
    owner_id: int,
    content: Union[RawContent, str],
    *,
    classifier: Optional[EventClassifier] = None,
    child_id=None,
    today: Optional[_date] = None,
) -> AnalysisResult:
    """Analyze an email body (or any text) and create the events it mentions."""
    text = content.text if isinstance(content, RawContent) else (content or "")
    if not clean_text(text):
        raise MissingContentError("Email content is required and cannot be empty")

    explicit_child = verify_child(db, owner_id, child_id)
    classifier = classifier or get_classifier()
    children = list_children(db, owner_id)

    logger.info("Email analysis request: user=%s length=%d child=%s", owner_id, len(text), explicit_child)
    result = classifier.classify(
        RawContent(text=text),
        today=today,
        known_children=[c.name for c in children],
    )
    return persist_candidates(db, owner_id, result, child_id=explicit_child, children=children)


def analyze_photo(
    db: Session,
    owner_id: int,
    image: Optional[bytes],
    mime_type: Optional[str] = None,
    *,
    filename: Optional[str] = None,
    classifier: Optional[EventClassifier] = None,
    child_id=None,
    today: Optional[_date] = None,
) -> AnalysisResult:
    """Analyze a photographed flyer/schedule and create the events it shows."""
    if not image:
        raise MissingContentError("Photo file is required")

    explicit_child = verify_child(db, owner_id, child_id)
    classifier = classifier or get_classifier()
    children = list_children(db, owner_id)
    mime = mime_type or get_image_mime_type(filename)

    logger.info("Photo analysis request: user=%s bytes=%d mime=%s", owner_id, len(image), mime)
    result = classifier.classify_photo(
        image,
        mime,
        today=today,
        known_children=[c.name for c in children],
    )
    return persist_candidates(db, owner_id, result, child_id=explicit_child, children=children)


def analyze(
    db: Session,
    owner_id: int,
    content: Union[RawContent, PhotoContent, str],
    **kwargs,
) -> AnalysisResult:
    """Dispatch to text or photo analysis by content type."""
    if isinstance(content, PhotoContent):
        return analyze_photo(db, owner_id, content.image, content.mime_type, **kwargs)
    return analyze_content(db, owner_id, content, **kwargs)
