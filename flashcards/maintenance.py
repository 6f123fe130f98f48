"""
Self-healing integrity sweep for the local store.

Run at startup. Each step is idempotent and independent: a failing step is
logged and reported, and the remaining steps still run.
"""

from typing import Dict, Optional

from sqlalchemy import select

from flashcards.database import (
    active_card_clause,
    ensure_card_deleted_field,
    recount_deck_in_session,
)
from flashcards.db_engine import get_session
from flashcards.models import now_ms
from flashcards.orm_models import CardORM, CardReviewORM, DeckORM, StudyLogORM
from util.logging_util import setup_logger

logger = setup_logger(__name__)


def fix_deck_card_counts() -> int:
    """Recompute cards_count for every deck. Returns how many decks were corrected."""
    now = now_ms()
    fixed = 0
    with get_session() as session:
        decks = session.execute(select(DeckORM)).scalars().all()
        logger.info(f"Checking card counts for {len(decks)} decks")
        for deck in decks:
            before = deck.cards_count
            after = recount_deck_in_session(session, deck.id, now)
            if after != before:
                fixed += 1
    return fixed


def _active_card_ids(session) -> set:
    stmt = select(CardORM.id).where(active_card_clause())
    return set(session.execute(stmt).scalars().all())


def cleanup_orphaned_reviews() -> int:
    """Delete reviews whose card is missing or soft-deleted. Returns the number removed."""
    with get_session() as session:
        card_ids = _active_card_ids(session)
        reviews = session.execute(select(CardReviewORM)).scalars().all()
        orphaned = [r for r in reviews if r.card_id not in card_ids]
        if orphaned:
            logger.info(f"Cleaning up {len(orphaned)} orphaned reviews")
        for review in orphaned:
            session.delete(review)
        return len(orphaned)


def cleanup_orphaned_study_logs() -> int:
    """Delete study logs whose card is missing or soft-deleted. Returns the number removed."""
    with get_session() as session:
        card_ids = _active_card_ids(session)
        logs = session.execute(select(StudyLogORM)).scalars().all()
        orphaned = [log for log in logs if log.card_id not in card_ids]
        if orphaned:
            logger.info(f"Cleaning up {len(orphaned)} orphaned study logs")
        for log in orphaned:
            session.delete(log)
        return len(orphaned)


MAINTENANCE_STEPS = (
    ("deleted_flags", ensure_card_deleted_field),
    ("card_counts", fix_deck_card_counts),
    ("orphaned_reviews", cleanup_orphaned_reviews),
    ("orphaned_logs", cleanup_orphaned_study_logs),
)


def run_database_maintenance() -> Dict[str, Optional[int]]:
    """Run every maintenance step.

    Returns, per step, the number of rows fixed or removed, or None if the
    step failed.
    """
    results: Dict[str, Optional[int]] = {}
    for name, step in MAINTENANCE_STEPS:
        try:
            results[name] = step()
        except Exception as e:
            logger.error(f"Maintenance step {name} failed: {e}")
            results[name] = None

    logger.info(f"Database maintenance completed: {results}")
    return results
