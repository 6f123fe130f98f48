"""
Soft delete and the trash for cards.

Deleting a card marks it deleted and files a TrashItem holding a snapshot of
the card, from which it can be restored or permanently deleted. Every
operation that changes which cards are active recounts the affected decks.
Operating on a card or trash entry that no longer exists, or trashing a card
that is already in the trash, is a silent no-op.
"""

from typing import Dict, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from flashcards.constants import TRASH_NAME_MAX_LENGTH, UNKNOWN_DECK_NAME
from flashcards.database import active_card_clause, recount_deck_in_session
from flashcards.db_engine import get_session
from flashcards.models import Card, DeletedStatus, TrashItem, TrashItemType, card_to_dict, now_ms
from flashcards.orm_models import (
    CardORM,
    CardReviewORM,
    DeckORM,
    TrashItemORM,
    card_orm_to_dataclass,
    trash_dataclass_to_orm,
    trash_orm_to_dataclass,
)
from util.logging_util import setup_logger

logger = setup_logger(__name__)


def trash_item_id(card_id: str, deleted_at: int) -> str:
    return f"card-{card_id}-{deleted_at}"


def truncate_name(text: str, max_length: int = TRASH_NAME_MAX_LENGTH) -> str:
    if len(text) > max_length:
        return text[:max_length] + "..."
    return text


def _build_trash_item(card: Card, deck_name: Optional[str], deleted_at: int) -> TrashItem:
    return TrashItem(
        id=trash_item_id(card.id, deleted_at),
        type=TrashItemType.CARD,
        name=truncate_name(card.front),
        description=card.back,
        deck_name=deck_name or UNKNOWN_DECK_NAME,
        deleted_at=deleted_at,
        data={
            "originalCard": card_to_dict(card),
            "deckId": card.deck_id,
        },
    )


def _mark_deleted(session: Session, card_id: str, deleted_at: int) -> Optional[TrashItem]:
    orm = session.get(CardORM, card_id)
    if orm is None or orm.deleted == DeletedStatus.DELETED.value:
        return None

    # Snapshot before the flags change
    card = card_orm_to_dataclass(orm)
    orm.deleted = DeletedStatus.DELETED.value
    orm.deleted_at = deleted_at
    orm.updated_at = deleted_at

    deck = session.get(DeckORM, card.deck_id)
    return _build_trash_item(card, deck.name if deck else None, deleted_at)


def soft_delete_card(card_id: str) -> Optional[TrashItem]:
    """Move a card to the trash. Returns the trash entry, or None if the card is missing or already trashed."""
    deleted_at = now_ms()
    with get_session() as session:
        trash_item = _mark_deleted(session, card_id, deleted_at)
        if trash_item is None:
            return None

        session.add(trash_dataclass_to_orm(trash_item))
        recount_deck_in_session(session, trash_item.data["deckId"], deleted_at)

    logger.info(f"Moved card {card_id} to trash")
    return trash_item


def batch_soft_delete_cards(card_ids: List[str]) -> List[TrashItem]:
    """Move several cards to the trash, recounting each affected deck once.

    Cards that no longer exist or are already in the trash are skipped.
    """
    deleted_at = now_ms()
    trash_items: List[TrashItem] = []
    with get_session() as session:
        for card_id in dict.fromkeys(card_ids):
            trash_item = _mark_deleted(session, card_id, deleted_at)
            if trash_item is not None:
                trash_items.append(trash_item)

        if trash_items:
            session.add_all([trash_dataclass_to_orm(item) for item in trash_items])

        for deck_id in {item.data["deckId"] for item in trash_items}:
            recount_deck_in_session(session, deck_id, deleted_at)

    logger.info(f"Moved {len(trash_items)} of {len(card_ids)} cards to trash")
    return trash_items


def _snapshot_ids(trash_item: TrashItem) -> Dict[str, str]:
    original = trash_item.data.get("originalCard") or {}
    return {
        "card_id": original.get("id"),
        "deck_id": trash_item.data.get("deckId") or original.get("deckId"),
    }


def restore_card(trash_item: TrashItem):
    """Bring a trashed card back to active and drop its trash entry."""
    ids = _snapshot_ids(trash_item)
    now = now_ms()
    with get_session() as session:
        orm = session.get(CardORM, ids["card_id"])
        if orm is not None:
            orm.deleted = DeletedStatus.ACTIVE.value
            orm.deleted_at = None
            orm.updated_at = now

        trash_orm = session.get(TrashItemORM, trash_item.id)
        if trash_orm is not None:
            session.delete(trash_orm)

        if ids["deck_id"]:
            recount_deck_in_session(session, ids["deck_id"], now)

    logger.info(f"Restored card {ids['card_id']}")


def permanent_delete_card(trash_item: TrashItem):
    """Delete a trashed card, its review and its trash entry for good.

    The owning deck is recounted as part of the operation.
    """
    ids = _snapshot_ids(trash_item)
    with get_session() as session:
        card = session.get(CardORM, ids["card_id"])
        if card is not None:
            session.delete(card)
        session.execute(delete(CardReviewORM).where(CardReviewORM.card_id == ids["card_id"]))

        trash_orm = session.get(TrashItemORM, trash_item.id)
        if trash_orm is not None:
            session.delete(trash_orm)

        if ids["deck_id"]:
            recount_deck_in_session(session, ids["deck_id"], now_ms())

    logger.info(f"Permanently deleted card {ids['card_id']}")


def get_active_cards(deck_id: Optional[str] = None) -> List[Card]:
    """Cards that can be studied: everything not soft-deleted, optionally in one deck."""
    with get_session() as session:
        stmt = select(CardORM).where(active_card_clause())
        if deck_id is not None:
            stmt = stmt.where(CardORM.deck_id == deck_id)
        stmt = stmt.order_by(CardORM.created_at.asc())
        return [card_orm_to_dataclass(orm) for orm in session.execute(stmt).scalars().all()]


def get_trash_items() -> List[TrashItem]:
    """All trash entries, most recently deleted first."""
    with get_session() as session:
        stmt = select(TrashItemORM).order_by(TrashItemORM.deleted_at.desc())
        return [trash_orm_to_dataclass(orm) for orm in session.execute(stmt).scalars().all()]


def get_trash_item(item_id: str) -> Optional[TrashItem]:
    with get_session() as session:
        orm = session.get(TrashItemORM, item_id)
        if orm is None:
            return None
        return trash_orm_to_dataclass(orm)


def empty_trash() -> int:
    """Permanently delete every trashed card. Returns how many were processed."""
    deleted_count = 0
    for item in get_trash_items():
        if item.type != TrashItemType.CARD:
            continue
        permanent_delete_card(item)
        deleted_count += 1

    logger.info(f"Emptied trash ({deleted_count} cards)")
    return deleted_count
