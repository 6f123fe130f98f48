"""
Database operations for the local flashcards store.

Uses SQLAlchemy ORM for database access. The public API uses the dataclass
models from models.py, with conversion to/from ORM models handled internally.

Every change to a card's deck or active-ness goes through recount_deck_in_session
so that deck.cards_count stays equal to the number of active cards in the deck.
"""

from enum import Enum
from typing import Dict, Iterable, List, Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from flashcards.constants import (
    DEFAULT_DECK_DESCRIPTION,
    DEFAULT_DECK_ID,
    DEFAULT_DECK_NAME,
    DEFAULT_NEW_CARDS_PER_DAY,
    DEFAULT_REVIEWS_PER_DAY,
)
from flashcards.db_engine import get_engine, get_session
from flashcards.models import (
    Card,
    CardReview,
    Deck,
    DeletedStatus,
    Rating,
    StudyLog,
    new_id,
    now_ms,
)
from flashcards.orm_models import (
    Base,
    CardORM,
    CardReviewORM,
    DeckORM,
    StudyLogORM,
    TrashItemORM,
    card_dataclass_to_orm,
    card_orm_to_dataclass,
    deck_dataclass_to_orm,
    deck_orm_to_dataclass,
    review_dataclass_to_orm,
    review_orm_to_dataclass,
    study_log_dataclass_to_orm,
    study_log_orm_to_dataclass,
)
from util.logging_util import setup_logger

logger = setup_logger(__name__)


def init_db():
    """Initialize the database schema."""
    engine = get_engine()
    Base.metadata.create_all(engine)


def active_card_clause():
    """SQL condition selecting cards that are not soft-deleted."""
    return or_(
        CardORM.deleted.is_(None),
        CardORM.deleted != DeletedStatus.DELETED.value,
    )


def _to_column_value(value):
    # Enums are stored by value
    if isinstance(value, Enum):
        return value.value
    return value


def _apply_patch(orm, fields: Dict, allowed: Iterable[str]):
    for name, value in fields.items():
        if name not in allowed:
            raise ValueError(f"Unknown field for {type(orm).__name__}: {name}")
        setattr(orm, name, _to_column_value(value))


# ---- Decks ----

DECK_FIELDS = (
    "name",
    "description",
    "cards_count",
    "new_cards_per_day",
    "reviews_per_day",
    "created_at",
    "updated_at",
)


def init_default_deck() -> Optional[Deck]:
    """Create the default deck if the store has no decks at all.

    Returns the created deck, or None when decks already exist.
    """
    with get_session() as session:
        deck_count = session.execute(select(func.count()).select_from(DeckORM)).scalar()
        if deck_count:
            return None

        now = now_ms()
        orm = DeckORM(
            id=DEFAULT_DECK_ID,
            name=DEFAULT_DECK_NAME,
            description=DEFAULT_DECK_DESCRIPTION,
            cards_count=0,
            new_cards_per_day=DEFAULT_NEW_CARDS_PER_DAY,
            reviews_per_day=DEFAULT_REVIEWS_PER_DAY,
            created_at=now,
            updated_at=now,
        )
        session.add(orm)
        session.flush()
        logger.info("Created default deck")
        return deck_orm_to_dataclass(orm)


def create_deck(
    name: str,
    description: str = "",
    new_cards_per_day: int = DEFAULT_NEW_CARDS_PER_DAY,
    reviews_per_day: int = DEFAULT_REVIEWS_PER_DAY,
) -> Deck:
    """Create a new empty deck with a freshly minted id."""
    now = now_ms()
    deck = Deck(
        id=new_id(),
        name=name,
        description=description,
        cards_count=0,
        new_cards_per_day=new_cards_per_day,
        reviews_per_day=reviews_per_day,
        created_at=now,
        updated_at=now,
    )
    add_deck(deck)
    return deck


def add_deck(deck: Deck):
    """Insert a deck exactly as given."""
    with get_session() as session:
        session.add(deck_dataclass_to_orm(deck))


def get_deck(deck_id: str) -> Optional[Deck]:
    """Get a deck by ID."""
    with get_session() as session:
        orm = session.get(DeckORM, deck_id)
        if orm is None:
            return None
        return deck_orm_to_dataclass(orm)


def list_decks() -> List[Deck]:
    """Get all decks, oldest first."""
    with get_session() as session:
        stmt = select(DeckORM).order_by(DeckORM.created_at.asc())
        return [deck_orm_to_dataclass(orm) for orm in session.execute(stmt).scalars().all()]


def update_deck(deck_id: str, **fields) -> bool:
    """Apply a partial update to a deck. Returns False if the deck is missing."""
    with get_session() as session:
        orm = session.get(DeckORM, deck_id)
        if orm is None:
            return False
        _apply_patch(orm, fields, DECK_FIELDS)
        return True


def delete_deck_row(deck_id: str):
    """Delete a deck row. Its cards are left untouched."""
    with get_session() as session:
        orm = session.get(DeckORM, deck_id)
        if orm is not None:
            session.delete(orm)


def count_active_cards_in_session(session: Session, deck_id: str) -> int:
    stmt = (
        select(func.count())
        .select_from(CardORM)
        .where(CardORM.deck_id == deck_id, active_card_clause())
    )
    return session.execute(stmt).scalar() or 0


def recount_deck_in_session(session: Session, deck_id: str, now: Optional[int] = None) -> Optional[int]:
    """Recompute and persist a deck's active card count.

    Writes only when the cached count is wrong. When `now` is given the deck's
    updated_at is stamped along with the new count. Returns the count, or None
    if the deck does not exist.
    """
    deck = session.get(DeckORM, deck_id)
    if deck is None:
        return None

    session.flush()
    actual = count_active_cards_in_session(session, deck_id)
    if deck.cards_count != actual:
        logger.info(f"Deck '{deck.name}': cards_count {deck.cards_count} -> {actual}")
        deck.cards_count = actual
        if now is not None:
            deck.updated_at = now
    return actual


def recount_deck(deck_id: str, now: Optional[int] = None) -> Optional[int]:
    """Recompute and persist a deck's active card count."""
    with get_session() as session:
        return recount_deck_in_session(session, deck_id, now)


def remap_deck_id(old_id: str, canonical_id: str, now: Optional[int] = None):
    """Move a deck and everything referencing it to a new id in one transaction.

    Order: dependent cards, then trash snapshots, then the deck row itself.
    The deck keeps its own updated_at; moved cards are stamped with `now`.
    """
    now = now if now is not None else now_ms()
    with get_session() as session:
        deck = session.get(DeckORM, old_id)
        if deck is None:
            return

        cards = session.execute(select(CardORM).where(CardORM.deck_id == old_id)).scalars().all()
        for card in cards:
            card.deck_id = canonical_id
            card.updated_at = now

        trash_items = session.execute(select(TrashItemORM)).scalars().all()
        for item in trash_items:
            data = dict(item.data or {})
            if data.get("deckId") != old_id:
                continue
            data["deckId"] = canonical_id
            original_card = dict(data.get("originalCard") or {})
            if original_card:
                original_card["deckId"] = canonical_id
                data["originalCard"] = original_card
            item.data = data

        replacement = deck_orm_to_dataclass(deck)
        replacement.id = canonical_id
        session.delete(deck)
        session.flush()
        session.add(deck_dataclass_to_orm(replacement))

    logger.info(f"Remapped deck {old_id} -> {canonical_id} ({len(cards)} cards)")


# ---- Cards ----

CARD_FIELDS = (
    "deck_id",
    "front",
    "back",
    "tags",
    "source",
    "notes",
    "media",
    "deleted",
    "deleted_at",
    "created_at",
    "updated_at",
)


def add_card(
    deck_id: str,
    front: str,
    back: str,
    tags: Optional[List[str]] = None,
    source: Optional[str] = None,
    notes: Optional[str] = None,
) -> Card:
    """Create a new active card in a deck and recount the deck."""
    now = now_ms()
    card = Card(
        id=new_id(),
        deck_id=deck_id,
        front=front,
        back=back,
        tags=list(tags or []),
        source=source,
        notes=notes,
        created_at=now,
        updated_at=now,
    )
    with get_session() as session:
        session.add(card_dataclass_to_orm(card))
        recount_deck_in_session(session, deck_id, now)
    return card


def add_cards(cards: List[Card]) -> int:
    """Bulk insert cards (e.g. from an import) and recount their decks."""
    now = now_ms()
    with get_session() as session:
        session.add_all([card_dataclass_to_orm(card) for card in cards])
        for deck_id in {card.deck_id for card in cards}:
            recount_deck_in_session(session, deck_id, now)
    return len(cards)


def insert_card(card: Card):
    """Insert a card exactly as given, without touching deck counts."""
    with get_session() as session:
        session.add(card_dataclass_to_orm(card))


def get_card(card_id: str) -> Optional[Card]:
    """Get a card by ID, whatever its deleted state."""
    with get_session() as session:
        orm = session.get(CardORM, card_id)
        if orm is None:
            return None
        return card_orm_to_dataclass(orm)


def list_cards(deck_id: Optional[str] = None) -> List[Card]:
    """Get all cards, including soft-deleted ones, optionally for one deck."""
    with get_session() as session:
        stmt = select(CardORM)
        if deck_id is not None:
            stmt = stmt.where(CardORM.deck_id == deck_id)
        return [card_orm_to_dataclass(orm) for orm in session.execute(stmt).scalars().all()]


def edit_card(
    card_id: str,
    front: Optional[str] = None,
    back: Optional[str] = None,
    tags: Optional[List[str]] = None,
    source: Optional[str] = None,
    notes: Optional[str] = None,
) -> Optional[Card]:
    """Edit a card's content, stamping updated_at."""
    fields = {
        "front": front,
        "back": back,
        "tags": tags,
        "source": source,
        "notes": notes,
    }
    fields = {k: v for k, v in fields.items() if v is not None}
    if not patch_card(card_id, updated_at=now_ms(), **fields):
        return None
    return get_card(card_id)


def patch_card(card_id: str, **fields) -> bool:
    """Apply a partial update to a card. Returns False if the card is missing."""
    with get_session() as session:
        orm = session.get(CardORM, card_id)
        if orm is None:
            return False
        _apply_patch(orm, fields, CARD_FIELDS)
        return True


def move_cards(card_ids: List[str], target_deck_id: str) -> int:
    """Move cards to another deck, recounting the source and target decks.

    Missing cards are skipped. Returns the number of cards moved.
    """
    now = now_ms()
    moved = 0
    affected_decks = {target_deck_id}
    with get_session() as session:
        for card_id in card_ids:
            orm = session.get(CardORM, card_id)
            if orm is None:
                continue
            affected_decks.add(orm.deck_id)
            orm.deck_id = target_deck_id
            orm.updated_at = now
            moved += 1

        for deck_id in affected_decks:
            recount_deck_in_session(session, deck_id, now)

    return moved


def delete_card_row(card_id: str):
    """Delete a card row outright."""
    with get_session() as session:
        orm = session.get(CardORM, card_id)
        if orm is not None:
            session.delete(orm)


# ---- Reviews ----

REVIEW_FIELDS = (
    "ease",
    "interval",
    "repetitions",
    "next_review",
    "last_review",
    "state",
)


def get_review_for_card(card_id: str) -> Optional[CardReview]:
    """Get the review state of a card, whatever id the review row carries."""
    with get_session() as session:
        stmt = select(CardReviewORM).where(CardReviewORM.card_id == card_id)
        orm = session.execute(stmt).scalar_one_or_none()
        if orm is None:
            return None
        return review_orm_to_dataclass(orm)


def list_reviews() -> List[CardReview]:
    """Get all review rows."""
    with get_session() as session:
        orms = session.execute(select(CardReviewORM)).scalars().all()
        return [review_orm_to_dataclass(orm) for orm in orms]


def insert_review(review: CardReview):
    """Insert a review row. Raises if the card already has one."""
    with get_session() as session:
        session.add(review_dataclass_to_orm(review))


def save_review(review: CardReview):
    """Insert or overwrite the review state of review.card_id."""
    with get_session() as session:
        stmt = select(CardReviewORM).where(CardReviewORM.card_id == review.card_id)
        orm = session.execute(stmt).scalar_one_or_none()
        if orm is None:
            session.add(review_dataclass_to_orm(review))
            return
        orm.ease = review.ease
        orm.interval = review.interval
        orm.repetitions = review.repetitions
        orm.next_review = review.next_review
        orm.last_review = review.last_review
        orm.state = review.state.value


def patch_review(card_id: str, **fields) -> bool:
    """Apply a partial update to a card's review. Returns False if missing."""
    with get_session() as session:
        stmt = select(CardReviewORM).where(CardReviewORM.card_id == card_id)
        orm = session.execute(stmt).scalar_one_or_none()
        if orm is None:
            return False
        _apply_patch(orm, fields, REVIEW_FIELDS)
        return True


def delete_review(review_id: str):
    with get_session() as session:
        orm = session.get(CardReviewORM, review_id)
        if orm is not None:
            session.delete(orm)


# ---- Study logs ----

def add_study_log(card_id: str, rating: Rating, time_spent: int, timestamp: Optional[int] = None) -> StudyLog:
    """Append a grading event with a locally minted id."""
    log = StudyLog(
        id=new_id(),
        card_id=card_id,
        rating=Rating(rating),
        time_spent=time_spent,
        timestamp=timestamp if timestamp is not None else now_ms(),
    )
    insert_study_log(log)
    return log


def insert_study_log(log: StudyLog):
    """Insert a study log exactly as given."""
    with get_session() as session:
        session.add(study_log_dataclass_to_orm(log))


def list_study_logs(newest_first: bool = False) -> List[StudyLog]:
    """Get all study logs ordered by timestamp."""
    with get_session() as session:
        order = StudyLogORM.timestamp.desc() if newest_first else StudyLogORM.timestamp.asc()
        orms = session.execute(select(StudyLogORM).order_by(order)).scalars().all()
        return [study_log_orm_to_dataclass(orm) for orm in orms]


def delete_study_log(log_id: str):
    with get_session() as session:
        orm = session.get(StudyLogORM, log_id)
        if orm is not None:
            session.delete(orm)


# ---- Whole-store operations ----

def ensure_card_deleted_field() -> int:
    """Mark cards stored without a deleted flag as active.

    Returns the number of cards fixed.
    """
    now = now_ms()
    with get_session() as session:
        stmt = select(CardORM).where(or_(CardORM.deleted.is_(None), CardORM.deleted == ""))
        orms = session.execute(stmt).scalars().all()
        for orm in orms:
            orm.deleted = DeletedStatus.ACTIVE.value
            orm.updated_at = now
        return len(orms)


def replace_all(
    decks: List[Deck],
    cards: List[Card],
    reviews: List[CardReview],
    logs: List[StudyLog],
):
    """Replace decks, cards, reviews and study logs wholesale in one transaction."""
    with get_session() as session:
        session.execute(delete(StudyLogORM))
        session.execute(delete(CardReviewORM))
        session.execute(delete(CardORM))
        session.execute(delete(DeckORM))

        session.add_all([deck_dataclass_to_orm(d) for d in decks])
        session.add_all([card_dataclass_to_orm(c) for c in cards])
        session.add_all([review_dataclass_to_orm(r) for r in reviews])
        session.add_all([study_log_dataclass_to_orm(log) for log in logs])
