"""
SQLAlchemy ORM models for the local flashcards store.

These models are internal to the database layer. The public interface
uses the dataclass models from models.py.
"""

import json
from typing import List, Optional

from sqlalchemy import BigInteger, Float, Integer, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from flashcards.models import (
    Card,
    CardReview,
    CardState,
    Deck,
    DeletedStatus,
    Rating,
    StudyLog,
    TrashItem,
    TrashItemType,
)


class JSONEncodedList(TypeDecorator):
    """Represents a list as a JSON-encoded string."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Optional[List], dialect) -> Optional[str]:
        if value is None or value == []:
            return None
        return json.dumps(value)

    def process_result_value(self, value: Optional[str], dialect) -> List:
        if value is None:
            return []
        return json.loads(value)


class JSONEncodedDict(TypeDecorator):
    """Represents a dict as a JSON-encoded string."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Optional[dict], dialect) -> Optional[str]:
        if value is None or value == {}:
            return None
        return json.dumps(value)

    def process_result_value(self, value: Optional[str], dialect) -> dict:
        if value is None:
            return {}
        return json.loads(value)


class Base(DeclarativeBase):
    pass


class DeckORM(Base):
    """SQLAlchemy model for decks table."""

    __tablename__ = "decks"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    cards_count: Mapped[int] = mapped_column(Integer, default=0)
    new_cards_per_day: Mapped[int] = mapped_column(Integer, nullable=False)
    reviews_per_day: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    updated_at: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)


class CardORM(Base):
    """SQLAlchemy model for cards table.

    deck_id carries no foreign key: a card whose deck is missing is a
    tolerated state, not a constraint violation.
    """

    __tablename__ = "cards"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    deck_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    front: Mapped[str] = mapped_column(Text, nullable=False)
    back: Mapped[str] = mapped_column(Text, nullable=False)
    tags: Mapped[List[str]] = mapped_column(JSONEncodedList, nullable=True)
    source: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    media: Mapped[dict] = mapped_column(JSONEncodedDict, nullable=True)
    deleted: Mapped[Optional[str]] = mapped_column(Text, nullable=True, index=True)
    deleted_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    updated_at: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)


class CardReviewORM(Base):
    """SQLAlchemy model for card_reviews table."""

    __tablename__ = "card_reviews"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    card_id: Mapped[str] = mapped_column(Text, nullable=False, unique=True, index=True)
    ease: Mapped[float] = mapped_column(Float, nullable=False)
    interval: Mapped[float] = mapped_column(Float, nullable=False)
    repetitions: Mapped[int] = mapped_column(Integer, nullable=False)
    next_review: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    last_review: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    state: Mapped[str] = mapped_column(Text, nullable=False, index=True)


class StudyLogORM(Base):
    """SQLAlchemy model for study_logs table (append-only)."""

    __tablename__ = "study_logs"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    card_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    time_spent: Mapped[int] = mapped_column(Integer, nullable=False)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)


class TrashItemORM(Base):
    """SQLAlchemy model for trash_items table."""

    __tablename__ = "trash_items"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    type: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    deck_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    deleted_at: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    data: Mapped[dict] = mapped_column(JSONEncodedDict, nullable=True)


def deck_orm_to_dataclass(orm: DeckORM) -> Deck:
    """Convert a DeckORM instance to a Deck dataclass."""
    return Deck(
        id=orm.id,
        name=orm.name,
        description=orm.description or "",
        cards_count=orm.cards_count or 0,
        new_cards_per_day=orm.new_cards_per_day,
        reviews_per_day=orm.reviews_per_day,
        created_at=orm.created_at,
        updated_at=orm.updated_at,
    )


def deck_dataclass_to_orm(deck: Deck) -> DeckORM:
    """Convert a Deck dataclass to a DeckORM instance."""
    return DeckORM(
        id=deck.id,
        name=deck.name,
        description=deck.description,
        cards_count=deck.cards_count,
        new_cards_per_day=deck.new_cards_per_day,
        reviews_per_day=deck.reviews_per_day,
        created_at=deck.created_at,
        updated_at=deck.updated_at,
    )


def card_orm_to_dataclass(orm: CardORM) -> Card:
    """Convert a CardORM instance to a Card dataclass."""
    deleted = DeletedStatus(orm.deleted) if orm.deleted else DeletedStatus.ACTIVE
    return Card(
        id=orm.id,
        deck_id=orm.deck_id,
        front=orm.front,
        back=orm.back,
        tags=list(orm.tags or []),
        source=orm.source,
        notes=orm.notes,
        media=dict(orm.media or {}),
        deleted=deleted,
        deleted_at=orm.deleted_at,
        created_at=orm.created_at,
        updated_at=orm.updated_at,
    )


def card_dataclass_to_orm(card: Card) -> CardORM:
    """Convert a Card dataclass to a CardORM instance."""
    return CardORM(
        id=card.id,
        deck_id=card.deck_id,
        front=card.front,
        back=card.back,
        tags=list(card.tags),
        source=card.source,
        notes=card.notes,
        media=dict(card.media),
        deleted=card.deleted.value,
        deleted_at=card.deleted_at,
        created_at=card.created_at,
        updated_at=card.updated_at,
    )


def review_orm_to_dataclass(orm: CardReviewORM) -> CardReview:
    """Convert a CardReviewORM instance to a CardReview dataclass."""
    return CardReview(
        id=orm.id,
        card_id=orm.card_id,
        ease=orm.ease,
        interval=orm.interval,
        repetitions=orm.repetitions,
        next_review=orm.next_review,
        last_review=orm.last_review,
        state=CardState(orm.state),
    )


def review_dataclass_to_orm(review: CardReview) -> CardReviewORM:
    """Convert a CardReview dataclass to a CardReviewORM instance."""
    return CardReviewORM(
        id=review.id,
        card_id=review.card_id,
        ease=review.ease,
        interval=review.interval,
        repetitions=review.repetitions,
        next_review=review.next_review,
        last_review=review.last_review,
        state=review.state.value,
    )


def study_log_orm_to_dataclass(orm: StudyLogORM) -> StudyLog:
    """Convert a StudyLogORM instance to a StudyLog dataclass."""
    return StudyLog(
        id=orm.id,
        card_id=orm.card_id,
        rating=Rating(orm.rating),
        time_spent=orm.time_spent,
        timestamp=orm.timestamp,
    )


def study_log_dataclass_to_orm(log: StudyLog) -> StudyLogORM:
    """Convert a StudyLog dataclass to a StudyLogORM instance."""
    return StudyLogORM(
        id=log.id,
        card_id=log.card_id,
        rating=log.rating.value,
        time_spent=log.time_spent,
        timestamp=log.timestamp,
    )


def trash_orm_to_dataclass(orm: TrashItemORM) -> TrashItem:
    """Convert a TrashItemORM instance to a TrashItem dataclass."""
    return TrashItem(
        id=orm.id,
        type=TrashItemType(orm.type),
        name=orm.name,
        description=orm.description,
        deck_name=orm.deck_name,
        deleted_at=orm.deleted_at,
        data=dict(orm.data or {}),
    )


def trash_dataclass_to_orm(item: TrashItem) -> TrashItemORM:
    """Convert a TrashItem dataclass to a TrashItemORM instance."""
    return TrashItemORM(
        id=item.id,
        type=item.type.value,
        name=item.name,
        description=item.description,
        deck_name=item.deck_name,
        deleted_at=item.deleted_at,
        data=dict(item.data),
    )
