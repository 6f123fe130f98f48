"""
Data models for the flashcards system.

Timestamps are wall-clock milliseconds. Review intervals are in days and may
be fractional for sub-day learning steps.
"""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from flashcards.constants import (
    DEFAULT_NEW_CARDS_PER_DAY,
    DEFAULT_REVIEWS_PER_DAY,
    STARTING_EASE,
)


class CardState(Enum):
    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    RELEARNING = "relearning"


class Rating(Enum):
    AGAIN = 1
    HARD = 2
    GOOD = 3
    EASY = 4


class DeletedStatus(Enum):
    ACTIVE = "active"
    DELETED = "deleted"
    PERMANENT_DELETED = "permanent_deleted"


class TrashItemType(Enum):
    CARD = "card"
    DECK = "deck"


@dataclass
class Card:
    id: str
    deck_id: str
    front: str
    back: str
    tags: List[str] = field(default_factory=list)
    source: Optional[str] = None
    notes: Optional[str] = None
    media: Dict[str, List[str]] = field(default_factory=dict)
    deleted: DeletedStatus = DeletedStatus.ACTIVE
    deleted_at: Optional[int] = None
    created_at: int = 0
    updated_at: int = 0

    @property
    def is_active(self) -> bool:
        return self.deleted != DeletedStatus.DELETED


@dataclass
class CardReview:
    id: str
    card_id: str
    ease: float = STARTING_EASE
    interval: float = 0.0
    repetitions: int = 0
    next_review: int = 0
    last_review: Optional[int] = None
    state: CardState = CardState.NEW


@dataclass
class Deck:
    id: str
    name: str
    description: str = ""
    cards_count: int = 0
    new_cards_per_day: int = DEFAULT_NEW_CARDS_PER_DAY
    reviews_per_day: int = DEFAULT_REVIEWS_PER_DAY
    created_at: int = 0
    updated_at: int = 0


@dataclass
class StudyLog:
    id: str
    card_id: str
    rating: Rating
    time_spent: int
    timestamp: int


@dataclass
class TrashItem:
    id: str
    type: TrashItemType
    name: str
    deleted_at: int
    data: Dict[str, Any]
    description: Optional[str] = None
    deck_name: Optional[str] = None


def now_ms() -> int:
    """Current wall-clock time in milliseconds."""
    return int(time.time() * 1000)


def new_id() -> str:
    """Mint a globally unique identifier for a locally created record."""
    return str(uuid.uuid4())


# ---- camelCase document conversion (backups and trash snapshots) ----

def card_to_dict(card: Card) -> Dict[str, Any]:
    return {
        "id": card.id,
        "deckId": card.deck_id,
        "front": card.front,
        "back": card.back,
        "tags": list(card.tags),
        "source": card.source,
        "notes": card.notes,
        "media": {k: list(v) for k, v in card.media.items()},
        "deleted": card.deleted.value,
        "deletedAt": card.deleted_at,
        "createdAt": card.created_at,
        "updatedAt": card.updated_at,
    }


def card_from_dict(data: Dict[str, Any]) -> Card:
    # Rows written before soft delete existed have no deleted flag
    deleted = DeletedStatus(data.get("deleted") or DeletedStatus.ACTIVE.value)
    return Card(
        id=data["id"],
        deck_id=data["deckId"],
        front=data.get("front", ""),
        back=data.get("back", ""),
        tags=list(data.get("tags") or []),
        source=data.get("source"),
        notes=data.get("notes"),
        media=dict(data.get("media") or {}),
        deleted=deleted,
        deleted_at=data.get("deletedAt"),
        created_at=data.get("createdAt", 0),
        updated_at=data.get("updatedAt", 0),
    )


def review_to_dict(review: CardReview) -> Dict[str, Any]:
    return {
        "id": review.id,
        "cardId": review.card_id,
        "ease": review.ease,
        "interval": review.interval,
        "repetitions": review.repetitions,
        "nextReview": review.next_review,
        "lastReview": review.last_review,
        "state": review.state.value,
    }


def review_from_dict(data: Dict[str, Any]) -> CardReview:
    return CardReview(
        id=data["id"],
        card_id=data["cardId"],
        ease=data.get("ease", STARTING_EASE),
        interval=data.get("interval", 0.0),
        repetitions=data.get("repetitions", 0),
        next_review=data.get("nextReview", 0),
        last_review=data.get("lastReview"),
        state=CardState(data.get("state", CardState.NEW.value)),
    )


def deck_to_dict(deck: Deck) -> Dict[str, Any]:
    return {
        "id": deck.id,
        "name": deck.name,
        "description": deck.description,
        "cardsCount": deck.cards_count,
        "newCardsPerDay": deck.new_cards_per_day,
        "reviewsPerDay": deck.reviews_per_day,
        "createdAt": deck.created_at,
        "updatedAt": deck.updated_at,
    }


def deck_from_dict(data: Dict[str, Any]) -> Deck:
    return Deck(
        id=data["id"],
        name=data["name"],
        description=data.get("description", ""),
        cards_count=data.get("cardsCount", 0),
        new_cards_per_day=data.get("newCardsPerDay", DEFAULT_NEW_CARDS_PER_DAY),
        reviews_per_day=data.get("reviewsPerDay", DEFAULT_REVIEWS_PER_DAY),
        created_at=data.get("createdAt", 0),
        updated_at=data.get("updatedAt", 0),
    )


def study_log_to_dict(log: StudyLog) -> Dict[str, Any]:
    return {
        "id": log.id,
        "cardId": log.card_id,
        "rating": log.rating.value,
        "timeSpent": log.time_spent,
        "timestamp": log.timestamp,
    }


def study_log_from_dict(data: Dict[str, Any]) -> StudyLog:
    return StudyLog(
        id=data["id"],
        card_id=data["cardId"],
        rating=Rating(data["rating"]),
        time_spent=data.get("timeSpent", 0),
        timestamp=data["timestamp"],
    )
