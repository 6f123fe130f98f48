"""
Study session helpers: building the queue of due cards and recording answers.

Sessions only ever see active cards. A card's review state is created the
first time the card enters a session.
"""

from dataclasses import dataclass
from typing import List, Optional

from flashcards.constants import (
    DEFAULT_NEW_CARDS_PER_DAY,
    DEFAULT_REVIEWS_PER_DAY,
    MAX_CARDS_PER_SESSION,
)
from flashcards.database import (
    add_study_log,
    get_card,
    get_deck,
    get_review_for_card,
    list_decks,
    save_review,
)
from flashcards.models import Card, CardReview, CardState, Deck, Rating, now_ms
from flashcards.scheduler import (
    DEFAULT_CONFIG,
    SchedulerConfig,
    apply_result,
    calculate_next_review,
    create_initial_review,
    is_due,
)
from flashcards.trash import get_active_cards
from util.logging_util import setup_logger

logger = setup_logger(__name__)


@dataclass
class StudyItem:
    card: Card
    review: CardReview


@dataclass
class DeckOverview:
    deck: Deck
    due_count: int
    graduated_count: int


def _get_or_create_review(card: Card, now: int, config: SchedulerConfig) -> CardReview:
    review = get_review_for_card(card.id)
    if review is None:
        review = create_initial_review(card.id, now, config)
        save_review(review)
    return review


def _interleave(reviews: List[StudyItem], new_cards: List[StudyItem]) -> List[StudyItem]:
    queue = []
    for i in range(max(len(reviews), len(new_cards))):
        if i < len(reviews):
            queue.append(reviews[i])
        if i < len(new_cards):
            queue.append(new_cards[i])
    return queue


def build_study_queue(
    deck_id: str,
    limit: int = MAX_CARDS_PER_SESSION,
    now: Optional[int] = None,
    config: SchedulerConfig = DEFAULT_CONFIG,
) -> List[StudyItem]:
    """Build the ordered list of cards to study in a deck right now.

    Due cards are taken longest-overdue first, within the deck's daily caps
    for new and review cards, up to `limit`, then review and new cards are
    alternated.
    """
    now = now if now is not None else now_ms()
    deck = get_deck(deck_id)
    new_cap = deck.new_cards_per_day if deck else DEFAULT_NEW_CARDS_PER_DAY
    review_cap = deck.reviews_per_day if deck else DEFAULT_REVIEWS_PER_DAY

    due = []
    for card in get_active_cards(deck_id):
        review = _get_or_create_review(card, now, config)
        if is_due(review, now):
            due.append(StudyItem(card=card, review=review))
    due.sort(key=lambda item: item.review.next_review)

    new_items: List[StudyItem] = []
    review_items: List[StudyItem] = []
    for item in due:
        if len(new_items) + len(review_items) >= limit:
            break
        if item.review.state == CardState.NEW:
            if len(new_items) < new_cap:
                new_items.append(item)
        elif len(review_items) < review_cap:
            review_items.append(item)

    return _interleave(review_items, new_items)


def record_answer(
    card_id: str,
    rating: Rating,
    time_spent: int = 0,
    now: Optional[int] = None,
    config: SchedulerConfig = DEFAULT_CONFIG,
) -> Optional[CardReview]:
    """Grade a card: reschedule it and append a study log.

    Returns the new review state, or None if the card does not exist.
    """
    now = now if now is not None else now_ms()
    card = get_card(card_id)
    if card is None:
        return None

    review = _get_or_create_review(card, now, config)
    result = calculate_next_review(review, rating, now, config)
    updated = apply_result(review, result, now)
    save_review(updated)
    add_study_log(card_id, rating, time_spent, timestamp=now)

    logger.info(f"Card {card_id} rated {Rating(rating).name}: {result.state.value}, interval {result.interval:.4f}d")
    return updated


def get_deck_overview(now: Optional[int] = None) -> List[DeckOverview]:
    """Due and graduated card counts for every deck.

    Cards that have never been studied count as due.
    """
    now = now if now is not None else now_ms()
    overview = []
    for deck in list_decks():
        due = 0
        graduated = 0
        for card in get_active_cards(deck.id):
            review = get_review_for_card(card.id)
            if review is None or review.next_review <= now:
                due += 1
            if review is not None and review.state == CardState.REVIEW:
                graduated += 1
        overview.append(DeckOverview(deck=deck, due_count=due, graduated_count=graduated))
    return overview
