"""Tests for soft delete and the trash."""

import pytest
from hypothesis import HealthCheck, given, settings, strategies as st
from sqlalchemy import create_engine

from flashcards import db_engine
from flashcards.models import CardReview, DeletedStatus, TrashItemType
from flashcards.orm_models import Base


@pytest.fixture
def temp_db():
    """Create a temporary in-memory database for testing."""
    test_engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(test_engine)
    db_engine.set_engine(test_engine)
    yield test_engine
    db_engine.reset_engine()


@pytest.fixture
def deck_with_cards(temp_db):
    """A deck holding three active cards."""
    from flashcards.database import add_card, create_deck

    deck = create_deck("Spanish")
    cards = [add_card(deck.id, f"front {i}", f"back {i}", tags=["t"]) for i in range(3)]
    return deck, cards


class TestSoftDelete:
    """Tests for moving cards to the trash."""

    def test_soft_delete_marks_card_and_files_trash_item(self, deck_with_cards):
        from flashcards.database import get_card, get_deck
        from flashcards.trash import get_trash_items, soft_delete_card

        deck, cards = deck_with_cards

        item = soft_delete_card(cards[0].id)

        card = get_card(cards[0].id)
        assert card.deleted == DeletedStatus.DELETED
        assert card.deleted_at == item.deleted_at
        assert item.id == f"card-{cards[0].id}-{item.deleted_at}"
        assert item.type == TrashItemType.CARD
        assert item.name == "front 0"
        assert item.description == "back 0"
        assert item.deck_name == "Spanish"
        assert item.data["deckId"] == deck.id
        assert item.data["originalCard"]["front"] == "front 0"
        assert get_deck(deck.id).cards_count == 2
        assert [t.id for t in get_trash_items()] == [item.id]

    def test_soft_delete_missing_card_is_noop(self, temp_db):
        from flashcards.trash import get_trash_items, soft_delete_card

        assert soft_delete_card("missing") is None
        assert get_trash_items() == []

    def test_soft_delete_already_deleted_card_is_noop(self, deck_with_cards):
        from flashcards.database import get_card, get_deck
        from flashcards.trash import batch_soft_delete_cards, get_trash_items, soft_delete_card

        deck, cards = deck_with_cards
        first = soft_delete_card(cards[0].id)

        assert soft_delete_card(cards[0].id) is None
        assert batch_soft_delete_cards([cards[0].id]) == []

        assert [t.id for t in get_trash_items()] == [first.id]
        assert get_card(cards[0].id).deleted_at == first.deleted_at
        assert get_deck(deck.id).cards_count == 2

    def test_long_front_is_truncated(self, temp_db):
        from flashcards.database import add_card, create_deck
        from flashcards.trash import soft_delete_card

        deck = create_deck("Spanish")
        card = add_card(deck.id, "x" * 80, "back")

        item = soft_delete_card(card.id)

        assert item.name == "x" * 50 + "..."

    def test_deleted_cards_are_not_active(self, deck_with_cards):
        from flashcards.trash import get_active_cards, soft_delete_card

        deck, cards = deck_with_cards
        soft_delete_card(cards[1].id)

        assert {c.id for c in get_active_cards(deck.id)} == {cards[0].id, cards[2].id}

    def test_batch_soft_delete(self, deck_with_cards):
        from flashcards.database import get_deck
        from flashcards.trash import batch_soft_delete_cards, get_trash_items

        deck, cards = deck_with_cards

        items = batch_soft_delete_cards([cards[0].id, cards[1].id, cards[0].id, "missing"])

        assert len(items) == 2
        assert len(get_trash_items()) == 2
        assert get_deck(deck.id).cards_count == 1


class TestRestore:
    """Tests for restoring cards from the trash."""

    def test_soft_delete_then_restore_round_trips(self, deck_with_cards):
        from flashcards.database import get_card, get_deck
        from flashcards.trash import get_trash_item, restore_card, soft_delete_card

        deck, cards = deck_with_cards
        before = get_card(cards[0].id)
        count_before = get_deck(deck.id).cards_count

        item = soft_delete_card(cards[0].id)
        restore_card(item)

        after = get_card(cards[0].id)
        assert after.deleted == DeletedStatus.ACTIVE
        assert after.deleted_at is None
        before.updated_at = after.updated_at
        assert after == before
        assert get_deck(deck.id).cards_count == count_before
        assert get_trash_item(item.id) is None

    def test_restore_after_card_vanished(self, deck_with_cards):
        """Restoring an entry whose card is gone still clears the entry."""
        from flashcards.database import delete_card_row
        from flashcards.trash import get_trash_items, restore_card, soft_delete_card

        deck, cards = deck_with_cards
        item = soft_delete_card(cards[0].id)
        delete_card_row(cards[0].id)

        restore_card(item)

        assert get_trash_items() == []


class TestPermanentDelete:
    """Tests for deleting cards for good."""

    def test_permanent_delete_removes_card_review_and_entry(self, deck_with_cards):
        from flashcards.database import get_card, get_deck, get_review_for_card, insert_review
        from flashcards.trash import get_trash_items, permanent_delete_card, soft_delete_card

        deck, cards = deck_with_cards
        insert_review(CardReview(id="remote-review", card_id=cards[0].id))
        item = soft_delete_card(cards[0].id)

        permanent_delete_card(item)

        assert get_card(cards[0].id) is None
        assert get_review_for_card(cards[0].id) is None
        assert get_trash_items() == []
        assert get_deck(deck.id).cards_count == 2

    def test_empty_trash(self, deck_with_cards):
        from flashcards.database import get_deck, list_cards
        from flashcards.trash import batch_soft_delete_cards, empty_trash, get_trash_items

        deck, cards = deck_with_cards
        batch_soft_delete_cards([cards[0].id, cards[1].id])

        assert empty_trash() == 2
        assert get_trash_items() == []
        assert [c.id for c in list_cards()] == [cards[2].id]
        assert get_deck(deck.id).cards_count == 1

    def test_trash_ordered_newest_first(self, deck_with_cards):
        from unittest.mock import patch
        from flashcards.trash import get_trash_items, soft_delete_card

        deck, cards = deck_with_cards
        with patch('time.time', return_value=1000.0):
            soft_delete_card(cards[0].id)
        with patch('time.time', return_value=2000.0):
            soft_delete_card(cards[1].id)

        assert [item.data["originalCard"]["id"] for item in get_trash_items()] == [cards[1].id, cards[0].id]


operations = st.lists(
    st.tuples(st.sampled_from(["add", "delete", "restore", "purge", "batch"]), st.integers(0, 5)),
    max_size=15,
)


@settings(max_examples=30, suppress_health_check=[HealthCheck.function_scoped_fixture], deadline=None)
@given(ops=operations)
def test_card_count_stays_correct(temp_db, ops):
    """After any sequence of trash operations the maintenance recount has nothing to fix."""
    from sqlalchemy import delete

    from flashcards.database import add_card, create_deck, get_deck, list_cards
    from flashcards.maintenance import fix_deck_card_counts
    from flashcards.orm_models import CardORM, DeckORM, TrashItemORM
    from flashcards.trash import (
        batch_soft_delete_cards,
        get_active_cards,
        get_trash_items,
        permanent_delete_card,
        restore_card,
        soft_delete_card,
    )

    with db_engine.get_session() as session:
        session.execute(delete(TrashItemORM))
        session.execute(delete(CardORM))
        session.execute(delete(DeckORM))

    deck = create_deck("Property")
    for i in range(2):
        add_card(deck.id, f"seed {i}", "b")

    for op, n in ops:
        active = get_active_cards(deck.id)
        trash = get_trash_items()
        if op == "add":
            add_card(deck.id, f"card {n}", "b")
        elif op == "delete" and active:
            soft_delete_card(active[n % len(active)].id)
        elif op == "restore" and trash:
            restore_card(trash[n % len(trash)])
        elif op == "purge" and trash:
            permanent_delete_card(trash[n % len(trash)])
        elif op == "batch" and active:
            batch_soft_delete_cards([c.id for c in active[: n % len(active) + 1]])

    expected = sum(1 for c in list_cards(deck.id) if c.is_active)
    assert get_deck(deck.id).cards_count == expected
    assert fix_deck_card_counts() == 0
