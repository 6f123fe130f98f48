"""Tests for the database maintenance sweep."""

from unittest.mock import patch

import pytest
from sqlalchemy import create_engine

from flashcards import db_engine
from flashcards.models import CardReview, Rating
from flashcards.orm_models import Base, DeckORM


@pytest.fixture
def temp_db():
    """Create a temporary in-memory database for testing."""
    test_engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(test_engine)
    db_engine.set_engine(test_engine)
    yield test_engine
    db_engine.reset_engine()


def _corrupt_count(deck_id, value):
    with db_engine.get_session() as session:
        session.get(DeckORM, deck_id).cards_count = value


class TestFixDeckCardCounts:
    """Tests for recomputing deck card counts."""

    def test_fixes_drifted_counts(self, temp_db):
        from flashcards.database import add_card, create_deck, get_deck
        from flashcards.maintenance import fix_deck_card_counts

        deck = create_deck("Spanish")
        add_card(deck.id, "a", "a")
        add_card(deck.id, "b", "b")
        _corrupt_count(deck.id, 7)

        assert fix_deck_card_counts() == 1
        assert get_deck(deck.id).cards_count == 2

    def test_idempotent(self, temp_db):
        from flashcards.database import add_card, create_deck
        from flashcards.maintenance import fix_deck_card_counts

        deck = create_deck("Spanish")
        add_card(deck.id, "a", "a")
        _corrupt_count(deck.id, 0)

        assert fix_deck_card_counts() == 1
        assert fix_deck_card_counts() == 0

    def test_correct_deck_keeps_updated_at(self, temp_db):
        from flashcards.database import add_card, create_deck, get_deck
        from flashcards.maintenance import fix_deck_card_counts

        deck = create_deck("Spanish")
        add_card(deck.id, "a", "a")
        before = get_deck(deck.id)

        fix_deck_card_counts()

        assert get_deck(deck.id) == before


class TestOrphanCleanup:
    """Tests for removing reviews and logs of missing or deleted cards."""

    def test_removes_orphaned_reviews(self, temp_db):
        from flashcards.database import add_card, create_deck, insert_review, list_reviews
        from flashcards.maintenance import cleanup_orphaned_reviews
        from flashcards.trash import soft_delete_card

        deck = create_deck("Spanish")
        kept = add_card(deck.id, "a", "a")
        trashed = add_card(deck.id, "b", "b")
        insert_review(CardReview(id="r1", card_id=kept.id))
        insert_review(CardReview(id="r2", card_id=trashed.id))
        insert_review(CardReview(id="r3", card_id="gone"))
        soft_delete_card(trashed.id)

        assert cleanup_orphaned_reviews() == 2
        assert [r.id for r in list_reviews()] == ["r1"]

    def test_removes_orphaned_study_logs(self, temp_db):
        from flashcards.database import add_card, add_study_log, create_deck, list_study_logs
        from flashcards.maintenance import cleanup_orphaned_study_logs

        deck = create_deck("Spanish")
        card = add_card(deck.id, "a", "a")
        add_study_log(card.id, Rating.GOOD, 3, timestamp=1)
        add_study_log("gone", Rating.AGAIN, 3, timestamp=2)

        assert cleanup_orphaned_study_logs() == 1
        assert [log.card_id for log in list_study_logs()] == [card.id]


class TestRunDatabaseMaintenance:
    """Tests for the combined sweep."""

    def test_runs_every_step(self, temp_db):
        from flashcards.database import add_card, create_deck, insert_review
        from flashcards.maintenance import run_database_maintenance

        deck = create_deck("Spanish")
        add_card(deck.id, "a", "a")
        _corrupt_count(deck.id, 5)
        insert_review(CardReview(id="r", card_id="gone"))

        results = run_database_maintenance()

        assert results == {
            "deleted_flags": 0,
            "card_counts": 1,
            "orphaned_reviews": 1,
            "orphaned_logs": 0,
        }

    def test_failing_step_does_not_stop_the_rest(self, temp_db):
        from flashcards.database import add_card, create_deck, get_deck
        from flashcards import maintenance

        deck = create_deck("Spanish")
        add_card(deck.id, "a", "a")
        _corrupt_count(deck.id, 5)

        def broken():
            raise RuntimeError("boom")

        steps = (("broken", broken),) + maintenance.MAINTENANCE_STEPS
        with patch.object(maintenance, "MAINTENANCE_STEPS", steps):
            results = maintenance.run_database_maintenance()

        assert results["broken"] is None
        assert results["card_counts"] == 1
        assert get_deck(deck.id).cards_count == 1
