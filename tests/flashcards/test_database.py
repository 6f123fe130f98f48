"""Tests for the local flashcards store."""

import pytest
from sqlalchemy import create_engine

from flashcards import db_engine
from flashcards.models import CardReview, CardState, DeletedStatus, Rating
from flashcards.orm_models import Base


@pytest.fixture
def temp_db():
    """Create a temporary in-memory database for testing."""
    test_engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(test_engine)
    db_engine.set_engine(test_engine)
    yield test_engine
    db_engine.reset_engine()


class TestInitDb:
    """Tests for database initialization."""

    def test_creates_tables(self, temp_db):
        """Test that every store table exists."""
        from sqlalchemy import text

        with temp_db.connect() as conn:
            result = conn.execute(text("SELECT name FROM sqlite_master WHERE type='table'"))
            tables = {row[0] for row in result.fetchall()}

        assert {"decks", "cards", "card_reviews", "study_logs", "trash_items"} <= tables

    def test_idempotent(self, temp_db):
        """Test that init_db can be called multiple times safely."""
        from flashcards.database import init_db

        init_db()
        init_db()

    def test_default_deck_created_once(self, temp_db):
        """Test that the default deck is only created into an empty store."""
        from flashcards.database import init_default_deck, list_decks

        first = init_default_deck()
        second = init_default_deck()

        assert first is not None
        assert first.id == "default"
        assert second is None
        assert len(list_decks()) == 1


class TestDeckOperations:
    """Tests for deck CRUD."""

    def test_create_and_get(self, temp_db):
        from flashcards.database import create_deck, get_deck

        deck = create_deck("Spanish", "Verbs", new_cards_per_day=5)

        stored = get_deck(deck.id)
        assert stored == deck
        assert stored.cards_count == 0
        assert stored.new_cards_per_day == 5

    def test_get_missing_deck(self, temp_db):
        from flashcards.database import get_deck

        assert get_deck("nope") is None

    def test_update_deck(self, temp_db):
        from flashcards.database import create_deck, get_deck, update_deck

        deck = create_deck("Spanish")

        assert update_deck(deck.id, name="Español", updated_at=123)
        stored = get_deck(deck.id)
        assert stored.name == "Español"
        assert stored.updated_at == 123

    def test_update_missing_deck(self, temp_db):
        from flashcards.database import update_deck

        assert update_deck("nope", name="x") is False

    def test_update_unknown_field_raises(self, temp_db):
        from flashcards.database import create_deck, update_deck

        deck = create_deck("Spanish")
        with pytest.raises(ValueError):
            update_deck(deck.id, colour="red")


class TestCardOperations:
    """Tests for card CRUD and deck counts."""

    def test_add_card_recounts_deck(self, temp_db):
        from flashcards.database import add_card, create_deck, get_card, get_deck

        deck = create_deck("Spanish")
        card = add_card(deck.id, "hola", "hello", tags=["greeting"])

        stored = get_card(card.id)
        assert stored.front == "hola"
        assert stored.tags == ["greeting"]
        assert stored.deleted == DeletedStatus.ACTIVE
        assert get_deck(deck.id).cards_count == 1

    def test_add_cards_bulk(self, temp_db):
        from flashcards.database import create_deck, get_deck, add_cards
        from flashcards.models import Card

        deck = create_deck("Spanish")
        cards = [Card(id=f"c{i}", deck_id=deck.id, front=f"f{i}", back=f"b{i}") for i in range(3)]

        assert add_cards(cards) == 3
        assert get_deck(deck.id).cards_count == 3

    def test_edit_card(self, temp_db):
        from flashcards.database import add_card, create_deck, edit_card

        deck = create_deck("Spanish")
        card = add_card(deck.id, "hola", "hello")

        edited = edit_card(card.id, back="hi", notes="informal")

        assert edited.front == "hola"
        assert edited.back == "hi"
        assert edited.notes == "informal"
        assert edited.updated_at >= card.updated_at

    def test_edit_missing_card(self, temp_db):
        from flashcards.database import edit_card

        assert edit_card("nope", front="x") is None

    def test_move_cards_recounts_both_decks(self, temp_db):
        from flashcards.database import add_card, create_deck, get_card, get_deck, move_cards

        source = create_deck("Source")
        target = create_deck("Target")
        a = add_card(source.id, "a", "a")
        b = add_card(source.id, "b", "b")

        moved = move_cards([a.id, b.id, "missing"], target.id)

        assert moved == 2
        assert get_card(a.id).deck_id == target.id
        assert get_deck(source.id).cards_count == 0
        assert get_deck(target.id).cards_count == 2

    def test_list_cards_includes_deleted(self, temp_db):
        from flashcards.database import add_card, create_deck, list_cards, patch_card

        deck = create_deck("Spanish")
        add_card(deck.id, "a", "a")
        b = add_card(deck.id, "b", "b")
        patch_card(b.id, deleted=DeletedStatus.DELETED, deleted_at=1)

        assert len(list_cards(deck.id)) == 2

    def test_recount_counts_permanent_deleted_as_active(self, temp_db):
        """Only 'deleted' removes a card from the count."""
        from flashcards.database import add_card, create_deck, patch_card, recount_deck

        deck = create_deck("Spanish")
        a = add_card(deck.id, "a", "a")
        b = add_card(deck.id, "b", "b")
        patch_card(a.id, deleted=DeletedStatus.DELETED, deleted_at=1)
        patch_card(b.id, deleted=DeletedStatus.PERMANENT_DELETED)

        assert recount_deck(deck.id) == 1


class TestRemapDeckId:
    """Tests for moving a deck to a canonical id."""

    def test_remap_moves_cards_trash_and_deck(self, temp_db):
        from flashcards.database import add_card, create_deck, get_card, get_deck, remap_deck_id
        from flashcards.trash import get_trash_items, soft_delete_card

        deck = create_deck("Spanish")
        kept = add_card(deck.id, "a", "a")
        trashed = add_card(deck.id, "b", "b")
        soft_delete_card(trashed.id)
        before = get_deck(deck.id)

        remap_deck_id(deck.id, "remote-id", now=999)

        assert get_deck(deck.id) is None
        moved = get_deck("remote-id")
        assert moved.name == "Spanish"
        assert moved.updated_at == before.updated_at
        assert moved.cards_count == 1
        assert get_card(kept.id).deck_id == "remote-id"
        assert get_card(kept.id).updated_at == 999
        assert get_card(trashed.id).deck_id == "remote-id"

        item = get_trash_items()[0]
        assert item.data["deckId"] == "remote-id"
        assert item.data["originalCard"]["deckId"] == "remote-id"

    def test_remap_missing_deck_is_noop(self, temp_db):
        from flashcards.database import list_decks, remap_deck_id

        remap_deck_id("nope", "other")

        assert list_decks() == []


class TestReviewOperations:
    """Tests for review rows, keyed by card id."""

    def test_save_review_upserts_by_card(self, temp_db):
        from flashcards.database import get_review_for_card, list_reviews, save_review

        review = CardReview(id="r1", card_id="c1")
        save_review(review)
        save_review(CardReview(id="ignored", card_id="c1", ease=2.0, state=CardState.REVIEW))

        stored = get_review_for_card("c1")
        assert stored.id == "r1"
        assert stored.ease == 2.0
        assert stored.state == CardState.REVIEW
        assert len(list_reviews()) == 1

    def test_review_found_by_card_id_under_foreign_id(self, temp_db):
        from flashcards.database import get_review_for_card, insert_review

        insert_review(CardReview(id="remote-uuid", card_id="c1", last_review=5))

        assert get_review_for_card("c1").id == "remote-uuid"

    def test_patch_review(self, temp_db):
        from flashcards.database import get_review_for_card, insert_review, patch_review

        insert_review(CardReview(id="c1", card_id="c1"))

        assert patch_review("c1", state=CardState.LEARNING, interval=0.5)
        stored = get_review_for_card("c1")
        assert stored.state == CardState.LEARNING
        assert stored.interval == 0.5
        assert patch_review("missing", interval=1) is False


class TestStudyLogs:
    """Tests for the append-only study log."""

    def test_add_study_log_mints_unique_ids(self, temp_db):
        from flashcards.database import add_study_log, list_study_logs

        first = add_study_log("c1", Rating.GOOD, 4, timestamp=100)
        second = add_study_log("c1", Rating.GOOD, 4, timestamp=100)

        assert first.id != second.id
        assert len(list_study_logs()) == 2

    def test_list_order(self, temp_db):
        from flashcards.database import add_study_log, list_study_logs

        add_study_log("c1", Rating.GOOD, 1, timestamp=200)
        add_study_log("c1", Rating.AGAIN, 1, timestamp=100)

        assert [log.timestamp for log in list_study_logs()] == [100, 200]
        assert [log.timestamp for log in list_study_logs(newest_first=True)] == [200, 100]


class TestWholeStore:
    """Tests for store-wide operations."""

    def test_ensure_card_deleted_field(self, temp_db):
        from flashcards.database import add_card, create_deck, ensure_card_deleted_field, get_card
        from flashcards.orm_models import CardORM

        deck = create_deck("Spanish")
        card = add_card(deck.id, "a", "a")
        with db_engine.get_session() as session:
            session.get(CardORM, card.id).deleted = None

        assert ensure_card_deleted_field() == 1
        assert get_card(card.id).deleted == DeletedStatus.ACTIVE
        assert ensure_card_deleted_field() == 0

    def test_replace_all_leaves_trash(self, temp_db):
        from flashcards.database import add_card, create_deck, list_cards, list_decks, replace_all
        from flashcards.models import Deck
        from flashcards.trash import get_trash_items, soft_delete_card

        deck = create_deck("Old")
        card = add_card(deck.id, "a", "a")
        soft_delete_card(card.id)

        replace_all([Deck(id="new", name="New")], [], [], [])

        assert [d.id for d in list_decks()] == ["new"]
        assert list_cards() == []
        assert len(get_trash_items()) == 1


class TestMigration:
    """Tests for the Alembic schema revision."""

    @pytest.fixture
    def revision(self):
        import importlib.util
        from pathlib import Path

        path = Path(__file__).resolve().parents[2] / "flashcards" / "migrations" / "versions" / "001_initial_schema.py"
        spec = importlib.util.spec_from_file_location("flashcards_initial_schema", path)
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        return module

    def test_upgrade_builds_a_usable_store(self, revision):
        from alembic.migration import MigrationContext
        from alembic.operations import Operations
        from flashcards.database import add_card, create_deck, get_deck

        engine = create_engine("sqlite:///:memory:")
        with engine.begin() as conn:
            with Operations.context(MigrationContext.configure(conn)):
                revision.upgrade()

        db_engine.set_engine(engine)
        try:
            deck = create_deck("Spanish")
            add_card(deck.id, "hola", "hello")
            assert get_deck(deck.id).cards_count == 1
        finally:
            db_engine.reset_engine()

    def test_downgrade_drops_tables(self, revision):
        from alembic.migration import MigrationContext
        from alembic.operations import Operations
        from sqlalchemy import inspect

        engine = create_engine("sqlite:///:memory:")
        with engine.begin() as conn:
            with Operations.context(MigrationContext.configure(conn)):
                revision.upgrade()
                revision.downgrade()
            assert inspect(conn).get_table_names() == []
