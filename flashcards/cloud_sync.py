"""
Offline-first sync between the local store and a remote store.

A sync run reconciles four entity types in a fixed order, because each
phase relies on the ids the previous one made visible on both sides:

    decks -> cards -> card reviews -> study logs

Conflicts are settled last-writer-wins on updated_at (decks, cards) or
last_review (reviews). Study logs are append-only and only ever copied.

Deck and card errors abort the run and are reported to listeners. Review
and study log errors only skip the row at hand; the next run retries it.

Concurrent edits on two devices within the same millisecond can drop one
side's change. That is accepted for a single-user app.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from flashcards import config, database
from flashcards.constants import (
    REMOTE_DECK_NEW_CARDS_PER_DAY,
    REMOTE_DECK_REVIEWS_PER_DAY,
    SYNC_INTERVAL_SECONDS,
)
from flashcards.models import Card, CardReview, CardState, Deck, DeletedStatus, Rating, StudyLog, now_ms
from flashcards.remote_store import RemoteStoreError, SqlRemoteStore, create_remote_engine, create_remote_schema
from flashcards.rest_remote import RestRemoteStore
from util.logging_util import log_row_failure, log_sync_status, setup_logger

logger = setup_logger(__name__)


@dataclass
class SyncStatus:
    syncing: bool
    last_sync: Optional[int] = None
    error: Optional[str] = None


StatusListener = Callable[[SyncStatus], None]


# ---- local <-> remote row mapping ----

def _deck_to_remote(deck: Deck, user_id: str) -> Dict[str, Any]:
    return {
        "user_id": user_id,
        "name": deck.name,
        "description": deck.description,
        "cards_count": deck.cards_count,
        "created_at": deck.created_at,
        "updated_at": deck.updated_at,
    }


def _deck_patch(deck: Deck) -> Dict[str, Any]:
    return {
        "name": deck.name,
        "description": deck.description,
        "cards_count": deck.cards_count,
        "updated_at": deck.updated_at,
    }


def _deck_from_remote(row: Dict[str, Any]) -> Deck:
    return Deck(
        id=row["id"],
        name=row["name"],
        description=row.get("description") or "",
        cards_count=row.get("cards_count") or 0,
        new_cards_per_day=REMOTE_DECK_NEW_CARDS_PER_DAY,
        reviews_per_day=REMOTE_DECK_REVIEWS_PER_DAY,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _card_to_remote(card: Card, user_id: str) -> Dict[str, Any]:
    return {
        "id": card.id,
        "user_id": user_id,
        "deck_id": card.deck_id,
        "front": card.front,
        "back": card.back,
        "created_at": card.created_at,
        "updated_at": card.updated_at,
    }


def _card_patch(card: Card) -> Dict[str, Any]:
    return {
        "deck_id": card.deck_id,
        "front": card.front,
        "back": card.back,
        "updated_at": card.updated_at,
    }


def _card_from_remote(row: Dict[str, Any]) -> Card:
    # Remote cards carry no tags and are never soft-deleted
    return Card(
        id=row["id"],
        deck_id=row["deck_id"],
        front=row["front"],
        back=row["back"],
        tags=[],
        deleted=DeletedStatus.ACTIVE,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _review_patch(review: CardReview) -> Dict[str, Any]:
    return {
        "ease_factor": review.ease,
        "interval": review.interval,
        "repetitions": review.repetitions,
        "next_review": review.next_review,
        "last_review": review.last_review,
        "state": review.state.value,
        "updated_at": now_ms(),
    }


def _review_from_remote(row: Dict[str, Any]) -> CardReview:
    return CardReview(
        id=row["id"],
        card_id=row["card_id"],
        ease=row["ease_factor"],
        interval=row["interval"],
        repetitions=row["repetitions"],
        next_review=row["next_review"],
        last_review=row.get("last_review"),
        state=CardState(row.get("state") or CardState.REVIEW.value),
    )


def _study_log_to_remote(log: StudyLog, user_id: str) -> Dict[str, Any]:
    return {
        "id": log.id,
        "user_id": user_id,
        "card_id": log.card_id,
        "rating": log.rating.value,
        "time_spent": log.time_spent,
        "timestamp": log.timestamp,
    }


def _study_log_from_remote(row: Dict[str, Any]) -> StudyLog:
    return StudyLog(
        id=row["id"],
        card_id=row["card_id"],
        rating=Rating(row["rating"]),
        time_spent=row.get("time_spent") or 0,
        timestamp=row["timestamp"],
    )


class CloudSync:
    """Sync engine owning its status listeners and auto-sync task.

    `remote` is a SqlRemoteStore or RestRemoteStore. `local` is the local store
    module (flashcards.database by default). Store calls are blocking and run
    in a worker thread, one phase at a time.
    """

    def __init__(self, remote, local=database, interval_seconds: int = SYNC_INTERVAL_SECONDS):
        self.remote = remote
        self.local = local
        self.interval_seconds = interval_seconds

        self._in_progress = False
        self._last_sync: Optional[int] = None
        self._error: Optional[str] = None
        self._listeners: List[StatusListener] = []
        self._task: Optional[asyncio.Task] = None

    # ---- status ----

    @property
    def status(self) -> SyncStatus:
        return SyncStatus(syncing=self._in_progress, last_sync=self._last_sync, error=self._error)

    def on_sync_status_change(self, callback: StatusListener) -> Callable[[], None]:
        """Register a status listener. Returns a function that removes it."""
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self):
        status = self.status
        log_sync_status(logger, status.syncing, status.last_sync, status.error)
        for callback in list(self._listeners):
            callback(status)

    # ---- full sync ----

    async def sync_all(self):
        """Run one full sync. A call made while a run is in progress does nothing."""
        if self._in_progress:
            logger.info("Sync already in progress")
            return

        self._in_progress = True
        try:
            user_id = await asyncio.to_thread(self.remote.get_user_id)
            if not user_id:
                logger.info("No user signed in, skipping sync")
                return

            self._error = None
            self._notify()

            try:
                await asyncio.to_thread(self._sync_decks, user_id)
                await asyncio.to_thread(self._sync_cards, user_id)
                await asyncio.to_thread(self._sync_reviews, user_id)
                await asyncio.to_thread(self._sync_study_logs, user_id)
            except Exception as e:
                self._in_progress = False
                self._error = str(e) or "Sync failed"
                self._notify()
                return

            self._in_progress = False
            self._last_sync = now_ms()
            self._notify()
        finally:
            self._in_progress = False

    def _sync_decks(self, user_id: str):
        local_decks = self.local.list_decks()
        remote_decks = {row["id"]: row for row in self.remote.select_rows("decks", user_id, active_only=True)}

        for deck in local_decks:
            remote_deck = remote_decks.get(deck.id)
            if remote_deck is None:
                created = self.remote.insert_row("decks", _deck_to_remote(deck, user_id))
                logger.info(f"Uploaded deck '{deck.name}'")
                if created["id"] != deck.id:
                    self.local.remap_deck_id(deck.id, created["id"])
            elif deck.updated_at > remote_deck["updated_at"]:
                self.remote.update_rows("decks", _deck_patch(deck), id=deck.id)
                logger.info(f"Updated remote deck '{deck.name}'")
            elif remote_deck["updated_at"] > deck.updated_at:
                self.local.update_deck(
                    deck.id,
                    name=remote_deck["name"],
                    description=remote_deck.get("description") or "",
                    cards_count=remote_deck.get("cards_count") or 0,
                    updated_at=remote_deck["updated_at"],
                )
                logger.info(f"Updated local deck '{remote_deck['name']}'")

        local_ids = {deck.id for deck in local_decks}
        for remote_deck in remote_decks.values():
            if remote_deck["id"] not in local_ids:
                self.local.add_deck(_deck_from_remote(remote_deck))
                logger.info(f"Downloaded deck '{remote_deck['name']}'")

    def _sync_cards(self, user_id: str):
        local_cards = self.local.list_cards()
        remote_cards = {row["id"]: row for row in self.remote.select_rows("cards", user_id, active_only=True)}
        remote_deck_ids = {row["id"] for row in self.remote.select_rows("decks", user_id, active_only=True)}

        uploaded = updated = pulled = 0
        for card in local_cards:
            if not card.is_active:
                continue

            remote_card = remote_cards.get(card.id)
            if remote_card is not None and remote_card["updated_at"] > card.updated_at:
                self.local.patch_card(
                    card.id,
                    deck_id=remote_card["deck_id"],
                    front=remote_card["front"],
                    back=remote_card["back"],
                    updated_at=remote_card["updated_at"],
                )
                pulled += 1
            elif card.deck_id not in remote_deck_ids:
                # Picked up by a later run once its deck exists remotely
                continue
            elif remote_card is None:
                self.remote.insert_row("cards", _card_to_remote(card, user_id))
                uploaded += 1
            elif card.updated_at > remote_card["updated_at"]:
                self.remote.update_rows("cards", _card_patch(card), id=card.id)
                updated += 1

        # Every local id, deleted or not, so soft-deleted cards stay deleted
        local_ids = {card.id for card in local_cards}
        downloaded = 0
        for remote_card in remote_cards.values():
            if remote_card["id"] not in local_ids:
                self.local.insert_card(_card_from_remote(remote_card))
                downloaded += 1

        for deck in self.local.list_decks():
            self.local.recount_deck(deck.id)

        logger.info(
            f"Cards: {uploaded} uploaded, {updated} updated remotely, "
            f"{pulled} updated locally, {downloaded} downloaded"
        )

    def _sync_reviews(self, user_id: str):
        local_reviews = self.local.list_reviews()
        if not local_reviews:
            self._download_reviews(user_id, set())
            return

        local_card_ids = {card.id for card in self.local.list_cards()}
        try:
            remote_card_ids = {row["id"] for row in self.remote.select_rows("cards", user_id, active_only=True)}
            remote_reviews = self.remote.select_rows("card_reviews", user_id)
        except RemoteStoreError as e:
            logger.warning(f"Could not fetch remote reviews: {e}")
            return

        remote_by_card = {row["card_id"]: row for row in remote_reviews}

        # Reviews whose card is missing on either side would break foreign keys
        valid_reviews = [
            review for review in local_reviews
            if review.card_id in local_card_ids and review.card_id in remote_card_ids
        ]

        for review in valid_reviews:
            remote_review = remote_by_card.get(review.card_id)
            try:
                if remote_review is None:
                    row = _review_patch(review)
                    row.update(user_id=user_id, card_id=review.card_id, created_at=review.last_review or now_ms())
                    self.remote.insert_row("card_reviews", row)
                    continue

                local_last = review.last_review or 0
                remote_last = remote_review.get("last_review") or 0
                if local_last > remote_last:
                    self.remote.update_rows(
                        "card_reviews", _review_patch(review), card_id=review.card_id, user_id=user_id
                    )
                elif remote_last > local_last:
                    pulled = _review_from_remote(remote_review)
                    fields = {
                        "ease": pulled.ease,
                        "interval": pulled.interval,
                        "repetitions": pulled.repetitions,
                        "next_review": pulled.next_review,
                        "last_review": pulled.last_review,
                    }
                    if remote_review.get("state"):
                        fields["state"] = pulled.state
                    self.local.patch_review(review.card_id, **fields)
            except Exception as e:
                log_row_failure(logger, "review for card", review.card_id, e)

        self._download_reviews(user_id, {review.card_id for review in local_reviews}, remote_reviews)

    def _download_reviews(
        self,
        user_id: str,
        known_card_ids: Set[str],
        remote_reviews: Optional[Iterable[Dict[str, Any]]] = None,
    ):
        if remote_reviews is None:
            try:
                remote_reviews = self.remote.select_rows("card_reviews", user_id)
            except RemoteStoreError as e:
                logger.warning(f"Could not fetch remote reviews: {e}")
                return

        for row in remote_reviews:
            if row["card_id"] in known_card_ids:
                continue
            try:
                self.local.insert_review(_review_from_remote(row))
                logger.info(f"Downloaded review for card {row['card_id']}")
            except Exception as e:
                log_row_failure(logger, "review for card", row["card_id"], e)

    def _sync_study_logs(self, user_id: str):
        local_logs = self.local.list_study_logs()
        local_card_ids = {card.id for card in self.local.list_cards()}
        valid_logs = [log for log in local_logs if log.card_id in local_card_ids]

        try:
            watermark = self.remote.max_value("study_logs", "timestamp", user_id) or 0
        except RemoteStoreError as e:
            logger.warning(f"Could not fetch latest remote study log: {e}")
            return

        to_upload = [log for log in valid_logs if log.timestamp > watermark]
        for log in to_upload:
            try:
                self.remote.insert_row("study_logs", _study_log_to_remote(log, user_id))
            except Exception as e:
                # Usually a card that does not exist remotely
                log_row_failure(logger, "study log", log.id, e)
        if to_upload:
            logger.info(f"Attempted to upload {len(to_upload)} study logs")

        since = max((log.timestamp for log in valid_logs), default=0)
        try:
            remote_logs = self.remote.select_greater_than("study_logs", "timestamp", since, user_id)
        except RemoteStoreError as e:
            logger.warning(f"Could not fetch remote study logs: {e}")
            return

        known_ids = {log.id for log in local_logs}
        known_keys = {(log.card_id, log.timestamp) for log in local_logs}
        downloaded = 0
        for row in remote_logs:
            if row["id"] in known_ids or (row["card_id"], row["timestamp"]) in known_keys:
                continue
            try:
                self.local.insert_study_log(_study_log_from_remote(row))
                known_ids.add(row["id"])
                known_keys.add((row["card_id"], row["timestamp"]))
                downloaded += 1
            except Exception as e:
                log_row_failure(logger, "study log", row["id"], e)
        if downloaded:
            logger.info(f"Downloaded {downloaded} study logs")

    # ---- single-entity push ----

    async def sync_deck(self, deck_id: str):
        """Push one deck right away: update it remotely, or insert it and adopt the remote id."""
        await asyncio.to_thread(self._push_deck, deck_id)

    def _push_deck(self, deck_id: str):
        user_id = self.remote.get_user_id()
        if not user_id:
            return
        deck = self.local.get_deck(deck_id)
        if deck is None:
            return

        if self.remote.select_single("decks", deck_id, user_id) is not None:
            self.remote.update_rows("decks", _deck_patch(deck), id=deck_id)
            return

        created = self.remote.insert_row("decks", _deck_to_remote(deck, user_id))
        if created["id"] != deck_id:
            self.local.remap_deck_id(deck_id, created["id"])

    async def sync_card(self, card_id: str):
        """Push one card right away, inserting it under its local id if new."""
        await asyncio.to_thread(self._push_card, card_id)

    def _push_card(self, card_id: str):
        user_id = self.remote.get_user_id()
        if not user_id:
            return
        card = self.local.get_card(card_id)
        if card is None or not card.is_active:
            return

        if self.remote.select_single("cards", card_id, user_id) is not None:
            self.remote.update_rows("cards", _card_patch(card), id=card_id)
        else:
            self.remote.insert_row("cards", _card_to_remote(card, user_id))

    # ---- automatic sync ----

    async def auto_sync(self):
        """One automatic tick: sync if a user is signed in and no run is in progress."""
        if self._in_progress:
            return
        user_id = await asyncio.to_thread(self.remote.get_user_id)
        if user_id:
            await self.sync_all()

    async def _auto_sync_loop(self):
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.auto_sync()
            except Exception as e:
                logger.error(f"Automatic sync failed: {e}")

    def start(self) -> asyncio.Task:
        """Schedule the automatic sync task on the running event loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._auto_sync_loop())
        return self._task

    def dispose(self):
        """Cancel the automatic sync task and drop every listener."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self._listeners = []


def create_remote_from_config():
    """Build the configured remote store, or None when no remote is set up.

    A remote database URL takes precedence over a Supabase project.
    """
    db_url = config.get_remote_db_url()
    if db_url:
        engine = create_remote_engine(db_url)
        create_remote_schema(engine)
        return SqlRemoteStore(engine, config.get_user_id())

    supabase_url = config.get_supabase_url()
    supabase_key = config.get_supabase_key()
    if supabase_url and supabase_key:
        return RestRemoteStore(
            supabase_url,
            supabase_key,
            access_token=config.get_access_token(),
            user_id=config.get_user_id(),
        )
    return None
