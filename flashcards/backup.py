"""
JSON backup of the local store.

Document shape: {version, exportDate, decks, cards, reviews, logs}, with
camelCase entity fields. Importing replaces decks, cards, reviews and study
logs wholesale; the trash is left as it is.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

from flashcards.constants import BACKUP_VERSION
from flashcards.database import list_cards, list_decks, list_reviews, list_study_logs, replace_all
from flashcards.models import (
    card_from_dict,
    card_to_dict,
    deck_from_dict,
    deck_to_dict,
    review_from_dict,
    review_to_dict,
    study_log_from_dict,
    study_log_to_dict,
)
from util.logging_util import setup_logger

logger = setup_logger(__name__)


def export_data() -> Dict[str, Any]:
    """Snapshot the whole store as a backup document."""
    return {
        "version": BACKUP_VERSION,
        "exportDate": datetime.now(timezone.utc).isoformat(),
        "decks": [deck_to_dict(d) for d in list_decks()],
        "cards": [card_to_dict(c) for c in list_cards()],
        "reviews": [review_to_dict(r) for r in list_reviews()],
        "logs": [study_log_to_dict(log) for log in list_study_logs()],
    }


def export_to_file(path: Path) -> Dict[str, Any]:
    document = export_data()
    with open(path, "w", encoding="utf-8") as f:
        json.dump(document, f, ensure_ascii=False, indent=2)
    logger.info(
        f"Exported {len(document['decks'])} decks and {len(document['cards'])} cards to {path}"
    )
    return document


def import_data(document: Dict[str, Any]):
    """Replace the store's contents with a backup document.

    Raises ValueError before touching the store if the document is malformed.
    """
    if not document.get("version") or document.get("decks") is None or document.get("cards") is None:
        raise ValueError("Invalid backup file format")

    decks = [deck_from_dict(d) for d in document["decks"]]
    cards = [card_from_dict(c) for c in document["cards"]]
    reviews = [review_from_dict(r) for r in document.get("reviews") or []]
    logs = [study_log_from_dict(log) for log in document.get("logs") or []]

    replace_all(decks, cards, reviews, logs)
    logger.info(
        f"Imported {len(decks)} decks, {len(cards)} cards, "
        f"{len(reviews)} reviews and {len(logs)} study logs"
    )


def import_from_file(path: Path):
    with open(path, "r", encoding="utf-8") as f:
        document = json.load(f)
    import_data(document)
