"""
Constants for the flashcards system.
"""

DB_NAME = "flashcards.db"

MINUTES_PER_DAY = 24 * 60
MILLIS_PER_MINUTE = 60 * 1000
MILLIS_PER_DAY = MINUTES_PER_DAY * MILLIS_PER_MINUTE

# SM-2 scheduling policy
LEARNING_STEPS_MINUTES = (1, 10, 30)
AGAIN_STEP_MINUTES = 1
GRADUATING_INTERVAL_DAYS = 2
EASY_INTERVAL_DAYS = 5
HARD_RELEARN_STEP_MINUTES = 10
STARTING_EASE = 2.5
MINIMUM_EASE = 1.3
EASE_STEP = 0.15
EASY_BONUS = 1.3
MINIMUM_REVIEW_INTERVAL_DAYS = 1

# Per-deck session caps
DEFAULT_NEW_CARDS_PER_DAY = 20
DEFAULT_REVIEWS_PER_DAY = 200
# Decks downloaded from the remote carry no caps of their own
REMOTE_DECK_NEW_CARDS_PER_DAY = 20
REMOTE_DECK_REVIEWS_PER_DAY = 100

DEFAULT_DECK_ID = "default"
DEFAULT_DECK_NAME = "Default deck"
DEFAULT_DECK_DESCRIPTION = "Start learning!"

# Trash snapshots
TRASH_NAME_MAX_LENGTH = 50
UNKNOWN_DECK_NAME = "Unknown deck"

MAX_CARDS_PER_SESSION = 20

# How often to sync with the remote store (in seconds)
SYNC_INTERVAL_SECONDS = 5 * 60

BACKUP_VERSION = "1.0"
