"""
Study statistics computed from the study log.

Only logs of active cards count towards the period and accuracy figures.
Days are UTC calendar days.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from flashcards.constants import MILLIS_PER_DAY
from flashcards.database import list_decks, list_study_logs
from flashcards.models import Rating, StudyLog, now_ms
from flashcards.scheduler import round_half_up
from flashcards.trash import get_active_cards


@dataclass
class StudySummary:
    total_decks: int
    total_cards: int
    total_reviews: int
    studied_today: int
    studied_this_week: int
    studied_this_month: int
    average_accuracy: int


@dataclass
class DayStats:
    date: str
    count: int
    good_count: int
    accuracy: int = 0


def _is_good(log: StudyLog) -> bool:
    return log.rating in (Rating.GOOD, Rating.EASY)


def _percent(part: int, whole: int) -> int:
    return round_half_up(part / whole * 100) if whole else 0


def start_of_day_ms(timestamp: int) -> int:
    day = datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc).date()
    midnight = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    return int(midnight.timestamp() * 1000)


def get_study_summary(now: Optional[int] = None) -> StudySummary:
    now = now if now is not None else now_ms()
    decks = list_decks()
    cards = get_active_cards()
    logs = list_study_logs()

    active_ids = {card.id for card in cards}
    valid_logs = [log for log in logs if log.card_id in active_ids]

    today_start = start_of_day_ms(now)
    today_end = today_start + MILLIS_PER_DAY
    week_start = today_start - 7 * MILLIS_PER_DAY
    month_start = today_start - 30 * MILLIS_PER_DAY

    good = sum(1 for log in valid_logs if _is_good(log))
    accuracy = _percent(good, len(valid_logs))

    return StudySummary(
        total_decks=len(decks),
        total_cards=len(cards),
        total_reviews=len(logs),
        studied_today=sum(1 for log in valid_logs if today_start <= log.timestamp < today_end),
        studied_this_week=sum(1 for log in valid_logs if log.timestamp >= week_start),
        studied_this_month=sum(1 for log in valid_logs if log.timestamp >= month_start),
        average_accuracy=accuracy,
    )


def get_daily_stats(days: int = 30, now: Optional[int] = None) -> List[DayStats]:
    """Per-day counts and accuracy percent for the last `days` days, newest first."""
    now = now if now is not None else now_ms()
    today = datetime.fromtimestamp(now / 1000, tz=timezone.utc).date()

    by_date = {}
    for offset in range(days):
        date = (today - timedelta(days=offset)).isoformat()
        by_date[date] = DayStats(date=date, count=0, good_count=0)

    for log in list_study_logs():
        date = datetime.fromtimestamp(log.timestamp / 1000, tz=timezone.utc).date().isoformat()
        stats = by_date.get(date)
        if stats is None:
            continue
        stats.count += 1
        if _is_good(log):
            stats.good_count += 1

    for stats in by_date.values():
        stats.accuracy = _percent(stats.good_count, stats.count)

    return list(by_date.values())
