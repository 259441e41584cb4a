"""Dashboard statistics and chat-session bookkeeping."""

import math
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List, Optional, Sequence, Set

from mindfulness_app.domain.mood import as_utc

SESSION_END_PHRASES = ("thank you", "thanks", "goodbye", "bye", "end session", "finish session")


def is_session_end_message(message: str) -> bool:
    lowered = message.lower()
    return any(phrase in lowered for phrase in SESSION_END_PHRASES)


def chat_session_duration(message_count: int) -> int:
    """Approximate minutes spent in a chat: five per exchange, never under five."""
    return max(5, math.ceil(message_count / 2) * 5)


def streak(session_times: Iterable[datetime], today: Optional[date] = None) -> int:
    """Consecutive days, ending today, with at least one session. Zero if none today."""
    today = today or datetime.now(timezone.utc).date()
    days: Set[date] = {as_utc(moment).date() for moment in session_times}
    count = 0
    day = today
    while day in days:
        count += 1
        day -= timedelta(days=1)
    return count


def recommend(exercises: Sequence, completed_ids: Set[str], weekly_average: Optional[float], limit: int = 3) -> List:
    """Pick up to ``limit`` uncompleted exercises suited to the recent mood.

    A low week favours short beginner exercises, a good week longer advanced
    ones; otherwise stored order is kept. ``exercises`` only need ``id``,
    ``duration`` and ``difficulty`` attributes.
    """
    mood = weekly_average if weekly_average is not None else 3
    candidates = [exercise for exercise in exercises if exercise.id not in completed_ids]
    if mood <= 2.5:
        candidates.sort(key=lambda ex: (ex.duration, ex.difficulty != "beginner"))
    elif mood >= 4:
        candidates.sort(key=lambda ex: (-ex.duration, ex.difficulty != "advanced"))
    return candidates[:limit]
