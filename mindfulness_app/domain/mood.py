"""Mood scale, clamping and the summary statistics shown on the mood tracker and dashboard."""

import math
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

MOOD_SCORES: Dict[str, int] = {
    "very_sad": 1,
    "sad": 2,
    "neutral": 3,
    "happy": 4,
    "very_happy": 5,
}
MOOD_LABELS: Dict[int, str] = {score: label for label, score in MOOD_SCORES.items()}

FACTORS = ("sleep", "exercise", "nutrition", "social", "work", "meditation")

MIN_SCORE = 1
MAX_SCORE = 5


def clamp_score(score: float) -> int:
    """Round ``score`` onto the 1-5 scale. Infinities clamp to the ends; NaN is a ValueError."""
    if math.isnan(score):
        raise ValueError("Mood score must be a number")
    return int(round(max(MIN_SCORE, min(MAX_SCORE, score))))


def label_for(score: int) -> str:
    return MOOD_LABELS[clamp_score(score)]


def as_utc(moment: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def average_mood(
    entries: Iterable[Tuple[datetime, int]],
    days: int = 7,
    now: Optional[datetime] = None,
    ndigits: int = 1,
    fallback_to_all: bool = False,
) -> Optional[float]:
    """Mean score of the entries recorded in the last ``days`` days.

    ``entries`` are ``(recorded_at, score)`` pairs. Returns None when there is
    nothing to average. With ``fallback_to_all`` an empty window falls back to
    every entry, the way the mood tracker page reports it.
    """
    now = as_utc(now or datetime.now(timezone.utc))
    cutoff = now - timedelta(days=days)
    entries = [(as_utc(moment), score) for moment, score in entries]
    window = [score for moment, score in entries if cutoff <= moment <= now]
    if not window and fallback_to_all:
        window = [score for _, score in entries]
    if not window:
        return None
    return round(sum(window) / len(window), ndigits)


def mood_trend(entries: Sequence[Tuple[datetime, int]]) -> str:
    """Compare the newest score with the oldest of the five most recent."""
    if len(entries) < 2:
        return "not_enough_data"
    recent = sorted(entries, key=lambda pair: as_utc(pair[0]), reverse=True)[:5]
    difference = recent[0][1] - recent[-1][1]
    if difference >= 0.5:
        return "improving"
    if difference <= -0.5:
        return "declining"
    return "stable"


def factor_stats(entries: Iterable[Tuple[int, List[str]]]) -> Dict[str, Dict[str, float]]:
    """Per-factor entry count and average score, from ``(score, factors)`` pairs."""
    totals: Dict[str, List[int]] = {}
    for score, factors in entries:
        for factor in factors or []:
            totals.setdefault(factor, []).append(score)
    return {
        factor: {"count": len(scores), "avg_mood": round(sum(scores) / len(scores), 2)}
        for factor, scores in totals.items()
    }
