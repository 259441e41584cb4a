"""
Multi-step write operations, each committed as one unit and returning the
id of the row it created (the way a stored procedure would).

Query failures are logged once by the DAOs; here a failed unit is only
rolled back and re-raised.
"""

from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mindfulness_app.database.daos import ActivityLogDao, ExerciseDao, MindfulnessSessionDao, MoodEntryDao, UserDao
from mindfulness_app.domain.mood import MOOD_SCORES, clamp_score, label_for


def record_mood(
    db: Session,
    user_id: str,
    mood_score: float,
    mood_label: Optional[str] = None,
    notes: Optional[str] = None,
    factors: Optional[List[str]] = None,
) -> str:
    """Store a mood entry and its `mood_tracked` activity.

    The score is clamped into 1-5. An unknown or missing label is derived
    from the clamped score.
    """
    score = clamp_score(mood_score)
    label = mood_label if mood_label in MOOD_SCORES else label_for(score)
    try:
        entry = MoodEntryDao(db).create(user_id, score, label, notes=notes or None, factors=factors or [])
        ActivityLogDao(db).create(user_id, "mood_tracked", notes=f"Logged mood: {label}")
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    return entry.id


def log_user_activity(
    db: Session,
    user_id: str,
    activity_type: str,
    exercise_id: Optional[str] = None,
    duration_minutes: Optional[int] = None,
    notes: Optional[str] = None,
) -> str:
    try:
        activity = ActivityLogDao(db).create(user_id, activity_type, exercise_id, duration_minutes, notes)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    return activity.id


def complete_exercise(
    db: Session,
    user_id: str,
    exercise_id: str,
    duration_minutes: int,
    notes: Optional[str] = None,
) -> Optional[str]:
    """Mark an exercise completed, once.

    The first completion also logs an `exercise_completed` activity and a
    mindfulness session for the history page. Repeated completions change
    nothing and return None.
    """
    try:
        exercise = ExerciseDao(db).fetch_by_id(user_id, exercise_id)
        if exercise is None:
            raise LookupError(f"Exercise {exercise_id} not found")
        if not ExerciseDao(db).mark_completed(user_id, exercise_id):
            db.rollback()
            return None
        activity = ActivityLogDao(db).create(
            user_id,
            "exercise_completed",
            exercise_id=exercise_id,
            duration_minutes=duration_minutes,
            notes=notes or f"Completed exercise: {exercise.title}",
        )
        MindfulnessSessionDao(db).create(
            user_id, duration_minutes, session_type=exercise.category, notes=notes, tags=[exercise.category]
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    return activity.id


def sign_in_user(db: Session, profile: dict) -> str:
    """Upsert the user behind an identity-provider profile and log the login."""
    user_id = profile["sub"]
    try:
        user = UserDao(db).upsert(
            user_id,
            profile.get("email") or "",
            display_name=profile.get("name") or profile.get("nickname"),
            metadata={key: profile[key] for key in ("picture", "email_verified", "locale") if key in profile},
        )
        ActivityLogDao(db).create(user.id, "login", notes="Signed in")
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    return user.id


def log_mindfulness_session(
    db: Session,
    user_id: str,
    duration_minutes: int,
    session_type: str,
    **optional,
) -> str:
    """Store a finished practice. Chat sessions are also logged as `chat_session` activity."""
    try:
        session = MindfulnessSessionDao(db).create(user_id, duration_minutes, session_type, **optional)
        if session_type.startswith("chat"):
            ActivityLogDao(db).create(
                user_id, "chat_session", duration_minutes=duration_minutes, notes=optional.get("notes")
            )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    return session.id
