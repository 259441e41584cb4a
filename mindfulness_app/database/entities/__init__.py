"""
The `entities` package defines the ORM models of the application,
representing the database tables as Python classes via SQLAlchemy.

These entity classes are the foundation of the persistence layer,
used by DAOs (`daos` package) to perform CRUD operations.

Contents
--------
- User
    Represents a person known to the identity provider.
    * Keyed by the provider's subject claim
    * Holds email, display name and free-form metadata

- MoodEntry
    Represents one mood check-in.
    * Stores label, clamped 1-5 score, note and factor tags
    * Records when the mood was recorded

- Exercise / CompletedExercise
    Represents a generated mindfulness exercise and the fact that a user
    finished it.
    * Stores steps, benefits, tips and per-step timings as JSON lists
    * Completion is unique per (user, exercise)

- ActivityLog
    Represents a single user activity (login, mood tracked, exercise completed...)

- ChatMessage
    Represents a single message within a chat session.
    * Stores message text, author side and optional context

- MindfulnessSession
    Represents a finished practice shown on the history page.
"""
from mindfulness_app.database.entities.base import Base
from mindfulness_app.database.entities.user import User
from mindfulness_app.database.entities.mood_entry import MoodEntry
from mindfulness_app.database.entities.exercise import Exercise, CompletedExercise
from mindfulness_app.database.entities.activity_log import ActivityLog, ACTIVITY_TYPES
from mindfulness_app.database.entities.chat_message import ChatMessage
from mindfulness_app.database.entities.mindfulness_session import MindfulnessSession

__all__ = [
    "Base",
    "User",
    "MoodEntry",
    "Exercise",
    "CompletedExercise",
    "ActivityLog",
    "ACTIVITY_TYPES",
    "ChatMessage",
    "MindfulnessSession",
]
