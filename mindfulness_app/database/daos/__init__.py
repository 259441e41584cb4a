"""
The `daos` package provides the Data Access Layer for the application.

It is responsible for all interactions with the database entities,
encapsulating CRUD operations that support the core functionality
of the system. Each DAO operates on a specific entity and abstracts
away the direct SQLAlchemy queries, offering a cleaner API to the
route handlers and to the multi-step functions in `core.funcs`.

Every method issues one statement. List reads always return the full row
set for the calling user, ordered by a single column; there is no
pagination. Failures are logged and re-raised.

Contents
--------
- UserDao
    * Fetches users by provider id
    * Upserts users on sign-in
    * Updates the display name (the only user mutation)

- MoodEntryDao
    * Lists a user's mood entries, newest first
    * Creates mood entries

- ExerciseDao
    * Lists a user's exercises ordered by title
    * Creates exercises and records completions (once per exercise)

- ActivityLogDao
    * Lists and creates activity log rows

- ChatMessageDao
    * Lists a session's messages chronologically and creates messages

- MindfulnessSessionDao
    * Lists, logs, updates and deletes practice sessions
"""
from mindfulness_app.database.daos.user_dao import UserDao
from mindfulness_app.database.daos.mood_entry_dao import MoodEntryDao
from mindfulness_app.database.daos.exercise_dao import ExerciseDao
from mindfulness_app.database.daos.activity_log_dao import ActivityLogDao
from mindfulness_app.database.daos.chat_message_dao import ChatMessageDao
from mindfulness_app.database.daos.mindfulness_session_dao import MindfulnessSessionDao

__all__ = [
    "UserDao",
    "MoodEntryDao",
    "ExerciseDao",
    "ActivityLogDao",
    "ChatMessageDao",
    "MindfulnessSessionDao",
]
