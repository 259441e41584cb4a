"""
Persisted client-side state.

A :class:`KeyValueStore` holds JSON values under string keys. Callers never
touch it directly: each key family has a repository that owns its shape and
defaults. Every write is a read-modify-write of the whole value with no
locking, so two writers racing on the same key end with the last one's value.
"""

import json
import logging
import os
import tempfile
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from mindfulness_app.domain.mood import FACTORS, MOOD_SCORES, clamp_score, label_for

logger = logging.getLogger(__name__)

MOOD_ENTRIES = "mood_entries"
EXERCISES = "mindfulness_exercises"
COMPLETED_EXERCISES = "completed_exercises"
ACTIVITY_LOG = "activity_log"
CHAT_SESSIONS = "chat_sessions"
CURRENT_CHAT_SESSION = "current_chat_session"
AUTH_STATE = "auth_state"
AUTH_TIME = "auth_time"
AUTH_EXPIRATION = "auth_expiration"
REMEMBERED_EMAIL = "remembered_email"
AUDIO_SETTINGS = "audioSettings"

AUTH_CACHE_LIFETIME_MS = 30 * 24 * 60 * 60 * 1000


def chat_session_key(session_id: str) -> str:
    return f"chat_session_{session_id}"


def now_ms() -> int:
    return int(time.time() * 1000)


class KeyValueStore:
    """Interface of a string-keyed store of JSON values."""

    def get(self, key: str, default: Any = None) -> Any:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError


class MemoryStore(KeyValueStore):

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, str] = {key: json.dumps(value) for key, value in (initial or {}).items()}

    def get(self, key: str, default: Any = None) -> Any:
        raw = self._data.get(key)
        return default if raw is None else json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)


class JsonFileStore(KeyValueStore):
    """All keys in one JSON file, rewritten atomically on every change."""

    def __init__(self, path):
        self.path = Path(path)

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            return json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.error("Corrupt client state in %s; starting empty", self.path)
            return {}

    def _save(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(data, handle)
        os.replace(tmp, self.path)

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)


class _ListRepository:
    key: str

    def __init__(self, store: KeyValueStore):
        self.store = store

    def all(self) -> List[Any]:
        value = self.store.get(self.key, [])
        return value if isinstance(value, list) else []

    def append(self, item: Any) -> None:
        items = self.all()
        items.append(item)
        self.store.set(self.key, items)

    def clear(self) -> None:
        self.store.remove(self.key)


class MoodRepository(_ListRepository):
    key = MOOD_ENTRIES

    def record(
        self,
        mood_score: float,
        mood_label: Optional[str] = None,
        notes: Optional[str] = None,
        factors: Iterable[str] = (),
    ) -> dict:
        """
        Store a mood entry, newest first, and log a `mood_tracked` activity.

        The score is clamped into 1-5 and an unknown label is derived from it.
        Factors outside :data:`~mindfulness_app.domain.mood.FACTORS` are dropped.
        """
        score = clamp_score(mood_score)
        label = mood_label if mood_label in MOOD_SCORES else label_for(score)
        entry = {
            "id": str(uuid.uuid4()),
            "mood_label": label,
            "mood_score": score,
            "notes": notes or None,
            "factors": [factor for factor in factors if factor in FACTORS],
            "recorded_at": datetime.now(timezone.utc).isoformat(),
        }
        self.store.set(self.key, [entry, *self.all()])
        ActivityLogRepository(self.store).log("mood_tracked", notes=f"Logged mood: {label}")
        return entry


class ExerciseRepository(_ListRepository):
    key = EXERCISES

    def get(self, exercise_id: str) -> Optional[dict]:
        return next((item for item in self.all() if item.get("id") == exercise_id), None)

    def upsert(self, exercise: dict) -> None:
        items = [item for item in self.all() if item.get("id") != exercise.get("id")]
        items.append(exercise)
        self.store.set(self.key, items)


class CompletedExercises(_ListRepository):
    key = COMPLETED_EXERCISES

    def add(self, exercise_id: str) -> bool:
        """Mark an exercise completed. Returns False if it already was."""
        ids = self.all()
        if exercise_id in ids:
            return False
        ids.append(exercise_id)
        self.store.set(self.key, ids)
        return True

    def __contains__(self, exercise_id: str) -> bool:
        return exercise_id in self.all()


class ActivityLogRepository(_ListRepository):
    key = ACTIVITY_LOG

    def log(self, activity_type: str, **fields) -> dict:
        entry = {"activity_type": activity_type, "created_at": now_ms(), **fields}
        self.append(entry)
        return entry


class ChatSessionRepository:
    """Chat sessions: an index of ids, one message list per session, and the current id."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    def session_ids(self) -> List[str]:
        return self.store.get(CHAT_SESSIONS, [])

    def current(self) -> Optional[str]:
        return self.store.get(CURRENT_CHAT_SESSION)

    def set_current(self, session_id: Optional[str]) -> None:
        if session_id is None:
            self.store.remove(CURRENT_CHAT_SESSION)
        else:
            self.store.set(CURRENT_CHAT_SESSION, session_id)

    def create(self, session_id: str) -> None:
        ids = self.session_ids()
        if session_id not in ids:
            ids.append(session_id)
            self.store.set(CHAT_SESSIONS, ids)
        self.store.set(chat_session_key(session_id), [])
        self.set_current(session_id)

    def messages(self, session_id: str) -> List[dict]:
        return self.store.get(chat_session_key(session_id), [])

    def append_message(self, session_id: str, message: dict) -> None:
        messages = self.messages(session_id)
        messages.append(message)
        self.store.set(chat_session_key(session_id), messages)

    def delete(self, session_id: str) -> None:
        self.store.set(CHAT_SESSIONS, [sid for sid in self.session_ids() if sid != session_id])
        self.store.remove(chat_session_key(session_id))
        if self.current() == session_id:
            self.set_current(None)


class AuthCache:
    """The locally remembered sign-in: `auth_state` and `auth_expiration` (epoch ms)."""

    CLEARED_KEYS = (AUTH_STATE, AUTH_TIME, AUTH_EXPIRATION, REMEMBERED_EMAIL)

    def __init__(self, store: KeyValueStore):
        self.store = store

    def is_valid(self, now: Optional[int] = None) -> bool:
        expiration = self.store.get(AUTH_EXPIRATION)
        if self.store.get(AUTH_STATE) != "authenticated" or expiration is None:
            return False
        try:
            return (now if now is not None else now_ms()) < int(expiration)
        except (TypeError, ValueError):
            return False

    def mark_authenticated(self, renew: bool = False, now: Optional[int] = None) -> None:
        """Record a sign-in. The expiration is only moved when ``renew`` is set or none exists."""
        self.store.set(AUTH_STATE, "authenticated")
        if renew or self.store.get(AUTH_EXPIRATION) is None:
            self.store.set(AUTH_EXPIRATION, (now if now is not None else now_ms()) + AUTH_CACHE_LIFETIME_MS)

    def clear(self) -> None:
        for key in self.CLEARED_KEYS:
            self.store.remove(key)


class AudioSettingsRepository:
    DEFAULTS = {"masterVolume": 0.5}

    def __init__(self, store: KeyValueStore):
        self.store = store

    def get(self) -> dict:
        saved = self.store.get(AUDIO_SETTINGS)
        if not isinstance(saved, dict):
            return dict(self.DEFAULTS)
        return {**self.DEFAULTS, **saved}

    def update(self, **changes) -> dict:
        merged = {**self.get(), **changes}
        self.store.set(AUDIO_SETTINGS, merged)
        return merged
