from typing import List, Optional

from sqlalchemy import select

from mindfulness_app.database.daos.base import BaseDao, logged
from mindfulness_app.database.entities import MoodEntry


class MoodEntryDao(BaseDao):

    @logged("fetching mood entries")
    def fetch_by_user(self, user_id: str) -> List[MoodEntry]:
        query = select(MoodEntry).where(MoodEntry.user_id == user_id).order_by(MoodEntry.recorded_at.desc())
        return list(self.db.scalars(query))

    @logged("creating mood entry")
    def create(self, user_id: str, mood_score: int, mood_label: str, notes: Optional[str] = None, factors: Optional[list] = None) -> MoodEntry:
        return self._add(
            MoodEntry(user_id=user_id, mood_score=mood_score, mood_label=mood_label, notes=notes, factors=factors or [])
        )
