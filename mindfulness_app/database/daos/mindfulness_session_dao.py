from typing import List, Optional

from sqlalchemy import select

from mindfulness_app.database.daos.base import BaseDao, logged
from mindfulness_app.database.entities import MindfulnessSession

UPDATABLE_FIELDS = ("duration_minutes", "session_type", "notes", "mood_before", "mood_after", "tags")


class MindfulnessSessionDao(BaseDao):

    @logged("fetching mindfulness sessions")
    def fetch_by_user(self, user_id: str) -> List[MindfulnessSession]:
        query = (
            select(MindfulnessSession)
            .where(MindfulnessSession.user_id == user_id)
            .order_by(MindfulnessSession.created_at.desc())
        )
        return list(self.db.scalars(query))

    @logged("fetching mindfulness session")
    def fetch_by_id(self, user_id: str, session_id: str) -> Optional[MindfulnessSession]:
        query = select(MindfulnessSession).where(
            MindfulnessSession.id == session_id, MindfulnessSession.user_id == user_id
        )
        return self.db.scalars(query).first()

    @logged("logging mindfulness session")
    def create(self, user_id: str, duration_minutes: int, session_type: str, **optional) -> MindfulnessSession:
        return self._add(
            MindfulnessSession(
                user_id=user_id,
                duration_minutes=duration_minutes,
                session_type=session_type,
                notes=optional.get("notes"),
                mood_before=optional.get("mood_before"),
                mood_after=optional.get("mood_after"),
                tags=optional.get("tags") or [],
            )
        )

    @logged("updating mindfulness session")
    def update(self, session: MindfulnessSession, changes: dict) -> MindfulnessSession:
        for field in UPDATABLE_FIELDS:
            if field in changes:
                setattr(session, field, changes[field])
        self.db.flush()
        return session

    @logged("deleting mindfulness session")
    def delete(self, session: MindfulnessSession) -> None:
        self.db.delete(session)
        self.db.flush()
