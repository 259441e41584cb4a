from typing import List, Optional

from sqlalchemy import select

from mindfulness_app.database.daos.base import BaseDao, logged
from mindfulness_app.database.entities import ActivityLog


class ActivityLogDao(BaseDao):

    @logged("fetching activity logs")
    def fetch_by_user(self, user_id: str) -> List[ActivityLog]:
        query = select(ActivityLog).where(ActivityLog.user_id == user_id).order_by(ActivityLog.created_at.desc())
        return list(self.db.scalars(query))

    @logged("logging activity")
    def create(
        self,
        user_id: str,
        activity_type: str,
        exercise_id: Optional[str] = None,
        duration_minutes: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> ActivityLog:
        return self._add(
            ActivityLog(
                user_id=user_id,
                activity_type=activity_type,
                exercise_id=exercise_id,
                duration_minutes=duration_minutes,
                notes=notes,
            )
        )
