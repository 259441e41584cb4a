from typing import List, Optional, Set

from sqlalchemy import select

from mindfulness_app.database.daos.base import BaseDao, logged
from mindfulness_app.database.entities import CompletedExercise, Exercise


class ExerciseDao(BaseDao):

    @logged("fetching exercises")
    def fetch_by_user(self, user_id: str) -> List[Exercise]:
        query = select(Exercise).where(Exercise.user_id == user_id).order_by(Exercise.title.asc())
        return list(self.db.scalars(query))

    @logged("fetching exercise")
    def fetch_by_id(self, user_id: str, exercise_id: str) -> Optional[Exercise]:
        query = select(Exercise).where(Exercise.id == exercise_id, Exercise.user_id == user_id)
        return self.db.scalars(query).first()

    @logged("creating exercise")
    def create(self, user_id: str, **fields) -> Exercise:
        return self._add(Exercise(user_id=user_id, **fields))

    @logged("fetching completed exercises")
    def completed_ids(self, user_id: str) -> Set[str]:
        query = select(CompletedExercise.exercise_id).where(CompletedExercise.user_id == user_id)
        return set(self.db.scalars(query))

    @logged("marking exercise completed")
    def mark_completed(self, user_id: str, exercise_id: str) -> bool:
        """Record a completion once. Returns False when it was already recorded."""
        query = select(CompletedExercise).where(
            CompletedExercise.user_id == user_id, CompletedExercise.exercise_id == exercise_id
        )
        if self.db.scalars(query).first() is not None:
            return False
        self._add(CompletedExercise(user_id=user_id, exercise_id=exercise_id))
        return True
