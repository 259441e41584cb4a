from typing import Optional

from mindfulness_app.database.daos.base import BaseDao, logged
from mindfulness_app.database.entities import User


class UserDao(BaseDao):

    @logged("fetching user")
    def fetch_by_id(self, user_id: str) -> Optional[User]:
        return self.db.get(User, user_id)

    @logged("upserting user")
    def upsert(self, user_id: str, email: str, display_name: Optional[str] = None, metadata: Optional[dict] = None) -> User:
        user = self.db.get(User, user_id)
        if user is None:
            return self._add(User(id=user_id, email=email, display_name=display_name, user_metadata=metadata or {}))
        user.email = email
        if metadata is not None:
            user.user_metadata = metadata
        if display_name and not user.display_name:
            user.display_name = display_name
        self.db.flush()
        return user

    @logged("updating display name")
    def update_display_name(self, user: User, display_name: str) -> User:
        user.display_name = display_name
        self.db.flush()
        return user
