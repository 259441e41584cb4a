from typing import List, Optional

from sqlalchemy import select

from mindfulness_app.database.daos.base import BaseDao, logged
from mindfulness_app.database.entities import ChatMessage


class ChatMessageDao(BaseDao):

    @logged("fetching chat messages")
    def fetch_by_session(self, user_id: str, session_id: str) -> List[ChatMessage]:
        query = (
            select(ChatMessage)
            .where(ChatMessage.user_id == user_id, ChatMessage.session_id == session_id)
            .order_by(ChatMessage.created_at.asc())
        )
        return list(self.db.scalars(query))

    @logged("creating chat message")
    def create(
        self,
        user_id: str,
        session_id: str,
        message_text: str,
        is_user_message: bool = True,
        context: Optional[dict] = None,
    ) -> ChatMessage:
        return self._add(
            ChatMessage(
                user_id=user_id,
                session_id=session_id,
                message_text=message_text,
                is_user_message=is_user_message,
                context=context or {},
            )
        )
