from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from mindfulness_app.database.entities.base import Base, new_id, utcnow


class MindfulnessSession(Base):
    """One finished practice (a chat meditation or a timed exercise) shown on the history page."""

    __tablename__ = "mindfulness_session"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("app_user.id"), index=True)
    duration_minutes: Mapped[int] = mapped_column(Integer)
    session_type: Mapped[str] = mapped_column(String(64))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    mood_before: Mapped[Optional[int]] = mapped_column(Integer)
    mood_after: Mapped[Optional[int]] = mapped_column(Integer)
    tags: Mapped[list] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
