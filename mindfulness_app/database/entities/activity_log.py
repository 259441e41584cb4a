from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from mindfulness_app.database.entities.base import Base, new_id, utcnow

ACTIVITY_TYPES = ("exercise_completed", "mood_tracked", "chat_session", "login", "goal_achieved")


class ActivityLog(Base):
    __tablename__ = "activity_log"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("app_user.id"), index=True)
    activity_type: Mapped[str] = mapped_column(String(32))
    exercise_id: Mapped[Optional[str]] = mapped_column(String(36))
    duration_minutes: Mapped[Optional[int]] = mapped_column(Integer)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
