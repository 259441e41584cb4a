from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from mindfulness_app.database.entities.base import Base, utcnow


class User(Base):
    """
    A user as known to the identity provider.

    The primary key is the provider's subject claim, so a user row is created
    the first time a person completes the sign-in callback. Only
    ``display_name`` is ever changed afterwards.
    """

    __tablename__ = "app_user"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), index=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(255))
    user_metadata: Mapped[dict] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
