from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from mindfulness_app.database.config.config import settings
from mindfulness_app.database.entities import Base

connect_args = {"check_same_thread": False} if settings.DB_DRIVER_NAME.startswith("sqlite") else {}

engine = create_engine(settings.database_url, connect_args=connect_args)
"""Process-wide engine built from the DB_* settings"""

SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)


def init_db(bind=None) -> None:
    """Create every table that does not exist yet."""
    Base.metadata.create_all(bind=bind or engine)


def get_db() -> Iterator[Session]:
    """FastAPI dependency yielding one session per request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
