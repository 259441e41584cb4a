import functools
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


def logged(action: str):
    """Log database failures with context, then let them propagate."""

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except SQLAlchemyError:
                logger.exception("Error %s", action)
                raise

        return wrapper

    return decorator


class BaseDao:
    def __init__(self, db: Session):
        self.db = db

    def _add(self, instance):
        self.db.add(instance)
        self.db.flush()
        return instance
