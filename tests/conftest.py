import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["COOKIE_SECURE"] = "false"
os.environ["DB_DATABASE_NAME"] = ":memory:"
os.environ["OPENROUTER_API_KEY"] = "test-openrouter-key"
os.environ.pop("NEXT_PUBLIC_OPENROUTER_API_KEY", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from mindfulness_app.api.utils import SESSION_COOKIE, create_access_token
from mindfulness_app.database.core.engine import get_db, init_db
from mindfulness_app.database.daos import UserDao
from mindfulness_app.main import create_app


@pytest.fixture
def db_engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def app(session_factory):
    app = create_app()

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def user(db_session):
    user = UserDao(db_session).upsert("auth0|user-1", "sam@example.com", "Sam")
    db_session.commit()
    return user


@pytest.fixture
def auth_client(client, user):
    client.cookies.set(SESSION_COOKIE, create_access_token({"sub": user.id, "email": user.email}))
    return client


class FakeJob:
    def __init__(self, seq, due, interval, callback):
        self.seq = seq
        self.due = due
        self.interval = interval
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Virtual-time scheduler; nothing runs until `advance` is called."""

    def __init__(self):
        self.now_ms = 0
        self.jobs = []

    def _add(self, delay, interval, callback):
        job = FakeJob(len(self.jobs), self.now_ms + round(delay * 1000), interval, callback)
        self.jobs.append(job)
        return job

    def call_every(self, interval, callback):
        return self._add(interval, round(interval * 1000), callback)

    def call_later(self, delay, callback):
        return self._add(delay, None, callback)

    def active(self):
        return [job for job in self.jobs if not job.cancelled]

    def advance(self, seconds):
        target = self.now_ms + round(seconds * 1000)
        while True:
            due = [job for job in self.active() if job.due <= target]
            if not due:
                break
            job = min(due, key=lambda j: (j.due, j.seq))
            self.now_ms = job.due
            if job.interval:
                job.due += job.interval
            else:
                job.cancelled = True
            job.callback()
        self.now_ms = target


@pytest.fixture
def scheduler():
    return FakeScheduler()
