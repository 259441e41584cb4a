import logging

import pytest
from sqlalchemy.exc import SQLAlchemyError

from mindfulness_app.database.core.funcs import (
    complete_exercise,
    log_mindfulness_session,
    log_user_activity,
    record_mood,
    sign_in_user,
)
from mindfulness_app.database.daos import ActivityLogDao, ExerciseDao, MindfulnessSessionDao, MoodEntryDao, UserDao


@pytest.fixture
def exercise(db_session, user):
    exercise = ExerciseDao(db_session).create(
        user.id,
        title="Body Scan",
        description="Move attention slowly through the body.",
        duration=10,
        category="body-scan",
        steps=["Lie down", "Scan"],
        step_timings=[45, 90],
    )
    db_session.commit()
    return exercise


def test_complete_exercise_is_idempotent(db_session, user, exercise):
    first = complete_exercise(db_session, user.id, exercise.id, 10)
    second = complete_exercise(db_session, user.id, exercise.id, 10)

    assert first is not None
    assert second is None
    assert ExerciseDao(db_session).completed_ids(user.id) == {exercise.id}
    assert len(ActivityLogDao(db_session).fetch_by_user(user.id)) == 1
    assert len(MindfulnessSessionDao(db_session).fetch_by_user(user.id)) == 1


def test_complete_unknown_exercise(db_session, user):
    with pytest.raises(LookupError):
        complete_exercise(db_session, user.id, "missing", 5)


def test_other_users_cannot_complete_an_exercise(db_session, exercise):
    UserDao(db_session).upsert("auth0|other", "other@example.com")
    db_session.commit()

    with pytest.raises(LookupError):
        complete_exercise(db_session, "auth0|other", exercise.id, 5)


def test_record_mood_returns_the_entry_id(db_session, user):
    entry_id = record_mood(db_session, user.id, 0.2, mood_label="ecstatic")

    entry = MoodEntryDao(db_session).fetch_by_user(user.id)[0]
    assert entry.id == entry_id
    assert entry.mood_score == 1
    assert entry.mood_label == "very_sad"


def test_log_user_activity(db_session, user):
    activity_id = log_user_activity(db_session, user.id, "goal_achieved", notes="Seven day streak")

    activity = ActivityLogDao(db_session).fetch_by_user(user.id)[0]
    assert activity.id == activity_id
    assert activity.notes == "Seven day streak"


def test_chat_sessions_are_logged_as_activity(db_session, user):
    log_mindfulness_session(db_session, user.id, 10, "chat_meditation", tags=["chat"])
    log_mindfulness_session(db_session, user.id, 15, "meditation")

    activities = ActivityLogDao(db_session).fetch_by_user(user.id)
    assert [activity.activity_type for activity in activities] == ["chat_session"]
    assert len(MindfulnessSessionDao(db_session).fetch_by_user(user.id)) == 2


def test_sign_in_keeps_a_chosen_display_name(db_session, user):
    UserDao(db_session).update_display_name(user, "Sammy")
    db_session.commit()

    sign_in_user(db_session, {"sub": user.id, "email": "new-address@example.com", "name": "Samuel"})

    stored = UserDao(db_session).fetch_by_id(user.id)
    assert stored.display_name == "Sammy"
    assert stored.email == "new-address@example.com"


def test_database_failure_is_logged_once_and_rolled_back(db_session, user, monkeypatch, caplog):
    def broken_flush(*args, **kwargs):
        raise SQLAlchemyError("disk I/O error")

    monkeypatch.setattr(db_session, "flush", broken_flush)

    with caplog.at_level(logging.ERROR), pytest.raises(SQLAlchemyError):
        record_mood(db_session, user.id, 3)

    assert len([record for record in caplog.records if record.levelno >= logging.ERROR]) == 1
    monkeypatch.undo()
    assert MoodEntryDao(db_session).fetch_by_user(user.id) == []


def test_log_activity_route(auth_client, user, db_session):
    response = auth_client.post(
        "/dashboard/activities", json={"activity_type": "goal_achieved", "notes": "Seven day streak"}
    )

    assert response.status_code == 201
    activity = ActivityLogDao(db_session).fetch_by_user(user.id)[0]
    assert activity.id == response.json()["id"]
    assert activity.activity_type == "goal_achieved"


def test_log_activity_route_rejects_unknown_types(auth_client):
    response = auth_client.post("/dashboard/activities", json={"activity_type": "napping"})

    assert response.status_code == 422
