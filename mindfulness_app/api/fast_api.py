"""
FastAPI Router: Authentication, Profile, Mood, Exercises, History and Chat

This module defines the HTTP API endpoints exposed by the backend. It handles:
- Sign-in through the Auth0 code flow, sign-out and session refresh
- The user profile (display name is the only mutable field)
- Mood check-ins with weekly average, trend and per-factor statistics
- Exercise generation, listing and completion
- Mindfulness session history
- Persisted chat sessions and messages
- The dashboard summary and manual activity logging

Every screen except the auth routes reads the caller from the session the
session gate resolved for the request.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import RedirectResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mindfulness_app.api.auth0 import Auth0Client, TokenExchangeError, UserProfileError, get_auth0_client
from mindfulness_app.api.llm_client import ExerciseGenerator, get_exercise_generator
from mindfulness_app.api.models import (
    ActivityCreate,
    ActivityOut,
    ChatMessageCreate,
    ChatMessageOut,
    ExerciseCompletion,
    ExerciseOut,
    ExerciseRequest,
    MoodCreate,
    MoodEntryOut,
    ProfileUpdate,
    SessionLogCreate,
    SessionLogOut,
    SessionLogUpdate,
    UserOut,
)
from mindfulness_app.api.session_gate import LOGIN_PATH
from mindfulness_app.api.utils import SESSION_COOKIE, create_access_token, create_state, read_state, set_session_cookie
from mindfulness_app.database.config.config import settings
from mindfulness_app.database.core.engine import get_db
from mindfulness_app.database.core.funcs import (
    complete_exercise,
    log_mindfulness_session,
    log_user_activity,
    record_mood,
    sign_in_user,
)
from mindfulness_app.database.daos import (
    ActivityLogDao,
    ChatMessageDao,
    ExerciseDao,
    MindfulnessSessionDao,
    MoodEntryDao,
    UserDao,
)
from mindfulness_app.database.entities import User
from mindfulness_app.database.entities.base import new_id
from mindfulness_app.domain.activity import recommend, streak
from mindfulness_app.domain.exercises import enrich, validate_request
from mindfulness_app.domain.mood import average_mood, factor_stats, mood_trend
from mindfulness_app.errors import AppError, ConfigurationError

logger = logging.getLogger(__name__)

router = APIRouter()
"""Creates the FastAPI router in which we define its routes"""

AUTH_CODE_ERROR_PATH = "/auth/auth-code-error"


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Resolve the signed-in user from the session placed on the request by the session gate."""
    session = getattr(request.state, "session", None)
    if session is None:
        raise HTTPException(status_code=401, detail="Missing Token")
    user = UserDao(db).fetch_by_id(session.user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return user


# --- auth -------------------------------------------------------------------


@router.get("/auth/login")
async def login(redirectTo: str = "/dashboard", auth0: Auth0Client = Depends(get_auth0_client)):
    """
    Start the Auth0 sign-in flow.

    Returns
    -------
    RedirectResponse
        307 to the Auth0 authorize URL; the return path travels in `state`.
    """
    return RedirectResponse(auth0.authorize_url(create_state(redirectTo)), status_code=307)


async def _complete_sign_in(code: str, state: Optional[str], db: Session, auth0: Auth0Client) -> RedirectResponse:
    profile = await auth0.fetch_user(code)
    user_id = sign_in_user(db, profile)
    token = create_access_token({"sub": user_id, "email": profile.get("email")})
    response = RedirectResponse(read_state(state), status_code=307)
    set_session_cookie(response, token)
    logger.info("User %s signed in", user_id)
    return response


@router.get("/api/auth/callback")
async def auth_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    db: Session = Depends(get_db),
    auth0: Auth0Client = Depends(get_auth0_client),
):
    """
    Auth0 redirect target: exchange the code, upsert the user and set the session cookie.

    Returns
    -------
    RedirectResponse
        To the return path carried by `state` (default `/dashboard`), or back
        to the login page with an `error` query on failure.
    """
    if not code:
        return RedirectResponse(LOGIN_PATH, status_code=307)
    try:
        return await _complete_sign_in(code, state, db, auth0)
    except TokenExchangeError:
        return RedirectResponse(f"{LOGIN_PATH}?error=token_exchange", status_code=307)
    except UserProfileError:
        return RedirectResponse(f"{LOGIN_PATH}?error=user_profile", status_code=307)
    except (AppError, SQLAlchemyError):
        logger.exception("Auth callback error")
        return RedirectResponse(f"{LOGIN_PATH}?error=server", status_code=307)


@router.get("/auth/callback")
async def auth_code_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    db: Session = Depends(get_db),
    auth0: Auth0Client = Depends(get_auth0_client),
):
    """Legacy callback path; every failure lands on the auth-code error page."""
    if not code:
        return RedirectResponse(AUTH_CODE_ERROR_PATH, status_code=307)
    try:
        return await _complete_sign_in(code, state, db, auth0)
    except (AppError, SQLAlchemyError):
        logger.exception("Auth code exchange failed")
        return RedirectResponse(AUTH_CODE_ERROR_PATH, status_code=307)


@router.post("/auth/signout")
async def signout(request: Request):
    """
    Sign the user out by clearing the session cookie.

    Returns
    -------
    RedirectResponse
        303 to `NEXT_PUBLIC_SITE_URL`, or `/`.
    """
    response = RedirectResponse(settings.NEXT_PUBLIC_SITE_URL or "/", status_code=303)
    response.delete_cookie(key=SESSION_COOKIE)
    session = getattr(request.state, "session", None)
    if session is not None:
        logger.info("User %s signed out", session.user_id)
    return response


@router.get("/api/auth/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)):
    """Return the signed-in user, or 401."""
    return user


@router.post("/api/auth/refresh", response_model=UserOut)
def refresh(response: Response, user: User = Depends(get_current_user)):
    """
    Reissue the session cookie with a fresh lifetime.

    Returns
    -------
    UserOut
        The signed-in user.

    Raises
    ------
    HTTPException 401
        If there is no valid session to refresh.
    """
    set_session_cookie(response, create_access_token({"sub": user.id, "email": user.email}))
    return user


# --- profile ----------------------------------------------------------------


@router.get("/profile", response_model=UserOut)
def get_profile(user: User = Depends(get_current_user)):
    return user


@router.patch("/profile", response_model=UserOut)
def update_profile(data: ProfileUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    Change the display name.

    Request Body
    ------------
    ProfileUpdate {display_name: str}
    """
    UserDao(db).update_display_name(user, data.display_name.strip())
    db.commit()
    return user


# --- mood -------------------------------------------------------------------


@router.get("/mood-tracker")
def get_mood_tracker(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    List mood entries with their summary statistics.

    Returns
    -------
    dict
        {'entries': [...], 'weekly_average': float|None, 'trend': str,
        'factors': {factor: {'count': int, 'avg_mood': float}}}
    """
    entries = MoodEntryDao(db).fetch_by_user(user.id)
    scored = [(entry.recorded_at, entry.mood_score) for entry in entries]
    return {
        "entries": [MoodEntryOut.model_validate(entry) for entry in entries],
        "weekly_average": average_mood(scored, fallback_to_all=True),
        "trend": mood_trend(scored),
        "factors": factor_stats((entry.mood_score, entry.factors) for entry in entries),
    }


@router.post("/mood-tracker", status_code=201)
def create_mood_entry(data: MoodCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    Record a mood check-in.

    Request Body
    ------------
    MoodCreate {mood_score: float, mood_label?: str, notes?: str, factors: list[str]}

    Returns
    -------
    dict
        {'id': str}

    Raises
    ------
    HTTPException 400
        If the score is NaN. Infinite scores clamp to the ends of the scale.
    """
    try:
        entry_id = record_mood(db, user.id, data.mood_score, data.mood_label, data.notes, data.factors)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"id": entry_id}


# --- exercises --------------------------------------------------------------


@router.get("/exercises", response_model=List[ExerciseOut])
def list_exercises(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return ExerciseDao(db).fetch_by_user(user.id)


@router.post("/exercises", response_model=ExerciseOut, status_code=201)
async def generate_exercise(
    data: ExerciseRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    generator: ExerciseGenerator = Depends(get_exercise_generator),
):
    """
    Generate an exercise with the LLM and store it.

    Request Body
    ------------
    ExerciseRequest {category: str, duration: int}

    Raises
    ------
    HTTPException 400
        If the category is unknown or the duration is outside 1-60 minutes.
    ExerciseGenerationError 502
        If the model returned nothing usable.
    """
    try:
        validate_request(data.category, data.duration)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    api_key = settings.openrouter_api_key
    if not api_key:
        raise ConfigurationError("OpenRouter API key is not configured")

    exercise = await generator.generate(data.category, data.duration, api_key)
    stored = ExerciseDao(db).create(user.id, **enrich(exercise))
    db.commit()
    return stored


@router.get("/exercises/{exercise_id}", response_model=ExerciseOut)
def get_exercise(exercise_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    exercise = ExerciseDao(db).fetch_by_id(user.id, exercise_id)
    if exercise is None:
        raise HTTPException(status_code=404, detail="Exercise not found")
    return exercise


@router.post("/exercises/{exercise_id}/complete")
def finish_exercise(
    exercise_id: str,
    data: Optional[ExerciseCompletion] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Mark an exercise completed. Completing it again changes nothing.

    Returns
    -------
    dict
        {'exercise_id': str, 'activity_id': str|None, 'already_completed': bool}
    """
    data = data or ExerciseCompletion()
    exercise = ExerciseDao(db).fetch_by_id(user.id, exercise_id)
    if exercise is None:
        raise HTTPException(status_code=404, detail="Exercise not found")
    try:
        activity_id = complete_exercise(
            db, user.id, exercise_id, data.duration_minutes or exercise.duration, data.notes
        )
    except LookupError:
        raise HTTPException(status_code=404, detail="Exercise not found")
    return {"exercise_id": exercise_id, "activity_id": activity_id, "already_completed": activity_id is None}


# --- history ----------------------------------------------------------------


@router.get("/history", response_model=List[SessionLogOut])
def list_sessions(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return MindfulnessSessionDao(db).fetch_by_user(user.id)


@router.post("/history", status_code=201)
def create_session(data: SessionLogCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    Log a finished mindfulness session.

    Request Body
    ------------
    SessionLogCreate {duration_minutes: int, session_type: str, notes?: str,
    mood_before?: int, mood_after?: int, tags: list[str]}

    Returns
    -------
    dict
        {'id': str}
    """
    session_id = log_mindfulness_session(
        db,
        user.id,
        data.duration_minutes,
        data.session_type,
        notes=data.notes,
        mood_before=data.mood_before,
        mood_after=data.mood_after,
        tags=data.tags,
    )
    return {"id": session_id}


@router.patch("/history/{session_id}", response_model=SessionLogOut)
def update_session(
    session_id: str, data: SessionLogUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    dao = MindfulnessSessionDao(db)
    session = dao.fetch_by_id(user.id, session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    dao.update(session, data.model_dump(exclude_unset=True))
    db.commit()
    return session


@router.delete("/history/{session_id}", status_code=204)
def delete_session(session_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    dao = MindfulnessSessionDao(db)
    session = dao.fetch_by_id(user.id, session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    dao.delete(session)
    db.commit()
    return Response(status_code=204)


# --- chat -------------------------------------------------------------------


@router.post("/chat/sessions", status_code=201)
def new_chat_session(user: User = Depends(get_current_user)):
    """
    Open a new chat session.

    Returns
    -------
    dict
        {'session_id': str}
    """
    return {"session_id": new_id()}


@router.get("/chat/sessions/{session_id}/messages", response_model=List[ChatMessageOut])
def get_chat_messages(session_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Messages of one chat session in chronological order."""
    return ChatMessageDao(db).fetch_by_session(user.id, session_id)


@router.post("/chat/sessions/{session_id}/messages", response_model=ChatMessageOut, status_code=201)
def add_chat_message(
    session_id: str, data: ChatMessageCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    message = ChatMessageDao(db).create(
        user.id, session_id, data.message_text, is_user_message=data.is_user_message, context=data.context
    )
    db.commit()
    return message


# --- dashboard --------------------------------------------------------------


@router.get("/dashboard")
def dashboard(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    Summary shown on the dashboard.

    Returns
    -------
    dict
        {'stats': {'total_sessions', 'total_minutes', 'streak', 'last_session'},
        'weekly_mood_average': float|None, 'recommended_exercises': [...],
        'recent_activities': [...]}
    """
    sessions = MindfulnessSessionDao(db).fetch_by_user(user.id)
    moods = MoodEntryDao(db).fetch_by_user(user.id)
    exercise_dao = ExerciseDao(db)
    weekly_average = average_mood((entry.recorded_at, entry.mood_score) for entry in moods)
    recommended = recommend(exercise_dao.fetch_by_user(user.id), exercise_dao.completed_ids(user.id), weekly_average)
    activities = ActivityLogDao(db).fetch_by_user(user.id)[:10]

    return {
        "stats": {
            "total_sessions": len(sessions),
            "total_minutes": sum(session.duration_minutes for session in sessions),
            "streak": streak(session.created_at for session in sessions),
            "last_session": sessions[0].created_at if sessions else None,
        },
        "weekly_mood_average": weekly_average,
        "recommended_exercises": [ExerciseOut.model_validate(exercise) for exercise in recommended],
        "recent_activities": [ActivityOut.model_validate(activity) for activity in activities],
    }


@router.post("/dashboard/activities", status_code=201)
def create_activity(data: ActivityCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    Log one activity-log row for the caller, e.g. a reached goal.

    Request Body
    ------------
    ActivityCreate {activity_type, exercise_id?, duration_minutes?, notes?}

    Returns
    -------
    dict
        {'id': str}
    """
    activity_id = log_user_activity(
        db, user.id, data.activity_type, data.exercise_id, data.duration_minutes, data.notes
    )
    return {"id": activity_id}
