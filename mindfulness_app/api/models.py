from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProfileUpdate(BaseModel):
    display_name: str = Field(min_length=1, max_length=255)


class MoodCreate(BaseModel):
    mood_score: float
    mood_label: Optional[str] = None
    notes: Optional[str] = None
    factors: List[str] = Field(default_factory=list)


class ExerciseRequest(BaseModel):
    category: str
    duration: int


class ExerciseCompletion(BaseModel):
    duration_minutes: Optional[int] = None
    notes: Optional[str] = None


class SessionLogCreate(BaseModel):
    duration_minutes: int = Field(ge=0)
    session_type: str
    notes: Optional[str] = None
    mood_before: Optional[int] = Field(default=None, ge=1, le=5)
    mood_after: Optional[int] = Field(default=None, ge=1, le=5)
    tags: List[str] = Field(default_factory=list)


class SessionLogUpdate(BaseModel):
    duration_minutes: Optional[int] = Field(default=None, ge=0)
    session_type: Optional[str] = None
    notes: Optional[str] = None
    mood_before: Optional[int] = Field(default=None, ge=1, le=5)
    mood_after: Optional[int] = Field(default=None, ge=1, le=5)
    tags: Optional[List[str]] = None


class ActivityCreate(BaseModel):
    activity_type: Literal["exercise_completed", "mood_tracked", "chat_session", "login", "goal_achieved"]
    exercise_id: Optional[str] = None
    duration_minutes: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None


class ChatMessageCreate(BaseModel):
    message_text: str = Field(min_length=1)
    is_user_message: bool = True
    context: dict = Field(default_factory=dict)


class ChatRequest(BaseModel):
    """Body of `/api/chat`. `messages` is checked by hand so a bad type gets the documented 400."""

    messages: Any = None
    model: Optional[str] = None


class OpenRouterRequest(BaseModel):
    messages: Any = None
    model: Optional[str] = None
    temperature: float = 0.7
    maxTokens: int = 10000


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    display_name: Optional[str] = None
    created_at: Optional[datetime] = None


class MoodEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    mood_label: str
    mood_score: int
    notes: Optional[str] = None
    factors: List[str] = Field(default_factory=list)
    recorded_at: datetime


class ExerciseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: str
    duration: int
    category: str
    difficulty: str
    steps: List[str]
    benefits: List[str]
    tips: List[str]
    preparation: Optional[str] = None
    step_timings: List[int]
    created_at: datetime


class ActivityOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    activity_type: str
    exercise_id: Optional[str] = None
    duration_minutes: Optional[int] = None
    notes: Optional[str] = None
    created_at: datetime


class ChatMessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    session_id: str
    is_user_message: bool
    message_text: str
    context: dict = Field(default_factory=dict)
    created_at: datetime


class SessionLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    duration_minutes: int
    session_type: str
    notes: Optional[str] = None
    mood_before: Optional[int] = None
    mood_after: Optional[int] = None
    tags: List[str] = Field(default_factory=list)
    created_at: datetime
