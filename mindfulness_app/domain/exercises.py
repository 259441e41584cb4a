"""
Exercise content: the schema an LLM reply must satisfy, the fallbacks used
when it does not, and the derivation of per-step timings.
"""

import json
import logging
import re
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError

from mindfulness_app.errors import ExerciseGenerationError, ExerciseParseError

logger = logging.getLogger(__name__)

CATEGORIES = ("breathing", "meditation", "body-scan", "mindful-walking", "gratitude", "visualization", "other")
MIN_DURATION = 1
MAX_DURATION = 60

# Seconds per step, used for short exercises (fewer than 6 steps).
DEFAULT_STEP_TIMING: Dict[str, List[int]] = {
    "breathing": [30, 60, 90, 120, 150],
    "meditation": [60, 120, 180, 240, 300],
    "body-scan": [45, 90, 135, 180, 225],
    "mindful-walking": [60, 120, 180, 240, 300],
    "gratitude": [40, 80, 120, 160, 200],
}
DEFAULT_TIMING_MAX_STEPS = 5

DEFAULT_STEPS: Dict[str, List[str]] = {
    "breathing": [
        "Find a comfortable seated position with your back straight.",
        "Close your eyes and take a deep breath in through your nose for 4 counts.",
        "Hold your breath for 4 counts.",
        "Exhale slowly through your mouth for 6 counts.",
        "Rest for 2 counts before beginning the next cycle.",
        "Repeat this breathing pattern for the duration of the exercise.",
    ],
    "meditation": [
        "Find a quiet space where you won't be disturbed.",
        "Sit comfortably with your back straight, either on a chair or cushion.",
        "Close your eyes and bring your attention to your breath.",
        "Notice the sensation of the breath entering and leaving your body.",
        "When your mind wanders, gently bring your attention back to your breath.",
        "Continue this practice, maintaining awareness of the present moment.",
    ],
}
GENERIC_STEPS = [
    "Find a comfortable position to begin the exercise.",
    "Follow along with the timer, moving through each phase mindfully.",
    "Focus on your breath and bodily sensations throughout the practice.",
    "If your mind wanders, gently bring your attention back to the exercise.",
    "Complete the full duration for maximum benefit.",
]

DEFAULT_BENEFITS: Dict[str, List[str]] = {
    "breathing": [
        "Reduces stress and anxiety",
        "Improves focus and concentration",
        "Activates the parasympathetic nervous system",
        "Helps regulate emotions",
        "Improves oxygen flow throughout the body",
    ],
    "meditation": [
        "Reduces stress and promotes emotional health",
        "Enhances self-awareness and mindfulness",
        "Lengthens attention span",
        "May reduce age-related memory loss",
        "Can generate kindness and compassion",
    ],
}
GENERIC_BENEFITS = [
    "Promotes mindfulness and present-moment awareness",
    "Reduces stress and anxiety",
    "Improves mental clarity and focus",
    "Enhances overall well-being",
    "Helps build a consistent mindfulness practice",
]

DEFAULT_TIPS = [
    "Consistency is key - try to practice at the same time each day",
    "Start with shorter sessions and gradually increase duration",
    "Be patient with yourself - mindfulness is a skill that develops with practice",
    "There's no 'perfect way' to practice - find what works best for you",
    "If you miss a day, simply begin again without judgment",
]

DEFAULT_PREPARATION = (
    "Find a quiet space where you won't be disturbed. Wear comfortable clothing and consider "
    "removing any distractions such as your phone. If seated, maintain a straight back to "
    "promote alertness while remaining comfortable."
)

_FENCE_OPEN = re.compile(r"```(?:json|javascript|js)?\s*")
_FENCE_CLOSE = re.compile(r"\s*```\s*")
_JSON_OBJECT = re.compile(r"\{[\s\S]+\}")
_LIST_MARKER = re.compile(r"^\s*(?:\d+[.)]|[-*•]|step\s+\d+:?)\s*", re.IGNORECASE)


class GeneratedExercise(BaseModel):
    """Shape an exercise must have once it leaves the LLM."""

    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    duration: int = Field(ge=MIN_DURATION, le=MAX_DURATION)
    category: str
    difficulty: Literal["beginner", "intermediate", "advanced"] = "beginner"
    steps: List[str] = Field(default_factory=list)
    benefits: List[str] = Field(default_factory=list)
    tips: List[str] = Field(default_factory=list)
    preparation: Optional[str] = None


def validate_request(category: str, duration: int) -> None:
    if category not in CATEGORIES:
        raise ValueError(f"Invalid exercise type. Must be one of: {', '.join(CATEGORIES)}")
    if not MIN_DURATION <= duration <= MAX_DURATION:
        raise ValueError(f"Duration must be between {MIN_DURATION} and {MAX_DURATION} minutes")


def strip_code_fences(text: str) -> str:
    text = _FENCE_OPEN.sub("", text)
    text = _FENCE_CLOSE.sub("", text)
    return text.replace("`", "").strip()


def parse_exercise_json(text: str, category: str, duration: int) -> GeneratedExercise:
    """Parse a reply as exercise JSON.

    The requested category and duration always win over whatever the model
    echoed back.
    """
    cleaned = strip_code_fences(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        match = _JSON_OBJECT.search(cleaned)
        if not match:
            raise ExerciseParseError("Response is not JSON", details=cleaned[:200])
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise ExerciseParseError(f"Invalid JSON response: {e}", details=cleaned[:200])

    if not isinstance(data, dict):
        raise ExerciseParseError("Response JSON is not an object")
    if isinstance(data.get("instructions"), list) and not data.get("steps"):
        data["steps"] = data["instructions"]
    data["category"] = category
    data["duration"] = duration
    try:
        return GeneratedExercise.model_validate(data)
    except ValidationError as e:
        raise ExerciseParseError("Exercise JSON failed validation", details=e.errors(include_url=False))


def exercise_from_text(text: str, category: str, duration: int) -> GeneratedExercise:
    """Rebuild a minimal exercise from plain text.

    First line is the title, second the description, the rest are steps.
    """
    lines = [line.strip().lstrip("#").strip() for line in strip_code_fences(text).splitlines()]
    lines = [line for line in lines if line]
    if not lines:
        raise ExerciseGenerationError(f"Failed to generate {category} exercise: empty response")
    title = lines[0].strip("*").strip() or f"{category.replace('-', ' ').title()} Exercise"
    description = lines[1] if len(lines) > 1 else f"A {duration}-minute {category.replace('-', ' ')} exercise."
    steps = [_LIST_MARKER.sub("", line) for line in lines[2:]]
    return GeneratedExercise(
        title=title,
        description=description,
        duration=duration,
        category=category,
        steps=[step for step in steps if step],
    )


def parse_exercise_reply(text: str, category: str, duration: int) -> GeneratedExercise:
    try:
        return parse_exercise_json(text, category, duration)
    except ExerciseParseError as e:
        logger.warning("Exercise reply did not match the schema (%s); using text fallback", e.message)
        return exercise_from_text(text, category, duration)


def default_steps(category: str) -> List[str]:
    return list(DEFAULT_STEPS.get(category, GENERIC_STEPS))


def default_benefits(category: str) -> List[str]:
    return list(DEFAULT_BENEFITS.get(category, GENERIC_BENEFITS))


def step_timings(category: str, duration: int, step_count: int) -> List[int]:
    """Seconds allotted to each step.

    Short exercises use the category's default timing table when there is
    one. Otherwise the duration is split evenly, rounding down; the remainder
    seconds belong to no step.
    """
    if step_count <= 0:
        return []
    if step_count <= DEFAULT_TIMING_MAX_STEPS and category in DEFAULT_STEP_TIMING:
        return list(DEFAULT_STEP_TIMING[category])
    return [(duration * 60) // step_count] * step_count


def enrich(exercise: GeneratedExercise) -> dict:
    """Fill in defaults and derive step timings, ready to be stored."""
    steps = exercise.steps or default_steps(exercise.category)
    return {
        "title": exercise.title,
        "description": exercise.description,
        "duration": exercise.duration,
        "category": exercise.category,
        "difficulty": exercise.difficulty,
        "steps": steps,
        "benefits": exercise.benefits or default_benefits(exercise.category),
        "tips": exercise.tips or list(DEFAULT_TIPS),
        "preparation": exercise.preparation or DEFAULT_PREPARATION,
        "step_timings": step_timings(exercise.category, exercise.duration, len(steps)),
    }
