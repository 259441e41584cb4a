"""llm_client
=================

Thin clients for the OpenRouter chat-completion API.

- :class:`OpenRouterClient` forwards a transcript as-is through the OpenAI SDK
  (OpenRouter speaks the same protocol) and hands back the raw completion
  payload. SDK retries are disabled: a failed upstream call is reported to the
  caller once, with the upstream status code.
- :class:`ExerciseGenerator` asks a LangChain ``ChatOpenAI`` model for an
  exercise as raw JSON and turns the reply into a validated
  :class:`~mindfulness_app.domain.exercises.GeneratedExercise`, falling back to
  plain-text reconstruction when the JSON does not hold up.
"""

import logging
from typing import Any, Callable, List, Optional

import httpx
from langchain_core.prompts import PromptTemplate
from langchain_openai import ChatOpenAI
from openai import APIConnectionError, APIStatusError, AsyncOpenAI

from mindfulness_app.database.config.config import settings
from mindfulness_app.domain.exercises import GeneratedExercise, parse_exercise_reply, validate_request
from mindfulness_app.errors import ExerciseGenerationError, UpstreamError

logger = logging.getLogger(__name__)

APP_TITLE = "Mindfulness Chatbot"


def _headers() -> dict:
    return {"HTTP-Referer": settings.NEXT_PUBLIC_APP_URL, "X-Title": APP_TITLE}


def _upstream_error(e: APIStatusError) -> UpstreamError:
    body = e.body
    message = body.get("message") if isinstance(body, dict) else None
    return UpstreamError(message or f"API error: {e.status_code}", status_code=e.status_code, details=body)


class OpenRouterClient:

    def __init__(self, api_key: str, http_client: Optional[httpx.AsyncClient] = None):
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=settings.OPENROUTER_BASE_URL,
            max_retries=0,
            default_headers=_headers(),
            http_client=http_client,
        )

    async def complete(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 800,
    ) -> dict:
        """Send one chat-completion request and return the payload as a dict.

        Raises
        ------
        UpstreamError
            With the upstream status on a non-2xx answer, or 500 when
            OpenRouter could not be reached.
        """
        model = model or settings.OPENROUTER_MODEL
        logger.info("OpenRouter request - model: %s, messages: %d", model, len(messages))
        try:
            completion = await self.client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except APIStatusError as e:
            logger.error("OpenRouter error response %s: %s", e.status_code, e.body)
            raise _upstream_error(e)
        except APIConnectionError as e:
            logger.error("OpenRouter connection error: %s", e)
            raise UpstreamError("Failed to communicate with OpenRouter API", status_code=500)
        return completion.model_dump(exclude_none=True)

    async def count_models(self) -> int:
        try:
            page = await self.client.models.list()
        except APIStatusError as e:
            raise _upstream_error(e)
        except APIConnectionError:
            raise UpstreamError("Error connecting to OpenRouter API", status_code=500)
        return len(page.data)

    async def close(self) -> None:
        await self.client.close()


def first_choice_content(payload: dict) -> Optional[str]:
    choices = payload.get("choices") or []
    if not choices:
        return None
    message = choices[0].get("message") or {}
    return message.get("content") or None


EXERCISE_PROMPT = PromptTemplate.from_template(
    """You are a mindfulness coach specializing in {category_name} exercises.
Create a {duration}-minute {category_name} exercise that is calming and centering.

CRITICAL: You must return a raw JSON object WITHOUT any markdown formatting, code blocks, or backticks.
The response must be EXACTLY in this format (no additional text or formatting):
{{
  "title": "Title of the exercise",
  "description": "Brief description of the exercise",
  "duration": {duration},
  "category": "{category}",
  "difficulty": "beginner",
  "steps": ["Step 1 description", "Step 2 description", "..."],
  "benefits": ["Benefit 1", "..."],
  "tips": ["Tip 1", "..."]
}}

STRICT RULES:
1. NO markdown formatting, NO text before or after the JSON
2. Use double quotes for strings and no trailing commas
3. Steps must be an array of strings
4. Duration must be {duration} and category must be "{category}"
"""
)


class ExerciseGenerator:
    """Generates exercises through an LLM; pass ``llm`` to supply your own model."""

    def __init__(self, llm: Any = None):
        self.llm = llm

    def _model(self, api_key: str):
        if self.llm is not None:
            return self.llm
        return ChatOpenAI(
            model=settings.OPENROUTER_MODEL,
            api_key=api_key,
            base_url=settings.OPENROUTER_BASE_URL,
            temperature=0.7,
            max_retries=0,
            default_headers=_headers(),
        )

    async def generate(self, category: str, duration: int, api_key: str) -> GeneratedExercise:
        validate_request(category, duration)
        prompt = EXERCISE_PROMPT.format(
            category_name=category.replace("-", " "), category=category, duration=duration
        )
        logger.info("Generating %d-minute %s mindfulness exercise", duration, category)
        try:
            reply = await self._model(api_key).ainvoke(prompt)
        except APIStatusError as e:
            raise _upstream_error(e)
        except APIConnectionError:
            raise UpstreamError("Failed to communicate with OpenRouter API", status_code=500)
        content = reply.content if hasattr(reply, "content") else str(reply)
        if not isinstance(content, str) or not content.strip():
            raise ExerciseGenerationError(f"Failed to generate {category} exercise: empty response")
        return parse_exercise_reply(content, category, duration)


def get_openrouter_factory() -> Callable[[str], OpenRouterClient]:
    return OpenRouterClient


def get_exercise_generator() -> ExerciseGenerator:
    return ExerciseGenerator()
