"""
Chat client: sends user turns to `/api/chat` and keeps the local transcript.

Sends are serialised, so a second call waits for the first to finish. Each
request carries the system prompt, the last ten turns of the current session
and the new user turn. A failed request is retried twice, waiting one second
after the first failure and two after the second.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional

import httpx

from mindfulness_app.client.storage import ActivityLogRepository, ChatSessionRepository, KeyValueStore
from mindfulness_app.domain.activity import chat_session_duration, is_session_end_message
from mindfulness_app.errors import ChatSendError, UpstreamError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a mindfulness and meditation assistant, helping users with mental wellness, meditation "
    "techniques, and stress management. You can use Markdown formatting in your responses: **bold** for "
    "emphasis, _italic_ for subtle emphasis, and # headings for structure. Use bullet lists with * or - "
    "for steps or options."
)
CHAT_CONTEXT_LENGTH = 10
MAX_ATTEMPTS = 3
RETRY_DELAY_SECONDS = 1.0
ERROR_REPLY = "I apologize, but I encountered an error. Please try again."


def _message(role: str, content: str, **context) -> dict:
    return {
        "id": str(uuid.uuid4()),
        "role": role,
        "content": content,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "context": context,
    }


def build_payload(history: List[dict], content: str) -> List[dict]:
    """System prompt, then the last turns of ``history`` (errors left out), then the new user turn."""
    turns = [
        {"role": message["role"], "content": message["content"]}
        for message in history
        if not message.get("context", {}).get("error")
    ]
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        *turns[-CHAT_CONTEXT_LENGTH:],
        {"role": "user", "content": content},
    ]


class ChatClient:

    def __init__(
        self,
        http: httpx.AsyncClient,
        store: KeyValueStore,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        model: Optional[str] = None,
    ):
        self.http = http
        self.sessions = ChatSessionRepository(store)
        self.activity = ActivityLogRepository(store)
        self.sleep = sleep
        self.model = model
        self._lock = asyncio.Lock()

    def current_session(self) -> str:
        session_id = self.sessions.current()
        if session_id is None:
            session_id = str(uuid.uuid4())
            self.sessions.create(session_id)
        return session_id

    async def _complete(self, messages: List[dict]) -> str:
        body = {"messages": messages}
        if self.model:
            body["model"] = self.model
        try:
            response = await self.http.post("/api/chat", json=body)
        except httpx.HTTPError as e:
            raise UpstreamError(f"Chat request failed: {e}", status_code=503)
        if response.is_error:
            raise UpstreamError(f"Chat request failed with {response.status_code}", status_code=response.status_code)
        choices = response.json().get("choices") or []
        content = choices[0].get("message", {}).get("content") if choices else None
        if not content:
            raise UpstreamError("Chat response had no content", status_code=502)
        return content

    async def send(self, content: str) -> dict:
        """
        Send one user turn and return the assistant's reply message.

        Raises
        ------
        ValueError
            If ``content`` is blank.
        ChatSendError
            After the third failed attempt. An error reply is stored in the
            transcript before raising.
        """
        if not content.strip():
            raise ValueError("Message is empty")

        async with self._lock:
            session_id = self.current_session()
            payload = build_payload(self.sessions.messages(session_id), content)
            self.sessions.append_message(session_id, _message("user", content))

            last_error: Optional[UpstreamError] = None
            for attempt in range(1, MAX_ATTEMPTS + 1):
                try:
                    reply = await self._complete(payload)
                    break
                except UpstreamError as e:
                    last_error = e
                    logger.warning("Chat attempt %d/%d failed: %s", attempt, MAX_ATTEMPTS, e.message)
                    if attempt < MAX_ATTEMPTS:
                        await self.sleep(attempt * RETRY_DELAY_SECONDS)
            else:
                self.sessions.append_message(session_id, _message("assistant", ERROR_REPLY, error=True))
                raise ChatSendError("Failed to send message. Please try again.", details=last_error.message)

            message = _message("assistant", reply)
            self.sessions.append_message(session_id, message)
            return message

    def ends_session(self, content: str) -> bool:
        """True when ``content`` reads as a goodbye and the session has more than the opening exchange."""
        session_id = self.sessions.current()
        if session_id is None or not is_session_end_message(content):
            return False
        return len(self.sessions.messages(session_id)) > 2

    async def finish_session(self, session_type: str = "chat_meditation") -> Optional[dict]:
        """Log the current chat as a mindfulness session and start afresh next send."""
        session_id = self.sessions.current()
        if session_id is None:
            return None
        count = len(self.sessions.messages(session_id))
        duration = chat_session_duration(count)
        response = await self.http.post(
            "/history",
            json={
                "duration_minutes": duration,
                "session_type": session_type,
                "notes": f"Chat session with {count} messages",
                "tags": ["chat", "ai-assisted"],
            },
        )
        response.raise_for_status()
        self.activity.log("chat_session", duration_minutes=duration)
        self.sessions.set_current(None)
        return response.json()
