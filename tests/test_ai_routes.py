import json
import os

import httpx
import pytest

from mindfulness_app.api.llm_client import OpenRouterClient, get_openrouter_factory
from mindfulness_app.api.transcription import TranscriptionService, get_transcription_factory
from mindfulness_app.database.config.config import settings

MESSAGES = [{"role": "user", "content": "Help me relax"}]


def completion(content="Take a slow breath in.", model="google/gemini-2.0-flash-001"):
    return {
        "id": "gen-1",
        "object": "chat.completion",
        "created": 1700000000,
        "model": model,
        "choices": [
            {"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}
        ],
    }


@pytest.fixture
def upstream(app):
    """Routes OpenRouter traffic to a handler; returns the list of captured requests."""
    captured = []

    def install(handler):
        def recording(request):
            captured.append(request)
            return handler(request)

        app.dependency_overrides[get_openrouter_factory] = lambda: (
            lambda api_key: OpenRouterClient(
                api_key, http_client=httpx.AsyncClient(transport=httpx.MockTransport(recording))
            )
        )
        return captured

    return install


@pytest.fixture
def no_openrouter_key(monkeypatch):
    monkeypatch.setattr(settings, "OPENROUTER_API_KEY", None)
    monkeypatch.setattr(settings, "NEXT_PUBLIC_OPENROUTER_API_KEY", None)


def test_chat_rejects_non_array_messages(client):
    response = client.post("/api/chat", json={"messages": "hello"})

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request: messages must be an array"}


def test_chat_rejects_a_non_string_model(client):
    response = client.post("/api/chat", json={"messages": [], "model": 123})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request body"


def test_openrouter_rejects_a_non_object_body(client):
    response = client.post("/api/openrouter", json=["hello"])

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request: messages must be an array"}


def test_openrouter_rejects_a_bad_field(client):
    response = client.post("/api/openrouter", json={"messages": MESSAGES, "maxTokens": "lots"})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request body"


def test_chat_without_key_is_a_configuration_error(client, no_openrouter_key):
    response = client.post("/api/chat", json={"messages": MESSAGES})

    assert response.status_code == 500
    assert response.json() == {"error": "OpenRouter API key is not configured"}


def test_chat_forwards_messages_and_returns_payload(client, upstream):
    captured = upstream(lambda request: httpx.Response(200, json=completion()))

    response = client.post("/api/chat", json={"messages": MESSAGES})

    assert response.status_code == 200
    assert response.json()["choices"][0]["message"]["content"] == "Take a slow breath in."
    assert len(captured) == 1
    sent = captured[0]
    assert sent.url.path.endswith("/chat/completions")
    assert sent.headers["authorization"] == "Bearer test-openrouter-key"
    assert sent.headers["x-title"] == "Mindfulness Chatbot"
    body = json.loads(sent.content)
    assert body["messages"] == MESSAGES
    assert body["temperature"] == 0.7
    assert body["max_tokens"] == 800


def test_chat_upstream_error_keeps_status_and_is_not_retried(client, upstream):
    captured = upstream(lambda request: httpx.Response(429, json={"error": {"message": "Rate limited", "code": 429}}))

    response = client.post("/api/chat", json={"messages": MESSAGES})

    assert response.status_code == 429
    assert response.json()["error"] == "Failed to get response from AI"
    assert response.json()["details"]["message"] == "Rate limited"
    assert len(captured) == 1


def test_openrouter_returns_content(client, upstream):
    captured = upstream(lambda request: httpx.Response(200, json=completion("Notice your feet.")))

    response = client.post("/api/openrouter", json={"messages": MESSAGES, "maxTokens": 50})

    assert response.status_code == 200
    assert response.json()["content"] == "Notice your feet."
    assert response.json()["id"] == "gen-1"
    assert json.loads(captured[0].content)["max_tokens"] == 50


def test_openrouter_passes_upstream_message(client, upstream):
    upstream(lambda request: httpx.Response(401, json={"error": {"message": "No auth credentials found"}}))

    response = client.post("/api/openrouter", json={"messages": MESSAGES})

    assert response.status_code == 401
    assert response.json()["error"] == "No auth credentials found"


def test_openrouter_reports_bare_status(client, upstream):
    upstream(lambda request: httpx.Response(503, text="unavailable"))

    response = client.post("/api/openrouter", json={"messages": MESSAGES})

    assert response.status_code == 503
    assert response.json()["error"] == "API error: 503"


def test_openrouter_without_content_is_invalid(client, upstream):
    upstream(lambda request: httpx.Response(200, json=completion(content=None)))

    response = client.post("/api/openrouter", json={"messages": MESSAGES})

    assert response.status_code == 500
    assert response.json() == {"error": "Invalid response format from AI provider"}


def test_openrouter_connection_failure(client, upstream):
    def unreachable(request):
        raise httpx.ConnectError("connection refused")

    upstream(unreachable)

    response = client.post("/api/openrouter", json={"messages": MESSAGES})

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to communicate with OpenRouter API"}


def test_openrouter_key_check(client, upstream):
    models = {
        "object": "list",
        "data": [
            {"id": "google/gemini-2.0-flash-001", "object": "model", "created": 0, "owned_by": "google"},
            {"id": "openai/gpt-4o", "object": "model", "created": 0, "owned_by": "openai"},
        ],
    }
    upstream(lambda request: httpx.Response(200, json=models))

    response = client.get("/api/openrouter/test")

    assert response.json() == {"success": True, "message": "API key is valid", "models_available": 2}


def test_openrouter_key_check_without_key(client, no_openrouter_key):
    response = client.get("/api/openrouter/test")

    assert response.status_code == 500
    assert response.json()["success"] is False


@pytest.fixture
def assemblyai_key(monkeypatch):
    monkeypatch.setattr(settings, "NEXT_PUBLIC_ASSEMBLYAI_API_KEY", "test-assemblyai-key")


@pytest.fixture
def transcriber(app, assemblyai_key):
    calls = []

    def install(runner):
        def recording(path, config):
            calls.append({"path": path, "existed": os.path.exists(path), "config": config})
            return runner(path, config)

        app.dependency_overrides[get_transcription_factory] = lambda: (
            lambda api_key: TranscriptionService(api_key, runner=recording)
        )
        return calls

    return install


TRANSCRIPT = {
    "id": "tr-1",
    "status": "completed",
    "text": "I feel calm today.",
    "confidence": 0.93,
    "language_code": "en",
    "words": [{"text": "I", "start": 0, "end": 100}],
    "speaker_labels": True,
    "utterances": [],
}


def test_transcribe_requires_a_file(client, assemblyai_key):
    response = client.post("/api/test-transcribe", data={"note": "no audio"})

    assert response.status_code == 400
    assert response.json() == {"error": "No audio file provided"}


def test_transcribe_without_key(client, monkeypatch):
    monkeypatch.setattr(settings, "NEXT_PUBLIC_ASSEMBLYAI_API_KEY", None)

    response = client.post("/api/test-transcribe", files={"file": ("clip.mp3", b"audio", "audio/mpeg")})

    assert response.status_code == 500
    assert response.json() == {"error": "AssemblyAI API key missing"}


def test_transcribe_returns_transcript_and_removes_temp_file(client, transcriber):
    calls = transcriber(lambda path, config: TRANSCRIPT)

    response = client.post("/api/test-transcribe", files={"file": ("clip.webm", b"audio-bytes", "audio/webm")})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["transcription"]["text"] == "I feel calm today."
    assert body["transcription"]["language"] == "en"
    assert body["transcription"]["raw"]["id"] == "tr-1"
    assert calls[0]["existed"] is True
    assert calls[0]["path"].endswith(".webm")
    assert not os.path.exists(calls[0]["path"])


def test_transcribe_failure_still_removes_temp_file(client, transcriber):
    def failing(path, config):
        raise RuntimeError("upload rejected")

    calls = transcriber(failing)

    response = client.post("/api/test-transcribe", files={"file": ("clip.mp3", b"audio", "audio/mpeg")})

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to transcribe audio", "details": "upload rejected"}
    assert not os.path.exists(calls[0]["path"])


def test_chat_transcribes_voice_messages(client, transcriber):
    transcriber(lambda path, config: TRANSCRIPT)

    response = client.post("/api/chat", files={"file": ("voice.mp3", b"audio", "audio/mpeg")})

    assert response.status_code == 200
    assert response.json()["text"] == "I feel calm today."
    assert response.json()["language_code"] == "en"
    assert response.json()["metadata"]["confidence"] == 0.93
