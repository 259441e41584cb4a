"""
FastAPI Router: AI proxy endpoints

Server-side proxies that keep provider keys off the client:
- `/api/chat` forwards a chat transcript to OpenRouter, or transcribes a voice
  message when the body is multipart
- `/api/openrouter` forwards a transcript and extracts the reply text
- `/api/openrouter/test` checks that the configured key is accepted
- `/api/test-transcribe` runs a fully featured AssemblyAI transcription

None of these retry a failed upstream call.
"""

import logging
from typing import Callable, Optional, Type, TypeVar

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from starlette.datastructures import UploadFile as StarletteUploadFile

from mindfulness_app.api.llm_client import OpenRouterClient, first_choice_content, get_openrouter_factory
from mindfulness_app.api.models import ChatRequest, OpenRouterRequest
from mindfulness_app.api.transcription import (
    MAX_AUDIO_BYTES,
    TranscriptionService,
    chat_config,
    chat_result,
    detailed_config,
    detailed_result,
    get_transcription_factory,
)
from mindfulness_app.database.config.config import settings
from mindfulness_app.errors import AppError, ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")
"""Router for the AI proxy endpoints"""


RequestModel = TypeVar("RequestModel", bound=BaseModel)


async def _parse_body(request: Request, model: Type[RequestModel]) -> RequestModel:
    try:
        body = await request.json()
    except ValueError:
        raise AppError("Invalid JSON in request body", status_code=400)
    if not isinstance(body, dict):
        return model()
    try:
        return model.model_validate(body)
    except ValidationError as e:
        raise AppError("Invalid request body", status_code=400, details=e.errors(include_url=False, include_context=False))


def _require_messages(messages) -> list:
    if not isinstance(messages, list):
        raise AppError("Invalid request: messages must be an array", status_code=400)
    return messages


def _openrouter_key() -> str:
    api_key = settings.openrouter_api_key
    if not api_key:
        logger.error("OpenRouter API key not configured in environment")
        raise ConfigurationError("OpenRouter API key is not configured")
    return api_key


def _assemblyai_key() -> str:
    if not settings.NEXT_PUBLIC_ASSEMBLYAI_API_KEY:
        raise ConfigurationError("AssemblyAI API key missing")
    return settings.NEXT_PUBLIC_ASSEMBLYAI_API_KEY


async def _read_audio(upload) -> bytes:
    if not isinstance(upload, StarletteUploadFile):
        raise AppError("No audio file provided", status_code=400)
    if upload.size is not None and upload.size > MAX_AUDIO_BYTES:
        raise AppError("Audio file too large. Maximum size is 1GB.", status_code=400)
    data = await upload.read()
    if len(data) > MAX_AUDIO_BYTES:
        raise AppError("Audio file too large. Maximum size is 1GB.", status_code=400)
    return data


@router.post("/chat")
async def chat(
    request: Request,
    client_factory: Callable[[str], OpenRouterClient] = Depends(get_openrouter_factory),
    transcription_factory: Callable[[str], TranscriptionService] = Depends(get_transcription_factory),
):
    """
    Forward a chat transcript to OpenRouter, or transcribe a voice message.

    Request Body
    ------------
    ChatRequest {messages: list[{role, content}], model?: str}
    or multipart/form-data with an audio `file`

    Returns
    -------
    dict
        The upstream chat-completion payload, unchanged, or
        {'text': str, 'language_code': str, 'metadata': {...}} for audio.

    Raises
    ------
    AppError 400
        If `messages` is not an array, or the audio is missing or too large.
    ConfigurationError 500
        If no OpenRouter key is configured.
    UpstreamError
        With the upstream status if OpenRouter rejects the call.
    """
    if "multipart/form-data" in request.headers.get("content-type", ""):
        form = await request.form()
        data = await _read_audio(form.get("file"))
        service = transcription_factory(_assemblyai_key())
        try:
            raw = await run_in_threadpool(service.transcribe, data, form["file"].content_type, chat_config())
        except Exception as e:
            logger.exception("Audio processing error")
            raise UpstreamError("Failed to process audio. Please try again.", status_code=500, details=str(e))
        result = chat_result(raw)
        if not result["text"]:
            raise AppError("No transcription text received", status_code=400)
        return {"text": result["text"], "language_code": result["language_code"], "metadata": result["metadata"]}

    data = await _parse_body(request, ChatRequest)
    messages = _require_messages(data.messages)

    client = client_factory(_openrouter_key())
    try:
        return await client.complete(messages, model=data.model, temperature=0.7, max_tokens=800)
    except UpstreamError as e:
        raise UpstreamError(
            "Failed to get response from AI", status_code=e.status_code, details=e.details or e.message
        )
    finally:
        await client.close()


@router.post("/openrouter")
async def openrouter(
    request: Request,
    client_factory: Callable[[str], OpenRouterClient] = Depends(get_openrouter_factory),
):
    """
    Forward a transcript to OpenRouter and return the reply text with the payload.

    Request Body
    ------------
    OpenRouterRequest {messages: list, model?: str, temperature?: float, maxTokens?: int}

    Returns
    -------
    dict
        The upstream payload plus 'content', the first choice's message text.

    Raises
    ------
    AppError 400
        If the body is not valid JSON, a field has the wrong type or
        `messages` is not an array.
    AppError 500
        If the upstream payload carries no message content.
    UpstreamError
        {'error': upstream message or 'API error: N', 'details': ...}
    """
    data = await _parse_body(request, OpenRouterRequest)
    messages = _require_messages(data.messages)
    client = client_factory(_openrouter_key())
    try:
        payload = await client.complete(
            messages, model=data.model, temperature=data.temperature, max_tokens=data.maxTokens
        )
    finally:
        await client.close()

    content = first_choice_content(payload)
    if not content:
        logger.error("Invalid response format from OpenRouter: %s", payload)
        raise AppError("Invalid response format from AI provider", status_code=500)
    return {**payload, "content": content}


@router.get("/openrouter/test")
async def openrouter_test(client_factory: Callable[[str], OpenRouterClient] = Depends(get_openrouter_factory)):
    """
    Check that the configured OpenRouter key is accepted.

    Returns
    -------
    dict
        {'success': True, 'message': str, 'models_available': int}
    """
    api_key = settings.openrouter_api_key
    if not api_key:
        logger.error("OpenRouter API key not found in environment variables")
        return JSONResponse(
            {"success": False, "message": "API key not found in environment variables"}, status_code=500
        )

    client = client_factory(api_key)
    try:
        count = await client.count_models()
    except UpstreamError as e:
        logger.error("OpenRouter API key test failed: %s", e.message)
        if e.status_code == 500 and e.details is None:
            return JSONResponse({"success": False, "message": e.message}, status_code=500)
        return JSONResponse(
            {"success": False, "message": "API key test failed", "status": e.status_code, "error": e.details},
            status_code=e.status_code,
        )
    finally:
        await client.close()

    logger.info("OpenRouter API key test successful")
    return {"success": True, "message": "API key is valid", "models_available": count}


@router.post("/test-transcribe")
async def test_transcribe(
    file: Optional[UploadFile] = File(None),
    transcription_factory: Callable[[str], TranscriptionService] = Depends(get_transcription_factory),
):
    """
    Transcribe an uploaded audio file with every AssemblyAI feature enabled.

    Returns
    -------
    dict
        {'success': True, 'transcription': {text, confidence, language, words,
        speakers, utterances, raw}}

    Raises
    ------
    AppError 400
        If no file was uploaded or it exceeds 1 GiB.
    ConfigurationError 500
        If no AssemblyAI key is configured.
    UpstreamError 500
        {'error': 'Failed to transcribe audio', 'details': ...}
    """
    data = await _read_audio(file)
    service = transcription_factory(_assemblyai_key())
    try:
        raw = await run_in_threadpool(service.transcribe, data, file.content_type, detailed_config())
    except Exception as e:
        logger.exception("Transcription error")
        raise UpstreamError("Failed to transcribe audio", status_code=500, details=str(e))
    return {"success": True, "transcription": detailed_result(raw)}
