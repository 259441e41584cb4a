"""
Audio transcription through AssemblyAI.

Uploads are written to a temporary file, handed to the AssemblyAI SDK and the
file is removed again whatever the outcome. The SDK call blocks, so routes run
:meth:`TranscriptionService.transcribe` in the threadpool.
"""

import logging
import os
import tempfile
from typing import Callable, Optional

import assemblyai as aai

from mindfulness_app.errors import UpstreamError

logger = logging.getLogger(__name__)

MAX_AUDIO_BYTES = 1024 * 1024 * 1024

WORD_BOOST = ["meditation", "mindfulness", "breathing", "relaxation"]


def chat_config() -> aai.TranscriptionConfig:
    """Fast English-only transcription for voice messages in the chat."""
    return aai.TranscriptionConfig(
        speaker_labels=True,
        language_detection=False,
        language_code="en",
        speech_model=aai.SpeechModel.nano,
    )


def detailed_config() -> aai.TranscriptionConfig:
    """Every feature enabled, for the transcription test endpoint."""
    return aai.TranscriptionConfig(
        speaker_labels=True,
        language_detection=True,
        punctuate=True,
        format_text=True,
        word_boost=WORD_BOOST,
    )


def _extension(content_type: Optional[str]) -> str:
    subtype = (content_type or "").split(";")[0].partition("/")[2].strip()
    return subtype or "mp3"


class TranscriptionService:

    def __init__(self, api_key: str, runner: Optional[Callable[[str, aai.TranscriptionConfig], dict]] = None):
        self.api_key = api_key
        self.runner = runner or self._run_assemblyai

    def _run_assemblyai(self, path: str, config: aai.TranscriptionConfig) -> dict:
        aai.settings.api_key = self.api_key
        transcript = aai.Transcriber(config=config).transcribe(path)
        if transcript.status == aai.TranscriptStatus.error:
            raise UpstreamError(f"Transcription failed: {transcript.error}", status_code=502)
        return transcript.json_response

    def transcribe(self, data: bytes, content_type: Optional[str], config: aai.TranscriptionConfig) -> dict:
        """Transcribe raw audio bytes and return AssemblyAI's transcript JSON."""
        fd, path = tempfile.mkstemp(suffix=f".{_extension(content_type)}")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
            logger.info("Transcribing %d bytes of audio", len(data))
            return self.runner(path, config)
        finally:
            try:
                os.remove(path)
            except OSError as e:
                logger.warning("Failed to delete temporary file %s: %s", path, e)


def chat_result(raw: dict) -> dict:
    return {
        "text": raw.get("text") or "",
        "language_code": raw.get("language_code") or "en",
        "words": raw.get("words") or [],
        "metadata": {
            "confidence": raw.get("confidence"),
            "speaker_labels": raw.get("speaker_labels") or [],
            "utterances": raw.get("utterances") or [],
            "language_code": raw.get("language_code"),
        },
    }


def detailed_result(raw: dict) -> dict:
    return {
        "text": raw.get("text"),
        "confidence": raw.get("confidence"),
        "language": raw.get("language_code"),
        "words": raw.get("words"),
        "speakers": raw.get("speaker_labels"),
        "utterances": raw.get("utterances"),
        "raw": raw,
    }


def get_transcription_factory() -> Callable[[str], TranscriptionService]:
    return TranscriptionService
