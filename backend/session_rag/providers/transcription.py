"""Audio transcription via OpenAI Whisper."""

import logging
from datetime import datetime, timedelta
from typing import Any

from openai import AsyncOpenAI

from session_rag.core.errors import ValidationError
from session_rag.models.session_entry import Speaker
from session_rag.providers.base import TranscribedEntry, TranscriptionResult
from session_rag.providers.openai_client import call_openai
from session_rag.resilience.gateway import ProviderGateway

logger = logging.getLogger(__name__)

MAX_AUDIO_BYTES = 25 * 1024 * 1024


def _field(segment: Any, name: str, default: Any = None) -> Any:
    if isinstance(segment, dict):
        return segment.get(name, default)
    return getattr(segment, name, default)


class OpenAITranscriptionProvider:
    """Transcribes session recordings and splits them into speaker turns.

    Whisper does not diarize, so segments are attributed to alternating
    speakers starting with the therapist.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        gateway: ProviderGateway,
        model: str = "whisper-1",
        max_audio_bytes: int = MAX_AUDIO_BYTES,
    ) -> None:
        self._client = client
        self._gateway = gateway
        self.model = model
        self.max_audio_bytes = max_audio_bytes

    async def transcribe_audio(
        self,
        audio: bytes,
        filename: str,
        started_at: datetime,
    ) -> TranscriptionResult:
        """Transcribe an audio file.

        Args:
            audio: Raw audio bytes.
            filename: Original file name; Whisper infers the format from it.
            started_at: Session start, used to timestamp each segment.

        Raises:
            ValidationError: If the audio is empty or over the size limit.
            ProviderError: If the provider call still fails after retries.
        """
        if not audio:
            raise ValidationError("Audio file is required for transcription")
        if len(audio) > self.max_audio_bytes:
            raise ValidationError(
                f"Audio file too large. Maximum size is "
                f"{self.max_audio_bytes / 1024 / 1024:g}MB"
            )

        response = await self._gateway.call(
            "transcriptions",
            lambda: call_openai(
                "transcriptions",
                lambda: self._client.audio.transcriptions.create(
                    model=self.model,
                    file=(filename or "audio.mp3", audio),
                    response_format="verbose_json",
                ),
            ),
        )

        full_text = (_field(response, "text") or "").strip()
        segments = _field(response, "segments") or []

        entries: list[TranscribedEntry] = []
        for segment in segments:
            text = (_field(segment, "text") or "").strip()
            if not text:
                continue
            offset = float(_field(segment, "start", 0.0) or 0.0)
            entries.append(
                TranscribedEntry(
                    speaker=Speaker.THERAPIST if len(entries) % 2 == 0 else Speaker.CLIENT,
                    text=text,
                    timestamp=started_at + timedelta(seconds=offset),
                )
            )

        if not entries and full_text:
            entries.append(
                TranscribedEntry(speaker=Speaker.THERAPIST, text=full_text, timestamp=started_at)
            )

        logger.info(
            "Transcribed %d bytes into %d entries (%d chars)",
            len(audio),
            len(entries),
            len(full_text),
        )
        return TranscriptionResult(full_text=full_text, entries=entries)
