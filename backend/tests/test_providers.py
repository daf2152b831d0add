"""Tests for the OpenAI-backed embedding, summary and transcription providers."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from session_rag.core.errors import (
    DimensionMismatchError,
    EmptyInputError,
    PayloadError,
    ProviderError,
    ValidationError,
)
from session_rag.models.session_entry import SessionEntry, Speaker
from session_rag.providers.embeddings import OpenAIEmbeddingClient
from session_rag.providers.summary import (
    EMPTY_SESSION_SUMMARY,
    FALLBACK_SUMMARY,
    OpenAISummaryProvider,
)
from session_rag.providers.transcription import OpenAITranscriptionProvider
from session_rag.resilience import ProviderGateway, RetryOptions, SlidingWindowRateLimiter

OPENAI_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/embeddings")


def make_gateway() -> ProviderGateway:
    return ProviderGateway(
        "openai",
        SlidingWindowRateLimiter(max_requests=100),
        RetryOptions(max_retries=2, initial_delay=0.0, max_delay=0.0),
        sleep=AsyncMock(),
    )


def status_error(error_cls, status_code: int):
    return error_cls(
        "provider said no",
        response=httpx.Response(status_code, request=OPENAI_REQUEST),
        body=None,
    )


def embedding_response(vector):
    return SimpleNamespace(data=[SimpleNamespace(embedding=vector)])


# -------------------------------------------------------------------------
# Embeddings
# -------------------------------------------------------------------------


class TestOpenAIEmbeddingClient:
    """Tests for OpenAIEmbeddingClient."""

    @pytest.fixture
    def openai_client(self) -> MagicMock:
        client = MagicMock()
        client.embeddings.create = AsyncMock(return_value=embedding_response([0.1, 0.2, 0.3]))
        return client

    @pytest.fixture
    def embedder(self, openai_client: MagicMock) -> OpenAIEmbeddingClient:
        return OpenAIEmbeddingClient(
            openai_client,
            make_gateway(),
            model="text-embedding-3-small",
            dimensions=3,
            max_input_chars=8000,
        )

    async def test_embed_returns_vector(self, embedder, openai_client):
        """Test the configured model and dimensions are sent to the provider."""
        vector = await embedder.embed("I slept badly")

        assert vector == [0.1, 0.2, 0.3]
        openai_client.embeddings.create.assert_awaited_once_with(
            model="text-embedding-3-small",
            input="I slept badly",
            dimensions=3,
        )

    async def test_long_input_is_truncated(self, embedder, openai_client):
        """Test input is cut to max_input_chars before sending."""
        await embedder.embed("a" * 9000)

        sent = openai_client.embeddings.create.await_args.kwargs["input"]
        assert len(sent) == 8000

    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    async def test_blank_input_rejected(self, embedder, openai_client, text):
        """Test blank input fails before any provider call."""
        with pytest.raises(EmptyInputError):
            await embedder.embed(text)

        openai_client.embeddings.create.assert_not_awaited()

    async def test_wrong_dimension_rejected(self, embedder, openai_client):
        openai_client.embeddings.create.return_value = embedding_response([0.1, 0.2])

        with pytest.raises(DimensionMismatchError):
            await embedder.embed("hello")

    @pytest.mark.parametrize(
        "response",
        [
            SimpleNamespace(data=[]),
            SimpleNamespace(data=None),
            embedding_response(None),
            embedding_response("0.1,0.2,0.3"),
            embedding_response([0.1, "x", 0.3]),
        ],
    )
    async def test_malformed_payload(self, embedder, openai_client, response):
        """Test responses without a usable numeric vector raise PayloadError."""
        openai_client.embeddings.create.return_value = response

        with pytest.raises(PayloadError):
            await embedder.embed("hello")

    async def test_rate_limited_then_succeeds(self, embedder, openai_client):
        """Test 429 responses are retried through the gateway."""
        openai_client.embeddings.create.side_effect = [
            status_error(openai.RateLimitError, 429),
            status_error(openai.RateLimitError, 429),
            embedding_response([1.0, 0.0, 0.0]),
        ]

        vector = await embedder.embed("hello")

        assert vector == [1.0, 0.0, 0.0]
        assert openai_client.embeddings.create.await_count == 3

    async def test_auth_error_not_retried(self, embedder, openai_client):
        """Test a 401 surfaces as ProviderError after one call."""
        openai_client.embeddings.create.side_effect = status_error(
            openai.AuthenticationError, 401
        )

        with pytest.raises(ProviderError) as exc_info:
            await embedder.embed("hello")

        assert exc_info.value.status_code == 401
        assert openai_client.embeddings.create.await_count == 1

    async def test_timeout_is_retried_as_504(self, embedder, openai_client):
        """Test timeouts are retried and finally reported with status 504."""
        openai_client.embeddings.create.side_effect = openai.APITimeoutError(
            request=OPENAI_REQUEST
        )

        with pytest.raises(ProviderError) as exc_info:
            await embedder.embed("hello")

        assert exc_info.value.status_code == 504
        assert openai_client.embeddings.create.await_count == 3

    async def test_connection_error_not_retried(self, embedder, openai_client):
        openai_client.embeddings.create.side_effect = openai.APIConnectionError(
            request=OPENAI_REQUEST
        )

        with pytest.raises(ProviderError) as exc_info:
            await embedder.embed("hello")

        assert exc_info.value.status_code is None
        assert openai_client.embeddings.create.await_count == 1


# -------------------------------------------------------------------------
# Summaries
# -------------------------------------------------------------------------


def completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class TestOpenAISummaryProvider:
    """Tests for OpenAISummaryProvider."""

    @pytest.fixture
    def openai_client(self) -> MagicMock:
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=completion("Client feels calmer."))
        return client

    @pytest.fixture
    def provider(self, openai_client) -> OpenAISummaryProvider:
        return OpenAISummaryProvider(openai_client, make_gateway(), model="gpt-4o-mini")

    async def test_no_entries(self, provider, openai_client):
        """Test an empty session is summarized without calling the provider."""
        assert await provider.generate_summary([]) == EMPTY_SESSION_SUMMARY
        openai_client.chat.completions.create.assert_not_awaited()

    async def test_prompt_contains_turns(self, provider, openai_client):
        """Test the prompt renders therapist and client turns."""
        entries = [
            SessionEntry(speaker=Speaker.THERAPIST.value, content="How was your week?"),
            SessionEntry(speaker=Speaker.CLIENT.value, transcript="Stressful, but better."),
        ]

        summary = await provider.generate_summary(entries)

        assert summary == "Client feels calmer."
        kwargs = openai_client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        system, user = kwargs["messages"]
        assert system["role"] == "system"
        assert "Therapist: How was your week?\n\nClient: Stressful, but better." in user["content"]
        assert user["content"].endswith("Summary:")

    @pytest.mark.parametrize("content", [None, "", "   "])
    async def test_blank_completion_falls_back(self, provider, openai_client, content):
        openai_client.chat.completions.create.return_value = completion(content)
        entries = [SessionEntry(speaker="client", content="Hi")]

        assert await provider.generate_summary(entries) == FALLBACK_SUMMARY


# -------------------------------------------------------------------------
# Transcription
# -------------------------------------------------------------------------


class TestOpenAITranscriptionProvider:
    """Tests for OpenAITranscriptionProvider."""

    STARTED_AT = datetime(2025, 3, 14, 10, 0, tzinfo=timezone.utc)

    @pytest.fixture
    def openai_client(self) -> MagicMock:
        client = MagicMock()
        client.audio.transcriptions.create = AsyncMock(
            return_value=SimpleNamespace(
                text="Hello. Hi there. How are you?",
                segments=[
                    SimpleNamespace(start=0.0, end=1.2, text=" Hello."),
                    SimpleNamespace(start=1.5, end=2.4, text=" Hi there."),
                    SimpleNamespace(start=3.0, end=4.8, text=" How are you?"),
                ],
            )
        )
        return client

    @pytest.fixture
    def provider(self, openai_client) -> OpenAITranscriptionProvider:
        return OpenAITranscriptionProvider(openai_client, make_gateway(), max_audio_bytes=1024)

    async def test_segments_become_alternating_entries(self, provider, openai_client):
        """Test segments alternate speakers and are offset from the session start."""
        result = await provider.transcribe_audio(b"audio-bytes", "session.mp3", self.STARTED_AT)

        assert result.full_text == "Hello. Hi there. How are you?"
        assert [e.speaker for e in result.entries] == [
            Speaker.THERAPIST,
            Speaker.CLIENT,
            Speaker.THERAPIST,
        ]
        assert [e.text for e in result.entries] == ["Hello.", "Hi there.", "How are you?"]
        assert result.entries[1].timestamp == self.STARTED_AT + timedelta(seconds=1.5)

        kwargs = openai_client.audio.transcriptions.create.await_args.kwargs
        assert kwargs["response_format"] == "verbose_json"
        assert kwargs["file"] == ("session.mp3", b"audio-bytes")

    async def test_text_without_segments(self, provider, openai_client):
        """Test a transcript without segments becomes one therapist entry."""
        openai_client.audio.transcriptions.create.return_value = SimpleNamespace(
            text="Just one block of speech.", segments=None
        )

        result = await provider.transcribe_audio(b"audio", "a.wav", self.STARTED_AT)

        assert len(result.entries) == 1
        assert result.entries[0].speaker == Speaker.THERAPIST
        assert result.entries[0].timestamp == self.STARTED_AT

    async def test_dict_segments(self, provider, openai_client):
        openai_client.audio.transcriptions.create.return_value = {
            "text": "One. Two.",
            "segments": [{"start": 0.0, "text": "One."}, {"start": 2.0, "text": "Two."}],
        }

        result = await provider.transcribe_audio(b"audio", "a.wav", self.STARTED_AT)

        assert [e.text for e in result.entries] == ["One.", "Two."]

    async def test_blank_segments_do_not_break_alternation(self, provider, openai_client):
        """Test skipped blank segments do not give one speaker two turns in a row."""
        openai_client.audio.transcriptions.create.return_value = SimpleNamespace(
            text="Hello. How are you? Fine.",
            segments=[
                SimpleNamespace(start=0.0, text=" Hello."),
                SimpleNamespace(start=1.0, text="   "),
                SimpleNamespace(start=2.0, text=" How are you?"),
                SimpleNamespace(start=3.0, text=" Fine."),
            ],
        )

        result = await provider.transcribe_audio(b"audio", "a.wav", self.STARTED_AT)

        assert [(e.speaker, e.text) for e in result.entries] == [
            (Speaker.THERAPIST, "Hello."),
            (Speaker.CLIENT, "How are you?"),
            (Speaker.THERAPIST, "Fine."),
        ]

    async def test_empty_audio_rejected(self, provider, openai_client):
        with pytest.raises(ValidationError):
            await provider.transcribe_audio(b"", "a.wav", self.STARTED_AT)

        openai_client.audio.transcriptions.create.assert_not_awaited()

    async def test_oversized_audio_rejected(self, provider, openai_client):
        """Test audio above the size limit fails before any provider call."""
        with pytest.raises(ValidationError):
            await provider.transcribe_audio(b"x" * 2048, "a.wav", self.STARTED_AT)

        openai_client.audio.transcriptions.create.assert_not_awaited()
