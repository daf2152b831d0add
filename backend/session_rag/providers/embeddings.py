"""Embedding generation for transcript chunks, summaries and queries.

Uses OpenAI's text-embedding-3 models, which accept a ``dimensions``
parameter so vector length stays aligned with what the chunk store holds.
"""

import logging
from typing import Any

from openai import AsyncOpenAI

from session_rag.core.errors import DimensionMismatchError, EmptyInputError, PayloadError
from session_rag.providers.openai_client import call_openai
from session_rag.resilience.gateway import ProviderGateway

logger = logging.getLogger(__name__)

DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
DEFAULT_DIMENSIONS = 1536

# Keeps requests under the model's token limit
DEFAULT_MAX_INPUT_CHARS = 8000


class OpenAIEmbeddingClient:
    """Turns text into fixed-length vectors through the OpenAI API.

    Every request goes through the shared ``ProviderGateway`` and therefore
    counts against the process-wide rate limit and retry policy.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        gateway: ProviderGateway,
        model: str = DEFAULT_EMBEDDING_MODEL,
        dimensions: int = DEFAULT_DIMENSIONS,
        max_input_chars: int = DEFAULT_MAX_INPUT_CHARS,
    ) -> None:
        self._client = client
        self._gateway = gateway
        self.model = model
        self._dimensions = dimensions
        self.max_input_chars = max_input_chars

    @property
    def dimensions(self) -> int:
        return self._dimensions

    async def embed(self, text: str) -> list[float]:
        """Generate an embedding for a single text.

        Args:
            text: Text to embed. Silently truncated to ``max_input_chars``.

        Returns:
            Vector of exactly ``dimensions`` floats.

        Raises:
            EmptyInputError: If ``text`` is empty or whitespace.
            ProviderError: If the provider call still fails after retries.
            PayloadError: If the response carries no usable vector.
            DimensionMismatchError: If the vector has the wrong length.
        """
        if not text or not text.strip():
            raise EmptyInputError("Text cannot be empty")

        truncated = text[: self.max_input_chars]

        response = await self._gateway.call(
            "embeddings",
            lambda: call_openai(
                "embeddings",
                lambda: self._client.embeddings.create(
                    model=self.model,
                    input=truncated,
                    dimensions=self._dimensions,
                ),
            ),
        )
        return self._parse_vector(response)

    def _parse_vector(self, response: Any) -> list[float]:
        data = getattr(response, "data", None)
        if not data:
            raise PayloadError("Invalid embedding response: no data")

        raw = getattr(data[0], "embedding", None)
        if not isinstance(raw, list):
            raise PayloadError("Invalid embedding response: embedding is not a list")

        try:
            vector = [float(value) for value in raw]
        except (TypeError, ValueError) as exc:
            raise PayloadError("Invalid embedding response: non-numeric values") from exc

        if len(vector) != self._dimensions:
            raise DimensionMismatchError(
                f"Embedding has {len(vector)} dimensions, expected {self._dimensions}"
            )
        return vector
