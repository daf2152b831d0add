"""Session summarization via OpenAI chat completions."""

import logging
from typing import Sequence

from openai import AsyncOpenAI

from session_rag.models.session_entry import SessionEntry, Speaker
from session_rag.providers.openai_client import call_openai
from session_rag.resilience.gateway import ProviderGateway

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a professional therapist assistant. Summarize therapy sessions concisely."
)

SUMMARY_PROMPT_TEMPLATE = (
    "Summarize the following therapy session conversation. "
    "Focus on key themes, emotions, and progress:\n\n{conversation}\n\nSummary:"
)

EMPTY_SESSION_SUMMARY = "No session entries available for summarization."
FALLBACK_SUMMARY = "Unable to generate summary."


def render_conversation(entries: Sequence[SessionEntry]) -> str:
    """Render entries as ``Therapist:`` / ``Client:`` turns separated by blank lines."""
    turns = []
    for entry in entries:
        role = "Therapist" if entry.speaker == Speaker.THERAPIST.value else "Client"
        turns.append(f"{role}: {entry.content or entry.transcript or ''}")
    return "\n\n".join(turns)


class OpenAISummaryProvider:
    """Summarizes a session's conversation with a chat model."""

    def __init__(
        self,
        client: AsyncOpenAI,
        gateway: ProviderGateway,
        model: str = "gpt-4o-mini",
        max_tokens: int = 500,
        temperature: float = 0.7,
    ) -> None:
        self._client = client
        self._gateway = gateway
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    async def generate_summary(self, entries: Sequence[SessionEntry]) -> str:
        """Summarize the given entries.

        Returns a fixed sentence without calling the provider when there are
        no entries.
        """
        if not entries:
            return EMPTY_SESSION_SUMMARY

        prompt = SUMMARY_PROMPT_TEMPLATE.format(conversation=render_conversation(entries))
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]

        response = await self._gateway.call(
            "chat_completions",
            lambda: call_openai(
                "chat completion",
                lambda: self._client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                ),
            ),
        )

        content = None
        if response.choices:
            content = response.choices[0].message.content
        if not content or not content.strip():
            logger.warning("Summary model returned an empty completion")
            return FALLBACK_SUMMARY
        return content.strip()
