"""Reply generation over the OpenAI chat-completions API (OpenAI or Groq)."""
from __future__ import annotations

import asyncio
from typing import Any

from adapters.llm.base import ReplyGenerationError, ReplyGenerator, ReplyRequest
from adapters.llm.prompts import build_system_prompt
from context.serialization import serialize_for_llm
from observability.logger import log_event


class OpenAIReplyGenerator(ReplyGenerator):
    """
    Concrete reply generator.

    Design notes:
    - Streams the completion and accumulates deltas into one reply; the
      playback pipeline needs the full text to chunk it.
    - Groq is served through the same client via an OpenAI-compatible
      base_url (see server.app.build_llm_client).
    - Adapter does NOT retry, chunk text or manage timers.
    """

    def __init__(
        self,
        *,
        client: Any,  # Type: openai.AsyncOpenAI
        model: str,
        provider: str = "openai",
        timeout_s: float | None = 20.0,
    ) -> None:
        self._client = client
        self._model = model
        self._provider = provider
        self._timeout_s = timeout_s

    async def generate(self, request: ReplyRequest) -> str:
        messages = serialize_for_llm(
            system_prompt=build_system_prompt(request),
            recent_turns=request.recent_turns,
            user_text=request.transcript,
        )
        try:
            if self._timeout_s is None:
                text = await self._complete(messages)
            else:
                text = await asyncio.wait_for(self._complete(messages), timeout=self._timeout_s)
        except asyncio.TimeoutError as exc:
            raise ReplyGenerationError(f"timeout after {self._timeout_s}s") from exc
        except ReplyGenerationError:
            raise
        except Exception as exc:
            raise ReplyGenerationError(f"{type(exc).__name__}: {exc}") from exc

        text = text.strip()
        if not text:
            raise ReplyGenerationError("empty reply")

        log_event({
            "event_type": "LLM_REPLY",
            "identity": request.identity,
            "provider": self._provider,
            "model": self._model,
            "chars": len(text),
            "interrupted": request.interrupted_text is not None,
        })
        return text

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _complete(self, messages: list[dict[str, str]]) -> str:
        kwargs: dict[str, Any] = dict(
            model=self._model,
            messages=messages,
            stream=True,
        )
        if self._provider == "openai":
            kwargs["service_tier"] = "priority"

        stream = await self._client.chat.completions.create(**kwargs)

        parts: list[str] = []
        async for chunk in stream:
            delta = self._extract_delta(chunk)
            if delta:
                parts.append(delta)
        return "".join(parts)

    @staticmethod
    def _extract_delta(chunk: Any) -> str:
        """
        Extract token delta from vendor response (OpenAI format).
        """
        try:
            delta = chunk.choices[0].delta
            return delta.content or ""
        except (AttributeError, IndexError):
            return ""
