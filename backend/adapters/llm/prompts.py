"""
System prompt assembly for reply generation.

Blocks (in order, each only when it applies):
- base persona + voice rules
- barge-in block (the user interrupted the previous reply)
- language instruction (non-English hint)
- retrieved memories
"""

from __future__ import annotations

from typing import Sequence

from adapters.llm.base import ReplyRequest
from constants import DEFAULT_LANGUAGE, INTERRUPTED_TEXT_PROMPT_CHARS


SYSTEM_PROMPT_V1: str = """
You are a warm, attentive voice companion. Talk like a real person who genuinely cares.

Voice Rules

- Keep responses to 1-2 sentences unless the user asks for detail.
- Use casual language, contractions and natural speech patterns.
- Do not use markdown, lists, emoji or formatting.
- Output plain conversational speech only.
- Never make up facts about the user; only use what is provided below.
""".strip()

FIRST_CONVERSATION_HINT: str = "This is your first conversation. Be curious about them."
KNOWN_USER_HINT: str = "You know them from past conversations. Naturally weave in what you know."


def build_barge_in_block(interrupted_text: str) -> str:
    """Instructions for replying right after the user talked over the agent."""
    clipped = interrupted_text[:INTERRUPTED_TEXT_PROMPT_CHARS]
    return (
        "IMPORTANT - BARGE-IN CONTEXT:\n"
        f'The user just INTERRUPTED you while you were saying: "{clipped}..."\n'
        "- Do NOT continue your previous thought\n"
        "- Acknowledge the shift naturally (a quick \"Oh!\" or just respond directly)\n"
        "- Focus ONLY on what they just said\n"
        "- Be responsive and adaptable like a real conversation"
    )


def build_language_block(language: str, language_name: str) -> str:
    if language == DEFAULT_LANGUAGE:
        return ""
    return (
        f"IMPORTANT: The user is speaking in {language_name}. "
        f"You MUST respond in {language_name}. Do not respond in English."
    )


def build_memory_block(memories: Sequence[str]) -> str:
    if not memories:
        return ""
    lines = "\n".join(f"- {m}" for m in memories)
    return f"RELEVANT MEMORIES ABOUT THIS USER:\n{lines}"


def build_system_prompt(request: ReplyRequest) -> str:
    """Assemble the full system prompt for one turn."""
    has_context = bool(request.memories) or bool(request.recent_turns)

    blocks = [
        SYSTEM_PROMPT_V1,
        KNOWN_USER_HINT if has_context else FIRST_CONVERSATION_HINT,
    ]
    if request.interrupted_text:
        blocks.append(build_barge_in_block(request.interrupted_text))
    blocks.append(build_language_block(request.language, request.language_name))
    blocks.append(build_memory_block(request.memories))

    return "\n\n".join(b for b in blocks if b)
