# pylint: disable=missing-module-docstring,missing-function-docstring

from adapters.llm.base import ReplyRequest
from adapters.llm.prompts import (
    FIRST_CONVERSATION_HINT,
    KNOWN_USER_HINT,
    SYSTEM_PROMPT_V1,
    build_barge_in_block,
    build_system_prompt,
)


def test_plain_first_conversation_prompt():
    prompt = build_system_prompt(ReplyRequest(identity="alice", transcript="hi"))

    assert prompt.startswith(SYSTEM_PROMPT_V1)
    assert FIRST_CONVERSATION_HINT in prompt
    assert "INTERRUPTED" not in prompt
    assert "MUST respond in" not in prompt


def test_barge_in_block_clips_interrupted_text():
    block = build_barge_in_block("x" * 150)

    assert '"' + "x" * 100 + '..."' in block
    assert "x" * 101 not in block
    assert "Do NOT continue your previous thought" in block
    assert "Focus ONLY on what they just said" in block


def test_prompt_includes_every_applicable_block():
    request = ReplyRequest(
        identity="alice",
        transcript="wait, stop",
        recent_turns=({"role": "user", "content": "tell me a story"},),
        memories=("has a dog named Rex",),
        interrupted_text="Once upon a time",
        language="hi",
        language_name="Hindi",
    )

    prompt = build_system_prompt(request)

    assert KNOWN_USER_HINT in prompt
    assert 'saying: "Once upon a time..."' in prompt
    assert "You MUST respond in Hindi" in prompt
    assert "- has a dog named Rex" in prompt
    # Recent turns travel as chat messages, not inside the prompt
    assert "tell me a story" not in prompt
    assert prompt.index("BARGE-IN") < prompt.index("Hindi") < prompt.index("MEMORIES")
