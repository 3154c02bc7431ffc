"""
Pure utterance chunking for speech synthesis.

This module contains NO side effects and NO timing primitives.
It splits a complete generated reply into utterance-sized chunks at
natural sentence boundaries:

- Latin sentence-ending punctuation followed by whitespace or end of
  text (so "3.50" and "example.com" stay whole)
- non-Latin terminators (see constants.NON_LATIN_SENTENCE_TERMINATORS),
  which split directly
- line breaks

The terminator stays attached to its sentence. Chunks are stripped, and
chunks shorter than `min_chars` are skipped (stray punctuation, single
letters left over from list formatting, etc.).
"""

from __future__ import annotations

import re

from constants import (
    LATIN_SENTENCE_TERMINATORS,
    NON_LATIN_SENTENCE_TERMINATORS,
    TTS_MIN_CHUNK_CHARS_DEFAULT,
)


def _char_class(chars: tuple[str, ...]) -> str:
    return "[" + "".join(re.escape(ch) for ch in chars) + "]"


def _build_pattern() -> re.Pattern[str]:
    latin = _char_class(LATIN_SENTENCE_TERMINATORS)
    non_latin = _char_class(NON_LATIN_SENTENCE_TERMINATORS)
    # Boundaries sit after the last terminator of a run
    # ("Really?!" stays one chunk, "Wait..." keeps its ellipsis)
    return re.compile(
        rf"(?<={latin})(?=\s|$)"
        rf"|(?<={non_latin})(?!{non_latin})"
        r"|\n"
    )


_BOUNDARY_RE = _build_pattern()


def split_into_utterances(text: str, *, min_chars: int = TTS_MIN_CHUNK_CHARS_DEFAULT) -> list[str]:
    """
    Split reply text into speakable chunks, in order.

    Args:
        text:
            Full reply text.
        min_chars:
            Chunks shorter than this after stripping are dropped.

    Returns:
        Stripped, non-empty chunks. Empty/whitespace text returns [].
    """
    if not text or not text.strip():
        return []

    chunks: list[str] = []
    for piece in _BOUNDARY_RE.split(text):
        chunk = piece.strip()
        if len(chunk) < max(1, min_chars):
            continue
        chunks.append(chunk)
    return chunks
