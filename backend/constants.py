"""
BEHAVIOR-AS-CONSTANTS
---------------------
Single source of truth for fixed audio formats and tuning defaults.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Tunable values are only DEFAULTS: config.VoiceTuning may override them
  from the environment. Fixed wire/format values are not overridable.
"""

from __future__ import annotations

from typing import Final, Tuple

# =============================================================================
# Inbound Audio Format (PCM16 mono @ 16kHz, 20ms frames)
# =============================================================================

AUDIO_SAMPLE_RATE_HZ: Final[int] = 16_000
AUDIO_CHANNELS: Final[int] = 1
AUDIO_SAMPLE_WIDTH_BYTES: Final[int] = 2  # PCM16 (signed 16-bit)
AUDIO_FRAME_MS: Final[int] = 20

AUDIO_SAMPLES_PER_FRAME: Final[int] = (AUDIO_SAMPLE_RATE_HZ * AUDIO_FRAME_MS) // 1000
AUDIO_BYTES_PER_FRAME_PCM: Final[int] = AUDIO_SAMPLES_PER_FRAME * AUDIO_SAMPLE_WIDTH_BYTES

# Full-scale value used to normalize PCM16 amplitudes into [0, 1]
PCM16_FULL_SCALE: Final[float] = 32768.0

# =============================================================================
# Binary WebSocket Frame Formats
# =============================================================================
# Client → Server (mic audio): 4B seq_num + one 20ms PCM frame
C2S_SEQ_NUM_BYTES: Final[int] = 4
C2S_FRAME_BYTES_TOTAL: Final[int] = C2S_SEQ_NUM_BYTES + AUDIO_BYTES_PER_FRAME_PCM

# Server → Client (agent audio): 4B seq_num + 4B run_id + PCM sub-frame
S2C_HEADER_BYTES: Final[int] = 8
S2C_MAX_PCM_BYTES: Final[int] = AUDIO_BYTES_PER_FRAME_PCM * 4

SEQ_NUM_START: Final[int] = 1
SEQ_NUM_MAX: Final[int] = 2**32 - 1  # u32 wraparound

# =============================================================================
# Turn Detection (defaults)
# =============================================================================

# Normalized RMS above which a frame counts as user speech (ignores breathing)
TURN_RMS_THRESHOLD_DEFAULT: Final[float] = 0.025
# Sustained silence after speech that ends an utterance
TURN_SILENCE_MS_DEFAULT: Final[int] = 800
# Buffered audio below this length is discarded as noise
MIN_UTTERANCE_MS_DEFAULT: Final[int] = 500

# =============================================================================
# Barge-in / Interrupt Detection (defaults)
# =============================================================================

# Deliberately far below the turn threshold
INTERRUPT_RMS_THRESHOLD_DEFAULT: Final[float] = 0.01
INTERRUPT_FRAMES_REQUIRED_DEFAULT: Final[int] = 2
INTERRUPT_MIN_SPEECH_MS_DEFAULT: Final[int] = 40

# Interrupt capture ring buffer holds at most this much inbound audio
INTERRUPT_CAPTURE_MAX_S_DEFAULT: Final[float] = 5.0

# =============================================================================
# Turn Sequencing (defaults)
# =============================================================================

DEDUP_WINDOW_MS_DEFAULT: Final[int] = 3_000
POST_SPEECH_COOLDOWN_MS_DEFAULT: Final[int] = 200

# =============================================================================
# Playback (defaults)
# =============================================================================

PLAYBACK_SUB_FRAME_MS_DEFAULT: Final[int] = 5
# Silence frames (AUDIO_FRAME_MS each) pushed after a barge-in
FLUSH_SILENCE_FRAMES_DEFAULT: Final[int] = 10

# =============================================================================
# Utterance Chunking
# =============================================================================

# Chunks shorter than this (after strip) are skipped
TTS_MIN_CHUNK_CHARS_DEFAULT: Final[int] = 2

# Read size for streamed provider audio (bytes)
PROVIDER_CHUNK_SIZE: Final[int] = 4096

# Latin terminators end a sentence only when whitespace or end of text follows
# ("3.50", "example.com" stay whole)
LATIN_SENTENCE_TERMINATORS: Final[Tuple[str, ...]] = (".", "!", "?")
# Devanagari danda, CJK full stops: no space follows them in running text
NON_LATIN_SENTENCE_TERMINATORS: Final[Tuple[str, ...]] = ("।", "॥", "。", "！", "？")

# =============================================================================
# Conversation Context
# =============================================================================

MAX_CONTEXT_TURNS: Final[int] = 10
MAX_CONTEXT_CHARS: Final[int] = 6_000

# Interrupted reply text is clipped to this many chars in the prompt
INTERRUPTED_TEXT_PROMPT_CHARS: Final[int] = 100

MEMORY_SEARCH_LIMIT: Final[int] = 5

FALLBACK_UTTERANCE: Final[str] = "I'm having a moment. Can you say that again?"

# =============================================================================
# Participant Defaults
# =============================================================================

DEFAULT_LANGUAGE: Final[str] = "en"
DEFAULT_LANGUAGE_NAME: Final[str] = "English"
DEFAULT_VOICE: Final[str] = "sarah"

# Inbound frames buffered per participant before the transport is backpressured
INGEST_QUEUE_MAX_FRAMES: Final[int] = 50

# =============================================================================
# Helper Functions
# =============================================================================

def ms_to_samples(duration_ms: float, sample_rate_hz: int) -> int:
    """
    Convert a duration to a whole number of samples (floor).

    Non-positive input returns 0.
    """
    if duration_ms <= 0:
        return 0
    return int(sample_rate_hz * duration_ms / 1000)


def samples_to_ms(num_samples: int, sample_rate_hz: int) -> float:
    """Convert a sample count to milliseconds."""
    if num_samples <= 0 or sample_rate_hz <= 0:
        return 0.0
    return num_samples * 1000.0 / sample_rate_hz
