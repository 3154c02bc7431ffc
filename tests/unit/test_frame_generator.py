# tests/unit/test_frame_generator.py

import pytest

from audio.frame_generator import silence_pcm, split_pcm_into_sub_frames, sub_frame_bytes


def test_sub_frame_size_from_rate_and_duration():
    assert sub_frame_bytes(sample_rate_hz=16000, sub_frame_ms=5) == 160
    assert sub_frame_bytes(sample_rate_hz=24000, sub_frame_ms=20) == 960


def test_invalid_sub_frame_parameters_raise():
    with pytest.raises(ValueError):
        sub_frame_bytes(sample_rate_hz=0, sub_frame_ms=5)
    with pytest.raises(ValueError):
        sub_frame_bytes(sample_rate_hz=16000, sub_frame_ms=0)
    with pytest.raises(ValueError):
        # 0.5 samples per sub-frame
        sub_frame_bytes(sample_rate_hz=100, sub_frame_ms=5)


def test_correct_bytes_per_sub_frame():
    # 3 full sub-frames
    pcm = b"\x00" * (160 * 3)

    frames = split_pcm_into_sub_frames(pcm, sample_rate_hz=16000, sub_frame_ms=5)

    assert len(frames) == 3
    for frame in frames:
        assert len(frame) == 160


def test_keeps_short_trailing_sub_frame():
    pcm = b"\x00" * (160 * 2 + 10)

    frames = split_pcm_into_sub_frames(pcm, sample_rate_hz=16000, sub_frame_ms=5)

    assert [len(f) for f in frames] == [160, 160, 10]
    assert b"".join(frames) == pcm


def test_drops_dangling_half_sample():
    pcm = b"\x00" * 161

    frames = split_pcm_into_sub_frames(pcm, sample_rate_hz=16000, sub_frame_ms=5)

    assert [len(f) for f in frames] == [160]


def test_empty_input_returns_no_frames():
    frames = split_pcm_into_sub_frames(b"", sample_rate_hz=16000, sub_frame_ms=5)
    assert frames == []


def test_silence_pcm_is_zeroed():
    pcm = silence_pcm(sample_rate_hz=16000, duration_ms=20)

    assert len(pcm) == 640
    assert set(pcm) == {0}
    assert silence_pcm(sample_rate_hz=16000, duration_ms=0) == b""
