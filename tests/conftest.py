"""Shared fixtures for the av1batch tests."""

import pytest

from av1batch.probe import AudioStream, ProbeResult, VideoStream
from av1batch.profiles import get_profile
from av1batch.utils import logger


def _make_probe(
    width=1920,
    height=1080,
    codec="h264",
    pix_fmt="yuv420p",
    video_bit_rate=None,
    container_bit_rate=None,
    audio=True,
    pts=(0.0, 0.021, 0.042),
    audio_bit_rate=192_000,
    sample_rate=48_000,
    subtitles=(),
    duration=60.0,
):
    audio_stream = AudioStream()
    if audio:
        audio_stream = AudioStream(
            present=True,
            codec="aac",
            bit_rate=audio_bit_rate,
            sample_rate=sample_rate,
            packet_pts=tuple(pts),
        )
    return ProbeResult(
        video=VideoStream(codec=codec, width=width, height=height, pix_fmt=pix_fmt, bit_rate=video_bit_rate),
        audio=audio_stream,
        subtitles=tuple(subtitles),
        container_bit_rate=container_bit_rate,
        duration=duration,
    )


@pytest.fixture
def make_probe():
    return _make_probe


@pytest.fixture
def windows():
    return get_profile("windows")


@pytest.fixture
def unraid():
    return get_profile("unraid")


@pytest.fixture
def failure_log(tmp_path):
    path = tmp_path / "failures.log"
    logger.set_failure_log(path)
    yield path
    logger.set_failure_log(None)


@pytest.fixture(autouse=True)
def _reset_failure_log():
    yield
    logger.set_failure_log(None)
