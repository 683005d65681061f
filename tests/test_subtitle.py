"""Tests for subtitle, pixel format and decode mode decisions."""

import pytest

from av1batch.policy import (
    DecodeMode,
    ResolutionClass,
    SubtitleClass,
    SubtitleDirective,
    classify_subtitle_codec,
    decide_decode_mode,
    decide_pixel_format,
    decide_subtitles,
    is_10bit,
)


@pytest.mark.parametrize(
    "codec, expected",
    [
        ("hdmv_pgs_subtitle", SubtitleClass.IMAGE),
        ("dvb_subtitle", SubtitleClass.IMAGE),
        ("dvd_subtitle", SubtitleClass.IMAGE),
        ("ass", SubtitleClass.STYLED),
        ("SSA", SubtitleClass.STYLED),
        ("subrip", SubtitleClass.TEXT),
        ("webvtt", SubtitleClass.TEXT),
        ("mov_text", SubtitleClass.TEXT),
        ("eia_608", SubtitleClass.UNKNOWN),
    ],
)
def test_classify_subtitle_codec(codec, expected):
    assert classify_subtitle_codec(codec) is expected


def test_no_subtitles():
    assert decide_subtitles([]) is SubtitleDirective.NONE


def test_text_subtitles_are_converted():
    assert decide_subtitles(["subrip", "webvtt", "subrip"]) is SubtitleDirective.CONVERT


@pytest.mark.parametrize("bad", ["hdmv_pgs_subtitle", "dvb_subtitle", "dvd_subtitle", "ass", "ssa"])
def test_any_incompatible_codec_strips_all(bad):
    assert decide_subtitles(["subrip", bad, "mov_text"]) is SubtitleDirective.STRIP
    assert decide_subtitles([bad]) is SubtitleDirective.STRIP


def test_unknown_codec_is_converted():
    assert decide_subtitles(["eia_608"]) is SubtitleDirective.CONVERT


@pytest.mark.parametrize(
    "pix_fmt, ten_bit",
    [
        ("yuv420p10le", True),
        ("yuv422p10be", True),
        ("p010le", True),
        ("yuv420p", False),
        ("yuv444p12le", False),
        ("nv12", False),
        ("", False),
    ],
)
def test_is_10bit(pix_fmt, ten_bit):
    assert is_10bit(pix_fmt) is ten_bit
    assert decide_pixel_format(pix_fmt) == ("p010le" if ten_bit else None)


def test_decode_mode():
    assert decide_decode_mode("yuv420p", ResolutionClass.K4) is DecodeMode.GPU
    assert decide_decode_mode("yuv420p", ResolutionClass.FHD) is DecodeMode.GPU
    assert decide_decode_mode("yuv420p10le", ResolutionClass.FHD) is DecodeMode.CPU
    assert decide_decode_mode("yuv420p", ResolutionClass.K5) is DecodeMode.CPU
    assert decide_decode_mode("yuv420p", ResolutionClass.K8) is DecodeMode.CPU


def test_unknown_codec_is_recorded(tmp_path, failure_log):
    src = tmp_path / "show.mkv"
    assert decide_subtitles(["subrip", "eia_608"], source=src) is SubtitleDirective.CONVERT
    assert failure_log.read_text() == f"Unknown subtitle codec (eia_608), converted: {src}\n"
