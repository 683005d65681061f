"""
Subtitle, pixel format and decode-mode decisions.

MP4 can only carry text subtitles (mov_text). Image-based formats (PGS, DVB,
DVD) and styled ASS/SSA cannot be converted, and ffmpeg cannot convert only
some subtitle streams of a file, so a single incompatible stream strips all
subtitles. 10-bit sources keep 10-bit output; 10-bit and 5K/8K sources are
decoded on the CPU because the GPU decoder runs out of memory.
"""
import re
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional

from av1batch.policy.bitrate import ResolutionClass
from av1batch.utils import logger
from av1batch.utils.constants import MP4_SUBTITLE_CODEC, TEN_BIT_PIX_FMT


class SubtitleClass(Enum):
    IMAGE = "image"
    STYLED = "styled"
    TEXT = "text"
    UNKNOWN = "unknown"

    @property
    def mp4_compatible(self) -> bool:
        return self not in (SubtitleClass.IMAGE, SubtitleClass.STYLED)


_SUBTITLE_CODECS = {
    "hdmv_pgs_subtitle": SubtitleClass.IMAGE,
    "pgssub": SubtitleClass.IMAGE,
    "dvb_subtitle": SubtitleClass.IMAGE,
    "dvd_subtitle": SubtitleClass.IMAGE,
    "xsub": SubtitleClass.IMAGE,
    "ass": SubtitleClass.STYLED,
    "ssa": SubtitleClass.STYLED,
    "subrip": SubtitleClass.TEXT,
    "srt": SubtitleClass.TEXT,
    "webvtt": SubtitleClass.TEXT,
    "mov_text": SubtitleClass.TEXT,
    "text": SubtitleClass.TEXT,
}


class SubtitleDirective(Enum):
    NONE = "none"
    STRIP = "strip"
    CONVERT = "convert"


class DecodeMode(Enum):
    GPU = "GPU accel"
    CPU = "CPU decode"


_TEN_BIT_RE = re.compile(r"10(le|be)?$")


def classify_subtitle_codec(codec: str) -> SubtitleClass:
    return _SUBTITLE_CODECS.get(codec.strip().lower(), SubtitleClass.UNKNOWN)


def decide_subtitles(codecs: Iterable[str], source: Optional[Path] = None) -> SubtitleDirective:
    """Strip all subtitles if any is incompatible, else convert to mov_text."""
    codecs = list(codecs)
    if not codecs:
        return SubtitleDirective.NONE

    classes = [classify_subtitle_codec(c) for c in codecs]
    if any(not c.mp4_compatible for c in classes):
        return SubtitleDirective.STRIP

    unknown = [codec for codec, cls in zip(codecs, classes) if cls is SubtitleClass.UNKNOWN]
    if unknown:
        logger.warn_and_record("subtitle.unknown_codec",
                               f"Unknown subtitle codec ({','.join(unknown)}), converted: {source}",
                               file=source.name if source is not None else None,
                               codecs=",".join(unknown), action=f"converting to {MP4_SUBTITLE_CODEC}")
    return SubtitleDirective.CONVERT


def is_10bit(pix_fmt: str) -> bool:
    return bool(pix_fmt) and _TEN_BIT_RE.search(pix_fmt.lower()) is not None


def decide_pixel_format(pix_fmt: str) -> Optional[str]:
    """10-bit sources are encoded as p010le; otherwise the encoder default (8-bit)."""
    return TEN_BIT_PIX_FMT if is_10bit(pix_fmt) else None


def decide_decode_mode(pix_fmt: str, resolution: ResolutionClass) -> DecodeMode:
    if is_10bit(pix_fmt) or resolution in (ResolutionClass.K5, ResolutionClass.K8):
        return DecodeMode.CPU
    return DecodeMode.GPU
