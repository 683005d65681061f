"""Media probing: one ffprobe call per file, parsed into a typed summary."""

from .core import (
    AudioStream,
    ProbeResult,
    VideoStream,
    build_probe_args,
    ffprobe_media_info,
    parse_probe_json,
)

__all__ = [
    "AudioStream",
    "ProbeResult",
    "VideoStream",
    "build_probe_args",
    "ffprobe_media_info",
    "parse_probe_json",
]
