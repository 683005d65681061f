"""
Functions to gather stream, format and packet metadata with ffprobe.

One ffprobe call per file requests every stream, the container format and a
short prefix of packets as a single JSON document. The document is reduced to
a ProbeResult: the first video stream, the first audio stream (plus the
timestamps of its leading packets, used for audio diagnostics), every subtitle
codec in order, and the container bit rate. Numeric fields that are missing or
not numeric are recorded as None, never as zero.
"""
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from av1batch.errors import ProbeError
from av1batch.profiles import EncoderProfile
from av1batch.utils import system_util, logger, LogLevel
from av1batch.utils.constants import PROBE_PACKET_LIMIT


@dataclass(frozen=True)
class VideoStream:
    codec: str = ""
    width: Optional[int] = None
    height: Optional[int] = None
    pix_fmt: str = ""
    bit_rate: Optional[int] = None


@dataclass(frozen=True)
class AudioStream:
    present: bool = False
    codec: str = ""
    bit_rate: Optional[int] = None
    sample_rate: Optional[int] = None
    packet_pts: Tuple[Optional[float], ...] = ()


@dataclass(frozen=True)
class ProbeResult:
    video: VideoStream = field(default_factory=VideoStream)
    audio: AudioStream = field(default_factory=AudioStream)
    subtitles: Tuple[str, ...] = ()
    container_bit_rate: Optional[int] = None
    duration: Optional[float] = None


def parse_int(value: Any) -> Optional[int]:
    """Parse a non-negative integer field as ffprobe reports it (int or digit string)."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return int(text)
    return None


def parse_float(value: Any) -> Optional[float]:
    """Parse a timestamp/duration field; "N/A" and garbage become None."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _first_stream(streams: List[Dict[str, Any]], codec_type: str) -> Optional[Dict[str, Any]]:
    for s in streams:
        if s.get("codec_type") == codec_type:
            return s
    return None


def build_probe_args(path: Path) -> List[str]:
    """ffprobe arguments for one JSON document of streams, format and leading packets."""
    return [
        "-v", "error",
        "-print_format", "json",
        "-show_streams", "-show_format", "-show_packets",
        "-read_intervals", f"%+#{PROBE_PACKET_LIMIT}",
        str(path),
    ]


def parse_probe_json(data: Dict[str, Any]) -> ProbeResult:
    """Reduce an ffprobe JSON document to a ProbeResult."""
    streams = [s for s in (data.get("streams") or []) if isinstance(s, dict)]
    packets = [p for p in (data.get("packets") or []) if isinstance(p, dict)]
    fmt = data.get("format") or {}

    video = VideoStream()
    v = _first_stream(streams, "video")
    if v is not None:
        video = VideoStream(
            codec=str(v.get("codec_name") or ""),
            width=parse_int(v.get("width")),
            height=parse_int(v.get("height")),
            pix_fmt=str(v.get("pix_fmt") or ""),
            bit_rate=parse_int(v.get("bit_rate")),
        )

    audio = AudioStream()
    a = _first_stream(streams, "audio")
    if a is not None:
        # Packets of the first audio stream only; the read interval applies to all streams.
        audio_index = a.get("index")
        pts = tuple(
            parse_float(p.get("pts_time"))
            for p in packets
            if p.get("codec_type") == "audio" and (audio_index is None or p.get("stream_index") in (None, audio_index))
        )
        audio = AudioStream(
            present=True,
            codec=str(a.get("codec_name") or ""),
            bit_rate=parse_int(a.get("bit_rate")),
            sample_rate=parse_int(a.get("sample_rate")),
            packet_pts=pts[:PROBE_PACKET_LIMIT],
        )

    subtitles = tuple(
        str(s.get("codec_name") or "")
        for s in streams
        if s.get("codec_type") == "subtitle"
    )

    return ProbeResult(
        video=video,
        audio=audio,
        subtitles=subtitles,
        container_bit_rate=parse_int(fmt.get("bit_rate")) if isinstance(fmt, dict) else None,
        duration=parse_float(fmt.get("duration")) if isinstance(fmt, dict) else None,
    )


def ffprobe_media_info(path: Path, profile: EncoderProfile) -> ProbeResult:
    """
    Probe a media file with a single ffprobe call.

    Args:
        path: Source video file
        profile: Active platform profile (decides how ffprobe is launched)

    Returns:
        The parsed ProbeResult

    Raises:
        ProbeError: ffprobe produced no output, output that is not a JSON object,
            or exited nonzero without reporting any stream
    """
    cmd = profile.probe_argv(build_probe_args(path))
    code, out, err = system_util.run_cmd(cmd)
    if code != 0:
        logger.log("probe.exit_code", LogLevel.DEBUG, file=path.name, exit_code=code, error=err[:200])

    if not out or not out.strip():
        raise ProbeError("ffprobe produced no output", path=path, ctx={"exit_code": code})
    try:
        data = json.loads(out)
    except json.JSONDecodeError as e:
        raise ProbeError("ffprobe output is not valid JSON", path=path, ctx={"error": str(e)}) from e
    if not isinstance(data, dict):
        raise ProbeError("ffprobe output is not a JSON object", path=path)
    # An unreadable input still yields `{}` from the JSON writer.
    if code != 0 and not data.get("streams"):
        raise ProbeError("ffprobe could not read the file", path=path,
                         ctx={"exit_code": code, "error": err[:200]})

    return parse_probe_json(data)
