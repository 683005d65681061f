"""
Batch AV1 encoding for video libraries.

This package drives ffprobe and ffmpeg to re-encode a folder of videos into
AV1 in place. Encoder settings are chosen per file from probed metadata:

- Probing: one ffprobe call per file, parsed into a typed summary.
- Policy: audio timestamp diagnostics, resolution class and bitrate, subtitle
  and pixel-format handling, decode acceleration.
- Encoding: a typed ffmpeg command builder and synchronous execution.
- Bookkeeping: a crash-safe rename swap and interrupt-driven temp cleanup.
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
