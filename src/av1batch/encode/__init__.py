"""Video encoding functionality.

This package provides two levels of functionality:
- core: Low-level FFmpeg utilities (EncodePlan, typed command builder, execution)
- batch: High-level orchestration (per-file state machine, file discovery, statistics)
"""

from .core import (
    EncodePlan,
    FfmpegArg,
    FfmpegCommand,
    build_encode_plan,
    build_ffmpeg_cmd,
    encode_or_raise,
    transcode_video,
)
from .batch import (
    FileOutcome,
    FileState,
    RunStatistics,
    encode_one,
    iter_video_files,
    remove_file_list,
    write_file_list,
)

__all__ = [
    # Planning
    "EncodePlan",
    "FfmpegArg",
    "FfmpegCommand",
    "build_encode_plan",
    "build_ffmpeg_cmd",
    # Encoding
    "encode_or_raise",
    "transcode_video",
    "encode_one",
    # Batch
    "FileOutcome",
    "FileState",
    "RunStatistics",
    "iter_video_files",
    "write_file_list",
    "remove_file_list",
]
