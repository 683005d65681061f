"""Encoding policy: decision tables mapping probe metadata to encoder settings.

- audio: timestamp diagnostics and AAC output settings
- bitrate: resolution class, target bitrate and quality parameter
- subtitle: subtitle handling, 10-bit passthrough and decode mode
"""

from .audio import (
    AudioFix,
    AudioFixPlan,
    AudioSettings,
    count_discontinuities,
    diagnose_audio,
    select_audio_settings,
)
from .bitrate import (
    BitratePlan,
    BitrateSource,
    ResolutionClass,
    classify_resolution,
    compute_target_kbps,
    read_max_resolution,
    select_bitrate,
    select_source_bitrate,
)
from .subtitle import (
    DecodeMode,
    SubtitleClass,
    SubtitleDirective,
    classify_subtitle_codec,
    decide_decode_mode,
    decide_pixel_format,
    decide_subtitles,
    is_10bit,
)

__all__ = [
    "AudioFix",
    "AudioFixPlan",
    "AudioSettings",
    "count_discontinuities",
    "diagnose_audio",
    "select_audio_settings",
    "BitratePlan",
    "BitrateSource",
    "ResolutionClass",
    "classify_resolution",
    "compute_target_kbps",
    "read_max_resolution",
    "select_bitrate",
    "select_source_bitrate",
    "DecodeMode",
    "SubtitleClass",
    "SubtitleDirective",
    "classify_subtitle_codec",
    "decide_decode_mode",
    "decide_pixel_format",
    "decide_subtitles",
    "is_10bit",
]
