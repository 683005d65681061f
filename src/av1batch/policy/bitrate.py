"""
Resolution classes and video bitrate targets.

The class is decided by the longer side of the frame, so portrait videos are
classified like their landscape counterparts. 4K and above use fixed targets;
below 4K the target is 65% of the source bitrate, clamped to a floor of
600 kbps and the class ceiling. A file whose resolution cannot be read gets
no class and is skipped.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from av1batch.errors import ResolutionUnreadable
from av1batch.probe import ProbeResult, VideoStream
from av1batch.profiles import EncoderProfile
from av1batch.utils.constants import DEFAULT_SOURCE_BITRATE, MIN_TARGET_KBPS, TARGET_BITRATE_RATIO


class ResolutionClass(Enum):
    """Resolution label and the minimum longer side that selects it."""
    K8 = ("8K", 7600)
    K5 = ("5K", 5000)
    K4 = ("4K", 3800)
    FHD = ("1080p", 1900)
    HD = ("720p", 1200)
    SD = ("SD", 0)

    @property
    def label(self) -> str:
        return self.value[0]

    @property
    def threshold(self) -> int:
        return self.value[1]

    @property
    def fixed_rate(self) -> bool:
        return self.threshold >= ResolutionClass.K4.threshold


# Ceilings of the computed classes (kbps)
COMPUTED_CEILINGS = {
    ResolutionClass.FHD: 2000,
    ResolutionClass.HD: 1200,
    ResolutionClass.SD: 800,
}


class BitrateSource(Enum):
    STREAM = "stream"
    CONTAINER = "container"
    DEFAULT = "default"
    FIXED = "fixed"


@dataclass(frozen=True)
class BitratePlan:
    resolution: ResolutionClass
    target_kbps: int
    ceiling_kbps: int
    quality: int
    source: BitrateSource


def read_max_resolution(video: VideoStream) -> int:
    """Longer side of the frame; raises ResolutionUnreadable for missing/zero sizes."""
    w, h = video.width, video.height
    if not isinstance(w, int) or not isinstance(h, int) or w <= 0 or h <= 0:
        raise ResolutionUnreadable(f"Cannot read resolution (W={w} H={h})", ctx={"width": w, "height": h})
    return max(w, h)


def classify_resolution(max_res: int) -> ResolutionClass:
    for rc in ResolutionClass:
        if max_res >= rc.threshold:
            return rc
    return ResolutionClass.SD


def select_source_bitrate(stream_bps: Optional[int], container_bps: Optional[int]) -> Tuple[int, BitrateSource]:
    """Stream bitrate, else container bitrate, else the 5 Mbps default."""
    if stream_bps is not None:
        return stream_bps, BitrateSource.STREAM
    if container_bps is not None:
        return container_bps, BitrateSource.CONTAINER
    return DEFAULT_SOURCE_BITRATE, BitrateSource.DEFAULT


def compute_target_kbps(source_bps: int, ceiling_kbps: int) -> int:
    """floor(source_kbps * 0.65) clamped to [600, ceiling]."""
    source_kbps = source_bps // 1000
    target = source_kbps * int(TARGET_BITRATE_RATIO * 100) // 100
    return max(MIN_TARGET_KBPS, min(target, ceiling_kbps))


def select_bitrate(probe: ProbeResult, profile: EncoderProfile) -> BitratePlan:
    """Resolution class, target/ceiling and quality for one probed file."""
    resolution = classify_resolution(read_max_resolution(probe.video))
    quality = profile.quality[resolution.label]

    if resolution.fixed_rate:
        target, ceiling = profile.fixed_bitrates[resolution.label]
        return BitratePlan(resolution, target, ceiling, quality, BitrateSource.FIXED)

    ceiling = COMPUTED_CEILINGS[resolution]
    source_bps, source = select_source_bitrate(probe.video.bit_rate, probe.container_bit_rate)
    return BitratePlan(resolution, compute_target_kbps(source_bps, ceiling), ceiling, quality, source)
