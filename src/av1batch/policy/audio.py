"""
Audio timestamp diagnostics and AAC output settings.

A correction is only chosen when the leading audio packets show the
matching problem:

- negative first PTS: ignore the edit list and shift timestamps to zero
- first PTS later than 0.1 s: ignore the edit list
- a gap of more than 0.5 s between consecutive packets: regenerate PTS

Any correction switches the resample filter to the stronger setting. A file
without audio gets no flags and no filter at all.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple

from av1batch.probe import AudioStream
from av1batch.utils.constants import (
    AUDIO_DELAY_THRESHOLD,
    AUDIO_FILTER_LIGHT,
    AUDIO_FILTER_STRONG,
    AUDIO_GAP_THRESHOLD,
    DEFAULT_AUDIO_BITRATE,
    DEFAULT_SAMPLE_RATE,
)


class AudioFix(Enum):
    """Timestamp corrections; value is (ffmpeg flags, applies to input side)."""
    IGNORE_EDITLIST = (("-ignore_editlist", "1"), True)
    REGENERATE_PTS = (("-fflags", "+genpts+igndts"), True)
    NORMALIZE_NEGATIVE_TS = (("-avoid_negative_ts", "make_zero"), False)

    @property
    def flags(self) -> Tuple[str, ...]:
        return self.value[0]

    @property
    def input_side(self) -> bool:
        return self.value[1]


@dataclass(frozen=True)
class AudioFixPlan:
    fixes: Tuple[AudioFix, ...] = ()
    filter: Optional[str] = None
    first_pts: float = 0.0
    discontinuities: int = 0

    @property
    def healthy(self) -> bool:
        return not self.fixes


@dataclass(frozen=True)
class AudioSettings:
    bitrate: str = DEFAULT_AUDIO_BITRATE
    sample_rate: int = DEFAULT_SAMPLE_RATE
    sample_rate_known: bool = True


NO_AUDIO_PLAN = AudioFixPlan()

# (source kbps strictly above, AAC bitrate)
_AAC_TIERS = (
    (448, "512k"),
    (320, "448k"),
    (256, "320k"),
    (192, "256k"),
    (160, "192k"),
    (128, "160k"),
)


def count_discontinuities(pts: Sequence[Optional[float]], threshold: float = AUDIO_GAP_THRESHOLD) -> int:
    """Count gaps larger than `threshold` between consecutive known timestamps."""
    known = [t for t in pts if t is not None]
    return sum(1 for prev, cur in zip(known, known[1:]) if cur - prev > threshold)


def diagnose_audio(audio: AudioStream) -> AudioFixPlan:
    """Pick timestamp corrections for the first audio stream. Pure, no I/O."""
    if not audio.present:
        return NO_AUDIO_PLAN

    first_pts = audio.packet_pts[0] if audio.packet_pts else None
    if first_pts is None:
        first_pts = 0.0

    fixes = []
    if first_pts < 0:
        fixes += [AudioFix.IGNORE_EDITLIST, AudioFix.NORMALIZE_NEGATIVE_TS]
    elif first_pts > AUDIO_DELAY_THRESHOLD:
        fixes.append(AudioFix.IGNORE_EDITLIST)

    gaps = count_discontinuities(audio.packet_pts)
    if gaps > 0:
        fixes.append(AudioFix.REGENERATE_PTS)

    return AudioFixPlan(
        fixes=tuple(fixes),
        filter=AUDIO_FILTER_STRONG if fixes else AUDIO_FILTER_LIGHT,
        first_pts=first_pts,
        discontinuities=gaps,
    )


def select_audio_settings(audio: AudioStream) -> AudioSettings:
    """AAC bitrate tier from the source bitrate; source sample rate kept as-is."""
    if audio.bit_rate is None:
        bitrate = DEFAULT_AUDIO_BITRATE
    else:
        kbps = audio.bit_rate // 1000
        bitrate = next((aac for above, aac in _AAC_TIERS if kbps > above), "128k")

    if audio.sample_rate:
        return AudioSettings(bitrate=bitrate, sample_rate=audio.sample_rate)
    return AudioSettings(bitrate=bitrate, sample_rate=DEFAULT_SAMPLE_RATE, sample_rate_known=False)
