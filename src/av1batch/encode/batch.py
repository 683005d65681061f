"""
This module provides the per-file encoding pipeline and discovery of
candidate video files in a target folder.

Each file walks a small state machine:

    PENDING -> PROBING -> (SKIPPED | FAILED_PROBE) -> ENCODING
            -> (ENCODE_FAILED | SWAPPING) -> (DONE | ROLLED_BACK | FAILED_SWAP)

Every failure is scoped to the file: it is logged to the console and the
failure log, the original file is left in place, and the batch continues.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from av1batch.errors import EncodeFailed, ProbeError, ResolutionUnreadable, SwapFailed
from av1batch.profiles import EncoderProfile
from av1batch.probe import ffprobe_media_info
from av1batch.utils import VIDEO_EXTENSIONS, BACKUP_SUFFIX, TEMP_SUFFIX, logger, system_util, LogLevel
from av1batch.utils.file_util import ActiveEncode, FileTransaction, already_processed, remove_quietly
from . import core


class FileState(Enum):
    PENDING = "PENDING"
    PROBING = "PROBING"
    SKIPPED = "SKIPPED"
    FAILED_PROBE = "FAILED_PROBE"
    ENCODING = "ENCODING"
    ENCODE_FAILED = "ENCODE_FAILED"
    SWAPPING = "SWAPPING"
    DONE = "DONE"
    ROLLED_BACK = "ROLLED_BACK"
    FAILED_SWAP = "FAILED_SWAP"


@dataclass
class FileOutcome:
    source: Path
    state: FileState
    final: Path | None = None
    detail: str = ""
    original_size: int = 0
    encoded_size: int = 0


@dataclass
class RunStatistics:
    """Size totals and per-state counts for the final summary."""
    original_bytes: int = 0
    encoded_bytes: int = 0
    counts: dict[FileState, int] = field(default_factory=dict)

    def record(self, outcome: FileOutcome) -> None:
        self.counts[outcome.state] = self.counts.get(outcome.state, 0) + 1
        if outcome.state is FileState.DONE:
            self.original_bytes += outcome.original_size
            self.encoded_bytes += outcome.encoded_size

    def count(self, state: FileState) -> int:
        return self.counts.get(state, 0)

    @property
    def saved_bytes(self) -> int:
        return self.original_bytes - self.encoded_bytes

    @property
    def ratio_pct(self) -> int | None:
        if self.original_bytes <= 0:
            return None
        return self.encoded_bytes * 100 // self.original_bytes


def _mb(num_bytes: int) -> int:
    return num_bytes // 1024 // 1024


def encode_one(src: Path, profile: EncoderProfile, active: ActiveEncode, debug: bool = False) -> FileOutcome:
    """Probe, plan, encode and swap a single file."""
    if already_processed(src):
        logger.log("file.skip", LogLevel.INFO, file=src.name, reason="already processed")
        return FileOutcome(src, FileState.SKIPPED, detail="already processed")

    try:
        probe = ffprobe_media_info(src, profile)
    except ProbeError as e:
        logger.error_and_record("probe.failed", f"ffprobe failed: {src}", file=str(src), error=str(e))
        return FileOutcome(src, FileState.FAILED_PROBE, detail="ffprobe failed")

    if probe.video.codec.lower() == "av1":
        logger.log("file.skip", LogLevel.INFO, file=src.name, reason="already AV1")
        return FileOutcome(src, FileState.SKIPPED, detail="already AV1")

    try:
        plan = core.build_encode_plan(probe, profile, src=src)
    except ResolutionUnreadable as e:
        logger.error_and_record("resolution.unreadable", f"Resolution undetected (skipped): {src}",
                                file=str(src), width=e.ctx.get("width"), height=e.ctx.get("height"))
        return FileOutcome(src, FileState.SKIPPED, detail="resolution unreadable")

    _log_plan(src, probe, plan)

    tx = FileTransaction.for_source(src)
    try:
        core.encode_or_raise(src, tx.temp, plan, profile, active, duration=probe.duration, debug=debug)
    except EncodeFailed as e:
        tx.discard_temp()
        active.clear()
        logger.error_and_record("encode.failed", f"Failed: {src}", file=str(src), exit_code=e.exit_code,
                                error=e.ctx.get("error", "") if debug else "see ffmpeg output")
        return FileOutcome(src, FileState.ENCODE_FAILED, detail=f"ffmpeg code {e.exit_code}")

    try:
        original_size = src.stat().st_size
        encoded_size = tx.temp.stat().st_size
    except OSError as e:
        tx.discard_temp()
        active.clear()
        logger.error_and_record("swap.failed", f"Failed (mv original): {src}", file=str(src),
                                stage="stat", error=str(e))
        return FileOutcome(src, FileState.FAILED_SWAP, detail="source or output missing after encode")

    try:
        # The cell is cleared before held interrupts are delivered.
        with system_util.interrupts_deferred():
            try:
                tx.commit()
            finally:
                active.clear()
    except SwapFailed as e:
        if e.stage == "source":
            logger.error_and_record("swap.failed", f"Failed (mv original): {src}", file=str(src),
                                    stage=e.stage, error=e.ctx.get("error"))
            return FileOutcome(src, FileState.FAILED_SWAP, detail="could not rename original")
        logger.error_and_record("swap.failed", f"Failed (mv output): {src}", file=str(src),
                                stage=e.stage, rolled_back=e.rolled_back, error=e.ctx.get("error"))
        state = FileState.ROLLED_BACK if e.rolled_back else FileState.FAILED_SWAP
        return FileOutcome(src, state, detail="could not move output")

    ratio = encoded_size * 100 // original_size if original_size else 0
    logger.log("encode.complete", LogLevel.INFO, file=src.name,
               original_mb=_mb(original_size), output_mb=_mb(encoded_size),
               ratio=f"{ratio}%", saved_mb=_mb(original_size - encoded_size))
    return FileOutcome(src, FileState.DONE, final=tx.final, original_size=original_size, encoded_size=encoded_size)


def _log_plan(src: Path, probe, plan: core.EncodePlan) -> None:
    fix = plan.audio_fix
    if not probe.audio.present:
        logger.log("audio.none", LogLevel.INFO, file=src.name, msg="No audio stream: skipping audio correction")
    elif fix.healthy:
        logger.log("audio.ok", LogLevel.INFO, file=src.name)
    else:
        logger.log("audio.fix", LogLevel.INFO, file=src.name,
                   fixes=",".join(f.name.lower() for f in fix.fixes),
                   first_pts=fix.first_pts, discontinuities=fix.discontinuities)

    logger.log("encode.plan", LogLevel.INFO,
               file=src.name,
               resolution=plan.resolution.label,
               decode=plan.decode.value,
               video=f"{plan.target_kbps}k",
               ceiling=f"{plan.ceiling_kbps}k",
               quality=plan.quality,
               audio=f"{plan.audio.bitrate}@{plan.audio.sample_rate}Hz" if plan.audio else None,
               subtitles=plan.subtitles.value,
               subtitle_codecs=",".join(probe.subtitles) or None,
               pix_fmt=plan.pix_fmt)


def iter_video_files(root: Path) -> list[Path]:
    """Find all candidate video files recursively, sorted."""
    files = []
    for p in root.rglob("*"):
        if not p.is_file() or p.name.endswith((BACKUP_SUFFIX, TEMP_SUFFIX)):
            continue
        if p.suffix.lower() in VIDEO_EXTENSIONS:
            files.append(p)
    return sorted(files)


def write_file_list(files: list[Path], list_file: Path) -> None:
    """Write the scratch list of files for this run (one path per line)."""
    list_file.parent.mkdir(parents=True, exist_ok=True)
    list_file.write_text("".join(f"{p}\n" for p in files), encoding="utf-8")


def remove_file_list(list_file: Path) -> None:
    remove_quietly(list_file)
