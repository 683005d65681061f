"""
Functions to turn probe metadata into an ffmpeg AV1 invocation and run it.

This module combines the audio, bitrate and subtitle/pixel policies into an
EncodePlan, renders the plan as an ordered list of typed ffmpeg arguments and
executes the encoder synchronously, logging progress and ETA while it runs.
The encoder's exit status is the only success signal: a nonzero exit is a
terminal failure for that file and is never retried.
"""
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from av1batch.errors import EncodeFailed
from av1batch.policy import (
    AudioFixPlan,
    AudioSettings,
    BitrateSource,
    DecodeMode,
    ResolutionClass,
    SubtitleDirective,
    decide_decode_mode,
    decide_pixel_format,
    decide_subtitles,
    diagnose_audio,
    select_audio_settings,
    select_bitrate,
)
from av1batch.probe import ProbeResult
from av1batch.profiles import EncoderProfile
from av1batch.utils import logger, time_util, LogLevel
from av1batch.utils.constants import DEFAULT_SOURCE_BITRATE, MP4_SUBTITLE_CODEC, PROGRESS_INTERVAL
from av1batch.utils.file_util import ActiveEncode


@dataclass(frozen=True)
class EncodePlan:
    resolution: ResolutionClass
    target_kbps: int
    ceiling_kbps: int
    quality: int
    bitrate_source: BitrateSource
    pix_fmt: Optional[str]
    subtitles: SubtitleDirective
    decode: DecodeMode
    audio_fix: AudioFixPlan
    audio: Optional[AudioSettings]

    @property
    def maxrate_kbps(self) -> int:
        return self.target_kbps * 2


@dataclass(frozen=True)
class FfmpegArg:
    """One ffmpeg option: a flag and its value (None for bare flags like -sn)."""
    flag: str
    value: Optional[str] = None

    def render(self) -> List[str]:
        return [self.flag] if self.value is None else [self.flag, self.value]


@dataclass
class FfmpegCommand:
    """Ordered ffmpeg arguments: globals, input options, input, output options, output."""
    src: Path
    dst: Path
    global_args: List[FfmpegArg] = field(default_factory=list)
    input_args: List[FfmpegArg] = field(default_factory=list)
    output_args: List[FfmpegArg] = field(default_factory=list)

    def to_argv(self) -> List[str]:
        argv: List[str] = []
        for arg in self.global_args + self.input_args:
            argv += arg.render()
        argv += ["-i", str(self.src)]
        for arg in self.output_args:
            argv += arg.render()
        argv.append(str(self.dst))
        return argv

    def value_of(self, flag: str) -> Optional[str]:
        """Value of the first output/input/global option named `flag`."""
        for arg in self.output_args + self.input_args + self.global_args:
            if arg.flag == flag:
                return arg.value
        return None

    def has(self, flag: str) -> bool:
        return any(arg.flag == flag for arg in self.global_args + self.input_args + self.output_args)


def _pairs(flags) -> List[FfmpegArg]:
    """Split a flat (flag, value, flag, value, ...) sequence into FfmpegArgs."""
    return [FfmpegArg(flags[i], flags[i + 1]) for i in range(0, len(flags), 2)]


def build_encode_plan(probe: ProbeResult, profile: EncoderProfile, src: Optional[Path] = None) -> EncodePlan:
    """
    Decide every encoder setting for one probed file.

    Fallbacks (container or default bitrate, 48 kHz sample rate, unknown
    subtitle codecs) are logged as warnings and recorded in the failure log.

    Raises:
        ResolutionUnreadable: width/height missing (never defaulted)
    """
    name = src.name if src is not None else None
    bitrate = select_bitrate(probe, profile)
    if bitrate.source is BitrateSource.CONTAINER:
        logger.warn_and_record("bitrate.fallback", f"Bitrate fallback (container): {src}",
                               file=name, source="container", kbps=probe.container_bit_rate // 1000)
    elif bitrate.source is BitrateSource.DEFAULT:
        kbps = DEFAULT_SOURCE_BITRATE // 1000
        logger.warn_and_record("bitrate.fallback", f"Bitrate fallback (default {kbps}k): {src}",
                               file=name, source="default", kbps=kbps)

    audio_fix = diagnose_audio(probe.audio)
    audio = select_audio_settings(probe.audio) if probe.audio.present else None
    if audio is not None and not audio.sample_rate_known:
        logger.warn_and_record("audio.sample_rate_fallback",
                               f"Sample rate fallback ({audio.sample_rate} Hz): {src}",
                               file=name, sample_rate=audio.sample_rate)

    return EncodePlan(
        resolution=bitrate.resolution,
        target_kbps=bitrate.target_kbps,
        ceiling_kbps=bitrate.ceiling_kbps,
        quality=bitrate.quality,
        bitrate_source=bitrate.source,
        pix_fmt=decide_pixel_format(probe.video.pix_fmt),
        subtitles=decide_subtitles(probe.subtitles, source=src),
        decode=decide_decode_mode(probe.video.pix_fmt, bitrate.resolution),
        audio_fix=audio_fix,
        audio=audio,
    )


def build_ffmpeg_cmd(src: Path, dst: Path, plan: EncodePlan, profile: EncoderProfile) -> FfmpegCommand:
    """Build the ffmpeg AV1 command for one file; `dst` is the temp output path."""
    cmd = FfmpegCommand(src=src, dst=dst)
    cmd.global_args = [FfmpegArg("-y"), FfmpegArg("-stats")]

    for fix in plan.audio_fix.fixes:
        if fix.input_side:
            cmd.input_args += _pairs(fix.flags)
    if plan.decode is DecodeMode.GPU:
        cmd.input_args += _pairs(profile.hwaccel_args)

    rate = f"{plan.maxrate_kbps}k"
    out = [
        FfmpegArg("-map", "0:v:0"),
        FfmpegArg("-map", "0:a?"),
        FfmpegArg("-map", "0:s?"),
        FfmpegArg("-c:v", profile.encoder),
        FfmpegArg("-b:v", f"{plan.target_kbps}k"),
        FfmpegArg("-maxrate", rate),
        FfmpegArg("-bufsize", rate),
        FfmpegArg("-preset", profile.preset),
    ]
    if profile.quality_flag:
        out.append(FfmpegArg(profile.quality_flag, str(plan.quality)))
    if plan.pix_fmt:
        out.append(FfmpegArg("-pix_fmt", plan.pix_fmt))
    out += [
        FfmpegArg("-fps_mode", "passthrough"),
        FfmpegArg("-max_muxing_queue_size", "9999"),
    ]

    if plan.audio is not None:
        out += [
            FfmpegArg("-c:a", "aac"),
            FfmpegArg("-b:a", plan.audio.bitrate),
            FfmpegArg("-ar", str(plan.audio.sample_rate)),
        ]
        if plan.audio_fix.filter:
            out.append(FfmpegArg("-af", plan.audio_fix.filter))
    for fix in plan.audio_fix.fixes:
        if not fix.input_side:
            out += _pairs(fix.flags)

    if plan.subtitles is SubtitleDirective.CONVERT:
        out.append(FfmpegArg("-c:s", MP4_SUBTITLE_CODEC))
    else:
        out.append(FfmpegArg("-sn"))

    out += [
        FfmpegArg("-f", "mp4"),
        FfmpegArg("-movflags", "+faststart"),
    ]
    cmd.output_args = out
    return cmd


def _log_progress(src: Path, line: str, duration: Optional[float]) -> None:
    """Log one ffmpeg `-stats` line as a progress event."""
    # Example: frame= 1234 fps=18 q=-0.0 size=  10240KiB time=00:01:23.45 bitrate=1234.5kbits/s speed=0.75x
    fields = dict(part.split("=", 1) for part in line.replace("= ", "=").split() if "=" in part)
    elapsed = time_util.parse_ffmpeg_time(fields.get("time", ""))
    speed_str = fields.get("speed", "").rstrip("x")
    if elapsed is None:
        return
    try:
        speed_val = float(speed_str)
    except ValueError:
        speed_val = 0.0

    if duration:
        percent = round(elapsed / duration * 100, 1)
        eta = time_util.get_eta_single_file(duration, speed_val, elapsed) if speed_val > 0 else "N/A"
    else:
        percent, eta = "N/A", "N/A"
    logger.log("encode.progress", LogLevel.INFO, file=src.name, pct=percent, eta=eta, speed=f"{speed_str}x")


def transcode_video(src: Path, dst: Path, plan: EncodePlan, profile: EncoderProfile,
                    active: ActiveEncode, duration: Optional[float] = None,
                    debug: bool = False) -> Tuple[int, str]:
    """
    Run the AV1 encode for one file and wait for it to finish.

    Args:
        src: Source video file path
        dst: Temp output path (registered in `active` before the process starts)
        plan: Encoder settings for this file
        profile: Active platform profile
        active: Shared cell read by the interrupt handler
        duration: Source duration in seconds, for progress percentages
        debug: Log the full command line

    Returns:
        Tuple of (exit_code, stderr)
    """
    argv = profile.encode_argv(build_ffmpeg_cmd(src, dst, plan, profile).to_argv())
    if debug:
        logger.log("encode.command", LogLevel.DEBUG, cmd=" ".join(argv))

    active.begin(dst)
    try:
        process = subprocess.Popen(
            argv,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
        )
    except OSError as e:
        logger.log("encode.launch_failed", LogLevel.ERROR, file=src.name, binary=argv[0], error=str(e))
        return 127, str(e)
    active.attach(process)

    stderr_output = []
    last_progress_log = time.time()

    # ffmpeg ends -stats lines with \r; iterate on universal newlines
    for line in process.stderr:
        stderr_output.append(line)
        if "time=" in line and "speed=" in line:
            now = time.time()
            if now - last_progress_log >= PROGRESS_INTERVAL:
                _log_progress(src, line, duration)
                last_progress_log = now

    code = process.wait()
    active.detach()
    return code, "".join(stderr_output)


def encode_or_raise(src: Path, dst: Path, plan: EncodePlan, profile: EncoderProfile,
                    active: ActiveEncode, duration: Optional[float] = None, debug: bool = False) -> None:
    """Run the encode; raise EncodeFailed on a nonzero exit status."""
    code, err = transcode_video(src, dst, plan, profile, active, duration=duration, debug=debug)
    if code != 0:
        raise EncodeFailed("Encoder exited with an error", path=src, exit_code=code,
                           ctx={"error": err[-200:]})
