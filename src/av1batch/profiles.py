"""
Platform profiles for the external encoder.

Two deployments of the same encoding policy exist and disagree on a few
numeric constants: the 8K target/ceiling bitrates and the scale of the
constant-quality parameter. Rather than merging them, each deployment is a
profile. A profile also decides how ffprobe/ffmpeg are launched: the
`unraid` profile runs them inside the linuxserver/ffmpeg Docker image with the
Intel GPU device nodes passed through, the `windows` profile calls binaries
found on PATH.

The quality tables are configuration: every plan carries a quality value, but
only a profile with a `quality_flag` passes it to the encoder. The `unraid`
profile runs the encoder on bitrate limits alone.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from av1batch.utils import constants

# Quality parameter per resolution label; lower resolutions tolerate more compression.
_UNRAID_QUALITY = {"8K": 24, "5K": 25, "4K": 26, "1080p": 28, "720p": 30, "SD": 32}
_WINDOWS_QUALITY = {"8K": 22, "5K": 23, "4K": 25, "1080p": 27, "720p": 29, "SD": 31}

# (target kbps, ceiling kbps) for the fixed-rate classes
_UNRAID_FIXED = {"8K": (30000, 38000), "5K": (18000, 22000), "4K": (8000, 12000)}
_WINDOWS_FIXED = {"8K": (25000, 30000), "5K": (18000, 22000), "4K": (8000, 12000)}

QSV_DECODE_ARGS = ("-hwaccel", "qsv", "-hwaccel_output_format", "nv12")


@dataclass(frozen=True)
class EncoderProfile:
    name: str
    quality: Dict[str, int]
    fixed_bitrates: Dict[str, Tuple[int, int]]
    encoder: str = "av1_qsv"
    preset: str = "4"
    quality_flag: Optional[str] = "-global_quality"
    hwaccel_args: Tuple[str, ...] = QSV_DECODE_ARGS
    docker_image: Optional[str] = None
    mount_root: Optional[str] = None
    devices: Tuple[str, ...] = ()
    docker_env: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def containerized(self) -> bool:
        return self.docker_image is not None

    def _docker_base(self) -> List[str]:
        cmd = ["docker", "run", "--rm"]
        if self.mount_root:
            cmd += ["-v", f"{self.mount_root}:{self.mount_root}"]
        return cmd

    def probe_argv(self, args: List[str]) -> List[str]:
        """Full ffprobe invocation for the given ffprobe arguments."""
        if not self.containerized:
            return ["ffprobe", *args]
        return self._docker_base() + ["--entrypoint", "ffprobe", self.docker_image, *args]

    def encode_argv(self, args: List[str]) -> List[str]:
        """Full ffmpeg invocation for the given ffmpeg arguments."""
        if not self.containerized:
            return ["ffmpeg", *args]
        cmd = ["docker", "run", "--rm"]
        for device in self.devices:
            cmd += ["--device", f"{device}:{device}"]
        if self.mount_root:
            cmd += ["-v", f"{self.mount_root}:{self.mount_root}"]
        for env in self.docker_env:
            cmd += ["-e", env]
        # The linuxserver image uses ffmpeg as its entrypoint.
        return cmd + [self.docker_image, *args]

    def required_binaries(self) -> List[str]:
        if self.containerized:
            return ["docker"]
        return ["ffmpeg", "ffprobe"]


def unraid_profile() -> EncoderProfile:
    return EncoderProfile(
        name="unraid",
        quality=dict(_UNRAID_QUALITY),
        fixed_bitrates=dict(_UNRAID_FIXED),
        quality_flag=None,
        docker_image=constants.DOCKER_IMAGE,
        mount_root=constants.MOUNT_ROOT,
        devices=(constants.CARD_DEVICE, constants.RENDER_DEVICE),
        docker_env=("LIBVA_DRIVER_NAME=iHD", "PUID=99", "PGID=100"),
    )


def windows_profile() -> EncoderProfile:
    return EncoderProfile(
        name="windows",
        quality=dict(_WINDOWS_QUALITY),
        fixed_bitrates=dict(_WINDOWS_FIXED),
    )


PROFILES = {
    "unraid": unraid_profile,
    "windows": windows_profile,
}


def get_profile(name: str) -> EncoderProfile:
    """Build the named profile from the current configuration."""
    try:
        factory = PROFILES[name.lower()]
    except KeyError:
        raise ValueError(f"Unknown profile '{name}' (choose from: {', '.join(sorted(PROFILES))})") from None
    return factory()
