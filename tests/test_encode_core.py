"""Tests for encode planning, the ffmpeg command builder and execution."""

from pathlib import Path

import pytest

from av1batch.encode import core
from av1batch.encode import build_encode_plan, build_ffmpeg_cmd, encode_or_raise, transcode_video
from av1batch.errors import EncodeFailed
from av1batch.policy import DecodeMode, SubtitleDirective
from av1batch.utils.file_util import ActiveEncode

SRC = Path("/mnt/user/Movies/film.mkv")
TMP = Path("/mnt/user/Movies/film.mp4.tmp")


def _argv(probe, profile):
    plan = build_encode_plan(probe, profile)
    return plan, build_ffmpeg_cmd(SRC, TMP, plan, profile)


def test_plan_for_10bit_file_with_bad_audio_and_pgs(make_probe, windows):
    probe = make_probe(pix_fmt="yuv420p10le", video_bit_rate=8_000_000, pts=(-0.2, -0.18),
                       subtitles=("subrip", "hdmv_pgs_subtitle"))
    plan, cmd = _argv(probe, windows)
    argv = cmd.to_argv()
    i = argv.index("-i")

    assert plan.decode is DecodeMode.CPU
    assert plan.subtitles is SubtitleDirective.STRIP
    assert argv.index("-ignore_editlist") < i
    assert argv.index("-avoid_negative_ts") > i
    assert "-hwaccel" not in argv
    assert cmd.value_of("-pix_fmt") == "p010le"
    assert "-sn" in argv
    assert cmd.value_of("-af") == "aresample=async=1000:min_hard_comp=0.1"


def test_plan_for_8bit_720p_with_text_subtitles(make_probe, windows):
    probe = make_probe(width=1280, height=720, video_bit_rate=1_000_000, subtitles=("subrip",))
    plan, cmd = _argv(probe, windows)
    argv = cmd.to_argv()

    assert plan.decode is DecodeMode.GPU
    assert argv.index("-hwaccel") < argv.index("-i")
    assert cmd.value_of("-hwaccel_output_format") == "nv12"
    assert cmd.value_of("-c:s") == "mov_text"
    assert "-sn" not in argv
    assert not cmd.has("-pix_fmt")
    assert cmd.value_of("-b:v") == "650k"
    assert cmd.value_of("-maxrate") == "1300k"
    assert cmd.value_of("-bufsize") == "1300k"
    assert cmd.value_of("-af") == "aresample=async=1"
    assert cmd.value_of("-global_quality") == str(windows.quality["720p"])


def test_command_structure(make_probe, windows):
    _, cmd = _argv(make_probe(), windows)
    argv = cmd.to_argv()

    assert argv[:2] == ["-y", "-stats"]
    assert argv[argv.index("-i") + 1] == str(SRC)
    assert argv[-1] == str(TMP)
    assert argv[-5:-1] == ["-f", "mp4", "-movflags", "+faststart"]
    maps = [argv[n + 1] for n, a in enumerate(argv) if a == "-map"]
    assert maps == ["0:v:0", "0:a?", "0:s?"]
    assert cmd.value_of("-c:v") == "av1_qsv"
    assert cmd.value_of("-max_muxing_queue_size") == "9999"
    assert cmd.value_of("-fps_mode") == "passthrough"


def test_no_audio_has_no_audio_encoder_args(make_probe, windows):
    plan, cmd = _argv(make_probe(audio=False), windows)
    assert plan.audio is None
    assert not cmd.has("-c:a")
    assert not cmd.has("-af")


def test_gap_fix_regenerates_input_timestamps(make_probe, windows):
    _, cmd = _argv(make_probe(pts=(0.0, 0.2, 0.9)), windows)
    argv = cmd.to_argv()
    assert argv.index("-fflags") < argv.index("-i")
    assert cmd.value_of("-fflags") == "+genpts+igndts"


def test_unraid_encode_runs_in_docker(make_probe, unraid):
    _, cmd = _argv(make_probe(), unraid)
    argv = unraid.encode_argv(cmd.to_argv())

    assert argv[:3] == ["docker", "run", "--rm"]
    assert f"{unraid.devices[0]}:{unraid.devices[0]}" in argv
    assert "LIBVA_DRIVER_NAME=iHD" in argv
    image_at = argv.index(unraid.docker_image)
    assert argv[image_at + 1:image_at + 3] == ["-y", "-stats"]


class FakeProcess:
    def __init__(self, lines, code):
        self.stderr = iter(lines)
        self._code = code
        self.returncode = None

    def wait(self, timeout=None):
        self.returncode = self._code
        return self._code

    def poll(self):
        return self.returncode


def _fake_popen(monkeypatch, code, lines=(), seen=None):
    def popen(argv, **kwargs):
        if seen is not None:
            seen.append(argv)
        return FakeProcess(list(lines), code)

    monkeypatch.setattr(core.subprocess, "Popen", popen)


def test_transcode_video_registers_active_encode(monkeypatch, make_probe, windows):
    seen = []
    _fake_popen(monkeypatch, 0, ["frame= 1 fps=1 time=00:00:01.00 bitrate=1k speed=1.0x\n"], seen)
    active = ActiveEncode()
    plan = build_encode_plan(make_probe(), windows)

    code, err = transcode_video(SRC, TMP, plan, windows, active, duration=60.0)

    assert code == 0
    assert "speed=1.0x" in err
    assert seen[0][0] == "ffmpeg"
    assert active.temp == TMP


def test_encode_or_raise_on_nonzero_exit(monkeypatch, make_probe, windows):
    _fake_popen(monkeypatch, 1, ["Error while opening encoder\n"])
    plan = build_encode_plan(make_probe(), windows)

    with pytest.raises(EncodeFailed) as excinfo:
        encode_or_raise(SRC, TMP, plan, windows, ActiveEncode())
    assert excinfo.value.exit_code == 1
    assert excinfo.value.path == SRC


def test_missing_encoder_binary_is_an_encode_failure(monkeypatch, make_probe, windows):
    def popen(argv, **kwargs):
        raise FileNotFoundError(2, "No such file or directory", argv[0])

    monkeypatch.setattr(core.subprocess, "Popen", popen)
    plan = build_encode_plan(make_probe(), windows)

    with pytest.raises(EncodeFailed) as excinfo:
        encode_or_raise(SRC, TMP, plan, windows, ActiveEncode())
    assert excinfo.value.exit_code == 127


def test_fallbacks_are_recorded_in_failure_log(make_probe, windows, failure_log):
    probe = make_probe(sample_rate=None, subtitles=("eia_608",))

    plan = build_encode_plan(probe, windows, src=SRC)

    assert plan.audio.sample_rate == 48000
    assert failure_log.read_text().splitlines() == [
        f"Bitrate fallback (default 5000k): {SRC}",
        f"Sample rate fallback (48000 Hz): {SRC}",
        f"Unknown subtitle codec (eia_608), converted: {SRC}",
    ]


def test_container_bitrate_fallback_is_recorded(make_probe, windows, failure_log):
    build_encode_plan(make_probe(container_bit_rate=3_000_000), windows, src=SRC)
    assert failure_log.read_text() == f"Bitrate fallback (container): {SRC}\n"


def test_stream_bitrate_records_nothing(make_probe, windows, failure_log):
    build_encode_plan(make_probe(video_bit_rate=3_000_000), windows, src=SRC)
    assert not failure_log.exists()


def test_unraid_command_has_no_quality_flag(make_probe, unraid, windows):
    plan, cmd = _argv(make_probe(video_bit_rate=3_000_000), unraid)

    assert plan.quality == unraid.quality["1080p"]
    assert "-global_quality" not in cmd.to_argv()
    assert cmd.has("-global_quality") is False
    assert _argv(make_probe(video_bit_rate=3_000_000), windows)[1].has("-global_quality")
