"""Tests for the rename transaction and interrupt cleanup cell."""

from pathlib import Path

import pytest

from av1batch.errors import SwapFailed
from av1batch.utils.file_util import ActiveEncode, FileTransaction, already_processed


def _setup(tmp_path, name="movie.mkv"):
    src = tmp_path / name
    src.write_bytes(b"original-bytes" * 100)
    tx = FileTransaction.for_source(src)
    tx.temp.write_bytes(b"encoded")
    return src, tx


def _fail_replace_into(monkeypatch, target):
    real_replace = Path.replace

    def replace(self, dst):
        if Path(dst) == target:
            raise OSError("simulated rename failure")
        return real_replace(self, dst)

    monkeypatch.setattr(Path, "replace", replace)


def test_paths_for_source(tmp_path):
    tx = FileTransaction.for_source(tmp_path / "Show.S01E01.mkv")
    assert tx.temp.name == "Show.S01E01.mp4.tmp"
    assert tx.backup.name == "Show.S01E01.mkv.old"
    assert tx.final.name == "Show.S01E01.mp4"


def test_commit_swaps_files(tmp_path):
    src, tx = _setup(tmp_path)
    original = src.read_bytes()

    tx.commit()

    assert not src.exists()
    assert tx.backup.read_bytes() == original
    assert tx.final.read_bytes() == b"encoded"
    assert not tx.temp.exists()


def test_commit_when_source_is_already_mp4(tmp_path):
    src, tx = _setup(tmp_path, "clip.mp4")
    original = src.read_bytes()

    tx.commit()

    assert tx.final == src
    assert src.read_bytes() == b"encoded"
    assert (tmp_path / "clip.mp4.old").read_bytes() == original


def test_output_rename_failure_rolls_back(tmp_path, monkeypatch):
    src, tx = _setup(tmp_path)
    original = src.read_bytes()
    _fail_replace_into(monkeypatch, tx.final)

    with pytest.raises(SwapFailed) as excinfo:
        tx.commit()

    assert excinfo.value.stage == "output"
    assert excinfo.value.rolled_back is True
    assert src.read_bytes() == original
    assert not tx.backup.exists()
    assert not tx.temp.exists()
    assert not tx.final.exists()


def test_source_rename_failure_leaves_original(tmp_path, monkeypatch):
    src, tx = _setup(tmp_path)
    original = src.read_bytes()
    _fail_replace_into(monkeypatch, tx.backup)

    with pytest.raises(SwapFailed) as excinfo:
        tx.commit()

    assert excinfo.value.stage == "source"
    assert src.read_bytes() == original
    assert not tx.temp.exists()
    assert not tx.backup.exists()


def test_already_processed(tmp_path):
    mkv = tmp_path / "a.mkv"
    mkv.write_bytes(b"x")
    assert already_processed(mkv) is False

    (tmp_path / "a.mkv.old").write_bytes(b"x")
    assert already_processed(mkv) is True

    avi = tmp_path / "b.avi"
    avi.write_bytes(b"x")
    (tmp_path / "b.mp4").write_bytes(b"y")
    assert already_processed(avi) is True

    mp4 = tmp_path / "c.mp4"
    mp4.write_bytes(b"x")
    assert already_processed(mp4) is False


class FakeProcess:
    def __init__(self):
        self.terminated = False

    def poll(self):
        return 0 if self.terminated else None

    def terminate(self):
        self.terminated = True

    def wait(self, timeout=None):
        return 0


def test_active_encode_cleanup(tmp_path):
    temp = tmp_path / "a.mp4.tmp"
    temp.write_bytes(b"partial")
    process = FakeProcess()
    active = ActiveEncode()
    active.begin(temp)
    active.attach(process)

    assert active.cleanup() == temp
    assert process.terminated
    assert not temp.exists()
    assert active.temp is None


def test_cleared_cell_does_not_touch_finished_files(tmp_path):
    finished = tmp_path / "done.mp4.tmp"
    finished.write_bytes(b"keep")
    active = ActiveEncode()
    active.begin(finished)
    active.clear()

    assert active.cleanup() is None
    assert finished.exists()
