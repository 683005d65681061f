"""
Crash-safe file bookkeeping for in-place encoding.

For a source `name.ext` the encoder writes `name.mp4.tmp`. On success the
source is renamed to `name.ext.old` and the temp file to `name.mp4`. At every
observable point either the original file or the backup + final pair exists;
a temp file only survives inside the window of an interrupted encode, and the
interrupt handler removes it through the ActiveEncode cell.
"""
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from av1batch.errors import SwapFailed
from av1batch.utils.constants import BACKUP_SUFFIX, OUTPUT_EXTENSION, TEMP_SUFFIX
from av1batch.utils.logger import LogLevel, log


def output_path_for(src: Path) -> Path:
    """Final output path: same folder and stem, `.mp4` extension."""
    return src.with_name(src.stem + OUTPUT_EXTENSION)


def temp_path_for(src: Path) -> Path:
    return src.with_name(src.stem + OUTPUT_EXTENSION + TEMP_SUFFIX)


def backup_path_for(src: Path) -> Path:
    return src.with_name(src.name + BACKUP_SUFFIX)


def already_processed(src: Path) -> bool:
    """
    True when an earlier run already handled `src`.

    Either its `.old` backup exists, or a sibling `.mp4` exists that is not
    the source itself (e.g. `movie.mkv` next to an encoded `movie.mp4`).
    """
    if backup_path_for(src).exists():
        return True
    out = output_path_for(src)
    return out.exists() and out != src


def remove_quietly(path: Optional[Path]) -> bool:
    """Delete `path` if it exists. Returns True when a file was removed."""
    if path is None:
        return False
    try:
        if path.exists():
            path.unlink()
            return True
    except OSError as e:
        log("file.remove_failed", LogLevel.WARN, path=str(path), error=str(e))
    return False


@dataclass(frozen=True)
class FileTransaction:
    """The four paths involved in swapping one encoded file into place."""

    source: Path
    temp: Path
    backup: Path
    final: Path

    @classmethod
    def for_source(cls, src: Path) -> "FileTransaction":
        return cls(
            source=src,
            temp=temp_path_for(src),
            backup=backup_path_for(src),
            final=output_path_for(src),
        )

    def discard_temp(self) -> bool:
        return remove_quietly(self.temp)

    def commit(self) -> None:
        """
        Rename source -> backup, then temp -> final.

        Raises:
            SwapFailed: stage "source" when the first rename fails (temp is
                discarded, source untouched); stage "output" when the second
                rename fails (backup restored to source, temp discarded,
                `rolled_back` tells whether the restore succeeded).
        """
        try:
            self.source.replace(self.backup)
        except OSError as e:
            self.discard_temp()
            raise SwapFailed("Failed to rename original", path=self.source, stage="source",
                             ctx={"error": str(e)}) from e

        try:
            self.temp.replace(self.final)
        except OSError as e:
            try:
                self.backup.replace(self.source)
                rolled_back = True
            except OSError as restore_error:
                log("swap.restore_failed", LogLevel.ERROR,
                    backup=str(self.backup), error=str(restore_error))
                rolled_back = False
            if rolled_back:
                self.discard_temp()
            raise SwapFailed("Failed to move output file", path=self.source, stage="output",
                             rolled_back=rolled_back, ctx={"error": str(e)}) from e


class ActiveEncode:
    """
    Shared cell naming the temp file and process of the encode in flight.

    The batch loop sets it before each encode and clears it once that file's
    transaction has finished; the signal handler reads it to clean up, so it
    never touches a temp file that belongs to an already finished file.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._temp: Optional[Path] = None
        self._process: Optional[subprocess.Popen] = None

    @property
    def temp(self) -> Optional[Path]:
        with self._lock:
            return self._temp

    def begin(self, temp: Path) -> None:
        with self._lock:
            self._temp = temp
            self._process = None

    def attach(self, process: subprocess.Popen) -> None:
        with self._lock:
            self._process = process

    def detach(self) -> None:
        with self._lock:
            self._process = None

    def clear(self) -> None:
        with self._lock:
            self._temp = None
            self._process = None

    def cleanup(self) -> Optional[Path]:
        """Stop the running encoder and delete its temp file. Returns the removed path."""
        with self._lock:
            process, temp = self._process, self._temp
            self._process = None
            self._temp = None

        if process is not None and process.poll() is None:
            process.terminate()
            try:
                process.wait(timeout=10)
            except subprocess.TimeoutExpired:
                process.kill()
                process.wait()

        if remove_quietly(temp):
            return temp
        return None
