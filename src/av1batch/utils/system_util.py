"""
Helpers for the external binaries the batch shells out to.

Probing and encoding both hand off to ffprobe/ffmpeg, either directly or through
`docker run` for the containerized profile. Everything here returns plain tuples
so callers decide what a nonzero exit means for the file at hand.

Functions:
    - run_cmd: Runs an argv to completion and returns (code, stdout, stderr).
    - which_or_die: Exits with status 2 when a binary is missing from PATH.
    - require_binaries: Checks every binary a profile needs before any file is touched.
    - interrupts_deferred: Holds SIGINT/SIGTERM until a block of file moves is done.
"""
import shutil
import signal
import subprocess
import sys
from contextlib import contextmanager
from typing import Iterable, List, Tuple

from av1batch.utils.logger import LogLevel, log, safe_print

INSTALL_HINTS = {
    "docker": "install Docker and pull the encoder image",
    "ffmpeg": "install an ffmpeg build with av1_qsv support",
    "ffprobe": "ffprobe ships with ffmpeg",
}


def run_cmd(cmd: List[str]) -> Tuple[int, str, str]:
    """Run a command and return (code, stdout, stderr)."""
    log("cmd.run", LogLevel.DEBUG, argv=" ".join(cmd))
    # Container metadata is not always valid UTF-8.
    p = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True, errors="replace")
    return p.returncode, p.stdout, p.stderr


def which_or_die(binary: str):
    """Check if a binary exists on PATH, exit if not found."""
    if shutil.which(binary) is None:
        hint = INSTALL_HINTS.get(binary, "install it first")
        safe_print(f"ERROR: '{binary}' not found on PATH ({hint}).", file=sys.stderr)
        sys.exit(2)


def require_binaries(binaries: Iterable[str]):
    for binary in binaries:
        which_or_die(binary)


@contextmanager
def interrupts_deferred():
    """
    Block SIGINT and SIGTERM for the duration of the block.

    A signal arriving inside the block is delivered when it exits. Platforms
    without pthread_sigmask (Windows) run the block unprotected.
    """
    if not hasattr(signal, "pthread_sigmask"):
        yield
        return
    held = {signal.SIGINT, signal.SIGTERM}
    previous = signal.pthread_sigmask(signal.SIG_BLOCK, held)
    try:
        yield
    finally:
        signal.pthread_sigmask(signal.SIG_SETMASK, previous)
