"""
Per-file error taxonomy for the encoding pipeline.

Every error here is scoped to a single source file: the batch loop catches it,
logs it, records it in the failure log and moves on to the next file. Only an
invalid target directory or a user interrupt ends a run early.
"""
from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any


class Av1BatchError(RuntimeError):
    """Base error carrying the affected path and structured context."""

    def __init__(self, message: str, *, path: Path | None = None, ctx: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.path = path
        self.ctx: dict[str, Any] = dict(ctx or {})

    def __str__(self) -> str:
        if self.path is not None:
            return f"{super().__str__()}: {self.path}"
        return super().__str__()


class ProbeError(Av1BatchError):
    """ffprobe produced no parseable output."""


class ResolutionUnreadable(Av1BatchError):
    """Width or height is missing or not a positive integer."""


class EncodeFailed(Av1BatchError):
    """The encoder exited with a nonzero status."""

    def __init__(self, message: str, *, path: Path | None = None, exit_code: int | None = None,
                 ctx: Mapping[str, Any] | None = None) -> None:
        super().__init__(message, path=path, ctx=ctx)
        self.exit_code = exit_code


class SwapFailed(Av1BatchError):
    """One of the two renames of the file transaction failed."""

    def __init__(self, message: str, *, path: Path | None = None, stage: str = "",
                 rolled_back: bool = False, ctx: Mapping[str, Any] | None = None) -> None:
        super().__init__(message, path=path, ctx=ctx)
        self.stage = stage
        self.rolled_back = rolled_back
