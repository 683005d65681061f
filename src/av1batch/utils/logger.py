"""
Provides structured console logging and the durable failure log.

Console entries carry a UTC timestamp, a log level, an event name and
key-value pairs, and are written through tqdm so they do not tear the batch
progress bar. Failure and warning events are additionally appended, one plain
line per event, to the failure log file configured with set_failure_log().
"""
import threading
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Dict, Any, Optional

from tqdm import tqdm

_print_lock = threading.RLock()
_separator = " | "
_failure_log: Optional[Path] = None


class LogLevel(Enum):
    """Log level enumeration."""
    TRACE = 0
    DEBUG = 1
    INFO = 2
    WARN = 3
    ERROR = 4


_current_level = LogLevel.INFO


def set_log_level(level: LogLevel) -> None:
    """Set the current log level."""
    global _current_level
    _current_level = level


def set_failure_log(path: Optional[Path]) -> None:
    """Set (or clear) the append-only failure log file."""
    global _failure_log
    _failure_log = path


def _format_kv(data: Dict[str, Any]) -> str:
    """Format key-value pairs for logging."""
    parts = []
    for key, value in data.items():
        if isinstance(value, str):
            # Escape quotes and newlines to keep log entries single-line.
            escaped = value.replace("\r", "\\r").replace("\n", "\\n")
            escaped = escaped.replace('"', '\\"')
            parts.append(f'{key}="{escaped}"')
        elif value is None:
            parts.append(f'{key}=null')
        elif isinstance(value, bool):
            parts.append(f'{key}={str(value).lower()}')
        else:
            parts.append(f'{key}={value}')
    return _separator.join(parts)


def _write_line(text: str) -> None:
    tqdm.write(text)


def _should_log(level: LogLevel) -> bool:
    """Check if a message at the given level should be logged."""
    return level.value >= _current_level.value


def log(event: str, level: LogLevel = LogLevel.INFO, **kwargs) -> None:
    """
    Structured logging function.

    Args:
        event: Event name (e.g., 'probe.failed', 'encode.complete')
        level: Log level (TRACE, DEBUG, INFO, WARN, ERROR)
        **kwargs: Key-value pairs to log
    """
    if not _should_log(level):
        return

    with _print_lock:
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        level_str = level.name
        kv_str = _format_kv(kwargs) if kwargs else ""
        header = f"{timestamp}{_separator}[{level_str}]{_separator}{event}"

        if kv_str:
            _write_line(f"{header}{_separator}{kv_str}")
        else:
            _write_line(header)


def append_failure(line: str) -> None:
    """
    Append one line to the failure log.

    The failure log is the durable record of skipped and failed files; it is
    opened in append mode for every event so an interrupted run never loses
    earlier entries.
    """
    if _failure_log is None:
        return
    with _print_lock:
        _failure_log.parent.mkdir(parents=True, exist_ok=True)
        with open(_failure_log, "a", encoding="utf-8") as fh:
            fh.write(line.rstrip("\n") + "\n")


def warn_and_record(event: str, line: str, **kwargs) -> None:
    """Log a warning on the console and append `line` to the failure log."""
    log(event, LogLevel.WARN, **kwargs)
    append_failure(line)


def error_and_record(event: str, line: str, **kwargs) -> None:
    """Log an error on the console and append `line` to the failure log."""
    log(event, LogLevel.ERROR, **kwargs)
    append_failure(line)


def safe_print(*args, **kwargs) -> None:
    """
    Thread-safe print function (legacy support).
    Use log() for structured logging instead.
    """
    with _print_lock:
        print(*args, **kwargs, flush=True)
