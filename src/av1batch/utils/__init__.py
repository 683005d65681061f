"""
A module providing constants, utility functions, and logging mechanisms
for batch encoding tasks.

This module includes a collection of constants related to the encoding
workflow, utility functions for system operations such as command execution,
crash-safe file bookkeeping, and a structured logger that also maintains the
durable failure log.
"""

from .constants import (
    BACKUP_SUFFIX,
    OUTPUT_EXTENSION,
    TEMP_SUFFIX,
    VIDEO_EXTENSIONS,
)
from .logger import LogLevel

__all__ = [
    "VIDEO_EXTENSIONS",
    "OUTPUT_EXTENSION",
    "BACKUP_SUFFIX",
    "TEMP_SUFFIX",
    "LogLevel",
]
