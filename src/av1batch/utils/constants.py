"""
Constants and configuration settings for batch AV1 encoding.

This module contains the fixed values used by the encoding pipeline: the
accepted video file extensions, the artifact suffixes used by the rename
transaction, audio filter expressions, and the bitrate policy defaults.
Runtime settings (target folder, log file, profile, Docker image and GPU
device nodes) are read from the environment, optionally seeded from a local
.env file.
"""

import os

from dotenv import load_dotenv

load_dotenv()

# Accepted video file extensions (compared lower-case)
VIDEO_EXTENSIONS = {
    ".mp4", ".mkv", ".avi", ".mov", ".wmv", ".flv",
    ".mts", ".ts", ".m2ts", ".mpeg", ".mpg",
}

# Artifact naming used by the rename transaction
OUTPUT_EXTENSION = ".mp4"
BACKUP_SUFFIX = ".old"
TEMP_SUFFIX = ".tmp"

# Probe settings
PROBE_PACKET_LIMIT = 30

# Audio diagnostics thresholds (seconds)
AUDIO_DELAY_THRESHOLD = 0.1
AUDIO_GAP_THRESHOLD = 0.5
AUDIO_FILTER_LIGHT = "aresample=async=1"
AUDIO_FILTER_STRONG = "aresample=async=1000:min_hard_comp=0.1"
DEFAULT_SAMPLE_RATE = 48000
DEFAULT_AUDIO_BITRATE = "256k"

# Bitrate policy
DEFAULT_SOURCE_BITRATE = 5_000_000
TARGET_BITRATE_RATIO = 0.65
MIN_TARGET_KBPS = 600

# Subtitle output codec for the mp4 container
MP4_SUBTITLE_CODEC = "mov_text"
TEN_BIT_PIX_FMT = "p010le"

# Progress logging interval for a running encode (seconds)
PROGRESS_INTERVAL = 60

# Environment driven settings
TARGET_DIR = os.getenv("AV1SHRINK_TARGET_DIR", "")
LOG_FILE = os.getenv("AV1SHRINK_LOG_FILE", "encoding_error_log.txt")
LIST_FILE = os.getenv("AV1SHRINK_LIST_FILE", "/tmp/av1shrink_file_list.txt")
PROFILE = os.getenv("AV1SHRINK_PROFILE", "unraid")
DOCKER_IMAGE = os.getenv("AV1SHRINK_DOCKER_IMAGE", "linuxserver/ffmpeg:latest")
MOUNT_ROOT = os.getenv("AV1SHRINK_MOUNT_ROOT", "/mnt/user")
CARD_DEVICE = os.getenv("AV1SHRINK_CARD_DEVICE", "/dev/dri/card1")
RENDER_DEVICE = os.getenv("AV1SHRINK_RENDER_DEVICE", "/dev/dri/renderD129")
