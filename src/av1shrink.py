"""
Batch AV1 encoder: re-encode every video under a folder in place.

Each file is probed, diagnosed and encoded to AV1; on success the original is
kept as `<name>.<ext>.old` next to the new `<name>.mp4`. Already processed
files are skipped, so the command can be re-run over the same folder.
"""

import argparse
import functools
import os
import signal
import sys
import time
from pathlib import Path

from tqdm import tqdm

import av1batch as av1_module
from av1batch import encode
from av1batch.encode import FileState, RunStatistics
from av1batch.profiles import PROFILES, get_profile
from av1batch.utils import LogLevel, logger, system_util, time_util
from av1batch.utils import constants
from av1batch.utils.file_util import ActiveEncode

EXIT_INVALID = 2
EXIT_INTERRUPTED = 130


def _signal_handler(active: ActiveEncode, list_file: Path, signum, frame):
    """Delete the in-flight temp file and the scratch list, then end the run."""
    try:
        sig_name = signal.Signals(signum).name
    except ValueError:
        sig_name = str(signum)

    logger.safe_print(f"\n⚠️  Interrupt detected ({sig_name}). Cleaning up temp files...")
    removed = active.cleanup()
    if removed is not None:
        logger.safe_print(f"    🗑️  Deleted: {removed}")
    encode.remove_file_list(list_file)
    logger.safe_print("✅ Done. Exiting.")
    sys.exit(EXIT_INTERRUPTED)


def _prompt_target_dir(default: str) -> str:
    suffix = f" [{default}]" if default else ""
    try:
        answer = input(f"Target directory{suffix}: ").strip()
    except EOFError:
        answer = ""
    return answer or default


def _print_summary(stats: RunStatistics, runtime: str) -> None:
    logger.safe_print("================================================")
    logger.safe_print("🏁 Encoding complete")
    if stats.original_bytes > 0:
        gb = 1024 ** 3
        mb = 1024 ** 2
        logger.safe_print(f"    Total original : {stats.original_bytes // gb} GB")
        logger.safe_print(f"    Total output   : {stats.encoded_bytes // gb} GB")
        logger.safe_print(f"    Space saved    : {stats.saved_bytes // mb} MB ({stats.ratio_pct}% of original)")
    logger.safe_print("================================================")
    logger.log(
        "av1shrink.end",
        LogLevel.INFO,
        pid=os.getpid(),
        runtime=runtime,
        done=stats.count(FileState.DONE),
        skip=stats.count(FileState.SKIPPED),
        fail=stats.count(FileState.FAILED_PROBE) + stats.count(FileState.ENCODE_FAILED)
        + stats.count(FileState.FAILED_SWAP),
        rolled_back=stats.count(FileState.ROLLED_BACK),
    )


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Batch re-encode a video folder to AV1 in place. Encoder settings "
                    "(bitrate, pixel format, subtitles, audio timestamp fixes) are chosen per file.",
        epilog="Example: av1shrink /mnt/user/Videos",
    )
    parser.add_argument("target_dir", nargs="?", help="Folder containing the videos to encode (prompted if omitted)")
    parser.add_argument(
        "--profile",
        choices=sorted(PROFILES),
        help="Platform profile: constants and how ffmpeg is launched (default: $AV1SHRINK_PROFILE or unraid)",
    )
    parser.add_argument("--log-file", help="Append-only failure log (default: $AV1SHRINK_LOG_FILE)")
    parser.add_argument("--debug", action="store_true", help="Enable debug output")
    parser.add_argument("--version", action="version", version=f"%(prog)s {av1_module.__version__}")
    args = parser.parse_args(argv)

    logger.set_log_level(LogLevel.DEBUG if args.debug else LogLevel.INFO)

    try:
        profile = get_profile(args.profile or constants.PROFILE)
    except ValueError as e:
        logger.log("startup.error", LogLevel.ERROR, msg=str(e))
        return EXIT_INVALID

    target = args.target_dir or _prompt_target_dir(constants.TARGET_DIR)
    target_dir = Path(target).expanduser().resolve() if target else None
    if target_dir is None or not target_dir.is_dir():
        logger.log("startup.error", LogLevel.ERROR, msg="Target directory does not exist", target=str(target))
        return EXIT_INVALID

    log_file = Path(args.log_file or constants.LOG_FILE).expanduser()
    if not log_file.is_absolute():
        log_file = target_dir / log_file
    logger.set_failure_log(log_file)

    system_util.require_binaries(profile.required_binaries())

    files = encode.iter_video_files(target_dir)
    logger.log(
        "av1shrink.start",
        LogLevel.INFO,
        pid=os.getpid(),
        files_found=len(files),
        target=str(target_dir),
        profile=profile.name,
        log_file=str(log_file),
    )
    if not files:
        logger.safe_print("⚠️  No files to process. Exiting.")
        return 0

    list_file = Path(constants.LIST_FILE)
    active = ActiveEncode()
    handler = functools.partial(_signal_handler, active, list_file)
    previous_handlers = {sig: signal.signal(sig, handler) for sig in (signal.SIGINT, signal.SIGTERM)}
    encode.write_file_list(files, list_file)
    stats = RunStatistics()
    start_time = time.time()
    try:
        for idx, src in enumerate(tqdm(files, desc="Encoding", unit="file"), 1):
            outcome = encode.encode_one(src, profile, active, debug=args.debug)
            stats.record(outcome)
            if outcome.state is not FileState.SKIPPED:
                logger.log(
                    "av1shrink.progress",
                    LogLevel.INFO,
                    completed=idx,
                    total=len(files),
                    pct=round(idx / len(files) * 100, 1),
                    state=outcome.state.value,
                    eta=time_util.get_eta_total(idx, len(files), time.time() - start_time),
                )
    finally:
        encode.remove_file_list(list_file)
        for sig, previous in previous_handlers.items():
            signal.signal(sig, previous)

    _print_summary(stats, time_util.format_runtime(time.time() - start_time))
    return 0


if __name__ == "__main__":
    sys.exit(main())
