from datetime import datetime, timedelta, timezone


def get_eta_single_file(video_duration, speed_val, elapsed_seconds):
    remaining_seconds = max(video_duration - elapsed_seconds, 0) / speed_val
    return _get_eta_string(remaining_seconds)


def get_eta_total(done_count, total_count, elapsed_seconds):
    avg_time_per_file = elapsed_seconds / done_count
    remaining_files = total_count - done_count
    remaining_seconds = avg_time_per_file * remaining_files
    return _get_eta_string(remaining_seconds)


def parse_ffmpeg_time(value):
    """Convert an ffmpeg `HH:MM:SS.ss` progress stamp to seconds, or None."""
    parts = value.split(":")
    if len(parts) != 3:
        return None
    try:
        return float(parts[0]) * 3600 + float(parts[1]) * 60 + float(parts[2])
    except ValueError:
        return None


def format_runtime(seconds):
    seconds = int(seconds)
    return f"{seconds // 3600:02d}:{(seconds % 3600) // 60:02d}:{seconds % 60:02d}"


def _get_eta_string(time_in_seconds):
    completion_time = (datetime.now(timezone.utc) + timedelta(
        seconds=time_in_seconds)).strftime("%Y-%m-%d %H:%M:%S")

    eta_hours = int(time_in_seconds // 3600)
    eta_mins = int((time_in_seconds % 3600) // 60)
    eta_secs = int(time_in_seconds % 60)
    if eta_hours > 0:
        formatted_time = f"{eta_hours}h{eta_mins}m{eta_secs}s"
    elif eta_mins > 0:
        formatted_time = f"{eta_mins}m{eta_secs}s"
    else:
        formatted_time = f"{eta_secs}s"

    return f"{completion_time} ({formatted_time})"
