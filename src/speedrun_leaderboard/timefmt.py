"""Run time parsing and display helpers."""

from __future__ import annotations


def parse_time_to_seconds(time_string: str) -> int:
    """Parse ``HH:MM:SS`` into total seconds; any other shape yields 0."""
    parts = (time_string or "").strip().split(":")
    if len(parts) != 3:
        return 0
    try:
        hours, minutes, seconds = (int(p) for p in parts)
    except ValueError:
        return 0
    return hours * 3600 + minutes * 60 + seconds


def is_valid_time(time_string: str) -> bool:
    parts = (time_string or "").strip().split(":")
    return len(parts) == 3 and all(p.isdigit() for p in parts)


def format_seconds_to_time(total_seconds: float) -> str:
    total = int(total_seconds)
    hours = total // 3600
    minutes = (total % 3600) // 60
    seconds = total % 60
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def format_time(time_string: str) -> str:
    """Drop the hour field when it is zero, and its leading zero below ten hours."""
    if not time_string:
        return time_string
    trimmed = time_string.strip()
    parts = trimmed.split(":")
    if len(parts) != 3:
        return trimmed

    hours_str = parts[0].strip()
    minutes = parts[1].strip() or "00"
    seconds = parts[2].strip() or "00"
    try:
        hours = int(hours_str)
    except ValueError:
        return f"{minutes}:{seconds}"
    if hours == 0:
        return f"{minutes}:{seconds}"
    if 1 <= hours < 10:
        return f"{hours}:{minutes}:{seconds}"
    return trimmed
