from __future__ import annotations

import time
from datetime import datetime, timezone

WEEK_IN_SECONDS = 60 * 60 * 24 * 7

# Largest unit first; a week-bounded duration never reaches months or years.
_UNITS: tuple[tuple[int, str, str], ...] = (
    (60 * 60 * 24, "day", "days"),
    (60 * 60, "h", "h"),
    (60, "m", "m"),
    (1, "s", "s"),
)


def format_duration(seconds: int) -> str:
    """Render a non-negative whole-second duration as `2days 3h 4m 5s`."""
    if seconds < 0:
        raise ValueError(f"duration must be non-negative, got {seconds}")
    if seconds == 0:
        return "0s"
    parts: list[str] = []
    remaining = seconds
    for size, singular, plural in _UNITS:
        count, remaining = divmod(remaining, size)
        if count:
            parts.append(f"{count}{singular if count == 1 else plural}")
    return " ".join(parts)


def format_date(timestamp: int) -> str:
    """UTC `D-Mon-YYYY`, e.g. `5-Jan-2024`.

    The day is not padded, unlike chrono's `%v` (`%e-%b-%Y`), which renders
    ` 5-Jan-2024` with a leading space.
    """
    moment = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return f"{moment.day}-{moment:%b-%Y}"


def humanize(
    timestamp: int,
    *,
    now: int | None = None,
    window_seconds: int = WEEK_IN_SECONDS,
) -> str:
    """Describe `timestamp` relative to `now`.

    Within `window_seconds` the result is relative (`30s ago`, `in 10s`);
    beyond it an absolute date such as `5-Jan-2024`. A timestamp equal to
    `now` counts as past.
    """
    reference = int(time.time()) if now is None else int(now)
    timestamp = int(timestamp)
    diff = abs(reference - timestamp)
    if diff > window_seconds:
        return format_date(timestamp)
    duration = format_duration(diff)
    if timestamp > reference:
        return f"in {duration}"
    return f"{duration} ago"
