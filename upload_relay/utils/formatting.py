from datetime import datetime, timezone
from typing import Optional

BYTE_UNITS = ["B", "KB", "MB", "GB", "TB"]


def format_bytes(size: int) -> str:
    """
    Render a byte count with binary units, e.g. ``1536 -> "1.5 KB"``.

    Args:
        size: Number of bytes

    Returns:
        Size rounded to two decimals with trailing zeros dropped
    """
    if size <= 0:
        return "0 B"

    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(BYTE_UNITS) - 1:
        value /= 1024
        unit += 1

    return f"{round(value, 2):g} {BYTE_UNITS[unit]}"


def utc_timestamp(moment: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a ``Z`` suffix."""
    moment = moment or datetime.now(timezone.utc)
    return (
        moment.astimezone(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )
