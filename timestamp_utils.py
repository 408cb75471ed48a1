"""Millisecond offsets to MM:SS / HH:MM:SS display strings."""


def format_timestamp(offset_ms: float) -> str:
    """
    Format a millisecond offset for display.

    Hours are shown only when non-zero; negative offsets clamp to "00:00".

        >>> format_timestamp(3661000)
        '01:01:01'
        >>> format_timestamp(61000)
        '01:01'
    """
    if offset_ms is None or offset_ms < 0:
        return "00:00"

    total_seconds = int(offset_ms // 1000)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)

    parts = [hours, minutes, seconds] if hours else [minutes, seconds]
    return ":".join(f"{part:02d}" for part in parts)
