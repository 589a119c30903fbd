"""
Human-readable renderings of byte counts and elapsed time for the summary panel.
"""

_SIZE_UNITS = ("B", "KB", "MB", "GB")


def format_size(bytes_size: int) -> str:
    """Formats a byte count, e.g. 1536 -> '1.5 KB'."""
    if bytes_size <= 0:
        return "0 B"
    size = float(bytes_size)
    for unit in _SIZE_UNITS[:-1]:
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} {_SIZE_UNITS[-1]}"


def format_duration(seconds: float) -> str:
    """Formats elapsed seconds, e.g. 3723 -> '1h 2m 3s'."""
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    parts = [f"{value}{unit}" for value, unit in ((hours, "h"), (minutes, "m")) if value]
    if secs or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)
