"""Formatting utilities for consistent output across CLI and TUI."""


def format_bytes(bytes_val: int | float) -> str:
    """Format bytes as a human-readable size ("512 B", "1.5 MB", "2.3 GB")."""
    if bytes_val < 1024:
        return f"{int(bytes_val)} B"
    for unit in ("KB", "MB", "GB", "TB"):
        bytes_val /= 1024
        if bytes_val < 1024 or unit == "TB":
            break
    return f"{bytes_val:.1f} {unit}"


def format_megabytes(mb: float) -> str:
    """Format a value reported in MB (OBS memory/disk stats)."""
    return format_bytes(mb * 1024 * 1024)


def format_bitrate(kbps: float) -> str:
    """Format a bitrate in kilobits per second."""
    return f"{kbps:.0f} kb/s"


def format_cpu(percent: float) -> str:
    """Format CPU usage with two significant digits."""
    return f"{percent:.2g}%"


def format_fps(fps: float) -> str:
    return f"{fps:.2f}"


def format_frame_time(ms: float) -> str:
    """Format average frame render time with three significant digits."""
    return f"{ms:.3g} ms"


def format_elapsed(duration_ms: int) -> str:
    """Format an output duration as H:MM:SS."""
    seconds = max(duration_ms, 0) // 1000
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    return f"{hours}:{minutes:02d}:{secs:02d}"
