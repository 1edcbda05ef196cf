"""Centralized console logging with Rich formatting.

This module provides:
1. Icon vocabulary (Icon class namespace)
2. Level-based styling
3. Core log functions (log, info, warn, error)
4. Domain helpers for the console watch mode (connected, tick_line, etc.)
5. Structlog configuration (configure, get_structlog)

Console output uses Rich markup for colors. JSON file output via structlog
remains separate (machine-parseable, no colors).
"""

from __future__ import annotations

import logging
import logging.handlers
from datetime import datetime
from typing import TYPE_CHECKING

import structlog
from rich.console import Console

from obs_pulse.classify import FrameCounter, Tier
from obs_pulse.formatting import format_bitrate, format_cpu, format_fps, format_megabytes

if TYPE_CHECKING:
    from obs_pulse.config import Config
    from obs_pulse.dashboard import DashboardView

# Rich console for colorful human-readable output
_console = Console(highlight=False)


# ─────────────────────────────────────────────────────────────────────────────
# Icons
# ─────────────────────────────────────────────────────────────────────────────


class Icon:
    """Icon vocabulary for console output.

    Use via autocomplete: Icon.<TAB> to see all available icons.
    """

    OK = "[bold green]✓[/]"
    FAIL = "[bold red]✗[/]"
    WAIT = "⏳"
    RESET = "↺"
    DROP = "[bold red]▼[/]"
    CONNECTED = "[green]⬤[/]"
    DISCONNECTED = "[red]⬤[/]"
    ACTIVE = "▶"
    STOPPED = "■"
    RECONNECTING = "[yellow]⚠[/]"


# ─────────────────────────────────────────────────────────────────────────────
# Level Styles
# ─────────────────────────────────────────────────────────────────────────────

_LEVEL_STYLES = {
    "info": "[bright_blue]\\[info][/]",
    "warn": "[yellow]\\[warn][/]",
    "error": "[bold red]\\[err][/] ",
}

_TIER_STYLES = {
    Tier.NORMAL: "green",
    Tier.WARNING: "bright_yellow",
    Tier.CRITICAL: "bright_red",
}


# ─────────────────────────────────────────────────────────────────────────────
# Core Functions
# ─────────────────────────────────────────────────────────────────────────────


def log(level: str, msg: str, icon: str = "") -> None:
    """Print a log message with timestamp and level.

    Args:
        level: Log level (info, warn, error)
        msg: Message to print (can include Rich markup)
        icon: Optional icon to show after level (e.g., Icon.OK)
    """
    ts = datetime.now().strftime("%H:%M:%S")
    lvl = _LEVEL_STYLES.get(level, f"[{level}]")
    icon_part = f" {icon}" if icon else ""
    _console.print(f"[dim]{ts}[/] {lvl}{icon_part} {msg}")


def info(msg: str, icon: str = "") -> None:
    """Log an info message."""
    log("info", msg, icon)


def warn(msg: str, icon: str = "") -> None:
    """Log a warning message."""
    log("warn", msg, icon)


def error(msg: str, icon: str = "") -> None:
    """Log an error message."""
    log("error", msg, icon)


# ─────────────────────────────────────────────────────────────────────────────
# Styling Helpers
# ─────────────────────────────────────────────────────────────────────────────


def tier_color(tier: Tier) -> str:
    """Return Rich color name for a frame counter tier."""
    return _TIER_STYLES[tier]


def counter_markup(counter: FrameCounter, dropped: bool = False) -> str:
    """Render a frame counter label in its tier color, flagged if frames dropped this tick."""
    marker = f" {Icon.DROP}" if dropped else ""
    return f"[{tier_color(counter.tier)}]{counter.label}[/]{marker}"


# ─────────────────────────────────────────────────────────────────────────────
# Domain Helpers
# ─────────────────────────────────────────────────────────────────────────────


def connecting(url: str) -> None:
    """Log connection attempt."""
    info(f"Connecting to [cyan]{url}[/]", Icon.WAIT)


def connected(url: str) -> None:
    """Log connection established."""
    info(f"Connected to [cyan]{url}[/]", Icon.CONNECTED)


def connect_failed(error_msg: str) -> None:
    """Log connection failure."""
    error(f"Connect failed: {error_msg}", Icon.FAIL)


def connection_lost(reason: str) -> None:
    """Log connection dropped."""
    warn(f"Connection lost [dim]({reason})[/]", Icon.DISCONNECTED)


def baseline_reset() -> None:
    """Log user counter reset."""
    info("Frame counters reset", Icon.RESET)


def credentials_forgotten(path: str) -> None:
    """Log stored credentials removed."""
    info(f"Forgot stored credentials [dim]({path})[/]", Icon.OK)


def config_created(path: str) -> None:
    """Log config file created."""
    info(f"Created config at [cyan]{path}[/]")


def tick_line(view: DashboardView) -> None:
    """Log one sampled tick as a single console line."""
    stats = view.stats
    parts = [
        f"cpu [cyan]{format_cpu(stats.cpu_usage)}[/]",
        f"mem [cyan]{format_megabytes(stats.memory_usage)}[/]",
        f"fps [cyan]{format_fps(stats.active_fps)}[/]",
        f"render {counter_markup(view.render, view.render_dropped)}",
        f"encode {counter_markup(view.encode, view.encode_dropped)}",
    ]
    for output in view.outputs:
        if output.state == "reconnecting":
            icon = Icon.RECONNECTING
        elif output.state == "active":
            icon = Icon.ACTIVE
        else:
            icon = Icon.STOPPED
        parts.append(
            f"{icon} {output.label} {counter_markup(output.frames, output.dropped)} "
            f"[dim]{format_bitrate(output.bitrate_kbps)}[/]"
        )
    info(" · ".join(parts))


# ─────────────────────────────────────────────────────────────────────────────
# Structlog Configuration
# ─────────────────────────────────────────────────────────────────────────────


def _add_source(source: str) -> structlog.types.Processor:
    """Create a processor that adds a source field to log events."""

    def processor(
        logger: structlog.types.WrappedLogger,
        method_name: str,
        event_dict: structlog.types.EventDict,
    ) -> structlog.types.EventDict:
        event_dict["source"] = source
        return event_dict

    return processor


def configure(config: Config, source: str = "obs-pulse") -> None:
    """Configure structlog to write JSON Lines to the rotating log file.

    Console output stays with the Rich helpers above (or the TUI), so structured
    events never interleave with the dashboard.

    Args:
        config: Application config with paths
        source: Value for the "source" field on every event
    """
    config.state_dir.mkdir(parents=True, exist_ok=True)

    file_handler = logging.handlers.RotatingFileHandler(
        config.log_path,
        maxBytes=config.system.log_max_bytes,
        backupCount=config.system.log_backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.INFO)

    stdlib_root = logging.getLogger()
    stdlib_root.setLevel(logging.INFO)
    stdlib_root.handlers.clear()

    file_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
                structlog.processors.add_log_level,
                _add_source(source),
                structlog.processors.format_exc_info,
            ],
        )
    )
    stdlib_root.addHandler(file_handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
            structlog.processors.add_log_level,
            _add_source(source),
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_structlog() -> structlog.stdlib.BoundLogger:
    """Get a structlog logger instance for structured JSON file output."""
    return structlog.get_logger()
