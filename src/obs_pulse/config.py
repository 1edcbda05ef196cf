"""Configuration system for obs-pulse."""

from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

import tomlkit


@dataclass
class ConnectionConfig:
    """OBS control socket connection settings."""

    default_address: str = "127.0.0.1:4455"  # obs-websocket default port
    reconnect_delay: float = 1.0  # Seconds before the single reconnect attempt
    connect_timeout: float = 5.0  # Seconds allowed for the websocket handshake
    remember_credentials: bool = True  # Persist last address/password on connect


@dataclass
class PollingConfig:
    """Sampling loop settings."""

    interval: float = 2.0  # Seconds between polls

    @property
    def interval_ms(self) -> float:
        return self.interval * 1000


@dataclass
class ThresholdsConfig:
    """Skipped-frame ratio thresholds.

    A ratio strictly above warning is WARNING, strictly above critical is CRITICAL.
    """

    warning: float = 0.01  # 1% of frames skipped
    critical: float = 0.05  # 5% of frames skipped


@dataclass
class SystemConfig:
    """Log file settings."""

    log_max_bytes: int = 5 * 1024 * 1024  # Max log file size (5MB)
    log_backup_count: int = 3  # Number of backup log files to keep


# =============================================================================
# TUI Color Configuration
# =============================================================================


@dataclass
class TierColors:
    """Colors for frame counter tiers.

    Colors can be named ("red"), hex ("#FFA500") or Rich styles ("bold red").
    Default palette: Dracula theme.
    """

    normal: str = "#50fa7b"  # Dracula green - healthy
    warning: str = "#f1fa8c"  # Dracula yellow - some frames lost
    critical: str = "#ff5555"  # Dracula red - heavy frame loss


@dataclass
class OutputStateColors:
    """Colors for the output state column."""

    active: str = "#50fa7b"  # Dracula green - live
    reconnecting: str = "#ffb86c"  # Dracula orange - output retrying
    stopped: str = "dim"


@dataclass
class BorderColors:
    """Colors for the header border by connection state."""

    connected: str = "#50fa7b"  # Dracula green
    reconnecting: str = "#f1fa8c"  # Dracula yellow
    disconnected: str = "#ff5555"  # Dracula red


@dataclass
class TUIColorsConfig:
    """All TUI color configurations grouped together."""

    tiers: TierColors = field(default_factory=TierColors)
    outputs: OutputStateColors = field(default_factory=OutputStateColors)
    borders: BorderColors = field(default_factory=BorderColors)


@dataclass
class TUIConfig:
    """TUI-specific configuration."""

    colors: TUIColorsConfig = field(default_factory=TUIColorsConfig)
    activity_max_entries: int = 50  # Max lines kept in the activity log


def _dataclass_to_table(obj: object) -> tomlkit.items.Table:
    """Convert a dataclass instance to a tomlkit Table recursively."""
    table = tomlkit.table()
    for f in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, f.name)
        if is_dataclass(value) and not isinstance(value, type):
            table.add(f.name, _dataclass_to_table(value))
        else:
            table.add(f.name, value)
    return table


@dataclass
class Config:
    """Main configuration container."""

    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    thresholds: ThresholdsConfig = field(default_factory=ThresholdsConfig)
    system: SystemConfig = field(default_factory=SystemConfig)
    tui: TUIConfig = field(default_factory=TUIConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "obs-pulse"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def state_dir(self) -> Path:
        """State directory for logs and remembered credentials."""
        return Path.home() / ".local" / "state" / "obs-pulse"

    @property
    def log_path(self) -> Path:
        """JSON Lines log path."""
        return self.state_dir / "obs-pulse.log"

    @property
    def credentials_path(self) -> Path:
        """Last-used address/password."""
        return self.state_dir / "credentials.toml"

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        for name in ("connection", "polling", "thresholds", "system", "tui"):
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())

        path.write_text(tomlkit.dumps(doc))

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        All defaults come from the dataclass definitions - no hardcoded values here.
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f)
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        system_data = data.get("system", {})
        sys_defaults = defaults.system

        return cls(
            connection=_load_connection_config(data.get("connection", {})),
            polling=_load_polling_config(data.get("polling", {})),
            thresholds=_load_thresholds_config(data.get("thresholds", {})),
            system=SystemConfig(
                log_max_bytes=system_data.get("log_max_bytes", sys_defaults.log_max_bytes),
                log_backup_count=system_data.get("log_backup_count", sys_defaults.log_backup_count),
            ),
            tui=_load_tui_config(data.get("tui", {})),
        )


def _load_connection_config(data: dict) -> ConnectionConfig:
    """Load connection config from TOML data."""
    d = ConnectionConfig()
    reconnect_delay = data.get("reconnect_delay", d.reconnect_delay)
    connect_timeout = data.get("connect_timeout", d.connect_timeout)

    if reconnect_delay < 0:
        raise ValueError(f"reconnect_delay must be >= 0, got {reconnect_delay}")
    if connect_timeout <= 0:
        raise ValueError(f"connect_timeout must be > 0, got {connect_timeout}")

    return ConnectionConfig(
        default_address=str(data.get("default_address", d.default_address)),
        reconnect_delay=reconnect_delay,
        connect_timeout=connect_timeout,
        remember_credentials=data.get("remember_credentials", d.remember_credentials),
    )


def _load_polling_config(data: dict) -> PollingConfig:
    """Load polling config from TOML data."""
    interval = data.get("interval", PollingConfig().interval)
    if interval <= 0:
        raise ValueError(f"polling interval must be > 0, got {interval}")
    return PollingConfig(interval=interval)


def _load_thresholds_config(data: dict) -> ThresholdsConfig:
    """Load thresholds config from TOML data, validating their order."""
    d = ThresholdsConfig()
    warning = data.get("warning", d.warning)
    critical = data.get("critical", d.critical)

    if not 0 <= warning < critical:
        raise ValueError(
            f"thresholds must satisfy 0 <= warning < critical, got {warning} / {critical}"
        )
    return ThresholdsConfig(warning=warning, critical=critical)


def _load_tui_config(data: dict) -> TUIConfig:
    """Load TUI config from TOML data.

    Handles nested [tui.colors.*] sections with defaults.
    """
    tui_defaults = TUIConfig()
    colors_data = data.get("colors", {})
    tiers_data = colors_data.get("tiers", {})
    outputs_data = colors_data.get("outputs", {})
    borders_data = colors_data.get("borders", {})

    # Use dataclass instances as single source of truth for defaults
    t = TierColors()
    o = OutputStateColors()
    b = BorderColors()

    return TUIConfig(
        colors=TUIColorsConfig(
            tiers=TierColors(
                normal=tiers_data.get("normal", t.normal),
                warning=tiers_data.get("warning", t.warning),
                critical=tiers_data.get("critical", t.critical),
            ),
            outputs=OutputStateColors(
                active=outputs_data.get("active", o.active),
                reconnecting=outputs_data.get("reconnecting", o.reconnecting),
                stopped=outputs_data.get("stopped", o.stopped),
            ),
            borders=BorderColors(
                connected=borders_data.get("connected", b.connected),
                reconnecting=borders_data.get("reconnecting", b.reconnecting),
                disconnected=borders_data.get("disconnected", b.disconnected),
            ),
        ),
        activity_max_entries=data.get("activity_max_entries", tui_defaults.activity_max_entries),
    )
