"""Real-time OBS stats dashboard.

Philosophy: TUI = window onto the reconciled snapshot. Nothing more.
- Display what Monitor publishes; no stats are computed here
- Keys map one-to-one onto Monitor commands
"""

import asyncio
from datetime import datetime
from typing import Any

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Horizontal
from textual.css.query import NoMatches
from textual.reactive import reactive
from textual.widgets import DataTable, Footer, Label, RichLog, Static

from obs_pulse.classify import FrameCounter, Tier
from obs_pulse.config import Config
from obs_pulse.credentials import Credentials
from obs_pulse.dashboard import DashboardView, OutputView
from obs_pulse.formatting import (
    format_bitrate,
    format_bytes,
    format_cpu,
    format_elapsed,
    format_fps,
    format_frame_time,
    format_megabytes,
)
from obs_pulse.monitor import Monitor
from obs_pulse.obs_client import ConnectError

STATE_ICONS = {
    "reconnecting": "⚠",
    "active": "▶",
    "stopped": "■",
}


def tier_style(tier: Tier, config: Config) -> str:
    """Map a tier to its configured color."""
    colors = config.tui.colors.tiers
    return {
        Tier.NORMAL: colors.normal,
        Tier.WARNING: colors.warning,
        Tier.CRITICAL: f"bold {colors.critical}",
    }[tier]


def counter_text(counter: FrameCounter, dropped: bool, config: Config) -> Text:
    """Frame counter label in its tier color, with a marker if frames dropped this tick."""
    text = Text(counter.label, style=tier_style(counter.tier, config))
    if dropped:
        text.append(" ▼", style=f"bold {config.tui.colors.tiers.critical}")
    return text


class HeaderBar(Static):
    """Header showing resource usage, performance and global frame counters."""

    DEFAULT_CSS = """
    HeaderBar {
        height: 5;
        padding: 0 1;
        border: solid green;
        border-title-align: left;
    }

    HeaderBar Horizontal {
        height: 1;
        width: 100%;
    }

    HeaderBar .left {
        width: auto;
    }

    HeaderBar .right {
        width: 1fr;
        text-align: right;
    }
    """

    state: reactive[str] = reactive("disconnected")

    def compose(self) -> ComposeResult:
        """Create header layout."""
        yield Horizontal(
            Label("", id="resources", classes="left"),
            Label("", id="connection", classes="right"),
        )
        yield Horizontal(Label("", id="performance", classes="left"))
        yield Horizontal(Label("", id="frames", classes="left"))

    def on_mount(self) -> None:
        self.border_title = "OBS"
        self._update_border_color()
        self.set_message("Waiting for connection...")

    def watch_state(self, state: str) -> None:
        self._update_border_color()

    def _update_border_color(self) -> None:
        borders = self.app.config.tui.colors.borders
        color = {
            "connected": borders.connected,
            "reconnecting": borders.reconnecting,
        }.get(self.state, borders.disconnected)
        self.styles.border = ("solid", color)

    def set_message(self, message: str) -> None:
        try:
            self.query_one("#connection", Label).update(message)
        except NoMatches:
            pass

    def update_from_view(self, view: DashboardView) -> None:
        """Update header from a dashboard view."""
        config = self.app.config
        stats = view.stats
        try:
            resources = self.query_one("#resources", Label)
            performance = self.query_one("#performance", Label)
            frames = self.query_one("#frames", Label)
        except NoMatches:
            return

        resources.update(
            f"CPU: {format_cpu(stats.cpu_usage)}   "
            f"Mem: {format_megabytes(stats.memory_usage)}   "
            f"Disk Space: {format_megabytes(stats.available_disk_space)}"
        )
        performance.update(
            f"FPS: {format_fps(stats.active_fps)}   "
            f"Frametime: {format_frame_time(stats.average_frame_render_time)}"
        )
        line = Text("Render frames missed: ")
        line.append_text(counter_text(view.render, view.render_dropped, config))
        line.append("   Encoding frames missed: ")
        line.append_text(counter_text(view.encode, view.encode_dropped, config))
        frames.update(line)
        self.set_message(datetime.fromtimestamp(view.taken_at).strftime("%H:%M:%S"))


class OutputsTable(Static):
    """Table of outputs (stream, recording, virtual cam, ...)."""

    DEFAULT_CSS = """
    OutputsTable {
        height: 1fr;
        border: solid $primary;
        border-title-align: left;
    }

    OutputsTable DataTable {
        width: 100%;
        height: 100%;
    }
    """

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._table: DataTable | None = None

    def compose(self) -> ComposeResult:
        yield DataTable(id="outputs-table", zebra_stripes=True, cursor_type="none")

    def on_mount(self) -> None:
        """Set up table columns."""
        self.border_title = "OUTPUTS"
        self._table = self.query_one("#outputs-table", DataTable)
        self._table.add_columns("", "Output", "Time", "Frames missed", "Sent", "Bitrate")

    def _make_row(self, output: OutputView) -> tuple[Text, ...]:
        config = self.app.config
        state_colors = config.tui.colors.outputs
        state_style = {
            "reconnecting": state_colors.reconnecting,
            "active": state_colors.active,
        }.get(output.state, state_colors.stopped)
        return (
            Text(STATE_ICONS[output.state], style=state_style),
            Text(output.label, style="bold" if output.status.active else ""),
            Text(format_elapsed(output.status.duration)),
            counter_text(output.frames, output.dropped, config),
            Text(format_bytes(output.status.bytes), justify="right"),
            Text(format_bitrate(output.bitrate_kbps), justify="right"),
        )

    def update_outputs(self, outputs: tuple[OutputView, ...]) -> None:
        if not self._table:
            return
        self._table.clear()
        for output in outputs:
            self._table.add_row(*self._make_row(output))

    def set_disconnected(self) -> None:
        if self._table:
            self._table.clear()


class ActivityLog(Static):
    """Activity log: connection events, tier transitions, drops."""

    DEFAULT_CSS = """
    ActivityLog {
        height: 12;
        border: solid $primary;
        border-title-align: left;
    }

    ActivityLog RichLog {
        width: 100%;
        height: 100%;
    }
    """

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._prev_tiers: dict[str, Tier] = {}

    def compose(self) -> ComposeResult:
        max_lines = self.app.config.tui.activity_max_entries
        yield RichLog(id="activity-log", markup=True, max_lines=max_lines)

    def on_mount(self) -> None:
        self.border_title = "ACTIVITY"

    def add_entry(self, message: str, level: str = "normal") -> None:
        """Add a log entry with a colored timestamp."""
        timestamp = datetime.now().strftime("%H:%M:%S")
        colors = self.app.config.tui.colors.tiers
        color = {
            "critical": colors.critical,
            "warning": colors.warning,
            "normal": colors.normal,
        }.get(level, "white")
        try:
            log = self.query_one("#activity-log", RichLog)
            log.write(f"[{color}]{timestamp}[/{color}]  {message}")
        except NoMatches:
            pass

    def check_transitions(self, view: DashboardView) -> None:
        """Log tier changes and per-tick drops."""
        # Keyed by output name; several outputs can share a display label
        counters = [("render", "Render", view.render, view.render_dropped)]
        counters.append(("encode", "Encoding", view.encode, view.encode_dropped))
        counters.extend((o.name, o.label, o.frames, o.dropped) for o in view.outputs)

        for key, name, counter, dropped in counters:
            previous = self._prev_tiers.get(key, Tier.NORMAL)
            if counter.tier != previous:
                self.add_entry(f"{name} → {counter.tier.name} ({counter.label})", counter.tier.value)
            self._prev_tiers[key] = counter.tier
            if dropped:
                self.add_entry(f"{name} dropped frames ({counter.label})", "warning")

    def reset_tiers(self) -> None:
        self._prev_tiers.clear()


class ObsPulseApp(App):
    """Real-time dashboard for an OBS instance."""

    CSS = """
    Screen {
        layout: vertical;
    }

    #header {
        height: 5;
    }

    #outputs {
        height: 1fr;
    }
    """

    BINDINGS = [
        ("r", "reset", "Reset counters"),
        ("d", "disconnect", "Disconnect"),
        ("c", "connect", "Connect"),
        ("f", "forget", "Forget login"),
        ("q", "quit", "Quit"),
    ]

    def __init__(
        self,
        config: Config | None = None,
        credentials: Credentials | None = None,
        monitor: Monitor | None = None,
    ):
        super().__init__()
        self.config = config or Config.load()
        self.credentials = credentials or Credentials(
            address=self.config.connection.default_address
        )
        self.monitor = monitor or Monitor(self.config)
        self.monitor.on_update = self._handle_view
        self.monitor.on_status = self._handle_status
        self._connect_task: asyncio.Task | None = None

    def compose(self) -> ComposeResult:
        """Create the TUI layout."""
        yield HeaderBar(id="header")
        yield OutputsTable(id="outputs")
        yield Horizontal(ActivityLog(id="activity"))
        yield Footer()

    def on_mount(self) -> None:
        """Initialize on startup."""
        self.title = "obs-pulse"
        self.sub_title = "disconnected"
        self._connect_task = asyncio.create_task(self._connect())

    async def on_unmount(self) -> None:
        """Cleanup on shutdown."""
        if self._connect_task and not self._connect_task.done():
            self._connect_task.cancel()
        self.monitor.on_update = None
        self.monitor.on_status = None
        await self.monitor.disconnect()

    async def _connect(self) -> bool:
        """Connect with the current credentials.

        Returns:
            True if connected, False otherwise
        """
        self.sub_title = f"connecting to {self.credentials.address}..."
        try:
            await self.monitor.connect(self.credentials.address, self.credentials.password)
        except ConnectError as e:
            self._handle_status("disconnected", f"Connect failed: {e}")
            self.notify(str(e), title="Connect failed", severity="error")
            return False
        self._query_activity().reset_tiers()
        return True

    def _query_activity(self) -> ActivityLog:
        return self.query_one("#activity", ActivityLog)

    def _handle_status(self, state: str, message: str) -> None:
        """Reflect a connection state change from the monitor."""
        self.sub_title = state
        try:
            header = self.query_one("#header", HeaderBar)
            header.state = state
            header.set_message(message)
            level = "normal" if state == "connected" else "critical"
            self._query_activity().add_entry(message, level)
            if state == "disconnected":
                self.query_one("#outputs", OutputsTable).set_disconnected()
        except NoMatches:
            pass

    def _handle_view(self, view: DashboardView) -> None:
        """Push a freshly published view to the widgets."""
        try:
            self.query_one("#header", HeaderBar).update_from_view(view)
            self.query_one("#outputs", OutputsTable).update_outputs(view.outputs)
            self._query_activity().check_transitions(view)
        except NoMatches:
            pass

    def action_reset(self) -> None:
        if self.monitor.reset_baseline() is None:
            self.notify("Nothing sampled yet", severity="warning")
            return
        try:
            self._query_activity().reset_tiers()
            self._query_activity().add_entry("Frame counters reset")
        except NoMatches:
            pass

    async def action_disconnect(self) -> None:
        await self.monitor.disconnect()

    async def action_connect(self) -> None:
        if self._connect_task and not self._connect_task.done():
            return
        self._connect_task = asyncio.create_task(self._connect())

    def action_forget(self) -> None:
        self.monitor.forget()
        self.notify("Stored login forgotten")


def run_tui(config: Config | None = None, credentials: Credentials | None = None) -> None:
    """Run the TUI application."""
    app = ObsPulseApp(config, credentials)
    app.run()
