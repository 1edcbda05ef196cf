# src/obs_pulse/models.py
"""Snapshot data model for OBS stats polling.

Everything here is immutable once built. The sampler produces raw snapshots,
the reconciler produces adjusted copies with dataclasses.replace().
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# Display labels for OBS's built-in output names
OUTPUT_LABELS = {
    "simple_stream": "Stream",
    "adv_stream": "Stream",
    "simple_file_output": "Recording",
    "adv_file_output": "Recording",
    "virtualcam_output": "Virtual Cam",
}


def output_label(name: str) -> str:
    """Return the display label for an output, falling back to its name."""
    return OUTPUT_LABELS.get(name, name)


@dataclass(frozen=True)
class GlobalStats:
    """Process-wide OBS metrics at one sampling instant (GetStats)."""

    # ─────────────────────────────────────────────────────────────
    # Resources
    # ─────────────────────────────────────────────────────────────
    cpu_usage: float = 0.0  # Percent
    memory_usage: float = 0.0  # MB
    available_disk_space: float = 0.0  # MB

    # ─────────────────────────────────────────────────────────────
    # Performance
    # ─────────────────────────────────────────────────────────────
    active_fps: float = 0.0
    average_frame_render_time: float = 0.0  # ms

    # ─────────────────────────────────────────────────────────────
    # Monotonic frame counters
    # ─────────────────────────────────────────────────────────────
    render_skipped_frames: int = 0
    render_total_frames: int = 0
    output_skipped_frames: int = 0
    output_total_frames: int = 0

    # ─────────────────────────────────────────────────────────────
    # Websocket session
    # ─────────────────────────────────────────────────────────────
    incoming_messages: int = 0
    outgoing_messages: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GlobalStats:
        """Build from a GetStats responseData payload."""
        return cls(
            cpu_usage=float(data.get("cpuUsage", 0.0)),
            memory_usage=float(data.get("memoryUsage", 0.0)),
            available_disk_space=float(data.get("availableDiskSpace", 0.0)),
            active_fps=float(data.get("activeFps", 0.0)),
            average_frame_render_time=float(data.get("averageFrameRenderTime", 0.0)),
            render_skipped_frames=int(data.get("renderSkippedFrames", 0)),
            render_total_frames=int(data.get("renderTotalFrames", 0)),
            output_skipped_frames=int(data.get("outputSkippedFrames", 0)),
            output_total_frames=int(data.get("outputTotalFrames", 0)),
            incoming_messages=int(data.get("webSocketSessionIncomingMessages", 0)),
            outgoing_messages=int(data.get("webSocketSessionOutgoingMessages", 0)),
        )


@dataclass(frozen=True)
class OutputStatus:
    """State of one named output (stream, recording, virtual cam...)."""

    active: bool = False
    reconnecting: bool = False
    timecode: str = "00:00:00.000"
    duration: int = 0  # ms
    congestion: float = 0.0
    bytes: int = 0
    skipped_frames: int = 0
    total_frames: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OutputStatus:
        """Build from a GetOutputStatus responseData payload."""
        return cls(
            active=bool(data.get("outputActive", False)),
            reconnecting=bool(data.get("outputReconnecting", False)),
            timecode=str(data.get("outputTimecode", "00:00:00.000")),
            duration=int(data.get("outputDuration", 0)),
            congestion=float(data.get("outputCongestion", 0.0)),
            bytes=int(data.get("outputBytes", 0)),
            skipped_frames=int(data.get("outputSkippedFrames", 0)),
            total_frames=int(data.get("outputTotalFrames", 0)),
        )


@dataclass(frozen=True)
class Snapshot:
    """One complete reading of all tracked stats, taken at a single poll tick.

    Outputs keep the order they were queried in. Identity is the stable output
    name, never the display label.
    """

    taken_at: float
    stats: GlobalStats
    outputs: tuple[tuple[str, OutputStatus], ...] = ()

    @property
    def output_names(self) -> list[str]:
        return [name for name, _ in self.outputs]

    def output(self, name: str) -> OutputStatus | None:
        """Look up an output's status by name."""
        for output_name, status in self.outputs:
            if output_name == name:
                return status
        return None


@dataclass(frozen=True)
class CounterPair:
    """A skipped/total frame counter pair."""

    skipped: int = 0
    total: int = 0


@dataclass(frozen=True)
class Baseline:
    """Offsets subtracted from raw counters to implement a user reset.

    Starts all-zero. Replaced wholesale on reset; individual groups are zeroed
    when their underlying counter rolls back.
    """

    render: CounterPair = CounterPair()
    output: CounterPair = CounterPair()
    outputs: dict[str, CounterPair] = field(default_factory=dict)

    def for_output(self, name: str) -> CounterPair:
        """Return the baseline entry for an output, zero if none was recorded."""
        return self.outputs.get(name, CounterPair())
