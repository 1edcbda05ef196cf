"""Classified view of an adjusted snapshot pair, ready for display."""

from __future__ import annotations

from dataclasses import dataclass

from obs_pulse.classify import (
    THRESHOLD_CRITICAL,
    THRESHOLD_WARNING,
    FrameCounter,
    bitrate_kbps,
    classify,
    frames_dropped,
)
from obs_pulse.models import GlobalStats, OutputStatus, Snapshot, output_label


@dataclass(frozen=True)
class OutputView:
    """One output row."""

    name: str
    label: str
    status: OutputStatus
    frames: FrameCounter
    dropped: bool
    bitrate_kbps: float

    @property
    def state(self) -> str:
        """Display state: reconnecting, active or stopped."""
        if self.status.reconnecting:
            return "reconnecting"
        return "active" if self.status.active else "stopped"


@dataclass(frozen=True)
class DashboardView:
    """Everything the presentation layer needs for one tick."""

    taken_at: float
    stats: GlobalStats
    render: FrameCounter
    encode: FrameCounter
    render_dropped: bool
    encode_dropped: bool
    outputs: tuple[OutputView, ...]


def build_view(
    current: Snapshot,
    previous: Snapshot | None,
    warning: float = THRESHOLD_WARNING,
    critical: float = THRESHOLD_CRITICAL,
    period_ms: float = 2000,
) -> DashboardView:
    """Classify an adjusted (current, previous) pair.

    Outputs are matched to their previous entry by name; an output with no
    previous entry reports no drop and zero bitrate.
    """
    stats = current.stats
    prev_stats = previous.stats if previous is not None else None

    outputs = []
    for name, status in current.outputs:
        prev_status = previous.output(name) if previous is not None else None
        outputs.append(
            OutputView(
                name=name,
                label=output_label(name),
                status=status,
                frames=classify(status.total_frames, status.skipped_frames, warning, critical),
                dropped=frames_dropped(
                    status.skipped_frames,
                    prev_status.skipped_frames if prev_status is not None else None,
                ),
                bitrate_kbps=bitrate_kbps(
                    status.bytes,
                    prev_status.bytes if prev_status is not None else None,
                    period_ms,
                ),
            )
        )

    return DashboardView(
        taken_at=current.taken_at,
        stats=stats,
        render=classify(
            stats.render_total_frames, stats.render_skipped_frames, warning, critical
        ),
        encode=classify(
            stats.output_total_frames, stats.output_skipped_frames, warning, critical
        ),
        render_dropped=frames_dropped(
            stats.render_skipped_frames,
            prev_stats.render_skipped_frames if prev_stats is not None else None,
        ),
        encode_dropped=frames_dropped(
            stats.output_skipped_frames,
            prev_stats.output_skipped_frames if prev_stats is not None else None,
        ),
        outputs=tuple(outputs),
    )
