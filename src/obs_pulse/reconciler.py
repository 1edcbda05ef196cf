# src/obs_pulse/reconciler.py
"""Baseline reconciliation for resettable frame counters.

A user "reset" records the raw counters as a baseline; adjusted values are
raw minus baseline. OBS resets its own counters when an output restarts, so a
baseline is only valid while the counter it was taken from keeps climbing.
When a raw total falls below the previous tick's raw total, that group's
baseline is zeroed and adjusted == raw until the next user reset.

Counter groups are independent: render pair, global output pair, and one pair
per named output.
"""

from __future__ import annotations

from dataclasses import replace

import structlog

from obs_pulse.models import Baseline, CounterPair, Snapshot

log = structlog.get_logger()

_ZERO = CounterPair()


def reset(current: Snapshot) -> Baseline:
    """Build a new baseline from the raw values in the current snapshot."""
    stats = current.stats
    return Baseline(
        render=CounterPair(stats.render_skipped_frames, stats.render_total_frames),
        output=CounterPair(stats.output_skipped_frames, stats.output_total_frames),
        outputs={
            name: CounterPair(status.skipped_frames, status.total_frames)
            for name, status in current.outputs
        },
    )


def _rolled_back(entry: CounterPair, current_total: int, previous_total: int) -> bool:
    return entry.total != 0 and current_total < previous_total


def reconcile_rollback(
    current: Snapshot,
    previous: Snapshot | None,
    baseline: Baseline,
) -> Baseline:
    """Zero every baseline group whose raw total rolled back since the previous tick.

    Returns the baseline unchanged (same object) when nothing rolled back.
    """
    if previous is None:
        return baseline

    cur, prev = current.stats, previous.stats
    render = baseline.render
    output = baseline.output
    changed = False

    if _rolled_back(render, cur.render_total_frames, prev.render_total_frames):
        render = _ZERO
        changed = True
    if _rolled_back(output, cur.output_total_frames, prev.output_total_frames):
        output = _ZERO
        changed = True

    outputs = dict(baseline.outputs)
    for name, entry in baseline.outputs.items():
        status = current.output(name)
        prev_status = previous.output(name)
        if status is None or prev_status is None:
            continue
        if _rolled_back(entry, status.total_frames, prev_status.total_frames):
            outputs[name] = _ZERO
            changed = True

    if not changed:
        return baseline
    return Baseline(render=render, output=output, outputs=outputs)


def _adjust_one(snapshot: Snapshot, baseline: Baseline) -> Snapshot:
    stats = snapshot.stats
    adjusted_stats = replace(
        stats,
        render_skipped_frames=stats.render_skipped_frames - baseline.render.skipped,
        render_total_frames=stats.render_total_frames - baseline.render.total,
        output_skipped_frames=stats.output_skipped_frames - baseline.output.skipped,
        output_total_frames=stats.output_total_frames - baseline.output.total,
    )
    adjusted_outputs = []
    for name, status in snapshot.outputs:
        entry = baseline.for_output(name)
        adjusted_outputs.append(
            (
                name,
                replace(
                    status,
                    skipped_frames=status.skipped_frames - entry.skipped,
                    total_frames=status.total_frames - entry.total,
                ),
            )
        )
    return replace(snapshot, stats=adjusted_stats, outputs=tuple(adjusted_outputs))


def adjust(
    current: Snapshot,
    previous: Snapshot | None,
    baseline: Baseline,
) -> tuple[Snapshot, Snapshot | None]:
    """Subtract the baseline from both snapshots of a pair.

    Both sides use the same baseline so the pair stays comparable. Values are
    not clamped.
    """
    adjusted_previous = _adjust_one(previous, baseline) if previous is not None else None
    return _adjust_one(current, baseline), adjusted_previous


class BaselineReconciler:
    """Owns the baseline for one monitoring session."""

    def __init__(self) -> None:
        self.baseline = Baseline()

    def observe(self, current: Snapshot, previous: Snapshot | None) -> None:
        """Apply the rollback rule for a freshly committed pair. Call once per tick."""
        corrected = reconcile_rollback(current, previous, self.baseline)
        if corrected is self.baseline:
            return

        old = self.baseline
        if corrected.render is not old.render:
            log.info("rollback_detected", group="render", stale_total=old.render.total)
        if corrected.output is not old.output:
            log.info("rollback_detected", group="output", stale_total=old.output.total)
        for name, entry in old.outputs.items():
            if corrected.outputs.get(name) is not entry:
                log.info("rollback_detected", group="output", output=name, stale_total=entry.total)
        self.baseline = corrected

    def reset(self, current: Snapshot) -> Baseline:
        """Replace the baseline with the current raw counters."""
        self.baseline = reset(current)
        log.info(
            "baseline_reset",
            render_total=self.baseline.render.total,
            output_total=self.baseline.output.total,
            outputs=len(self.baseline.outputs),
        )
        return self.baseline

    def clear(self) -> None:
        """Drop back to the all-zero baseline."""
        self.baseline = Baseline()

    def adjust(
        self, current: Snapshot, previous: Snapshot | None
    ) -> tuple[Snapshot, Snapshot | None]:
        return adjust(current, previous, self.baseline)
