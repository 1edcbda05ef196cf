# src/obs_pulse/sampler.py
"""Periodic stats sampling over the OBS control socket.

Each tick sends one batch: the output list, global stats, and a status request
for every output name learned on the previous tick. Status results are paired
with names by position, so a new output is first queried one tick after it
appears, and a deleted output is queried once more (and dropped) before it
leaves the known list.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Protocol

import structlog

from obs_pulse.models import GlobalStats, OutputStatus, Snapshot
from obs_pulse.obs_client import RequestFailed

log = structlog.get_logger()

POLLING_INTERVAL = 2.0


class TickFailed(Exception):
    """A tick's batch came back unusable. Nothing was committed."""


class StatsSource(Protocol):
    """The transport calls the sampler needs (satisfied by ObsClient)."""

    async def call(
        self, request_type: str, data: dict[str, Any] | None = None
    ) -> dict[str, Any]: ...

    async def call_batch(
        self, requests: list[dict[str, Any]]
    ) -> list[dict[str, Any] | None]: ...


class SnapshotPair:
    """The current snapshot and the one committed immediately before it."""

    def __init__(self) -> None:
        self.current: Snapshot | None = None
        self.previous: Snapshot | None = None
        self.tick_count = 0

    def commit(self, snapshot: Snapshot) -> None:
        """Rotate: current becomes previous, snapshot becomes current."""
        self.previous, self.current = self.current, snapshot
        self.tick_count += 1

    def clear(self) -> None:
        self.current = None
        self.previous = None
        self.tick_count = 0


def parse_output_names(output_list: dict[str, Any]) -> list[str]:
    """Extract output names, in order, from a GetOutputList response."""
    return [str(o["outputName"]) for o in output_list.get("outputs", []) if "outputName" in o]


def build_snapshot(
    stats: dict[str, Any],
    names: list[str],
    statuses: list[dict[str, Any] | None],
    taken_at: float | None = None,
) -> Snapshot:
    """Build a snapshot, pairing names with status results by position.

    Outputs whose status is missing (deleted since the list was fetched) are dropped.
    """
    outputs = tuple(
        (name, OutputStatus.from_dict(status))
        for name, status in zip(names, statuses)
        if status
    )
    return Snapshot(
        taken_at=taken_at if taken_at is not None else time.time(),
        stats=GlobalStats.from_dict(stats),
        outputs=outputs,
    )


class StatsPoller:
    """Runs ticks against one connection and commits them to a SnapshotPair.

    Ticks are serialized: the next one starts only after the previous batch
    resolved. The first tick runs immediately.
    """

    def __init__(
        self,
        source: StatsSource,
        pair: SnapshotPair,
        interval: float = POLLING_INTERVAL,
        on_commit: Callable[[Snapshot, Snapshot | None], None] | None = None,
    ):
        self.source = source
        self.pair = pair
        self.interval = interval
        self.on_commit = on_commit
        self.output_names: list[str] = []
        self.failed_ticks = 0
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def tick(self) -> Snapshot | None:
        """Run one poll and commit its snapshot.

        Returns:
            The committed snapshot, or None if the poller was stopped mid-tick

        Raises:
            ConnectionError: If the transport fails
            RequestFailed: If the initial output list request fails
            TickFailed: If the batch results are unusable
        """
        if not self.output_names:
            self.output_names = parse_output_names(await self.source.call("GetOutputList"))

        names = list(self.output_names)
        requests: list[dict[str, Any]] = [
            {"requestType": "GetOutputList"},
            {"requestType": "GetStats"},
        ]
        requests.extend(
            {"requestType": "GetOutputStatus", "requestData": {"outputName": name}}
            for name in names
        )

        results = await self.source.call_batch(requests)

        if self._stop_event.is_set():
            return None
        if len(results) < 2 or results[1] is None:
            raise TickFailed("GetStats returned no data")

        try:
            snapshot = build_snapshot(results[1], names, results[2:])
            next_names = parse_output_names(results[0]) if results[0] is not None else None
        except (TypeError, ValueError, KeyError, AttributeError) as e:
            raise TickFailed(f"Malformed batch response: {e}") from e

        # Rotation and commit callback run without yielding to the event loop
        previous = self.pair.current
        self.pair.commit(snapshot)
        if self.on_commit is not None:
            self.on_commit(snapshot, previous)

        if next_names is not None:
            self.output_names = next_names
        return snapshot

    def start(self) -> None:
        """Start the periodic loop as a task."""
        if self.running:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run())

    def cancel(self) -> None:
        """Stop the loop without waiting for it, for use from synchronous callbacks."""
        self._stop_event.set()
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    async def stop(self) -> None:
        """Stop the loop. No tick fires or commits after this returns."""
        self._stop_event.set()
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        """Tick every interval until stopped.

        A failed tick is logged and skipped; the next tick runs on schedule.
        """
        loop = asyncio.get_running_loop()
        while not self._stop_event.is_set():
            tick_start = loop.time()
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except (ConnectionError, RequestFailed, TickFailed) as e:
                self.failed_ticks += 1
                log.warning("tick_failed", error=str(e), failed_ticks=self.failed_ticks)
            except Exception as e:
                self.failed_ticks += 1
                log.error("tick_failed", error=f"{type(e).__name__}: {e}")

            # Sleep for what's left of the interval, waking early on stop
            sleep_time = self.interval - (loop.time() - tick_start)
            if sleep_time > 0:
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=sleep_time)
                    break
                except asyncio.TimeoutError:
                    pass
