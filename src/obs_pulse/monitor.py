# src/obs_pulse/monitor.py
"""Monitoring session: connection, sampling and baseline state in one owner.

User actions (connect, disconnect, forget, reset) are plain method calls.
Snapshot and baseline state is mutated only in the commit callback of a tick
or in reset_baseline(), both of which run without yielding to the event loop.
"""

from __future__ import annotations

from typing import Callable

import structlog

from obs_pulse.config import Config
from obs_pulse.credentials import CredentialStore
from obs_pulse.dashboard import DashboardView, build_view
from obs_pulse.models import Baseline, Snapshot
from obs_pulse.obs_client import ObsClient
from obs_pulse.reconciler import BaselineReconciler
from obs_pulse.sampler import SnapshotPair, StatsPoller
from obs_pulse.supervisor import ReconnectSupervisor

log = structlog.get_logger()


class Monitor:
    """Owns the snapshot pair and baseline for one OBS instance."""

    def __init__(
        self,
        config: Config | None = None,
        store: CredentialStore | None = None,
        client_factory: Callable[[], ObsClient] | None = None,
    ):
        self.config = config or Config()
        if client_factory is None:
            timeout = self.config.connection.connect_timeout
            client_factory = lambda: ObsClient(connect_timeout=timeout)  # noqa: E731
        if store is None and self.config.connection.remember_credentials:
            store = CredentialStore(self.config.credentials_path)

        self.pair = SnapshotPair()
        self.reconciler = BaselineReconciler()
        self.supervisor = ReconnectSupervisor(
            store=store,
            client_factory=client_factory,
            reconnect_delay=self.config.connection.reconnect_delay,
        )
        self.supervisor.on_connected = self._handle_connected
        self.supervisor.on_lost = self._handle_lost
        self.poller: StatsPoller | None = None

        # Presentation hooks
        self.on_update: Callable[[DashboardView], None] | None = None
        self.on_status: Callable[[str, str], None] | None = None

    @property
    def connected(self) -> bool:
        return self.supervisor.connected

    @property
    def baseline(self) -> Baseline:
        return self.reconciler.baseline

    # ─────────────────────────────────────────────────────────────
    # Commands
    # ─────────────────────────────────────────────────────────────

    async def connect(self, address: str, password: str = "") -> None:
        """Start a fresh session against OBS.

        Clears the snapshot pair and baseline, so the first tick has no
        previous snapshot and never reports dropped frames.

        Raises:
            ConnectError: If the connection can't be established
        """
        await self._stop_poller()
        self.pair.clear()
        self.reconciler.clear()
        await self.supervisor.connect(address, password)

    async def disconnect(self) -> None:
        """Stop sampling and close the connection. No reconnect follows."""
        await self._stop_poller()
        await self.supervisor.disconnect()
        self._status("disconnected", "Disconnected")

    def forget(self) -> None:
        """Forget stored credentials; the current connection stays up."""
        self.supervisor.forget()

    def reset_baseline(self) -> Baseline | None:
        """Zero the frame counters at the current snapshot.

        Returns None if nothing has been sampled yet.
        """
        current = self.pair.current
        if current is None:
            log.info("baseline_reset_skipped", reason="no snapshot yet")
            return None
        baseline = self.reconciler.reset(current)
        self._publish()
        return baseline

    # ─────────────────────────────────────────────────────────────
    # Views
    # ─────────────────────────────────────────────────────────────

    def adjusted(self) -> tuple[Snapshot, Snapshot | None] | None:
        """Current and previous snapshots with the baseline applied."""
        if self.pair.current is None:
            return None
        return self.reconciler.adjust(self.pair.current, self.pair.previous)

    def view(self) -> DashboardView | None:
        """Classified dashboard view of the adjusted pair."""
        adjusted = self.adjusted()
        if adjusted is None:
            return None
        current, previous = adjusted
        thresholds = self.config.thresholds
        return build_view(
            current,
            previous,
            warning=thresholds.warning,
            critical=thresholds.critical,
            period_ms=self.config.polling.interval_ms,
        )

    # ─────────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────────

    def _handle_connected(self, client: ObsClient, reconnected: bool) -> None:
        # Reconnects keep the pair and baseline so a counter rollback across
        # the drop is still detected on the first tick
        self.poller = StatsPoller(
            client,
            self.pair,
            interval=self.config.polling.interval,
            on_commit=self._handle_commit,
        )
        self.poller.start()
        self._status("connected", "Reconnected" if reconnected else f"Connected to {client.url}")

    def _handle_lost(self, reason: str, retrying: bool) -> None:
        poller, self.poller = self.poller, None
        if poller is not None:
            poller.cancel()
        if retrying:
            self._status("reconnecting", f"Connection lost, reconnecting ({reason})")
        else:
            self._status("disconnected", reason)

    def _handle_commit(self, current: Snapshot, previous: Snapshot | None) -> None:
        self.reconciler.observe(current, previous)
        self._publish()

    async def _stop_poller(self) -> None:
        poller, self.poller = self.poller, None
        if poller is not None:
            await poller.stop()

    def _publish(self) -> None:
        if self.on_update is None:
            return
        view = self.view()
        if view is not None:
            self.on_update(view)

    def _status(self, state: str, message: str) -> None:
        if self.on_status is not None:
            self.on_status(state, message)
