# src/obs_pulse/supervisor.py
"""Connection lifecycle for the OBS control socket.

One reconnect attempt after an unrequested drop, then give up and wait for the
user. Only disconnect() suppresses the reconnect.
"""

from __future__ import annotations

import asyncio
from typing import Callable

import structlog

from obs_pulse.credentials import CredentialStore, Credentials
from obs_pulse.obs_client import ConnectError, ObsClient, normalize_address

log = structlog.get_logger()

RECONNECT_DELAY = 1.0


class ReconnectSupervisor:
    """Owns the ObsClient and its connect/drop/reconnect lifecycle."""

    def __init__(
        self,
        store: CredentialStore | None = None,
        client_factory: Callable[[], ObsClient] = ObsClient,
        reconnect_delay: float = RECONNECT_DELAY,
    ):
        self.store = store
        self.client_factory = client_factory
        self.reconnect_delay = reconnect_delay
        self.client: ObsClient | None = None
        self.credentials: Credentials | None = None
        # Called with (client, reconnected) after every successful connect
        self.on_connected: Callable[[ObsClient, bool], None] | None = None
        # Called with (reason, retrying) on a drop, and again if the reconnect fails
        self.on_lost: Callable[[str, bool], None] | None = None
        self._reconnect_task: asyncio.Task | None = None

    @property
    def connected(self) -> bool:
        return self.client is not None and self.client.connected

    @property
    def reconnecting(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    async def connect(self, address: str, password: str = "") -> ObsClient:
        """Connect to OBS and remember the credentials.

        Raises:
            ConnectError: Bad address, authentication failure or network error
        """
        await self._close_client()
        self._cancel_reconnect()
        return await self._open(address, password, reconnect=False)

    async def _open(self, address: str, password: str, reconnect: bool) -> ObsClient:
        url = normalize_address(address)
        client = self.client_factory()
        try:
            await client.connect(url, password)
        except ConnectError as e:
            log.warning("connect_failed", url=url, error=str(e), reconnect=reconnect)
            raise

        client.on_disconnect = self._handle_drop
        self.client = client
        self.credentials = Credentials(address=address, password=password)
        log.info("connected", url=url, reconnect=reconnect)

        if self.store is not None:
            try:
                self.store.save(self.credentials)
            except OSError as e:
                log.warning("credentials_save_failed", path=str(self.store.path), error=str(e))
        if self.on_connected is not None:
            self.on_connected(client, reconnect)
        return client

    async def disconnect(self) -> None:
        """Close the connection without triggering a reconnect."""
        self._cancel_reconnect()
        await self._close_client()
        log.info("disconnected")

    def forget(self) -> None:
        """Clear stored credentials. The active connection is left alone."""
        if self.store is not None:
            self.store.forget()

    async def _close_client(self) -> None:
        client, self.client = self.client, None
        if client is not None:
            # Unhook first so the close can't look like a drop
            client.on_disconnect = None
            await client.disconnect()

    def _cancel_reconnect(self) -> None:
        if self._reconnect_task is not None and not self._reconnect_task.done():
            self._reconnect_task.cancel()
        self._reconnect_task = None

    def _handle_drop(self) -> None:
        """Observer for unrequested disconnects."""
        self.client = None
        log.warning("connection_lost")
        retry = self.credentials is not None and not self.reconnecting
        if retry:
            log.info("reconnect_scheduled", delay=self.reconnect_delay)
            self._reconnect_task = asyncio.create_task(self._reconnect_once(self.credentials))
        if self.on_lost is not None:
            self.on_lost("connection lost", retry)

    async def _reconnect_once(self, credentials: Credentials) -> None:
        await asyncio.sleep(self.reconnect_delay)
        try:
            await self._open(credentials.address, credentials.password, reconnect=True)
        except ConnectError as e:
            log.warning("reconnect_failed", error=str(e))
            if self.on_lost is not None:
                self.on_lost(f"reconnect failed: {e}", False)
