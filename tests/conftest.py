"""Shared test fixtures for obs-pulse."""

import asyncio
import json
from typing import Any

import pytest
import pytest_asyncio
import websockets

from obs_pulse.models import GlobalStats, OutputStatus, Snapshot
from obs_pulse.obs_client import ConnectError, auth_response

SALT = "lM1GncleQOaCu9lT1yeUZhFYnqhsLLP1G5lAGo3ixaI="
CHALLENGE = "+IxH4CnCiqpX1rM9scsNynZzbOe4KhDeYcTNS3PDaeY="


def make_stats(
    render_skipped: int = 0,
    render_total: int = 0,
    output_skipped: int = 0,
    output_total: int = 0,
    cpu: float = 1.5,
    memory: float = 512.0,
) -> GlobalStats:
    """Create GlobalStats with the frame counters that matter in tests."""
    return GlobalStats(
        cpu_usage=cpu,
        memory_usage=memory,
        available_disk_space=100_000.0,
        active_fps=60.0,
        average_frame_render_time=1.25,
        render_skipped_frames=render_skipped,
        render_total_frames=render_total,
        output_skipped_frames=output_skipped,
        output_total_frames=output_total,
    )


def make_output(
    skipped: int = 0,
    total: int = 0,
    bytes_sent: int = 0,
    active: bool = True,
    reconnecting: bool = False,
) -> OutputStatus:
    """Create an OutputStatus for testing."""
    return OutputStatus(
        active=active,
        reconnecting=reconnecting,
        bytes=bytes_sent,
        skipped_frames=skipped,
        total_frames=total,
    )


def make_snapshot(
    render: tuple[int, int] = (0, 0),
    output: tuple[int, int] = (0, 0),
    outputs: dict[str, OutputStatus] | None = None,
    taken_at: float = 1_700_000_000.0,
) -> Snapshot:
    """Create a Snapshot from (skipped, total) pairs."""
    return Snapshot(
        taken_at=taken_at,
        stats=make_stats(render[0], render[1], output[0], output[1]),
        outputs=tuple((outputs or {}).items()),
    )


def stats_payload(render_skipped: int = 0, render_total: int = 0, **extra: Any) -> dict:
    """Build a GetStats responseData payload."""
    payload = {
        "cpuUsage": 3.2,
        "memoryUsage": 400.5,
        "availableDiskSpace": 20_000.0,
        "activeFps": 60.0,
        "averageFrameRenderTime": 0.9,
        "renderSkippedFrames": render_skipped,
        "renderTotalFrames": render_total,
        "outputSkippedFrames": 0,
        "outputTotalFrames": 0,
        "webSocketSessionIncomingMessages": 1,
        "webSocketSessionOutgoingMessages": 1,
    }
    payload.update(extra)
    return payload


def output_list_payload(*names: str) -> dict:
    """Build a GetOutputList responseData payload."""
    return {"outputs": [{"outputName": name, "outputKind": "test"} for name in names]}


def status_payload(skipped: int = 0, total: int = 0, bytes_sent: int = 0) -> dict:
    """Build a GetOutputStatus responseData payload."""
    return {
        "outputActive": True,
        "outputReconnecting": False,
        "outputTimecode": "00:00:10.000",
        "outputDuration": 10_000,
        "outputCongestion": 0.0,
        "outputBytes": bytes_sent,
        "outputSkippedFrames": skipped,
        "outputTotalFrames": total,
    }


# ─────────────────────────────────────────────────────────────────────────────
# Fake transport for sampler tests
# ─────────────────────────────────────────────────────────────────────────────


class FakeSource:
    """Scripted StatsSource.

    Each call_batch pops the next scripted result list; an Exception instance in
    the script is raised instead. An optional gate holds the batch until released.
    """

    def __init__(self, output_names: list[str] | None = None):
        self.output_names = output_names or []
        self.script: list[Any] = []
        self.batches: list[list[dict]] = []
        self.calls: list[str] = []
        self.gate: asyncio.Event | None = None

    async def call(self, request_type: str, data: dict | None = None) -> dict:
        self.calls.append(request_type)
        return output_list_payload(*self.output_names)

    async def call_batch(self, requests: list[dict]) -> list[dict | None]:
        self.batches.append(requests)
        if self.gate is not None:
            await self.gate.wait()
        result = self.script.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


# ─────────────────────────────────────────────────────────────────────────────
# Fake client for supervisor/monitor tests
# ─────────────────────────────────────────────────────────────────────────────


class FakeClient:
    """In-memory ObsClient stand-in."""

    def __init__(self, factory: "FakeClientFactory"):
        self.factory = factory
        self.url: str | None = None
        self.password: str | None = None
        self.on_disconnect = None
        self.connected = False
        self.disconnect_calls = 0

    async def connect(self, url: str, password: str = "") -> None:
        self.factory.attempts.append((url, password))
        if self.factory.failures:
            raise self.factory.failures.pop(0)
        self.url = url
        self.password = password
        self.connected = True

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        self.connected = False

    def drop(self) -> None:
        """Simulate the remote closing the connection."""
        self.connected = False
        if self.on_disconnect is not None:
            self.on_disconnect()

    async def call(self, request_type: str, data: dict | None = None) -> dict:
        return output_list_payload(*self.factory.output_names)

    async def call_batch(self, requests: list[dict]) -> list[dict | None]:
        self.factory.batches += 1
        stats = self.factory.stats.pop(0) if self.factory.stats else stats_payload()
        results: list[dict | None] = [output_list_payload(*self.factory.output_names), stats]
        results.extend(status_payload() for _ in requests[2:])
        return results


class FakeClientFactory:
    """Builds FakeClients and records every connection attempt."""

    def __init__(self) -> None:
        self.clients: list[FakeClient] = []
        self.attempts: list[tuple[str, str]] = []
        self.failures: list[ConnectError] = []
        self.output_names: list[str] = []
        self.stats: list[dict] = []
        self.batches = 0

    def __call__(self, **kwargs: Any) -> FakeClient:
        client = FakeClient(self)
        self.clients.append(client)
        return client

    @property
    def last(self) -> FakeClient:
        return self.clients[-1]


@pytest.fixture
def client_factory() -> FakeClientFactory:
    return FakeClientFactory()


# ─────────────────────────────────────────────────────────────────────────────
# In-process obs-websocket server
# ─────────────────────────────────────────────────────────────────────────────


class FakeObsServer:
    """Minimal obs-websocket v5 server for transport tests.

    responses maps requestType to responseData; None marks a failed request.
    hold_hello keeps new connections waiting without a Hello until they close.
    """

    def __init__(self, password: str = ""):
        self.password = password
        self.responses: dict[str, dict | None] = {}
        self.requests: list[dict] = []
        self.identify: dict | None = None
        self.close_after_identify = False
        self.hold_hello = False
        self.opened = 0
        self.port = 0
        self._server: Any = None
        self._connections: list[Any] = []

    @property
    def address(self) -> str:
        return f"127.0.0.1:{self.port}"

    async def start(self) -> None:
        self._server = await websockets.serve(
            self._handler, "127.0.0.1", 0, subprotocols=["obswebsocket.json"]
        )
        self.port = self._server.sockets[0].getsockname()[1]

    async def stop(self) -> None:
        self._server.close()
        await self._server.wait_closed()

    async def drop_all(self) -> None:
        for ws in self._connections:
            await ws.close(1011, "going away")

    def _result(self, request_type: str, request_id: str) -> dict:
        data = self.responses.get(request_type)
        if data is None:
            return {
                "requestType": request_type,
                "requestId": request_id,
                "requestStatus": {"result": False, "code": 600, "comment": "No such output"},
            }
        return {
            "requestType": request_type,
            "requestId": request_id,
            "requestStatus": {"result": True, "code": 100},
            "responseData": data,
        }

    async def _handler(self, ws) -> None:
        self.opened += 1
        if self.hold_hello:
            await ws.wait_closed()
            return
        hello: dict[str, Any] = {"obsWebSocketVersion": "5.1.0", "rpcVersion": 1}
        if self.password:
            hello["authentication"] = {"salt": SALT, "challenge": CHALLENGE}
        await ws.send(json.dumps({"op": 0, "d": hello}))

        msg = json.loads(await ws.recv())
        self.identify = msg["d"]
        expected = auth_response(self.password, SALT, CHALLENGE)
        if self.password and self.identify.get("authentication") != expected:
            await ws.close(4009, "Authentication failed.")
            return
        await ws.send(json.dumps({"op": 2, "d": {"negotiatedRpcVersion": 1}}))
        self._connections.append(ws)
        if self.close_after_identify:
            await ws.close(1011, "going away")
            return

        try:
            async for raw in ws:
                msg = json.loads(raw)
                d = msg["d"]
                self.requests.append(msg)
                if msg["op"] == 6:
                    reply = self._result(d["requestType"], d["requestId"])
                    await ws.send(json.dumps({"op": 7, "d": reply}))
                elif msg["op"] == 8:
                    results = [self._result(r["requestType"], r["requestId"]) for r in d["requests"]]
                    reply = {"requestId": d["requestId"], "results": results}
                    await ws.send(json.dumps({"op": 9, "d": reply}))
        except websockets.exceptions.ConnectionClosed:
            pass


@pytest_asyncio.fixture
async def obs_server():
    server = FakeObsServer()
    await server.start()
    yield server
    await server.stop()
