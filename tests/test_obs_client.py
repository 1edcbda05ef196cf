"""Tests for the obs-websocket client."""

import asyncio

import pytest

from obs_pulse.obs_client import (
    AuthenticationFailed,
    ConnectError,
    InvalidAddress,
    ObsClient,
    RequestFailed,
    auth_response,
    normalize_address,
)
from tests.conftest import CHALLENGE, SALT, output_list_payload, stats_payload, status_payload


class TestNormalizeAddress:
    """Tests for normalize_address()."""

    def test_adds_ws_scheme(self) -> None:
        assert normalize_address("127.0.0.1:4455") == "ws://127.0.0.1:4455"

    def test_keeps_explicit_scheme(self) -> None:
        assert normalize_address("wss://obs.local:4455") == "wss://obs.local:4455"

    def test_strips_whitespace(self) -> None:
        assert normalize_address("  localhost:4455 ") == "ws://localhost:4455"

    @pytest.mark.parametrize(
        "address",
        ["", "   ", "http://127.0.0.1:4455", "ws://", "127.0.0.1:notaport", "127.0.0.1:0"],
    )
    def test_rejects_unusable(self, address: str) -> None:
        with pytest.raises(InvalidAddress):
            normalize_address(address)


def test_auth_response_is_deterministic():
    """Same inputs give the same base64 string; password changes it."""
    first = auth_response("supersecretpassword", SALT, CHALLENGE)
    assert first == auth_response("supersecretpassword", SALT, CHALLENGE)
    assert first != auth_response("other", SALT, CHALLENGE)
    assert first.endswith("=")


def test_request_failed_message():
    err = RequestFailed("GetOutputStatus", 600, "No such output")
    assert err.code == 600
    assert "GetOutputStatus" in str(err)
    assert "No such output" in str(err)


class TestObsClient:
    """Tests against an in-process obs-websocket server."""

    @pytest.mark.asyncio
    async def test_connect_and_call(self, obs_server):
        obs_server.responses["GetOutputList"] = output_list_payload("adv_stream")
        client = ObsClient()
        await client.connect(obs_server.address)
        try:
            assert client.connected
            assert client.url == f"ws://{obs_server.address}"
            assert obs_server.identify["rpcVersion"] == 1
            assert "authentication" not in obs_server.identify

            data = await client.call("GetOutputList")
            assert data == output_list_payload("adv_stream")
        finally:
            await client.disconnect()
        assert not client.connected

    @pytest.mark.asyncio
    async def test_call_failure_raises(self, obs_server):
        client = ObsClient()
        await client.connect(obs_server.address)
        try:
            with pytest.raises(RequestFailed) as excinfo:
                await client.call("GetOutputStatus", {"outputName": "missing"})
            assert excinfo.value.code == 600
            assert obs_server.requests[-1]["d"]["requestData"] == {"outputName": "missing"}
        finally:
            await client.disconnect()

    @pytest.mark.asyncio
    async def test_batch_results_in_order(self, obs_server):
        """Failed sub-requests come back as None at their position."""
        obs_server.responses["GetOutputList"] = output_list_payload("adv_stream")
        obs_server.responses["GetStats"] = stats_payload(1, 100)
        obs_server.responses["GetOutputStatus"] = status_payload(1, 50)
        obs_server.responses["GetRecordStatus"] = None
        client = ObsClient()
        await client.connect(obs_server.address)
        try:
            results = await client.call_batch(
                [
                    {"requestType": "GetOutputList"},
                    {"requestType": "GetStats"},
                    {"requestType": "GetRecordStatus"},
                    {
                        "requestType": "GetOutputStatus",
                        "requestData": {"outputName": "adv_stream"},
                    },
                ]
            )
        finally:
            await client.disconnect()

        assert results[0] == output_list_payload("adv_stream")
        assert results[1]["renderTotalFrames"] == 100
        assert results[2] is None
        assert results[3]["outputTotalFrames"] == 50

        batch = obs_server.requests[-1]
        assert batch["op"] == 8
        assert batch["d"]["haltOnFailure"] is False
        assert [r["requestId"] for r in batch["d"]["requests"]] == ["0", "1", "2", "3"]

    @pytest.mark.asyncio
    async def test_password_authentication(self):
        from tests.conftest import FakeObsServer

        server = FakeObsServer(password="secret")
        await server.start()
        try:
            client = ObsClient()
            await client.connect(server.address, "secret")
            assert server.identify["authentication"] == auth_response("secret", SALT, CHALLENGE)
            await client.disconnect()

            with pytest.raises(AuthenticationFailed, match="Authentication failed"):
                await ObsClient().connect(server.address, "wrong")
        finally:
            await server.stop()

    @pytest.mark.asyncio
    async def test_connection_refused(self, obs_server):
        port = obs_server.port
        await obs_server.stop()
        with pytest.raises(ConnectError):
            await ObsClient(connect_timeout=1.0).connect(f"127.0.0.1:{port}")

    @pytest.mark.asyncio
    async def test_invalid_address(self):
        with pytest.raises(InvalidAddress):
            await ObsClient().connect("ftp://127.0.0.1:4455")

    @pytest.mark.asyncio
    async def test_call_when_not_connected(self):
        with pytest.raises(ConnectionError):
            await ObsClient().call("GetStats")

    @pytest.mark.asyncio
    async def test_server_close_fires_on_disconnect(self, obs_server):
        dropped = asyncio.Event()
        client = ObsClient()
        client.on_disconnect = dropped.set
        await client.connect(obs_server.address)

        await obs_server.drop_all()
        await asyncio.wait_for(dropped.wait(), timeout=2.0)
        assert not client.connected
        with pytest.raises(ConnectionError):
            await client.call("GetStats")

    @pytest.mark.asyncio
    async def test_disconnect_does_not_fire_on_disconnect(self, obs_server):
        fired = []
        client = ObsClient()
        client.on_disconnect = lambda: fired.append(True)
        await client.connect(obs_server.address)

        await client.disconnect()
        await asyncio.sleep(0.05)
        assert fired == []

    @pytest.mark.asyncio
    async def test_disconnect_right_after_connect(self, obs_server):
        """Disconnecting before the receive loop ever ran closes cleanly."""
        fired = []
        client = ObsClient()
        client.on_disconnect = lambda: fired.append(True)
        await client.connect(obs_server.address)
        await client.disconnect()

        assert not client.connected
        assert client._recv_task is None
        assert client._ws is None
        assert fired == []
        with pytest.raises(ConnectionError):
            await client.call("GetStats")

    @pytest.mark.asyncio
    async def test_cancelled_handshake_closes_socket(self, obs_server):
        obs_server.hold_hello = True
        client = ObsClient(connect_timeout=5.0)
        task = asyncio.create_task(client.connect(obs_server.address))

        async def _opened() -> None:
            while not obs_server.opened:
                await asyncio.sleep(0.001)

        await asyncio.wait_for(_opened(), timeout=2.0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert client._ws is None
        assert not client.connected
