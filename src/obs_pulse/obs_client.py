# src/obs_pulse/obs_client.py

"""obs-websocket v5 client: one persistent connection, single and batched requests."""

from __future__ import annotations

import asyncio
import base64
import hashlib
import itertools
import json
from typing import Any, Callable
from urllib.parse import urlparse

import structlog
import websockets
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI

log = structlog.get_logger()

SUBPROTOCOL = "obswebsocket.json"
RPC_VERSION = 1

# obs-websocket opcodes
OP_HELLO = 0
OP_IDENTIFY = 1
OP_IDENTIFIED = 2
OP_REQUEST = 6
OP_REQUEST_RESPONSE = 7
OP_REQUEST_BATCH = 8
OP_REQUEST_BATCH_RESPONSE = 9

CLOSE_AUTHENTICATION_FAILED = 4009

# Batch execution type: serial, in the order given
EXECUTION_SERIAL_REALTIME = 0


class ConnectError(Exception):
    """Connection could not be established. Message is shown to the user."""


class InvalidAddress(ConnectError):
    """Address is not a usable websocket URL."""


class AuthenticationFailed(ConnectError):
    """Remote rejected the password. Message is the remote's close reason."""


class RequestFailed(Exception):
    """A single request came back with a failed status."""

    def __init__(self, request_type: str, code: int, comment: str | None = None):
        self.request_type = request_type
        self.code = code
        self.comment = comment
        detail = f": {comment}" if comment else ""
        super().__init__(f"{request_type} failed with code {code}{detail}")


def normalize_address(address: str) -> str:
    """Turn a user-supplied address into a websocket URL.

    Addresses without a scheme default to ws:// (e.g. "127.0.0.1:4455").

    Raises:
        InvalidAddress: If the result is not a ws:// or wss:// URL with a host
    """
    address = address.strip()
    if not address:
        raise InvalidAddress("Address is empty")
    if "://" not in address:
        address = f"ws://{address}"

    try:
        parsed = urlparse(address)
        port = parsed.port  # Raises ValueError on a bad port
    except ValueError as e:
        raise InvalidAddress(f"Invalid address {address!r}: {e}") from e

    if parsed.scheme not in ("ws", "wss") or not parsed.hostname:
        raise InvalidAddress(f"Invalid address {address!r}: expected ws://host:port")
    if port is not None and port == 0:
        raise InvalidAddress(f"Invalid address {address!r}: port must be non-zero")
    return address


def auth_response(password: str, salt: str, challenge: str) -> str:
    """Compute the Identify authentication string for a Hello challenge."""
    secret = base64.b64encode(hashlib.sha256((password + salt).encode()).digest()).decode()
    return base64.b64encode(hashlib.sha256((secret + challenge).encode()).digest()).decode()


class ObsClient:
    """Websocket client for the OBS control socket.

    Connects or throws. Reconnection is the supervisor's job; this class only
    reports unexpected drops through on_disconnect.
    """

    def __init__(self, connect_timeout: float = 5.0) -> None:
        self.connect_timeout = connect_timeout
        self.url: str | None = None
        self.on_disconnect: Callable[[], None] | None = None
        self._ws: Any = None
        self._recv_task: asyncio.Task | None = None
        self._pending: dict[str, asyncio.Future] = {}
        self._ids = itertools.count(1)
        self._closing = False

    @property
    def connected(self) -> bool:
        """Whether the client is connected and identified."""
        return self._ws is not None and self._recv_task is not None and not self._closing

    async def connect(self, url: str, password: str = "") -> None:
        """Open the websocket and complete the Hello/Identify handshake.

        Raises:
            InvalidAddress: If url is not a websocket URL
            AuthenticationFailed: If the remote rejects the password
            ConnectError: On any other connection failure
        """
        url = normalize_address(url)
        self._closing = False
        try:
            self._ws = await asyncio.wait_for(
                websockets.connect(url, subprotocols=[SUBPROTOCOL]),
                timeout=self.connect_timeout,
            )
        except InvalidURI as e:
            raise InvalidAddress(f"Invalid address {url!r}: {e}") from e
        except (OSError, InvalidHandshake, asyncio.TimeoutError) as e:
            raise ConnectError(f"Could not connect to {url}: {e}") from e

        try:
            await self._identify(password)
        except ConnectionClosed as e:
            await self._drop_socket()
            if e.rcvd is not None and e.rcvd.code == CLOSE_AUTHENTICATION_FAILED:
                raise AuthenticationFailed(e.rcvd.reason or "Authentication failed") from e
            reason = e.rcvd.reason if e.rcvd is not None else str(e)
            raise ConnectError(f"Connection closed during handshake: {reason}") from e
        except (ValueError, KeyError, asyncio.TimeoutError) as e:
            await self._drop_socket()
            raise ConnectError(f"Handshake with {url} failed: {e}") from e
        except BaseException:
            # Cancelled mid-handshake: the socket is not ours to keep
            await self._drop_socket()
            raise

        self.url = url
        self._recv_task = asyncio.create_task(self._receive_loop(self._ws))
        log.info("obs_identified", url=url)

    async def _identify(self, password: str) -> None:
        hello = await self._read_op(OP_HELLO)
        identify: dict[str, Any] = {"rpcVersion": RPC_VERSION, "eventSubscriptions": 0}
        auth = hello.get("authentication")
        if auth:
            identify["authentication"] = auth_response(password, auth["salt"], auth["challenge"])
        await self._ws.send(json.dumps({"op": OP_IDENTIFY, "d": identify}))
        await self._read_op(OP_IDENTIFIED)

    async def _read_op(self, op: int) -> dict[str, Any]:
        raw = await asyncio.wait_for(self._ws.recv(), timeout=self.connect_timeout)
        msg = json.loads(raw)
        if msg.get("op") != op:
            raise ValueError(f"Expected op {op}, got {msg.get('op')}")
        return msg.get("d", {})

    async def _drop_socket(self) -> None:
        ws, self._ws = self._ws, None
        if ws is not None:
            try:
                await ws.close()
            except Exception:
                pass

    async def disconnect(self) -> None:
        """Close the connection. Never fires on_disconnect."""
        self._closing = True
        task, self._recv_task = self._recv_task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self._drop_socket()
        self._fail_pending(ConnectionError("Disconnected"))

    async def _receive_loop(self, ws: Any) -> None:
        """Dispatch responses to waiting requests until the socket closes."""
        try:
            async for raw in ws:
                try:
                    msg = json.loads(raw)
                except json.JSONDecodeError:
                    log.warning("obs_invalid_message")
                    continue
                self._dispatch(msg)
        except ConnectionClosed:
            pass
        finally:
            self._fail_pending(ConnectionError("Connection closed by server"))

        if not self._closing:
            self._closing = True
            self._ws = None
            log.warning("obs_connection_closed", url=self.url)
            if self.on_disconnect is not None:
                self.on_disconnect()

    def _dispatch(self, msg: dict[str, Any]) -> None:
        if msg.get("op") not in (OP_REQUEST_RESPONSE, OP_REQUEST_BATCH_RESPONSE):
            return  # Events and anything else we didn't ask for
        data = msg.get("d", {})
        future = self._pending.pop(data.get("requestId", ""), None)
        if future is not None and not future.done():
            future.set_result(data)

    def _fail_pending(self, exc: Exception) -> None:
        pending, self._pending = self._pending, {}
        for future in pending.values():
            if not future.done():
                future.set_exception(exc)

    async def _send_request(self, op: int, payload: dict[str, Any]) -> dict[str, Any]:
        if not self.connected:
            raise ConnectionError("Not connected")

        request_id = str(next(self._ids))
        payload["requestId"] = request_id
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await self._ws.send(json.dumps({"op": op, "d": payload}))
        except ConnectionClosed as e:
            self._pending.pop(request_id, None)
            raise ConnectionError(f"Send failed: {e}") from e
        return await future

    async def call(self, request_type: str, data: dict[str, Any] | None = None) -> dict[str, Any]:
        """Send one request and return its responseData.

        Raises:
            ConnectionError: If not connected or the connection drops
            RequestFailed: If the remote reports a failed status
        """
        payload: dict[str, Any] = {"requestType": request_type}
        if data is not None:
            payload["requestData"] = data
        response = await self._send_request(OP_REQUEST, payload)

        status = response.get("requestStatus", {})
        if not status.get("result", False):
            raise RequestFailed(request_type, status.get("code", 0), status.get("comment"))
        return response.get("responseData", {})

    async def call_batch(self, requests: list[dict[str, Any]]) -> list[dict[str, Any] | None]:
        """Send requests as one batch and return their responseData in order.

        Each request is {"requestType": ..., "requestData": ...optional}.
        A sub-request that failed yields None at its position.

        Raises:
            ConnectionError: If not connected or the connection drops
        """
        batch = []
        for index, request in enumerate(requests):
            entry = {"requestType": request["requestType"], "requestId": str(index)}
            if request.get("requestData") is not None:
                entry["requestData"] = request["requestData"]
            batch.append(entry)

        response = await self._send_request(
            OP_REQUEST_BATCH,
            {
                "haltOnFailure": False,
                "executionType": EXECUTION_SERIAL_REALTIME,
                "requests": batch,
            },
        )

        results: list[dict[str, Any] | None] = [None] * len(requests)
        for result in response.get("results", []):
            try:
                index = int(result.get("requestId", -1))
            except (TypeError, ValueError):
                continue
            if not 0 <= index < len(requests):
                continue
            if result.get("requestStatus", {}).get("result", False):
                results[index] = result.get("responseData", {})
        return results
