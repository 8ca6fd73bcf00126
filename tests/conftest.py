"""Test fixtures for rconctl tests."""

import asyncio
import os
import struct
from collections.abc import Iterator
from typing import Any
from unittest.mock import patch

import pytest

# Run Qt headless so the suite works without a display server.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from rconctl.api.protocol import MAX_RESPONSE_BODY, Packet, PacketType, decode_packet
from rconctl.core.render import MessageNotFoundError, Renderer, RenderError
from rconctl.core.state import SharedState


class FakeRconStream:
    """In-memory RCON server connection.

    Acts as both StreamReader and StreamWriter: packets written by the
    client are answered immediately into the read buffer.
    """

    def __init__(self, host: "FakeRconHost") -> None:
        self._host = host
        self._buffer = bytearray()
        self._closed = False
        self.authenticated = False

    # -- server side --------------------------------------------------------

    def _reply(self, request_id: int, packet_type: int, body: str = "") -> None:
        self._buffer += Packet(request_id, packet_type, body).encode()

    def _handle(self, packet: Packet) -> None:
        if packet.type == PacketType.AUTH:
            if packet.body == self._host.password:
                self.authenticated = True
                self._reply(packet.request_id, PacketType.RESPONSE_VALUE)
                self._reply(packet.request_id, PacketType.AUTH_RESPONSE)
            else:
                self._reply(-1, PacketType.AUTH_RESPONSE)
            return

        if not self.authenticated:
            self._reply(-1, PacketType.RESPONSE_VALUE)
            return

        if packet.type == PacketType.EXEC_COMMAND:
            self._host.commands.append(packet.body)
            response = self._host.responses.get(packet.body, f"Unknown command: {packet.body}")
            chunks = [
                response[i : i + MAX_RESPONSE_BODY]
                for i in range(0, len(response), MAX_RESPONSE_BODY)
            ] or [""]
            for chunk in chunks:
                self._reply(packet.request_id, PacketType.RESPONSE_VALUE, chunk)
        else:
            self._reply(packet.request_id, PacketType.RESPONSE_VALUE, "Unknown request 0")

    def hang_up(self) -> None:
        """Simulate the server closing the connection."""
        self._closed = True
        self._buffer.clear()

    # -- StreamWriter -------------------------------------------------------

    def write(self, data: bytes) -> None:
        """Decode client packets and queue the answers."""
        if self._closed:
            return
        offset = 0
        while offset < len(data):
            (size,) = struct.unpack_from("<i", data, offset)
            self._handle(decode_packet(bytes(data[offset + 4 : offset + 4 + size])))
            offset += 4 + size

    async def drain(self) -> None:
        """Fail like a socket whose peer went away."""
        if self._closed:
            raise ConnectionResetError("Connection reset by peer")

    def close(self) -> None:
        """Mark as closed."""
        self._closed = True

    async def wait_closed(self) -> None:
        """Mock wait_closed."""

    def is_closing(self) -> bool:
        """Check if closing."""
        return self._closed

    # -- StreamReader -------------------------------------------------------

    async def readexactly(self, n: int) -> bytes:
        """Read exactly n bytes, or fail like a closed stream."""
        if len(self._buffer) < n:
            partial = bytes(self._buffer)
            self._buffer.clear()
            raise asyncio.IncompleteReadError(partial, n)
        data = bytes(self._buffer[:n])
        del self._buffer[:n]
        return data


class FakeRconHost:
    """Factory standing in for asyncio.open_connection."""

    def __init__(self, password: str = "secret", responses: dict[str, str] | None = None) -> None:
        self.password = password
        self.responses = dict(responses or {})
        self.commands: list[str] = []
        self.connections: list[FakeRconStream] = []
        self.refuse = False

    async def open_connection(self, host: str, port: int, **_: Any) -> tuple[Any, Any]:
        """Return a connected stream pair, or refuse."""
        if self.refuse:
            raise ConnectionRefusedError(f"Connection refused: {host}:{port}")
        stream = FakeRconStream(self)
        self.connections.append(stream)
        return stream, stream


@pytest.fixture
def rcon_host() -> Iterator[FakeRconHost]:
    """Patch asyncio.open_connection with an in-memory RCON server."""
    host = FakeRconHost(
        responses={
            "list": "There are 1 of a max of 20 players online: Steve",
            "say hi": "",
        }
    )
    with patch("rconctl.api.client.asyncio.open_connection", new=host.open_connection):
        yield host


class FakeSession:
    """Scripted stand-in for Session.

    responses maps a command to a reply string, an exception instance to
    raise, or a list of those consumed in order (the last one repeats).
    """

    def __init__(self, responses: dict[str, Any] | None = None) -> None:
        self.responses: dict[str, Any] = dict(responses or {})
        self.commands: list[str] = []
        self.closed = False

    async def execute(self, command: str) -> str:
        self.commands.append(command)
        result = self.responses.get(command, "")
        if isinstance(result, list):
            result = result.pop(0) if len(result) > 1 else result[0]
        if isinstance(result, BaseException):
            raise result
        return result

    async def close(self) -> None:
        self.closed = True


class RecordingRenderer(Renderer):
    """Renderer that remembers every call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str | None, str]] = []
        self.messages: dict[str, str] = {}
        self.fail_with: RenderError | None = None
        self._next_id = 100

    @property
    def name(self) -> str:
        return "recording"

    async def render(self, channel_id: str, message_id: str | None, text: str) -> str:
        self.calls.append((channel_id, message_id, text))
        if self.fail_with is not None:
            raise self.fail_with
        if message_id is None:
            self._next_id += 1
            message_id = str(self._next_id)
        elif message_id not in self.messages:
            raise MessageNotFoundError(message_id)
        self.messages[message_id] = text
        return message_id

    @property
    def last_text(self) -> str:
        return self.calls[-1][2]


@pytest.fixture
def fake_session() -> FakeSession:
    """Return an empty scripted session."""
    return FakeSession()


@pytest.fixture
def renderer() -> RecordingRenderer:
    """Return a recording renderer."""
    return RecordingRenderer()


@pytest.fixture
def shared(fake_session: FakeSession, renderer: RecordingRenderer) -> SharedState:
    """Return shared state around the fake session and renderer."""
    return SharedState(fake_session, renderer, "555")  # type: ignore[arg-type]
