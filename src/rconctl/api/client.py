"""Async RCON client.

This module provides an asyncio-based RCON client: one connection, one
command in flight, every network wait bounded by a timeout.

Example:
    async with RconClient("127.0.0.1", 25575, "secret") as client:
        print(await client.exec("list"))
"""

import asyncio
import logging
from typing import Self

from rconctl.api.protocol import (
    AUTH_FAILED_ID,
    FrameError,
    Packet,
    PacketType,
    check_command_length,
    read_packet,
)

logger = logging.getLogger(__name__)

DEFAULT_PORT = 25575
CONNECT_TIMEOUT = 5.0
COMMAND_TIMEOUT = 10.0


class RconError(Exception):
    """Base class for console errors."""


class RconAuthError(RconError):
    """The server rejected the password."""


class CommandTooLongError(RconError):
    """The command does not fit in a single request."""


class RconConnectionError(RconError):
    """Transport failure: refused, reset, closed, timed out or garbled."""


class RconClient:
    """Async RCON client.

    A single authenticated connection. Callers must not issue
    concurrent commands; the Session layer serializes access.

    Attributes:
        host: Server hostname or IP.
        port: RCON port (default 25575).
        password: RCON password.
    """

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        password: str = "",
        timeout: float = COMMAND_TIMEOUT,
    ) -> None:
        self.host = host
        self.port = port
        self.password = password
        self._timeout = timeout

        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._request_id = 0

    @property
    def is_connected(self) -> bool:
        """Return True if the socket is open."""
        return self._writer is not None and not self._writer.is_closing()

    async def connect(self) -> None:
        """Connect and authenticate.

        Raises:
            RconConnectionError: If the server cannot be reached.
            RconAuthError: If the password is rejected.
        """
        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=CONNECT_TIMEOUT,
            )
        except TimeoutError as e:
            raise RconConnectionError(f"Connection to {self.host}:{self.port} timed out") from e
        except OSError as e:
            raise RconConnectionError(f"Failed to connect to {self.host}:{self.port}: {e}") from e

        try:
            await self._authenticate()
        except RconError:
            await self.disconnect()
            raise

        logger.info("Connected to RCON at %s:%d", self.host, self.port)

    async def disconnect(self) -> None:
        """Close the connection."""
        if self._writer:
            try:
                self._writer.close()
                await asyncio.wait_for(self._writer.wait_closed(), timeout=1.0)
            except (OSError, TimeoutError) as e:
                logger.debug("Expected error during RCON disconnect: %s", e)
            finally:
                self._writer = None
                self._reader = None

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, *_: object) -> None:
        """Async context manager exit."""
        await self.disconnect()

    def _next_id(self) -> int:
        self._request_id = self._request_id % 0x7FFFFFF0 + 1
        return self._request_id

    async def _send(self, packet: Packet) -> None:
        if not self._writer:
            raise RconConnectionError("Not connected")
        self._writer.write(packet.encode())
        await self._writer.drain()

    async def _receive(self) -> Packet:
        if not self._reader:
            raise RconConnectionError("Not connected")
        return await read_packet(self._reader)

    async def _authenticate(self) -> None:
        request_id = self._next_id()
        try:
            await asyncio.wait_for(
                self._auth_exchange(Packet(request_id, PacketType.AUTH, self.password)),
                timeout=self._timeout,
            )
        except (OSError, TimeoutError, asyncio.IncompleteReadError, FrameError) as e:
            raise RconConnectionError(f"Authentication exchange failed: {e!r}") from e

    async def _auth_exchange(self, packet: Packet) -> None:
        await self._send(packet)
        while True:
            response = await self._receive()
            # Source servers send an empty RESPONSE_VALUE ahead of the auth result
            if response.type != PacketType.AUTH_RESPONSE:
                continue
            if response.request_id == AUTH_FAILED_ID:
                raise RconAuthError("Authentication failed")
            if response.request_id == packet.request_id:
                return

    async def exec(self, command: str) -> str:
        """Run a console command and return its response text.

        Raises:
            CommandTooLongError: If the command exceeds the request size.
            RconAuthError: If the server no longer accepts this session.
            RconConnectionError: On any transport failure.
        """
        if not check_command_length(command):
            raise CommandTooLongError(f"Command too long ({len(command)} characters)")

        logger.debug("RCON command: %s", command)
        try:
            return await asyncio.wait_for(self._exec_exchange(command), timeout=self._timeout)
        except (OSError, TimeoutError, asyncio.IncompleteReadError, FrameError) as e:
            raise RconConnectionError(f"Command failed: {e!r}") from e

    async def _exec_exchange(self, command: str) -> str:
        command_id = self._next_id()
        sentinel_id = self._next_id()
        await self._send(Packet(command_id, PacketType.EXEC_COMMAND, command))
        # The server answers packets in order, so the echo of this
        # follow-up marks the end of a fragmented response.
        await self._send(Packet(sentinel_id, PacketType.RESPONSE_VALUE))

        fragments: list[str] = []
        while True:
            response = await self._receive()
            if response.request_id == AUTH_FAILED_ID:
                raise RconAuthError("Session is not authenticated")
            if response.request_id == sentinel_id:
                return "".join(fragments)
            if response.request_id == command_id:
                fragments.append(response.body)
            else:
                logger.debug("Dropping stray RCON packet id=%d", response.request_id)
