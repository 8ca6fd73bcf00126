"""Console session with lazy connect and a single transparent retry.

The session owns at most one authenticated RconClient. It connects on
first use, and after a transport failure it drops the connection,
reconnects and repeats the command once. Protocol errors are never
retried: they describe the command or the credential, not the link.

The session does not lock. Callers share it through SharedState, which
serializes access.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from rconctl.api.client import (
    COMMAND_TIMEOUT,
    DEFAULT_PORT,
    CommandTooLongError,
    RconAuthError,
    RconClient,
    RconConnectionError,
    RconError,
)

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Connection lifecycle of a Session."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(frozen=True, slots=True)
class ErrorPolicy:
    """What a Session does when a command fails with a given error.

    Attributes:
        retry: Reconnect and repeat the command once.
        drop_connection: Discard the current connection handle.
    """

    retry: bool
    drop_connection: bool


ERROR_POLICIES: dict[type[RconError], ErrorPolicy] = {
    # An unauthenticated handle is never kept around.
    RconAuthError: ErrorPolicy(retry=False, drop_connection=True),
    CommandTooLongError: ErrorPolicy(retry=False, drop_connection=False),
    RconConnectionError: ErrorPolicy(retry=True, drop_connection=True),
}

MAX_ATTEMPTS = 2


def policy_for(error: RconError) -> ErrorPolicy:
    """Return the handling policy for an error instance."""
    for error_type in type(error).__mro__:
        policy = ERROR_POLICIES.get(error_type)  # type: ignore[arg-type]
        if policy is not None:
            return policy
    return ErrorPolicy(retry=False, drop_connection=True)


class Session:
    """Single source of truth for the console connection.

    Example:
        session = Session("127.0.0.1", 25575, "secret")
        text = await session.execute("list")
    """

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        password: str = "",
        timeout: float = COMMAND_TIMEOUT,
    ) -> None:
        self._host = host
        self._port = port
        self._password = password
        self._timeout = timeout
        self._client: RconClient | None = None
        self._state = SessionState.DISCONNECTED

    @property
    def address(self) -> str:
        """Return host:port of the console."""
        return f"{self._host}:{self._port}"

    @property
    def state(self) -> SessionState:
        """Return the current connection state."""
        return self._state

    def _new_client(self) -> RconClient:
        return RconClient(self._host, self._port, self._password, self._timeout)

    async def _ensure_connected(self) -> RconClient:
        if self._client is not None and self._state is SessionState.CONNECTED:
            return self._client

        self._state = SessionState.CONNECTING
        client = self._new_client()
        try:
            await client.connect()
        except RconError:
            self._state = SessionState.DISCONNECTED
            raise
        self._client = client
        self._state = SessionState.CONNECTED
        return client

    async def _drop(self) -> None:
        client, self._client = self._client, None
        self._state = SessionState.DISCONNECTED
        if client is not None:
            await client.disconnect()

    async def execute(self, command: str) -> str:
        """Run a command, connecting first if needed.

        Args:
            command: Console command text.

        Returns:
            The response text, verbatim.

        Raises:
            RconAuthError: The credential was rejected.
            CommandTooLongError: The command was rejected as oversized.
            RconConnectionError: The link failed twice in a row.
        """
        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                client = await self._ensure_connected()
                return await client.exec(command)
            except RconError as e:
                policy = policy_for(e)
                if policy.drop_connection:
                    await self._drop()
                if not policy.retry or attempt == MAX_ATTEMPTS:
                    raise
                logger.info("Console link to %s failed (%s), reconnecting", self.address, e)

        raise AssertionError("unreachable")

    async def close(self) -> None:
        """Close the connection, if any."""
        await self._drop()
