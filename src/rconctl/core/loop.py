"""Periodic control loop.

Every tick queries the server status, renders the status board,
enforces the nickname policy and, when a restart was requested and the
server is empty, stops the server. A failing tick never ends the loop.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from rconctl.api.client import RconError
from rconctl.core.config import DEFAULT_POLL_INTERVAL
from rconctl.core.moderation import ModerationFilter
from rconctl.core.state import SharedState, with_timestamp
from rconctl.core.status import TPS_WINDOWS, StatusParser, StatusQueryError
from rconctl.models.status import OfflineStatus, OnlineStatus, ServerStatus

logger = logging.getLogger(__name__)

OFFLINE_TEXT = "The server is offline."

RENAME_TEMPLATE = "styled-nicknames set {name} {placeholder}"
KICK_TEMPLATE = "kick {name} nice try"
SHUTDOWN_COMMAND = "stop"


def format_online(status: OnlineStatus, lines: list[str]) -> str:
    """Render the summary for an online server.

    Args:
        status: The parsed status.
        lines: One display line per player.
    """
    text = (
        f"The server is online. There are {status.current_players}/{status.max_players} "
        "connected players"
    )
    if status.current_players > 0:
        body = "\n".join(lines)
        text += f": ```\n{body}```"
    else:
        text += ".\n"

    if status.tps is not None:
        header = " ".join(f"{window:<5}" for window in TPS_WINDOWS)
        values = " ".join(f"{value:>5.2f}" for value in status.tps)
        text += f"\nTPS info: ```\n{header}\n{values}```"
    return text


@dataclass
class TickResult:
    """What one tick observed and did.

    Attributes:
        status: Parsed status, or None if the query failed.
        text: Rendered text, without the timestamp footer.
        violators: Players enforcement ran against.
        shutdown_issued: Whether the stop command was sent.
    """

    status: ServerStatus | None
    text: str
    violators: list[str] = field(default_factory=list)
    shutdown_issued: bool = False


class ControlLoop:
    """Recurring status, moderation and restart task.

    Example:
        loop = ControlLoop(shared, StatusParser(structured=True), ModerationFilter())
        task = asyncio.create_task(loop.run())
    """

    def __init__(
        self,
        shared: SharedState,
        parser: StatusParser,
        moderation: ModerationFilter,
        interval: float = DEFAULT_POLL_INTERVAL,
        rename_template: str = RENAME_TEMPLATE,
        kick_template: str = KICK_TEMPLATE,
        shutdown_command: str = SHUTDOWN_COMMAND,
    ) -> None:
        self._shared = shared
        self._parser = parser
        self._moderation = moderation
        self._interval = interval
        self._rename_template = rename_template
        self._kick_template = kick_template
        self._shutdown_command = shutdown_command

    @property
    def interval(self) -> float:
        """Return seconds between ticks."""
        return self._interval

    async def run(self) -> None:
        """Tick at a fixed rate until cancelled."""
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while True:
            try:
                await self.tick()
            except Exception:  # noqa: BLE001
                logger.exception("Control loop tick failed")

            next_tick += self._interval
            delay = next_tick - loop.time()
            if delay < 0:
                # Overran the interval; skip the missed ticks
                next_tick = loop.time()
                delay = 0
            await asyncio.sleep(delay)

    async def tick(self) -> TickResult:
        """Run one iteration of the loop."""
        try:
            status = await self._parser.query(self._shared)
        except StatusQueryError as e:
            result = TickResult(status=None, text=str(e))
            await self._shared.publish(with_timestamp(result.text))
            return result

        if isinstance(status, OfflineStatus):
            result = TickResult(status=status, text=OFFLINE_TEXT)
            await self._shared.publish(with_timestamp(result.text))
            # A pending restart must not fire once the server comes back
            await self._shared.set_restart_requested(False)
            return result

        lines: list[str] = []
        violators: list[str] = []
        for entry in status.players:
            line, violator = self._moderation.display_name(entry)
            lines.append(line)
            if violator:
                violators.append(entry.name)

        result = TickResult(status=status, text=format_online(status, lines), violators=violators)
        await self._shared.publish(with_timestamp(result.text))

        if violators:
            await self._enforce(violators)

        if status.is_empty and await self._shared.restart_requested():
            result.shutdown_issued = await self._shutdown()
        return result

    async def _enforce(self, names: list[str]) -> None:
        """Rename and kick violators. Best effort."""
        placeholder = self._moderation.placeholder
        async with self._shared.console() as session:
            for name in names:
                logger.info("Enforcing nickname policy on %s", name)
                for template in (self._rename_template, self._kick_template):
                    command = template.format(name=name, placeholder=placeholder)
                    try:
                        await session.execute(command)
                    except RconError as e:
                        logger.warning("Enforcement command %r failed: %s", command, e)

    async def _shutdown(self) -> bool:
        """Send the stop command for a scheduled restart."""
        logger.info("Server is empty and a restart is scheduled, stopping it")
        async with self._shared.console() as session:
            try:
                await session.execute(self._shutdown_command)
            except RconError as e:
                logger.warning("Shutdown command failed: %s", e)
        return True
