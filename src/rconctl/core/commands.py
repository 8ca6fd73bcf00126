"""Operator commands.

Each command takes the SharedState explicitly and returns the reply
text shown to the operator. Who may call them is decided by the front
end, not here.
"""

import logging

from rconctl.api.client import CommandTooLongError, RconAuthError, RconConnectionError
from rconctl.core.identity import UuidLookupError, resolve_uuid
from rconctl.core.render import MAX_MESSAGE_LENGTH
from rconctl.core.state import SharedState

logger = logging.getLogger(__name__)

_SUCCESS_PREFIX = "Success:\n```\n"
_SUCCESS_SUFFIX = "\n```"
MAX_RESPONSE_LENGTH = MAX_MESSAGE_LENGTH - len(_SUCCESS_PREFIX) - len(_SUCCESS_SUFFIX)
CUTOFF_SUFFIX = "..."


def truncate(text: str, limit: int = MAX_RESPONSE_LENGTH) -> str:
    """Cut text to at most limit characters, marking the cut."""
    if len(text) <= limit:
        return text
    return text[: limit - len(CUTOFF_SUFFIX)] + CUTOFF_SUFFIX


async def run_command(shared: SharedState, command: str) -> str:
    """Run an admin command on the console.

    Args:
        shared: Shared state holding the console.
        command: Command text.

    Returns:
        Reply text for the operator.
    """
    try:
        async with shared.console() as session:
            response = await session.execute(command)
    except RconAuthError:
        return "Invalid authentication (check bot config)."
    except CommandTooLongError:
        return "Command too long."
    except RconConnectionError as e:
        logger.debug("Command %r failed: %s", command, e)
        return "The server is closed."

    logger.info("Ran console command: %s", command)
    return f"{_SUCCESS_PREFIX}{truncate(response)}{_SUCCESS_SUFFIX}"


async def schedule_restart(shared: SharedState, cancel: bool = False) -> str:
    """Schedule a restart for when everyone logs off, or cancel it."""
    previous = await shared.set_restart_requested(not cancel)
    if cancel and previous:
        return "The scheduled restart has been cancelled."
    if cancel:
        return "There is no restart scheduled."
    if previous:
        return "There is already a restart scheduled."
    return "A restart has been scheduled - it will occur as soon as everyone logs off."


async def lookup_uuid(name: str, online: bool = False) -> str:
    """Return the UUID for a player name as reply text."""
    try:
        player_uuid = await resolve_uuid(name, online)
    except UuidLookupError as e:
        return f"Couldn't determine the UUID of {name}: {e}"
    mode = "online" if online else "offline"
    return f"{name} ({mode}): {player_uuid}"
