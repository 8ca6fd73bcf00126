"""Status query and response parsing.

Two response grammars exist and a deployment uses exactly one:

- Structured (``list json``): a JSON object with counts, the player list
  and optional TPS samples.
- Unstructured (``list``): the vanilla one-line summary
  ``There are N of a max of M players online: a, b, c``.

Only a transport failure while querying means the server is offline.
A response that does not fit the grammar is reported as an error so
that a protocol mismatch is never mistaken for downtime.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any
from uuid import UUID

from rconctl.api.client import RconConnectionError, RconError
from rconctl.models.status import OFFLINE, OnlineStatus, PlayerEntry, ServerStatus

if TYPE_CHECKING:
    from rconctl.core.state import SharedState

logger = logging.getLogger(__name__)

STRUCTURED_QUERY = "list json"
UNSTRUCTURED_QUERY = "list"

LIST_PATTERN = re.compile(
    r"^There are (\d+) of a max of (\d+) players online:(?: ((?:\w+, )*\w+))?$"
)

TPS_WINDOWS = ("5s", "10s", "1m", "5m", "15m")


class StatusQueryError(Exception):
    """The console answered, but not with a usable status."""


class StatusParseError(StatusQueryError):
    """The status response did not match the active grammar.

    Attributes:
        raw: The response text as received.
    """

    def __init__(self, message: str, raw: str) -> None:
        super().__init__(message)
        self.raw = raw


def _require_count(data: Mapping[str, Any], key: str) -> int:
    value = data.get(key)
    # bool is an int subclass; reject it explicitly
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ValueError(f"{key} must be a non-negative integer, got {value!r}")
    return value


def _optional_str(item: Mapping[str, Any], key: str) -> str | None:
    value = item.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"{key} must be a string, got {value!r}")
    return value


def _parse_player(item: Any) -> PlayerEntry:
    if not isinstance(item, dict):
        raise ValueError(f"player entry must be an object, got {item!r}")

    name = item.get("name")
    if not isinstance(name, str):
        raise ValueError(f"player name must be a string, got {name!r}")

    raw_uuid = _optional_str(item, "uuid")
    styled = item.get("nickname_styled")
    if styled is not None and not isinstance(styled, dict | str | list):
        raise ValueError(f"nickname_styled must be a text component, got {styled!r}")

    return PlayerEntry(
        name=name,
        nickname=_optional_str(item, "nickname"),
        nickname_styled=styled,
        uuid=UUID(raw_uuid) if raw_uuid is not None else None,
    )


def _parse_tps(value: Any) -> tuple[float, float, float, float, float] | None:
    if value is None:
        return None
    if not isinstance(value, list) or len(value) != len(TPS_WINDOWS):
        raise ValueError(f"tps must be a list of {len(TPS_WINDOWS)} numbers, got {value!r}")
    if not all(isinstance(x, int | float) and not isinstance(x, bool) for x in value):
        raise ValueError(f"tps must contain only numbers, got {value!r}")
    first, second, third, fourth, fifth = (float(x) for x in value)
    return (first, second, third, fourth, fifth)


def parse_structured(payload: str) -> OnlineStatus:
    """Parse a ``list json`` response.

    Args:
        payload: Response text.

    Returns:
        OnlineStatus built from the payload.

    Raises:
        StatusParseError: If the payload is not the expected JSON shape.
    """
    try:
        data = json.loads(payload)
        if not isinstance(data, dict):
            raise ValueError("response is not a JSON object")

        players = data.get("list")
        if not isinstance(players, list):
            raise ValueError(f"list must be an array, got {players!r}")

        return OnlineStatus(
            current_players=_require_count(data, "current_players"),
            max_players=_require_count(data, "max_players"),
            players=tuple(_parse_player(item) for item in players),
            tps=_parse_tps(data.get("tps")),
        )
    except (ValueError, RecursionError) as e:
        # json.JSONDecodeError is a ValueError; deeply nested input raises RecursionError
        raise StatusParseError(f"Deserialization error (this is a bug): {e}", payload) from e


def parse_unstructured(text: str) -> OnlineStatus:
    """Parse a plain ``list`` response.

    Player names are returned sorted; no nickname or UUID is available.

    Raises:
        StatusParseError: If the text does not match the list summary line.
    """
    match = LIST_PATTERN.match(text.strip())
    if match is None:
        raise StatusParseError("Regex error (this is a bug)", text)

    current, maximum, names = match.groups()
    sorted_names = sorted(names.split(", ")) if names else []
    return OnlineStatus(
        current_players=int(current),
        max_players=int(maximum),
        players=tuple(PlayerEntry(name=name) for name in sorted_names),
    )


def component_text(component: Any) -> str:
    """Flatten a rich-text component to its plain text.

    Components are strings, lists of components, or objects with an
    optional ``text`` and optional ``extra`` children.
    """
    if component is None:
        return ""
    if isinstance(component, str):
        return component
    if isinstance(component, list):
        return "".join(component_text(part) for part in component)
    if isinstance(component, dict):
        text = component.get("text", "")
        extra = component.get("extra", [])
        return (text if isinstance(text, str) else "") + component_text(extra)
    return ""


class StatusParser:
    """Status query bound to one response grammar.

    The grammar is chosen once at construction, matching what the
    server supports.

    Example:
        parser = StatusParser(structured=True)
        status = await parser.query(shared)
    """

    def __init__(self, structured: bool) -> None:
        self._structured = structured

    @property
    def structured(self) -> bool:
        """Return True if the structured grammar is active."""
        return self._structured

    @property
    def command(self) -> str:
        """Return the console command that produces the status."""
        return STRUCTURED_QUERY if self._structured else UNSTRUCTURED_QUERY

    def parse(self, response: str) -> OnlineStatus:
        """Parse a response with the active grammar."""
        if self._structured:
            return parse_structured(response)
        return parse_unstructured(response)

    async def query(self, shared: SharedState) -> ServerStatus:
        """Query the console and parse the answer.

        Returns:
            OFFLINE if the console is unreachable, else an OnlineStatus.

        Raises:
            StatusQueryError: The console answered but the status is unusable.
        """
        try:
            async with shared.console() as session:
                response = await session.execute(self.command)
        except RconConnectionError as e:
            logger.debug("Status query failed at transport level: %s", e)
            return OFFLINE
        except RconError as e:
            raise StatusQueryError(f"Status query rejected: {e}") from e

        try:
            return self.parse(response)
        except StatusParseError as e:
            logger.error("%s. Response from server: %s", e, e.raw)
            raise
