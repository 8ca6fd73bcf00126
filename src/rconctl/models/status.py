"""Server status snapshot models."""

from dataclasses import dataclass
from typing import Any
from uuid import UUID

TpsSample = tuple[float, float, float, float, float]


@dataclass(frozen=True, slots=True)
class PlayerEntry:
    """One connected player in a status snapshot.

    Attributes:
        name: Account name, always present.
        nickname: Raw nickname, may contain formatting tags.
        nickname_styled: Rich-text component for the nickname, as received.
        uuid: Stable player identifier, when the server reports it.
    """

    name: str
    nickname: str | None = None
    nickname_styled: Any = None
    uuid: UUID | None = None


@dataclass(frozen=True, slots=True)
class OnlineStatus:
    """The server answered the status query.

    Attributes:
        current_players: Connected player count.
        max_players: Player slots.
        players: Connected players, in server order.
        tps: Ticks per second over 5s/10s/1m/5m/15m, if reported.
    """

    current_players: int
    max_players: int
    players: tuple[PlayerEntry, ...] = ()
    tps: TpsSample | None = None

    @property
    def is_empty(self) -> bool:
        """Return True if nobody is connected."""
        return self.current_players == 0


@dataclass(frozen=True, slots=True)
class OfflineStatus:
    """The console could not be reached."""


OFFLINE = OfflineStatus()

ServerStatus = OnlineStatus | OfflineStatus
