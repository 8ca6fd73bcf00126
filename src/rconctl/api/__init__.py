"""RCON protocol and client."""

from rconctl.api.client import (
    CommandTooLongError,
    RconAuthError,
    RconClient,
    RconConnectionError,
    RconError,
)
from rconctl.api.protocol import Packet, PacketType

__all__ = [
    "RconClient",
    "RconError",
    "RconAuthError",
    "CommandTooLongError",
    "RconConnectionError",
    "Packet",
    "PacketType",
]
