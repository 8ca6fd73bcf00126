"""RCON packet framing.

RCON is a binary request/response protocol over TCP:
- Each packet is prefixed by a little-endian int32 size (bytes that follow)
- Then int32 request id, int32 packet type, body, and two NUL bytes
- The server echoes the request id; an auth failure answers with id -1

Reference: https://developer.valvesoftware.com/wiki/Source_RCON_Protocol
"""

import asyncio
import struct
from dataclasses import dataclass
from enum import IntEnum


class PacketType(IntEnum):
    """RCON packet types.

    EXEC_COMMAND and AUTH_RESPONSE share the value 2; the direction
    of the packet tells them apart.
    """

    RESPONSE_VALUE = 0
    EXEC_COMMAND = 2
    AUTH_RESPONSE = 2
    AUTH = 3


class FrameError(Exception):
    """A packet could not be framed or decoded."""


# id + type + two terminators
_HEADER = struct.Struct("<ii")
MIN_PACKET_SIZE = _HEADER.size + 2

# Minecraft rejects command bodies above this length
MAX_COMMAND_LENGTH = 1446

# Minecraft splits responses into 4096 byte fragments
MAX_RESPONSE_BODY = 4096
MAX_PACKET_SIZE = MIN_PACKET_SIZE + MAX_RESPONSE_BODY

AUTH_FAILED_ID = -1


@dataclass(frozen=True, slots=True)
class Packet:
    """One RCON packet.

    Attributes:
        request_id: Client-chosen id, echoed back by the server.
        type: Packet type (see PacketType).
        body: Decoded payload text.
    """

    request_id: int
    type: int
    body: str = ""

    def encode(self) -> bytes:
        """Serialize to wire format, including the size prefix."""
        payload = _HEADER.pack(self.request_id, self.type) + self.body.encode("utf-8") + b"\x00\x00"
        return struct.pack("<i", len(payload)) + payload


def decode_packet(payload: bytes) -> Packet:
    """Decode a packet from the bytes following the size prefix.

    Args:
        payload: Packet bytes without the leading size field.

    Returns:
        Decoded Packet.

    Raises:
        FrameError: If the payload is too short or not NUL terminated.
    """
    if len(payload) < MIN_PACKET_SIZE:
        raise FrameError(f"Packet too short: {len(payload)} bytes")
    if payload[-2:] != b"\x00\x00":
        raise FrameError("Packet is missing its terminators")

    request_id, packet_type = _HEADER.unpack_from(payload)
    body = payload[_HEADER.size : -2].decode("utf-8", errors="replace")
    return Packet(request_id=request_id, type=packet_type, body=body)


async def read_packet(reader: asyncio.StreamReader) -> Packet:
    """Read one complete packet from a stream.

    Raises:
        FrameError: If the size prefix is out of range.
        asyncio.IncompleteReadError: If the stream ends mid-packet.
    """
    (size,) = struct.unpack("<i", await reader.readexactly(4))
    if size < MIN_PACKET_SIZE or size > MAX_PACKET_SIZE:
        raise FrameError(f"Invalid packet size: {size}")
    return decode_packet(await reader.readexactly(size))


def check_command_length(command: str) -> bool:
    """Return True if the command fits in one RCON request."""
    return len(command.encode("utf-8")) <= MAX_COMMAND_LENGTH
