"""Player UUID derivation.

Offline-mode servers derive a player's UUID from the name alone.
Online-mode servers use the account UUID from the Mojang profile API.
Both are computed off the event loop.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from uuid import UUID

logger = logging.getLogger(__name__)

PROFILE_API_URL = "https://api.mojang.com/users/profiles/minecraft"

USER_AGENT = "rconctl/0.1"

REQUEST_TIMEOUT = 5


class UuidLookupError(Exception):
    """No UUID could be determined for a player name."""


def offline_uuid(name: str) -> UUID:
    """Return the offline-mode UUID for a player name."""
    digest = hashlib.md5(f"OfflinePlayer:{name}".encode()).digest()
    return UUID(bytes=digest, version=3)


def _fetch_online_uuid(name: str) -> UUID:
    """Look up the account UUID for a name (blocking)."""
    url = f"{PROFILE_API_URL}/{urllib.parse.quote(name)}"
    req = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
    try:
        with urllib.request.urlopen(req, timeout=REQUEST_TIMEOUT) as response:
            body = response.read().decode()
        # Unknown names answer 204 with an empty body on older API versions
        data = json.loads(body) if body.strip() else None
    except urllib.error.HTTPError as e:
        if e.code == 404:
            raise UuidLookupError(f"No account named {name}") from e
        raise UuidLookupError(f"Profile lookup failed with HTTP {e.code}") from e
    except (urllib.error.URLError, TimeoutError, OSError, ValueError) as e:
        raise UuidLookupError(f"Profile lookup failed: {e}") from e

    raw_id = data.get("id") if isinstance(data, dict) else None
    if not isinstance(raw_id, str):
        raise UuidLookupError(f"No account named {name}")
    try:
        return UUID(hex=raw_id)
    except ValueError as e:
        raise UuidLookupError(f"Malformed profile id {raw_id!r}") from e


async def resolve_uuid(name: str, online: bool = False) -> UUID:
    """Return the UUID a server would assign to a player name.

    Args:
        name: Player name.
        online: Use the account UUID instead of the offline-mode one.

    Raises:
        UuidLookupError: If the online lookup fails.
    """
    if online:
        return await asyncio.to_thread(_fetch_online_uuid, name)
    return await asyncio.to_thread(offline_uuid, name)
