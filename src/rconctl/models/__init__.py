"""Data models for server status snapshots."""

from rconctl.models.status import (
    OFFLINE,
    OfflineStatus,
    OnlineStatus,
    PlayerEntry,
    ServerStatus,
    TpsSample,
)

__all__ = [
    "OFFLINE",
    "OfflineStatus",
    "OnlineStatus",
    "PlayerEntry",
    "ServerStatus",
    "TpsSample",
]
