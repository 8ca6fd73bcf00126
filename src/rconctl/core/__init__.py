"""Core control logic.

This module contains the session, status parsing, moderation and the
control loop, plus the Qt glue that hosts them.

Classes:
    Session: Console connection with lazy connect and one retry.
    StatusParser: Status query bound to one response grammar.
    ModerationFilter: Nickname policy.
    SharedState: Lock-guarded resources shared by every task.
    ControlLoop: Periodic status, moderation and restart task.
    ControlWorker: QThread hosting the asyncio loop.
    ConfigManager: QSettings wrapper for persisted state.
"""

from rconctl.core.config import ConfigManager, Settings
from rconctl.core.loop import ControlLoop
from rconctl.core.moderation import ModerationFilter
from rconctl.core.session import Session
from rconctl.core.state import SharedState
from rconctl.core.status import StatusParser
from rconctl.core.worker import ControlWorker

__all__ = [
    "ConfigManager",
    "ControlLoop",
    "ControlWorker",
    "ModerationFilter",
    "Session",
    "Settings",
    "SharedState",
    "StatusParser",
]
