"""Configuration.

Deployment settings come from environment variables. State that must
survive a restart (the status message reference) is kept in QSettings.
"""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

from PySide6.QtCore import QSettings

from rconctl.api.client import COMMAND_TIMEOUT, DEFAULT_PORT
from rconctl.core.moderation import DEFAULT_PLACEHOLDER

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 5.0

# Settings keys
_KEY_RENDER_CHANNEL = "render/channel_id"
_KEY_RENDER_MESSAGE = "render/message_id"

ENV_VARS: dict[str, tuple[bool, str]] = {
    "RCON_ADDR": (True, "Address of the game server console, as host or host:port."),
    "RCON_PASS": (True, "Password for the RCON protocol."),
    "LIST_CHANNEL_ID": (True, "Id of the channel where the player list is posted."),
    "HAS_LIST_JSON": (
        False,
        "If set, the server supports the structured 'list json' status query.",
    ),
    "LIST_WEBHOOK_URL": (
        False,
        "Webhook used to post the player list. The list is logged when unset.",
    ),
    "POLL_INTERVAL": (
        False,
        f"Seconds between status updates (default {DEFAULT_POLL_INTERVAL:g}).",
    ),
    "RCON_TIMEOUT": (
        False,
        f"Seconds to wait for a console reply (default {COMMAND_TIMEOUT:g}).",
    ),
    "MODERATION_PLACEHOLDER": (
        False,
        f"Nickname shown and applied for rejected nicknames (default {DEFAULT_PLACEHOLDER}).",
    ),
}


class ConfigError(Exception):
    """Settings are missing or invalid."""


def env_help() -> str:
    """Return help text describing every environment variable."""
    lines = []
    for name, (required, description) in ENV_VARS.items():
        tag = "required" if required else "optional"
        lines.append(f"- {name} ({tag}): {description}")
    return "\n".join(lines)


def any_set(environ: Mapping[str, str] | None = None) -> bool:
    """Return True if any known variable is present."""
    env = os.environ if environ is None else environ
    return any(name in env for name in ENV_VARS)


def parse_address(address: str) -> tuple[str, int]:
    """Split host[:port] into its parts.

    Raises:
        ConfigError: If the port is not a number.
    """
    host, sep, port = address.rpartition(":")
    if not sep or "]" in port:
        return address.strip("[]"), DEFAULT_PORT
    try:
        return host.strip("[]"), int(port)
    except ValueError as e:
        raise ConfigError(f"Invalid port in RCON_ADDR: {port!r}") from e


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {raw!r}")
    return value


@dataclass(frozen=True, slots=True)
class Settings:
    """Deployment settings.

    Attributes:
        rcon_host: Console host.
        rcon_port: Console port.
        rcon_password: Console password.
        list_channel_id: Channel that holds the status message.
        has_list_json: Use the structured status grammar.
        webhook_url: Renderer webhook, or empty for the log renderer.
        poll_interval: Seconds between control loop ticks.
        command_timeout: Seconds to wait for a console reply.
        placeholder: Replacement for rejected nicknames.
    """

    rcon_host: str
    rcon_password: str
    list_channel_id: str
    rcon_port: int = DEFAULT_PORT
    has_list_json: bool = False
    webhook_url: str = ""
    poll_interval: float = DEFAULT_POLL_INTERVAL
    command_timeout: float = COMMAND_TIMEOUT
    placeholder: str = DEFAULT_PLACEHOLDER

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Load settings from environment variables.

        Raises:
            ConfigError: Listing every missing required variable.
        """
        env = os.environ if environ is None else environ
        missing = [
            name for name, (required, _) in ENV_VARS.items() if required and not env.get(name)
        ]
        if missing:
            raise ConfigError(f"Missing environment variables: {', '.join(missing)}")

        host, port = parse_address(env["RCON_ADDR"])
        return cls(
            rcon_host=host,
            rcon_port=port,
            rcon_password=env["RCON_PASS"],
            list_channel_id=env["LIST_CHANNEL_ID"],
            has_list_json="HAS_LIST_JSON" in env,
            webhook_url=env.get("LIST_WEBHOOK_URL", ""),
            poll_interval=_float(env, "POLL_INTERVAL", DEFAULT_POLL_INTERVAL),
            command_timeout=_float(env, "RCON_TIMEOUT", COMMAND_TIMEOUT),
            placeholder=env.get("MODERATION_PLACEHOLDER") or DEFAULT_PLACEHOLDER,
        )


@dataclass(frozen=True, slots=True)
class RenderCache:
    """Reference to the status message being kept up to date."""

    channel_id: str
    message_id: str


class ConfigManager:
    """Wrapper around QSettings for persisted state.

    QSettings stores data in platform-specific locations, e.g.
    ~/.config/rconctl/rconctl.conf on Linux.

    Example:
        config = ConfigManager()
        cache = config.get_render_cache("1234")
    """

    def __init__(self, organization: str = "rconctl", application: str = "rconctl") -> None:
        self._settings = QSettings(organization, application)

    @property
    def settings(self) -> QSettings:
        """Return the underlying QSettings instance."""
        return self._settings

    def get_render_cache(self, channel_id: str | None = None) -> RenderCache | None:
        """Load the saved status message reference.

        Args:
            channel_id: If given, a reference to another channel is ignored.

        Returns:
            RenderCache, or None if nothing usable is saved.
        """
        cached_channel = self._settings.value(_KEY_RENDER_CHANNEL, "", str)
        cached_message = self._settings.value(_KEY_RENDER_MESSAGE, "", str)
        if not cached_channel or not cached_message:
            return None
        if channel_id is not None and str(cached_channel) != channel_id:
            logger.info("Ignoring cached message for channel %s", cached_channel)
            return None
        return RenderCache(channel_id=str(cached_channel), message_id=str(cached_message))

    def save_render_cache(self, cache: RenderCache) -> None:
        """Persist the status message reference.

        Raises:
            OSError: If the settings store cannot be written.
        """
        self._settings.setValue(_KEY_RENDER_CHANNEL, cache.channel_id)
        self._settings.setValue(_KEY_RENDER_MESSAGE, cache.message_id)
        self._settings.sync()
        if self._settings.status() != QSettings.Status.NoError:
            raise OSError(f"Could not write settings to {self._settings.fileName()}")

    def clear_render_cache(self) -> None:
        """Forget the status message reference."""
        self._settings.remove(_KEY_RENDER_CHANNEL)
        self._settings.remove(_KEY_RENDER_MESSAGE)

    def clear(self) -> None:
        """Remove all stored settings."""
        self._settings.clear()
