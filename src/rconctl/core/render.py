"""Status board renderers.

A renderer owns one persistent message per channel. Given no message id
it creates the message and returns its id; given an id it edits that
message in place.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
import urllib.error
import urllib.request
from abc import ABC, abstractmethod
from typing import Any

logger = logging.getLogger(__name__)

USER_AGENT = "rconctl/0.1"

REQUEST_TIMEOUT = 10

# Longest message body a chat channel accepts
MAX_MESSAGE_LENGTH = 2000


class RenderError(Exception):
    """The renderer could not deliver the message."""


class MessageNotFoundError(RenderError):
    """The message to edit no longer exists."""


class Renderer(ABC):
    """Abstract base class for status board renderers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the renderer name for logging."""

    @abstractmethod
    async def render(self, channel_id: str, message_id: str | None, text: str) -> str:
        """Create or edit the status message.

        Args:
            channel_id: Target channel.
            message_id: Message to edit, or None to create one.
            text: Full message body.

        Returns:
            The id of the created or edited message.

        Raises:
            MessageNotFoundError: If message_id refers to a deleted message.
            RenderError: On any other delivery failure.
        """


class LogRenderer(Renderer):
    """Write each render to the log. Used when no webhook is configured."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.messages: dict[str, str] = {}

    @property
    def name(self) -> str:
        """Return renderer name."""
        return "log"

    async def render(self, channel_id: str, message_id: str | None, text: str) -> str:
        """Record the text and log it."""
        if message_id is None:
            message_id = str(next(self._ids))
        elif message_id not in self.messages:
            raise MessageNotFoundError(f"Unknown message {message_id}")
        self.messages[message_id] = text
        logger.info("[%s/%s]\n%s", channel_id, message_id, text)
        return message_id


class WebhookRenderer(Renderer):
    """Render through a Discord-compatible webhook.

    The webhook is bound to a channel server-side; channel_id is only
    used to tag log lines and the cached message reference.

    Example:
        renderer = WebhookRenderer("https://discord.com/api/webhooks/1/abc")
        message_id = await renderer.render("123", None, "hello")
    """

    def __init__(self, url: str) -> None:
        self._url = url.rstrip("/")

    @property
    def name(self) -> str:
        """Return renderer name."""
        return "webhook"

    async def render(self, channel_id: str, message_id: str | None, text: str) -> str:
        """Create or edit the webhook message."""
        body = {"content": text[:MAX_MESSAGE_LENGTH]}
        if message_id is None:
            url, method = f"{self._url}?wait=true", "POST"
        else:
            url, method = f"{self._url}/messages/{message_id}", "PATCH"

        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(None, self._request, url, method, body)
        except urllib.error.HTTPError as e:
            if e.code == 404 and message_id is not None:
                raise MessageNotFoundError(f"Message {message_id} not found") from e
            raise RenderError(f"{method} failed with HTTP {e.code}") from e
        except (urllib.error.URLError, TimeoutError, OSError, ValueError) as e:
            raise RenderError(f"{method} failed: {e}") from e

        new_id = result.get("id") if isinstance(result, dict) else None
        if not new_id:
            raise RenderError(f"{method} response carries no message id")
        logger.debug("Rendered message %s in channel %s", new_id, channel_id)
        return str(new_id)

    def _request(self, url: str, method: str, body: dict[str, Any]) -> Any:
        """Send one JSON request (blocking)."""
        req = urllib.request.Request(
            url,
            data=json.dumps(body).encode(),
            method=method,
            headers={"Content-Type": "application/json", "User-Agent": USER_AGENT},
        )
        with urllib.request.urlopen(req, timeout=REQUEST_TIMEOUT) as response:
            return json.loads(response.read().decode())
