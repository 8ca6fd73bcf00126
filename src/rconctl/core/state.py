"""Shared state for the control loop and operator commands.

Three resources are shared between the periodic control loop and any
number of operator commands, each behind its own lock:

- the console Session (one command in flight at a time),
- the restart-requested flag,
- the reference to the rendered status message.

A command that only toggles the restart flag therefore never waits on a
slow console call. Observers are notified through Qt signals.
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from PySide6.QtCore import QObject, Signal

from rconctl.core.config import ConfigManager, RenderCache
from rconctl.core.render import MessageNotFoundError, Renderer, RenderError
from rconctl.core.session import Session

logger = logging.getLogger(__name__)


def with_timestamp(text: str, now: float | None = None) -> str:
    """Append the last-update footer to a status text."""
    timestamp = int(time.time() if now is None else now)
    return f"{text}\n\nLast update: <t:{timestamp}:T>"


class SharedState(QObject):
    """Lock-guarded resources shared by every task.

    Pass one instance explicitly to the control loop and to each command.

    Example:
        shared = SharedState(session, renderer, "1234")
        async with shared.console() as console:
            await console.execute("say hi")
    """

    restart_requested_changed = Signal(bool)
    status_rendered = Signal(str)

    def __init__(
        self,
        session: Session,
        renderer: Renderer,
        channel_id: str,
        config: ConfigManager | None = None,
        parent: QObject | None = None,
    ) -> None:
        """Initialize shared state.

        Args:
            session: The console session to guard.
            renderer: Where status text is published.
            channel_id: Channel that holds the status message.
            config: Persistence for the message reference, if any.
            parent: Optional parent QObject.
        """
        super().__init__(parent)
        self._session = session
        self._console_lock = asyncio.Lock()

        self._restart_requested = False
        self._restart_lock = asyncio.Lock()

        self._renderer = renderer
        self._channel_id = channel_id
        self._config = config
        self._render_lock = asyncio.Lock()
        self._render_cache = config.get_render_cache(channel_id) if config else None

    @property
    def channel_id(self) -> str:
        """Return the status channel id."""
        return self._channel_id

    @property
    def render_cache(self) -> RenderCache | None:
        """Return the current message reference (unlocked read)."""
        return self._render_cache

    @asynccontextmanager
    async def console(self) -> AsyncIterator[Session]:
        """Hold exclusive access to the console for one call."""
        async with self._console_lock:
            yield self._session

    async def close(self) -> None:
        """Close the console connection."""
        async with self._console_lock:
            await self._session.close()

    async def restart_requested(self) -> bool:
        """Return the restart-requested flag."""
        async with self._restart_lock:
            return self._restart_requested

    async def set_restart_requested(self, value: bool) -> bool:
        """Set the restart-requested flag.

        Returns:
            The previous value.
        """
        async with self._restart_lock:
            previous = self._restart_requested
            self._restart_requested = value
        if previous != value:
            logger.info("Restart %s", "scheduled" if value else "cleared")
            self.restart_requested_changed.emit(value)
        return previous

    async def publish(self, text: str) -> None:
        """Show text on the status board.

        Edits the known status message, or creates one and remembers it.
        Failures are logged; the next tick tries again.
        """
        async with self._render_lock:
            if self._render_cache is not None:
                try:
                    await self._renderer.render(
                        self._render_cache.channel_id, self._render_cache.message_id, text
                    )
                except MessageNotFoundError:
                    logger.warning("Status message was deleted, posting a new one")
                    self._forget_message()
                except RenderError as e:
                    logger.error("Couldn't edit status message: %s", e)
                    return
                else:
                    self.status_rendered.emit(text)
                    return

            try:
                message_id = await self._renderer.render(self._channel_id, None, text)
            except RenderError as e:
                logger.error("Couldn't send status message: %s", e)
                return

            self._render_cache = RenderCache(self._channel_id, message_id)
            self._persist()
            self.status_rendered.emit(text)

    def _forget_message(self) -> None:
        self._render_cache = None
        if self._config is not None:
            self._config.clear_render_cache()

    def _persist(self) -> None:
        if self._config is None or self._render_cache is None:
            return
        try:
            self._config.save_render_cache(self._render_cache)
        except OSError as e:
            # The next run will post a second message
            logger.warning("Couldn't save status message reference: %s", e)
