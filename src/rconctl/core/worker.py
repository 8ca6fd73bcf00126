"""QThread worker hosting the asyncio event loop.

The control loop and every operator command run as coroutines on one
event loop owned by this thread. Callers on the Qt main thread use the
thread-safe entry points, which schedule coroutines on that loop and
report back through Qt signals.
"""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

from PySide6.QtCore import QThread, Signal

from rconctl.core import commands
from rconctl.core.loop import ControlLoop
from rconctl.core.state import SharedState

logger = logging.getLogger(__name__)


class ControlWorker(QThread):
    """Background thread running the control loop and operator commands.

    Example:
        worker = ControlWorker(shared, control_loop)
        worker.reply_ready.connect(print)
        worker.start()
        worker.run_command("say hello")
    """

    # Reply text for an operator command
    reply_ready = Signal(str)

    # Unexpected failure inside the worker
    error_occurred = Signal(object)

    def __init__(self, shared: SharedState, control_loop: ControlLoop) -> None:
        """Initialize the worker.

        Args:
            shared: Shared state passed to every command.
            control_loop: The periodic task to run.
        """
        super().__init__()
        self._shared = shared
        self._control_loop = control_loop
        self._loop: asyncio.AbstractEventLoop | None = None
        self._main_task: asyncio.Task[None] | None = None
        self._stop_requested = False

    @property
    def is_running(self) -> bool:
        """Return True if the event loop is up."""
        return self._loop is not None and self._loop.is_running()

    def stop(self) -> None:
        """Stop the control loop (called from main thread).

        Safe to call before the thread has created its loop; run() then
        returns without starting the control loop.
        """
        self._stop_requested = True
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            # Runs once the loop is running, even if it has not started yet
            loop.call_soon_threadsafe(self._cancel_main_task)
        except RuntimeError:
            logger.debug("Event loop closed before stop was delivered")

    def _cancel_main_task(self) -> None:
        if self._main_task is not None:
            self._main_task.cancel()

    def run_command(self, command: str) -> None:
        """Run a console command. Thread-safe."""
        self._submit(commands.run_command(self._shared, command))

    def schedule_restart(self, cancel: bool = False) -> None:
        """Schedule or cancel a restart. Thread-safe."""
        self._submit(commands.schedule_restart(self._shared, cancel))

    def lookup_uuid(self, name: str, online: bool = False) -> None:
        """Look up a player UUID. Thread-safe."""
        self._submit(commands.lookup_uuid(name, online))

    def _submit(self, coro: Coroutine[Any, Any, str]) -> None:
        if not self.is_running or self._loop is None:
            coro.close()
            self.reply_ready.emit("The controller is not running.")
            return
        asyncio.run_coroutine_threadsafe(self._reply(coro), self._loop)

    async def _reply(self, coro: Coroutine[Any, Any, str]) -> None:
        try:
            self.reply_ready.emit(await coro)
        except Exception as e:  # noqa: BLE001
            logger.exception("Operator command failed")
            self.error_occurred.emit(e)

    def run(self) -> None:
        """Run the worker thread (entry point)."""
        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)

        try:
            if self._stop_requested:
                logger.debug("Stop requested before the control loop started")
                return
            self._main_task = self._loop.create_task(self._control_loop.run())
            self._loop.run_until_complete(self._main_task)
        except asyncio.CancelledError:
            logger.debug("Control loop cancelled")
        except Exception as e:
            self.error_occurred.emit(e)
        finally:
            self._loop.run_until_complete(self._shared.close())
            self._loop.close()
            self._loop = None
            self._main_task = None
