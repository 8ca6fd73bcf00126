"""Main entry point for rconctl."""

import argparse
import asyncio
import logging
import signal
import sys
from typing import TextIO

from PySide6.QtCore import QCoreApplication, QSocketNotifier, QTimer

from rconctl.api.client import RconError
from rconctl.core.commands import lookup_uuid
from rconctl.core.config import ConfigError, ConfigManager, Settings, any_set, env_help
from rconctl.core.loop import ControlLoop
from rconctl.core.moderation import ModerationFilter
from rconctl.core.render import LogRenderer, Renderer, WebhookRenderer
from rconctl.core.session import Session
from rconctl.core.state import SharedState
from rconctl.core.status import StatusParser
from rconctl.core.worker import ControlWorker

logger = logging.getLogger(__name__)

OPERATOR_HELP = """Commands:
  run <command>        run a console command
  restart              restart as soon as everyone logs off
  restart cancel       cancel a scheduled restart
  uuid <name> [online] show a player's UUID
  quit                 exit"""


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        prog="rconctl",
        description="Remote console controller for game servers",
        epilog=f"Environment variables:\n{env_help()}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    sub = parser.add_subparsers(dest="action")

    sub.add_parser("watch", help="run the status board and read operator commands from stdin")

    exec_parser = sub.add_parser("exec", help="run one console command and print the reply")
    exec_parser.add_argument("command", nargs="+", help="console command")

    uuid_parser = sub.add_parser("uuid", help="print the UUID for a player name")
    uuid_parser.add_argument("name", help="player name")
    uuid_parser.add_argument("--online", action="store_true", help="look up the account UUID")
    return parser


def load_settings() -> Settings | None:
    """Load settings from the environment, printing help on failure."""
    if not any_set():
        print(f"# Environment Variables Help\n{env_help()}", file=sys.stderr)
        return None
    try:
        return Settings.from_env()
    except ConfigError as e:
        print(f"{e}\n\n# Environment Variables Help\n{env_help()}", file=sys.stderr)
        return None


def make_session(settings: Settings) -> Session:
    """Create the console session described by the settings."""
    return Session(
        settings.rcon_host,
        settings.rcon_port,
        settings.rcon_password,
        settings.command_timeout,
    )


def make_renderer(settings: Settings) -> Renderer:
    """Pick the webhook renderer if configured, else log."""
    if settings.webhook_url:
        return WebhookRenderer(settings.webhook_url)
    logger.info("LIST_WEBHOOK_URL is not set, status updates go to the log")
    return LogRenderer()


def handle_operator_line(worker: ControlWorker, line: str) -> bool:
    """Dispatch one operator input line.

    Returns:
        False if the operator asked to quit.
    """
    verb, _, rest = line.strip().partition(" ")
    rest = rest.strip()
    if not verb:
        return True
    if verb == "quit":
        return False
    if verb == "run" and rest:
        worker.run_command(rest)
    elif verb == "restart" and rest in ("", "cancel"):
        worker.schedule_restart(cancel=rest == "cancel")
    elif verb == "uuid" and rest:
        name, _, mode = rest.partition(" ")
        worker.lookup_uuid(name, online=mode.strip() == "online")
    else:
        print(OPERATOR_HELP)
    return True


def read_operator_input(worker: ControlWorker, stream: TextIO) -> bool:
    """Read and dispatch one line of operator input.

    End of input only stops reading; the controller keeps running until
    SIGINT.

    Returns:
        False when no more input should be read.
    """
    line = stream.readline()
    if not line:
        logger.info("Operator input closed, use SIGINT to stop")
        return False
    if not handle_operator_line(worker, line):
        worker.stop()
        return False
    return True


def watch(settings: Settings) -> int:
    """Run the control loop until interrupted."""
    app = QCoreApplication(sys.argv[:1])
    QCoreApplication.setApplicationName("rconctl")
    QCoreApplication.setOrganizationName("rconctl")

    shared = SharedState(
        make_session(settings),
        make_renderer(settings),
        settings.list_channel_id,
        config=ConfigManager(),
    )
    control_loop = ControlLoop(
        shared,
        StatusParser(structured=settings.has_list_json),
        ModerationFilter(settings.placeholder),
        interval=settings.poll_interval,
    )
    worker = ControlWorker(shared, control_loop)

    worker.reply_ready.connect(print)
    worker.error_occurred.connect(lambda e: logger.error("Error: %s", e))
    shared.restart_requested_changed.connect(
        lambda value: logger.debug("Restart flag is now %s", value)
    )
    worker.finished.connect(app.quit)

    def on_stdin() -> None:
        if not read_operator_input(worker, sys.stdin):
            notifier.setEnabled(False)

    notifier = QSocketNotifier(sys.stdin.fileno(), QSocketNotifier.Type.Read)
    notifier.activated.connect(on_stdin)

    # Let Python see SIGINT while Qt's event loop runs
    signal.signal(signal.SIGINT, lambda *_: worker.stop())
    interrupt_timer = QTimer()
    interrupt_timer.timeout.connect(lambda: None)
    interrupt_timer.start(250)

    logger.info(
        "Watching %s:%d every %gs (%s status)",
        settings.rcon_host,
        settings.rcon_port,
        settings.poll_interval,
        "structured" if settings.has_list_json else "plain",
    )
    worker.start()
    exit_code = app.exec()

    worker.stop()
    worker.wait()
    return exit_code


async def exec_once(settings: Settings, command: str) -> int:
    """Run a single console command."""
    session = make_session(settings)
    try:
        print(await session.execute(command))
    except RconError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await session.close()
    return 0


def main() -> int:
    """Run rconctl.

    Returns:
        Exit code (0 for success).
    """
    args = build_parser().parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.action == "uuid":
        print(asyncio.run(lookup_uuid(args.name, args.online)))
        return 0

    settings = load_settings()
    if settings is None:
        return 1

    if args.action == "exec":
        return asyncio.run(exec_once(settings, " ".join(args.command)))
    return watch(settings)


if __name__ == "__main__":
    sys.exit(main())
