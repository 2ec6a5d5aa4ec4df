"""The provisioning daemon application and its command line."""

from __future__ import annotations

import argparse
import logging
import subprocess
import sys
import threading
import traceback
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Sequence

import grpc

from provd.config import DaemonConfig, load_config
from provd.consts import VERSION
from provd.server import Daemon

log = logging.getLogger(__name__)

CMD_NAME = "provd"

# Temporary password of the login keyring during initial setup.
_KEYRING_UNLOCK_INPUT = b"gis"

_SHELLS = ("bash", "zsh", "fish")
_COMMANDS = ("completion", "version")


class UsageError(Exception):
    """Raised when the command line cannot be parsed."""


class _ParserExit(Exception):
    def __init__(self, status: int) -> None:
        super().__init__(status)
        self.status = status


class _Parser(argparse.ArgumentParser):
    def error(self, message: str):
        raise UsageError(f"{self.prog}: {message}")

    def exit(self, status: int = 0, message: str | None = None):
        if message:
            self._print_message(message, sys.stderr)
        raise _ParserExit(status)


def unlock_keyring() -> None:
    """Start gnome-keyring-daemon to unlock the login keyring."""
    proc = subprocess.Popen(["gnome-keyring-daemon", "--unlock"], stdin=subprocess.PIPE)
    proc.stdin.write(_KEYRING_UNLOCK_INPUT)
    proc.stdin.close()


def _default_services() -> grpc.Server:
    return grpc.server(ThreadPoolExecutor())


def _completion_script(shell: str) -> str:
    words = " ".join(_COMMANDS)
    if shell == "bash":
        return f'complete -W "{words}" {CMD_NAME}'
    if shell == "zsh":
        return f"#compdef {CMD_NAME}\n_arguments '1: :({words})'"
    return f'complete -c {CMD_NAME} -f -a "{words}"'


class App:
    """Commands and options of the provisioning daemon."""

    def __init__(
        self,
        register_services: Callable[[], object] | None = None,
        keyring_start: Callable[[], None] | None = None,
    ) -> None:
        self._register_services = register_services or _default_services
        self._keyring_start = keyring_start or unlock_keyring
        self._silence_usage = False
        self._daemon: Daemon | None = None
        self._ready = threading.Event()
        self.config = DaemonConfig()
        self._parser = self._build_parser()

    def _build_parser(self) -> _Parser:
        parser = _Parser(
            prog=CMD_NAME,
            usage=f"{CMD_NAME} COMMAND",
            description="Ubuntu Desktop Provisioning daemon.",
        )
        parser.add_argument(
            "-c", "--config", default=None, help="use a specific configuration file"
        )
        common = _Parser(add_help=False)
        common.add_argument(
            "-c",
            "--config",
            default=argparse.SUPPRESS,
            help="use a specific configuration file",
        )
        commands = parser.add_subparsers(dest="command")
        commands.add_parser(
            "version", parents=[common], help="Returns version of daemon and exits"
        )
        completion = commands.add_parser(
            "completion", parents=[common], help="Generate a shell completion script"
        )
        completion.add_argument("shell", choices=_SHELLS)
        return parser

    def run(self, argv: Sequence[str] | None = None) -> None:
        """Run the command given by argv; serving blocks until quit."""
        try:
            self._keyring_start()
        except Exception as exc:
            log.error("failed to start gnome-keyring-daemon: %s", exc)
            raise

        if argv is None:
            argv = sys.argv[1:]
        try:
            args = self._parser.parse_args(list(argv))
        except _ParserExit as exc:
            if exc.status:
                raise UsageError(f"{CMD_NAME}: exited with status {exc.status}") from None
            return

        # Parsing succeeded: further errors are not usage errors.
        self._silence_usage = True
        self.config = load_config(CMD_NAME, getattr(args, "config", None))
        log.debug("Debug mode is enabled")

        if args.command == "version":
            print(f"{CMD_NAME}\t{VERSION}")
        elif args.command == "completion":
            print(_completion_script(args.shell))
        else:
            self._serve()

    def _serve(self) -> None:
        try:
            daemon = Daemon(self._register_services, socket_path=self.config.paths.socket)
        except Exception:
            self._ready.set()
            raise
        self._daemon = daemon
        self._ready.set()
        daemon.serve()

    def usage_error(self) -> bool:
        """Return whether the last error came from command line parsing."""
        return not self._silence_usage

    def hup(self) -> bool:
        """Print the stack of every thread; return False: do not quit."""
        names = {thread.ident: thread.name for thread in threading.enumerate()}
        for ident, frame in sys._current_frames().items():
            print(f"Thread {names.get(ident, '?')} ({ident}):")
            print("".join(traceback.format_stack(frame)))
        return False

    def quit(self) -> None:
        """Gracefully shut the daemon down once it is ready."""
        self.wait_ready()
        if self._daemon is None:
            return
        self._daemon.quit(False)

    def wait_ready(self, timeout: float | None = None) -> bool:
        """Block until the daemon is ready or failed to start."""
        return self._ready.wait(timeout)