"""Entry point of the provisioning daemon."""

from __future__ import annotations

import contextlib
import logging
import queue
import signal
import sys
import threading
from typing import Iterator, Protocol, Sequence

from provd.app import App
from provd.consts import DEFAULT_LOG_LEVEL

log = logging.getLogger(__name__)


class _Runnable(Protocol):
    def run(self, argv: Sequence[str] | None = None) -> None: ...

    def usage_error(self) -> bool: ...

    def hup(self) -> bool: ...

    def quit(self) -> None: ...


@contextlib.contextmanager
def install_signal_handler(app: _Runnable) -> Iterator[None]:
    """Quit the app on SIGINT or SIGTERM, and on SIGHUP if hup asks to."""
    signals: queue.SimpleQueue = queue.SimpleQueue()
    watched = (signal.SIGHUP, signal.SIGINT, signal.SIGTERM)

    def handler(signum, frame):
        signals.put(signum)

    previous = {sig: signal.signal(sig, handler) for sig in watched}

    def watch() -> None:
        while True:
            signum = signals.get()
            if signum is None:
                return
            if signum in (signal.SIGINT, signal.SIGTERM):
                app.quit()
                return
            if signum == signal.SIGHUP and app.hup():
                app.quit()
                return

    watcher = threading.Thread(target=watch, name="signal-watcher", daemon=True)
    watcher.start()
    try:
        yield
    finally:
        for sig, old in previous.items():
            signal.signal(sig, old if old is not None else signal.SIG_DFL)
        signals.put(None)
        watcher.join()


def run(app: _Runnable, argv: Sequence[str] | None = None) -> int:
    """Run the app and return the process exit code."""
    with install_signal_handler(app):
        try:
            app.run(argv)
        except Exception as exc:
            log.error("%s", exc)
            return 2 if app.usage_error() else 1
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Start the provisioning daemon."""
    logging.basicConfig(level=DEFAULT_LOG_LEVEL)
    return run(App(), argv)


if __name__ == "__main__":
    sys.exit(main())