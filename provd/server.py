"""gRPC daemon listening on a unix socket, with systemd support."""

from __future__ import annotations

import contextlib
import logging
import os
import socket
import threading
from typing import Callable, Sequence

log = logging.getLogger(__name__)

_SD_LISTEN_FDS_START = 3
_GRACEFUL_TIMEOUT = 365 * 24 * 3600.0


class DaemonError(Exception):
    """Raised when the daemon cannot be created or cannot serve."""


def systemd_listeners() -> list[socket.socket]:
    """Return the sockets passed by systemd socket activation."""
    try:
        pid = int(os.environ.get("LISTEN_PID", ""))
        count = int(os.environ.get("LISTEN_FDS", ""))
    except ValueError:
        return []
    finally:
        os.environ.pop("LISTEN_PID", None)
        os.environ.pop("LISTEN_FDS", None)
        os.environ.pop("LISTEN_FDNAMES", None)
    if pid != os.getpid() or count <= 0:
        return []
    listeners = []
    for fd in range(_SD_LISTEN_FDS_START, _SD_LISTEN_FDS_START + count):
        os.set_inheritable(fd, False)
        listeners.append(socket.socket(fileno=fd))
    return listeners


def sd_notify(unset_environment: bool, state: str) -> bool:
    """Send a state notification to systemd; return whether it was sent."""
    address = os.environ.get("NOTIFY_SOCKET", "")
    if unset_environment:
        os.environ.pop("NOTIFY_SOCKET", None)
    if not address:
        return False
    if address.startswith("@"):
        address = "\0" + address[1:]
    with socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM) as sock:
        sock.connect(address)
        sock.sendall(state.encode())
    return True


class Daemon:
    """A gRPC server bound to a unix socket, manual or socket-activated."""

    def __init__(
        self,
        register_services: Callable[[], object],
        socket_path: str = "",
        activation_listeners: Callable[[], Sequence[socket.socket]] = systemd_listeners,
        notifier: Callable[[bool, str], bool] = sd_notify,
    ) -> None:
        log.debug("Building new daemon")
        self._notifier = notifier
        self._lock = threading.Lock()
        self._stopped = False

        if socket_path:
            log.debug("Listening on %s", socket_path)
            self._server = register_services()
            self._bind(socket_path)
            try:
                os.chmod(socket_path, 0o600)
            except OSError as exc:
                raise DaemonError(
                    f"can't create daemon: could not change socket permission: {exc}"
                ) from exc
            self._address = socket_path
            self._check_exists()
        else:
            log.debug("Use socket activation")
            try:
                listeners = list(activation_listeners())
            except Exception as exc:
                raise DaemonError(f"can't create daemon: {exc}") from exc
            if len(listeners) != 1:
                raise DaemonError(
                    "can't create daemon: unexpected number of systemd socket "
                    f"activation ({len(listeners)} != 1)"
                )
            listener = listeners[0]
            self._address = str(listener.getsockname())
            self._check_exists()
            listener.close()
            with contextlib.suppress(FileNotFoundError):
                os.unlink(self._address)
            self._server = register_services()
            self._bind(self._address)

    def _bind(self, path: str) -> None:
        try:
            self._server.add_insecure_port(f"unix:{path}")
        except RuntimeError as exc:
            raise DaemonError(f"can't create daemon: {exc}") from exc

    def _check_exists(self) -> None:
        try:
            os.stat(self._address)
        except OSError as exc:
            raise DaemonError(
                f"can't create daemon: {self._address} can't be accessed: {exc}"
            ) from exc

    def address(self) -> str:
        """Return the path of the socket being served."""
        return self._address

    def serve(self) -> None:
        """Notify systemd and serve requests until quit is called."""
        try:
            sent = self._notifier(False, "READY=1")
        except Exception as exc:
            raise DaemonError(
                f"error while serving: couldn't send ready notification to systemd: {exc}"
            ) from exc
        if sent:
            log.debug("Ready state sent to systemd")

        with self._lock:
            if self._stopped:
                raise DaemonError(
                    "error while serving: grpc error: the server has been stopped"
                )
            log.info("Serving GRPC requests on %s", self._address)
            self._server.start()
        self._server.wait_for_termination()
        with contextlib.suppress(FileNotFoundError):
            os.unlink(self._address)

    def quit(self, force: bool = False) -> None:
        """Stop the server, waiting for active requests unless forced."""
        log.info("Stopping daemon requested.")
        with self._lock:
            self._stopped = True
            if force:
                done = self._server.stop(None)
            else:
                log.info("Wait for active requests to close.")
                done = self._server.stop(_GRACEFUL_TIMEOUT)
        done.wait()
        log.debug("All connections have now ended.")