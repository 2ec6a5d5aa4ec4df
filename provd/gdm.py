"""GDM service: launches a desktop session through the display manager."""

from __future__ import annotations

import logging
import queue
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable

from provd.consts import DBUS_GDM_PREFIX, DBUS_PEER_PREFIX
from provd.errors import ServiceError, StatusCode

log = logging.getLogger(__name__)

MANAGER_PATH = "/org/gnome/DisplayManager/Manager"
SESSION_PATH = "/org/gnome/DisplayManager/Session"


@dataclass(frozen=True)
class Signal:
    """A D-Bus signal: its full member name and body."""

    name: str
    body: tuple = field(default_factory=tuple)


class BusObject(ABC):
    """A remote object on a message bus."""

    @abstractmethod
    def call(self, method: str, *args: Any) -> list:
        """Call a method and return its reply body; raise on failure."""


class BusConnection(ABC):
    """A connection to a message bus."""

    @abstractmethod
    def object(self, destination: str, path: str) -> BusObject:
        """Return a proxy for a remote object."""

    @abstractmethod
    def auth(self) -> None:
        """Authenticate on the bus."""

    @abstractmethod
    def hello(self) -> None:
        """Register on the bus."""

    @abstractmethod
    def add_signal_queue(self, signals: queue.Queue) -> None:
        """Deliver incoming signals to the queue."""

    @abstractmethod
    def remove_signal_queue(self, signals: queue.Queue) -> None:
        """Stop delivering signals to the queue."""

    @abstractmethod
    def close(self) -> None:
        """Close the connection."""


class GdmService:
    """Opens a GDM session and logs a user in through its private bus."""

    def __init__(
        self,
        conn: BusConnection,
        dial: Callable[[str], BusConnection],
        gdm_prefix: str = DBUS_GDM_PREFIX,
    ) -> None:
        self._conn = conn
        self._private_conn: BusConnection | None = None
        display_manager = conn.object(gdm_prefix, MANAGER_PATH)

        try:
            body = display_manager.call(f"{DBUS_GDM_PREFIX}.Manager.OpenSession")
        except Exception as exc:
            raise ServiceError(StatusCode.INTERNAL, f"failed to call Manager: {exc}") from exc

        bus_address = body[0] if body else None
        if not isinstance(bus_address, str):
            raise ServiceError(
                StatusCode.INTERNAL, "failed to get bus address from Manager"
            )

        try:
            private = dial(bus_address)
        except Exception as exc:
            raise ServiceError(
                StatusCode.INTERNAL, f"failed to connect to session bus: {exc}"
            ) from exc
        self._private_conn = private
        try:
            private.auth()
        except Exception as exc:
            raise ServiceError(StatusCode.INTERNAL, f"failed to authenticate: {exc}") from exc

        # GDM's private bus does not implement Hello.
        try:
            private.hello()
        except Exception:
            pass

        self._user_verifier = private.object(f"{DBUS_GDM_PREFIX}.UserVerifier", SESSION_PATH)
        self._ping(self._user_verifier, "UserVerifier")
        self._greeter = private.object(f"{DBUS_GDM_PREFIX}.Greeter", SESSION_PATH)
        self._ping(self._greeter, "Greeter")

    @staticmethod
    def _ping(obj: BusObject, name: str) -> None:
        try:
            obj.call(f"{DBUS_PEER_PREFIX}.Ping")
        except Exception as exc:
            raise ServiceError(StatusCode.INTERNAL, f"failed to ping {name}: {exc}") from exc

    def launch_desktop_session(
        self, username: str, password: str, timeout: float | None = None
    ) -> None:
        """Authenticate the user and start their desktop session."""
        if not username:
            raise ServiceError(StatusCode.INVALID_ARGUMENT, "received an empty username")

        signals: queue.Queue = queue.Queue()
        self._private_conn.add_signal_queue(signals)
        try:
            self._call(
                self._user_verifier,
                "BeginVerificationForUser",
                f"{DBUS_GDM_PREFIX}.UserVerifier.BeginVerificationForUser",
                "gdm-password",
                username,
            )
            deadline = None if timeout is None else time.monotonic() + timeout
            while True:
                remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
                try:
                    signal = signals.get(timeout=remaining)
                except queue.Empty:
                    raise ServiceError(
                        StatusCode.DEADLINE_EXCEEDED, "context deadline exceeded"
                    ) from None
                if self._handle_signal(signal, password):
                    return
        finally:
            self._private_conn.remove_signal_queue(signals)

    def _handle_signal(self, signal: Signal, password: str) -> bool:
        if signal.name == f"{DBUS_GDM_PREFIX}.UserVerifier.Problem":
            log.error("Problem signal received: %r", signal)
            problem = signal.body[1] if len(signal.body) > 1 else None
            raise ServiceError(StatusCode.INTERNAL, f"received Problem signal: {problem}")
        if signal.name == f"{DBUS_GDM_PREFIX}.UserVerifier.SecretInfoQuery":
            log.debug("SecretInfoQuery signal received: %r", signal)
            msg = self._first_string(signal, "SecretInfoQuery")
            self._call(
                self._user_verifier,
                "AnswerQuery",
                f"{DBUS_GDM_PREFIX}.UserVerifier.AnswerQuery",
                msg,
                password,
            )
            return False
        if signal.name == f"{DBUS_GDM_PREFIX}.Greeter.SessionOpened":
            log.debug("SessionOpened signal received: %r", signal)
            msg = self._first_string(signal, "SessionOpened")
            self._call(
                self._greeter,
                "StartSessionWhenReady",
                f"{DBUS_GDM_PREFIX}.Greeter.StartSessionWhenReady",
                msg,
                True,
            )
            return True
        log.debug("Received signal: %r", signal)
        return False

    @staticmethod
    def _first_string(signal: Signal, name: str) -> str:
        msg = signal.body[0] if signal.body else None
        if not isinstance(msg, str):
            raise ServiceError(
                StatusCode.INTERNAL, f"failed to get message from {name} signal"
            )
        return msg

    @staticmethod
    def _call(obj: BusObject, label: str, method: str, *args: Any) -> None:
        try:
            obj.call(method, *args)
        except Exception as exc:
            raise ServiceError(StatusCode.INTERNAL, f"failed to call {label}: {exc}") from exc

    def close(self) -> None:
        """Close the private bus connection."""
        if self._private_conn is not None:
            self._private_conn.close()