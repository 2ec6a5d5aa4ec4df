"""Accessibility service: reads and toggles GNOME accessibility settings."""

from __future__ import annotations

import subprocess
from typing import Protocol

from provd.errors import ServiceError, StatusCode

A11Y_INTERFACE_SCHEMA = "org.gnome.desktop.a11y.interface"
A11Y_APPLICATIONS_SCHEMA = "org.gnome.desktop.a11y.applications"
INTERFACE_SCHEMA = "org.gnome.desktop.interface"
WM_PREFERENCES_SCHEMA = "org.gnome.desktop.wm.preferences"
A11Y_KEYBOARD_SCHEMA = "org.gnome.desktop.a11y.keyboard"

TEXT_SCALING_DEFAULT = 1.0
TEXT_SCALING_LARGE = 1.25


class GSettings(Protocol):
    """The subset of a settings schema the service needs."""

    def is_writable(self, key: str) -> bool:
        """Return whether the key can be written."""

    def get_boolean(self, key: str) -> bool:
        """Return the boolean value of the key."""

    def set_boolean(self, key: str, value: bool) -> bool:
        """Write a boolean value; return whether it succeeded."""

    def get_double(self, key: str) -> float:
        """Return the floating point value of the key."""

    def set_double(self, key: str, value: float) -> bool:
        """Write a floating point value; return whether it succeeded."""


class GSettingsCommand:
    """Settings of one schema, accessed through the gsettings tool."""

    def __init__(self, schema: str) -> None:
        self.schema = schema

    def _run(self, *args: str) -> subprocess.CompletedProcess | None:
        try:
            return subprocess.run(
                ["gsettings", *args],
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError:
            return None

    def _output(self, *args: str) -> str | None:
        result = self._run(*args)
        if result is None or result.returncode != 0:
            return None
        return result.stdout.strip()

    def is_writable(self, key: str) -> bool:
        return self._output("writable", self.schema, key) == "true"

    def get_boolean(self, key: str) -> bool:
        return self._output("get", self.schema, key) == "true"

    def set_boolean(self, key: str, value: bool) -> bool:
        result = self._run("set", self.schema, key, "true" if value else "false")
        return result is not None and result.returncode == 0

    def get_double(self, key: str) -> float:
        out = self._output("get", self.schema, key)
        if out is None:
            return 0.0
        try:
            return float(out.split()[-1])
        except (ValueError, IndexError):
            return 0.0

    def set_double(self, key: str, value: float) -> bool:
        result = self._run("set", self.schema, key, repr(float(value)))
        return result is not None and result.returncode == 0


def _format_value(value: bool | float) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return f"{value:g}"


def _set_boolean(settings: GSettings, key: str, enabled: bool, error: str) -> None:
    if not settings.set_boolean(key, enabled):
        raise ServiceError(StatusCode.INTERNAL, error.format(_format_value(enabled)))


def _set_double(settings: GSettings, key: str, value: float, error: str) -> None:
    if not settings.set_double(key, value):
        raise ServiceError(StatusCode.INTERNAL, error.format(_format_value(value)))


class AccessibilityService:
    """Gets and sets the desktop accessibility features."""

    def __init__(
        self,
        a11y_settings: GSettings | None = None,
        application_settings: GSettings | None = None,
        interface_settings: GSettings | None = None,
        wm_settings: GSettings | None = None,
        keyboard_settings: GSettings | None = None,
    ) -> None:
        self._a11y = a11y_settings or GSettingsCommand(A11Y_INTERFACE_SCHEMA)
        self._applications = application_settings or GSettingsCommand(
            A11Y_APPLICATIONS_SCHEMA
        )
        self._interface = interface_settings or GSettingsCommand(INTERFACE_SCHEMA)
        self._wm = wm_settings or GSettingsCommand(WM_PREFERENCES_SCHEMA)
        self._keyboard = keyboard_settings or GSettingsCommand(A11Y_KEYBOARD_SCHEMA)

        # A writability check on one key of each schema serves as a ping.
        probes = [
            (self._a11y, "high-contrast", A11Y_INTERFACE_SCHEMA),
            (self._applications, "screen-keyboard-enabled", A11Y_APPLICATIONS_SCHEMA),
            (self._interface, "cursor-blink", INTERFACE_SCHEMA),
            (self._wm, "audible-bell", WM_PREFERENCES_SCHEMA),
            (self._keyboard, "sticky-keys", A11Y_KEYBOARD_SCHEMA),
        ]
        errors = [
            f"failed to connect to {schema}"
            for settings, key, schema in probes
            if not settings.is_writable(key)
        ]
        if errors:
            raise ServiceError(StatusCode.INTERNAL, "\n".join(errors))

    # Hearing

    def get_visual_alerts(self) -> bool:
        """Return whether visual alerts are enabled."""
        return self._wm.get_boolean("visual-bell")

    def enable_visual_alerts(self) -> None:
        """Enable visual alerts."""
        _set_boolean(self._wm, "visual-bell", True, "failed to enable visual alerts {}")

    def disable_visual_alerts(self) -> None:
        """Disable visual alerts."""
        _set_boolean(self._wm, "visual-bell", False, "failed to disable visual alerts {}")

    # Pointing and clicking

    def get_mouse_keys(self) -> bool:
        """Return whether mouse keys are enabled."""
        return self._keyboard.get_boolean("mousekeys-enable")

    def enable_mouse_keys(self) -> None:
        """Enable mouse keys."""
        _set_boolean(
            self._keyboard, "mousekeys-enable", True, "failed to enable mouse keys: {}"
        )

    def disable_mouse_keys(self) -> None:
        """Disable mouse keys."""
        _set_boolean(
            self._keyboard, "mousekeys-enable", False, "failed to disable mouse keys: {}"
        )

    # Seeing

    def get_high_contrast(self) -> bool:
        """Return whether high contrast is enabled."""
        return self._a11y.get_boolean("high-contrast")

    def enable_high_contrast(self) -> None:
        """Enable high contrast."""
        _set_boolean(
            self._a11y, "high-contrast", True, "failed to enable high contrast: {}"
        )

    def disable_high_contrast(self) -> None:
        """Disable high contrast."""
        _set_boolean(
            self._a11y, "high-contrast", False, "failed to disable high contrast: {}"
        )

    def get_reduced_motion(self) -> bool:
        """Return whether reduced motion is enabled."""
        return not self._interface.get_boolean("enable-animations")

    def enable_reduced_motion(self) -> None:
        """Enable reduced motion by turning animations off."""
        _set_boolean(
            self._interface,
            "enable-animations",
            False,
            "failed to enable reduced motion: {}",
        )

    def disable_reduced_motion(self) -> None:
        """Disable reduced motion by turning animations on."""
        _set_boolean(
            self._interface,
            "enable-animations",
            True,
            "failed to disable reduced motion: {}",
        )

    def get_large_text(self) -> bool:
        """Return whether the text scaling factor is the large one."""
        return self._interface.get_double("text-scaling-factor") == TEXT_SCALING_LARGE

    def enable_large_text(self) -> None:
        """Set the text scaling factor to the large one."""
        _set_double(
            self._interface,
            "text-scaling-factor",
            TEXT_SCALING_LARGE,
            "failed to enable large text: {}",
        )

    def disable_large_text(self) -> None:
        """Reset the text scaling factor to the default."""
        _set_double(
            self._interface,
            "text-scaling-factor",
            TEXT_SCALING_DEFAULT,
            "failed to disable large text: {}",
        )

    def get_screen_reader(self) -> bool:
        """Return whether the screen reader is enabled."""
        return self._applications.get_boolean("screen-reader-enabled")

    def enable_screen_reader(self) -> None:
        """Enable the screen reader."""
        _set_boolean(
            self._applications,
            "screen-reader-enabled",
            True,
            "failed to enable screen reader: {}",
        )

    def disable_screen_reader(self) -> None:
        """Disable the screen reader."""
        _set_boolean(
            self._applications,
            "screen-reader-enabled",
            False,
            "failed to disable screen reader: {}",
        )

    # Typing

    def get_screen_keyboard(self) -> bool:
        """Return whether the screen keyboard is enabled."""
        return self._applications.get_boolean("screen-keyboard-enabled")

    def enable_screen_keyboard(self) -> None:
        """Enable the screen keyboard."""
        _set_boolean(
            self._applications,
            "screen-keyboard-enabled",
            True,
            "failed to enable screen keyboard: {}",
        )

    def disable_screen_keyboard(self) -> None:
        """Disable the screen keyboard."""
        _set_boolean(
            self._applications,
            "screen-keyboard-enabled",
            False,
            "failed to disable screen keyboard: {}",
        )

    def get_sticky_keys(self) -> bool:
        """Return whether sticky keys are enabled."""
        return self._keyboard.get_boolean("stickykeys-enable")

    def enable_sticky_keys(self) -> None:
        """Enable sticky keys."""
        _set_boolean(
            self._keyboard, "stickykeys-enable", True, "failed to enable sticky keys: {}"
        )

    def disable_sticky_keys(self) -> None:
        """Disable sticky keys."""
        _set_boolean(
            self._keyboard,
            "stickykeys-enable",
            False,
            "failed to disable sticky keys: {}",
        )

    def get_slow_keys(self) -> bool:
        """Return whether slow keys are enabled."""
        return self._keyboard.get_boolean("slowkeys-enable")

    def enable_slow_keys(self) -> None:
        """Enable slow keys."""
        _set_boolean(
            self._keyboard, "slowkeys-enable", True, "failed to enable slow keys: {}"
        )

    def disable_slow_keys(self) -> None:
        """Disable slow keys."""
        _set_boolean(
            self._keyboard, "slowkeys-enable", False, "failed to disable slow keys: {}"
        )

    # Zoom

    def get_desktop_zoom(self) -> bool:
        """Return whether desktop zoom is enabled."""
        return self._applications.get_boolean("screen-magnifier-enabled")

    def enable_desktop_zoom(self) -> None:
        """Enable desktop zoom."""
        _set_boolean(
            self._applications,
            "screen-magnifier-enabled",
            True,
            "failed to enable desktop zoom: {}",
        )

    def disable_desktop_zoom(self) -> None:
        """Disable desktop zoom."""
        _set_boolean(
            self._applications,
            "screen-magnifier-enabled",
            False,
            "failed to disable desktop zoom: {}",
        )