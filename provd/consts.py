"""Constants used across the provisioning daemon."""

import logging

VERSION = "Dev"

TEXTDOMAIN = "provd"

DEFAULT_LOG_LEVEL = logging.WARNING

DEFAULT_SOCKET_PATH = "/run/gnome-initial-setup/desktop-provision/init.socket"

DBUS_ACCOUNTS_PREFIX = "org.freedesktop.Accounts"
DBUS_USER_PREFIX = "org.freedesktop.Accounts.User"
DBUS_HOSTNAME_PREFIX = "org.freedesktop.hostname1"
DBUS_PEER_PREFIX = "org.freedesktop.DBus.Peer"
DBUS_LOCALE_PREFIX = "org.freedesktop.locale1"
DBUS_TIMEDATE_PREFIX = "org.freedesktop.timedate1"
DBUS_GDM_PREFIX = "org.gnome.DisplayManager"