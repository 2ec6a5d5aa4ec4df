# provd

`provd` is a provisioning daemon for the first-boot setup of a desktop
system. It runs a gRPC server on a Unix socket, either one it creates itself
or one handed over by systemd socket activation. The package also provides
two services as Python classes:

- `provd.accessibility.AccessibilityService` reads and toggles high
  contrast, reduced motion, large text, screen reader, screen keyboard,
  sticky keys, slow keys, mouse keys, visual alerts and desktop zoom. By
  default it does this by running the `gsettings` tool.
- `provd.gdm.GdmService` starts a desktop session for a user through the
  display manager's verification protocol over D-Bus.

Before it parses its command line, the daemon starts
`gnome-keyring-daemon --unlock` to unlock the login keyring.

## Installation

```
pip install .
```

## Running the daemon

```
provd
```

The daemon listens on
`/run/gnome-initial-setup/desktop-provision/init.socket` unless the
configuration names another path. It creates that socket with mode `0600`.
If the configured socket path is empty, it uses the one socket passed by
systemd socket activation instead, and fails if there is not exactly one.
When `NOTIFY_SOCKET` is set, it sends `READY=1` to systemd before it starts
serving.

Print the version and exit:

```
provd version
```

Print a shell completion script (`bash`, `zsh` or `fish`):

```
provd completion bash
```

Use a specific configuration file:

```
provd --config /path/to/provd.yaml
```

A configuration file given with `--config` must exist and be readable.

### Configuration

If `--config` is not given, the daemon looks for `provd.yaml`, `provd.yml`
or `provd.json` in these places, in this order: the current directory,
`$HOME`, `/etc/provd/`, and the directory of the executable. If no file is
found, the defaults apply. A file that cannot be parsed, or that does not
hold a mapping, is an error.

```yaml
paths:
  socket: /run/provd/custom.socket
```

Environment variables with the `PROVD_` prefix override values from the
file. Underscores mark nesting, so `PROVD_PATHS_SOCKET` sets `paths.socket`.
Variables with an empty value are ignored.

The same loading is available as `provd.config.load_config(name,
config_file, environ)`, which returns a `DaemonConfig` and raises
`ConfigError` on failure.

### Signals

- `SIGINT` and `SIGTERM` stop the daemon gracefully: it waits for active
  requests to finish.
- `SIGHUP` prints the stack of every thread and keeps the daemon running.

### Exit codes

| Code | Meaning                   |
|------|---------------------------|
| 0    | clean exit                |
| 1    | runtime error             |
| 2    | command-line usage error  |

## Library use

```python
from provd.accessibility import AccessibilityService

service = AccessibilityService()
if not service.get_high_contrast():
    service.enable_high_contrast()
```

`AccessibilityService` accepts any objects that provide `is_writable`,
`get_boolean`, `set_boolean`, `get_double` and `set_double` for each of its
five settings schemas; those not given default to `GSettingsCommand`.

`GdmService(conn, dial)` takes a `provd.gdm.BusConnection` to the system
bus and a function that opens a connection to a bus address. Its
`launch_desktop_session(username, password, timeout)` answers the display
manager's secret query with the password and starts the session once it is
opened.

`provd.server.Daemon` is the server itself: give it a function that returns
a `grpc.Server`, then call `serve()`, and `quit(force)` to stop it.

A failed service operation raises `provd.errors.ServiceError`. Its `code`
holds a `provd.errors.StatusCode` value.

## What it does not do

- The `provd` command starts a gRPC server with no services registered on
  it. The accessibility and GDM services are not exposed over the socket;
  there are no gRPC message definitions in this package.
- The package has no D-Bus client of its own. `GdmService` works only with
  a `BusConnection` implementation supplied by the caller.