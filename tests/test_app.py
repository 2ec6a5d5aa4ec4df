import os
import shutil
import tempfile
import threading
import time
from pathlib import Path
from unittest import mock

import pytest
import yaml

from provd.app import _KEYRING_UNLOCK_INPUT, App, UsageError, unlock_keyring
from provd.config import ConfigError
from provd.server import DaemonError


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    workdir = tmp_path / "work"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    monkeypatch.setenv("HOME", str(workdir))
    for name in list(os.environ):
        if name.startswith("PROVD_"):
            monkeypatch.delenv(name)


@pytest.fixture
def short_dir():
    path = tempfile.mkdtemp(prefix="provd-")
    yield Path(path)
    shutil.rmtree(path, ignore_errors=True)


def no_keyring():
    return None


def write_config(directory: Path, socket: str) -> str:
    path = directory / "testconfig.yaml"
    path.write_text(yaml.safe_dump({"paths": {"socket": socket}}))
    return str(path)


def start_app(config_path):
    app = App(keyring_start=no_keyring)
    errors = []

    def target():
        try:
            app.run(["--config", config_path])
        except Exception as exc:
            errors.append(exc)

    thread = threading.Thread(target=target)
    thread.start()
    app.wait_ready(5)
    time.sleep(0.05)
    return app, thread, errors


def test_help(capsys):
    app = App(keyring_start=no_keyring)
    app.run(["--help"])
    assert "provd" in capsys.readouterr().out


def test_completion(capsys):
    app = App(keyring_start=no_keyring)
    app.run(["completion", "bash"])
    out = capsys.readouterr().out
    assert "version" in out
    assert app.usage_error() is False


def test_version(capsys):
    app = App(keyring_start=no_keyring)
    app.run(["version"])
    fields = capsys.readouterr().out.split()
    assert fields == ["provd", "Dev"]


def test_usage_error():
    app = App(keyring_start=no_keyring)
    with pytest.raises(UsageError):
        app.run(["doesnotexist"])
    assert app.usage_error() is True


def test_extra_argument_to_version_is_usage_error():
    app = App(keyring_start=no_keyring)
    with pytest.raises(UsageError):
        app.run(["version", "extra"])
    assert app.usage_error() is True


def test_no_config_sets_defaults():
    app = App(keyring_start=no_keyring)
    app.run(["version"])
    assert app.config.paths.socket == "/run/gnome-initial-setup/desktop-provision/init.socket"


def test_config_after_subcommand_is_used(tmp_path, capsys):
    path = write_config(tmp_path, "/tmp/after.sock")
    app = App(keyring_start=no_keyring)
    app.run(["version", "--config", path])
    assert app.config.paths.socket == "/tmp/after.sock"


def test_bad_config_file(tmp_path):
    path = tmp_path / "empty_config.yaml"
    path.write_text("foo")
    app = App(keyring_start=no_keyring)
    with pytest.raises(ConfigError):
        app.run(["version", "--config", str(path)])


def test_missing_config_returns_error():
    app = App(keyring_start=no_keyring)
    with pytest.raises(ConfigError):
        app.run(["version", "--config", "/does/not/exist.yaml"])


def test_keyring_error_is_raised():
    def failing():
        raise RuntimeError("error unlocking keyring")

    app = App(keyring_start=failing)
    with pytest.raises(RuntimeError, match="error unlocking keyring"):
        app.run(["version"])


def test_config_load_creates_socket(short_dir):
    socket_path = short_dir / "mysocket"
    app, thread, errors = start_app(write_config(short_dir, str(socket_path)))
    try:
        assert socket_path.exists()
    finally:
        app.quit()
        thread.join(5)
    assert errors == []
    assert not thread.is_alive()


def test_can_quit_twice(short_dir):
    socket_path = short_dir / "mysocket"
    app, thread, errors = start_app(write_config(short_dir, str(socket_path)))
    app.quit()
    thread.join(5)
    app.quit()
    assert not thread.is_alive()
    assert errors == []
    assert not socket_path.exists()


def test_run_fails_on_daemon_creation_and_quit(short_dir):
    file_path = short_dir / "file"
    file_path.write_text("I'm here to break the service")
    path = write_config(short_dir, str(file_path / "mysocket"))
    app = App(keyring_start=no_keyring)
    with pytest.raises(DaemonError):
        app.run(["--config", path])
    app.quit()
    assert app.wait_ready(0) is True


def test_hup_prints_stacks(capsys):
    app = App(keyring_start=no_keyring)
    assert app.hup() is False
    out = capsys.readouterr().out
    assert "test_hup_prints_stacks" in out


@mock.patch("provd.app.subprocess.Popen")
def test_unlock_keyring_starts_daemon(popen):
    result = unlock_keyring()
    assert result is None or result is popen.return_value
    assert popen.call_count == 1
    args, _ = popen.call_args
    assert args[0] == ["gnome-keyring-daemon", "--unlock"]
    stdin = popen.return_value.stdin
    assert stdin.write.call_args_list == [mock.call(_KEYRING_UNLOCK_INPUT)]
    assert stdin.close.call_count == 1


@mock.patch("provd.app.subprocess.Popen", side_effect=FileNotFoundError("missing"))
def test_unlock_keyring_error(popen):
    with pytest.raises(FileNotFoundError):
        unlock_keyring()