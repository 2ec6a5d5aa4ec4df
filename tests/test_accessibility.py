import subprocess
from unittest import mock

import pytest

from provd.accessibility import AccessibilityService, GSettingsCommand
from provd.errors import ServiceError, StatusCode


class SettingsMock:
    def __init__(
        self,
        is_writable_error=False,
        set_boolean_error=False,
        set_double_error=False,
        current_bool=False,
        current_double=0.0,
    ):
        self.is_writable_error = is_writable_error
        self.set_boolean_error = set_boolean_error
        self.set_double_error = set_double_error
        self.current_bool = current_bool
        self.current_double = current_double
        self.last_key = None

    def is_writable(self, key):
        return not self.is_writable_error

    def set_boolean(self, key, value):
        if self.set_boolean_error:
            return False
        self.last_key = key
        self.current_bool = value
        return True

    def get_boolean(self, key):
        return self.current_bool

    def set_double(self, key, value):
        if self.set_double_error:
            return False
        self.last_key = key
        self.current_double = value
        return True

    def get_double(self, key):
        return self.current_double


SETTINGS = ("a11y", "application", "interface", "wm", "keyboard")


def make_service(**overrides):
    mocks = {name: overrides.get(name, SettingsMock()) for name in SETTINGS}
    service = AccessibilityService(
        a11y_settings=mocks["a11y"],
        application_settings=mocks["application"],
        interface_settings=mocks["interface"],
        wm_settings=mocks["wm"],
        keyboard_settings=mocks["keyboard"],
    )
    return service, mocks


# (feature, settings, key, inverted)
BOOLEAN_FEATURES = [
    ("visual_alerts", "wm", "visual-bell", False),
    ("mouse_keys", "keyboard", "mousekeys-enable", False),
    ("high_contrast", "a11y", "high-contrast", False),
    ("reduced_motion", "interface", "enable-animations", True),
    ("screen_reader", "application", "screen-reader-enabled", False),
    ("screen_keyboard", "application", "screen-keyboard-enabled", False),
    ("sticky_keys", "keyboard", "stickykeys-enable", False),
    ("slow_keys", "keyboard", "slowkeys-enable", False),
    ("desktop_zoom", "application", "screen-magnifier-enabled", False),
]


def test_new_success():
    service, _ = make_service()
    assert service.get_high_contrast() is False


@pytest.mark.parametrize(
    "failing, schema",
    [
        ("a11y", "org.gnome.desktop.a11y.interface"),
        ("application", "org.gnome.desktop.a11y.applications"),
        ("interface", "org.gnome.desktop.interface"),
        ("wm", "org.gnome.desktop.wm.preferences"),
        ("keyboard", "org.gnome.desktop.a11y.keyboard"),
    ],
)
def test_new_error_when_not_writable(failing, schema):
    with pytest.raises(ServiceError) as excinfo:
        make_service(**{failing: SettingsMock(is_writable_error=True)})
    assert excinfo.value.code is StatusCode.INTERNAL
    assert excinfo.value.message == f"failed to connect to {schema}"


def test_new_joins_all_errors():
    with pytest.raises(ServiceError) as excinfo:
        make_service(
            a11y=SettingsMock(is_writable_error=True),
            keyboard=SettingsMock(is_writable_error=True),
        )
    assert excinfo.value.message == (
        "failed to connect to org.gnome.desktop.a11y.interface\n"
        "failed to connect to org.gnome.desktop.a11y.keyboard"
    )


@pytest.mark.parametrize("feature, settings, key, inverted", BOOLEAN_FEATURES)
@pytest.mark.parametrize("want", [False, True])
def test_get_boolean_feature(feature, settings, key, inverted, want):
    stored = (not want) if inverted else want
    service, _ = make_service(**{settings: SettingsMock(current_bool=stored)})
    assert getattr(service, f"get_{feature}")() is want


@pytest.mark.parametrize("feature, settings, key, inverted", BOOLEAN_FEATURES)
def test_enable_boolean_feature(feature, settings, key, inverted):
    mock_settings = SettingsMock(current_bool=inverted)
    service, _ = make_service(**{settings: mock_settings})
    assert getattr(service, f"get_{feature}")() is False
    getattr(service, f"enable_{feature}")()
    assert getattr(service, f"get_{feature}")() is True
    assert mock_settings.last_key == key
    assert mock_settings.current_bool is (not inverted)


@pytest.mark.parametrize("feature, settings, key, inverted", BOOLEAN_FEATURES)
def test_disable_boolean_feature(feature, settings, key, inverted):
    mock_settings = SettingsMock(current_bool=not inverted)
    service, _ = make_service(**{settings: mock_settings})
    assert getattr(service, f"get_{feature}")() is True
    getattr(service, f"disable_{feature}")()
    assert getattr(service, f"get_{feature}")() is False
    assert mock_settings.last_key == key
    assert mock_settings.current_bool is inverted


@pytest.mark.parametrize("feature, settings, key, inverted", BOOLEAN_FEATURES)
@pytest.mark.parametrize("action", ["enable", "disable"])
def test_boolean_feature_update_error(feature, settings, key, inverted, action):
    mock_settings = SettingsMock(set_boolean_error=True)
    service, _ = make_service(**{settings: mock_settings})
    before = getattr(service, f"get_{feature}")()
    assert before is inverted
    with pytest.raises(ServiceError) as excinfo:
        getattr(service, f"{action}_{feature}")()
    assert excinfo.value.code is StatusCode.INTERNAL
    assert excinfo.value.message.startswith(f"failed to {action} ")
    assert getattr(service, f"get_{feature}")() is before
    assert mock_settings.last_key is None


def test_visual_alerts_error_message():
    service, _ = make_service(wm=SettingsMock(set_boolean_error=True))
    with pytest.raises(ServiceError) as excinfo:
        service.enable_visual_alerts()
    assert excinfo.value.message == "failed to enable visual alerts true"


def test_reduced_motion_error_message():
    service, _ = make_service(interface=SettingsMock(set_boolean_error=True))
    with pytest.raises(ServiceError) as excinfo:
        service.enable_reduced_motion()
    assert excinfo.value.message == "failed to enable reduced motion: false"


@pytest.mark.parametrize(
    "stored, want",
    [(1.0, False), (1.25, True), (0.0, False)],
)
def test_get_large_text(stored, want):
    service, _ = make_service(interface=SettingsMock(current_double=stored))
    assert service.get_large_text() is want


def test_enable_large_text():
    interface = SettingsMock(current_double=0.0)
    service, _ = make_service(interface=interface)
    service.enable_large_text()
    assert service.get_large_text() is True
    assert interface.current_double == 1.25
    assert interface.last_key == "text-scaling-factor"


def test_disable_large_text():
    interface = SettingsMock(current_double=0.0)
    service, _ = make_service(interface=interface)
    service.disable_large_text()
    assert service.get_large_text() is False
    assert interface.current_double == 1.0


@pytest.mark.parametrize(
    "action, message",
    [
        ("enable", "failed to enable large text: 1.25"),
        ("disable", "failed to disable large text: 1"),
    ],
)
def test_large_text_update_error(action, message):
    interface = SettingsMock(set_double_error=True)
    service, _ = make_service(interface=interface)
    with pytest.raises(ServiceError) as excinfo:
        getattr(service, f"{action}_large_text")()
    assert excinfo.value.code is StatusCode.INTERNAL
    assert excinfo.value.message == message
    assert service.get_large_text() is False
    assert interface.current_double == 0.0


def _completed(stdout="", returncode=0):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout)


def test_gsettings_command_get_boolean():
    with mock.patch("subprocess.run", return_value=_completed("true\n")) as run:
        assert GSettingsCommand("org.example.schema").get_boolean("some-key") is True
    assert run.call_args.args[0] == ["gsettings", "get", "org.example.schema", "some-key"]


def test_gsettings_command_is_writable_false():
    with mock.patch("subprocess.run", return_value=_completed("false\n")):
        assert GSettingsCommand("org.example.schema").is_writable("some-key") is False


def test_gsettings_command_get_double():
    with mock.patch("subprocess.run", return_value=_completed("1.25\n")):
        assert GSettingsCommand("org.example.schema").get_double("scale") == 1.25


def test_gsettings_command_set_boolean():
    with mock.patch("subprocess.run", return_value=_completed()) as run:
        assert GSettingsCommand("org.example.schema").set_boolean("k", False) is True
    assert run.call_args.args[0] == ["gsettings", "set", "org.example.schema", "k", "false"]


def test_gsettings_command_set_double_failure():
    with mock.patch("subprocess.run", return_value=_completed(returncode=1)):
        assert GSettingsCommand("org.example.schema").set_double("k", 1.25) is False


def test_gsettings_command_missing_tool():
    with mock.patch("subprocess.run", side_effect=FileNotFoundError("gsettings")):
        settings = GSettingsCommand("org.example.schema")
        assert settings.is_writable("k") is False
        assert settings.set_boolean("k", True) is False
        assert settings.get_double("k") == 0.0