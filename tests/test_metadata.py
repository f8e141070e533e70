import json

from windmill_ci.services.metadata import BuildSettings, Configuration, Destination, Devices


def _write(path, data):
    path.write_text(json.dumps(data))
    return path


def test_configuration_scheme_and_test_target(tmp_path):
    path = _write(
        tmp_path / "configuration.json",
        {"project": {"name": "Demo", "schemes": ["Demo", "Demo-Staging"], "targets": ["Demo", "DemoTests"]}},
    )
    configuration = Configuration(path)
    assert configuration.detect_scheme("Demo-Staging") == "Demo-Staging"
    assert configuration.detect_scheme("demo") == "Demo"
    assert configuration.has_test_target


def test_workspace_configuration(tmp_path):
    path = _write(tmp_path / "configuration.json", {"workspace": {"schemes": ["App"]}})
    configuration = Configuration(path)
    assert configuration.schemes == ["App"]
    assert not configuration.has_test_target


def test_explicit_test_target_flag_wins(tmp_path):
    path = _write(tmp_path / "configuration.json", {"hasTestTarget": False, "project": {"targets": ["DemoTests"]}})
    assert not Configuration(path).has_test_target


def test_missing_configuration(tmp_path):
    configuration = Configuration(tmp_path / "nope.json")
    assert configuration.schemes == []
    assert configuration.detect_scheme("demo") == "demo"


def test_build_settings_list_output(tmp_path):
    path = _write(
        tmp_path / "settings.json",
        [{"target": "Demo", "buildSettings": {"PRODUCT_NAME": "Demo", "IPHONEOS_DEPLOYMENT_TARGET": "16.0"}}],
    )
    settings = BuildSettings(path)
    assert settings.product_name == "Demo"
    assert BuildSettings(tmp_path / "nope.json").product_name is None


def test_devices_explicit_destination(tmp_path):
    path = _write(
        tmp_path / "devices.json",
        {"platform": "iOS Simulator", "version": "17.2", "destination": {"name": "iPhone 15", "udid": "SIM-1"}},
    )
    devices = Devices(path)
    assert devices.destination == Destination(name="iPhone 15", udid="SIM-1")
    assert devices.version == 17.2
    assert devices.platform == "iOS Simulator"


def test_devices_from_simctl_prefers_newest_runtime(tmp_path):
    path = _write(
        tmp_path / "devices.json",
        {
            "devices": {
                "com.apple.CoreSimulator.SimRuntime.iOS-16-4": [{"name": "iPhone 14", "udid": "OLD", "isAvailable": True}],
                "com.apple.CoreSimulator.SimRuntime.iOS-17-2": [
                    {"name": "iPhone 15 Pro", "udid": "GONE", "isAvailable": False},
                    {"name": "iPhone 15", "udid": "NEW", "isAvailable": True},
                ],
            }
        },
    )
    assert Devices(path).destination.udid == "NEW"


def test_devices_without_destination(tmp_path):
    assert Devices(_write(tmp_path / "devices.json", {"devices": {}})).destination is None
    assert Devices(tmp_path / "nope.json").destination is None
