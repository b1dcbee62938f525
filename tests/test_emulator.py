"""Tests for launch policy, configuration and the end-to-end boot entry point."""

import os
import subprocess
from unittest.mock import patch

import pytest

from emuboot.adb_models import DeviceSnapshot, QueryError
from emuboot.config import BootSettings, parse_flags, resolve_android_home
from emuboot.emulator import (
    adb_binary_path,
    boot_emulator,
    build_launch_args,
    emulator_binary_path,
    emulator_version,
)
from emuboot.models import Booted, Failed, FailureReason

from conftest import FakeBridge, FakeProcess, FakeProcessFactory, FakeRegistry


class TestBuildLaunchArgs:

    def test_ci_defaults(self):
        assert build_launch_args("ci_avd") == [
            "@ci_avd",
            "-verbose",
            "-show-kernel",
            "-no-audio",
            "-no-window",
            "-no-boot-anim",
            "-netdelay", "none",
            "-no-snapshot",
            "-wipe-data",
            "-gpu", "swiftshader_indirect",
        ]

    def test_extra_flags_come_last(self):
        args = build_launch_args("ci_avd", ["-memory", "4096"])

        assert args[-2:] == ["-memory", "4096"]

    def test_optional_flags_can_be_disabled(self):
        args = build_launch_args("ci_avd", headless=False, wipe_data=False, snapshot=True, gpu=None)

        assert args == ["@ci_avd", "-verbose", "-show-kernel", "-netdelay", "none"]


class TestToolPaths:

    def test_sdk_paths(self):
        assert emulator_binary_path("/sdk") == os.path.join("/sdk", "emulator", "emulator")
        assert adb_binary_path("/sdk") == os.path.join("/sdk", "platform-tools", "adb")

    def test_path_lookup_without_sdk(self):
        assert emulator_binary_path(None) == "emulator"
        assert adb_binary_path("") == "adb"


class TestEmulatorVersion:

    @patch("emuboot.emulator.subprocess.run")
    def test_first_line(self, mock_run):
        mock_run.return_value = subprocess.CompletedProcess(
            args=[], returncode=0,
            stdout="Android emulator version 34.1.9.0 (build_id 11009812)\nCopyright (C) 2006-2017\n",
            stderr=""
        )

        assert emulator_version("emulator") == "Android emulator version 34.1.9.0 (build_id 11009812)"

    @patch("emuboot.emulator.subprocess.run", side_effect=FileNotFoundError())
    def test_missing_binary(self, mock_run):
        assert emulator_version("emulator") is None

    @patch("emuboot.emulator.subprocess.run")
    def test_failing_binary(self, mock_run):
        mock_run.return_value = subprocess.CompletedProcess(args=[], returncode=1, stdout="", stderr="bad")

        assert emulator_version("emulator") is None


class TestBootSettings:

    def test_defaults_are_valid(self):
        BootSettings(avd_name="ci_avd").validate()

    @pytest.mark.parametrize("overrides", [
        {"avd_name": " "},
        {"timeout": 0},
        {"max_attempts": 0},
        {"poll_interval": -1},
        {"restart_bridge_every": -1},
    ])
    def test_invalid_settings(self, overrides):
        settings = BootSettings(**{"avd_name": "ci_avd", **overrides})

        with pytest.raises(ValueError):
            settings.validate()

    def test_parse_flags(self):
        assert parse_flags('-memory 2048 -prop "persist.sys.language=en"') == [
            "-memory", "2048", "-prop", "persist.sys.language=en"
        ]
        assert parse_flags(None) == []

    def test_resolve_android_home_order(self, monkeypatch):
        monkeypatch.setenv("ANDROID_HOME", "/opt/android")
        monkeypatch.setenv("ANDROID_SDK_ROOT", "/opt/sdk-root")

        assert resolve_android_home("/explicit") == "/explicit"
        assert resolve_android_home() == "/opt/android"

        monkeypatch.delenv("ANDROID_HOME")
        assert resolve_android_home() == "/opt/sdk-root"

        monkeypatch.delenv("ANDROID_SDK_ROOT")
        assert resolve_android_home() is None


class TestBootEmulator:

    def settings(self):
        return BootSettings(avd_name="ci_avd", android_home="/sdk", timeout=10, poll_interval=0.01)

    def test_boots_against_baseline(self, quiet_console, quiet_err_console):
        baseline = DeviceSnapshot({"emulator-5554": "device"})
        booted = DeviceSnapshot({"emulator-5554": "device", "emulator-5556": "device"})
        bridge = FakeBridge()
        factory = FakeProcessFactory(lambda i: FakeProcess())

        outcome = boot_emulator(
            self.settings(),
            registry=FakeRegistry(baseline, booted),
            bridge=bridge,
            process_factory=factory,
            console=quiet_console,
            err_console=quiet_err_console
        )

        assert isinstance(outcome, Booted)
        assert outcome.serial == "emulator-5556"
        assert bridge.starts == 1
        path, args = factory.created[0].started_with
        assert path == os.path.join("/sdk", "emulator", "emulator")
        assert args[0] == "@ci_avd"

    def test_baseline_query_failure(self):
        outcome = boot_emulator(
            self.settings(),
            registry=FakeRegistry(QueryError("no adb")),
            bridge=FakeBridge()
        )

        assert isinstance(outcome, Failed)
        assert outcome.reason is FailureReason.QUERY_ERROR

    def test_bridge_start_falls_back_to_restart(self, quiet_console, quiet_err_console):
        baseline = DeviceSnapshot({})
        booted = DeviceSnapshot({"emulator-5554": "device"})
        bridge = FakeBridge(fail_start=True)

        outcome = boot_emulator(
            self.settings(),
            registry=FakeRegistry(baseline, booted),
            bridge=bridge,
            process_factory=FakeProcessFactory(lambda i: FakeProcess()),
            console=quiet_console,
            err_console=quiet_err_console
        )

        assert isinstance(outcome, Booted)
        assert bridge.restarts == 1

    def test_bridge_restart_failure(self):
        outcome = boot_emulator(
            self.settings(),
            registry=FakeRegistry(DeviceSnapshot({})),
            bridge=FakeBridge(fail_start=True, fail_restart=True)
        )

        assert isinstance(outcome, Failed)
        assert outcome.reason is FailureReason.QUERY_ERROR
        assert "restart adb server" in outcome.detail
