"""
Tests for debian_workstation.provision module.
"""

import subprocess
from unittest.mock import patch

import pytest

from debian_workstation.errors import ProvisioningError, WorkstationError
from debian_workstation.gpu import DRIVER_PACKAGES, GpuVendor
from debian_workstation.preferences import PreferenceSet
from debian_workstation.provision import Phase, WorkstationSetup, provision


@pytest.fixture
def setup(config):
    return WorkstationSetup(config)


class TestPhases:
    """Tests for the individual provisioning phases."""

    def test_phase_order(self, setup):
        keys = [phase.key for phase in setup.phases()]
        assert keys[:4] == ["preflight", "repositories", "pinning", "refresher"]
        assert keys.index("pinning") < keys.index("system_update")
        assert keys[-1] == "grub_theme"

    def test_skip_grub(self, config):
        config.INSTALL_GRUB_THEME = False
        keys = [phase.key for phase in WorkstationSetup(config).phases()]
        assert "grub_theme" not in keys

    def test_critical_phases(self, setup):
        critical = [phase.key for phase in setup.phases() if phase.critical]
        assert critical == [
            "preflight",
            "repositories",
            "pinning",
            "refresher",
            "architecture",
            "system_update",
            "packages",
        ]

    def test_repositories(self, setup, config):
        config.SOURCES_LIST.write_text("deb http://deb.debian.org/debian bookworm main\n")
        setup.phase_repositories()
        text = config.SOURCES_LIST.read_text()
        assert "deb http://deb.debian.org/debian testing main" in text
        assert "bookworm" not in text

    def test_pinning(self, setup, config):
        with patch(
            "debian_workstation.provision.detect_kernel_major", return_value="6.10"
        ), patch("debian_workstation.provision.detect_shell_major", return_value="46"):
            setup.phase_pinning()

        text = config.PREFERENCES_FILE.read_text()
        assert "Package: linux-image-*\nPin: version 6.10*\nPin-Priority: 1001" in text
        assert "Package: gnome gnome-*\nPin: version 46*\nPin-Priority: 1001" in text
        PreferenceSet.parse(text).validate()

    def test_pinning_without_gnome(self, setup, config):
        with patch(
            "debian_workstation.provision.detect_kernel_major", return_value="6.10"
        ), patch(
            "debian_workstation.versions.run_command",
            side_effect=FileNotFoundError("gnome-shell"),
        ):
            setup.phase_pinning()
        assert "Pin: version 3*" in config.PREFERENCES_FILE.read_text()

    def test_refresher(self, setup, config):
        setup.phase_refresher()
        assert str(config.PREFERENCES_FILE) in config.REFRESHER_SCRIPT.read_text()
        cron = config.REFRESHER_CRON.read_text()
        assert f"0 0 * * 0 root {config.REFRESHER_SCRIPT} >> " in cron

    @pytest.mark.parametrize(
        "vendor,installs", [(GpuVendor.NVIDIA, True), (GpuVendor.OTHER, False)]
    )
    def test_gpu_drivers(self, setup, vendor, installs):
        with patch(
            "debian_workstation.provision.detect_gpu_vendor", return_value=vendor
        ), patch.object(setup, "apt_install") as apt_install:
            setup.phase_gpu_drivers()

        assert setup.gpu_vendor == vendor
        if installs:
            apt_install.assert_called_once_with(DRIVER_PACKAGES[vendor])
        else:
            apt_install.assert_not_called()

    def test_network(self, setup, config):
        config.NETWORKMANAGER_CONF.write_text("[ifupdown]\nmanaged=false\n")
        setup.phase_network()
        assert "iface lo inet loopback" in config.INTERFACES_FILE.read_text()
        assert config.NETWORKMANAGER_CONF.read_text() == "[ifupdown]\nmanaged=true\n"

    def test_preflight_requires_root(self, setup):
        with patch("debian_workstation.provision.check_root", return_value=False):
            with pytest.raises(ProvisioningError, match="root"):
                setup.phase_preflight()


class TestRun:
    """Tests for the phase runner."""

    def test_all_phases_succeed(self, setup):
        calls = []
        phases = [
            Phase("one", "First", lambda: calls.append("one")),
            Phase("two", "Second", lambda: calls.append("two"), critical=False),
        ]
        with patch.object(setup, "phases", return_value=phases):
            assert setup.run() is True
        assert calls == ["one", "two"]
        assert setup.status["two"]["status"] == "success"

    def test_critical_failure_aborts(self, setup):
        calls = []

        def fail():
            raise WorkstationError("sources.list is read-only")

        phases = [
            Phase("repositories", "Repositories", fail),
            Phase("pinning", "Pinning", lambda: calls.append("pinning")),
            Phase("wine", "Wine", lambda: calls.append("wine"), critical=False),
        ]
        with patch.object(setup, "phases", return_value=phases):
            with pytest.raises(ProvisioningError, match="read-only"):
                setup.run()

        assert calls == []
        assert setup.status["repositories"]["status"] == "failed"
        assert setup.status["pinning"]["status"] == "skipped"
        assert setup.status["wine"]["status"] == "skipped"

    def test_best_effort_failure_continues(self, setup):
        calls = []

        def fail():
            raise subprocess.CalledProcessError(100, ["apt-get", "install", "wine"])

        phases = [
            Phase("wine", "Wine", fail, critical=False),
            Phase("gtk_theme", "Theme", lambda: calls.append("theme"), critical=False),
        ]
        with patch.object(setup, "phases", return_value=phases):
            assert setup.run() is False

        assert calls == ["theme"]
        assert setup.status["wine"]["status"] == "failed"
        assert setup.status["gtk_theme"]["status"] == "success"

    def test_provision_exit_code(self, config):
        def fail():
            raise WorkstationError("no network")

        with patch.object(
            WorkstationSetup, "phases", return_value=[Phase("preflight", "Checks", fail)]
        ):
            assert provision(config) == 1
