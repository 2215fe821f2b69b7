"""
Pytest configuration and shared fixtures for debian_workstation tests.
"""

from pathlib import Path

import pytest

from debian_workstation.config import Config
from debian_workstation.preferences import (
    DEFAULT_CHANNELS,
    DEFAULT_GROUPS,
    build_preferences,
)


EXPECTED_PREFERENCES = """Package: *
Pin: release a=testing
Pin-Priority: 990

Package: *
Pin: release a=stable-backports
Pin-Priority: 500

Package: *
Pin: release a=stable
Pin-Priority: 400

# Hold current kernel packages
Package: linux-image-*
Pin: version 6.10*
Pin-Priority: 1001

Package: linux-headers-*
Pin: version 6.10*
Pin-Priority: 1001

# Hold current GNOME packages
Package: gnome gnome-*
Pin: version 46*
Pin-Priority: 1001
"""


@pytest.fixture
def preferences_text() -> str:
    return EXPECTED_PREFERENCES


@pytest.fixture
def preferences_file(tmp_path: Path) -> Path:
    """A preferences file as written at provisioning time."""
    path = tmp_path / "preferences"
    prefs = build_preferences(
        DEFAULT_CHANNELS, DEFAULT_GROUPS, {"kernel": "6.10", "desktop-shell": "46"}
    )
    path.write_text(prefs.render())
    return path


@pytest.fixture
def candidates():
    """Fake apt-cache candidate lookup backed by a dict."""
    versions = {"linux-image-amd64": "6.12.6-1", "gnome-shell": "47.2-1"}

    def lookup(package: str) -> str:
        return versions[package]

    lookup.versions = versions
    return lookup


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """Config with every system path redirected into tmp_path."""
    root = tmp_path / "root"
    for directory in (
        "etc/apt",
        "etc/cron.d",
        "etc/network",
        "etc/NetworkManager",
        "etc/skel",
        "usr/local/bin",
        "usr/share/themes",
        "home",
        "var/log",
    ):
        (root / directory).mkdir(parents=True, exist_ok=True)

    return Config(
        LOG_FILE=str(root / "var/log/debian_workstation.log"),
        REFRESH_LOG_FILE=str(root / "var/log/update-major-versions.log"),
        SOURCES_LIST=root / "etc/apt/sources.list",
        PREFERENCES_FILE=root / "etc/apt/preferences",
        REFRESHER_SCRIPT=root / "usr/local/bin/update-major-versions",
        REFRESHER_CRON=root / "etc/cron.d/update-major-versions",
        INTERFACES_FILE=root / "etc/network/interfaces",
        NETWORKMANAGER_CONF=root / "etc/NetworkManager/NetworkManager.conf",
        THEMES_DIR=root / "usr/share/themes",
        HOME_ROOT=root / "home",
        SKEL_DIR=root / "etc/skel",
    )
