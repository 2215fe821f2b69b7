"""Configuration settings for the Debian workstation setup."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Tuple

from debian_workstation.preferences import (
    DEFAULT_CHANNELS,
    DEFAULT_GROUPS,
    Channel,
    LockedGroup,
)
from debian_workstation.versions import DEFAULT_QUERY_TIMEOUT, DEFAULT_SHELL_MAJOR


# ----------------------------------------------------------------
# Configuration Dataclass
# ----------------------------------------------------------------
@dataclass
class Config:
    """Configuration settings for the workstation provisioning run."""

    # Log files
    LOG_FILE: str = "/var/log/debian_workstation.log"
    REFRESH_LOG_FILE: str = "/var/log/update-major-versions.log"

    # APT
    SOURCES_LIST: Path = field(default_factory=lambda: Path("/etc/apt/sources.list"))
    PREFERENCES_FILE: Path = field(
        default_factory=lambda: Path("/etc/apt/preferences")
    )
    MIRROR: str = "http://deb.debian.org/debian"
    COMPONENTS: List[str] = field(
        default_factory=lambda: ["main", "contrib", "non-free", "non-free-firmware"]
    )
    CHANNELS: Tuple[Channel, ...] = DEFAULT_CHANNELS
    LOCKED_GROUPS: Tuple[LockedGroup, ...] = DEFAULT_GROUPS
    DEFAULT_SHELL_MAJOR: str = DEFAULT_SHELL_MAJOR
    QUERY_TIMEOUT: float = DEFAULT_QUERY_TIMEOUT
    FOREIGN_ARCHITECTURE: str = "i386"

    # Refresher
    REFRESHER_SCRIPT: Path = field(
        default_factory=lambda: Path("/usr/local/bin/update-major-versions")
    )
    REFRESHER_CRON: Path = field(
        default_factory=lambda: Path("/etc/cron.d/update-major-versions")
    )
    # Sunday at midnight
    REFRESH_SCHEDULE: str = "0 0 * * 0"

    # Package lists
    PACKAGES: List[str] = field(
        default_factory=lambda: [
            "gnome-core",
            "zenity",
            "gir1.2-gnomedesktop-3.0",
            "libreoffice",
            "libreoffice-gnome",
            "sudo",
            "gnome-tweaks",
            "gnome-initial-setup",
            "curl",
            "git",
            "htop",
            "gnome-boxes",
            "software-properties-gtk",
            "laptop-detect",
            "flatpak",
            "network-manager",
            "gnome-software-plugin-flatpak",
            "chrome-gnome-shell",
            "adwaita-qt",
            "adwaita-qt6",
            "firmware-linux-nonfree",
            "firmware-misc-nonfree",
            "rar",
            "unrar",
            "libavcodec-extra",
            "gstreamer1.0-libav",
            "gstreamer1.0-plugins-ugly",
            "gstreamer1.0-vaapi",
            "ffmpeg",
            "lm-sensors",
            "isenkram",
            "network-manager-gnome",
            "wget",
        ]
    )
    KERNEL_HEADERS: List[str] = field(default_factory=lambda: ["linux-headers-amd64"])
    BROWSER_REMOVE: List[str] = field(default_factory=lambda: ["firefox-esr"])
    BROWSER_INSTALL: List[str] = field(default_factory=lambda: ["firefox"])
    WINE_PACKAGES: List[str] = field(
        default_factory=lambda: [
            "wine",
            "wine32",
            "wine64",
            "libwine",
            "libwine:i386",
            "fonts-wine",
        ]
    )

    # Flatpak
    FLATHUB_URL: str = "https://dl.flathub.org/repo/flathub.flatpakrepo"
    FLATPAK_THEMES: List[str] = field(
        default_factory=lambda: [
            "org.gtk.Gtk3theme.adw-gtk3",
            "org.gtk.Gtk3theme.adw-gtk3-dark",
        ]
    )

    # Networking
    INTERFACES_FILE: Path = field(
        default_factory=lambda: Path("/etc/network/interfaces")
    )
    NETWORKMANAGER_CONF: Path = field(
        default_factory=lambda: Path("/etc/NetworkManager/NetworkManager.conf")
    )

    # Themes
    GTK_THEME_VERSION: str = "5.3"
    GTK_THEME: str = "adw-gtk3"
    ICON_THEME: str = "Adwaita"
    THEMES_DIR: Path = field(default_factory=lambda: Path("/usr/share/themes"))
    HOME_ROOT: Path = field(default_factory=lambda: Path("/home"))
    SKEL_DIR: Path = field(default_factory=lambda: Path("/etc/skel"))
    GRUB_THEMES_REPO: str = "https://github.com/vinceliuice/grub2-themes.git"
    GRUB_THEME_ARGS: List[str] = field(
        default_factory=lambda: ["-t", "tela", "-s", "1080p"]
    )
    INSTALL_GRUB_THEME: bool = True

    # Seconds allowed for apt-get update in the unattended refresher
    APT_UPDATE_TIMEOUT: float = 600.0

    def __post_init__(self):
        """Initialize derived configuration values after the dataclass is created."""
        self.GTK_THEME_URL = (
            "https://github.com/lassekongo83/adw-gtk3/releases/download/"
            f"v{self.GTK_THEME_VERSION}/adw-gtk3v{self.GTK_THEME_VERSION}.tar.xz"
        )
        self.GTK_THEME_DIR = self.THEMES_DIR / self.GTK_THEME
