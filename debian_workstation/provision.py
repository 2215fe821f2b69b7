"""
Debian Workstation Provisioning
-------------------------------

Turns a freshly installed minimal Debian system into a GNOME workstation:

  • Rewrites sources.list for testing, stable and stable-backports
  • Pins channels and holds the kernel and GNOME at their major version
  • Installs a weekly refresher for those version locks
  • Installs desktop, multimedia and GPU driver packages
  • Hands networking over to NetworkManager
  • Applies the adw-gtk3 theme to every user and installs a GRUB theme

Note: This must be run with root privileges.
"""

import logging
import subprocess
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from debian_workstation.config import Config
from debian_workstation.errors import ProvisioningError, WorkstationError
from debian_workstation.gpu import DRIVER_PACKAGES, GpuVendor, detect_gpu_vendor
from debian_workstation.network import configure_networkmanager, reset_interfaces
from debian_workstation.refresher import install_refresher
from debian_workstation.repositories import (
    render_sources_list,
    write_initial_preferences,
    write_sources_list,
)
from debian_workstation.themes import (
    apply_theme_to_users,
    install_flatpak_themes,
    install_grub_theme,
    install_system_theme,
    seed_skeleton,
)
from debian_workstation.ui import (
    NordColors,
    console,
    create_header,
    print_status_report,
    print_warning,
    run_with_progress,
)
from debian_workstation.utils import check_root, command_exists, run_command
from debian_workstation.versions import detect_kernel_major, detect_shell_major


@dataclass
class Phase:
    """One step of the provisioning run."""

    key: str
    description: str
    func: Callable[[], None]
    critical: bool = True


class WorkstationSetup:
    """Core class that runs all setup phases sequentially."""

    def __init__(self, config: Optional[Config] = None, logger=None):
        self.config = config or Config()
        self.logger = logger or logging.getLogger("debian_workstation")
        self.start_time = time.time()
        self.status: Dict[str, Dict[str, str]] = {}
        self.gpu_vendor: Optional[GpuVendor] = None

    def phases(self) -> List[Phase]:
        phases = [
            Phase("preflight", "Pre-flight checks", self.phase_preflight),
            Phase(
                "repositories",
                "Configuring APT repositories",
                self.phase_repositories,
            ),
            Phase("pinning", "Configuring APT pinning", self.phase_pinning),
            Phase(
                "refresher",
                "Installing major version refresher",
                self.phase_refresher,
            ),
            Phase(
                "architecture",
                "Adding i386 architecture",
                self.phase_architecture,
            ),
            Phase(
                "system_update",
                "Updating and upgrading the system",
                self.phase_system_update,
            ),
            Phase("packages", "Installing desktop packages", self.phase_packages),
            Phase(
                "browser", "Replacing Firefox ESR", self.phase_browser, critical=False
            ),
            Phase(
                "flathub",
                "Adding Flathub repository",
                self.phase_flathub,
                critical=False,
            ),
            Phase(
                "kernel_headers",
                "Installing kernel headers",
                self.phase_kernel_headers,
                critical=False,
            ),
            Phase(
                "gpu_drivers",
                "Installing graphics drivers",
                self.phase_gpu_drivers,
                critical=False,
            ),
            Phase(
                "network",
                "Configuring NetworkManager",
                self.phase_network,
                critical=False,
            ),
            Phase("wine", "Installing Wine", self.phase_wine, critical=False),
            Phase(
                "gtk_theme", "Applying GTK theme", self.phase_gtk_theme, critical=False
            ),
        ]
        if self.config.INSTALL_GRUB_THEME:
            phases.append(
                Phase(
                    "grub_theme",
                    "Installing GRUB theme",
                    self.phase_grub_theme,
                    critical=False,
                )
            )
        return phases

    def apt_install(self, packages: List[str]) -> None:
        if not packages:
            return
        self.logger.info(
            f"Installing {len(packages)} package(s): {' '.join(packages)}"
        )
        run_command(["apt-get", "install", "-y", *packages])

    # --- Phase: Pre-flight ---
    def phase_preflight(self) -> None:
        if not check_root():
            raise ProvisioningError(
                "This script must be run as root (e.g. using sudo)."
            )
        for tool in ("apt-get", "apt-cache", "dpkg"):
            if not command_exists(tool):
                raise ProvisioningError(f"Required command '{tool}' was not found.")

    # --- Phase: Repositories ---
    def phase_repositories(self) -> None:
        content = render_sources_list(
            self.config.MIRROR, self.config.CHANNELS, self.config.COMPONENTS
        )
        write_sources_list(self.config.SOURCES_LIST, content)

    # --- Phase: Pinning ---
    def phase_pinning(self) -> None:
        self.logger.info("Detecting current major versions of the kernel and GNOME...")
        versions = {}
        for group in self.config.LOCKED_GROUPS:
            if group.name == "kernel":
                versions[group.name] = detect_kernel_major()
            else:
                versions[group.name] = detect_shell_major(
                    self.config.DEFAULT_SHELL_MAJOR, self.config.QUERY_TIMEOUT
                )
            self.logger.info(
                f"Current {group.name} major version: {versions[group.name]}"
            )
        write_initial_preferences(
            self.config.PREFERENCES_FILE,
            self.config.CHANNELS,
            self.config.LOCKED_GROUPS,
            versions,
        )

    # --- Phase: Refresher ---
    def phase_refresher(self) -> None:
        install_refresher(
            script_path=self.config.REFRESHER_SCRIPT,
            cron_path=self.config.REFRESHER_CRON,
            schedule=self.config.REFRESH_SCHEDULE,
            log_file=self.config.REFRESH_LOG_FILE,
            preferences=self.config.PREFERENCES_FILE,
        )

    # --- Phase: Architecture ---
    def phase_architecture(self) -> None:
        run_command(["dpkg", "--add-architecture", self.config.FOREIGN_ARCHITECTURE])

    # --- Phase: System Update ---
    def phase_system_update(self) -> None:
        run_command(["apt-get", "update"])
        run_command(["apt-get", "upgrade", "-y"])
        run_command(["apt-get", "autoremove", "-y"])

    # --- Phase: Packages ---
    def phase_packages(self) -> None:
        self.apt_install(self.config.PACKAGES)

    def phase_browser(self) -> None:
        run_command(["apt-get", "purge", "-y", *self.config.BROWSER_REMOVE])
        self.apt_install(self.config.BROWSER_INSTALL)

    def phase_flathub(self) -> None:
        run_command(
            [
                "flatpak",
                "remote-add",
                "--if-not-exists",
                "flathub",
                self.config.FLATHUB_URL,
            ]
        )

    def phase_kernel_headers(self) -> None:
        self.apt_install(self.config.KERNEL_HEADERS)

    # --- Phase: GPU Drivers ---
    def phase_gpu_drivers(self) -> None:
        self.gpu_vendor = detect_gpu_vendor()
        packages = DRIVER_PACKAGES[self.gpu_vendor]
        if not packages:
            self.logger.info(
                "No NVIDIA or AMD graphics card detected. Skipping driver installation."
            )
            return
        self.logger.info(
            f"{self.gpu_vendor.name} graphics card detected. Installing drivers..."
        )
        self.apt_install(packages)

    # --- Phase: Networking ---
    def phase_network(self) -> None:
        reset_interfaces(self.config.INTERFACES_FILE)
        configure_networkmanager(self.config.NETWORKMANAGER_CONF)

    def phase_wine(self) -> None:
        self.apt_install(self.config.WINE_PACKAGES)

    # --- Phase: Themes ---
    def phase_gtk_theme(self) -> None:
        install_system_theme(self.config.GTK_THEME_URL, self.config.THEMES_DIR)
        install_flatpak_themes(self.config.FLATPAK_THEMES)
        report = apply_theme_to_users(
            self.config.GTK_THEME_DIR,
            self.config.HOME_ROOT,
            self.config.GTK_THEME,
            self.config.ICON_THEME,
        )
        seed_skeleton(self.config.GTK_THEME_DIR, self.config.SKEL_DIR)
        if report.failed:
            raise WorkstationError(
                f"Theme could not be applied for: {', '.join(report.failed)}"
            )

    def phase_grub_theme(self) -> None:
        install_grub_theme(self.config.GRUB_THEMES_REPO, self.config.GRUB_THEME_ARGS)

    # --- Runner ---
    def run(self) -> bool:
        """
        Run every phase in order.

        Returns:
            True if all phases succeeded, False if a non-critical phase failed

        Raises:
            ProvisioningError: If a critical phase failed; later phases are
                not run
        """
        phases = self.phases()
        for phase in phases:
            self.status[phase.key] = {"status": "pending", "message": ""}

        overall = True
        for index, phase in enumerate(phases, start=1):
            console.print(
                f"\n[bold {NordColors.FROST_1}]{index}. {phase.description}...[/]"
            )
            self.logger.info(f"--- {phase.description} ---")
            self.status[phase.key] = {"status": "in_progress", "message": ""}
            try:
                run_with_progress(phase.description, phase.func)
            except (WorkstationError, OSError, subprocess.SubprocessError) as e:
                self.status[phase.key] = {"status": "failed", "message": str(e)}
                self.logger.error(f"{phase.description} failed: {e}")
                if phase.critical:
                    for later in phases[index:]:
                        self.status[later.key] = {
                            "status": "skipped",
                            "message": f"Skipped after {phase.key} failed",
                        }
                    raise ProvisioningError(f"{phase.description} failed: {e}")
                print_warning(f"{phase.description} failed. Continuing...")
                overall = False
                continue
            self.status[phase.key] = {"status": "success", "message": "Completed"}

        elapsed = time.time() - self.start_time
        self.logger.info(f"Setup finished in {elapsed:.0f}s")
        return overall

    def print_summary(self) -> None:
        print_status_report(self.status, "Debian Workstation Setup Status Report")


def provision(config: Optional[Config] = None) -> int:
    """Run a full provisioning pass and return a process exit code."""
    console.print(create_header("Debian Workstation"))
    setup = WorkstationSetup(config)
    try:
        success = setup.run()
    except ProvisioningError as e:
        setup.print_summary()
        console.print(f"[bold {NordColors.RED}]Setup aborted: {e}[/]")
        return 1

    setup.print_summary()
    if success:
        console.print(
            f"\n[bold {NordColors.GREEN}]All tasks have been completed successfully![/]"
        )
        return 0
    console.print(
        f"\n[bold {NordColors.YELLOW}]Setup completed with some issues. "
        f"Check the log for details: {setup.config.LOG_FILE}[/]"
    )
    return 1
