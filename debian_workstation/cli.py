"""Command line entry points."""

import logging
import sys

import click

from debian_workstation import __version__
from debian_workstation.config import Config
from debian_workstation.errors import WorkstationError
from debian_workstation.gpu import detect_gpu_vendor
from debian_workstation.provision import provision
from debian_workstation.refresher import current_versions, refresh_preferences
from debian_workstation.ui import (
    NordColors,
    console,
    print_error,
    print_success,
    print_warning,
    setup_logger,
)
from debian_workstation.versions import (
    detect_kernel_major,
    detect_shell_major,
    query_candidate,
)


@click.group()
@click.version_option(version=__version__, prog_name="debian-workstation")
def cli() -> None:
    """Provision and maintain a Debian testing GNOME workstation."""


@cli.command("provision")
@click.option(
    "--log-file",
    default=Config.LOG_FILE,
    show_default=True,
    help="Persistent log file",
)
@click.option("--skip-grub", is_flag=True, help="Do not install the GRUB theme")
@click.option("--debug", is_flag=True, help="Enable debug logging")
def provision_command(log_file: str, skip_grub: bool, debug: bool) -> None:
    """Run the full workstation setup. Requires root."""
    config = Config(LOG_FILE=log_file, INSTALL_GRUB_THEME=not skip_grub)
    setup_logger(config.LOG_FILE, logging.DEBUG if debug else logging.INFO)
    try:
        code = provision(config)
    except KeyboardInterrupt:
        print_warning("Setup interrupted by user.")
        sys.exit(130)
    sys.exit(code)


@cli.command("refresh-pins")
@click.option(
    "--preferences",
    "preferences_file",
    default=str(Config().PREFERENCES_FILE),
    show_default=True,
    type=click.Path(dir_okay=False),
    help="APT preferences file to rewrite",
)
@click.option("--no-update", is_flag=True, help="Skip apt-get update after rewriting")
@click.option("--debug", is_flag=True, help="Enable debug logging")
def refresh_pins(preferences_file: str, no_update: bool, debug: bool) -> None:
    """Move the kernel and GNOME version locks to the latest candidates."""
    logger = setup_logger(None, logging.DEBUG if debug else logging.INFO)
    config = Config()
    logger.info(f"Updating major versions in {preferences_file}...")
    try:
        result = refresh_preferences(
            preferences_file,
            groups=config.LOCKED_GROUPS,
            lookup=lambda package: query_candidate(package, config.QUERY_TIMEOUT),
            update_index=not no_update,
            timeout=config.APT_UPDATE_TIMEOUT,
        )
    except KeyboardInterrupt:
        print_warning("Refresh interrupted by user.")
        sys.exit(130)
    except (WorkstationError, OSError) as e:
        logger.error(f"Refresh failed: {e}")
        sys.exit(1)

    state = "updated" if result.changed else "unchanged"
    print_success(
        f"Pins {state}: "
        + ", ".join(f"{name} {version}" for name, version in result.versions.items())
    )


@cli.command("show-versions")
def show_versions() -> None:
    """Print detected, pinned and candidate major versions and the GPU vendor."""
    setup_logger(None, logging.WARNING)
    config = Config()

    try:
        console.print(f"Running kernel major: [bold]{detect_kernel_major()}[/bold]")
    except WorkstationError as e:
        print_error(str(e))
    shell = detect_shell_major(config.DEFAULT_SHELL_MAJOR, config.QUERY_TIMEOUT)
    console.print(f"GNOME Shell major: [bold]{shell}[/bold]")

    if config.PREFERENCES_FILE.exists():
        try:
            for name, version in current_versions(
                config.PREFERENCES_FILE, config.LOCKED_GROUPS
            ).items():
                console.print(f"Pinned {name}: [bold]{version}[/bold]")
        except WorkstationError as e:
            print_warning(f"Could not read {config.PREFERENCES_FILE}: {e}")

    for group in config.LOCKED_GROUPS:
        try:
            candidate = query_candidate(group.query_package, config.QUERY_TIMEOUT)
            console.print(f"Candidate {group.query_package}: [bold]{candidate}[/bold]")
        except WorkstationError as e:
            print_warning(str(e))

    vendor = detect_gpu_vendor()
    console.print(f"Graphics vendor: [bold {NordColors.FROST_2}]{vendor.value}[/]")


def main() -> None:
    cli(prog_name="debian-workstation")
