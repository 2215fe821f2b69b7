"""
Major Version Refresher
-----------------------

Re-reads the candidate kernel and GNOME versions from the APT index and
moves the version locks in /etc/apt/preferences to them. Meant to be run
unattended from cron; see install_refresher() for how it is scheduled.
"""

import logging
import shlex
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Sequence, Union

from debian_workstation.errors import PreferencesError, WorkstationError
from debian_workstation.preferences import (
    DEFAULT_GROUPS,
    LockedGroup,
    PreferenceSet,
    load_preferences,
    write_preferences,
)
from debian_workstation.utils import atomic_write, locked_file, run_command
from debian_workstation.versions import CandidateLookup, candidate_major

logger = logging.getLogger("debian_workstation")


@dataclass
class RefreshResult:
    """Outcome of one refresher run."""

    versions: Dict[str, str]
    changed: bool


def lookup_versions(
    groups: Sequence[LockedGroup], lookup: Optional[CandidateLookup] = None
) -> Dict[str, str]:
    """
    Resolve the candidate major version of every locked group.

    All lookups finish before anything is written, so a failure here leaves
    the preferences file untouched.

    Raises:
        CandidateLookupError: On the first group without a usable candidate
    """
    versions = {}
    for group in groups:
        versions[group.name] = candidate_major(
            group.query_package, group.components, lookup
        )
        logger.info(
            f"Candidate {group.name} major version: {versions[group.name]} "
            f"(from {group.query_package})"
        )
    return versions


def apply_versions(
    prefs: PreferenceSet, groups: Sequence[LockedGroup], versions: Dict[str, str]
) -> PreferenceSet:
    for group in groups:
        prefs = prefs.with_group_version(group, versions[group.name])
    return prefs


def refresh_preferences(
    path: Union[str, Path],
    groups: Sequence[LockedGroup] = DEFAULT_GROUPS,
    lookup: Optional[CandidateLookup] = None,
    update_index: bool = True,
    timeout: Optional[float] = None,
) -> RefreshResult:
    """
    Move every version lock in the preferences file to the candidate major.

    Args:
        path: Preferences file to rewrite
        groups: Locked groups to refresh
        lookup: Candidate version lookup, apt-cache policy by default
        update_index: Run apt-get update after the rewrite
        timeout: Seconds allowed for apt-get update

    Returns:
        The versions written and whether the file changed

    Raises:
        WorkstationError: On lookup, parse or write failure
    """
    path = Path(path)
    versions = lookup_versions(groups, lookup)

    with locked_file(path):
        if not path.exists():
            raise PreferencesError(f"Preferences file {path} does not exist")
        current = path.read_text()
        prefs = apply_versions(PreferenceSet.parse(current), groups, versions)
        prefs.validate()
        changed = prefs.render() != current
        if changed:
            write_preferences(path, prefs, already_locked=True)
        else:
            logger.info(f"{path} already pins the candidate versions; not rewritten")

    if update_index:
        logger.info("Updating package lists...")
        try:
            run_command(["apt-get", "update"], timeout=timeout)
        except (OSError, subprocess.SubprocessError) as e:
            raise WorkstationError(f"apt-get update failed: {e}")

    logger.info(
        "Major versions updated to "
        + ", ".join(f"{name}: {version}" for name, version in versions.items())
    )
    return RefreshResult(versions=versions, changed=changed)


# ----------------------------------------------------------------
# Installation & Scheduling
# ----------------------------------------------------------------
def wrapper_script(
    python: Optional[str] = None, preferences: Union[str, Path] = ""
) -> str:
    """Shell wrapper installed as the standalone refresher command."""
    python = shlex.quote(python or sys.executable)
    args = f" --preferences {shlex.quote(str(preferences))}" if preferences else ""
    return (
        "#!/bin/sh\n"
        "# Refreshes the kernel and GNOME major version pins in APT preferences.\n"
        "set -e\n"
        f'exec {python} -m debian_workstation refresh-pins{args} "$@"\n'
    )


def cron_entry(
    schedule: str, command: Union[str, Path], log_file: Union[str, Path]
) -> str:
    return (
        "# Weekly refresh of APT major version pins\n"
        "SHELL=/bin/sh\n"
        "PATH=/usr/local/sbin:/usr/local/bin:/usr/sbin:/usr/bin:/sbin:/bin\n"
        f"{schedule} root {shlex.quote(str(command))} "
        f">> {shlex.quote(str(log_file))} 2>&1\n"
    )


def install_refresher(
    script_path: Union[str, Path],
    cron_path: Union[str, Path],
    schedule: str,
    log_file: Union[str, Path],
    preferences: Union[str, Path] = "",
    python: Optional[str] = None,
) -> None:
    """
    Install the refresher command and its cron.d entry.

    Both files are rewritten in full on every call, so running provisioning
    twice does not add a second schedule.
    """
    script_path = Path(script_path)
    cron_path = Path(cron_path)
    script_path.parent.mkdir(parents=True, exist_ok=True)
    cron_path.parent.mkdir(parents=True, exist_ok=True)

    atomic_write(script_path, wrapper_script(python, preferences), mode=0o755)
    logger.info(f"Installed refresher command at {script_path}")

    atomic_write(cron_path, cron_entry(schedule, script_path, log_file), mode=0o644)
    logger.info(f"Scheduled refresher in {cron_path} ({schedule})")


def current_versions(
    path: Union[str, Path], groups: Sequence[LockedGroup] = DEFAULT_GROUPS
) -> Dict[str, str]:
    """Versions currently pinned for each group, read from the file."""
    prefs = load_preferences(path)
    pinned = {}
    for group in groups:
        for stanza in prefs.find(group.patterns[0]):
            if stanza.is_version_pin:
                pinned[group.name] = stanza.version
    return pinned
