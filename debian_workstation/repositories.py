"""APT sources.list and pinning setup performed at provisioning time."""

import logging
from pathlib import Path
from typing import Dict, Sequence, Tuple, Union

from debian_workstation.preferences import (
    Channel,
    LockedGroup,
    PreferenceSet,
    build_preferences,
    write_preferences,
)
from debian_workstation.utils import atomic_write, backup_file

logger = logging.getLogger("debian_workstation")

_CHANNEL_TITLES = {
    "testing": "Debian Testing (Main Repository)",
    "stable": "Debian Stable (Secondary Repository)",
    "stable-backports": "Debian Stable Backports",
}

# Block order in sources.list; other archives follow by priority
_SOURCES_ORDER = ("testing", "stable", "stable-backports")


def _source_rank(channel: Channel) -> Tuple[int, int]:
    if channel.archive in _SOURCES_ORDER:
        return (_SOURCES_ORDER.index(channel.archive), 0)
    return (len(_SOURCES_ORDER), -channel.priority)


def render_sources_list(
    mirror: str, channels: Sequence[Channel], components: Sequence[str]
) -> str:
    """
    Build sources.list text with a deb and deb-src line per channel.

    Testing comes first, then stable, then stable-backports.
    """
    comps = " ".join(components)
    blocks = []
    for channel in sorted(channels, key=_source_rank):
        title = _CHANNEL_TITLES.get(channel.archive, f"Debian {channel.archive}")
        blocks.append(
            f"# {title}\n"
            f"deb {mirror} {channel.archive} {comps}\n"
            f"deb-src {mirror} {channel.archive} {comps}\n"
        )
    return "\n".join(blocks)


def write_sources_list(path: Union[str, Path], content: str) -> None:
    """
    Back up and replace sources.list.

    Raises:
        BackupError: If the existing file could not be backed up; nothing is
            written in that case
        WriteError: If the new file could not be written
    """
    path = Path(path)
    backup_file(path)
    atomic_write(path, content, mode=0o644)
    logger.info(f"Updated {path} with testing, stable and backports repositories.")


def write_initial_preferences(
    path: Union[str, Path],
    channels: Sequence[Channel],
    groups: Sequence[LockedGroup],
    versions: Dict[str, str],
) -> PreferenceSet:
    """Overwrite the preferences file with channel pins and version locks."""
    prefs = build_preferences(channels, groups, versions)
    write_preferences(path, prefs)
    return prefs
