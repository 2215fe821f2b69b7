"""Hand network interfaces over to NetworkManager."""

import logging
import re
from pathlib import Path
from typing import Union

from debian_workstation.utils import atomic_write, backup_file

logger = logging.getLogger("debian_workstation")

DEFAULT_INTERFACES = """# This file describes the network interfaces available on your system
# and how to activate them. For more information, see interfaces(5).

source /etc/network/interfaces.d/*

# The loopback network interface
auto lo
iface lo inet loopback
"""

_SECTION_RE = re.compile(r"^\s*\[([^\]]+)\]\s*$")
_MANAGED_RE = re.compile(r"^\s*managed\s*=")


def enable_ifupdown_management(text: str) -> str:
    """
    Return NetworkManager.conf text with `managed=true` under [ifupdown].

    Only a `managed=` key inside the [ifupdown] section is replaced; keys of
    the same name in other sections are left alone.
    """
    lines = text.splitlines()
    section = None
    header_index = None
    for index, line in enumerate(lines):
        match = _SECTION_RE.match(line)
        if match:
            section = match.group(1).strip()
            if section == "ifupdown" and header_index is None:
                header_index = index
            continue
        if section == "ifupdown" and _MANAGED_RE.match(line):
            lines[index] = "managed=true"
            return "\n".join(lines) + "\n"

    if header_index is not None:
        lines.insert(header_index + 1, "managed=true")
        return "\n".join(lines) + "\n"

    while lines and not lines[-1].strip():
        lines.pop()
    if lines:
        lines.append("")
    lines.extend(["[ifupdown]", "managed=true"])
    return "\n".join(lines) + "\n"


def reset_interfaces(path: Union[str, Path]) -> None:
    """Back up the interfaces file and reduce it to the loopback device."""
    path = Path(path)
    backup_file(path)
    atomic_write(path, DEFAULT_INTERFACES, mode=0o644)
    logger.info(f"Reset {path} to loopback only")


def configure_networkmanager(path: Union[str, Path]) -> bool:
    """
    Enable interface management in NetworkManager.conf.

    Returns:
        True if the file was changed
    """
    path = Path(path)
    current = path.read_text() if path.exists() else ""
    updated = enable_ifupdown_management(current)
    if updated == current:
        logger.info(f"Interface management already enabled in {path}")
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    backup_file(path)
    atomic_write(path, updated, mode=0o644)
    logger.info(f"Interface management enabled in {path}")
    return True
