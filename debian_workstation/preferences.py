"""
APT Preferences Model & Writer
-------------------------------

Parses /etc/apt/preferences into an ordered list of stanzas, builds the
workstation pin set (release channels plus major-version locks) and writes it
back atomically.

A stanza looks like:

    Package: linux-image-*
    Pin: version 6.10*
    Pin-Priority: 1001

Stanzas are separated by a blank line. Comment and Explanation lines are kept
in place, so a file survives a parse and render unchanged apart from
whitespace normalization.
"""

import logging
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from debian_workstation.errors import (
    PreferencesError,
    PriorityInvariantError,
)
from debian_workstation.utils import atomic_write, locked_file

logger = logging.getLogger("debian_workstation")

LOCK_PRIORITY = 1001

_FIELD_RE = re.compile(r"^([A-Za-z][A-Za-z-]*):\s*(.*)$")


# ----------------------------------------------------------------
# Data Model
# ----------------------------------------------------------------
@dataclass(frozen=True)
class Channel:
    """A release stream of the Debian archive with its pin priority."""

    archive: str
    priority: int

    @property
    def pin(self) -> str:
        return f"release a={self.archive}"


TESTING = Channel("testing", 990)
STABLE_BACKPORTS = Channel("stable-backports", 500)
STABLE = Channel("stable", 400)

DEFAULT_CHANNELS: Tuple[Channel, ...] = (TESTING, STABLE_BACKPORTS, STABLE)


@dataclass(frozen=True)
class LockedGroup:
    """
    A family of packages held at one major version.

    Attributes:
        name: Short identifier used in logs ("kernel", "desktop-shell")
        patterns: Package patterns that receive a version pin
        query_package: Package whose candidate version drives the refresh
        components: Number of leading version components kept in the pin
        comment: Comment line written above the group's first stanza
        priority: Pin priority, must outrank every channel
    """

    name: str
    patterns: Tuple[str, ...]
    query_package: str
    components: int
    comment: str = ""
    priority: int = LOCK_PRIORITY


KERNEL_GROUP = LockedGroup(
    name="kernel",
    patterns=("linux-image-*", "linux-headers-*"),
    query_package="linux-image-amd64",
    components=2,
    comment="# Hold current kernel packages",
)

SHELL_GROUP = LockedGroup(
    name="desktop-shell",
    patterns=("gnome gnome-*",),
    query_package="gnome-shell",
    components=1,
    comment="# Hold current GNOME packages",
)

DEFAULT_GROUPS: Tuple[LockedGroup, ...] = (KERNEL_GROUP, SHELL_GROUP)


def normalize_pattern(pattern: str) -> str:
    """
    Normalize a Package field so equal patterns always render the same way.

    Glob, regex and src: patterns are kept verbatim since APT matches them
    itself. Tokens are joined by a single space.

    Raises:
        PreferencesError: If the pattern is empty or spans several lines
    """
    if "\n" in pattern:
        raise PreferencesError(f"Invalid package pattern: {pattern!r}")
    tokens = pattern.split()
    if not tokens:
        raise PreferencesError("Empty package pattern")
    return " ".join(tokens)


_FIELDS = ("Package", "Pin", "Pin-Priority")
# Layout markers for non-field lines
_COMMENT = "#"
_EXPLANATION = "Explanation"
_BLANK = ""


@dataclass(frozen=True)
class Stanza:
    """
    One pin rule: package pattern, pin expression and priority.

    Comment and Explanation lines are kept in the order they were read.
    `layout` records that order, one marker per rendered line: a field name,
    "#" for the next comment, "Explanation" for the next explanation, or ""
    for a blank line between leading comments and the first field.
    """

    package: str
    pin: str
    priority: int
    comments: Tuple[str, ...] = ()
    explanations: Tuple[str, ...] = ()
    layout: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "package", normalize_pattern(self.package))
        object.__setattr__(self, "pin", " ".join(self.pin.split()))
        if not self.layout:
            object.__setattr__(
                self,
                "layout",
                (_COMMENT,) * len(self.comments)
                + (_EXPLANATION,) * len(self.explanations)
                + _FIELDS,
            )

    @property
    def is_version_pin(self) -> bool:
        return self.pin.startswith("version ")

    @property
    def version(self) -> Optional[str]:
        """The pinned version prefix without the trailing glob, if any."""
        if not self.is_version_pin:
            return None
        return self.pin[len("version ") :].rstrip("*")

    @property
    def release_archive(self) -> Optional[str]:
        match = re.match(r"^release .*\ba=([^,\s]+)", self.pin)
        return match.group(1) if match else None

    def with_version(self, version: str) -> "Stanza":
        """Return a copy whose version constraint is replaced, nothing else."""
        return replace(self, pin=f"version {version}*")

    def render(self) -> str:
        values = {
            "Package": self.package,
            "Pin": self.pin,
            "Pin-Priority": str(self.priority),
        }
        comments = iter(self.comments)
        explanations = iter(self.explanations)
        lines = []
        for marker in self.layout:
            if marker == _COMMENT:
                lines.append(next(comments))
            elif marker == _EXPLANATION:
                lines.append(f"Explanation: {next(explanations)}".rstrip())
            elif marker == _BLANK:
                lines.append("")
            else:
                lines.append(f"{marker}: {values[marker]}")
        return "\n".join(lines)


@dataclass(frozen=True)
class PreferenceSet:
    """
    Ordered, immutable collection of stanzas.

    `trailer` holds comment lines after the last stanza.
    """

    stanzas: Tuple[Stanza, ...] = field(default_factory=tuple)
    trailer: Tuple[str, ...] = ()

    @classmethod
    def parse(cls, text: str) -> "PreferenceSet":
        """
        Parse APT preferences text.

        Comments may appear anywhere, including between the fields of a
        stanza and after the last one.

        Args:
            text: File contents

        Returns:
            The parsed preference set

        Raises:
            PreferencesError: If a stanza is incomplete or malformed
        """
        stanzas: List[Stanza] = []
        fields: Dict[str, str] = {}
        comments: List[str] = []
        explanations: List[str] = []
        layout: List[str] = []

        def flush(line_no: int) -> None:
            missing = [name for name in _FIELDS if name not in fields]
            if missing:
                raise PreferencesError(
                    f"Stanza ending at line {line_no} is missing {', '.join(missing)}"
                )
            try:
                priority = int(fields["Pin-Priority"])
            except ValueError:
                raise PreferencesError(
                    f"Invalid Pin-Priority {fields['Pin-Priority']!r} near line {line_no}"
                )
            stanzas.append(
                Stanza(
                    package=fields["Package"],
                    pin=fields["Pin"],
                    priority=priority,
                    comments=tuple(comments),
                    explanations=tuple(explanations),
                    layout=tuple(layout),
                )
            )
            fields.clear()
            comments.clear()
            explanations.clear()
            layout.clear()

        lines = text.splitlines()
        for line_no, raw in enumerate(lines, start=1):
            line = raw.strip()
            if not line:
                if fields or explanations:
                    flush(line_no)
                elif layout and layout[-1] != _BLANK:
                    # Comment block separated from the stanza below it
                    layout.append(_BLANK)
                continue
            if line.startswith("#"):
                comments.append(line)
                layout.append(_COMMENT)
                continue
            match = _FIELD_RE.match(line)
            if not match:
                raise PreferencesError(f"Unparsable line {line_no}: {raw!r}")
            name, value = match.group(1), match.group(2).strip()
            if name.lower() == "explanation":
                explanations.append(value)
                layout.append(_EXPLANATION)
                continue
            if name not in _FIELDS:
                raise PreferencesError(f"Unknown field {name!r} on line {line_no}")
            if name in fields:
                raise PreferencesError(f"Duplicate field {name!r} on line {line_no}")
            fields[name] = value
            layout.append(name)

        if fields or explanations:
            flush(len(lines))
        while layout and layout[-1] == _BLANK:
            layout.pop()
        comment_lines = iter(comments)
        trailer = tuple(
            next(comment_lines) if marker == _COMMENT else "" for marker in layout
        )
        return cls(tuple(stanzas), trailer)

    def render(self) -> str:
        blocks = [stanza.render() for stanza in self.stanzas]
        if self.trailer:
            blocks.append("\n".join(self.trailer))
        if not blocks:
            return ""
        return "\n\n".join(blocks) + "\n"

    def find(self, pattern: str) -> List[Stanza]:
        pattern = normalize_pattern(pattern)
        return [s for s in self.stanzas if s.package == pattern]

    def channel_priorities(self) -> Dict[str, int]:
        return {
            s.release_archive: s.priority
            for s in self.stanzas
            if s.release_archive is not None
        }

    def validate(self) -> None:
        """
        Check that every version lock outranks every release channel.

        Raises:
            PriorityInvariantError: If a version pin does not exceed the
                highest channel priority
        """
        channels = self.channel_priorities()
        if not channels:
            return
        ceiling = max(channels.values())
        for stanza in self.stanzas:
            if stanza.is_version_pin and stanza.priority <= ceiling:
                raise PriorityInvariantError(
                    f"Version lock for {stanza.package!r} has priority "
                    f"{stanza.priority}, which does not exceed channel priority {ceiling}"
                )

    def with_group_version(self, group: LockedGroup, version: str) -> "PreferenceSet":
        """
        Replace the version of every stanza belonging to a locked group.

        Patterns and priorities stay untouched; channel stanzas are never
        modified.

        Raises:
            PreferencesError: If the group has no version stanza in the set
        """
        patterns = {normalize_pattern(p) for p in group.patterns}
        found = set()
        updated = []
        for stanza in self.stanzas:
            if stanza.package in patterns and stanza.is_version_pin:
                updated.append(stanza.with_version(version))
                found.add(stanza.package)
            else:
                updated.append(stanza)
        missing = sorted(patterns - found)
        if missing:
            raise PreferencesError(
                f"No version pin for {group.name} pattern(s): {', '.join(missing)}"
            )
        return replace(self, stanzas=tuple(updated))


# ----------------------------------------------------------------
# Builders & I/O
# ----------------------------------------------------------------
def build_preferences(
    channels: Sequence[Channel],
    groups: Iterable[LockedGroup],
    versions: Dict[str, str],
) -> PreferenceSet:
    """
    Build the full workstation preference set.

    Args:
        channels: Release channels in file order
        groups: Locked package groups
        versions: Major version per group name

    Returns:
        A validated preference set

    Raises:
        PreferencesError: If a group has no version
        PriorityInvariantError: If a lock does not outrank the channels
    """
    stanzas = [Stanza(package="*", pin=c.pin, priority=c.priority) for c in channels]
    for group in groups:
        if not versions.get(group.name):
            raise PreferencesError(f"No version given for locked group {group.name}")
        for index, pattern in enumerate(group.patterns):
            comments = (group.comment,) if index == 0 and group.comment else ()
            stanzas.append(
                Stanza(
                    package=pattern,
                    pin=f"version {versions[group.name]}*",
                    priority=group.priority,
                    comments=comments,
                )
            )
    prefs = PreferenceSet(tuple(stanzas))
    prefs.validate()
    return prefs


def load_preferences(path: Union[str, Path]) -> PreferenceSet:
    path = Path(path)
    try:
        text = path.read_text()
    except FileNotFoundError:
        raise PreferencesError(f"Preferences file {path} does not exist")
    return PreferenceSet.parse(text)


def write_preferences(
    path: Union[str, Path], prefs: PreferenceSet, already_locked: bool = False
) -> None:
    """
    Validate and atomically replace the preferences file.

    Args:
        path: Target file
        prefs: Preference set to write
        already_locked: Caller already holds the lock from locked_file()

    Raises:
        PriorityInvariantError: If the set breaks the priority invariant
        WriteError: If the file cannot be replaced
    """
    prefs.validate()
    path = Path(path)
    if already_locked:
        atomic_write(path, prefs.render(), mode=0o644)
    else:
        with locked_file(path):
            atomic_write(path, prefs.render(), mode=0o644)
    logger.info(f"Wrote {len(prefs.stanzas)} pin rules to {path}")
