"""
Version Detection
-----------------

Reads the running kernel, the installed GNOME Shell and candidate versions
from the APT index, and reduces them to the major versions used in pins.
"""

import logging
import platform
import re
import subprocess
from typing import Callable, Optional

from debian_workstation.errors import CandidateLookupError, DetectionError
from debian_workstation.utils import run_command

logger = logging.getLogger("debian_workstation")

DEFAULT_SHELL_MAJOR = "3"
DEFAULT_QUERY_TIMEOUT = 60.0

_KERNEL_RE = re.compile(r"^(\d+)\.(\d+)(?:[.\-+~_]|$)")


def kernel_major(release: str) -> str:
    """
    Extract "X.Y" from a kernel release string such as "6.10.0-3-amd64".

    Raises:
        DetectionError: If the string does not start with two numeric
            dot-separated components
    """
    match = _KERNEL_RE.match(release.strip())
    if not match:
        raise DetectionError(f"Malformed kernel release string: {release!r}")
    return f"{int(match.group(1))}.{int(match.group(2))}"


def detect_kernel_major(release: Optional[str] = None) -> str:
    """Major version of the running kernel."""
    if release is None:
        release = platform.release()
    return kernel_major(release)


def shell_major(version_output: str) -> str:
    """
    Extract the major version from "GNOME Shell 46.2" (or a bare "46.2").

    Raises:
        DetectionError: If no numeric version is present
    """
    match = re.search(r"(\d+)(?:\.[\w.~+-]*)?\s*$", version_output.strip())
    if not match:
        raise DetectionError(f"Unrecognised GNOME Shell version: {version_output!r}")
    return str(int(match.group(1)))


def detect_shell_major(
    default: str = DEFAULT_SHELL_MAJOR, timeout: float = DEFAULT_QUERY_TIMEOUT
) -> str:
    """
    Major version of the installed GNOME Shell.

    A missing or broken gnome-shell means the desktop is not configured yet,
    so this returns the default rather than failing.
    """
    try:
        result = run_command(
            ["gnome-shell", "--version"],
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        return shell_major(result.stdout)
    except FileNotFoundError:
        logger.info(f"GNOME Shell is not installed; assuming major version {default}")
    except (subprocess.SubprocessError, DetectionError) as e:
        logger.warning(
            f"Could not determine GNOME Shell version ({e}); assuming major version {default}"
        )
    return default


def version_major(version: str, components: int) -> str:
    """
    Keep the first `components` dot-separated parts of a Debian version.

    The epoch ("1:") and Debian revision are dropped:
    "6.12.6-1" -> "6.12" for two components, "47.2-1" -> "47" for one.

    Raises:
        DetectionError: If the upstream version has too few numeric parts
    """
    upstream = version.strip()
    if ":" in upstream:
        upstream = upstream.split(":", 1)[1]
    parts = re.split(r"[.\-+~]", upstream)
    if len(parts) < components or not all(p.isdigit() for p in parts[:components]):
        raise DetectionError(
            f"Version {version!r} has fewer than {components} numeric component(s)"
        )
    return ".".join(str(int(p)) for p in parts[:components])


def parse_policy_candidate(policy_output: str) -> Optional[str]:
    """Return the Candidate version from `apt-cache policy` output, if any."""
    for line in policy_output.splitlines():
        line = line.strip()
        if line.startswith("Candidate:"):
            candidate = line.split(":", 1)[1].strip()
            if candidate and candidate != "(none)":
                return candidate
            return None
    return None


def query_candidate(package: str, timeout: float = DEFAULT_QUERY_TIMEOUT) -> str:
    """
    Ask APT which version of a package it would install now.

    Raises:
        CandidateLookupError: If apt-cache fails, times out or has no candidate
    """
    try:
        result = run_command(
            ["apt-cache", "policy", package],
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        raise CandidateLookupError(package, f"apt-cache timed out after {timeout}s")
    except subprocess.CalledProcessError as e:
        raise CandidateLookupError(package, f"apt-cache exited with {e.returncode}")
    except OSError as e:
        raise CandidateLookupError(package, str(e))

    candidate = parse_policy_candidate(result.stdout)
    if candidate is None:
        raise CandidateLookupError(package, "no candidate in package index")
    return candidate


CandidateLookup = Callable[[str], str]


def candidate_major(
    package: str, components: int, lookup: Optional[CandidateLookup] = None
) -> str:
    """
    Major version of a package's candidate.

    Raises:
        CandidateLookupError: If there is no usable candidate
    """
    lookup = lookup or query_candidate
    candidate = lookup(package)
    try:
        return version_major(candidate, components)
    except DetectionError as e:
        raise CandidateLookupError(package, str(e))
