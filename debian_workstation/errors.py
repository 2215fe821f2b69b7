"""Exception hierarchy for the workstation provisioning tool."""


class WorkstationError(Exception):
    """Base class for every error raised by debian_workstation."""


class DetectionError(WorkstationError):
    """A required version string could not be read or parsed."""


class CandidateLookupError(WorkstationError):
    """The package index has no candidate version for a watched package."""

    def __init__(self, package: str, reason: str):
        self.package = package
        self.reason = reason
        super().__init__(f"No candidate version for {package}: {reason}")


class PreferencesError(WorkstationError):
    """APT preferences text is malformed or cannot be updated safely."""


class PriorityInvariantError(PreferencesError):
    """A version lock does not outrank every release channel."""


class WriteError(WorkstationError):
    """A configuration file could not be replaced atomically."""


class BackupError(WorkstationError):
    """A backup required before a destructive write could not be taken."""


class ProvisioningError(WorkstationError):
    """A critical provisioning phase failed."""
