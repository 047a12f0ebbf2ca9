"""Project-specific exception types."""

from __future__ import annotations


class EmbarkError(RuntimeError):
    """Base error for domain-level embark failures."""


class ConfigError(EmbarkError):
    """Raised when the per-directory config file is missing or unparseable."""


class UnknownSettingError(ConfigError):
    """Raised when ``set`` names a key that is not a known setting."""


class AlreadyRunningError(EmbarkError):
    """Raised when start/install finds a live qemu process for this VM."""


class AlreadyExistsError(EmbarkError):
    """Raised when a file that would be created is already present."""


class MissingArgumentError(EmbarkError):
    """Raised when a subcommand is missing a required positional argument."""


class ProfileNotFoundError(EmbarkError):
    """Raised when a profile name is not in the profile table."""


class NotRunningError(EmbarkError):
    """Raised when an operation needs a running VM and none was located."""


class InvalidPidError(EmbarkError):
    """Raised when a process listing yields a non-numeric PID."""
