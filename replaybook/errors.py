"""
Exception hierarchy for replaybook.
"""

from typing import Optional


class ReplaybookError(Exception):
    """Base class for all replaybook errors."""


class ExecutionError(ReplaybookError):
    """Running the interpreter subprocess failed."""


class ProcessSpawnError(ExecutionError):
    """The interpreter process could not be started."""


class InputWriteError(ExecutionError):
    """The session source could not be written to the interpreter's stdin."""


class ProcessWaitError(ExecutionError):
    """Waiting for the interpreter to exit failed (or timed out)."""


class NonZeroExit(ExecutionError):
    """The interpreter ran but exited with a failure status."""

    def __init__(self, diagnostic: str, returncode: Optional[int] = None):
        super().__init__(diagnostic)
        self.diagnostic = diagnostic
        self.returncode = returncode


class RecoveryError(ReplaybookError):
    """Dependency recovery could not be performed."""


class PackagePatternNotFound(RecoveryError):
    """The failure text has no missing-package signature."""


class PackageInstallError(RecoveryError):
    """The package installer exited with a failure status."""

    def __init__(self, package: str, diagnostic: str):
        super().__init__(f"Failed to install {package}: {diagnostic}")
        self.package = package
        self.diagnostic = diagnostic


class StoreError(ReplaybookError):
    """Persisting or loading a session failed."""


class SerializationError(StoreError):
    pass


class DeserializationError(StoreError):
    pass


class FileIOError(StoreError):
    pass


class LLMError(ReplaybookError):
    """The text-completion collaborator failed."""
