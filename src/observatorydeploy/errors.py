"""Domain errors for observatory-deploy."""

from typing import Iterable, Optional


class DeployError(RuntimeError):
    """Raised when the deployment cannot continue safely."""


class ResolutionError(DeployError):
    """The release tag or a matching asset could not be found."""


class TransferError(DeployError):
    """The artifact could not be downloaded."""


class ExtractionError(DeployError):
    """The archive is malformed or lacks the expected entry."""


class RestartError(DeployError):
    """The supervisor failed to restart the managed service."""


class VerificationError(DeployError):
    """A health check did not report the service as healthy."""


class ConfigError(DeployError):
    """One or more required configuration values are missing."""

    def __init__(self, message: str, missing: Optional[Iterable[str]] = None):
        super().__init__(message)
        self.missing = list(missing or [])
