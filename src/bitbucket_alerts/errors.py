"""Error types shared across the alert engine."""

from __future__ import annotations


class AlertsError(RuntimeError):
    """Base class for failures the alert engine knows how to classify."""


class TransientRemoteError(AlertsError):
    """Raised when a Bitbucket call fails and should be retried on a later pass."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class CredentialMissingError(AlertsError):
    """Raised when the username or app password has not been configured."""


class StorageError(AlertsError):
    """Raised when the alert store cannot be read or written."""
