"""
Exception hierarchy for wallet synchronization.
"""
from typing import Optional


class WalletSyncError(Exception):
    """Base class for wallet synchronization errors."""


class ConfigurationError(WalletSyncError):
    """Required keys, certificates or identifiers are missing or unreadable."""


class PassSigningError(WalletSyncError):
    """The pass bundle could not be signed."""


class PassNotFoundError(WalletSyncError):
    """The pass record referenced by a job does not exist."""

    def __init__(self, pass_id: str):
        super().__init__(f"Pass not found: {pass_id}")
        self.pass_id = pass_id


class JobExecutionError(WalletSyncError):
    """A wallet job handler step failed."""

    def __init__(self, message: str, step: Optional[str] = None):
        super().__init__(message)
        self.step = step
