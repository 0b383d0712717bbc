"""Exception hierarchy shared by every component."""

from __future__ import annotations


class ContractorSyncError(Exception):
    """Base class for all errors raised by the package."""


class ValidationError(ContractorSyncError):
    """The caller supplied invalid input; never retried automatically."""


class DuplicateCodeError(ContractorSyncError):
    """The code was already scanned in the current session."""

    def __init__(self, code: str) -> None:
        super().__init__(f"Code already scanned in this session: {code}")
        self.code = code


class StorageError(ContractorSyncError):
    """The persistent store failed to read or write a key."""


class SyncError(ContractorSyncError):
    """The cloud gateway failed (network, status code or malformed data)."""


class PayloadImportError(ContractorSyncError):
    """An exchange payload could not be imported."""


__all__ = [
    "ContractorSyncError",
    "ValidationError",
    "DuplicateCodeError",
    "StorageError",
    "SyncError",
    "PayloadImportError",
]
