from __future__ import annotations


class CaseTrackerError(Exception):
    """Base class for errors raised by casetracker."""


class ValidationError(CaseTrackerError, ValueError):
    """Input was rejected before any state was touched."""


class AttachmentTooLargeError(ValidationError):
    def __init__(self, name: str, size_bytes: int, max_bytes: int) -> None:
        self.name = name
        self.size_bytes = size_bytes
        self.max_bytes = max_bytes
        super().__init__(f'File "{name}" exceeds {max_bytes // (1024 * 1024)}MB limit')


class StorageError(CaseTrackerError):
    """The key-value store could not persist a write (quota exceeded, backend unavailable)."""
