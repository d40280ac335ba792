"""Custom exceptions for sheetwatch."""

from __future__ import annotations


class SheetWatchError(Exception):
    """Base exception for sheetwatch errors."""

    pass


class TransportError(SheetWatchError):
    """Base exception for transport errors."""


class AuthenticationError(TransportError):
    """Raised when authentication fails (401/403)."""


class NotFoundError(TransportError):
    """Raised when the spreadsheet or channel is not found (404)."""


class APIError(TransportError):
    """Raised when the API returns an error."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class WatchError(SheetWatchError):
    """Raised when a Drive watch channel cannot be created or stopped."""

    def __init__(self, action: str, reason: str) -> None:
        self.action = action
        self.reason = reason
        super().__init__(f"Failed to {action} watch: {reason}")


class SnapshotFormatError(SheetWatchError):
    """Raised when a snapshot file is corrupted or has invalid format.

    A snapshot must be a JSON object mapping sheet names to lists of rows,
    where each row is a list of cell values.
    """

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid snapshot '{source}': {reason}")
