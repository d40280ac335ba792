"""sheetwatch - Change notifications for Google Sheets.

Compares successive snapshots of a spreadsheet and reports cell edits and
row/column insertions and removals, matching columns by header and rows by
primary key rather than by position.
"""

__version__ = "0.1.0"

from sheetwatch.diff import ChangeDetector, detect_changes
from sheetwatch.exceptions import (
    APIError,
    AuthenticationError,
    NotFoundError,
    SheetWatchError,
    SnapshotFormatError,
    TransportError,
    WatchError,
)
from sheetwatch.models import AffectedRange, ChangeEvent, Snapshot
from sheetwatch.monitor import SheetMonitor
from sheetwatch.transport import (
    GoogleSheetsTransport,
    LocalFileTransport,
    Transport,
)

__all__ = [
    "APIError",
    "AffectedRange",
    "AuthenticationError",
    "ChangeDetector",
    "ChangeEvent",
    "GoogleSheetsTransport",
    "LocalFileTransport",
    "NotFoundError",
    "SheetMonitor",
    "SheetWatchError",
    "Snapshot",
    "SnapshotFormatError",
    "Transport",
    "TransportError",
    "WatchError",
    "__version__",
]
