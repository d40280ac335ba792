"""Transport layer for fetching spreadsheet snapshots.

Defines the Transport protocol and implementations:
- GoogleSheetsTransport: Production transport using Google Sheets API
- LocalFileTransport: Test transport reading from local snapshot files
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path  # noqa: TC003 - used at runtime
from typing import Any

from sheetwatch.credentials import AuthorizedClient
from sheetwatch.exceptions import (
    APIError,
    AuthenticationError,
    NotFoundError,
    TransportError,
)
from sheetwatch.models import Snapshot, load_snapshot
from sheetwatch.utils import escape_sheet_title

# Re-exported so callers can import every transport error from here
__all__ = [
    "API_BASE",
    "APIError",
    "AuthenticationError",
    "GoogleSheetsTransport",
    "LocalFileTransport",
    "NotFoundError",
    "Transport",
    "TransportError",
]

API_BASE = "https://sheets.googleapis.com/v4/spreadsheets"

# Columns fetched per sheet
VALUE_RANGE = "A:ZZZ"


class Transport(ABC):
    """Abstract base class for snapshot transport.

    Implementations return the current values of every sheet in a
    spreadsheet (Google API, local files, etc.).
    """

    @abstractmethod
    async def get_snapshot(self, spreadsheet_id: str) -> Snapshot:
        """Fetch the current state of all sheets.

        Args:
            spreadsheet_id: The spreadsheet identifier

        Returns:
            Mapping of sheet title to rows of cell values
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections."""
        ...


class GoogleSheetsTransport(Transport):
    """Production transport that fetches values from Google Sheets API.

    Makes two requests per snapshot: one for the sheet titles, one
    values:batchGet covering every sheet.
    """

    def __init__(self, client: AuthorizedClient) -> None:
        """Initialize the transport.

        Args:
            client: Authorized client with spreadsheets.readonly scope
        """
        self._client = client

    async def get_snapshot(self, spreadsheet_id: str) -> Snapshot:
        """Fetch all sheet values from Google Sheets API."""
        titles = await self.get_sheet_titles(spreadsheet_id)
        if not titles:
            return {}

        ranges = [f"{escape_sheet_title(title)}!{VALUE_RANGE}" for title in titles]
        response = await self._client.get(
            f"{API_BASE}/{spreadsheet_id}/values:batchGet",
            params=[("ranges", r) for r in ranges]
            + [("majorDimension", "ROWS"), ("valueRenderOption", "FORMATTED_VALUE")],
        )

        # valueRanges come back in request order; empty sheets carry no "values"
        value_ranges: list[dict[str, Any]] = response.get("valueRanges", [])
        snapshot: Snapshot = {}
        for i, title in enumerate(titles):
            values = value_ranges[i].get("values", []) if i < len(value_ranges) else []
            snapshot[title] = values
        return snapshot

    async def get_sheet_titles(self, spreadsheet_id: str) -> list[str]:
        """Fetch the sheet titles in tab order."""
        response = await self._client.get(
            f"{API_BASE}/{spreadsheet_id}",
            params={"fields": "sheets.properties.title"},
        )
        titles: list[str] = []
        for sheet in response.get("sheets", []):
            title = sheet.get("properties", {}).get("title", "Sheet1")
            titles.append(title)
        return titles

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.close()


class LocalFileTransport(Transport):
    """Test transport that reads from local snapshot files.

    Expected directory structure:
        snapshot_dir/
            <spreadsheet_id>/
                snapshot.json

    The file is re-read on every call, so editing it between calls
    simulates a change to the spreadsheet.
    """

    def __init__(self, snapshot_dir: Path) -> None:
        """Initialize the transport.

        Args:
            snapshot_dir: Directory containing snapshot files
        """
        self._snapshot_dir = snapshot_dir

    def snapshot_path(self, spreadsheet_id: str) -> Path:
        return self._snapshot_dir / spreadsheet_id / "snapshot.json"

    async def get_snapshot(self, spreadsheet_id: str) -> Snapshot:
        """Read snapshot from local file."""
        path = self.snapshot_path(spreadsheet_id)
        if not path.exists():
            raise NotFoundError(f"Snapshot file not found: {path}")
        try:
            return load_snapshot(path)
        except OSError as e:
            raise TransportError(f"Could not read snapshot file {path}: {e}") from e

    async def close(self) -> None:
        """No-op for local file transport."""
        pass
