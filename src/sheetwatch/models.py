"""Data model for snapshots and change events.

A snapshot maps sheet names to tables; a table is a list of rows where row 0
is the header and column 0 of every data row is the primary key. Change
events describe the transition from one snapshot to the next and encode to
camelCase JSON-compatible dicts.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path  # noqa: TC003 - used at runtime
from typing import Any, Literal

from sheetwatch.exceptions import SnapshotFormatError

Table = list[list[Any]]
Snapshot = dict[str, Table]

ChangeType = Literal[
    "EDIT", "INSERT_ROW", "REMOVE_ROW", "INSERT_COLUMN", "REMOVE_COLUMN"
]

CHANGE_TYPES: tuple[str, ...] = (
    "EDIT",
    "INSERT_ROW",
    "REMOVE_ROW",
    "INSERT_COLUMN",
    "REMOVE_COLUMN",
)


def utc_timestamp() -> str:
    """Current time as an ISO-8601 UTC string."""
    return datetime.now(UTC).isoformat()


@dataclass
class AffectedRange:
    """A 1-based inclusive rectangle plus its A1 notation."""

    start_row: int
    end_row: int
    start_column: int
    end_column: int
    a1_notation: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "startRow": self.start_row,
            "endRow": self.end_row,
            "startColumn": self.start_column,
            "endColumn": self.end_column,
            "a1Notation": self.a1_notation,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AffectedRange:
        return cls(
            start_row=data["startRow"],
            end_row=data["endRow"],
            start_column=data["startColumn"],
            end_column=data["endColumn"],
            a1_notation=data["a1Notation"],
        )


@dataclass
class ChangeEvent:
    """A single detected change within one sheet.

    Which optional fields are set depends on change_type:
    - EDIT: cell_address, old_value, new_value
    - INSERT_ROW / REMOVE_ROW: row_index, inserted_data / deleted_data (one row)
    - INSERT_COLUMN / REMOVE_COLUMN: column_index, inserted_data / deleted_data
      (one single-cell row per non-empty data value)

    old_value and new_value hold the raw cell values, not normalized ones.
    """

    change_type: ChangeType
    sheet_name: str
    affected_range: AffectedRange
    timestamp: str = field(default_factory=utc_timestamp)
    cell_address: str | None = None
    old_value: Any = None
    new_value: Any = None
    row_index: int | None = None
    column_index: int | None = None
    inserted_data: Table | None = None
    deleted_data: Table | None = None

    def to_dict(self) -> dict[str, Any]:
        """Encode as a camelCase dict, omitting fields that do not apply."""
        result: dict[str, Any] = {
            "changeType": self.change_type,
            "sheetName": self.sheet_name,
            "affectedRange": self.affected_range.to_dict(),
        }
        if self.change_type == "EDIT":
            result["cellAddress"] = self.cell_address
            result["oldValue"] = self.old_value
            result["newValue"] = self.new_value
        if self.row_index is not None:
            result["rowIndex"] = self.row_index
        if self.column_index is not None:
            result["columnIndex"] = self.column_index
        if self.inserted_data is not None:
            result["insertedData"] = self.inserted_data
        if self.deleted_data is not None:
            result["deletedData"] = self.deleted_data
        result["timestamp"] = self.timestamp
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChangeEvent:
        change_type = data["changeType"]
        if change_type not in CHANGE_TYPES:
            raise ValueError(f"Unknown change type: {change_type}")
        return cls(
            change_type=change_type,
            sheet_name=data["sheetName"],
            affected_range=AffectedRange.from_dict(data["affectedRange"]),
            timestamp=data["timestamp"],
            cell_address=data.get("cellAddress"),
            old_value=data.get("oldValue"),
            new_value=data.get("newValue"),
            row_index=data.get("rowIndex"),
            column_index=data.get("columnIndex"),
            inserted_data=data.get("insertedData"),
            deleted_data=data.get("deletedData"),
        )


def parse_snapshot(data: Any, source: str = "<snapshot>") -> Snapshot:
    """Validate decoded JSON as a snapshot.

    Raises:
        SnapshotFormatError: If data is not a mapping of sheet name to rows
    """
    if not isinstance(data, dict):
        raise SnapshotFormatError(source, "expected an object of sheet name to rows")

    snapshot: Snapshot = {}
    for sheet_name, rows in data.items():
        if not isinstance(rows, list):
            raise SnapshotFormatError(source, f"sheet '{sheet_name}' is not a list")
        for i, row in enumerate(rows):
            if not isinstance(row, list):
                raise SnapshotFormatError(
                    source, f"row {i + 1} of sheet '{sheet_name}' is not a list"
                )
        snapshot[str(sheet_name)] = rows
    return snapshot


def load_snapshot(path: Path) -> Snapshot:
    """Read a snapshot from a JSON file."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except UnicodeDecodeError as e:
        raise SnapshotFormatError(str(path), f"not UTF-8 text: {e}") from e
    except json.JSONDecodeError as e:
        raise SnapshotFormatError(str(path), f"invalid JSON: {e}") from e
    return parse_snapshot(data, str(path))


def dump_snapshot(snapshot: Snapshot, path: Path) -> Path:
    """Write a snapshot to a JSON file, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(snapshot, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
    )
    return path


def count_rows(snapshot: Snapshot) -> int:
    """Total number of rows across all sheets, header rows included."""
    return sum(len(rows) for rows in snapshot.values())
