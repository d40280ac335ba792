"""Core change-detection engine for sheetwatch.

Compares a previous and a current snapshot and produces ChangeEvents.
Columns are matched by header text and rows by primary key (column 0),
never by position. For each sheet the phases run in a fixed order:
column changes, then row changes, then cell edits.
"""

from __future__ import annotations

from typing import Any

from sheetwatch.models import AffectedRange, ChangeEvent, Snapshot, Table
from sheetwatch.utils import (
    cell_address,
    column_range_a1,
    normalize_value,
    row_range_a1,
)


class ChangeDetector:
    """Stateless wrapper around detect_changes.

    Exists so callers can inject an alternative detector.
    """

    def detect_changes(self, previous: Snapshot, current: Snapshot) -> list[ChangeEvent]:
        return detect_changes(previous, current)


def detect_changes(previous: Snapshot, current: Snapshot) -> list[ChangeEvent]:
    """Compute the change events that turn previous into current.

    Sheets are visited in union order: previous sheet names first, then
    names that only exist in current. A sheet missing from one side is
    treated as empty there. Sheets empty on both sides are skipped.

    Args:
        previous: Snapshot taken earlier
        current: Snapshot taken now

    Returns:
        Events for every sheet, column events before row events before
        cell edits. Inputs are never modified.
    """
    changes: list[ChangeEvent] = []

    sheet_names = dict.fromkeys([*previous.keys(), *current.keys()])
    for sheet_name in sheet_names:
        prev_table = previous.get(sheet_name) or []
        curr_table = current.get(sheet_name) or []

        if not prev_table and not curr_table:
            continue

        changes.extend(detect_column_changes(prev_table, curr_table, sheet_name))
        changes.extend(detect_row_changes(prev_table, curr_table, sheet_name))
        changes.extend(detect_cell_edits(prev_table, curr_table, sheet_name))

    return changes


def detect_column_changes(
    previous: Table, current: Table, sheet_name: str
) -> list[ChangeEvent]:
    """Detect inserted and removed columns by matching header text.

    Inserted columns are reported first, then removed ones, each in header
    order. Only the first occurrence of a repeated header is considered.
    """
    changes: list[ChangeEvent] = []

    prev_columns = _header_map(previous)
    curr_columns = _header_map(current)
    max_row = max(len(previous), len(current))

    for header, curr_idx in curr_columns.items():
        if header not in prev_columns:
            changes.append(
                ChangeEvent(
                    change_type="INSERT_COLUMN",
                    sheet_name=sheet_name,
                    affected_range=_column_range(curr_idx + 1, max_row),
                    column_index=curr_idx + 1,
                    inserted_data=_column_values(current, curr_idx),
                )
            )

    for header, prev_idx in prev_columns.items():
        if header not in curr_columns:
            changes.append(
                ChangeEvent(
                    change_type="REMOVE_COLUMN",
                    sheet_name=sheet_name,
                    affected_range=_column_range(prev_idx + 1, max_row),
                    column_index=prev_idx + 1,
                    deleted_data=_column_values(previous, prev_idx),
                )
            )

    return changes


def detect_row_changes(
    previous: Table, current: Table, sheet_name: str
) -> list[ChangeEvent]:
    """Detect inserted and removed data rows by matching primary keys.

    Rows whose key is empty are never matched, so they show up as inserted
    and/or removed on every comparison that still contains them.
    """
    changes: list[ChangeEvent] = []

    prev_rows = previous[1:]
    curr_rows = current[1:]

    prev_keys = _key_map(prev_rows)
    curr_keys = _key_map(curr_rows)

    # Widest row on either side; the row itself is included below
    widest = max((len(row) for row in [*prev_rows, *curr_rows]), default=0)

    for curr_idx in _unmatched_rows(curr_rows, curr_keys, prev_keys):
        row = curr_rows[curr_idx]
        row_number = curr_idx + 2  # 1-based, after the header
        changes.append(
            ChangeEvent(
                change_type="INSERT_ROW",
                sheet_name=sheet_name,
                affected_range=_row_range(row_number, max(widest, len(row))),
                row_index=row_number,
                inserted_data=[row],
            )
        )

    for prev_idx in _unmatched_rows(prev_rows, prev_keys, curr_keys):
        row = prev_rows[prev_idx]
        row_number = prev_idx + 2
        changes.append(
            ChangeEvent(
                change_type="REMOVE_ROW",
                sheet_name=sheet_name,
                affected_range=_row_range(row_number, max(widest, len(row))),
                row_index=row_number,
                deleted_data=[row],
            )
        )

    return changes


def detect_cell_edits(
    previous: Table, current: Table, sheet_name: str
) -> list[ChangeEvent]:
    """Detect edited cells in rows and columns present in both tables.

    Rows are matched by primary key and columns by header text; columns
    added or removed are skipped here since the column phase reports them.
    The primary-key column itself is never reported as edited. Cost is
    O(matched rows x matched columns).
    """
    changes: list[ChangeEvent] = []

    prev_rows = previous[1:]
    curr_rows = current[1:]

    prev_columns = _header_map(previous)
    curr_columns = _header_map(current)
    shared_columns = [
        (prev_idx, curr_columns[header])
        for header, prev_idx in prev_columns.items()
        if header in curr_columns
    ]

    prev_keys = _key_map(prev_rows)
    curr_keys = _key_map(curr_rows)

    for key, prev_row_idx in prev_keys.items():
        if key not in curr_keys:
            continue

        curr_row_idx = curr_keys[key]
        prev_row = prev_rows[prev_row_idx]
        curr_row = curr_rows[curr_row_idx]
        row_number = curr_row_idx + 2

        for prev_idx, curr_idx in shared_columns:
            if prev_idx == 0 and curr_idx == 0:
                continue

            old_value = _get_cell(prev_row, prev_idx)
            new_value = _get_cell(curr_row, curr_idx)
            if normalize_value(old_value) == normalize_value(new_value):
                continue

            address = cell_address(row_number, curr_idx + 1)
            changes.append(
                ChangeEvent(
                    change_type="EDIT",
                    sheet_name=sheet_name,
                    affected_range=AffectedRange(
                        start_row=row_number,
                        end_row=row_number,
                        start_column=curr_idx + 1,
                        end_column=curr_idx + 1,
                        a1_notation=address,
                    ),
                    cell_address=address,
                    old_value=old_value,
                    new_value=new_value,
                )
            )

    return changes


def _header_map(table: Table) -> dict[str, int]:
    """Map normalized header text to its 0-based column; first occurrence wins."""
    header = table[0] if table else []
    columns: dict[str, int] = {}
    for idx, name in enumerate(header):
        columns.setdefault(normalize_value(name), idx)
    return columns


def _key_map(data_rows: Table) -> dict[str, int]:
    """Map normalized primary key to its 0-based data row; first occurrence wins.

    Rows with an empty key are left out.
    """
    keys: dict[str, int] = {}
    for idx, row in enumerate(data_rows):
        key = normalize_value(_get_cell(row, 0))
        if key:
            keys.setdefault(key, idx)
    return keys


def _unmatched_rows(
    data_rows: Table, keys: dict[str, int], other_keys: dict[str, int]
) -> list[int]:
    """0-based indices of rows with no counterpart on the other side, in row order.

    A row with an empty key never has a counterpart. Later duplicates of a
    key are hidden behind the first occurrence and never reported.
    """
    unmatched: list[int] = []
    for idx, row in enumerate(data_rows):
        key = normalize_value(_get_cell(row, 0))
        if not key or (keys[key] == idx and key not in other_keys):
            unmatched.append(idx)
    return unmatched


def _get_cell(row: list[Any], col: int) -> Any:
    """Get a cell value, treating cells past the end of a ragged row as empty."""
    if col < len(row):
        return row[col]
    return ""


def _column_values(table: Table, col: int) -> Table:
    """Non-empty data values of one column, each wrapped as a single-cell row."""
    values = []
    for row in table[1:]:
        value = _get_cell(row, col)
        if value is None:
            value = ""
        if value != "":
            values.append([value])
    return values


def _column_range(column: int, max_row: int) -> AffectedRange:
    return AffectedRange(
        start_row=1,
        end_row=max_row,
        start_column=column,
        end_column=column,
        a1_notation=column_range_a1(column, max_row),
    )


def _row_range(row: int, width: int) -> AffectedRange:
    return AffectedRange(
        start_row=row,
        end_row=row,
        start_column=1,
        end_column=width,
        a1_notation=row_range_a1(row),
    )
