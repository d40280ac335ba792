"""Human-readable rendering of change events."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from loguru import logger

from sheetwatch.models import ChangeEvent

SEPARATOR = "─" * 80


def format_value(value: Any) -> str:
    """Render a raw cell value for display."""
    if value is None:
        return "(empty)"
    if isinstance(value, dict | list):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def format_timestamp(timestamp: str) -> str:
    """Render an ISO timestamp in local time, falling back to the raw text."""
    try:
        return datetime.fromisoformat(timestamp).astimezone().strftime("%Y-%m-%d %H:%M:%S")
    except ValueError:
        return timestamp


def format_change(change: ChangeEvent, number: int) -> list[str]:
    """Lines describing one change; number is its 1-based position."""
    lines = [
        f"Change {number}:",
        f"  Type: {change.change_type}",
        f"  Sheet: {change.sheet_name}",
        f"  Range: {change.affected_range.a1_notation}",
        f"  Time: {format_timestamp(change.timestamp)}",
    ]

    if change.change_type == "EDIT":
        lines.append(f"  Cell: {change.cell_address}")
        lines.append(f"  Old Value: {format_value(change.old_value)}")
        lines.append(f"  New Value: {format_value(change.new_value)}")
    elif change.change_type == "INSERT_ROW":
        lines.append(f"  Row Index: {change.row_index}")
        if change.inserted_data:
            lines.append(f"  Inserted Data: {format_value(change.inserted_data[0])}")
    elif change.change_type == "REMOVE_ROW":
        lines.append(f"  Row Index: {change.row_index}")
        if change.deleted_data:
            lines.append(f"  Deleted Data: {format_value(change.deleted_data[0])}")
    elif change.change_type == "INSERT_COLUMN":
        lines.append(f"  Column Index: {change.column_index}")
        if change.inserted_data:
            lines.append(f"  Inserted Data: {format_value(change.inserted_data)}")
    elif change.change_type == "REMOVE_COLUMN":
        lines.append(f"  Column Index: {change.column_index}")
        if change.deleted_data:
            lines.append(f"  Deleted Data: {format_value(change.deleted_data)}")

    return lines


def display_changes(changes: list[ChangeEvent]) -> None:
    """Log every change, one block per event."""
    logger.info(f"Detected {len(changes)} change(s):")
    for number, change in enumerate(changes, start=1):
        for line in format_change(change, number):
            logger.info(line)
    logger.info(SEPARATOR)
