"""
Utility functions for sheetwatch.

Provides value normalization and A1 coordinate formatting. All row and
column numbers here are 1-based, matching the coordinates reported in
change events.
"""

from __future__ import annotations

from typing import Any


def normalize_value(value: Any) -> str:
    """Canonicalize a cell value into a comparison string.

    None maps to the empty string; everything else is converted to text
    and stripped of surrounding whitespace. Used for comparisons only,
    never for display.
    """
    if value is None:
        return ""
    return str(value).strip()


def column_to_letter(column: int) -> str:
    """Convert a 1-based column number to A1 notation letter(s).

    Examples:
        1 -> A, 2 -> B, 26 -> Z, 27 -> AA, 28 -> AB, 703 -> AAA

    Non-positive numbers produce an empty string.
    """
    result = ""
    while column > 0:
        column -= 1
        result = chr(ord("A") + (column % 26)) + result
        column //= 26
    return result


def cell_address(row: int, column: int) -> str:
    """Convert 1-based row and column numbers to a cell address.

    Examples:
        (1, 1) -> A1, (3, 2) -> B3, (10, 28) -> AB10
    """
    return f"{column_to_letter(column)}{row}"


def column_range_a1(column: int, end_row: int) -> str:
    """Range covering one column from row 1 to end_row, e.g. C1:C10."""
    letter = column_to_letter(column)
    return f"{letter}1:{letter}{end_row}"


def row_range_a1(row: int) -> str:
    """Full-row range notation, e.g. 5:5."""
    return f"{row}:{row}"


def escape_sheet_title(title: str) -> str:
    """Escape sheet title for use in A1 notation ranges.

    Sheet names containing spaces, special characters, or starting with
    digits need to be wrapped in single quotes.
    """
    needs_quoting = (
        " " in title
        or "'" in title
        or "!" in title
        or ":" in title
        or (len(title) > 0 and title[0].isdigit())
    )
    if needs_quoting:
        escaped = title.replace("'", "''")
        return f"'{escaped}'"
    return title
