"""Excel extraction for contractor lists.

This module reads the ``contractors`` worksheet from an Excel workbook using
``openpyxl`` and converts rows into ``(name, category)`` pairs ready for
:meth:`ContractorDirectory.import_rows`.
"""

from __future__ import annotations

from pathlib import Path  # Filesystem path management
from typing import List, Tuple  # Concrete list type for return value

from openpyxl import load_workbook  # Excel file loader

SHEET_NAME = "contractors"
NAME_HEADERS = ("name", "название", "наименование", "контрагент")
CATEGORY_HEADERS = ("category", "категория")


def extract_contractor_rows(workbook_path: Path) -> List[Tuple[str, str]]:
    """Return ``(name, category)`` rows parsed from the workbook.

    Reads the ``contractors`` worksheet; the first row must hold the column
    headers (a name column is required, a category column is optional).
    Raises :class:`FileNotFoundError` if the workbook cannot be located and
    :class:`ValueError` if the worksheet or the name column is missing.
    """

    workbook_path = Path(workbook_path)  # Ensure we have a Path instance
    if not workbook_path.exists():  # Validate the file exists
        raise FileNotFoundError(f"Workbook not found: {workbook_path}")

    # Open in read-only mode for performance and safety; use cell values only
    workbook = load_workbook(filename=workbook_path, read_only=True, data_only=True)
    try:
        try:
            sheet = workbook[SHEET_NAME]  # Access the required worksheet by name
        except KeyError as exc:
            raise ValueError(f"Worksheet '{SHEET_NAME}' not found in workbook") from exc

        rows = sheet.iter_rows(values_only=True)  # Iterate rows as tuples of raw values
        headers_row = next(rows, None)  # First row should contain column headers
        if headers_row is None:  # Empty sheet edge case
            return []

        headers = [
            str(header).strip().casefold() if header is not None else ""
            for header in headers_row
        ]
        name_idx = next((i for i, h in enumerate(headers) if h in NAME_HEADERS), None)
        if name_idx is None:
            raise ValueError("Worksheet has no name column")
        category_idx = next(
            (i for i, h in enumerate(headers) if h in CATEGORY_HEADERS), None
        )

        def _value(row, idx: int | None) -> str:  # Helper to safely access a column
            if idx is None or idx >= len(row) or row[idx] is None:
                return ""
            return str(row[idx]).strip()

        contractors: List[Tuple[str, str]] = []
        for row in rows:
            name = _value(row, name_idx)
            if not name:
                continue  # Skip blank names
            contractors.append((name, _value(row, category_idx)))
    finally:
        workbook.close()  # Always close the workbook handle

    return contractors


__all__ = ["extract_contractor_rows", "SHEET_NAME"]  # Public API
