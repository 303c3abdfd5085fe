"""
Grid helpers shared by the CSV and Excel reconstructors.

Both readers turn a file into a header-less pandas DataFrame of raw cells,
then use these helpers to find the real header row among the letterhead,
build unique column names from it, and map the rows below it into records
while dropping page furniture and repeated headers.
"""

import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from .models import ParseWarning

DATE_MARKERS = ("date",)
NARRATION_MARKERS = ("narration", "description", "detail", "particular")
AMOUNT_MARKERS = ("withdrawal", "debit", "deposit", "credit", "amount")

# Lines that start with these are page furniture, not transactions.
NOISE_PREFIXES = (
    re.compile(r"^page\s*(no\b|\d|of\b)", re.IGNORECASE),
    re.compile(r"^statement\s+(of|for|summary|period|date)\b", re.IGNORECASE),
    re.compile(r"^(opening|closing)\s+balance\b", re.IGNORECASE),
    re.compile(r"^\**\s*end of statement", re.IGNORECASE),
)
SEPARATOR_CELL = re.compile(r"^[-*]+$")

REPEATED_HEADER_CELLS = {"date", "narration"}

HEADER_HINT = (
    "Unable to locate the transaction header row. Please ensure the sheet "
    "contains columns such as Date, Narration, and Withdrawal/Deposit amounts."
)


def cell_text(value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str) and pd.isna(value):
        return ""
    return str(value).strip()


def to_grid(frame: pd.DataFrame) -> List[List[str]]:
    """Flatten a raw DataFrame into rows of trimmed strings."""
    return [[cell_text(value) for value in row] for row in frame.itertuples(index=False)]


def is_header_row(cells: Sequence[str]) -> bool:
    """Header heuristic: a date cell, a narration cell and an amount cell."""
    normalized = [cell.lower().strip() for cell in cells if cell]
    if not normalized:
        return False

    has_date = any(marker in cell for cell in normalized for marker in DATE_MARKERS)
    has_narration = any(
        marker in cell for cell in normalized for marker in NARRATION_MARKERS
    )
    has_amount = any(
        marker in cell for cell in normalized for marker in AMOUNT_MARKERS
    )
    return has_date and has_narration and has_amount


def find_header_row(grid: Sequence[Sequence[str]]) -> Optional[int]:
    for index, row in enumerate(grid):
        if is_header_row(row):
            return index
    return None


def build_column_names(header: Sequence[str]) -> List[str]:
    """Unique column names: blanks become ``column_N``, repeats get ``_2``, ``_3``..."""
    names: List[str] = []
    seen = set()

    for position, cell in enumerate(header, start=1):
        base = cell.strip() or f"column_{position}"
        name = base
        suffix = 2
        while name in seen:
            name = f"{base}_{suffix}"
            suffix += 1
        seen.add(name)
        names.append(name)

    return names


def is_noise_row(values: Sequence[str]) -> bool:
    if all(value == "" for value in values):
        return True
    if all(value == "" or SEPARATOR_CELL.match(value) for value in values):
        return True

    first = next(value for value in values if value)
    return any(pattern.match(first) for pattern in NOISE_PREFIXES)


def is_repeated_header_row(values: Sequence[str]) -> bool:
    return any(value.lower() in REPEATED_HEADER_CELLS for value in values)


def records_after_header(
    grid: Sequence[Sequence[str]], header_index: int, row_offset: int = 1
) -> Tuple[List[Dict[str, str]], List[ParseWarning]]:
    """Map the rows below ``header_index`` onto header-keyed records.

    ``row_offset`` converts grid indexes into the row numbers reported in
    warnings (1 for files whose first line is row 1).
    """
    columns = build_column_names(grid[header_index])
    records: List[Dict[str, str]] = []
    warnings: List[ParseWarning] = []

    for index in range(header_index + 1, len(grid)):
        cells = list(grid[index])

        # Trailing empties are padding from ragged rows, not real fields.
        while len(cells) > len(columns) and cells[-1] == "":
            cells.pop()

        if is_noise_row(cells) or is_repeated_header_row(cells):
            continue

        if len(cells) > len(columns):
            warnings.append(
                ParseWarning(
                    message=(
                        f"Row {index + row_offset}: expected {len(columns)} "
                        f"fields but found {len(cells)}."
                    ),
                    context={"code": "TooManyFields", "row": index + row_offset},
                )
            )
            cells = cells[: len(columns)]

        cells += [""] * (len(columns) - len(cells))
        records.append(dict(zip(columns, cells)))

    return records, warnings
