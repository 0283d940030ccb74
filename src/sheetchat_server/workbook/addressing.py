"""A1-style address parsing helpers.

Supports single cells ("B2"), rectangular ranges ("A1:C10"), whole columns
("A:C"), whole rows ("1:3") and an optional sheet qualifier
("'Sales Data'!A1:B5"). Row and column indices are 0-based internally.
"""

import re
from dataclasses import dataclass

from sheetchat_server.workbook.host import HostError

_CELL_RE = re.compile(r"^\$?([A-Za-z]{1,3})\$?(\d+)$")
_COLUMN_RE = re.compile(r"^\$?([A-Za-z]{1,3})$")
_ROW_RE = re.compile(r"^\$?(\d+)$")


def col_to_index(col: str) -> int:
    """Convert column letter(s) to 0-based index. A=0, B=1, ..., Z=25, AA=26."""
    result = 0
    for c in col.upper():
        result = result * 26 + (ord(c) - ord("A") + 1)
    return result - 1


def index_to_col(idx: int) -> str:
    """Convert 0-based index to column letter(s)."""
    result = ""
    idx += 1
    while idx > 0:
        idx, remainder = divmod(idx - 1, 26)
        result = chr(65 + remainder) + result
    return result


def cell_address(row: int, col: int) -> str:
    """Format 0-based coordinates as an A1 address."""
    return f"{index_to_col(col)}{row + 1}"


@dataclass(frozen=True)
class CellRange:
    """A rectangular block of cells, inclusive on both ends.

    ``end_row``/``end_col`` are None for whole-column / whole-row references;
    callers clamp them against the sheet's used range.
    """

    sheet: str | None
    start_row: int
    start_col: int
    end_row: int | None
    end_col: int | None

    def clamp(self, max_row: int, max_col: int) -> "CellRange":
        """Resolve open ends against the last used row and column."""
        return CellRange(
            sheet=self.sheet,
            start_row=self.start_row,
            start_col=self.start_col,
            end_row=max(self.start_row, max_row) if self.end_row is None else self.end_row,
            end_col=max(self.start_col, max_col) if self.end_col is None else self.end_col,
        )

    @property
    def row_count(self) -> int:
        return (self.end_row or self.start_row) - self.start_row + 1

    @property
    def column_count(self) -> int:
        return (self.end_col or self.start_col) - self.start_col + 1

    @property
    def address(self) -> str:
        start = cell_address(self.start_row, self.start_col)
        end = cell_address(
            self.start_row if self.end_row is None else self.end_row,
            self.start_col if self.end_col is None else self.end_col,
        )
        return start if start == end else f"{start}:{end}"

    def cells(self):
        """Iterate (row, col) pairs row by row."""
        for row in range(self.start_row, (self.end_row or self.start_row) + 1):
            for col in range(self.start_col, (self.end_col or self.start_col) + 1):
                yield row, col

    def contains(self, row: int, col: int) -> bool:
        return (
            self.start_row <= row <= (self.end_row if self.end_row is not None else row)
            and self.start_col <= col <= (self.end_col if self.end_col is not None else col)
        )


def parse_cell(ref: str) -> tuple[int, int]:
    """Parse 'B3' into (row, col) = (2, 1)."""
    match = _CELL_RE.match(ref.strip())
    if not match:
        raise HostError(f"Invalid cell reference: {ref}")
    return int(match.group(2)) - 1, col_to_index(match.group(1))


def parse_range(address: str) -> CellRange:
    """Parse an A1 range address, optionally sheet-qualified.

    Raises:
        HostError: If the address is not a valid reference
    """
    if not address or not address.strip():
        raise HostError("Range address is empty")

    sheet: str | None = None
    cell_part = address.strip()
    if "!" in cell_part:
        sheet, cell_part = cell_part.rsplit("!", 1)
        sheet = sheet.strip("'\"")

    start, _, end = cell_part.partition(":")
    end = end or start

    if _CELL_RE.match(start) and _CELL_RE.match(end):
        start_row, start_col = parse_cell(start)
        end_row, end_col = parse_cell(end)
        return CellRange(
            sheet=sheet,
            start_row=min(start_row, end_row),
            start_col=min(start_col, end_col),
            end_row=max(start_row, end_row),
            end_col=max(start_col, end_col),
        )

    col_start, col_end = _COLUMN_RE.match(start), _COLUMN_RE.match(end)
    if col_start and col_end:
        first, last = col_to_index(col_start.group(1)), col_to_index(col_end.group(1))
        return CellRange(sheet, 0, min(first, last), None, max(first, last))

    row_start, row_end = _ROW_RE.match(start), _ROW_RE.match(end)
    if row_start and row_end:
        first, last = int(row_start.group(1)) - 1, int(row_end.group(1)) - 1
        return CellRange(sheet, min(first, last), 0, max(first, last), None)

    raise HostError(f"Invalid range address: {address}")
