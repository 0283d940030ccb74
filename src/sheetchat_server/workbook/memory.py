"""In-memory spreadsheet host.

Provides a minimal workbook engine that backs the capability catalog when
no external spreadsheet application is attached. It does not aim to
replicate a full spreadsheet application: charts and conditional formats are
recorded rather than rendered, and pivot tables are written out as plain
values.
"""

import inspect
import logging
import math
import statistics
from dataclasses import dataclass, field
from typing import Any

from sheetchat_server.workbook.addressing import (
    CellRange,
    cell_address,
    col_to_index,
    parse_range,
)
from sheetchat_server.workbook.host import (
    ActiveSheetListener,
    FilterOutcome,
    HostError,
    RangeData,
    SelectionInfo,
)

logger = logging.getLogger(__name__)

Cell = tuple[int, int]

DEFAULT_COLUMN_WIDTH = 8.43
DEFAULT_ROW_HEIGHT = 15.0
MAX_COLUMN_WIDTH = 255.0


@dataclass
class Chart:
    """A chart recorded on a sheet."""

    name: str
    chart_type: str
    data_range: str


@dataclass
class ConditionalFormat:
    """A conditional format rule recorded on a sheet."""

    format_type: str
    range: CellRange
    rule: dict[str, Any]
    cell_format: dict[str, Any] = field(default_factory=dict)


@dataclass
class Sheet:
    """A worksheet with cells and presentation state."""

    name: str
    cells: dict[Cell, Any] = field(default_factory=dict)
    formats: dict[Cell, dict[str, Any]] = field(default_factory=dict)
    merged: list[CellRange] = field(default_factory=list)
    charts: list[Chart] = field(default_factory=list)
    conditional_formats: list[ConditionalFormat] = field(default_factory=list)
    hidden_rows: set[int] = field(default_factory=set)
    column_widths: dict[int, float] = field(default_factory=dict)
    row_heights: dict[int, float] = field(default_factory=dict)

    def used_bounds(self) -> tuple[int, int]:
        """Last used (row, col), or (0, 0) for an empty sheet."""
        if not self.cells:
            return 0, 0
        return max(r for r, _ in self.cells), max(c for _, c in self.cells)

    def values(self, cell_range: CellRange) -> list[list[Any]]:
        return [
            [
                self.cells.get((row, col), "")
                for col in range(cell_range.start_col, cell_range.end_col + 1)
            ]
            for row in range(cell_range.start_row, cell_range.end_row + 1)
        ]


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.replace(",", ""))
        except ValueError:
            return None
    return None


def _aggregate(function: str, values: list[Any]) -> Any:
    present = [v for v in values if v not in (None, "")]
    if function == "Count":
        return len(present)

    numbers = [n for n in (_as_number(v) for v in present) if n is not None]
    if function == "Sum":
        return sum(numbers)
    if function == "Product":
        return math.prod(numbers) if numbers else 0
    if not numbers:
        return ""
    if function == "Average":
        return statistics.fmean(numbers)
    if function == "Max":
        return max(numbers)
    if function == "Min":
        return min(numbers)
    if function in ("StandardDeviation", "Variance"):
        if len(numbers) < 2:
            return ""
        if function == "Variance":
            return statistics.variance(numbers)
        return statistics.stdev(numbers)
    raise HostError(f"Unsupported aggregation function: {function}")


def _matches(value: Any, filter_type: str, criteria: dict[str, Any]) -> bool:
    def required(key: str) -> Any:
        if key not in criteria:
            raise HostError(f"Filter type {filter_type} requires criteria.{key}")
        return criteria[key]

    if filter_type == "Equals":
        expected = required("value")
        number, target = _as_number(value), _as_number(expected)
        if number is not None and target is not None:
            return number == target
        return str(value).lower() == str(expected).lower()
    if filter_type == "Contains":
        return str(required("value")).lower() in str(value).lower()
    if filter_type == "Values":
        allowed = required("values")
        if not isinstance(allowed, list):
            raise HostError("criteria.values must be a list")
        return str(value) in {str(v) for v in allowed}

    number = _as_number(value)
    if filter_type == "GreaterThan":
        threshold = _as_number(required("value"))
        return number is not None and threshold is not None and number > threshold
    if filter_type == "LessThan":
        threshold = _as_number(required("value"))
        return number is not None and threshold is not None and number < threshold
    if filter_type == "Between":
        low, high = _as_number(required("min")), _as_number(required("max"))
        if low is None or high is None:
            raise HostError("criteria.min and criteria.max must be numbers")
        return number is not None and low <= number <= high
    raise HostError(f"Unsupported filter type: {filter_type}")


class InMemoryWorkbook:
    """Stateful in-memory workbook implementing ``SpreadsheetHost``."""

    def __init__(self, sheet_names: list[str] | None = None) -> None:
        names = sheet_names or ["Sheet1"]
        self.sheets: dict[str, Sheet] = {name: Sheet(name=name) for name in names}
        self.active_sheet: str = names[0]
        self.selection: CellRange = CellRange(None, 0, 0, 0, 0)
        self._listeners: list[ActiveSheetListener] = []
        self._chart_counter = 0

    # --- Resolution helpers ---

    def _sheet(self, name: str | None = None) -> Sheet:
        name = name or self.active_sheet
        if name not in self.sheets:
            raise HostError(f"Worksheet '{name}' not found")
        return self.sheets[name]

    def _resolve(self, address: str | None) -> tuple[Sheet, CellRange]:
        if address is None:
            cell_range = self.selection
        else:
            cell_range = parse_range(address)
        sheet = self._sheet(cell_range.sheet)
        max_row, max_col = sheet.used_bounds()
        return sheet, cell_range.clamp(max_row, max_col)

    # --- Active sheet notifications ---

    def add_active_sheet_listener(self, listener: ActiveSheetListener) -> None:
        self._listeners.append(listener)

    def remove_active_sheet_listener(self, listener: ActiveSheetListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def _notify_active_sheet_changed(self) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(self.active_sheet)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(f"Active sheet listener failed: {e}")

    async def set_active_worksheet(self, sheet_name: str) -> None:
        """Activate a sheet and raise the active-view-changed notification."""
        self._sheet(sheet_name)
        changed = sheet_name != self.active_sheet
        self.active_sheet = sheet_name
        if changed:
            self.selection = CellRange(None, 0, 0, 0, 0)
            logger.info(f"Active worksheet changed to {sheet_name}")
            await self._notify_active_sheet_changed()

    async def select_range(self, range_address: str) -> SelectionInfo:
        cell_range = parse_range(range_address)
        if cell_range.sheet:
            await self.set_active_worksheet(cell_range.sheet)
        sheet = self._sheet()
        max_row, max_col = sheet.used_bounds()
        cell_range = cell_range.clamp(max_row, max_col)
        self.selection = CellRange(
            None,
            cell_range.start_row,
            cell_range.start_col,
            cell_range.end_row,
            cell_range.end_col,
        )
        return await self.get_selected_range_info()

    # --- Cells ---

    async def write_range(self, start_cell: str, values: list[list[Any]]) -> None:
        cell_range = parse_range(start_cell)
        sheet = self._sheet(cell_range.sheet)
        if not values or not all(isinstance(row, list) for row in values):
            raise HostError("Values must be a non-empty 2D array")
        for r, row in enumerate(values):
            for c, value in enumerate(row):
                target = (cell_range.start_row + r, cell_range.start_col + c)
                if value is None:
                    sheet.cells.pop(target, None)
                else:
                    sheet.cells[target] = value

    async def read_cell(self, cell_address: str) -> Any:
        cell_range = parse_range(cell_address)
        sheet = self._sheet(cell_range.sheet)
        return sheet.cells.get((cell_range.start_row, cell_range.start_col), "")

    async def format_cell(
        self,
        cell_address: str,
        font_color: str | None = None,
        background_color: str | None = None,
        bold: bool | None = None,
    ) -> None:
        sheet, cell_range = self._resolve(cell_address)
        updates = {
            key: value
            for key, value in (
                ("fontColor", font_color),
                ("backgroundColor", background_color),
                ("bold", bold),
            )
            if value is not None
        }
        for cell in cell_range.cells():
            sheet.formats.setdefault(cell, {}).update(updates)

    async def get_range_data(self, range_address: str | None = None) -> RangeData:
        sheet, cell_range = self._resolve(range_address)
        return RangeData(address=cell_range.address, values=sheet.values(cell_range))

    async def get_selected_range_info(self) -> SelectionInfo:
        return SelectionInfo(
            address=self.selection.address,
            row_count=self.selection.row_count,
            column_count=self.selection.column_count,
        )

    async def write_to_selected_range(self, values: list[list[Any]]) -> str:
        selection = self.selection
        trimmed = [
            list(row[: selection.column_count])
            for row in values[: selection.row_count]
        ]
        if not trimmed or not any(trimmed):
            raise HostError("No values to write to the selected range")
        await self.write_range(cell_address(selection.start_row, selection.start_col), trimmed)

        message = f"Values written to selected range {selection.address}"
        if len(values) > selection.row_count or any(
            len(row) > selection.column_count for row in values
        ):
            message += (
                f" (input trimmed to {selection.row_count}x{selection.column_count})"
            )
        return message

    # --- Charts and pivots ---

    async def add_chart(self, data_range: str, chart_type: str) -> str:
        sheet, cell_range = self._resolve(data_range)
        if not any(v != "" for row in sheet.values(cell_range) for v in row):
            raise HostError(f"Range {cell_range.address} contains no data to chart")
        self._chart_counter += 1
        chart = Chart(
            name=f"Chart {self._chart_counter}",
            chart_type=chart_type,
            data_range=cell_range.address,
        )
        sheet.charts.append(chart)
        return chart.name

    async def add_pivot_table(
        self,
        source_data_range: str,
        destination_cell: str,
        row_fields: list[str],
        column_fields: list[str],
        data_fields: list[dict[str, str]],
        filter_fields: list[str] | None = None,
    ) -> None:
        source_sheet, source = self._resolve(source_data_range)
        values = source_sheet.values(source)
        if len(values) < 2:
            raise HostError("Pivot source range needs a header row and at least one data row")

        headers = [str(h) for h in values[0]]
        records = values[1:]

        def column_of(name: str) -> int:
            if name not in headers:
                raise HostError(f"Field '{name}' not found in source headers")
            return headers.index(name)

        row_idx = [column_of(f) for f in row_fields]
        col_idx = [column_of(f) for f in column_fields]
        data_specs = [(column_of(d["name"]), d["name"], d["function"]) for d in data_fields]
        for f in filter_fields or []:
            column_of(f)
        if not data_specs:
            raise HostError("At least one data field is required")

        row_keys: list[tuple] = []
        col_keys: list[tuple] = []
        buckets: dict[tuple, dict[tuple, list[list[Any]]]] = {}
        for record in records:
            row_key = tuple(record[i] for i in row_idx)
            col_key = tuple(record[i] for i in col_idx)
            if row_key not in row_keys:
                row_keys.append(row_key)
            if col_key not in col_keys:
                col_keys.append(col_key)
            buckets.setdefault(row_key, {}).setdefault(col_key, []).append(record)

        grid: list[list[Any]] = [[f, "(All)"] for f in filter_fields or []]
        if grid:
            grid.append([])

        header = list(row_fields) or [""]
        for col_key in col_keys:
            for _, name, function in data_specs:
                label = f"{function} of {name}"
                if col_key:
                    label += " - " + " / ".join(str(k) for k in col_key)
                header.append(label)
        grid.append(header)

        for row_key in row_keys:
            line = list(row_key) or ["Total"]
            for col_key in col_keys:
                bucket = buckets[row_key].get(col_key, [])
                for index, _, function in data_specs:
                    line.append(_aggregate(function, [r[index] for r in bucket]))
            grid.append(line)

        total = ["Grand Total"] + [""] * (max(len(row_fields), 1) - 1)
        for col_key in col_keys:
            column_records = [
                r for rk in row_keys for r in buckets[rk].get(col_key, [])
            ]
            for index, _, function in data_specs:
                total.append(_aggregate(function, [r[index] for r in column_records]))
        grid.append(total)

        grid = [row if row else [None] for row in grid]
        await self.write_range(destination_cell, grid)

    # --- Worksheets ---

    async def manage_worksheet(self, action: str, sheet_name: str) -> str:
        if not sheet_name.strip():
            raise HostError("Worksheet name must not be empty")

        if action == "create":
            if sheet_name in self.sheets:
                raise HostError(f'A worksheet named "{sheet_name}" already exists')
            self.sheets[sheet_name] = Sheet(name=sheet_name)
            return f'Worksheet "{sheet_name}" created successfully.'

        if action == "delete":
            self._sheet(sheet_name)
            if len(self.sheets) == 1:
                raise HostError("Cannot delete the only worksheet in the workbook")
            del self.sheets[sheet_name]
            if self.active_sheet == sheet_name:
                await self.set_active_worksheet(next(iter(self.sheets)))
            return f'Worksheet "{sheet_name}" deleted successfully.'

        raise HostError(f"Unsupported worksheet action: {action}")

    async def get_worksheet_names(self) -> list[str]:
        return list(self.sheets)

    async def get_active_worksheet_name(self) -> str:
        return self.active_sheet

    async def get_sheet_content(
        self, sheet_name: str | None = None, include_metadata: bool = False
    ) -> str:
        sheet = self._sheet(sheet_name)
        lines: list[str] = []
        if include_metadata:
            max_row, max_col = sheet.used_bounds()
            lines.append(f"Worksheet: {sheet.name}")
            if sheet.cells:
                lines.append(f"Used range: A1:{cell_address(max_row, max_col)}")
            lines.append(f"Charts: {len(sheet.charts)}")
        if sheet.cells:
            max_row, max_col = sheet.used_bounds()
            for row in sheet.values(CellRange(None, 0, 0, max_row, max_col)):
                lines.append("\t".join(str(v) for v in row))
        return "\n".join(lines)

    # --- Filtering and sorting ---

    async def filter_data(
        self,
        range_address: str | None,
        column: str,
        filter_type: str,
        criteria: dict[str, Any],
    ) -> FilterOutcome:
        sheet, cell_range = self._resolve(range_address)
        col = col_to_index(column.strip().upper()) if column.strip().isalpha() else -1
        if not cell_range.start_col <= col <= cell_range.end_col:
            raise HostError(f"Column {column} is outside range {cell_range.address}")

        matching = 0
        # The first row is the header and stays visible.
        for row in range(cell_range.start_row + 1, cell_range.end_row + 1):
            if _matches(sheet.cells.get((row, col), ""), filter_type, criteria):
                sheet.hidden_rows.discard(row)
                matching += 1
            else:
                sheet.hidden_rows.add(row)
        return FilterOutcome(range=cell_range.address, filtered_count=matching)

    async def sort_data(
        self,
        range_address: str | None,
        sort_fields: list[dict[str, Any]],
        match_case: bool = False,
        has_headers: bool = False,
    ) -> str:
        sheet, cell_range = self._resolve(range_address)
        if not sort_fields:
            raise HostError("At least one sort field is required")

        first_data_row = cell_range.start_row + (1 if has_headers else 0)
        rows = list(range(first_data_row, cell_range.end_row + 1))
        width = cell_range.column_count
        records = [
            (
                [sheet.cells.get((r, cell_range.start_col + c), "") for c in range(width)],
                [sheet.formats.get((r, cell_range.start_col + c)) for c in range(width)],
            )
            for r in rows
        ]

        for spec in reversed(sort_fields):
            key = int(spec["key"])
            if not 0 <= key < width:
                raise HostError(
                    f"Sort key {key} is outside range {cell_range.address} ({width} columns)"
                )
            ascending = bool(spec.get("ascending", True))
            color = spec.get("color")
            text_as_number = spec.get("dataOption") == "textAsNumber"

            def sort_key(record, key=key, color=color, text_as_number=text_as_number):
                value, formats = record[0][key], record[1][key] or {}
                if color:
                    return (0 if formats.get("backgroundColor") == color else 1, 0, "")
                if value in (None, ""):
                    return (2, 0, "")
                number = value if isinstance(value, (int, float)) and not isinstance(value, bool) else None
                if number is None and text_as_number:
                    number = _as_number(value)
                if number is not None:
                    return (0, number, "")
                text = str(value) if match_case else str(value).lower()
                return (1, 0, text)

            blanks = [r for r in records if r[0][key] in (None, "") and not color]
            filled = [r for r in records if not (r[0][key] in (None, "") and not color)]
            filled.sort(key=sort_key, reverse=not ascending)
            records = filled + blanks

        for r, (values, formats) in zip(rows, records):
            for c in range(width):
                target = (r, cell_range.start_col + c)
                if values[c] in (None, ""):
                    sheet.cells.pop(target, None)
                else:
                    sheet.cells[target] = values[c]
                if formats[c] is None:
                    sheet.formats.pop(target, None)
                else:
                    sheet.formats[target] = formats[c]

        return f"Range {cell_range.address} sorted successfully."

    # --- Layout ---

    async def merge_cells(self, range_address: str, across: bool = False) -> str:
        sheet, cell_range = self._resolve(range_address)
        if across:
            areas = [
                CellRange(None, row, cell_range.start_col, row, cell_range.end_col)
                for row in range(cell_range.start_row, cell_range.end_row + 1)
            ]
        else:
            areas = [cell_range]

        for area in areas:
            for existing in sheet.merged:
                if any(existing.contains(r, c) for r, c in area.cells()):
                    raise HostError(
                        f"Range {area.address} overlaps merged cells {existing.address}"
                    )

        for area in areas:
            # Only the top-left value survives a merge.
            for r, c in list(area.cells())[1:]:
                sheet.cells.pop((r, c), None)
            sheet.merged.append(
                CellRange(None, area.start_row, area.start_col, area.end_row, area.end_col)
            )

        mode = " across rows" if across else ""
        return f"Cells in range {cell_range.address} merged{mode} successfully."

    async def unmerge_cells(self, range_address: str) -> str:
        sheet, cell_range = self._resolve(range_address)
        remaining = [
            area
            for area in sheet.merged
            if not any(cell_range.contains(r, c) for r, c in area.cells())
        ]
        removed = len(sheet.merged) - len(remaining)
        sheet.merged = remaining
        if not removed:
            return f"No merged cells found in range {cell_range.address}."
        return f"Cells in range {cell_range.address} unmerged successfully."

    async def autofit_columns(self, range_address: str) -> str:
        sheet, cell_range = self._resolve(range_address)
        for col in range(cell_range.start_col, cell_range.end_col + 1):
            lengths = [
                len(str(sheet.cells.get((row, col), "")))
                for row in range(cell_range.start_row, cell_range.end_row + 1)
            ]
            longest = max(lengths, default=0)
            sheet.column_widths[col] = (
                min(MAX_COLUMN_WIDTH, longest + 2.0) if longest else DEFAULT_COLUMN_WIDTH
            )
        return f"Columns in range {cell_range.address} auto-fitted successfully."

    async def autofit_rows(self, range_address: str) -> str:
        sheet, cell_range = self._resolve(range_address)
        for row in range(cell_range.start_row, cell_range.end_row + 1):
            lines = [
                str(sheet.cells.get((row, col), "")).count("\n") + 1
                for col in range(cell_range.start_col, cell_range.end_col + 1)
            ]
            sheet.row_heights[row] = DEFAULT_ROW_HEIGHT * max(lines, default=1)
        return f"Rows in range {cell_range.address} auto-fitted successfully."

    # --- Conditional formats ---

    async def apply_conditional_format(
        self,
        range_address: str,
        format_type: str,
        rule: dict[str, Any],
        cell_format: dict[str, Any] | None = None,
    ) -> str:
        sheet, cell_range = self._resolve(range_address)
        if format_type in ("cellValue", "containsText", "custom") and not rule:
            raise HostError(f"A rule is required for {format_type} conditional formats")
        sheet.conditional_formats.append(
            ConditionalFormat(
                format_type=format_type,
                range=cell_range,
                rule=dict(rule),
                cell_format=dict(cell_format or {}),
            )
        )
        return f"Applied {format_type} conditional format to range {cell_range.address}."

    async def clear_conditional_formats(self, range_address: str) -> str:
        sheet, cell_range = self._resolve(range_address)
        kept = [
            fmt
            for fmt in sheet.conditional_formats
            if not any(cell_range.contains(r, c) for r, c in fmt.range.cells())
        ]
        cleared = len(sheet.conditional_formats) - len(kept)
        sheet.conditional_formats = kept
        return f"Cleared {cleared} conditional format(s) from range {cell_range.address}."
