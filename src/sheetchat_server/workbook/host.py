"""Spreadsheet host interface.

The chat engine never touches cells directly: every capability is carried
out by a host object implementing ``SpreadsheetHost``. Hosts fail with
``HostError`` (or any other exception); the capability adapter turns those
failures into tool-result text.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Protocol

ActiveSheetListener = Callable[[str], Awaitable[None] | None]


class HostError(Exception):
    """Raised when the spreadsheet host cannot carry out an operation."""


@dataclass(frozen=True)
class SelectionInfo:
    """Address and dimensions of the current selection."""

    address: str
    row_count: int
    column_count: int


@dataclass(frozen=True)
class RangeData:
    """Values read from a range, row by row."""

    address: str
    values: list[list[Any]]


@dataclass(frozen=True)
class FilterOutcome:
    """Result of applying a filter to a range."""

    range: str
    filtered_count: int


class SpreadsheetHost(Protocol):
    """Operations the capability catalog can invoke against a workbook."""

    async def write_range(self, start_cell: str, values: list[list[Any]]) -> None: ...

    async def read_cell(self, cell_address: str) -> Any: ...

    async def format_cell(
        self,
        cell_address: str,
        font_color: str | None = None,
        background_color: str | None = None,
        bold: bool | None = None,
    ) -> None: ...

    async def add_chart(self, data_range: str, chart_type: str) -> str: ...

    async def get_range_data(self, range_address: str | None = None) -> RangeData: ...

    async def get_selected_range_info(self) -> SelectionInfo: ...

    async def write_to_selected_range(self, values: list[list[Any]]) -> str: ...

    async def add_pivot_table(
        self,
        source_data_range: str,
        destination_cell: str,
        row_fields: list[str],
        column_fields: list[str],
        data_fields: list[dict[str, str]],
        filter_fields: list[str] | None = None,
    ) -> None: ...

    async def manage_worksheet(self, action: str, sheet_name: str) -> str: ...

    async def filter_data(
        self,
        range_address: str | None,
        column: str,
        filter_type: str,
        criteria: dict[str, Any],
    ) -> FilterOutcome: ...

    async def sort_data(
        self,
        range_address: str | None,
        sort_fields: list[dict[str, Any]],
        match_case: bool = False,
        has_headers: bool = False,
    ) -> str: ...

    async def merge_cells(self, range_address: str, across: bool = False) -> str: ...

    async def unmerge_cells(self, range_address: str) -> str: ...

    async def autofit_columns(self, range_address: str) -> str: ...

    async def autofit_rows(self, range_address: str) -> str: ...

    async def apply_conditional_format(
        self,
        range_address: str,
        format_type: str,
        rule: dict[str, Any],
        cell_format: dict[str, Any] | None = None,
    ) -> str: ...

    async def clear_conditional_formats(self, range_address: str) -> str: ...

    async def get_worksheet_names(self) -> list[str]: ...

    async def get_active_worksheet_name(self) -> str: ...

    async def set_active_worksheet(self, sheet_name: str) -> None: ...

    async def select_range(self, range_address: str) -> SelectionInfo: ...

    async def get_sheet_content(
        self, sheet_name: str | None = None, include_metadata: bool = False
    ) -> str: ...

    def add_active_sheet_listener(self, listener: ActiveSheetListener) -> None: ...

    def remove_active_sheet_listener(self, listener: ActiveSheetListener) -> None: ...
