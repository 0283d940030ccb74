"""Default capability catalog.

Defines one handler per spreadsheet operation and assembles them into the
registry exposed to the model on every request. Handlers receive already
validated arguments and return the short text the model sees as the tool
result; host failures propagate to the adapter.
"""

import json

from sheetchat_server.capabilities.arguments import (
    AddChartArgs,
    AddPivotTableArgs,
    AnalyzeSelectionArgs,
    ApplyConditionalFormatArgs,
    AutofitColumnsArgs,
    AutofitRowsArgs,
    ClearConditionalFormatsArgs,
    FilterDataArgs,
    FormatCellArgs,
    ManageWorksheetArgs,
    MergeCellsArgs,
    NoArguments,
    ReadCellArgs,
    ReadRangeArgs,
    SortDataArgs,
    UnmergeCellsArgs,
    WriteRangeArgs,
    WriteSelectedRangeArgs,
)
from sheetchat_server.capabilities.registry import CapabilityDescriptor, CapabilityRegistry
from sheetchat_server.workbook.analysis import analyze_values
from sheetchat_server.workbook.host import SelectionInfo, SpreadsheetHost


async def write_range(host: SpreadsheetHost, args: WriteRangeArgs) -> str:
    await host.write_range(args.startCell, args.values)
    return f"Values written to range starting at {args.startCell}"


async def read_cell(host: SpreadsheetHost, args: ReadCellArgs) -> str:
    value = await host.read_cell(args.cellAddress)
    return f'The value in cell {args.cellAddress} is "{value}"'


async def format_cell(host: SpreadsheetHost, args: FormatCellArgs) -> str:
    await host.format_cell(
        args.cellAddress,
        font_color=args.fontColor,
        background_color=args.backgroundColor,
        bold=args.bold,
    )
    return f"Cell {args.cellAddress} formatted as requested"


async def add_chart(host: SpreadsheetHost, args: AddChartArgs) -> str:
    await host.add_chart(args.dataRange, args.chartType)
    return f"Added {args.chartType} chart using data from range {args.dataRange}"


async def analyze_selection(host: SpreadsheetHost, args: AnalyzeSelectionArgs) -> str:
    data = await host.get_range_data()
    analysis = analyze_values(data.values, args.analysisType)
    return f"Analysis of selected range {data.address}:\n{analysis}"


async def write_selected_range(host: SpreadsheetHost, args: WriteSelectedRangeArgs) -> str:
    return await host.write_to_selected_range(args.values)


async def read_range(host: SpreadsheetHost, args: ReadRangeArgs) -> str:
    data = await host.get_range_data(args.rangeAddress)
    return f"The values in range {data.address} are:\n{json.dumps(data.values, default=str)}"


async def add_pivot_table(host: SpreadsheetHost, args: AddPivotTableArgs) -> str:
    await host.add_pivot_table(
        args.sourceDataRange,
        args.destinationCell,
        args.rowFields,
        args.columnFields,
        [field.model_dump() for field in args.dataFields],
        args.filterFields,
    )
    return (
        f"Added pivot table using data from range {args.sourceDataRange} "
        f"and placed at {args.destinationCell}"
    )


async def manage_worksheet(host: SpreadsheetHost, args: ManageWorksheetArgs) -> str:
    return await host.manage_worksheet(args.action, args.sheetName)


async def filter_data(host: SpreadsheetHost, args: FilterDataArgs) -> str:
    outcome = await host.filter_data(args.range, args.column, args.filterType, args.criteria)
    return (
        f"Data filtered in range {outcome.range}. "
        f"{outcome.filtered_count} rows match the criteria."
    )


async def sort_data(host: SpreadsheetHost, args: SortDataArgs) -> str:
    return await host.sort_data(
        args.range,
        [field.model_dump(exclude_none=True) for field in args.sortFields],
        match_case=args.matchCase,
        has_headers=args.hasHeaders,
    )


async def merge_cells(host: SpreadsheetHost, args: MergeCellsArgs) -> str:
    return await host.merge_cells(args.range, args.across)


async def unmerge_cells(host: SpreadsheetHost, args: UnmergeCellsArgs) -> str:
    return await host.unmerge_cells(args.range)


async def autofit_columns(host: SpreadsheetHost, args: AutofitColumnsArgs) -> str:
    return await host.autofit_columns(args.range)


async def autofit_rows(host: SpreadsheetHost, args: AutofitRowsArgs) -> str:
    return await host.autofit_rows(args.range)


async def apply_conditional_format(
    host: SpreadsheetHost, args: ApplyConditionalFormatArgs
) -> str:
    return await host.apply_conditional_format(
        args.range, args.formatType, args.rule, args.format
    )


async def clear_conditional_formats(
    host: SpreadsheetHost, args: ClearConditionalFormatsArgs
) -> str:
    return await host.clear_conditional_formats(args.range)


async def list_worksheet_names(host: SpreadsheetHost, args: NoArguments) -> str:
    names = await host.get_worksheet_names()
    return f"The worksheets in this workbook are: {', '.join(names)}"


async def get_active_worksheet_name(host: SpreadsheetHost, args: NoArguments) -> str:
    name = await host.get_active_worksheet_name()
    return f"The currently active worksheet is: {name}"


def _describe_write_selected_range(selection: SelectionInfo) -> str:
    return (
        "Write values to the currently selected range in Excel "
        f"({selection.address}, {selection.row_count}x{selection.column_count}). "
        "If the input is larger, it will be trimmed to fit. "
        f"Values should ideally be a {selection.row_count}x{selection.column_count} "
        "2D array of strings."
    )


def build_default_registry() -> CapabilityRegistry:
    """Build the registry holding every spreadsheet capability."""
    return CapabilityRegistry(
        [
            CapabilityDescriptor(
                name="write_range",
                description="Write values to a range of cells in Excel",
                arguments=WriteRangeArgs,
                handler=write_range,
            ),
            CapabilityDescriptor(
                name="read_cell",
                description="Read a value from a specific cell in Excel",
                arguments=ReadCellArgs,
                handler=read_cell,
            ),
            CapabilityDescriptor(
                name="format_cell",
                description="Format a cell in Excel",
                arguments=FormatCellArgs,
                handler=format_cell,
            ),
            CapabilityDescriptor(
                name="add_chart",
                description="Add a chart to the Excel worksheet",
                arguments=AddChartArgs,
                handler=add_chart,
            ),
            CapabilityDescriptor(
                name="analyze_selection",
                description="Analyze the data in the currently selected range in Excel",
                arguments=AnalyzeSelectionArgs,
                handler=analyze_selection,
                failure_prefix="Failed to analyze the selected range.",
            ),
            CapabilityDescriptor(
                name="write_selected_range",
                description="Write values to the currently selected range in Excel",
                arguments=WriteSelectedRangeArgs,
                handler=write_selected_range,
                describe=_describe_write_selected_range,
            ),
            CapabilityDescriptor(
                name="read_range",
                description=(
                    "Read values from a specific range or the currently selected range in Excel"
                ),
                arguments=ReadRangeArgs,
                handler=read_range,
                failure_prefix="Failed to read range.",
            ),
            CapabilityDescriptor(
                name="add_pivot_table",
                description="Add a pivot table to the Excel worksheet",
                arguments=AddPivotTableArgs,
                handler=add_pivot_table,
            ),
            CapabilityDescriptor(
                name="manage_worksheet",
                description="Create a new worksheet or delete an existing one in Excel",
                arguments=ManageWorksheetArgs,
                handler=manage_worksheet,
            ),
            CapabilityDescriptor(
                name="filter_data",
                description="Filter data in Excel based on specified criteria",
                arguments=FilterDataArgs,
                handler=filter_data,
            ),
            CapabilityDescriptor(
                name="sort_data",
                description="Sort data in an Excel range based on specified criteria",
                arguments=SortDataArgs,
                handler=sort_data,
            ),
            CapabilityDescriptor(
                name="merge_cells",
                description="Merge cells in a specified range",
                arguments=MergeCellsArgs,
                handler=merge_cells,
            ),
            CapabilityDescriptor(
                name="unmerge_cells",
                description="Unmerge cells in a specified range",
                arguments=UnmergeCellsArgs,
                handler=unmerge_cells,
            ),
            CapabilityDescriptor(
                name="autofit_columns",
                description="Auto-fit columns in a specified range",
                arguments=AutofitColumnsArgs,
                handler=autofit_columns,
            ),
            CapabilityDescriptor(
                name="autofit_rows",
                description="Auto-fit rows in a specified range",
                arguments=AutofitRowsArgs,
                handler=autofit_rows,
            ),
            CapabilityDescriptor(
                name="apply_conditional_format",
                description="Apply a conditional format to a range in Excel",
                arguments=ApplyConditionalFormatArgs,
                handler=apply_conditional_format,
            ),
            CapabilityDescriptor(
                name="clear_conditional_formats",
                description="Clear all conditional formats from a range in Excel",
                arguments=ClearConditionalFormatsArgs,
                handler=clear_conditional_formats,
            ),
            CapabilityDescriptor(
                name="list_worksheet_names",
                description="Get the names of all worksheets in the current workbook",
                arguments=NoArguments,
                handler=list_worksheet_names,
            ),
            CapabilityDescriptor(
                name="get_active_worksheet_name",
                description="Get the name of the currently active worksheet",
                arguments=NoArguments,
                handler=get_active_worksheet_name,
            ),
        ]
    )
