"""Argument schemas for the capability catalog.

Each capability declares its arguments once as a pydantic model. The model
serves two purposes: its JSON schema is what the language model sees as the
tool's ``parameters``, and ``model_validate_json`` checks the raw argument
text when an invocation is dispatched. Field names keep the camelCase wire
names the model is prompted with.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

CellValue = str | float | int | bool | None

ChartType = Literal[
    "ColumnClustered",
    "ColumnStacked",
    "BarClustered",
    "BarStacked",
    "Line",
    "LineMarkers",
    "Pie",
    "Doughnut",
    "Area",
    "XYScatter",
    "Radar",
]

AnalysisType = Literal["summary", "trend", "distribution"]

PivotAggregationFunction = Literal[
    "Sum",
    "Count",
    "Average",
    "Max",
    "Min",
    "Product",
    "StandardDeviation",
    "Variance",
]

FilterType = Literal["Equals", "GreaterThan", "LessThan", "Between", "Contains", "Values"]

ConditionalFormatType = Literal[
    "cellValue",
    "colorScale",
    "dataBar",
    "iconSet",
    "topBottom",
    "presetCriteria",
    "containsText",
    "custom",
]


class CapabilityArguments(BaseModel):
    """Base class for capability argument models."""

    model_config = ConfigDict(extra="ignore")


class NoArguments(CapabilityArguments):
    """Capabilities that take no arguments."""


class WriteRangeArgs(CapabilityArguments):
    startCell: str = Field(description="The starting cell address (e.g., 'A1')")
    values: list[list[CellValue]] = Field(
        description="The values to write to the cells. Should be a 2D array."
    )


class ReadCellArgs(CapabilityArguments):
    cellAddress: str = Field(
        description="The cell address to read from (e.g., 'A1', 'B2')."
    )


class FormatCellArgs(CapabilityArguments):
    cellAddress: str = Field(description="The cell address to format (e.g., 'A1', 'B2')")
    fontColor: str | None = Field(
        default=None, description="The font color (e.g., '#FF0000' for red)"
    )
    backgroundColor: str | None = Field(
        default=None, description="The background color (e.g., '#FFFF00' for yellow)"
    )
    bold: bool | None = Field(default=None, description="Whether to make the text bold")


class AddChartArgs(CapabilityArguments):
    dataRange: str = Field(
        description=(
            "The range of cells containing the data for the chart. "
            "Specify using standard Excel range notation"
        )
    )
    chartType: ChartType = Field(description="The type of chart to create")


class AnalyzeSelectionArgs(CapabilityArguments):
    analysisType: AnalysisType = Field(
        description="The type of analysis to perform on the selected data"
    )


class WriteSelectedRangeArgs(CapabilityArguments):
    values: list[list[str]] = Field(
        description="The values to write to the selected range. Should be a 2D array of strings."
    )


class ReadRangeArgs(CapabilityArguments):
    rangeAddress: str | None = Field(
        default=None,
        description=(
            "The range address to read from (e.g., 'A1:B5'). "
            "If not provided, reads from the currently selected range."
        ),
    )


class PivotDataField(BaseModel):
    name: str
    function: PivotAggregationFunction


class AddPivotTableArgs(CapabilityArguments):
    sourceDataRange: str = Field(
        description=(
            "The range of cells containing the source data for the pivot table. "
            "Specify using standard Excel range notation (e.g., 'A1:D10')."
        )
    )
    destinationCell: str = Field(
        description="The cell where the pivot table should be placed (e.g., 'G1')."
    )
    rowFields: list[str] = Field(description="An array of field names to use as row labels.")
    columnFields: list[str] = Field(
        description="An array of field names to use as column labels."
    )
    dataFields: list[PivotDataField] = Field(
        description="An array of objects specifying the data fields and their aggregation functions."
    )
    filterFields: list[str] | None = Field(
        default=None, description="An optional array of field names to use as filters."
    )


class ManageWorksheetArgs(CapabilityArguments):
    action: Literal["create", "delete"] = Field(
        description="The action to perform on the worksheet"
    )
    sheetName: str = Field(description="The name of the worksheet to create or delete")


class FilterDataArgs(CapabilityArguments):
    range: str | None = Field(
        default=None,
        description="The range to filter (e.g., 'A1:D10'). If not provided, uses the current selection.",
    )
    column: str = Field(description="The column to apply the filter to (e.g., 'A', 'B', 'C')")
    filterType: FilterType = Field(description="The type of filter to apply")
    criteria: dict[str, Any] = Field(
        description=(
            "The criteria for the filter, depends on the filterType: "
            "{value} for Equals/GreaterThan/LessThan/Contains, {min, max} for Between, "
            "{values: [...]} for Values."
        )
    )


class SortField(BaseModel):
    key: int = Field(description="The column index to sort by (0-based)")
    ascending: bool = Field(description="Sort in ascending order if true, descending if false")
    color: str | None = Field(
        default=None, description="The color to sort by (if sorting by color)"
    )
    dataOption: Literal["normal", "textAsNumber"] | None = Field(
        default=None, description="How to sort text values"
    )


class SortDataArgs(CapabilityArguments):
    range: str | None = Field(
        default=None,
        description="The range to sort (e.g., 'A1:D10'). If not provided, uses the current selection.",
    )
    sortFields: list[SortField] = Field(description="An array of sort criteria to apply")
    matchCase: bool = Field(default=False, description="Whether to match case when sorting")
    hasHeaders: bool = Field(default=False, description="Whether the range has a header row")


class MergeCellsArgs(CapabilityArguments):
    range: str = Field(description="The range to merge (e.g., 'A1:B2')")
    across: bool = Field(
        default=False,
        description="If true, merges cells in each row separately. If false or omitted, merges the entire range.",
    )


class RangeArgs(CapabilityArguments):
    range: str = Field(description="The range to operate on (e.g., 'A1:B2')")


class UnmergeCellsArgs(RangeArgs):
    range: str = Field(description="The range to unmerge (e.g., 'A1:B2')")


class AutofitColumnsArgs(RangeArgs):
    range: str = Field(description="The range to auto-fit columns (e.g., 'A:C' or 'A1:C10')")


class AutofitRowsArgs(RangeArgs):
    range: str = Field(description="The range to auto-fit rows (e.g., '1:3' or 'A1:C10')")


class ApplyConditionalFormatArgs(CapabilityArguments):
    range: str = Field(
        description="The range to apply conditional formatting to (e.g., 'A1:D10')"
    )
    formatType: ConditionalFormatType = Field(
        description="The type of conditional format to apply"
    )
    rule: dict[str, Any] = Field(
        description="The rule for the conditional format, depends on the formatType"
    )
    format: dict[str, Any] | None = Field(
        default=None, description="The format to apply when the condition is met"
    )


class ClearConditionalFormatsArgs(RangeArgs):
    range: str = Field(
        description="The range to clear conditional formatting from (e.g., 'A1:D10')"
    )
