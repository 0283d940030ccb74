"""Pydantic models for the workbook endpoints."""

from pydantic import BaseModel, Field


class WorksheetListResponse(BaseModel):
    """Worksheets in the workbook and which one is active."""

    sheets: list[str] = Field(description="Worksheet names in workbook order")
    active_sheet: str = Field(description="Name of the active worksheet")


class SetActiveSheetRequest(BaseModel):
    """Request body for PUT /api/v1/workbook/active-sheet."""

    sheet_name: str = Field(min_length=1, description="Worksheet to activate")


class SelectionRequest(BaseModel):
    """Request body for PUT /api/v1/workbook/selection."""

    range_address: str = Field(
        min_length=1,
        description='A1-style range, optionally sheet-qualified (e.g. "Sheet1!A1:C10")',
    )


class SelectionResponse(BaseModel):
    """The current selection."""

    active_sheet: str
    address: str
    row_count: int
    column_count: int
