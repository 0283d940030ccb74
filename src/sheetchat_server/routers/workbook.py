"""Workbook API endpoints.

These endpoints stand in for the spreadsheet application's own UI: they let
a client list worksheets, switch the active one (raising the active-view
notification the chat engine listens to) and change the selection.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from sheetchat_server.dependencies import get_workbook
from sheetchat_server.models.workbook import (
    SelectionRequest,
    SelectionResponse,
    SetActiveSheetRequest,
    WorksheetListResponse,
)
from sheetchat_server.workbook import HostError, SpreadsheetHost
from sheetchat_server.workbook.addressing import parse_range

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/workbook", tags=["workbook"])


async def _require_sheet(workbook: SpreadsheetHost, sheet_name: str) -> None:
    if sheet_name not in await workbook.get_worksheet_names():
        raise HTTPException(
            status_code=404,
            detail={
                "error": {
                    "code": "sheet_not_found",
                    "message": f"Worksheet '{sheet_name}' not found",
                    "details": {"sheet_name": sheet_name},
                }
            },
        )


async def _list(workbook: SpreadsheetHost) -> WorksheetListResponse:
    return WorksheetListResponse(
        sheets=await workbook.get_worksheet_names(),
        active_sheet=await workbook.get_active_worksheet_name(),
    )


@router.get("/sheets", response_model=WorksheetListResponse)
async def list_sheets(workbook: SpreadsheetHost = Depends(get_workbook)) -> WorksheetListResponse:
    """List worksheets and the active one."""
    return await _list(workbook)


@router.put("/active-sheet", response_model=WorksheetListResponse)
async def set_active_sheet(
    request_body: SetActiveSheetRequest,
    workbook: SpreadsheetHost = Depends(get_workbook),
) -> WorksheetListResponse:
    """Activate a worksheet.

    Raises:
        HTTPException: 404 if the worksheet does not exist
    """
    await _require_sheet(workbook, request_body.sheet_name)
    await workbook.set_active_worksheet(request_body.sheet_name)
    logger.info(f"Active worksheet set to {request_body.sheet_name}")
    return await _list(workbook)


@router.put("/selection", response_model=SelectionResponse)
async def set_selection(
    request_body: SelectionRequest,
    workbook: SpreadsheetHost = Depends(get_workbook),
) -> SelectionResponse:
    """Select a range; a sheet-qualified address also activates that sheet.

    Raises:
        HTTPException: 422 if the address is invalid, 404 if its sheet does not exist
    """
    try:
        cell_range = parse_range(request_body.range_address)
    except HostError as e:
        raise HTTPException(
            status_code=422,
            detail={
                "error": {
                    "code": "invalid_range",
                    "message": str(e),
                    "details": {"range_address": request_body.range_address},
                }
            },
        )

    if cell_range.sheet:
        await _require_sheet(workbook, cell_range.sheet)

    selection = await workbook.select_range(request_body.range_address)
    logger.debug(f"Selection set to {selection.address}")

    return SelectionResponse(
        active_sheet=await workbook.get_active_worksheet_name(),
        address=selection.address,
        row_count=selection.row_count,
        column_count=selection.column_count,
    )
