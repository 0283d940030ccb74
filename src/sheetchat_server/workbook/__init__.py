"""Spreadsheet host layer.

This package defines the interface the capability catalog invokes against a
workbook, plus an in-memory workbook used when no external spreadsheet
application is attached.
"""

from sheetchat_server.workbook.host import (
    FilterOutcome,
    HostError,
    RangeData,
    SelectionInfo,
    SpreadsheetHost,
)
from sheetchat_server.workbook.memory import InMemoryWorkbook

__all__ = [
    "FilterOutcome",
    "HostError",
    "InMemoryWorkbook",
    "RangeData",
    "SelectionInfo",
    "SpreadsheetHost",
]
