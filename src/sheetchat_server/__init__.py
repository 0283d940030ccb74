"""sheetchat-server: conversational spreadsheet assistant over FastAPI.

This package provides a REST API and SSE streaming interface that turns
natural-language requests into spreadsheet operations by letting a language
model call a fixed catalog of workbook capabilities.
"""

from sheetchat_server.app import create_app

__version__ = "0.1.0"

__all__ = ["create_app", "__version__"]
