"""CLI entry point for sheetchat-server.

This module provides the command-line interface for starting the server.
It can be invoked as `sheetchat-server` (via the script entry point) or
`python -m sheetchat_server`.
"""

import argparse
import logging
import sys

import uvicorn

from sheetchat_server import __version__, create_app
from sheetchat_server.config import SheetchatSettings


def main() -> None:
    """Main entry point for the sheetchat-server CLI.

    Parses command-line arguments and starts the uvicorn server with the
    FastAPI application.
    """
    parser = argparse.ArgumentParser(
        prog="sheetchat-server",
        description="Conversational spreadsheet assistant driven by LLM tool calls",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"sheetchat-server {__version__}",
    )

    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to bind the server to (default: 127.0.0.1, can be set via SHEETCHAT_HOST)",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to bind the server to (default: 8000, can be set via SHEETCHAT_PORT)",
    )

    parser.add_argument(
        "--ollama-host",
        type=str,
        default=None,
        help="Model service URL (default: http://localhost:11434, can be set via SHEETCHAT_OLLAMA_HOST)",
    )

    parser.add_argument(
        "--model",
        type=str,
        default=None,
        help="Chat model name (default: llama3.1:latest, can be set via SHEETCHAT_MODEL)",
    )

    parser.add_argument(
        "--sheet",
        dest="sheets",
        action="append",
        default=None,
        help="Worksheet to create at startup; repeat for several (default: Sheet1)",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO, can be set via SHEETCHAT_LOG_LEVEL)",
    )

    args = parser.parse_args()

    # Build settings, CLI args override environment variables
    settings_kwargs = {}
    if args.host is not None:
        settings_kwargs["host"] = args.host
    if args.port is not None:
        settings_kwargs["port"] = args.port
    if args.ollama_host is not None:
        settings_kwargs["ollama_host"] = args.ollama_host
    if args.model is not None:
        settings_kwargs["model"] = args.model
    if args.sheets:
        settings_kwargs["initial_sheets"] = args.sheets
    if args.log_level is not None:
        settings_kwargs["log_level"] = args.log_level

    settings = SheetchatSettings(**settings_kwargs)

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = create_app(settings=settings)

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    sys.exit(main())
