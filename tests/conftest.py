"""Pytest configuration and shared fixtures for sheetchat-server tests.

This module provides common fixtures used across all test modules,
including test app creation, async client setup, and a workbook-backed
chat engine driven by a scripted model gateway.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from sheetchat_server import create_app
from sheetchat_server.capabilities import build_default_registry
from sheetchat_server.config import SheetchatSettings
from sheetchat_server.orchestration import ChatEngine
from sheetchat_server.workbook import InMemoryWorkbook


@pytest.fixture
def test_settings():
    """Create test settings with a configured credential.

    Returns:
        SheetchatSettings: Settings instance configured for testing.
    """
    return SheetchatSettings(
        host="127.0.0.1",
        port=8000,
        ollama_host="http://localhost:11434",
        api_key="test-key",
        model="llama3.1:latest",
        initial_sheets=["Sheet1", "Sales"],
        log_level="DEBUG",
        cors_origins=["*"],
    )


@pytest.fixture
def test_app(test_settings):
    """Create a FastAPI test application instance."""
    return create_app(settings=test_settings)


@pytest_asyncio.fixture
async def async_client(test_app):
    """Create an async HTTP client for testing FastAPI endpoints.

    Yields:
        AsyncClient: Async HTTP client for making test requests.
    """
    # Trigger the lifespan startup manually for tests
    async with test_app.router.lifespan_context(test_app):
        transport = ASGITransport(app=test_app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client


@pytest.fixture
def workbook():
    """An in-memory workbook with a little data on Sheet1."""
    book = InMemoryWorkbook(["Sheet1", "Sales"])
    book.sheets["Sheet1"].cells.update(
        {
            (0, 0): 42,
            (0, 1): "Name",
            (1, 0): 7,
            (1, 1): "Bob",
        }
    )
    return book


@pytest.fixture
def mock_gateway():
    """A model gateway whose responses the test scripts via complete.side_effect."""
    gateway = MagicMock()
    gateway.complete = AsyncMock()
    gateway.embed = AsyncMock(return_value=[0.1, 0.2, 0.3])
    gateway.check_connection = AsyncMock(return_value=True)
    gateway.close = AsyncMock()
    gateway.host = "http://localhost:11434"
    gateway.model = "llama3.1:latest"
    return gateway


@pytest.fixture
def gateway_factory(mock_gateway):
    """Factory handing out the same mock gateway for every credential."""
    return MagicMock(return_value=mock_gateway)


@pytest.fixture
def engine(workbook, gateway_factory):
    """Chat engine over the test workbook with a configured credential."""
    return ChatEngine(
        host=workbook,
        registry=build_default_registry(),
        gateway_factory=gateway_factory,
        api_key="test-key",
    )
