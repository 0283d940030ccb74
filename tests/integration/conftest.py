"""Pytest configuration for integration tests.

This module provides integration-test-specific fixtures that ensure
the app lifespan builds its engine around a mocked model gateway.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest


@pytest.fixture(autouse=True)
def mock_model_gateway():
    """Mock ModelGateway for all integration tests.

    This fixture patches the ModelGateway class before the app is created,
    ensuring the lifespan's gateway factory builds our mock instead of a
    real client.
    """
    with patch("sheetchat_server.app.ModelGateway") as mock_gateway_class:
        mock_instance = MagicMock()
        mock_instance.host = "http://localhost:11434"
        mock_instance.model = "llama3.1:latest"
        mock_instance.check_connection = AsyncMock(return_value=True)
        mock_instance.complete = AsyncMock()
        mock_instance.embed = AsyncMock(return_value=[0.5, 0.25])
        mock_instance.close = AsyncMock()

        # Return the mock instance when ModelGateway is instantiated
        mock_gateway_class.return_value = mock_instance

        yield mock_instance
