"""Unit tests for main application entry point."""

from unittest.mock import MagicMock, Mock, patch

import pytest
from fastapi import FastAPI

from main import create_application


@pytest.mark.unit
class TestCreateApplication:
    """Tests for create_application function."""

    @patch("main.get_fastapi_app")
    @patch("main.configure_logging")
    def test_builds_app_with_logging(
        self, mock_configure_logging: Mock, mock_get_fastapi_app: Mock
    ) -> None:
        """Test that logging is configured before the app is built."""
        mock_app = MagicMock(spec=FastAPI)
        mock_get_fastapi_app.return_value = mock_app

        app = create_application()

        assert app is mock_app
        mock_configure_logging.assert_called_once()
        mock_get_fastapi_app.assert_called_once()
