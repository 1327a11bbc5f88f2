"""Unit tests for FastAPI authentication and client identification dependencies."""

import pytest
from fastapi import HTTPException
from starlette.requests import Request

from restaurant_order_service.auth.api_dependencies import (
    get_api_key_from_header,
    get_client_address,
    get_request_origin,
)
from restaurant_order_service.auth.api_key_validator import APIKeyValidator


def _request(headers: dict[str, str]) -> Request:
    return Request(
        {
            "type": "http",
            "method": "POST",
            "path": "/orders",
            "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        }
    )


@pytest.mark.unit
class TestGetAPIKeyFromHeader:
    """Test suite for get_api_key_from_header dependency."""

    def test_returns_api_key_when_valid(self) -> None:
        """Test that dependency returns API key when valid."""
        validator = APIKeyValidator(api_keys=["valid-key"])
        assert get_api_key_from_header(x_api_key="valid-key", validator=validator) == "valid-key"

    def test_raises_401_when_api_key_invalid(self) -> None:
        """Test that dependency raises 401 for invalid API key."""
        validator = APIKeyValidator(api_keys=["valid-key"])

        with pytest.raises(HTTPException) as exc_info:
            get_api_key_from_header(x_api_key="invalid-key", validator=validator)

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Invalid API key"

    def test_raises_401_when_api_key_missing(self) -> None:
        """Test that dependency raises 401 when API key header is missing."""
        validator = APIKeyValidator(api_keys=["valid-key"])

        with pytest.raises(HTTPException) as exc_info:
            get_api_key_from_header(x_api_key=None, validator=validator)

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Missing API key"

    def test_raises_401_without_validator(self) -> None:
        """Test that no key is accepted when no validator is configured."""
        with pytest.raises(HTTPException) as exc_info:
            get_api_key_from_header(x_api_key="any-key", validator=None)

        assert exc_info.value.status_code == 401


@pytest.mark.unit
class TestGetClientAddress:
    """Test suite for get_client_address."""

    def test_first_forwarded_entry(self) -> None:
        """Test that the first X-Forwarded-For entry is the client."""
        request = _request({"X-Forwarded-For": " 203.0.113.7 , 10.0.0.1"})

        assert get_client_address(request) == "203.0.113.7"

    def test_falls_back_to_connecting_ip(self) -> None:
        """Test that CF-Connecting-IP is used when no forwarded header exists."""
        request = _request({"CF-Connecting-IP": "198.51.100.4"})

        assert get_client_address(request) == "198.51.100.4"

    def test_unknown_address(self) -> None:
        """Test that a request without proxy headers has no address."""
        assert get_client_address(_request({})) is None

    def test_origin_falls_back_to_referer(self) -> None:
        """Test that Referer is used when Origin is absent."""
        assert get_request_origin(_request({"Referer": "https://orders.example.com/cart"})) == (
            "https://orders.example.com/cart"
        )
        assert get_request_origin(_request({"Origin": "http://localhost:5173"})) == (
            "http://localhost:5173"
        )
