"""FastAPI dependencies for operator authentication and client identification."""

from typing import Annotated

from fastapi import Header, HTTPException, Request

from restaurant_order_service.auth.api_key_validator import APIKeyValidator


def get_api_key_from_header(
    x_api_key: Annotated[str | None, Header()] = None,
    validator: APIKeyValidator | None = None,
) -> str:
    """Extract and validate the API key from the X-API-Key header.

    Args:
        x_api_key: API key from X-API-Key header (injected by FastAPI)
        validator: APIKeyValidator holding the configured keys

    Returns:
        str: The validated API key

    Raises:
        HTTPException: 401 if API key is missing or invalid
    """
    if not x_api_key:
        raise HTTPException(status_code=401, detail="Missing API key")

    if validator is None or not validator.validate(x_api_key):
        raise HTTPException(status_code=401, detail="Invalid API key")

    return x_api_key


def get_client_address(request: Request) -> str | None:
    """Derive the client address from proxy headers.

    Uses the first X-Forwarded-For entry, then CF-Connecting-IP. The address is
    never read from the request body.

    Args:
        request: Incoming request

    Returns:
        str: Client address, or None if it cannot be determined
    """
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    connecting_ip = request.headers.get("cf-connecting-ip")
    if connecting_ip and connecting_ip.strip():
        return connecting_ip.strip()

    return None


def get_request_origin(request: Request) -> str | None:
    """Return the Origin header, falling back to Referer."""
    return request.headers.get("origin") or request.headers.get("referer")
