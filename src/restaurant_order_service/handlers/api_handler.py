"""FastAPI application for the storefront ordering API."""

import logging
from typing import Any

from fastapi import Depends, FastAPI, Header, Request
from fastapi.exceptions import HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from restaurant_order_service.auth.api_dependencies import (
    get_api_key_from_header,
    get_client_address,
    get_request_origin,
)
from restaurant_order_service.auth.api_key_validator import APIKeyValidator
from restaurant_order_service.errors import OrderPlacementError
from restaurant_order_service.models.order_models import Order, OrderLine
from restaurant_order_service.services.bot_check_verifier import BotCheckVerifier
from restaurant_order_service.services.order_service import (
    GENERIC_ERROR_MESSAGE,
    OrderPlacementService,
    PlacementContext,
)

logger = logging.getLogger(__name__)

CORS_ALLOW_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str


def error_response(status_code: int, message: str, **extra: Any) -> JSONResponse:
    """Build the single JSON error body returned to clients."""
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def serialize_order(order: Order, lines: list[OrderLine]) -> dict[str, Any]:
    """Serialize an order with its lines for customer-facing responses."""
    body = order.to_public_dict()
    body["items"] = [line.model_dump(mode="json") for line in lines]
    return body


def create_app(
    order_service: OrderPlacementService,
    bot_check_verifier: BotCheckVerifier,
    api_keys: list[str],
    cors_origins: list[str] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        order_service: Service running the order placement pipeline
        bot_check_verifier: Verifier used by the standalone bot-check endpoint
        api_keys: Valid API keys for operator endpoints
        cors_origins: Storefront origins allowed by CORS (defaults to any)

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Restaurant Order Service API",
        description="Storefront order placement with server-side pricing and coupon redemption",
        version="1.0.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins or ["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=CORS_ALLOW_HEADERS,
    )

    # Store services in app state for access in route handlers
    app.state.order_service = order_service
    app.state.bot_check_verifier = bot_check_verifier
    app.state.api_key_validator = APIKeyValidator(api_keys=api_keys)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        _request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled error: {exc}")
        return error_response(500, GENERIC_ERROR_MESSAGE)

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        """Health check endpoint.

        Returns:
            Health status indicating service is running
        """
        return HealthResponse(status="healthy")

    def validate_api_key(x_api_key: str | None = Header(None)) -> str:
        """Dependency to validate API key."""
        return get_api_key_from_header(x_api_key=x_api_key, validator=app.state.api_key_validator)

    @app.post("/orders", tags=["Orders"])
    async def place_order(request: Request) -> JSONResponse:
        """Place an order from the public storefront.

        The body is read as raw JSON and validated by the placement pipeline,
        so malformed carts get the pipeline's error messages.

        Returns:
            The stored order with its lines, or {"error": message}
        """
        try:
            payload = await request.json()
        except ValueError:
            return error_response(400, "Invalid JSON")

        context = PlacementContext(
            client_address=get_client_address(request),
            origin=get_request_origin(request),
        )
        result = await app.state.order_service.place_order(payload, context)

        if not result.success or result.order is None:
            return error_response(result.status_code, result.error_message or GENERIC_ERROR_MESSAGE)

        return JSONResponse(status_code=200, content=serialize_order(result.order, result.lines))

    @app.get("/orders/track/{order_token}", tags=["Orders"])
    async def track_order(order_token: str) -> JSONResponse:
        """Anonymous order tracking by token.

        Args:
            order_token: Tracking token returned when the order was placed

        Returns:
            {"order": ..., "items": [...]} or 404
        """
        found = await app.state.order_service.get_order_by_token(order_token)
        if found is None:
            return error_response(404, "Order not found")

        order, lines = found
        return JSONResponse(
            content={
                "order": order.to_public_dict(),
                "items": [line.model_dump(mode="json") for line in lines],
            }
        )

    @app.post("/bot-check/verify", tags=["Bot Check"])
    async def verify_bot_check(request: Request) -> JSONResponse:
        """Verify a bot-check token without placing an order.

        Returns:
            {"success": true} or 400 with {"success": false, "error": ...}
        """
        try:
            payload = await request.json()
        except ValueError:
            return error_response(400, "Invalid JSON")

        token = payload.get("token") if isinstance(payload, dict) else None
        if not isinstance(token, str) or not token:
            return error_response(400, "Token is required")

        try:
            verified = await app.state.bot_check_verifier.verify(
                token, get_client_address(request), get_request_origin(request)
            )
        except OrderPlacementError as e:
            return error_response(e.status_code, GENERIC_ERROR_MESSAGE)

        if not verified:
            return error_response(400, "Verification failed", success=False)

        return JSONResponse(content={"success": True})

    @app.get("/admin/orders/{order_id}", tags=["Admin"])
    async def get_order(
        order_id: str,
        _api_key: str = Depends(validate_api_key),
    ) -> JSONResponse:
        """Operator lookup of an order by id, including the client address.

        Args:
            order_id: Order identifier

        Returns:
            The order with its lines

        Raises:
            HTTPException: 404 if the order does not exist
        """
        found = await app.state.order_service.get_order(order_id)
        if found is None:
            raise HTTPException(status_code=404, detail=f"Order {order_id} not found")

        order, lines = found
        body = order.model_dump(mode="json")
        body["items"] = [line.model_dump(mode="json") for line in lines]
        return JSONResponse(content=body)

    return app
