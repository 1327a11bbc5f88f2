"""AWS Lambda handler for API Gateway requests.

API Gateway events are passed to the FastAPI application through the Mangum
ASGI adapter. The application and its clients are built once per container.
"""

import logging
import os
from typing import Any

from mangum import Mangum

from lambda_dependencies import get_fastapi_app, initialize_lambda_environment

# Initialize Lambda environment during cold start (skip in test mode)
if os.getenv("ENVIRONMENT") != "test":
    initialize_lambda_environment()

logger = logging.getLogger(__name__)

# Create FastAPI app and Mangum adapter (cached for warm starts, skip in test mode)
if os.getenv("ENVIRONMENT") != "test":
    app = get_fastapi_app()
    mangum_handler = Mangum(app, lifespan="off")
else:
    app = None  # type: ignore
    mangum_handler = None  # type: ignore


def is_http_event(event: dict[str, Any]) -> bool:
    """Determine if the event is an API Gateway (REST or HTTP API) request.

    Args:
        event: The Lambda event payload

    Returns:
        True if this is an API Gateway request, False otherwise
    """
    return "requestContext" in event and ("httpMethod" in event or "routeKey" in event)


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """Lambda entry point for storefront API requests.

    Args:
        event: The API Gateway event payload
        context: The Lambda context object

    Returns:
        API Gateway proxy response dict
    """
    logger.info(f"Received Lambda invocation, request_id: {context.aws_request_id}")

    if not is_http_event(event):
        logger.warning("Unsupported Lambda event; expected an API Gateway request")
        return {
            "statusCode": 400,
            "headers": {"Content-Type": "application/json"},
            "body": '{"error": "Unsupported event type"}',
        }

    try:
        result: dict[str, Any] = mangum_handler(event, context)
        return result

    except Exception as e:
        logger.exception(f"Unhandled error in Lambda handler: {e}")
        return {
            "statusCode": 500,
            "headers": {"Content-Type": "application/json"},
            "body": '{"error": "Internal server error"}',
        }
