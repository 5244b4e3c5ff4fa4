"""
AWS Lambda Handler for the CoveTalks API

Lambda entry point using the Mangum adapter, which translates API Gateway
events to the FastAPI application's ASGI interface.
"""

from mangum import Mangum

from covetalks.main import app
from covetalks.utils.logging_config import get_logger, set_correlation_id

logger = get_logger(__name__)


# Lifespan stays off: clients are built lazily on first use per container
handler = Mangum(app, lifespan="off", api_gateway_base_path="/")


def lambda_handler(event, context):
    """
    AWS Lambda handler function with invocation logging.

    Args:
        event: API Gateway event containing HTTP request details
        context: Lambda context with runtime information

    Returns:
        API Gateway response format
    """
    set_correlation_id(context.aws_request_id)
    request_context = event.get("requestContext", {})

    logger.info(
        "Lambda invocation started",
        extra={
            "request_id": context.aws_request_id,
            "function_name": context.function_name,
            "remaining_time": context.get_remaining_time_in_millis(),
            "http_method": request_context.get("http", {}).get("method"),
            "raw_path": event.get("rawPath"),
        },
    )

    try:
        response = handler(event, context)
    except Exception as e:
        logger.error(
            f"Lambda invocation failed: {e}",
            extra={
                "request_id": context.aws_request_id,
                "error": str(e),
                "error_type": type(e).__name__,
            },
        )
        raise

    logger.info(
        "Lambda invocation completed",
        extra={
            "request_id": context.aws_request_id,
            "status_code": response.get("statusCode"),
        },
    )
    return response


__all__ = ["handler", "lambda_handler"]
