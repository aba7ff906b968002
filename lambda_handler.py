"""
AWS Lambda handler for Identity Reconciliation System
This module adapts the FastAPI application to work with AWS Lambda + API Gateway
"""

import json
import logging
import os

from mangum import Mangum

from main import app

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

handler = Mangum(
    app,
    lifespan="off",
    text_mime_types=[
        "application/json",
        "application/javascript",
        "application/xml",
        "application/vnd.api+json",
        "text/plain",
        "text/html"
    ],
    exclude_headers=["x-amzn-trace-id"]
)


def describe_event(event):
    """Return (api_version, method, path) for an API Gateway event"""
    if event.get("version") == "2.0":
        http = event.get("requestContext", {}).get("http", {})
        return "v2", http.get("method", "UNKNOWN"), http.get("path", "UNKNOWN")
    if "httpMethod" in event:
        return "v1", event.get("httpMethod", "UNKNOWN"), event.get("path", "UNKNOWN")
    return "unknown", "UNKNOWN", "UNKNOWN"


def error_response(request_id):
    """API Gateway shaped 500 response"""
    return {
        "statusCode": 500,
        "headers": {
            "Content-Type": "application/json",
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
            "Access-Control-Allow-Headers": "Content-Type, Authorization"
        },
        "body": json.dumps({
            "error": "InternalServerError",
            "message": "An unexpected error occurred",
            "requestId": request_id
        })
    }


def lambda_handler(event, context):
    """
    AWS Lambda entry point

    Args:
        event: API Gateway event data
        context: Lambda runtime context

    Returns:
        API Gateway response format
    """
    logger.info(f"Lambda function: {context.function_name} (version {context.function_version})")
    logger.info(f"Environment: {os.getenv('ENVIRONMENT', 'not-set')}")

    api_version, method, path = describe_event(event)
    if api_version == "unknown":
        logger.info(f"Unknown event format. Event keys: {list(event.keys())}")
    else:
        logger.info(f"API Gateway {api_version} event: {method} {path}")

    try:
        response = handler(event, context)
        logger.info(f"Response status: {response.get('statusCode', 'UNKNOWN')}")
        return response

    except Exception as e:
        logger.error(f"Lambda handler error: {e}", exc_info=True)
        return error_response(getattr(context, "aws_request_id", None))
