import logging
from typing import Any, Dict

import awsgi  # type: ignore[import-untyped]

from release_gateway.app import create_app

flask_app = create_app()
log = logging.getLogger(__name__)
log.setLevel(logging.INFO)

# Installers and manifests must survive the Lambda proxy byte-for-byte
BINARY_CONTENT_TYPES = {
    "application/octet-stream",
    "application/x-apple-diskimage",
    "application/x-msdownload",
    "application/vnd.debian.binary-package",
    "application/x-debian-package",
    "application/zip",
    "image/png",
    "image/jpeg",
    "image/x-icon",
}


def _transform_lambda_function_url_event(event: Dict[str, Any]) -> Dict[str, Any]:
    """Transform Lambda Function URL event format to API Gateway format for awsgi.
    Lambda Function URLs use a different event structure than API Gateway:
    - requestContext.http.method instead of httpMethod
    - rawPath instead of path
    - No multiValueHeaders, etc.
    """
    if "requestContext" in event and "http" in event.get("requestContext", {}):
        http = event["requestContext"]["http"]
        return {
            "httpMethod": http.get("method", "GET"),
            "path": event.get("rawPath", "/"),
            "queryStringParameters": event.get("queryStringParameters"),
            "headers": event.get("headers", {}),
            "body": event.get("body"),
            "isBase64Encoded": event.get("isBase64Encoded", False),
            "requestContext": event.get("requestContext", {}),
        }
    # Already in API Gateway format
    return event


def handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """AWS Lambda handler that adapts API Gateway/Function URL events to Flask WSGI."""
    log.info("Lambda invocation: %s", event.get("rawPath") or event.get("path", "/"))
    transformed_event = _transform_lambda_function_url_event(event)
    return awsgi.response(flask_app, transformed_event, context, base64_content_types=BINARY_CONTENT_TYPES)
