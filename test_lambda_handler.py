"""
Tests for the AWS Lambda adapter
"""

import json
from types import SimpleNamespace
from unittest.mock import patch

import lambda_handler


def make_context():
    return SimpleNamespace(
        function_name="identity-reconciliation",
        function_version="1",
        aws_request_id="req-123",
    )


def test_describe_event_formats():
    v2 = {"version": "2.0", "requestContext": {"http": {"method": "POST", "path": "/identify"}}}
    v1 = {"httpMethod": "GET", "path": "/contacts"}

    assert lambda_handler.describe_event(v2) == ("v2", "POST", "/identify")
    assert lambda_handler.describe_event(v1) == ("v1", "GET", "/contacts")
    assert lambda_handler.describe_event({}) == ("unknown", "UNKNOWN", "UNKNOWN")


def test_adapter_response_is_returned():
    expected = {"statusCode": 200, "headers": {}, "body": "{}"}

    with patch.object(lambda_handler, "handler", return_value=expected) as handler:
        response = lambda_handler.lambda_handler({"httpMethod": "GET", "path": "/"}, make_context())

    assert response == expected
    handler.assert_called_once()


def test_adapter_failure_becomes_500():
    with patch.object(lambda_handler, "handler", side_effect=RuntimeError("adapter broke")):
        response = lambda_handler.lambda_handler({}, make_context())

    assert response["statusCode"] == 500
    body = json.loads(response["body"])
    assert body["error"] == "InternalServerError"
    assert body["requestId"] == "req-123"
