"""
Test Lambda Entry Point
"""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

import lambda_handler as entry


@pytest.fixture
def context():
    return SimpleNamespace(
        aws_request_id="req-123",
        function_name="covetalks-api",
        get_remaining_time_in_millis=lambda: 30000,
    )


@pytest.fixture
def event():
    return {
        "version": "2.0",
        "rawPath": "/health",
        "requestContext": {"http": {"method": "GET"}},
    }


def test_delegates_to_mangum(event, context):
    with patch.object(entry, "handler", MagicMock(return_value={"statusCode": 200})) as handler:
        response = entry.lambda_handler(event, context)

    assert response == {"statusCode": 200}
    handler.assert_called_once_with(event, context)


def test_sets_correlation_id(event, context):
    with patch.object(entry, "handler", MagicMock(return_value={"statusCode": 200})):
        with patch.object(entry, "set_correlation_id") as set_correlation_id:
            entry.lambda_handler(event, context)

    set_correlation_id.assert_called_once_with("req-123")


def test_errors_are_reraised(event, context):
    with patch.object(entry, "handler", MagicMock(side_effect=RuntimeError("cold start failed"))):
        with pytest.raises(RuntimeError, match="cold start failed"):
            entry.lambda_handler(event, context)
