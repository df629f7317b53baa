"""Unit tests for API exception sanitization behavior."""

from __future__ import annotations

import json

import pytest
from starlette.requests import Request

from lessonstream.ai.errors import AuthenticationError, OrchestrationError, RequestShapeError
from lessonstream.core.exceptions import _sanitize_validation_errors, orchestration_exception_handler


def _request() -> Request:
  scope = {"type": "http", "method": "POST", "path": "/v1/stream/activity", "headers": [], "query_string": b"", "state": {"request_id": "req-9"}}
  return Request(scope)


def test_sanitize_validation_errors_removes_input_and_serializes_exception_ctx() -> None:
  """Ensure validation errors stay JSON-serializable and redact raw request payloads."""
  errors = [{"type": "value_error", "loc": ("body",), "msg": "Value error, bad grade.", "input": {"gradeLevel": ""}, "ctx": {"error": ValueError("bad grade."), "input": {"gradeLevel": ""}}}]
  sanitized = _sanitize_validation_errors(errors)
  assert "input" not in sanitized[0]
  assert sanitized[0]["ctx"]["error"] == "ValueError: bad grade."
  assert "input" not in sanitized[0]["ctx"]


@pytest.mark.anyio
async def test_request_shape_errors_keep_their_reason() -> None:
  response = await orchestration_exception_handler(_request(), RequestShapeError("Unsupported activityLength 'epic'."))
  assert response.status_code == 400
  assert json.loads(response.body) == {"detail": "Unsupported activityLength 'epic'.", "requestId": "req-9"}


@pytest.mark.anyio
async def test_authentication_errors_hide_the_verifier_reason() -> None:
  response = await orchestration_exception_handler(_request(), AuthenticationError("token expired at 12:00"))
  assert response.status_code == 401
  assert response.headers["www-authenticate"] == "Bearer"
  assert json.loads(response.body)["detail"] == "Invalid authentication credentials"


@pytest.mark.anyio
async def test_fatal_orchestration_errors_are_generic() -> None:
  response = await orchestration_exception_handler(_request(), OrchestrationError("gateway misconfigured"))
  assert response.status_code == 500
  assert json.loads(response.body)["detail"] == "Internal Server Error"
