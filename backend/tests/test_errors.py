"""Tests for error classification and HTTP payload mapping."""
import asyncio

import httpx
import pytest

from chatsync.errors import (
    ConflictError,
    ConnectivityError,
    FailureCategory,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ProviderUnavailableError,
    ValidationError,
    classify_failure,
    describe_failure,
    error_from_payload,
)


@pytest.mark.parametrize("message, category", [
    ("Ollama is not running", FailureCategory.UNAVAILABLE),
    ("connect to localhost:11434 failed", FailureCategory.UNAVAILABLE),
    ("Connection refused", FailureCategory.CONNECTION_REFUSED),
    ("connect ECONNREFUSED 127.0.0.1", FailureCategory.CONNECTION_REFUSED),
    ("Provider 'mock' request timed out after 2.0s", FailureCategory.TIMEOUT),
    ("Request timeout", FailureCategory.TIMEOUT),
    ("Model 'llama9' not found", FailureCategory.MODEL_NOT_FOUND),
    ("something odd happened", FailureCategory.GENERIC),
])
def test_classify_failure(message, category):
    assert classify_failure(RuntimeError(message)) == category


def test_service_name_match_is_case_sensitive():
    """The capitalized service name marks the local service as down."""
    error = RuntimeError("Ollama at localhost:11434 timed out")

    assert classify_failure(error) == FailureCategory.UNAVAILABLE


def test_registry_timeout_for_ollama_is_a_timeout():
    """A lowercase provider id in a timeout message is still a timeout."""
    error = ProviderUnavailableError(
        "Provider 'ollama' request timed out after 0.05s",
        {"provider": "ollama", "timeout_seconds": 0.05}
    )

    assert classify_failure(error) == FailureCategory.TIMEOUT


@pytest.mark.parametrize("cause", [
    asyncio.TimeoutError(),
    httpx.ReadTimeout("read timed out"),
])
def test_timeout_cause_wins_over_message(cause):
    error = RuntimeError("Ollama request failed")
    error.__cause__ = cause

    assert classify_failure(error) == FailureCategory.TIMEOUT


def test_describe_failure_is_readable():
    message = describe_failure(RuntimeError("timed out"))

    assert "too long" in message


def test_error_from_payload_uses_code():
    error = error_from_payload(409, {"detail": "Busy", "error": "invalid_state", "details": {"a": 1}})

    assert isinstance(error, InvalidStateError)
    assert error.message == "Busy"
    assert error.details == {"a": 1}


@pytest.mark.parametrize("status, cls", [
    (400, ValidationError),
    (422, ValidationError),
    (401, ForbiddenError),
    (403, ForbiddenError),
    (404, NotFoundError),
    (409, ConflictError),
    (502, ConnectivityError),
])
def test_error_from_payload_falls_back_to_status(status, cls):
    assert isinstance(error_from_payload(status, {"detail": "x"}), cls)


def test_error_from_payload_keeps_structured_detail():
    """FastAPI request validation errors carry a list detail."""
    error = error_from_payload(422, {"detail": [{"loc": ["body", "title"], "msg": "missing"}]})

    assert isinstance(error, ValidationError)
    assert error.details["detail"][0]["msg"] == "missing"


def test_error_from_payload_non_json():
    error = error_from_payload(503, "Service Unavailable")

    assert isinstance(error, ConnectivityError)
    assert "503" in error.message


def test_provider_error_code_round_trips():
    error = error_from_payload(503, {"detail": "down", "error": "provider_unavailable"})

    assert isinstance(error, ProviderUnavailableError)
