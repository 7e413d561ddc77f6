"""
Service layer exceptions and terminal error enrichment.
"""

import json
from typing import Any

import httpx


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, service_id: str | None = None):
        self.service_id = service_id
        super().__init__(message)


class APIResponseError(ServiceError):
    """
    Terminal HTTP failure enriched with the remote service's error payload.

    Attributes:
        status: HTTP status code of the failed response
        api_error: Parsed response body (dict, list or text)
        original_error: The underlying httpx.HTTPStatusError
    """

    def __init__(
        self,
        service_name: str,
        status: int,
        message: str,
        api_error: Any,
        original_error: httpx.HTTPStatusError,
        service_id: str | None = None,
    ):
        self.status = status
        self.api_error = api_error
        self.original_error = original_error
        super().__init__(
            f"{service_name} error ({status}): {message}",
            service_id=service_id,
        )


def _read_body(response: httpx.Response) -> Any:
    """Decode an error response body, or None when there is nothing to decode."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        text = response.text.strip()
        return text or None


def extract_error_message(body: Any) -> str:
    """
    Pick a human-readable message out of an error payload.

    Prefers an explicit ``error`` field, then ``message``, then falls back
    to a key-sorted JSON dump of the whole body.
    """
    if isinstance(body, str):
        return body

    if isinstance(body, dict):
        for field in ("error", "message"):
            value = body.get(field)
            if isinstance(value, str) and value:
                return value
            if value:
                return json.dumps(value, sort_keys=True)

    return json.dumps(body, sort_keys=True, default=str)


def enrich_error(
    error: Exception,
    service_name: str,
    service_id: str | None = None,
) -> Exception:
    """
    Turn a terminal transport failure into the error a caller should see.

    HTTP status failures with a body become APIResponseError. Anything else
    (network failures, empty bodies) is returned unchanged.
    """
    if not isinstance(error, httpx.HTTPStatusError):
        return error

    body = _read_body(error.response)
    if body is None:
        return error

    return APIResponseError(
        service_name=service_name,
        status=error.response.status_code,
        message=extract_error_message(body),
        api_error=body,
        original_error=error,
        service_id=service_id,
    )
