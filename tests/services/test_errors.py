"""Tests for terminal error enrichment."""

from __future__ import annotations

import httpx

from pylon_mcp.services.errors import APIResponseError, ServiceError, enrich_error
from tests.conftest import status_error


def test_error_field_used_as_message() -> None:
    original = status_error(404, json={"error": "Issue not found"})

    enriched = enrich_error(original, "Pylon API", service_id="pylon")

    assert isinstance(enriched, APIResponseError)
    assert isinstance(enriched, ServiceError)
    assert str(enriched) == "Pylon API error (404): Issue not found"
    assert enriched.status == 404
    assert enriched.api_error == {"error": "Issue not found"}
    assert enriched.original_error is original
    assert enriched.service_id == "pylon"


def test_message_field_used_when_no_error_field() -> None:
    enriched = enrich_error(
        status_error(400, json={"message": "Invalid request parameters"}), "Pylon API"
    )

    assert str(enriched) == "Pylon API error (400): Invalid request parameters"


def test_error_field_preferred_over_message() -> None:
    enriched = enrich_error(
        status_error(422, json={"error": "Validation failed", "message": "other"}),
        "Pylon API",
    )

    assert str(enriched) == "Pylon API error (422): Validation failed"


def test_unknown_body_shape_serialized() -> None:
    body = {"errors": [{"field": "title", "code": "required"}]}

    enriched = enrich_error(status_error(422, json=body), "Pylon API")

    assert str(enriched).startswith("Pylon API error (422): ")
    assert '"field": "title"' in str(enriched)
    assert enriched.api_error == body


def test_plain_text_body() -> None:
    enriched = enrich_error(
        status_error(502, content=b"Bad Gateway\n"), "Pylon API"
    )

    assert str(enriched) == "Pylon API error (502): Bad Gateway"
    assert enriched.api_error == "Bad Gateway"


def test_empty_body_passes_through() -> None:
    original = status_error(500)

    assert enrich_error(original, "Pylon API") is original


def test_network_error_passes_through() -> None:
    original = httpx.ConnectError("connection refused")

    assert enrich_error(original, "Pylon API") is original
