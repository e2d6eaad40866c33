"""Sanity tests for the health endpoint."""

from __future__ import annotations

import io


def test_health_returns_ok(client) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.get_json() == {"status": "ok", "service": "sharp-api"}


def test_health_unaffected_by_failed_operation(client) -> None:
    failed = client.post("/resize", data={"image": (io.BytesIO(b"garbage"), "bad.png", "image/png")})
    assert failed.status_code == 500

    response = client.get("/health")

    assert response.status_code == 200
    assert response.get_json() == {"status": "ok", "service": "sharp-api"}
