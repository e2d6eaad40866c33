"""Shared fixtures: a Flask test client and small in-memory images."""

from __future__ import annotations

import pytest

from app import app as flask_app
from sample_images import make_image


@pytest.fixture
def client():
    flask_app.config["TESTING"] = True
    with flask_app.test_client() as client:
        yield client


@pytest.fixture
def png_bytes() -> bytes:
    return make_image()


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_image(fmt="JPEG")


@pytest.fixture
def overlay_bytes() -> bytes:
    return make_image(mode="RGBA", size=(40, 20), color=(255, 255, 255, 255))
