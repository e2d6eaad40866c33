"""Tests for form-field parsing and per-operation defaults."""

from __future__ import annotations

import pytest

from services.errors import ValidationError
from services.params import (
    ConvertParams,
    CropParams,
    FlipParams,
    OptimizeParams,
    ResizeParams,
    RotateParams,
    SharpenParams,
    TintParams,
    WatermarkParams,
    parse_float,
    parse_int,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("12", 12), ("12px", 12), ("3.9", 3), (" -4", -4), ("+7", 7), ("abc", None), ("", None), (None, None)],
)
def test_parse_int_reads_leading_integer(raw, expected) -> None:
    assert parse_int(raw) == expected


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("1.5", 1.5), ("1.5x", 1.5), (".5", 0.5), ("2e1", 20.0), ("-0.25", -0.25), ("x1", None)],
)
def test_parse_float_reads_leading_number(raw, expected) -> None:
    assert parse_float(raw) == expected


def test_parse_falls_back_to_default() -> None:
    assert parse_int("wide", 1920) == 1920
    assert parse_float(None, 0.5) == 0.5


def test_resize_defaults() -> None:
    assert ResizeParams.from_form({}) == ResizeParams(width=None, height=None, fit="cover")


def test_resize_zero_or_garbage_dimension_is_unset() -> None:
    params = ResizeParams.from_form({"width": "0", "height": "tall", "fit": "inside"})

    assert params.width is None
    assert params.height is None
    assert params.fit == "inside"


def test_convert_malformed_quality_uses_default() -> None:
    params = ConvertParams.from_form({"format": "png", "quality": "high"})

    assert params == ConvertParams(format="png", quality=80)


def test_optimize_reads_max_width_field() -> None:
    params = OptimizeParams.from_form({"maxWidth": "640"})

    assert params.max_width == 640
    assert params.quality == 80
    assert params.format == "webp"


def test_crop_requires_every_field() -> None:
    with pytest.raises(ValidationError):
        CropParams.from_form({"left": "0", "top": "0", "width": "10"})


def test_crop_rejects_non_numeric_field() -> None:
    with pytest.raises(ValidationError):
        CropParams.from_form({"left": "a", "top": "0", "width": "10", "height": "10"})


def test_crop_parses_rectangle() -> None:
    params = CropParams.from_form({"left": "1", "top": "2", "width": "30", "height": "40"})

    assert (params.left, params.top, params.width, params.height) == (1, 2, 30, 40)


def test_rotate_defaults() -> None:
    assert RotateParams.from_form({"angle": "sideways"}) == RotateParams(angle=90, background="#ffffff")


def test_flip_direction() -> None:
    assert FlipParams.from_form({"direction": "horizontal"}).horizontal
    assert not FlipParams.from_form({"direction": "diagonal"}).horizontal
    assert not FlipParams.from_form({}).horizontal


def test_watermark_defaults() -> None:
    assert WatermarkParams.from_form({"opacity": "lots"}) == WatermarkParams(gravity="southeast", opacity=0.5)


def test_sharpen_defaults() -> None:
    assert SharpenParams.from_form({}) == SharpenParams(sigma=1.0, flat=1.0, jagged=2.0)


def test_tint_clamps_components() -> None:
    params = TintParams.from_form({"r": "300", "g": "-5", "b": "10"})

    assert params.rgb == (255, 0, 10)
    assert TintParams.from_form({}).rgb == (255, 0, 0)
