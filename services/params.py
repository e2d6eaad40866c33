"""Per-operation parameter schemas.

Every endpoint receives its options as plain form fields. Each schema below
names the fields an operation understands together with their defaults, and
``from_form`` turns the raw strings into typed values. Numbers are read the
lenient way clients of this service rely on: a leading number is taken and
anything unparseable falls back to the default instead of failing.
"""

import re
from dataclasses import dataclass
from typing import Mapping, Optional

from services.errors import ValidationError

_INT_RE = re.compile(r"^\s*([+-]?\d+)")
_FLOAT_RE = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def parse_int(value, default=None):
    """Read the leading integer of ``value`` ("12px" -> 12, "3.9" -> 3)."""
    if value is None:
        return default
    match = _INT_RE.match(str(value))
    if not match:
        return default
    return int(match.group(1))


def parse_float(value, default=None):
    """Read the leading decimal number of ``value`` ("1.5x" -> 1.5)."""
    if value is None:
        return default
    match = _FLOAT_RE.match(str(value))
    if not match:
        return default
    return float(match.group(1))


def _text(form, name, default):
    value = form.get(name)
    if value is None or value == "":
        return default
    return str(value)


def _required_int(form, name):
    value = parse_int(form.get(name))
    if value is None:
        raise ValidationError(f"Missing or invalid '{name}' parameter")
    return value


@dataclass(frozen=True)
class NoParams:
    @classmethod
    def from_form(cls, form: Mapping[str, str]) -> "NoParams":
        return cls()


@dataclass(frozen=True)
class ResizeParams:
    width: Optional[int] = None
    height: Optional[int] = None
    fit: str = "cover"

    @classmethod
    def from_form(cls, form: Mapping[str, str]) -> "ResizeParams":
        # zero means "not given", same as a missing field
        return cls(
            width=parse_int(form.get("width")) or None,
            height=parse_int(form.get("height")) or None,
            fit=_text(form, "fit", cls.fit),
        )


@dataclass(frozen=True)
class ConvertParams:
    format: str = "webp"
    quality: int = 80

    @classmethod
    def from_form(cls, form: Mapping[str, str]) -> "ConvertParams":
        return cls(
            format=_text(form, "format", cls.format),
            quality=parse_int(form.get("quality"), cls.quality),
        )


@dataclass(frozen=True)
class OptimizeParams:
    max_width: int = 1920
    quality: int = 80
    format: str = "webp"

    @classmethod
    def from_form(cls, form: Mapping[str, str]) -> "OptimizeParams":
        return cls(
            max_width=parse_int(form.get("maxWidth"), cls.max_width),
            quality=parse_int(form.get("quality"), cls.quality),
            format=_text(form, "format", cls.format),
        )


@dataclass(frozen=True)
class CropParams:
    left: int
    top: int
    width: int
    height: int

    @classmethod
    def from_form(cls, form: Mapping[str, str]) -> "CropParams":
        return cls(
            left=_required_int(form, "left"),
            top=_required_int(form, "top"),
            width=_required_int(form, "width"),
            height=_required_int(form, "height"),
        )


@dataclass(frozen=True)
class RotateParams:
    angle: int = 90
    background: str = "#ffffff"

    @classmethod
    def from_form(cls, form: Mapping[str, str]) -> "RotateParams":
        return cls(
            angle=parse_int(form.get("angle"), cls.angle),
            background=_text(form, "background", cls.background),
        )


@dataclass(frozen=True)
class BlurParams:
    sigma: float = 5.0

    @classmethod
    def from_form(cls, form: Mapping[str, str]) -> "BlurParams":
        return cls(sigma=parse_float(form.get("sigma"), cls.sigma))


@dataclass(frozen=True)
class FlipParams:
    direction: str = "vertical"

    @classmethod
    def from_form(cls, form: Mapping[str, str]) -> "FlipParams":
        return cls(direction=_text(form, "direction", cls.direction))

    @property
    def horizontal(self) -> bool:
        return self.direction == "horizontal"


@dataclass(frozen=True)
class WatermarkParams:
    gravity: str = "southeast"
    opacity: float = 0.5

    @classmethod
    def from_form(cls, form: Mapping[str, str]) -> "WatermarkParams":
        return cls(
            gravity=_text(form, "gravity", cls.gravity),
            opacity=parse_float(form.get("opacity"), cls.opacity),
        )


@dataclass(frozen=True)
class ThumbnailParams:
    size: int = 150

    @classmethod
    def from_form(cls, form: Mapping[str, str]) -> "ThumbnailParams":
        return cls(size=parse_int(form.get("size"), cls.size))


@dataclass(frozen=True)
class SharpenParams:
    sigma: float = 1.0
    flat: float = 1.0
    jagged: float = 2.0

    @classmethod
    def from_form(cls, form: Mapping[str, str]) -> "SharpenParams":
        return cls(
            sigma=parse_float(form.get("sigma"), cls.sigma),
            flat=parse_float(form.get("flat"), cls.flat),
            jagged=parse_float(form.get("jagged"), cls.jagged),
        )


@dataclass(frozen=True)
class TintParams:
    r: int = 255
    g: int = 0
    b: int = 0

    @classmethod
    def from_form(cls, form: Mapping[str, str]) -> "TintParams":
        return cls(
            r=parse_int(form.get("r"), cls.r),
            g=parse_int(form.get("g"), cls.g),
            b=parse_int(form.get("b"), cls.b),
        )

    @property
    def rgb(self):
        return tuple(max(0, min(255, c)) for c in (self.r, self.g, self.b))
