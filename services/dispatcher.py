"""Maps an operation name onto its parameter schema and image transform.

Every endpoint goes through :func:`dispatch`: the uploads are checked, the
form fields are parsed into the operation's schema, the source image is
decoded, exactly one transform is applied, and the result is encoded
together with the content type the client gets back.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from services import image_ops, params as schemas
from services.errors import ProcessingError, ValidationError


@dataclass(frozen=True)
class UploadedAsset:
    data: bytes
    mimetype: str = "application/octet-stream"
    filename: str = ""


@dataclass(frozen=True)
class OperationRequest:
    operation: str
    params: Mapping[str, str] = field(default_factory=dict)
    assets: Mapping[str, UploadedAsset] = field(default_factory=dict)


@dataclass(frozen=True)
class OperationResult:
    data: bytes = b""
    content_type: str = "application/octet-stream"
    payload: Optional[Dict[str, Any]] = None

    @property
    def is_json(self) -> bool:
        return self.payload is not None


@dataclass(frozen=True)
class Operation:
    """One endpoint: which uploads it needs, how it reads its options,
    what it does to the pixels and how the output is encoded.

    ``output`` returns ``(format, quality)`` for operations that re-encode;
    when it is ``None`` the source format and declared media type are kept.
    """

    name: str
    schema: Any
    transform: Callable
    fields: Tuple[str, ...] = ("image",)
    output: Optional[Callable] = None
    returns_json: bool = False


def _convert_output(p):
    return image_ops.resolve_format(p.format, fallback="webp"), p.quality


def _optimize_output(p):
    return image_ops.resolve_format(p.format), p.quality


def _thumbnail_output(p):
    return "webp", 80


OPERATIONS = {
    op.name: op
    for op in (
        Operation("metadata", schemas.NoParams, image_ops.read_metadata, returns_json=True),
        Operation("resize", schemas.ResizeParams, image_ops.resize_image),
        Operation("convert", schemas.ConvertParams, lambda img, p: img, output=_convert_output),
        Operation(
            "optimize",
            schemas.OptimizeParams,
            lambda img, p: image_ops.downscale_image(img, p.max_width),
            output=_optimize_output,
        ),
        Operation("crop", schemas.CropParams, image_ops.crop_image),
        Operation("rotate", schemas.RotateParams, image_ops.rotate_image),
        Operation("blur", schemas.BlurParams, image_ops.blur_image),
        Operation("grayscale", schemas.NoParams, image_ops.grayscale_image),
        Operation("flip", schemas.FlipParams, image_ops.flip_image),
        Operation(
            "watermark",
            schemas.WatermarkParams,
            image_ops.watermark_image,
            fields=("image", "watermark"),
        ),
        Operation("thumbnail", schemas.ThumbnailParams, image_ops.thumbnail_image, output=_thumbnail_output),
        Operation("sharpen", schemas.SharpenParams, image_ops.sharpen_image),
        Operation("tint", schemas.TintParams, image_ops.tint_image),
    )
}


def _require_assets(operation, assets):
    missing = [name for name in operation.fields if not (assets.get(name) and assets[name].data)]
    if missing:
        raise ValidationError(f"Missing required image upload: {', '.join(missing)}")
    return [assets[name] for name in operation.fields]


def dispatch(request: OperationRequest) -> OperationResult:
    operation = OPERATIONS.get(request.operation)
    if operation is None:
        raise ValidationError(f"Unknown operation: {request.operation}")

    uploads = _require_assets(operation, request.assets)
    params = operation.schema.from_form(request.params)
    source = uploads[0]
    decoded = [image_ops.open_image(upload.data) for upload in uploads]

    if operation.returns_json:
        return OperationResult(payload=operation.transform(decoded[0], source.data))

    # Resolve the output first so a bad format fails before any pixel work
    fmt, quality = operation.output(params) if operation.output else (decoded[0].format or "PNG", None)

    images = [image_ops.prepare(img) for img in decoded]
    try:
        result = operation.transform(*images, params)
    except (OSError, ValueError) as e:
        raise ProcessingError(str(e)) from e

    # A requested format the encoder lacks must not be answered with PNG bytes
    data = image_ops.encode_image(result, fmt, quality, strict=operation.output is not None)
    content_type = f"image/{fmt}" if operation.output else source.mimetype
    logging.debug(f"{operation.name}: produced {len(data)} bytes as {content_type}")
    return OperationResult(data=data, content_type=content_type)
