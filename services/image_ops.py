import io
import logging

from PIL import Image, ImageColor, ImageFilter, ImageOps, UnidentifiedImageError

from services.errors import ProcessingError

# Largest accepted input, width * height.
PIXEL_LIMIT = 268402689
Image.MAX_IMAGE_PIXELS = PIXEL_LIMIT

DEFAULT_QUALITY = 80
LOSSY_FORMATS = {"JPEG", "WEBP", "AVIF"}

# Names accepted by /convert and /optimize, mapped to the encoder they select.
OUTPUT_FORMATS = {
    "png": "png",
    "jpg": "jpeg",
    "jpeg": "jpeg",
    "webp": "webp",
    "avif": "avif",
}

FIT_MODES = ("cover", "contain", "fill", "inside", "outside")

GRAVITIES = {
    "north": ("center", "top"),
    "northeast": ("right", "top"),
    "east": ("right", "center"),
    "southeast": ("right", "bottom"),
    "south": ("center", "bottom"),
    "southwest": ("left", "bottom"),
    "west": ("left", "center"),
    "northwest": ("left", "top"),
    "center": ("center", "center"),
    "centre": ("center", "center"),
}

COLOUR_SPACES = {
    "1": "b-w",
    "L": "b-w",
    "LA": "b-w",
    "I;16": "grey16",
    "I;16B": "grey16",
    "I;16L": "grey16",
    "RGB": "srgb",
    "RGBA": "srgb",
    "P": "srgb",
    "PA": "srgb",
    "CMYK": "cmyk",
    "YCbCr": "ycbcr",
    "LAB": "lab",
    "HSV": "hsv",
}

SAMPLE_DEPTHS = {
    "I;16": "ushort",
    "I;16B": "ushort",
    "I;16L": "ushort",
    "I": "int",
    "F": "float",
}


# ------------------------------- #
#        Decode / Encode          #
# ------------------------------- #
def open_image(data):
    """Decode raw upload bytes, failing with ProcessingError on bad input."""
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except Image.DecompressionBombError as e:
        raise ProcessingError(f"Input image exceeds pixel limit: {e}") from e
    except (UnidentifiedImageError, OSError, ValueError, SyntaxError) as e:
        raise ProcessingError("Input buffer contains unsupported image format") from e
    if img.width * img.height > PIXEL_LIMIT:
        raise ProcessingError("Input image exceeds pixel limit")
    return img


def prepare(img):
    """Return a copy in a mode every transform understands (L, LA, RGB, RGBA)."""
    if img.mode in ("L", "LA", "RGB", "RGBA"):
        return img.copy()
    if img.mode in ("I;16", "I;16B", "I;16L", "I", "F"):
        return _to_8bit(img)
    return img.convert("RGBA" if img.has_transparency_data else "RGB")


def _to_8bit(img):
    """Rescale high-bit-depth grayscale into 0-255 before narrowing to L.

    Integer samples are treated as 16-bit. Float samples in 0..1 are scaled
    by 255, any other float range is stretched from its min/max.
    """
    if img.mode == "F":
        low, high = img.getextrema()
        if low >= 0 and high <= 1:
            scaled = img.point(lambda v: v * 255)
        elif high > low:
            scale = 255 / (high - low)
            scaled = img.point(lambda v: v * scale + (-low * scale))
        else:
            scaled = img.point(lambda v: v * 0)
        return scaled.convert("L")
    # convert() would clip 16-bit samples at 255 instead of scaling them
    return img.convert("I").point(lambda v: v * (255 / 65535)).convert("L")


def encode_image(img, fmt, quality=None, strict=False):
    """Serialise ``img`` with Pillow's ``fmt`` encoder and return the bytes.

    A format this Pillow build cannot write becomes PNG, unless ``strict``
    is set, in which case it is rejected.
    """
    fmt = fmt.upper()
    if fmt == "MPO":
        fmt = "JPEG"
    Image.init()
    if fmt not in Image.SAVE:
        if strict:
            raise ProcessingError(f"Unsupported output format {fmt.lower()}")
        fmt = "PNG"

    if quality is None:
        quality = DEFAULT_QUALITY
    if not 1 <= quality <= 100:
        raise ProcessingError(f"Expected integer between 1 and 100 for quality but received {quality}")

    if fmt == "JPEG" and img.mode not in ("RGB", "L", "CMYK"):
        img = img.convert("L" if img.mode == "LA" else "RGB")

    save_kwargs = {"format": fmt}
    if fmt in LOSSY_FORMATS:
        save_kwargs["quality"] = quality

    out_buffer = io.BytesIO()
    try:
        img.save(out_buffer, **save_kwargs)
    except (OSError, ValueError, KeyError) as e:
        raise ProcessingError(f"Cannot encode image as {fmt.lower()}: {e}") from e
    return out_buffer.getvalue()


def resolve_format(name, fallback=None):
    """Map a client-supplied format name onto an encoder name.

    Unknown names resolve to ``fallback``; without one they are rejected.
    """
    resolved = OUTPUT_FORMATS.get(str(name).lower(), fallback)
    if resolved is None:
        raise ProcessingError(f"Unsupported output format {name}")
    return resolved


# ------------------------------- #
#           Operations            #
# ------------------------------- #
def read_metadata(img, data):
    fmt = (img.format or "").lower()
    info = {
        "format": "jpeg" if fmt == "mpo" else fmt,
        "size": len(data),
        "width": img.width,
        "height": img.height,
        "space": COLOUR_SPACES.get(img.mode, img.mode.lower()),
        "channels": len(img.getbands()),
        "depth": SAMPLE_DEPTHS.get(img.mode, "uchar"),
        "isProgressive": bool(img.info.get("progressive") or img.info.get("progression")),
        "hasProfile": "icc_profile" in img.info,
        "hasAlpha": img.has_transparency_data,
    }
    dpi = img.info.get("dpi")
    if dpi:
        info["density"] = round(float(dpi[0]))
    orientation = img.getexif().get(0x0112)
    if orientation:
        info["orientation"] = orientation
    frames = getattr(img, "n_frames", 1)
    if frames > 1:
        info["pages"] = frames
    return info


def resize_image(img, params):
    if params.fit not in FIT_MODES:
        raise ProcessingError(f"Expected valid value for fit but received {params.fit}")
    width, height = params.width, params.height
    if width is None and height is None:
        return img
    for name, value in (("width", width), ("height", height)):
        if value is not None and value < 1:
            raise ProcessingError(f"Expected positive integer for {name} but received {value}")

    # A single dimension scales the other one by the source aspect ratio
    if height is None:
        height = max(1, round(img.height * width / img.width))
        return img.resize((width, height), Image.Resampling.LANCZOS)
    if width is None:
        width = max(1, round(img.width * height / img.height))
        return img.resize((width, height), Image.Resampling.LANCZOS)

    size = (width, height)
    if params.fit == "cover":
        return ImageOps.fit(img, size, Image.Resampling.LANCZOS)
    if params.fit == "contain":
        return ImageOps.pad(img, size, Image.Resampling.LANCZOS)
    if params.fit == "inside":
        return ImageOps.contain(img, size, Image.Resampling.LANCZOS)
    if params.fit == "outside":
        return ImageOps.cover(img, size, Image.Resampling.LANCZOS)
    return img.resize(size, Image.Resampling.LANCZOS)


def downscale_image(img, max_width):
    """Shrink to ``max_width`` keeping the aspect ratio; never enlarges."""
    if max_width < 1:
        raise ProcessingError(f"Expected positive integer for width but received {max_width}")
    if img.width <= max_width:
        return img
    height = max(1, round(img.height * max_width / img.width))
    return img.resize((max_width, height), Image.Resampling.LANCZOS)


def crop_image(img, params):
    left, top, width, height = params.left, params.top, params.width, params.height
    if (
        left < 0
        or top < 0
        or width < 1
        or height < 1
        or left + width > img.width
        or top + height > img.height
    ):
        raise ProcessingError(
            f"Bad extract area: {width}x{height} at ({left}, {top}) "
            f"does not fit inside the {img.width}x{img.height} image"
        )
    return img.crop((left, top, left + width, top + height))


def rotate_image(img, params):
    try:
        fill = ImageColor.getcolor(params.background, img.mode)
    except ValueError as e:
        raise ProcessingError(f"Unable to parse color from string: {params.background}") from e

    # Positive angles turn clockwise; Pillow turns counter-clockwise
    angle = params.angle % 360
    if angle == 0:
        return img
    if angle == 90:
        return img.transpose(Image.Transpose.ROTATE_270)
    if angle == 180:
        return img.transpose(Image.Transpose.ROTATE_180)
    if angle == 270:
        return img.transpose(Image.Transpose.ROTATE_90)
    return img.rotate(-angle, resample=Image.Resampling.BICUBIC, expand=True, fillcolor=fill)


def blur_image(img, params):
    if not 0.3 <= params.sigma <= 1000:
        raise ProcessingError(f"Expected number between 0.3 and 1000 for sigma but received {params.sigma}")
    return img.filter(ImageFilter.GaussianBlur(radius=params.sigma))


def grayscale_image(img, params=None):
    return img.convert("LA" if "A" in img.getbands() else "L")


def flip_image(img, params):
    if params.horizontal:
        return ImageOps.mirror(img)
    return ImageOps.flip(img)


def watermark_image(base, overlay, params):
    if not 0 <= params.opacity <= 1:
        raise ProcessingError(f"Expected number between 0 and 1 for opacity but received {params.opacity}")
    anchor = GRAVITIES.get(params.gravity)
    if anchor is None:
        raise ProcessingError(f"Expected valid gravity but received {params.gravity}")
    if overlay.width > base.width or overlay.height > base.height:
        raise ProcessingError("Image to composite must have same dimensions or smaller")

    overlay = overlay.convert("RGBA")
    overlay.putalpha(overlay.getchannel("A").point(lambda a: round(a * params.opacity)))

    horizontal, vertical = anchor
    x = {"left": 0, "center": (base.width - overlay.width) // 2, "right": base.width - overlay.width}[horizontal]
    y = {"top": 0, "center": (base.height - overlay.height) // 2, "bottom": base.height - overlay.height}[vertical]

    canvas = base.convert("RGBA")
    canvas.alpha_composite(overlay, dest=(x, y))
    if "A" not in base.getbands():
        canvas = canvas.convert(base.mode)
    logging.debug(f"Composited {overlay.width}x{overlay.height} overlay at ({x}, {y})")
    return canvas


def thumbnail_image(img, params):
    if params.size < 1:
        raise ProcessingError(f"Expected positive integer for size but received {params.size}")
    return ImageOps.fit(img, (params.size, params.size), Image.Resampling.LANCZOS)


def sharpen_image(img, params):
    """Unsharp mask with radius ``sigma`` and strength ``jagged`` x 100.

    ``flat`` becomes Pillow's integer threshold and is rounded to the
    nearest level, so a fractional value such as 0.5 sharpens like 0.
    """
    if not 0 < params.sigma <= 10:
        raise ProcessingError(f"Expected number between 0.000001 and 10 for sigma but received {params.sigma}")
    if params.flat < 0 or params.jagged < 0:
        raise ProcessingError("Expected non-negative numbers for flat and jagged")
    # jagged drives edge strength, flat is the level difference left untouched
    return img.filter(
        ImageFilter.UnsharpMask(
            radius=params.sigma,
            percent=round(params.jagged * 100),
            threshold=round(params.flat),
        )
    )


def tint_image(img, params):
    alpha = img.getchannel("A") if "A" in img.getbands() else None
    # Black and white stay put, midtones take the tint colour
    tinted = ImageOps.colorize(img.convert("L"), black=(0, 0, 0), white=(255, 255, 255), mid=params.rgb)
    if alpha is not None:
        tinted.putalpha(alpha)
    return tinted
