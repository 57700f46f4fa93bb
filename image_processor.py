import io
import logging
import math
import os
from typing import List, Optional, Tuple

from PIL import Image, ImageOps, ImageSequence, UnidentifiedImageError, features

from utils.files import build_zip

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("jpeg", "png", "webp", "avif", "gif", "original")

# Points; exported at @3x
IOS_SIZES = [20, 29, 40, 60, 76, 83.5, 1024]
ANDROID_DENSITIES = {"mdpi": 48, "hdpi": 72, "xhdpi": 96, "xxhdpi": 144, "xxxhdpi": 192}

_SUBTYPE_ALIASES = {"jpg": "jpeg", "pjpeg": "jpeg", "x-png": "png"}


class ImageProcessingError(Exception):
    """Custom error for image compression / icon problems."""
    pass


def _open(data: bytes) -> Image.Image:
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
        return img
    except (UnidentifiedImageError, OSError) as e:
        raise ImageProcessingError(f"Invalid image: {e}") from e


def _input_format(img: Image.Image, mimetype: Optional[str]) -> str:
    subtype = ""
    if mimetype and "/" in mimetype:
        subtype = mimetype.split("/", 1)[1].lower()
    if not subtype and img.format:
        subtype = img.format.lower()
    return _SUBTYPE_ALIASES.get(subtype, subtype)


def _target_size(
    size: Tuple[int, int],
    width: Optional[int],
    height: Optional[int],
    maintain_aspect: bool
) -> Tuple[int, int]:
    """
    Box resize that never enlarges. With both sides given, maintain_aspect
    fits inside the box, otherwise the image is stretched to fill it.
    A single side always keeps the aspect ratio.
    """
    iw, ih = size

    if width and height and not maintain_aspect:
        return min(width, iw), min(height, ih)

    scales = []
    if width:
        scales.append(width / iw)
    if height:
        scales.append(height / ih)
    scale = min(scales + [1.0])
    return max(1, round(iw * scale)), max(1, round(ih * scale))


def _encode(img: Image.Image, fmt: str, quality: int, frames: Optional[List[Image.Image]] = None) -> bytes:
    buffer = io.BytesIO()
    if img.mode == "CMYK" and fmt != "jpeg":
        img = img.convert("RGB")

    if fmt == "jpeg":
        if img.mode not in ("RGB", "L"):
            img = img.convert("RGB")
        img.save(buffer, format="JPEG", quality=quality, optimize=True, progressive=True)

    elif fmt == "png":
        level = max(0, min(9, math.floor((100 - quality) / 11.11)))
        img.save(buffer, format="PNG", compress_level=level)

    elif fmt == "webp":
        img.save(buffer, format="WEBP", quality=quality, method=4)

    elif fmt == "avif":
        if not features.check("avif"):
            raise ImageProcessingError("AVIF output is not supported on this server")
        img.save(buffer, format="AVIF", quality=quality)

    elif fmt == "gif":
        if frames and len(frames) > 1:
            frames[0].save(
                buffer,
                format="GIF",
                save_all=True,
                append_images=frames[1:],
                loop=img.info.get("loop", 0),
                duration=img.info.get("duration", 100),
            )
        else:
            img.save(buffer, format="GIF")

    else:
        # "original" with a format we don't tune: re-save as-is
        img.save(buffer, format=img.format or fmt.upper())

    return buffer.getvalue()


def compress_image(
    data: bytes,
    filename: str,
    mimetype: Optional[str],
    quality: int = 80,
    output_format: str = "webp",
    width: Optional[int] = None,
    height: Optional[int] = None,
    maintain_aspect: bool = False,
) -> Tuple[bytes, str, str]:
    """
    Re-encode (and optionally shrink) one image.

    Returns (bytes, download name, mimetype).
    """
    output_format = (output_format or "webp").lower()
    if output_format not in OUTPUT_FORMATS:
        raise ImageProcessingError(f"Unsupported output format: {output_format}")

    img = _open(data)
    source_format = img.format

    if output_format == "original":
        fmt = _input_format(img, mimetype)
        mimetype_out = mimetype if mimetype and mimetype.startswith("image/") else f"image/{fmt}"
        ext = os.path.splitext(filename or "")[1].lstrip(".") or fmt
    else:
        fmt = output_format
        mimetype_out = f"image/{fmt}"
        ext = fmt

    frames: Optional[List[Image.Image]] = None
    if fmt == "gif" and getattr(img, "is_animated", False):
        frames = [frame.copy() for frame in ImageSequence.Iterator(img)]

    if width or height:
        size = _target_size(img.size, width, height, maintain_aspect)
        if size != img.size:
            if frames:
                frames = [f.resize(size, Image.LANCZOS) for f in frames]
            img = img.resize(size, Image.LANCZOS)

    img.format = source_format
    output = _encode(img, fmt, quality, frames)

    stem = os.path.splitext(os.path.basename(filename or "image"))[0]
    name = f"compressed_{stem}.{ext}"
    logger.info("Compressed %s: %d -> %d bytes (%s)", filename, len(data), len(output), fmt)
    return output, name, mimetype_out


def generate_icons(data: bytes) -> bytes:
    """
    Build a ZIP of iOS (@3x) and Android launcher icons from one image.
    Non-square sources are centre-cropped.
    """
    base = _open(data).convert("RGBA")
    entries = []

    for pt in IOS_SIZES:
        px = round(pt * 3)
        entries.append((f"ios/Icon-{pt:g}@3x.png", _square_png(base, px)))

    for density, px in ANDROID_DENSITIES.items():
        entries.append((f"android/ic_launcher_{density}.png", _square_png(base, px)))

    return build_zip(entries)


def _square_png(img: Image.Image, px: int) -> bytes:
    buffer = io.BytesIO()
    ImageOps.fit(img, (px, px), Image.LANCZOS).save(buffer, format="PNG")
    return buffer.getvalue()
