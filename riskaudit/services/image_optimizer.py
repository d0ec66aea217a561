"""JPEG down-scaling and thumbnail generation with Pillow."""

from __future__ import annotations

import io
import logging

from PIL import Image, ImageOps, UnidentifiedImageError

logger = logging.getLogger(__name__)


def _open(data: bytes) -> Image.Image:
    img = Image.open(io.BytesIO(data))
    img = ImageOps.exif_transpose(img)
    if img.mode not in ("RGB", "L"):
        img = img.convert("RGB")
    return img


def _encode_jpeg(img: Image.Image, quality: int) -> bytes:
    buf = io.BytesIO()
    img.save(buf, "JPEG", quality=quality, optimize=True)
    return buf.getvalue()


def optimize_image(data: bytes, max_width: int, quality: int) -> bytes:
    """Resize to at most ``max_width`` (keeping aspect ratio) and re-encode as JPEG.

    Images already narrower than ``max_width`` are returned untouched. Undecodable
    input is returned as-is so a bad optimization never loses the upload.
    """
    if not data:
        return data
    try:
        img = _open(data)
    except (UnidentifiedImageError, OSError):
        logger.warning("Could not decode image for optimization, storing original bytes")
        return data

    width, height = img.size
    if width <= max_width:
        return data

    new_height = int(max_width * height / width)
    resized = img.resize((max_width, new_height), Image.Resampling.LANCZOS)
    out = _encode_jpeg(resized, quality)
    logger.info(
        "Image optimized: %dx%d -> %dx%d, %dKB -> %dKB",
        width, height, max_width, new_height, len(data) // 1024, len(out) // 1024,
    )
    return out


def make_thumbnail(data: bytes, width: int, quality: int) -> bytes | None:
    """Return a JPEG thumbnail at most ``width`` pixels wide, or None if the image can't be decoded."""
    if not data:
        return None
    try:
        img = _open(data)
    except (UnidentifiedImageError, OSError):
        logger.warning("Could not decode image for thumbnail generation")
        return None

    orig_w, orig_h = img.size
    new_w = min(width, orig_w)
    new_h = max(1, int(new_w * orig_h / orig_w))
    thumb = img.resize((new_w, new_h), Image.Resampling.LANCZOS)
    return _encode_jpeg(thumb, quality)
