"""Image preprocessing: pixel buffers to the model's input tensor.

The model takes a fixed 227x227 BGR tensor with per-channel means
subtracted. Nothing is resized; any other size or pixel layout is rejected
before a tensor is built.
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

import numpy as np
from PIL import Image, UnidentifiedImageError

from squeezex.errors import FormatMismatch, ImageDecodeError, ShapeMismatch

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from squeezex.ml.model_spec import ModelSpec


class PixelFormat(StrEnum):
    """Pixel layouts, named by their Pillow mode."""

    RGBA_8888 = "RGBA"
    RGB_888 = "RGB"
    GRAY_8 = "L"
    GRAY_ALPHA = "LA"
    PALETTE = "P"
    CMYK = "CMYK"


@dataclass(frozen=True)
class PixelBuffer:
    """A decoded image: dimensions, pixel layout, and HxWxC uint8 pixels."""

    width: int
    height: int
    format: PixelFormat
    pixels: NDArray[np.uint8]

    @classmethod
    def from_array(cls, pixels: NDArray[np.uint8], pixel_format: PixelFormat = PixelFormat.RGBA_8888) -> PixelBuffer:
        height, width = pixels.shape[:2]
        return cls(width=width, height=height, format=pixel_format, pixels=pixels)


def decode_image(image_bytes: bytes, max_pixels: int) -> PixelBuffer:
    """Decode encoded image bytes into a pixel buffer.

    RGB images get a full-intensity alpha channel. Other supported modes keep
    their own format and are left for ``preprocess`` to reject.

    Args:
        image_bytes: Raw file bytes (any format Pillow reads).
        max_pixels: Upper bound on width * height.

    Raises:
        ImageDecodeError: If the bytes are not a readable image, the mode is
            unsupported, or the image exceeds ``max_pixels``.
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            if img.width * img.height > max_pixels:
                raise ImageDecodeError(f"Image of {img.width}x{img.height} exceeds {max_pixels} pixels")
            img.load()
            decoded = img.convert("RGBA") if img.mode == "RGB" else img.copy()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise ImageDecodeError(f"Cannot decode image: {exc}") from exc

    try:
        pixel_format = PixelFormat(decoded.mode)
    except ValueError:
        raise ImageDecodeError(f"Unsupported image mode: {decoded.mode}") from None
    return PixelBuffer.from_array(np.asarray(decoded, dtype=np.uint8), pixel_format)


def preprocess(buffer: PixelBuffer, spec: ModelSpec) -> NDArray[np.float32]:
    """Convert an RGBA pixel buffer into the model's input tensor.

    Returns:
        float32 array of shape (1, 3, size, size) in BGR order, mean subtracted.

    Raises:
        ShapeMismatch: If width or height differs from the model input size.
        FormatMismatch: If the buffer is not 8-bit RGBA.
    """
    size = spec.input_size
    if buffer.width != size or buffer.height != size:
        raise ShapeMismatch(f"Expected a {size}x{size} image, got {buffer.width}x{buffer.height}")
    if buffer.format != PixelFormat.RGBA_8888:
        raise FormatMismatch(f"Expected {PixelFormat.RGBA_8888.name} pixels, got {buffer.format}")
    if buffer.pixels.shape != (size, size, 4) or buffer.pixels.dtype != np.uint8:
        raise FormatMismatch(f"Pixel array {buffer.pixels.shape}/{buffer.pixels.dtype} is not {size}x{size}x4 uint8")

    # RGBA -> BGR, alpha dropped
    bgr = buffer.pixels[:, :, 2::-1].astype(np.float32)
    bgr -= np.asarray(spec.mean_bgr, dtype=np.float32)
    return np.ascontiguousarray(bgr.transpose(2, 0, 1))[np.newaxis, ...]
