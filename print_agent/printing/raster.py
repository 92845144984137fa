"""
ESC/POS raster encoding.

Pure functions that turn a Pillow image into the byte stream a thermal
receipt printer expects on its raw port:

    ESC @                      reset
    GS v 0 m xL xH yL yH d...  raster bit image (m=0, normal density)
    ESC d 3                    feed three lines
    GS V A 0                   partial cut

Pixels are thresholded on the plain average of R, G and B; anything darker
than mid-grey prints. Rows are packed 8 pixels per byte, MSB first.
"""

from __future__ import annotations

import logging

from escpos.constants import ESC, GS
from PIL import Image

logger = logging.getLogger(__name__)

RESET = ESC + b"@"
RASTER_IMAGE = GS + b"v0\x00"
FEED_3_LINES = ESC + b"d\x03"
PARTIAL_CUT = GS + b"VA\x00"

# Luminance below this (0-255 scale) is printed as a dot.
THRESHOLD = 128
MAX_RASTER_DIMENSION = 0xFFFF


def resize_to_width(img: Image.Image, target_width: int) -> Image.Image:
    """
    Scale to `target_width` keeping the aspect ratio, nearest-neighbour
    sampling (no smoothing, so thin strokes stay crisp after thresholding).
    """
    if target_width <= 0:
        raise ValueError(f"target width must be positive, got {target_width}")
    w, h = img.size
    if w == target_width:
        return img
    scale = target_width / float(w)
    new_height = max(1, int(h * scale))
    return img.resize((target_width, new_height), Image.NEAREST)


def raster_width(width: int) -> int:
    """Largest multiple of 8 not above `width`; trailing columns are dropped."""
    return width - (width % 8)


def image_to_raster(img: Image.Image) -> bytes:
    """
    Encode an image as a single `GS v 0` raster block (header + bitmap).
    Width is truncated to a multiple of 8.
    """
    width = raster_width(img.width)
    height = img.height
    if width <= 0 or height <= 0:
        raise ValueError(f"image too small to rasterize: {img.width}x{img.height}")
    row_bytes = width // 8
    if row_bytes > MAX_RASTER_DIMENSION or height > MAX_RASTER_DIMENSION:
        raise ValueError(f"image too large to rasterize: {img.width}x{img.height}")

    rgb = img.convert("RGB")
    px = rgb.load()
    raster = bytearray(row_bytes * height)

    for y in range(height):
        row = y * row_bytes
        for x in range(width):
            r, g, b = px[x, y]
            if (r + g + b) // 3 < THRESHOLD:
                raster[row + (x >> 3)] |= 0x80 >> (x & 7)

    header = RASTER_IMAGE + bytes(
        (row_bytes & 0xFF, row_bytes >> 8, height & 0xFF, height >> 8),
    )
    return header + bytes(raster)


def build_print_job(img: Image.Image, target_width: int) -> bytes:
    """
    Full byte stream for one receipt: reset, raster image scaled to the
    printer's dot width, feed, partial cut.
    """
    scaled = resize_to_width(img, target_width)
    data = RESET + image_to_raster(scaled) + FEED_3_LINES + PARTIAL_CUT
    logger.debug(
        "Built ESC/POS job: %dx%d -> %dx%d, %d bytes",
        img.width,
        img.height,
        raster_width(scaled.width),
        scaled.height,
        len(data),
    )
    return data


__all__ = [
    "FEED_3_LINES",
    "PARTIAL_CUT",
    "RASTER_IMAGE",
    "RESET",
    "THRESHOLD",
    "build_print_job",
    "image_to_raster",
    "raster_width",
    "resize_to_width",
]
