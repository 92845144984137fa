from PIL import Image

from print_agent.printing.raster import (
    FEED_3_LINES,
    PARTIAL_CUT,
    RASTER_IMAGE,
    RESET,
    build_print_job,
    image_to_raster,
    resize_to_width,
)


def _checkerboard(width: int, height: int) -> Image.Image:
    img = Image.new("RGB", (width, height), (255, 255, 255))
    px = img.load()
    for y in range(height):
        for x in range(width):
            if (x + y) % 2 == 0:
                px[x, y] = (0, 0, 0)
    return img


def test_checkerboard_header_and_bits():
    data = image_to_raster(_checkerboard(8, 2))
    assert data[: len(RASTER_IMAGE)] == RASTER_IMAGE
    # xL xH = 1 byte per row, yL yH = 2 rows
    assert data[len(RASTER_IMAGE) : len(RASTER_IMAGE) + 4] == bytes([1, 0, 2, 0])
    assert data[len(RASTER_IMAGE) + 4 :] == bytes([0xAA, 0x55])


def test_width_not_multiple_of_eight_is_truncated():
    img = Image.new("RGB", (385, 3), (0, 0, 0))
    data = image_to_raster(img)
    header = data[len(RASTER_IMAGE) : len(RASTER_IMAGE) + 4]
    assert header == bytes([48, 0, 3, 0])
    body = data[len(RASTER_IMAGE) + 4 :]
    assert len(body) == 48 * 3
    assert set(body) == {0xFF}


def test_threshold_uses_channel_average():
    img = Image.new("RGB", (8, 1), (255, 255, 255))
    px = img.load()
    px[0, 0] = (127, 127, 127)  # just below midpoint: prints
    px[1, 0] = (128, 128, 128)  # midpoint: blank
    px[2, 0] = (255, 0, 0)  # average 85: prints
    data = image_to_raster(img)
    assert data[-1] == 0b10100000


def test_resize_is_nearest_and_keeps_aspect():
    img = Image.new("L", (200, 100), 255)
    out = resize_to_width(img, 384)
    assert out.size == (384, 192)
    assert set(out.getdata()) == {255}


def test_build_print_job_framing():
    img = Image.new("L", (96, 48), 0)
    data = build_print_job(img, 384)
    assert data.startswith(RESET + RASTER_IMAGE)
    assert data.endswith(FEED_3_LINES + PARTIAL_CUT)
    header = data[len(RESET + RASTER_IMAGE) : len(RESET + RASTER_IMAGE) + 4]
    row_bytes = header[0] | (header[1] << 8)
    height = header[2] | (header[3] << 8)
    assert row_bytes == 48
    assert height == 192
    assert len(data) == len(RESET + RASTER_IMAGE) + 4 + row_bytes * height + len(FEED_3_LINES + PARTIAL_CUT)
