"""
Image helpers for cutting pictures into tiles.

The core never looks at pixels; these helpers only exist for the tob and
cutter tools, which turn images into tile files plus a map describing them.

All functions take and return PIL images in RGBA mode. Pixel work is done
on numpy views of the image (shape: height x width x 4).
"""

from typing import Iterator, Tuple

import numpy as np
from PIL import Image

# Rotation in degrees (clockwise) -> PIL transpose
_ROTATIONS = {
    90: Image.Transpose.ROTATE_270,
    180: Image.Transpose.ROTATE_180,
    270: Image.Transpose.ROTATE_90,
}


def load_rgba(path) -> Image.Image:
    with Image.open(path) as img:
        return img.convert('RGBA')


def parse_offset(tilesize: int, start: int, offset: str) -> int:
    """
    Read an end coordinate.

    "<n>t" means n tiles after `start`; a plain number is an absolute pixel
    coordinate.

    Example:
        parse_offset(32, 64, "2t") == 128
        parse_offset(32, 64, "100") == 100

    Raises:
    -------
    ValueError : if the number part isn't an integer
    """
    if offset.endswith('t'):
        return start + tilesize * int(offset[:-1])
    return int(offset)


def cut_out(img: Image.Image, box: Tuple[int, int, int, int]) -> Image.Image:
    """Copy the rectangle (x0, y0, x1, y1) out of `img`."""
    return img.crop(box).convert('RGBA')


def size_to_tiles(img: Image.Image, tile_width: int, tile_height: int) -> Image.Image:
    """
    Resize `img` to the nearest whole number of tiles (at least 1x1).

    If the image is more than half a tile over a multiple it grows to the
    next tile, otherwise it shrinks.
    """
    fitx = img.width // tile_width
    fity = img.height // tile_height
    if img.width % tile_width > tile_width // 2:
        fitx += 1
    if img.height % tile_height > tile_height // 2:
        fity += 1

    fitx = max(fitx, 1)
    fity = max(fity, 1)

    return img.resize((fitx * tile_width, fity * tile_height), Image.Resampling.LANCZOS)


def resize(img: Image.Image, width: int, height: int, pad: bool = False) -> Image.Image:
    """
    Resize `img` to width x height.

    With `pad`, an image that is not larger than the target is centered on a
    transparent canvas instead of being stretched.
    """
    oversized = img.width > width or img.height > height

    if pad and not oversized:
        canvas = Image.new('RGBA', (width, height), (0, 0, 0, 0))
        canvas.paste(img, ((width - img.width) // 2, (height - img.height) // 2))
        return canvas

    return img.resize((width, height), Image.Resampling.LANCZOS)


def rotate(img: Image.Image, degrees: int) -> Image.Image:
    """Rotate clockwise by 0, 90, 180 or 270 degrees."""
    if degrees == 0:
        return img
    try:
        return img.transpose(_ROTATIONS[degrees])
    except KeyError:
        raise ValueError(f"rotation must be 0, 90, 180 or 270, got {degrees}") from None


def split_tiles(img: Image.Image, tile_width: int,
                tile_height: int) -> Iterator[Tuple[int, int, Image.Image]]:
    """
    Yield (x, y, tile image) for every whole tile of `img`, row by row.

    Partial tiles at the right / bottom edge are dropped.
    """
    pixels = np.asarray(img.convert('RGBA'))
    rows = pixels.shape[0] // tile_height
    cols = pixels.shape[1] // tile_width

    for y in range(rows):
        for x in range(cols):
            block = pixels[y * tile_height:(y + 1) * tile_height,
                           x * tile_width:(x + 1) * tile_width]
            yield x, y, Image.fromarray(np.ascontiguousarray(block))


def remove_grid_lines(img: Image.Image, tile_width: int, tile_height: int,
                      line_width: int = 1, offset_x: int = 1,
                      offset_y: int = 2) -> Image.Image:
    """
    Glue the tiles of a sprite sheet back together without the grid lines
    drawn between them.

    Tile (tx, ty) is read from
        (offset_x + line_width + tx * (tile_width + line_width),
         offset_y + line_width + ty * (tile_height + line_width))
    Anything read past the sheet's edge is transparent.
    """
    pixels = np.asarray(img.convert('RGBA'))
    tiles_high = pixels.shape[0] // (tile_height + line_width)
    tiles_wide = pixels.shape[1] // (tile_width + line_width)

    # pad so the last row / column can always be sliced whole
    padded = np.pad(
        pixels,
        ((0, tile_height + line_width + offset_y), (0, tile_width + line_width + offset_x), (0, 0)),
    )
    out = np.zeros((tile_height * tiles_high, tile_width * tiles_wide, 4), dtype=np.uint8)

    for ty in range(tiles_high):
        for tx in range(tiles_wide):
            sx = offset_x + line_width + tx * (tile_width + line_width)
            sy = offset_y + line_width + ty * (tile_height + line_width)
            out[ty * tile_height:(ty + 1) * tile_height,
                tx * tile_width:(tx + 1) * tile_width] = \
                padded[sy:sy + tile_height, sx:sx + tile_width]

    return Image.fromarray(out)
