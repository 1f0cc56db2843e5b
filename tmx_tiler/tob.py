"""
Tile objects ("tobs") from images.

=============================================================================
WHAT IS A TOB?
=============================================================================

A tob is a minimal .tmx map describing how a set of tile images fit
together to form one object (a tree, a house, ...): which tile goes where
and on which z-level. Larger maps are then built by placing tobs with
Map.add / InfiniteMap.add.

build_tob() takes an image that is already a whole number of tiles, cuts
it into tiles and lays them out in a Map:

    image (3x4 tiles)            z_layers=[2], mult=10

    +---+---+---+
    | . | . | . |   row 0  -> z = 10      upper rows are higher up
    +---+---+---+
    | . | . | . |   row 1  -> z = 10
    +---+---+---+
    | . | . | . |   row 2  -> z = 0       the bottom 2 rows stay at
    +---+---+---+                         the lowest level
    | . | . | . |   row 3  -> z = 0
    +---+---+---+

Each z_layers entry is a row count from the bottom; every boundary passed
bumps the level by one. Levels are then multiplied by `mult` to leave
gaps for hand-placed layers later and shifted by `z_bottom`.

=============================================================================
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from PIL import Image

from . import imaging
from .config import Config
from .map import Map, new
from .properties import Properties

logger = logging.getLogger(__name__)


@dataclass
class TileProps:
    """Extra properties for the single tile at (x, y, z) of a tob."""
    x: int = 0
    y: int = 0
    z: int = 0
    props: Dict[str, str] = field(default_factory=dict)

    def match(self, x: int, y: int, z: int) -> bool:
        return bool(self.props) and (self.x, self.y, self.z) == (x, y, z)


@dataclass
class TileImage:
    """One cut tile: where it goes and the file it should be saved as."""
    x: int
    y: int
    z: int
    filename: str
    image: Image.Image


def z_for_row(y: int, height: int, z_layers: Sequence[int] = (), invert: bool = False,
              mult: int = 10, z_bottom: int = 0) -> int:
    """z-level of tile row `y` of an object `height` rows tall."""
    z = 0
    for boundary in z_layers:
        if invert:
            # tiles on the lower rows are considered higher
            if boundary > y:
                break
        elif boundary > height - 1 - y:
            break
        z += 1
    return z * mult + z_bottom


def prepare_region(img: Image.Image, box: Tuple[int, int, int, int],
                   tile_width: int, tile_height: int,
                   resize_x: int = 0, resize_y: int = 0,
                   pad: bool = False) -> Image.Image:
    """
    Cut `box` out of `img` and resize it to a whole number of tiles.

    resize_x / resize_y force the width / height to that many tiles (by
    padding when `pad` is set and the region is small enough); otherwise the
    region is resized to the nearest multiple of the tile size.
    """
    region = imaging.cut_out(img, box)

    if resize_x > 0 and resize_y > 0:
        return imaging.resize(region, tile_width * resize_x, tile_height * resize_y, pad)

    if resize_x > 0:
        region = imaging.resize(region, tile_width * resize_x, region.height, pad)
    elif resize_y > 0:
        region = imaging.resize(region, region.width, tile_height * resize_y, pad)

    return imaging.size_to_tiles(region, tile_width, tile_height)


def build_tob(img: Image.Image, name: str, tile_width: int = 32, tile_height: int = 32,
              z_layers: Sequence[int] = (), invert: bool = False, mult: int = 10,
              z_bottom: int = 0, props: Optional[Properties] = None,
              tile_props: Optional[TileProps] = None,
              rotation: int = 0) -> Tuple[Map, List[TileImage]]:
    """
    Cut `img` into tiles and build the tob map describing them.

    Tiles are named "<name>.<x>.<y>.<z>.png"; that name is also the tile's
    source in the map. Every tile gets `props`; the tile matched by
    `tile_props` gets `props` merged with its own (its own values win).

    Returns:
    --------
    (Map, [TileImage, ...]) : the tob and the tile images to save
    """
    width = img.width // tile_width
    height = img.height // tile_height
    props = props or Properties()

    m = new(Config(
        map_width=width,
        map_height=height,
        tile_width=tile_width,
        tile_height=tile_height,
    ))

    tiles = []
    for x, y, tile_img in imaging.split_tiles(img, tile_width, tile_height):
        z = z_for_row(y, height, z_layers, invert, mult, z_bottom)
        tile_img = imaging.rotate(tile_img, rotation)

        fname = f"{name}.{x}.{y}.{z}.png"
        m.set_cell(x, y, z, fname)
        if tile_props is not None and tile_props.match(x, y, z):
            logger.info("setting additional props on (%d, %d, %d)", x, y, z)
            m.set_source_properties(fname, props.copy().merge(Properties.from_strings(tile_props.props)))
        else:
            m.set_source_properties(fname, props)

        tiles.append(TileImage(x=x, y=y, z=z, filename=fname, image=tile_img))

    return m, tiles
