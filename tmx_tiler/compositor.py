"""
Placing tile objects onto maps.

=============================================================================
CONCEPT
=============================================================================

A tile object ("tob") is a small Map, e.g. a tree:

    layer "0"        layer "1"        layer "2"
    . . . .          . . . .          . X X .      <- canopy
    . . . .          . X X .          . X X .
    . T T .          . . . .          . . . .      <- trunk
                                                   (. = empty, id 0)

Placing it on a bigger map at anchor (x, y) with a z-offset copies every
NON-EMPTY cell of every z-named layer:

    object cell (tx, ty) on layer z  ->  map cell (x+tx, y+ty, z+zoffset)

Only the written layers matter, not the object's bounding box, so an object
can be placed one z-level at a time or all at once with the same offset.

=============================================================================
AUTO Z-OFFSET
=============================================================================

A negative zoffset means "stack on whatever is already at the anchor": the
offset becomes the highest z-level holding a tile at (x, y), or 0 if the
anchor is empty.

=============================================================================
FITS vs ADD
=============================================================================

fits() walks the same cells add() would write and answers False as soon as
one of them is already taken or falls off the map. Partially off-map
placements never fit; they are not clipped.

add() does not check fits() first. Properties of every placed source are
merged into the base map (base merged with incoming, incoming wins).

=============================================================================
"""

import logging
from typing import TYPE_CHECKING, Iterator, Tuple

if TYPE_CHECKING:
    from .interface import Tileable
    from .map import Map

logger = logging.getLogger(__name__)


def resolve_zoffset(target: 'Tileable', x: int, y: int, zoffset: int) -> int:
    """Turn a negative (auto) zoffset into a concrete z-level."""
    if zoffset >= 0:
        return zoffset
    top = target.top_z_at(x, y)
    return top if top is not None else 0


def iter_object_cells(o: 'Map') -> Iterator[Tuple[int, int, int, int]]:
    """
    Yield (tx, ty, z, tile_id) for every non-empty cell of `o`'s z-layers.

    Layers whose names aren't z-levels are skipped.
    """
    for layer in o.tile_layers:
        z = layer.z
        if z is None:
            continue
        for index, tid in enumerate(layer.tiles):
            if tid == 0:
                continue
            # the reverse of index = y * width + x
            yield index % o.width, index // o.width, z, tid


def iter_object_tiles(o: 'Map') -> Iterator[Tuple[int, int, int, str]]:
    """
    Yield (tx, ty, z, source) for every placeable cell of `o`.

    Cells whose id has no tileset entry (or an empty source) can't be
    placed anywhere; they are skipped and counted in one warning.
    """
    missing = 0
    for tx, ty, z, tid in iter_object_cells(o):
        tile = o.tileset.tile_by_id(tid)
        if tile is None or not tile.source:
            missing += 1
            continue
        yield tx, ty, z, tile.source
    if missing:
        logger.warning("skipped %d object cells with no tileset entry", missing)


def fits(m: 'Map', x: int, y: int, zoffset: int, o: 'Map') -> bool:
    """
    Returns if copying `o` to (x, y, zoffset) would leave every existing
    tile of `m` in place and stay inside `m`.
    """
    zoffset = resolve_zoffset(m, x, y, zoffset)

    for tx, ty, z, _ in iter_object_cells(o):
        if not m.in_bounds(x + tx, y + ty):
            return False
        if m.cell_properties(x + tx, y + ty, z + zoffset) is not None:
            return False

    return True


def add(m: 'Map', x: int, y: int, zoffset: int, o: 'Map') -> int:
    """
    Copy `o` into `m` at (x, y, zoffset). Returns the number of cells written.

    Cells that fall off `m` are clipped (and logged); nothing raises for a
    partially off-map placement.
    """
    zoffset = resolve_zoffset(m, x, y, zoffset)

    placed = 0
    clipped = 0
    sources = {}
    for tx, ty, z, src in iter_object_tiles(o):
        if not m.in_bounds(x + tx, y + ty):
            clipped += 1
            continue
        m.set_cell(x + tx, y + ty, z + zoffset, src)
        sources[src] = True
        placed += 1

    # once per source
    for src in sources:
        m.set_source_properties(src, m.source_properties(src).merge(o.source_properties(src)))

    if clipped:
        logger.warning("clipped %d object cells falling outside the %dx%d map",
                       clipped, m.width, m.height)
    logger.debug("placed %d cells at (%d, %d, %d)", placed, x, y, zoffset)
    return placed
