"""
In-memory tile map.

=============================================================================
OVERVIEW
=============================================================================

Map is a TMX map held entirely in memory, built for compositing:

    m = new(Config(map_width=10, map_height=10))
    m.set_cell(0, 0, 0, "grass.png")          # z-level 0
    m.set_cell(0, 0, 1, "mushroom.png")       # z-level 1, on top

    tree = open_file("tree.tmx")
    if m.fits(3, 3, 2, tree):
        m.add(3, 3, 2, tree)

    m.write_file("world.tmx")

Cells are addressed as (x, y, z). Each z-level is a tile layer named after
it; layers are created the first time a z-level is written.

Tiles are identified by their image source. Writing a source the map has
not seen yet allocates a new tile in the (single) tileset with the next
free id. Tiles are never removed.

=============================================================================
"""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, List, Optional, Union

from . import compositor
from .config import Config, default_config
from .errors import OutOfBounds, ParseError, UnsupportedTileset
from .interface import Tileable
from .properties import Properties, properties_from_xml, properties_to_xml
from .tmx import (
    ORIENTATION, Image, ImageLayer, Tile, TileLayer, Tileset, z_level,
)

logger = logging.getLogger(__name__)

BACKGROUND = "background"


@dataclass
class Map(Tileable):
    """
    A single-tileset, orthogonal TMX map.

    ==========================================================================
    ATTRIBUTES
    ==========================================================================

    width, height         : map size in tiles
    tilewidth, tileheight : tile size in pixels
    properties            : map-level (root) properties
    tileset               : the one tileset, grows as new sources are set
    tile_layers           : z-level layers (plus any foreign layers read
                            from a file, which are kept but not composited)
    image_layers          : background / overlay images

    The tile id allocator (_next_id) belongs to the map. On decode it is
    rebuilt as max(existing tile ids) + 1.

    ==========================================================================
    NOT THREAD SAFE
    ==========================================================================

    No locking. Don't mutate a map while it is being encoded or while it
    takes part in fits()/add().

    ==========================================================================
    """
    width: int
    height: int
    tilewidth: int
    tileheight: int
    orientation: str = ORIENTATION
    properties: Properties = field(default_factory=Properties)
    tileset: Tileset = field(default_factory=Tileset)
    tile_layers: List[TileLayer] = field(default_factory=list)
    image_layers: List[ImageLayer] = field(default_factory=list)
    _next_id: int = field(default=1, init=False, repr=False, compare=False)

    def __post_init__(self):
        self._next_id = self.tileset.max_id() + 1

    # =========================================================================
    # CELLS
    # =========================================================================

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def layer(self, z: int) -> Optional[TileLayer]:
        """
        The tile layer for z-level `z`, if it exists.

        Layers read from a file may spell the level differently ("01", "+1");
        the first layer naming `z` wins.
        """
        for tl in self.tile_layers:
            if tl.z == z:
                return tl
        return None

    def _new_layer(self, z: int) -> TileLayer:
        layer = TileLayer(name=str(z), width=self.width, height=self.height)
        self.tile_layers.append(layer)
        logger.debug("created layer %s", layer.name)
        return layer

    def _new_tile(self, source: str) -> Tile:
        tile = Tile(
            id=self._next_id,
            image=Image(source=source, width=self.tilewidth, height=self.tileheight),
        )
        self.tileset.add(tile)
        self._next_id += 1
        logger.debug("new tile %d: %s", tile.id, source)
        return tile

    def _tile_for(self, source: str) -> Tile:
        tile = self.tileset.tile_by_source(source)
        if tile is None:
            tile = self._new_tile(source)
        return tile

    def set_cell(self, x: int, y: int, z: int, source: str):
        """
        Set the tile at (x, y, z) to the image `source`.

        If the image isn't in the tileset yet it is added. Passing "" sets
        the empty tile (id 0).

        Raises:
        -------
        OutOfBounds : if (x, y) is outside the map
        """
        if not self.in_bounds(x, y):
            raise OutOfBounds(x, y, self.width, self.height)

        layer = self.layer(z)
        if layer is None:
            layer = self._new_layer(z)

        index = y * self.width + x
        if source == "":
            layer.tiles[index] = 0
            return
        layer.tiles[index] = self._tile_for(source).id

    def cell_id(self, x: int, y: int, z: int) -> int:
        """Local tile id at (x, y, z); 0 if empty, unset or out of bounds."""
        layer = self.layer(z)
        if layer is None or not self.in_bounds(x, y):
            return 0
        return layer.tiles[y * self.width + x]

    def cell_source(self, x: int, y: int, z: int) -> str:
        """Image source at (x, y, z), or "" for an empty cell."""
        tile = self.tileset.tile_by_id(self.cell_id(x, y, z))
        return tile.source if tile is not None else ""

    def cell_properties(self, x: int, y: int, z: int) -> Optional[Properties]:
        """
        Properties of the tile at (x, y, z).

        Returns None if there is no tile there (empty cell, no such layer,
        out of bounds or an id missing from the tileset).
        """
        tid = self.cell_id(x, y, z)
        if tid == 0:
            return None
        tile = self.tileset.tile_by_id(tid)
        if tile is None:
            return None
        return tile.properties.copy()

    def occupied_z_levels(self) -> List[int]:
        """All z-levels with a layer, sorted low -> high."""
        return sorted(z for z in (tl.z for tl in self.tile_layers) if z is not None)

    def top_z_at(self, x: int, y: int) -> Optional[int]:
        for z in reversed(self.occupied_z_levels()):
            if self.cell_properties(x, y, z) is not None:
                return z
        return None

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    def source_properties(self, source: str) -> Optional[Properties]:
        """
        Properties of the tile with image `source`, or None if the map has
        no such tile. The empty source never has properties.
        """
        if source == "":
            return None
        tile = self.tileset.tile_by_source(source)
        if tile is None:
            return None
        return tile.properties.copy()

    def set_source_properties(self, source: str, props: Properties):
        """
        Replace (not merge) the properties of the tile with image `source`,
        adding the tile if needed. No-op for the empty source.
        """
        if source == "":
            return
        self._tile_for(source).properties = props.copy()

    def map_properties(self) -> Properties:
        """Properties set on the map itself."""
        return self.properties.copy()

    def set_map_properties(self, props: Properties):
        self.properties = props.copy()

    def set_background(self, source: str):
        """
        Set (or create) the "background" image layer to `source`, sized to
        cover the whole map.
        """
        layer = next((il for il in self.image_layers if il.name == BACKGROUND), None)
        if layer is None:
            layer = ImageLayer(name=BACKGROUND, image=Image(source=source))
            self.image_layers.append(layer)

        layer.image.source = source
        layer.image.width = self.tilewidth * self.width
        layer.image.height = self.tileheight * self.height

    # =========================================================================
    # COMPOSITING
    # =========================================================================

    def fits(self, x: int, y: int, zoffset: int, o: 'Map') -> bool:
        return compositor.fits(self, x, y, zoffset, o)

    def add(self, x: int, y: int, zoffset: int, o: 'Map') -> int:
        return compositor.add(self, x, y, zoffset, o)

    # =========================================================================
    # ENCODING
    # =========================================================================

    def to_xml(self) -> ET.Element:
        """
        Build the <map> element.

        Tiled renders layers in order of id, low -> high, so layers are
        sorted by z-level first and then numbered: image layers 1..n, tile
        layers after them. Names that aren't z-levels sort as 0.
        """
        def order(layer):
            z = z_level(layer.name)
            return z if z is not None else 0

        self.image_layers.sort(key=order)
        self.tile_layers.sort(key=order)
        for i, il in enumerate(self.image_layers):
            il.id = i + 1
        for i, tl in enumerate(self.tile_layers):
            tl.id = i + len(self.image_layers) + 1

        root = ET.Element('map')
        root.set('version', '1.10')
        root.set('orientation', self.orientation)
        root.set('renderorder', 'right-down')
        root.set('width', str(self.width))
        root.set('height', str(self.height))
        root.set('tilewidth', str(self.tilewidth))
        root.set('tileheight', str(self.tileheight))

        properties_to_xml(root, self.properties.to_list())
        root.append(self.tileset.to_xml())
        for il in self.image_layers:
            root.append(il.to_xml())
        for tl in self.tile_layers:
            root.append(tl.to_xml(self.tileset.firstgid))

        _indent(root)
        return root

    def encode(self, writer: BinaryIO):
        """Write the map as TMX XML to a binary stream."""
        ET.ElementTree(self.to_xml()).write(writer, encoding='utf-8', xml_declaration=True)

    def write_file(self, path: Union[str, Path]):
        with open(path, 'wb') as f:
            self.encode(f)

    @classmethod
    def from_xml(cls, root: ET.Element) -> 'Map':
        """
        Build a Map from a parsed <map> element.

        Raises:
        -------
        ParseError         : not a map, unsupported orientation or layer data
        UnsupportedTileset : zero or more than one tileset
        """
        if root.tag != 'map':
            raise ParseError(f"expected <map> root element, got <{root.tag}>")

        orientation = root.get('orientation', ORIENTATION)
        if orientation != ORIENTATION:
            raise ParseError(f"unsupported orientation {orientation!r}")

        tilesets = root.findall('tileset')
        if len(tilesets) != 1:
            raise UnsupportedTileset(f"expected exactly 1 tileset, found {len(tilesets)}")
        tileset = Tileset.from_xml(tilesets[0])

        try:
            width = int(root.get('width', 0))
            height = int(root.get('height', 0))
            tilewidth = int(root.get('tilewidth', 0))
            tileheight = int(root.get('tileheight', 0))
        except ValueError as err:
            raise ParseError(f"invalid map dimensions: {err}") from err

        m = cls(
            width=width,
            height=height,
            tilewidth=tilewidth,
            tileheight=tileheight,
            orientation=orientation,
            properties=Properties.from_list(properties_from_xml(root)),
            tileset=tileset,
            image_layers=[ImageLayer.from_xml(e) for e in root.findall('imagelayer')],
        )

        for elem in root.findall('layer'):
            layer = TileLayer.from_xml(elem, tileset.firstgid)
            if (layer.width, layer.height) != (m.width, m.height):
                raise ParseError(
                    f"layer {layer.name!r} is {layer.width}x{layer.height}, "
                    f"map is {m.width}x{m.height}"
                )
            m.tile_layers.append(layer)

        return m


def _indent(elem: ET.Element, level: int = 0):
    """
    Add indentation to XML for readable output.

    Elements that already carry text (the csv <data>) keep it as is.
    """
    indent = "\n" + "  " * level

    if len(elem):  # Has children
        if not elem.text or not elem.text.strip():
            elem.text = indent + "  "
        if not elem.tail or not elem.tail.strip():
            elem.tail = indent

        for child in elem:
            _indent(child, level + 1)

        # Last child's tail
        if not child.tail or not child.tail.strip():
            child.tail = indent
    else:
        if level and (not elem.tail or not elem.tail.strip()):
            elem.tail = indent


# =============================================================================
# CONSTRUCTORS
# =============================================================================

def new(config: Optional[Config] = None) -> Map:
    """Create an empty map with a fresh default tileset (first gid 1)."""
    cfg = config or default_config()
    return Map(
        width=cfg.map_width,
        height=cfg.map_height,
        tilewidth=cfg.tile_width,
        tileheight=cfg.tile_height,
        tileset=Tileset(
            firstgid=1,
            name="default",
            tilewidth=cfg.tile_width,
            tileheight=cfg.tile_height,
        ),
    )


def decode(reader) -> Map:
    """
    Decode a TMX map from a file object.

    Raises:
    -------
    ParseError : malformed XML or unsupported content (nothing partial is
                 returned)
    """
    try:
        root = ET.parse(reader).getroot()
    except ET.ParseError as err:
        raise ParseError(f"malformed map XML: {err}") from err
    return Map.from_xml(root)


def open_file(path: Union[str, Path]) -> Map:
    with open(path, 'rb') as f:
        return decode(f)
