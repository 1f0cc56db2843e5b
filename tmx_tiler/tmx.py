"""
TMX element structures (the subset of the Tiled Map Format we read and write).

=============================================================================
WHAT WE SUPPORT
=============================================================================

A TMX file is XML. We only deal with the parts needed to composite maps out
of tile objects:

    <map orientation="orthogonal" width="10" height="10"
         tilewidth="32" tileheight="32">
        <properties> ... </properties>
        <tileset firstgid="1" name="default" tilewidth="32" tileheight="32">
            <tile id="1">
                <image source="grass.png" width="32" height="32"/>
                <properties> ... </properties>
            </tile>
        </tileset>
        <imagelayer id="1" name="background">
            <image source="bg.png" width="320" height="320"/>
        </imagelayer>
        <layer id="2" name="0" width="10" height="10">
            <data encoding="csv">
            2,2,...
            </data>
        </layer>
    </map>

- exactly one embedded tileset, built as an "image collection" (one image
  per tile, the image source is the tile's identity)
- orthogonal orientation only
- uncompressed CSV layer data only
- tile layers are named after their z-level ("0", "1", "10", ...)

=============================================================================
GLOBAL TILE IDs (GIDs)
=============================================================================

In memory a layer cell holds the tile's LOCAL id (0 = empty). On disk it
holds the GID:

    gid = local id + tileset.firstgid      (0 stays 0)

The shift happens in TileLayer.from_xml / TileLayer.to_xml, so nothing else
in the package ever sees a GID.

=============================================================================
"""

import array
import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .codec import decode_grid, encode_grid
from .errors import ParseError
from .properties import Properties, properties_from_xml, properties_to_xml

logger = logging.getLogger(__name__)

ORIENTATION = "orthogonal"
ENCODING_CSV = "csv"

_Z_NAME = re.compile(r'[+-]?[0-9]+\Z')


def _int_attr(elem: ET.Element, name: str, default: int = 0) -> int:
    value = elem.get(name)
    if value is None or value == '':
        return default
    try:
        return int(value)
    except ValueError as err:
        raise ParseError(
            f"<{elem.tag}> attribute {name}={value!r} is not an integer"
        ) from err


# =============================================================================
# IMAGE
# =============================================================================

@dataclass
class Image:
    """Image reference: a tile's picture or an image layer's picture."""
    source: str
    width: Optional[int] = None
    height: Optional[int] = None

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'Image':
        return cls(
            source=elem.get('source', ''),
            # Width/height are optional - use None if not present
            width=_int_attr(elem, 'width') if elem.get('width') else None,
            height=_int_attr(elem, 'height') if elem.get('height') else None,
        )

    def to_xml(self) -> ET.Element:
        elem = ET.Element('image')
        elem.set('source', self.source)
        if self.width:
            elem.set('width', str(self.width))
        if self.height:
            elem.set('height', str(self.height))
        return elem


# =============================================================================
# TILE
# =============================================================================

@dataclass
class Tile:
    """
    One tile of the tileset.

    `id` is local to the tileset and never 0 (0 is the empty cell). The
    image source doubles as the tile's identity: two maps sharing a source
    string are talking about the same tile.
    """
    id: int
    image: Image
    properties: Properties = field(default_factory=Properties)

    @property
    def source(self) -> str:
        return self.image.source

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'Tile':
        img_elem = elem.find('image')
        image = Image.from_xml(img_elem) if img_elem is not None else Image(source='')
        return cls(
            id=_int_attr(elem, 'id'),
            image=image,
            properties=Properties.from_list(properties_from_xml(elem)),
        )

    def to_xml(self) -> ET.Element:
        elem = ET.Element('tile')
        elem.set('id', str(self.id))
        elem.append(self.image.to_xml())
        properties_to_xml(elem, self.properties.to_list())
        return elem


# =============================================================================
# TILESET
# =============================================================================

@dataclass
class Tileset:
    """
    The map's tileset: an ordered list of tiles plus two lookup indices.

    ==========================================================================
    INDICES
    ==========================================================================

    Tiles are looked up two ways:

        by id     -> decoding a layer cell into a tile
        by source -> finding the tile for an image while writing cells

    Both indices are derived from `tiles`. They are rebuilt by reindex()
    after loading and extended by add() when a tile is appended; nothing
    else touches them. Tiles are never removed.

    ==========================================================================
    """
    firstgid: int = 1
    name: str = "default"
    tilewidth: int = 0
    tileheight: int = 0
    properties: Properties = field(default_factory=Properties)
    tiles: List[Tile] = field(default_factory=list)
    _by_id: Dict[int, Tile] = field(default_factory=dict, init=False, repr=False, compare=False)
    _by_source: Dict[str, Tile] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self):
        self.reindex()

    def reindex(self):
        """Rebuild both lookup indices from `tiles`."""
        self._by_id = {}
        self._by_source = {}
        for tile in self.tiles:
            self._index(tile)

    def _index(self, tile: Tile):
        self._by_id[tile.id] = tile
        self._by_source[tile.source] = tile

    def add(self, tile: Tile):
        self.tiles.append(tile)
        self._index(tile)

    def tile_by_id(self, tile_id: int) -> Optional[Tile]:
        return self._by_id.get(tile_id)

    def tile_by_source(self, source: str) -> Optional[Tile]:
        return self._by_source.get(source)

    def max_id(self) -> int:
        return max((t.id for t in self.tiles), default=0)

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'Tileset':
        if elem.get('source'):
            raise ParseError(
                f"external tileset {elem.get('source')!r} is not supported"
            )
        return cls(
            firstgid=_int_attr(elem, 'firstgid', 1),
            name=elem.get('name', ''),
            tilewidth=_int_attr(elem, 'tilewidth'),
            tileheight=_int_attr(elem, 'tileheight'),
            properties=Properties.from_list(properties_from_xml(elem)),
            tiles=[Tile.from_xml(t) for t in elem.findall('tile')],
        )

    def to_xml(self) -> ET.Element:
        elem = ET.Element('tileset')
        elem.set('firstgid', str(self.firstgid))
        elem.set('name', self.name)
        elem.set('tilewidth', str(self.tilewidth))
        elem.set('tileheight', str(self.tileheight))
        elem.set('tilecount', str(len(self.tiles)))
        # image collection tilesets have no columns
        elem.set('columns', '0')
        properties_to_xml(elem, self.properties.to_list())
        for tile in self.tiles:
            elem.append(tile.to_xml())
        return elem


# =============================================================================
# IMAGE LAYER
# =============================================================================

@dataclass
class ImageLayer:
    """Background / overlay image. Opaque to compositing."""
    name: str
    image: Image
    id: int = 0

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'ImageLayer':
        img_elem = elem.find('image')
        return cls(
            id=_int_attr(elem, 'id'),
            name=elem.get('name', ''),
            image=Image.from_xml(img_elem) if img_elem is not None else Image(source=''),
        )

    def to_xml(self) -> ET.Element:
        elem = ET.Element('imagelayer')
        elem.set('id', str(self.id))
        elem.set('name', self.name)
        elem.append(self.image.to_xml())
        return elem


# =============================================================================
# TILE LAYER
# =============================================================================

@dataclass
class TileLayer:
    """
    Tile layer - a dense row-major grid of local tile ids.

    The layer name is the z-level it represents ("0", "1", "-2", ...).
    Layers with other names are carried through encode/decode untouched but
    are ignored for compositing.

    Index calculation: tiles[y * width + x]
    """
    name: str
    width: int
    height: int
    id: int = 0
    properties: Properties = field(default_factory=Properties)
    tiles: array.array = field(default_factory=lambda: array.array('I'))

    def __post_init__(self):
        if not self.tiles:
            self.tiles = array.array('I', [0] * (self.width * self.height))

    @property
    def z(self) -> Optional[int]:
        """The z-level this layer stands for, or None for non-numeric names."""
        return z_level(self.name)

    @classmethod
    def from_xml(cls, elem: ET.Element, firstgid: int) -> 'TileLayer':
        """
        Parse a <layer>, converting GIDs to local ids.

        Raises:
        -------
        ParseError : unsupported data encoding/compression or wrong cell count
        """
        layer = cls(
            id=_int_attr(elem, 'id'),
            name=elem.get('name', ''),
            width=_int_attr(elem, 'width'),
            height=_int_attr(elem, 'height'),
            properties=Properties.from_list(properties_from_xml(elem)),
        )

        data_elem = elem.find('data')
        if data_elem is None:
            return layer

        encoding = data_elem.get('encoding')
        if encoding != ENCODING_CSV or data_elem.get('compression'):
            raise ParseError(
                f"layer {layer.name!r}: only uncompressed csv data is supported "
                f"(got encoding={encoding!r}, compression={data_elem.get('compression')!r})"
            )

        gids = decode_grid(data_elem.text)
        if len(gids) != layer.width * layer.height:
            raise ParseError(
                f"layer {layer.name!r}: expected {layer.width * layer.height} "
                f"tiles, got {len(gids)}"
            )
        layer.tiles = from_gids(gids, firstgid, layer.name)
        return layer

    def to_xml(self, firstgid: int) -> ET.Element:
        elem = ET.Element('layer')
        elem.set('id', str(self.id))
        elem.set('name', self.name)
        elem.set('width', str(self.width))
        elem.set('height', str(self.height))
        properties_to_xml(elem, self.properties.to_list())

        data_elem = ET.SubElement(elem, 'data')
        data_elem.set('encoding', ENCODING_CSV)
        data_elem.text = encode_grid(self.width, self.height, to_gids(self.tiles, firstgid))
        return elem


# =============================================================================
# HELPERS
# =============================================================================

def z_level(name: str) -> Optional[int]:
    """
    Parse a layer name as a z-level.

    Any signed decimal integer counts ("3", "-2", "+3", "03"). Whitespace,
    underscores and other text do not. Returns None for anything else.
    """
    if not isinstance(name, str) or not _Z_NAME.match(name):
        return None
    return int(name, 10)


def to_gids(ids, firstgid: int) -> List[int]:
    """Shift local ids to on-disk GIDs (0 stays 0)."""
    return [i + firstgid if i else 0 for i in ids]


def from_gids(gids, firstgid: int, layer_name: str = '') -> array.array:
    """
    Shift on-disk GIDs back to local ids (0 stays 0).

    A GID that lands on local id 0 or below cannot be told apart from an
    empty cell; it is read as empty and logged.
    """
    ids = array.array('I')
    dropped = 0
    for gid in gids:
        local = gid - firstgid if gid else 0
        if gid and local <= 0:
            dropped += 1
            local = 0
        ids.append(local)
    if dropped:
        logger.warning("layer %r: %d cells reference gids below firstgid+1, read as empty",
                       layer_name, dropped)
    return ids
