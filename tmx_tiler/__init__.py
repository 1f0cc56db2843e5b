"""
tmx_tiler - build large TMX tile maps out of small tile objects

Requisitos:
    pip install click pillow numpy
"""

from .config import Config, default_config
from .errors import (
    TileError, ParseError, MalformedGrid, UnsupportedTileset,
    OutOfBounds, InvalidRegion, StorageError,
)
from .properties import Properties
from .codec import encode_grid, decode_grid
from .interface import Tileable
from .map import Map, new, decode, open_file
from .infinite import InfiniteMap, open_infinite_map, new_infinite_map

__version__ = "0.1.0"
__all__ = [
    "Config",
    "default_config",
    "TileError",
    "ParseError",
    "MalformedGrid",
    "UnsupportedTileset",
    "OutOfBounds",
    "InvalidRegion",
    "StorageError",
    "Properties",
    "encode_grid",
    "decode_grid",
    "Tileable",
    "Map",
    "new",
    "decode",
    "open_file",
    "InfiniteMap",
    "open_infinite_map",
    "new_infinite_map",
]
