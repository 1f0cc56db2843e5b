"""
Exceptions raised by tmx_tiler.

Every error derives from TileError so callers can catch the whole family
with one clause. Lookups (cell_properties, source_properties, ...) never
raise: absence is reported as None.
"""


class TileError(Exception):
    """Base class for all tmx_tiler errors."""


class ParseError(TileError):
    """A serialized map could not be decoded."""


class MalformedGrid(ParseError):
    """A tile grid token is not a valid unsigned integer."""


class UnsupportedTileset(ParseError):
    """The map has zero or more than one tileset."""


class OutOfBounds(TileError, IndexError):
    """A cell write falls outside the map extent."""

    def __init__(self, x: int, y: int, width: int, height: int):
        super().__init__(
            f"cell ({x}, {y}) is out of bounds for a {width}x{height} map"
        )
        self.x = x
        self.y = y


class InvalidRegion(TileError, ValueError):
    """A requested region has a non-positive width or height."""


class StorageError(TileError):
    """The persistent store failed (I/O, locking or transaction error)."""
