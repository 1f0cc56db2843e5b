"""
Tileable interface.

Anything tile objects can be placed on implements this: the in-memory Map
and the sqlite-backed InfiniteMap. Code that places objects (the compositor,
the CLI) only talks to this interface.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

from .properties import Properties

if TYPE_CHECKING:
    from .map import Map


class Tileable(ABC):
    """Something we can set tiles on and place tile objects onto."""

    @abstractmethod
    def set_cell(self, x: int, y: int, z: int, source: str):
        """Set the tile at (x, y, z) to the image `source` ("" clears it)."""

    @abstractmethod
    def add(self, x: int, y: int, zoffset: int, o: 'Map'):
        """
        Place tile object `o` with its top-left corner at (x, y).

        Object layer z is written to z + zoffset. A negative zoffset means
        "on top of whatever is at (x, y)" (see top_z_at). Properties of the
        placed tiles are merged, incoming values winning.
        """

    @abstractmethod
    def fits(self, x: int, y: int, zoffset: int, o: 'Map') -> bool:
        """True if placing `o` at (x, y, zoffset) would overwrite nothing."""

    @abstractmethod
    def top_z_at(self, x: int, y: int) -> Optional[int]:
        """Highest z-level holding a tile at (x, y), or None."""

    @abstractmethod
    def source_properties(self, source: str) -> Optional[Properties]:
        """Properties of the tile with image `source`."""

    @abstractmethod
    def set_source_properties(self, source: str, props: Properties):
        """Replace the properties of the tile with image `source`."""
