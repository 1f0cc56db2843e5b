"""
Infinite map: a tile map stored in SQLite.

=============================================================================
WHY
=============================================================================

An in-memory Map keeps a dense grid per z-level, which stops being practical
for very large worlds. InfiniteMap keeps one row per placed tile instead, so
only tiles that exist cost anything, and any rectangle of it can be turned
back into a normal Map (materialize) to be written out as a .tmx of a
practical size.

=============================================================================
TABLES
=============================================================================

    tiles(x, y, z, src)     primary key (x, y, z); writing a cell again
                            replaces its source
    properties(src, data)   primary key src; data is Properties.to_json()

There is no delete: cells and properties live until overwritten.

=============================================================================
WRITES AND TRANSACTIONS
=============================================================================

add() writes in two steps:

    1. every tile of the object, in one batch
    2. read-merge-write of the properties of every placed source, in one
       IMMEDIATE transaction (takes SQLite's write lock before reading, so
       concurrent adds can't both merge against the same stale bag)

The two steps are not atomic together. If step 2 fails it is rolled back,
but the tiles from step 1 stay: callers should treat a failed add() as
"tiles may be placed, properties were not updated".

=============================================================================
"""

import logging
import os
import sqlite3
import tempfile
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union
from uuid import uuid4

from . import compositor
from .config import Config
from .errors import InvalidRegion, StorageError
from .interface import Tileable
from .map import Map, new
from .properties import Properties

logger = logging.getLogger(__name__)

SQL_CREATE_TILES = """
    CREATE TABLE IF NOT EXISTS tiles (
        x INTEGER NOT NULL,
        y INTEGER NOT NULL,
        z INTEGER NOT NULL,
        src TEXT NOT NULL,
        PRIMARY KEY (x, y, z)
    )
"""
SQL_CREATE_PROPS = """
    CREATE TABLE IF NOT EXISTS properties (
        src TEXT PRIMARY KEY,
        data TEXT
    )
"""
SQL_UPSERT_TILE = (
    "INSERT INTO tiles (x, y, z, src) VALUES (?, ?, ?, ?) "
    "ON CONFLICT (x, y, z) DO UPDATE SET src = excluded.src"
)
SQL_UPSERT_PROPS = (
    "INSERT INTO properties (src, data) VALUES (?, ?) "
    "ON CONFLICT (src) DO UPDATE SET data = excluded.data"
)

# Stay well under SQLite's host parameter limit
_MAX_PARAMS = 500


class InfiniteMap(Tileable):
    """
    Tileable backed by a SQLite database file.

    Every method may block on disk I/O or on another writer's lock. Nothing
    runs in the background. sqlite3 errors surface as StorageError.

    One instance may be shared between threads: all of them go through a
    single connection, one statement or transaction at a time.

    Parameters:
    -----------
    filename : str or Path
        Database file; created (with its tables) if it doesn't exist.
    """

    def __init__(self, filename: Union[str, Path]):
        self._filename = str(filename)
        # guards every use of _conn; re-entrant so add() can query while holding it
        self._lock = threading.RLock()
        try:
            self._conn = sqlite3.connect(self._filename, check_same_thread=False)
            with self._conn:
                self._conn.execute(SQL_CREATE_TILES)
                self._conn.execute(SQL_CREATE_PROPS)
        except sqlite3.Error as err:
            raise StorageError(f"unable to open infinite map {self._filename}: {err}") from err
        logger.debug("opened infinite map %s", self._filename)

    @property
    def filename(self) -> str:
        """Path to the database file."""
        return self._filename

    def close(self):
        with self._lock:
            self._conn.close()

    def __enter__(self) -> 'InfiniteMap':
        return self

    def __exit__(self, *exc):
        self.close()

    # =========================================================================
    # CELLS
    # =========================================================================

    def set_cell(self, x: int, y: int, z: int, source: str):
        try:
            with self._lock, self._conn:
                self._conn.execute(SQL_UPSERT_TILE, (x, y, z, source))
        except sqlite3.Error as err:
            raise StorageError(f"set ({x}, {y}, {z}): {err}") from err

    def cell_source(self, x: int, y: int, z: int) -> str:
        """The source at (x, y, z), or "" if nothing was set there."""
        row = self._query_one(
            "SELECT src FROM tiles WHERE x = ? AND y = ? AND z = ? LIMIT 1",
            (x, y, z),
        )
        return row[0] if row else ""

    def top_z_at(self, x: int, y: int) -> Optional[int]:
        row = self._query_one(
            "SELECT max(z) FROM tiles WHERE x = ? AND y = ? AND src != ''",
            (x, y),
        )
        return row[0] if row else None

    def materialize(self, tile_width: int, tile_height: int,
                    x0: int, y0: int, x1: int, y1: int) -> Map:
        """
        Build an in-memory Map of the rectangle [x0, x1) x [y0, y1).

        Stored (x0, y0) becomes map cell (0, 0). Properties of every source
        in the region are copied onto the map's tiles.

        Raises:
        -------
        InvalidRegion : if x1 <= x0 or y1 <= y0
        """
        if x1 <= x0 or y1 <= y0:
            raise InvalidRegion(
                f"requested region ({x0}, {y0}) -> ({x1}, {y1}) is empty, unable to render map"
            )

        m = new(Config(
            map_width=x1 - x0,
            map_height=y1 - y0,
            tile_width=tile_width,
            tile_height=tile_height,
        ))

        rows = self._query_all(
            "SELECT x, y, z, src FROM tiles WHERE x >= ? AND x < ? AND y >= ? AND y < ?",
            (x0, x1, y0, y1),
        )

        sources = {}
        for x, y, z, src in rows:
            m.set_cell(x - x0, y - y0, z, src)
            if src:
                sources[src] = True

        for src, props in self._properties(sources).items():
            m.set_source_properties(src, props)

        logger.debug("materialized %d tiles from (%d, %d) -> (%d, %d)",
                     len(rows), x0, y0, x1, y1)
        return m

    # =========================================================================
    # COMPOSITING
    # =========================================================================

    def fits(self, x: int, y: int, zoffset: int, o: Map) -> bool:
        """
        Returns if writing `o` at (x, y, zoffset) would overwrite nothing.

        Unlike Map.fits this doesn't look at the object's individual cells:
        the whole box [x, x+width) x [y, y+height) x [z, z+highest+1), where
        `highest` is the object's top z-level, must be free. There are no map
        edges to fall off.
        """
        z = compositor.resolve_zoffset(self, x, y, zoffset)
        levels = o.occupied_z_levels()
        highest = levels[-1] if levels else 0

        row = self._query_one(
            "SELECT count(*) FROM tiles "
            "WHERE x >= ? AND x < ? AND y >= ? AND y < ? AND z >= ? AND z < ? AND src != ''",
            # `highest` is a z-level (0 means "the first layer"), hence the +1
            (x, x + o.width, y, y + o.height, z, z + highest + 1),
        )
        return row[0] == 0

    def add(self, x: int, y: int, zoffset: int, o: Map) -> int:
        """
        Write tile object `o` at (x, y, zoffset), merging its properties into
        the stored ones (incoming wins). Returns the number of tiles written.
        """
        zoffset = compositor.resolve_zoffset(self, x, y, zoffset)

        tiles = []
        incoming: Dict[str, Properties] = {}
        for tx, ty, z, src in compositor.iter_object_tiles(o):
            tiles.append((x + tx, y + ty, z + zoffset, src))
            if src not in incoming:
                incoming[src] = o.source_properties(src)

        try:
            with self._lock, self._conn:
                self._conn.executemany(SQL_UPSERT_TILE, tiles)
        except sqlite3.Error as err:
            raise StorageError(f"add tiles at ({x}, {y}, {zoffset}): {err}") from err

        with self._lock:
            try:
                with self._conn:
                    self._conn.execute("BEGIN IMMEDIATE")
                    existing = self._properties(incoming)
                    merged = [
                        (src, existing.get(src, Properties()).merge(props).to_json())
                        for src, props in incoming.items()
                    ]
                    self._conn.executemany(SQL_UPSERT_PROPS, merged)
            except sqlite3.Error as err:
                raise StorageError(f"merge properties at ({x}, {y}, {zoffset}): {err}") from err

        logger.debug("added %d tiles (%d sources) at (%d, %d, %d)",
                     len(tiles), len(incoming), x, y, zoffset)
        return len(tiles)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    def source_properties(self, source: str) -> Optional[Properties]:
        """
        Properties stored for `source`.

        Asking for "" (the empty tile) always returns None. Otherwise, if no
        properties are stored, an empty Properties is returned.
        """
        if source == "":
            return None
        return self._properties([source]).get(source, Properties())

    def set_source_properties(self, source: str, props: Properties):
        """Overwrite the properties of `source`. No merge."""
        try:
            with self._lock, self._conn:
                self._conn.execute(SQL_UPSERT_PROPS, (source, props.to_json()))
        except sqlite3.Error as err:
            raise StorageError(f"set properties of {source!r}: {err}") from err

    def _properties(self, sources: Iterable[str]) -> Dict[str, Properties]:
        """Bulk load stored properties by source (missing sources are absent)."""
        sources = list(sources)
        result = {}
        for i in range(0, len(sources), _MAX_PARAMS):
            chunk = sources[i:i + _MAX_PARAMS]
            marks = ",".join("?" * len(chunk))
            rows = self._query_all(
                f"SELECT src, data FROM properties WHERE src IN ({marks})", chunk,
            )
            for src, data in rows:
                result[src] = Properties.from_json(data)
        return result

    # =========================================================================
    # QUERY HELPERS
    # =========================================================================

    def _query_all(self, sql: str, params) -> List[Tuple]:
        try:
            with self._lock:
                return self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as err:
            raise StorageError(f"query failed: {err}") from err

    def _query_one(self, sql: str, params) -> Optional[Tuple]:
        try:
            with self._lock:
                row = self._conn.execute(sql, params).fetchone()
        except sqlite3.Error as err:
            raise StorageError(f"query failed: {err}") from err
        if row is None or row[0] is None:
            return None
        return row


def open_infinite_map(filename: Union[str, Path]) -> InfiniteMap:
    """Open (or create) the infinite map stored in `filename`."""
    return InfiniteMap(filename)


def new_infinite_map() -> InfiniteMap:
    """Create an infinite map in a randomly named file in the temp dir."""
    return InfiniteMap(os.path.join(tempfile.gettempdir(), f"infmap.{uuid4().hex}.sqlite"))
