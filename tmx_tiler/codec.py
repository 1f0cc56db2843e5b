"""
CSV tile grid codec.

=============================================================================
FORMAT
=============================================================================

A layer's <data encoding="csv"> element holds the grid row by row:

    <data encoding="csv">
    1,0,
    2,3
    </data>

encode_grid() renders exactly that text: a leading newline, rows joined by
",\\n" and a trailing newline. Keeping this framing fixed makes re-encoding a
decoded map byte-identical.

decode_grid() is forgiving about layout: it throws away everything that is
not a digit or a comma, then splits on commas. It does NOT check the result
against width x height; that is up to the caller.

Only uncompressed CSV is supported. Base64 and compressed data are rejected
by the caller before they get here.

=============================================================================
"""

import array
import re
from typing import Sequence

from .errors import MalformedGrid

# Largest value an on-disk tile id may hold (TMX GIDs are uint32)
MAX_GID = 0xFFFFFFFF

_NOT_CSV = re.compile(r'[^0-9,]')


def encode_grid(width: int, height: int, ids: Sequence[int]) -> str:
    """
    Render `ids` (length width*height, row-major) as CSV grid text.

    Example:
        encode_grid(2, 2, [1, 0, 2, 3]) == "\\n1,0,\\n2,3\\n"
    """
    rows = []
    for y in range(height):
        row_start = y * width
        rows.append(','.join(str(i) for i in ids[row_start:row_start + width]))
    return '\n' + ',\n'.join(rows) + '\n'


def decode_grid(text: str) -> array.array:
    """
    Parse CSV grid text into an array of unsigned tile ids.

    Raises:
    -------
    MalformedGrid : if any token is empty or not a valid uint32
    """
    cleaned = _NOT_CSV.sub('', text or '')
    ids = array.array('I')
    if not cleaned:
        # 0x0 grid
        return ids
    for token in cleaned.split(','):
        if not token:
            raise MalformedGrid("empty tile id in grid data")
        value = int(token)
        if value > MAX_GID:
            raise MalformedGrid(f"tile id {token} exceeds {MAX_GID}")
        ids.append(value)
    return ids
