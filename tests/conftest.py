"""Shared fixtures for the tmx_tiler tests."""

import pytest
from PIL import Image

from tmx_tiler.config import Config
from tmx_tiler.infinite import open_infinite_map
from tmx_tiler.map import new


@pytest.fixture
def base():
    """An empty 10x10 map of 32x32 tiles."""
    return new(Config(map_width=10, map_height=10))


@pytest.fixture
def tree():
    """
    A 2x4 tile object with one z-level per row:

        row 0 -> layer "0", row 1 -> layer "1", ...
    """
    o = new(Config(map_width=2, map_height=4))
    for y in range(4):
        for x in range(2):
            o.set_cell(x, y, y, f"tree.{x}.{y}.png")
    return o


@pytest.fixture
def store(tmp_path):
    with open_infinite_map(tmp_path / "world.sqlite") as inf:
        yield inf


@pytest.fixture
def make_png(tmp_path):
    """Write a solid colour RGBA png and return its path."""
    def _make(name, width, height, colour=(255, 0, 0, 255)):
        path = tmp_path / name
        Image.new('RGBA', (width, height), colour).save(path)
        return path
    return _make
