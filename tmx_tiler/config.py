"""Configuration settings for new maps."""

from dataclasses import dataclass


@dataclass
class Config:
    """Dimensions of a new map."""

    # Map size in tiles
    map_width: int = 100
    map_height: int = 100

    # Tile size in pixels
    tile_width: int = 32
    tile_height: int = 32


def default_config() -> Config:
    """Return a config for a 100x100 map of 32x32 pixel tiles."""
    return Config()
