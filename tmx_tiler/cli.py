#!/usr/bin/env python3
"""Command line tools: tob, cutter, map-render and place."""

import logging
import sys
from pathlib import Path
from typing import Dict, Sequence

import click
from PIL import UnidentifiedImageError

from . import imaging
from .errors import TileError
from .infinite import open_infinite_map
from .map import open_file
from .properties import Properties
from .tob import TileProps, build_tob, prepare_region

logger = logging.getLogger(__name__)

TOB_DESCRIPTION = """Generate a 'tob' (tile object) from a region of a larger image.

A tob is a minimal .tmx file laying out how a set of tile images fit together
to form one object, including z-levels and properties. Tile layers are named
after the z-level their tiles go on, so tobs can be merged into larger maps.

The region X0,Y0 -> X1,Y1 is cut out of the input image, resized to a whole
number of tiles, cut into tiles (<name>.<x>.<y>.<z>.png) and described in
<name>.tmx. X1 / Y1 are absolute pixels or '<n>t' for n tiles from X0 / Y0.
"""


def _parse_pairs(ctx, param, values: Sequence[str]) -> Dict[str, str]:
    """click callback turning repeated key=value options into a dict."""
    pairs = {}
    for value in values:
        key, sep, val = value.partition('=')
        if not sep or not key:
            raise click.BadParameter(f"expected key=value, got {value!r}")
        pairs[key] = val
    return pairs


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log debug output")
def main(verbose: bool):
    """Build and composite TMX tile maps."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


# =============================================================================
# TOB
# =============================================================================

@main.command(help=TOB_DESCRIPTION)
@click.option("--input", "-i", "input_path", required=True,
              type=click.Path(exists=True, dir_okay=False), help="Input image")
@click.option("--name", "-n", default="out", help="Output name")
@click.option("--output-dir", "-o", default=".", type=click.Path(file_okay=False),
              help="Where to write tile images and the .tmx")
@click.option("--overwrite", is_flag=True, help="Overwrite existing file(s) if found")
@click.option("--resize-x", default=0, type=int,
              help="Resize the region's width to this many tiles")
@click.option("--resize-y", default=0, type=int,
              help="Resize the region's height to this many tiles")
@click.option("--resize-by-padding", is_flag=True,
              help="When resizing a smaller region, pad with transparency instead of stretching")
@click.option("--tile-width", default=32, type=int, help="Width of each tile in px")
@click.option("--tile-height", default=32, type=int, help="Height of each tile in px")
@click.option("--z-bottom", "-b", default=0, type=int, help="z-level of the lowest tiles")
@click.option("--z-layers", "-z", multiple=True, type=int,
              help="Break the image into z-levels at these row counts (from the bottom)")
@click.option("--invert", is_flag=True, help="Count --z-layers from the top instead")
@click.option("--mult", default=10, type=int,
              help="Gap between z-levels (leaves room for layers added later)")
@click.option("--prop", "-p", "props", multiple=True, callback=_parse_pairs,
              help="key=value property set on every tile")
@click.option("--tile-x", default=0, type=int, help="x of the tile getting --tile-prop")
@click.option("--tile-y", default=0, type=int, help="y of the tile getting --tile-prop")
@click.option("--tile-z", default=0, type=int, help="z of the tile getting --tile-prop")
@click.option("--tile-prop", "tile_props", multiple=True, callback=_parse_pairs,
              help="key=value property set on the tile at --tile-x/y/z")
@click.option("--rotate", default="0", type=click.Choice(["0", "90", "180", "270"]),
              help="Rotate each tile clockwise (tiles assumed square)")
@click.option("--image-only", is_flag=True, help="Only cut out image(s), no .tmx")
@click.option("--dry-run", is_flag=True, help="Print what would be done and stop")
@click.argument("x0", type=int, default=0, required=False)
@click.argument("y0", type=int, default=0, required=False)
@click.argument("x1", default="1t", required=False)
@click.argument("y1", default="1t", required=False)
def tob(input_path, name, output_dir, overwrite, resize_x, resize_y, resize_by_padding,
        tile_width, tile_height, z_bottom, z_layers, invert, mult, props,
        tile_x, tile_y, tile_z, tile_props, rotate, image_only, dry_run,
        x0, y0, x1, y1):
    try:
        x1 = imaging.parse_offset(tile_width, x0, x1)
        y1 = imaging.parse_offset(tile_height, y0, y1)
    except ValueError as err:
        raise click.BadParameter(f"X1/Y1 must be pixels or '<n>t': {err}") from err

    try:
        src = imaging.load_rgba(input_path)
    except (OSError, UnidentifiedImageError) as err:
        raise click.ClickException(str(err)) from err

    region = prepare_region(src, (x0, y0, x1, y1), tile_width, tile_height,
                            resize_x, resize_y, resize_by_padding)
    width = region.width // tile_width
    height = region.height // tile_height

    logger.info("read (%d,%d)->(%d,%d) from %s, resized to %dx%d tiles (%d new tiles)",
                x0, y0, x1, y1, input_path, width, height, width * height)

    if dry_run:
        click.echo("dry-run: doing nothing")
        return

    m, tiles = build_tob(
        region, name,
        tile_width=tile_width,
        tile_height=tile_height,
        z_layers=z_layers,
        invert=invert,
        mult=mult,
        z_bottom=z_bottom,
        props=Properties.from_strings(props),
        tile_props=TileProps(x=tile_x, y=tile_y, z=tile_z, props=tile_props),
        rotation=int(rotate),
    )

    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    for tile in tiles:
        path = out / tile.filename
        if path.exists() and not overwrite:
            logger.info("skipping %s, exists", path)
            continue
        tile.image.save(path)

    if image_only:
        logger.info("skipping %s.tmx, --image-only supplied", name)
        return

    tmx_path = out / f"{name}.tmx"
    if tmx_path.exists() and not overwrite:
        logger.info("skipping %s, exists", tmx_path)
        return
    m.write_file(tmx_path)
    click.echo(f"wrote {tmx_path}")


# =============================================================================
# CUTTER
# =============================================================================

@main.command()
@click.option("--input", "-i", "input_path", required=True,
              type=click.Path(exists=True, dir_okay=False), help="Input image")
@click.option("--tile-width", default=16, type=int)
@click.option("--tile-height", default=16, type=int)
@click.option("--line-width", default=1, type=int, help="Width of the grid lines in px")
@click.option("--offset-x", default=1, type=int, help="x of the first grid line")
@click.option("--offset-y", default=2, type=int, help="y of the first grid line")
def cutter(input_path, tile_width, tile_height, line_width, offset_x, offset_y):
    """Remove grid lines from a tiled image by cutting out tiles & re-gluing them."""
    try:
        src = imaging.load_rgba(input_path)
    except (OSError, UnidentifiedImageError) as err:
        raise click.ClickException(str(err)) from err

    out = imaging.remove_grid_lines(src, tile_width, tile_height, line_width, offset_x, offset_y)
    out_path = f"{input_path}.cut.png"
    out.save(out_path)
    click.echo(f"wrote {out_path}")


# =============================================================================
# MAP-RENDER
# =============================================================================

@main.command("map-render")
@click.option("--input", "-i", "input_path", required=True,
              type=click.Path(exists=True, dir_okay=False),
              help="Infinite map database file")
@click.option("--output", "-o", default=None,
              help="Output .tmx (default: <input>_<x0>.<y0>_<x1>.<y1>.tmx); overwritten if it exists")
@click.option("--tile-width", default=32, type=int, help="Width of each tile in px")
@click.option("--tile-height", default=32, type=int, help="Height of each tile in px")
@click.option("--x0", default=0, type=int, help="x of the top left corner")
@click.option("--y0", default=0, type=int, help="y of the top left corner")
@click.option("--x1", default=0, type=int, help="x of the bottom right corner (exclusive)")
@click.option("--y1", default=0, type=int, help="y of the bottom right corner (exclusive)")
@click.option("--prop", "-p", "props", multiple=True, callback=_parse_pairs,
              help="key=value property set on the map")
def map_render(input_path, output, tile_width, tile_height, x0, y0, x1, y1, props):
    """Write a .tmx map of a region of an infinite map database."""
    if output is None:
        output = f"{input_path}_{x0}.{y0}_{x1}.{y1}.tmx"

    try:
        with open_infinite_map(input_path) as inf:
            m = inf.materialize(tile_width, tile_height, x0, y0, x1, y1)
        m.set_map_properties(Properties.from_strings(props))
        m.write_file(output)
    except TileError as err:
        raise click.ClickException(str(err)) from err

    click.echo(f"wrote {output}")


# =============================================================================
# PLACE
# =============================================================================

@main.command()
@click.argument("base", type=click.Path(exists=True, dir_okay=False))
@click.argument("obj", type=click.Path(exists=True, dir_okay=False))
@click.argument("x", type=int)
@click.argument("y", type=int)
@click.argument("z", type=int, default=-1, required=False)
@click.option("--infinite", is_flag=True, help="BASE is an infinite map database")
@click.option("--output", "-o", default=None,
              help="Where to write the result (.tmx bases only; default: overwrite BASE)")
@click.option("--force", is_flag=True, help="Place even if it overwrites existing tiles")
def place(base, obj, x, y, z, infinite, output, force):
    """
    Place tile object OBJ onto BASE at X,Y with z-offset Z.

    A negative Z (the default) stacks OBJ on top of whatever is at X,Y.
    """
    try:
        o = open_file(obj)
        if infinite:
            with open_infinite_map(base) as target:
                placed = _place(target, x, y, z, o, force)
        else:
            target = open_file(base)
            placed = _place(target, x, y, z, o, force)
            target.write_file(output or base)
    except TileError as err:
        raise click.ClickException(str(err)) from err

    click.echo(f"placed {placed} tiles")


def _place(target, x, y, z, o, force) -> int:
    if not target.fits(x, y, z, o) and not force:
        raise click.ClickException(
            f"object does not fit at ({x}, {y}, {z}); use --force to overwrite"
        )
    return target.add(x, y, z, o)


if __name__ == "__main__":
    main()
