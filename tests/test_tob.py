from PIL import Image

from tmx_tiler.properties import Properties
from tmx_tiler.tob import TileProps, build_tob, prepare_region, z_for_row


def test_z_for_row_from_bottom():
    assert [z_for_row(y, 4, [2]) for y in range(4)] == [10, 10, 0, 0]


def test_z_for_row_inverted():
    assert [z_for_row(y, 4, [2], invert=True) for y in range(4)] == [0, 0, 10, 10]


def test_z_for_row_several_boundaries():
    assert [z_for_row(y, 4, [1, 3], mult=1, z_bottom=5) for y in range(4)] == [7, 6, 6, 5]


def test_z_for_row_no_layers():
    assert z_for_row(0, 4, [], z_bottom=3) == 3


def test_prepare_region():
    img = Image.new('RGBA', (100, 100), (255, 0, 0, 255))

    assert prepare_region(img, (0, 0, 64, 64), 32, 32).size == (64, 64)
    assert prepare_region(img, (0, 0, 50, 64), 32, 32, resize_x=3, resize_y=1).size == (96, 32)
    assert prepare_region(img, (0, 0, 50, 64), 32, 32, resize_x=1).size == (32, 64)


def test_build_tob():
    img = Image.new('RGBA', (64, 64), (255, 0, 0, 255))
    m, tiles = build_tob(
        img, "tree",
        z_layers=[1],
        props=Properties(strings={"kind": "tree"}),
        tile_props=TileProps(x=0, y=1, z=0, props={"kind": "trunk", "solid": "true"}),
    )

    assert (m.width, m.height) == (2, 2)
    assert m.occupied_z_levels() == [0, 10]
    assert sorted(t.filename for t in tiles) == [
        "tree.0.0.10.png", "tree.0.1.0.png", "tree.1.0.10.png", "tree.1.1.0.png",
    ]
    assert m.cell_source(0, 1, 0) == "tree.0.1.0.png"
    assert m.cell_source(1, 0, 10) == "tree.1.0.10.png"

    trunk = m.source_properties("tree.0.1.0.png")
    assert trunk.get_string("kind") == "trunk"
    assert trunk.get_bool("solid") is True
    assert m.source_properties("tree.1.1.0.png") == Properties(strings={"kind": "tree"})


def test_build_tob_rotates_tiles():
    img = Image.new('RGBA', (32, 32), (255, 0, 0, 255))
    img.paste(Image.new('RGBA', (16, 32), (0, 0, 255, 255)), (16, 0))

    _, tiles = build_tob(img, "r", tile_width=32, tile_height=32, rotation=180)

    assert tiles[0].image.getpixel((0, 0)) == (0, 0, 255, 255)
