import array
import logging

from tmx_tiler import compositor
from tmx_tiler.properties import Properties
from tmx_tiler.tmx import TileLayer


def test_fits_then_add_then_no_longer_fits(base, tree):
    assert base.fits(3, 3, 0, tree)
    assert base.add(3, 3, 0, tree) == 8
    assert not base.fits(3, 3, 0, tree)


def test_add_copies_cells_with_offset(base, tree):
    base.add(3, 3, 2, tree)

    for y in range(4):
        for x in range(2):
            assert base.cell_source(3 + x, 3 + y, y + 2) == f"tree.{x}.{y}.png"
    assert base.occupied_z_levels() == [2, 3, 4, 5]


def test_fits_ignores_other_z_levels(base, tree):
    base.set_cell(3, 3, 1, "rock.png")
    # tree row 0 only has cells on level 0
    assert base.fits(3, 3, 0, tree)
    base.set_cell(3, 4, 1, "rock.png")
    assert not base.fits(3, 3, 0, tree)


def test_off_map_placement_never_fits(base, tree):
    assert not base.fits(9, 9, 0, tree)
    assert not base.fits(-1, 0, 0, tree)


def test_add_clips_off_map_cells(base, tree, caplog):
    with caplog.at_level(logging.WARNING):
        placed = base.add(9, 9, 0, tree)

    assert placed == 1
    assert base.cell_source(9, 9, 0) == "tree.0.0.png"
    assert "clipped 7" in caplog.text


def test_auto_zoffset(base, tree):
    assert compositor.resolve_zoffset(base, 3, 3, -1) == 0
    base.set_cell(3, 3, 4, "rock.png")
    assert compositor.resolve_zoffset(base, 3, 3, -1) == 4
    assert compositor.resolve_zoffset(base, 3, 3, 2) == 2

    base.add(3, 3, -1, tree)
    assert base.cell_source(3, 3, 4) == "tree.0.0.png"
    assert base.cell_source(3, 6, 7) == "tree.0.3.png"


def test_add_merges_properties_incoming_wins(base, tree):
    base.set_source_properties("tree.0.0.png", Properties(
        ints={"hp": 1}, strings={"kind": "old"},
    ))
    tree.set_source_properties("tree.0.0.png", Properties(strings={"kind": "new"}))
    tree.set_source_properties("tree.1.0.png", Properties(bools={"solid": True}))

    base.add(0, 0, 0, tree)

    merged = base.source_properties("tree.0.0.png")
    assert merged.get_int("hp") == 1
    assert merged.get_string("kind") == "new"
    assert base.source_properties("tree.1.0.png").get_bool("solid") is True
    # the object is left alone
    assert tree.source_properties("tree.0.0.png") == Properties(strings={"kind": "new"})


def test_add_skips_cells_without_tiles(base, tree, caplog):
    tree.layer(0).tiles[0] = 99

    with caplog.at_level(logging.WARNING):
        placed = base.add(0, 0, 0, tree)

    assert placed == 7
    assert base.cell_source(0, 0, 0) == ""
    assert base.cell_source(1, 0, 0) == "tree.1.0.png"
    assert "skipped 1" in caplog.text


def test_non_numeric_layers_are_not_placed(base, tree):
    tree.tile_layers.append(TileLayer(
        name="decor", width=2, height=4, tiles=array.array('I', [1] * 8),
    ))

    assert base.add(0, 0, 0, tree) == 8
    assert base.occupied_z_levels() == [0, 1, 2, 3]


def test_iter_object_cells(tree):
    cells = sorted(compositor.iter_object_cells(tree))
    assert len(cells) == 8
    assert cells[0][:3] == (0, 0, 0)
    assert cells[-1][:3] == (1, 3, 3)


def test_placing_onto_infinite_map(store, tree):
    assert store.fits(-50, -50, 0, tree)
    assert store.add(-50, -50, 0, tree) == 8
    assert store.cell_source(-49, -47, 3) == "tree.1.3.png"
    assert not store.fits(-50, -50, 0, tree)
