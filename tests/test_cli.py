import pytest
from click.testing import CliRunner
from PIL import Image

from tmx_tiler.cli import main
from tmx_tiler.config import Config
from tmx_tiler.infinite import open_infinite_map
from tmx_tiler.map import new, open_file


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def tree_tmx(tmp_path, tree):
    path = tmp_path / "tree.tmx"
    tree.write_file(path)
    return path


@pytest.fixture
def base_tmx(tmp_path):
    path = tmp_path / "base.tmx"
    new(Config(map_width=10, map_height=10)).write_file(path)
    return path


# =============================================================================
# TOB
# =============================================================================

def test_tob_writes_tiles_and_map(runner, tmp_path, make_png):
    src = make_png("picture.png", 100, 100)
    out = tmp_path / "out"

    result = runner.invoke(main, [
        "tob", "-i", str(src), "-n", "tree", "-o", str(out),
        "-p", "kind=tree", "-p", "hp=3", "-z", "1",
        "0", "0", "2t", "2t",
    ])

    assert result.exit_code == 0, result.output
    assert sorted(p.name for p in out.glob("*.png")) == [
        "tree.0.0.10.png", "tree.0.1.0.png", "tree.1.0.10.png", "tree.1.1.0.png",
    ]

    m = open_file(out / "tree.tmx")
    assert (m.width, m.height) == (2, 2)
    assert m.cell_source(1, 1, 0) == "tree.1.1.0.png"
    props = m.source_properties("tree.1.1.0.png")
    assert props.get_string("kind") == "tree"
    assert props.get_int("hp") == 3


def test_tob_dry_run_writes_nothing(runner, tmp_path, make_png):
    src = make_png("picture.png", 64, 64)
    out = tmp_path / "out"

    result = runner.invoke(main, ["tob", "-i", str(src), "-o", str(out), "--dry-run"])

    assert result.exit_code == 0, result.output
    assert "dry-run" in result.output
    assert not out.exists()


def test_tob_image_only(runner, tmp_path, make_png):
    src = make_png("picture.png", 64, 64)
    out = tmp_path / "out"

    result = runner.invoke(main, [
        "tob", "-i", str(src), "-n", "rock", "-o", str(out), "--image-only",
    ])

    assert result.exit_code == 0, result.output
    assert (out / "rock.0.0.0.png").exists()
    assert not (out / "rock.tmx").exists()


def test_tob_keeps_existing_files_without_overwrite(runner, tmp_path, make_png):
    src = make_png("picture.png", 32, 32)
    out = tmp_path / "out"
    out.mkdir()
    (out / "rock.tmx").write_text("keep me")

    result = runner.invoke(main, ["tob", "-i", str(src), "-n", "rock", "-o", str(out)])
    assert result.exit_code == 0, result.output
    assert (out / "rock.tmx").read_text() == "keep me"

    result = runner.invoke(main, [
        "tob", "-i", str(src), "-n", "rock", "-o", str(out), "--overwrite",
    ])
    assert result.exit_code == 0, result.output
    assert open_file(out / "rock.tmx").cell_source(0, 0, 0) == "rock.0.0.0.png"


def test_tob_bad_prop(runner, make_png):
    src = make_png("picture.png", 32, 32)
    result = runner.invoke(main, ["tob", "-i", str(src), "-p", "nonsense"])
    assert result.exit_code != 0
    assert "key=value" in result.output


def test_tob_bad_offset(runner, make_png):
    src = make_png("picture.png", 32, 32)
    result = runner.invoke(main, ["tob", "-i", str(src), "0", "0", "xt", "1t"])
    assert result.exit_code != 0


def test_tob_unreadable_image(runner, tmp_path):
    src = tmp_path / "broken.png"
    src.write_bytes(b"not a png")
    result = runner.invoke(main, ["tob", "-i", str(src)])
    assert result.exit_code == 1


# =============================================================================
# CUTTER
# =============================================================================

def test_cutter(runner, tmp_path):
    src = tmp_path / "sheet.png"
    Image.new('RGBA', (34, 36), (0, 255, 0, 255)).save(src)

    result = runner.invoke(main, ["cutter", "-i", str(src)])

    assert result.exit_code == 0, result.output
    with Image.open(f"{src}.cut.png") as out:
        assert out.size == (32, 32)


# =============================================================================
# PLACE
# =============================================================================

def test_place_onto_tmx(runner, base_tmx, tree_tmx):
    result = runner.invoke(main, ["place", str(base_tmx), str(tree_tmx), "3", "3", "0"])

    assert result.exit_code == 0, result.output
    assert "placed 8 tiles" in result.output
    assert open_file(base_tmx).cell_source(4, 6, 3) == "tree.1.3.png"


def test_place_refuses_overlap_unless_forced(runner, base_tmx, tree_tmx):
    args = ["place", str(base_tmx), str(tree_tmx), "3", "3", "0"]
    assert runner.invoke(main, args).exit_code == 0

    result = runner.invoke(main, args)
    assert result.exit_code == 1
    assert "does not fit" in result.output

    result = runner.invoke(main, args + ["--force"])
    assert result.exit_code == 0, result.output


def test_place_to_other_output(runner, tmp_path, base_tmx, tree_tmx):
    out = tmp_path / "world.tmx"
    result = runner.invoke(main, [
        "place", str(base_tmx), str(tree_tmx), "0", "0", "-o", str(out),
    ])

    assert result.exit_code == 0, result.output
    assert open_file(out).cell_source(0, 0, 0) == "tree.0.0.png"
    assert open_file(base_tmx).tile_layers == []


def test_place_onto_infinite_map_and_render(runner, tmp_path, tree_tmx):
    db = tmp_path / "world.sqlite"
    open_infinite_map(db).close()

    result = runner.invoke(main, ["place", "--infinite", str(db), str(tree_tmx), "20", "30", "0"])
    assert result.exit_code == 0, result.output

    out = tmp_path / "region.tmx"
    result = runner.invoke(main, [
        "map-render", "-i", str(db), "-o", str(out),
        "--x0", "20", "--y0", "30", "--x1", "25", "--y1", "35",
        "-p", "name=forest",
    ])
    assert result.exit_code == 0, result.output

    m = open_file(out)
    assert (m.width, m.height) == (5, 5)
    assert m.cell_source(1, 2, 2) == "tree.1.2.png"
    assert m.map_properties().get_string("name") == "forest"


def test_map_render_default_output_name(runner, tmp_path):
    db = tmp_path / "world.sqlite"
    with open_infinite_map(db) as inf:
        inf.set_cell(0, 0, 0, "grass.png")

    result = runner.invoke(main, ["map-render", "-i", str(db), "--x1", "2", "--y1", "2"])

    assert result.exit_code == 0, result.output
    assert open_file(f"{db}_0.0_2.2.tmx").cell_source(0, 0, 0) == "grass.png"


def test_map_render_empty_region(runner, tmp_path):
    db = tmp_path / "world.sqlite"
    open_infinite_map(db).close()

    result = runner.invoke(main, ["map-render", "-i", str(db)])

    assert result.exit_code == 1
    assert "empty" in result.output
