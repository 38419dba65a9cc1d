"""Tests for the command-line runner and its I/O helpers."""

import json
import sys

import numpy as np
import pytest
from PIL import Image

import volume_segmentation as cli
from volseg import Mesh, VolumeSegmentationParameters, VoxelVolume

from synthetic_volume import make_cube_volume


def test_load_volume_from_slices(tmp_path):
    data = np.arange(3 * 4 * 5, dtype=np.uint8).reshape(3, 4, 5)
    for z in range(3):
        Image.fromarray(data[z]).save(tmp_path / f"slice_{z:03d}.png")
    (tmp_path / "notes.txt").write_text("ignored")
    volume = cli.load_volume_slices(str(tmp_path))
    assert volume.dtype == np.float32
    assert np.array_equal(volume, data.astype(np.float32))


def test_load_volume_from_npy(tmp_path):
    path = tmp_path / "volume.npy"
    np.save(path, make_cube_volume())
    assert cli.load_volume_slices(str(path)).shape == (10, 10, 10)

    np.save(tmp_path / "flat.npy", np.zeros((4, 4)))
    with pytest.raises(ValueError):
        cli.load_volume_slices(str(tmp_path / "flat.npy"))


def test_load_volume_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        cli.load_volume_slices(str(tmp_path / "missing"))
    with pytest.raises(FileNotFoundError):
        cli.load_volume_slices(str(tmp_path))
    Image.fromarray(np.zeros((4, 4), dtype=np.uint8)).save(tmp_path / "a.png")
    Image.fromarray(np.zeros((5, 4), dtype=np.uint8)).save(tmp_path / "b.png")
    with pytest.raises(ValueError):
        cli.load_volume_slices(str(tmp_path))


def test_load_seed_file(tmp_path):
    path = tmp_path / "seeds.json"
    path.write_text(json.dumps({"inside": [[5, 5, 5]], "pairs": [[[1, 2, 3], [4, 5, 6]]]}))
    seeds = cli.load_seed_file(str(path))
    assert seeds["inside"] == [(5, 5, 5)]
    assert seeds["outside"] == []
    assert seeds["pairs"] == [((1.0, 2.0, 3.0), (4.0, 5.0, 6.0))]

    path.write_text(json.dumps({"inisde": []}))
    with pytest.raises(ValueError):
        cli.load_seed_file(str(path))


def test_save_mesh_obj(tmp_path):
    mesh = Mesh([(0, 0, 0), (1, 0, 0), (0, 1, 0)], [(0, 1, 2)])
    out = tmp_path / "sub" / "mesh.obj"
    cli.save_mesh_obj(mesh, str(out))
    lines = out.read_text().splitlines()
    assert lines[0].startswith("#")
    assert lines[1:4] == ["v 0.000000 0.000000 0.000000", "v 1.000000 0.000000 0.000000",
                          "v 0.000000 1.000000 0.000000"]
    assert lines[4] == "f 1 2 3"


def test_run_segmentation_synthetic():
    data, seeds = cli._synthetic_case()
    mesh = cli.run_segmentation(VoxelVolume(data), seeds, VolumeSegmentationParameters())
    assert mesh.is_closed()


def test_main_writes_mesh(tmp_path, monkeypatch, capsys):
    np.save(tmp_path / "volume.npy", make_cube_volume())
    (tmp_path / "seeds.json").write_text(json.dumps({"inside": [[5, 5, 5]], "outside": [[0, 0, 0]]}))
    out = tmp_path / "mesh.obj"
    monkeypatch.setattr(sys, "argv", ["volume_segmentation.py", "--volume", str(tmp_path / "volume.npy"),
                                      "--seeds", str(tmp_path / "seeds.json"), "--output", str(out),
                                      "--expansion", "3"])
    cli.main()
    summary = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert summary["ok"]
    assert summary["closed"]
    assert summary["faces"] > 0
    assert out.exists()


def test_main_reports_failure(tmp_path, monkeypatch, capsys):
    np.save(tmp_path / "volume.npy", make_cube_volume())
    (tmp_path / "seeds.json").write_text(json.dumps({"outside": [[0, 0, 0]]}))
    out = tmp_path / "mesh.obj"
    monkeypatch.setattr(sys, "argv", ["volume_segmentation.py", "--volume", str(tmp_path / "volume.npy"),
                                      "--seeds", str(tmp_path / "seeds.json"), "--output", str(out)])
    cli.main()
    summary = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert not summary["ok"]
    assert "No seeds" in summary["error"]
    assert not out.exists()


def test_tqdm_callback_never_cancels():
    callback = cli.TqdmCallback("test")
    assert callback(0.25) is True
    assert callback(1.0) is True
    assert callback.bar.n == 100
    callback.close()
