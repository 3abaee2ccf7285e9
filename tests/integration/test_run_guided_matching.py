"""
Runs scripts/run_guided_matching.py on files written from the synthetic scene.
"""

import numpy as np

from data_io.features_io import load_matches, save_features, save_matches
from data_io.parsing import dump_data
from epimatch.features import IndexedFeatureMatch
from scripts.run_guided_matching import main


def _write_camera(path, cam):
    dump_data({
        "K": cam.K.tolist(),
        "R": cam.R.tolist(),
        "t": cam.t.ravel().tolist(),
        "image_size": list(cam.image_size),
    }, path)


def _write_inputs(tmp_path, scene):
    _write_camera(tmp_path / "cam1.json", scene.cam1)
    _write_camera(tmp_path / "cam2.json", scene.cam2)
    save_features(tmp_path / "f1.npz", scene.feats1)
    save_features(tmp_path / "f2.npz", scene.feats2)
    return [
        "--camera1", str(tmp_path / "cam1.json"),
        "--camera2", str(tmp_path / "cam2.json"),
        "--features1", str(tmp_path / "f1.npz"),
        "--features2", str(tmp_path / "f2.npz"),
    ]


def test_cli_without_seeds(tmp_path, scene):
    args = _write_inputs(tmp_path, scene)
    out = tmp_path / "out" / "guided.json"
    assert main(args + ["--output", str(out)]) == 0
    matches = load_matches(out)
    assert [(m.feature1_ind, m.feature2_ind) for m in matches] == scene.expected


def test_cli_with_duplicate_seeds(tmp_path, scene):
    args = _write_inputs(tmp_path, scene)
    save_matches(tmp_path / "seeds.npz", [
        IndexedFeatureMatch(0, 3, 0.0),
        IndexedFeatureMatch(0, 3, 0.0),
    ])
    out = tmp_path / "guided.npz"
    code = main(args + ["--matches", str(tmp_path / "seeds.npz"), "--output", str(out), "-v"])
    assert code == 0
    matches = load_matches(out)
    assert [(m.feature1_ind, m.feature2_ind) for m in matches] == [(0, 3), (1, 0), (2, 2)]


def test_cli_degenerate_cameras(tmp_path, scene):
    args = _write_inputs(tmp_path, scene)
    args[3] = str(tmp_path / "cam1.json")  # camera2 := camera1
    out = tmp_path / "guided.json"
    assert main(args + ["--output", str(out)]) == 1
    assert not out.exists()


def test_cli_bad_override(tmp_path, scene):
    args = _write_inputs(tmp_path, scene)
    assert main(args + ["--output", str(tmp_path / "g.json"), "--ratio", "1.5"]) == 2


def test_cli_preset_and_config_file(tmp_path, scene):
    args = _write_inputs(tmp_path, scene)
    dump_data({"guided_matching": {"guided_matching_max_distance_pixels": 3.0}},
              tmp_path / "cfg.json")
    out = tmp_path / "g.json"
    assert main(args + ["--config", str(tmp_path / "cfg.json"), "--output", str(out)]) == 0
    assert len(load_matches(out)) == 3
    assert np.isfinite([m.distance for m in load_matches(out)]).all()
