"""
Unit tests for GuidedMatchingConfig.
"""

import dataclasses

import pytest

from data_io.parsing import dump_data
from epimatch.matching.config import (
    GuidedMatchingConfig,
    get_default_config,
    get_strict_config,
    get_wide_corridor_config,
    load_config,
)


class TestGuidedMatchingConfig:

    def test_defaults(self):
        config = GuidedMatchingConfig()
        assert config.guided_matching_max_distance_pixels == 2.0
        assert config.lowes_ratio == 0.8
        assert config.cell_size == 4.0
        assert config.sample_step == 2.0
        config.validate()

    def test_frozen(self):
        config = GuidedMatchingConfig()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.lowes_ratio = 0.5

    def test_sample_step_is_clamped(self):
        assert GuidedMatchingConfig(sample_step_pixels=10.0).sample_step == 2.0
        assert GuidedMatchingConfig(sample_step_pixels=0.5).sample_step == 0.5

    @pytest.mark.parametrize("kwargs", [
        {"guided_matching_max_distance_pixels": 0.0},
        {"lowes_ratio": 0.0},
        {"lowes_ratio": 1.2},
        {"num_grids": 3},
        {"grid_cell_size_multiplier": -1.0},
        {"epiline_grouping_tolerance_pixels": 2.0},
        {"sample_step_pixels": 0.0},
    ])
    def test_validate_rejects(self, kwargs):
        with pytest.raises(ValueError):
            GuidedMatchingConfig(**kwargs).validate()

    def test_ratio_of_one_is_allowed(self):
        GuidedMatchingConfig(lowes_ratio=1.0).validate()

    def test_presets_are_valid(self):
        for config in (get_default_config(), get_wide_corridor_config(), get_strict_config()):
            config.validate()
            assert config.epiline_grouping_tolerance_pixels < config.guided_matching_max_distance_pixels

    def test_dict_round_trip(self):
        config = get_wide_corridor_config()
        assert GuidedMatchingConfig.from_dict(config.to_dict()) == config

    def test_from_dict_unknown_key(self):
        with pytest.raises(ValueError, match="Unknown"):
            GuidedMatchingConfig.from_dict({"ratio": 0.7})

    def test_with_overrides_ignores_none(self):
        config = GuidedMatchingConfig().with_overrides(lowes_ratio=0.7, num_grids=None)
        assert config.lowes_ratio == 0.7
        assert config.num_grids == 4
        with pytest.raises(ValueError):
            GuidedMatchingConfig().with_overrides(lowes_ratio=2.0)


class TestLoadConfig:

    def test_json_nested(self, tmp_path):
        path = tmp_path / "guided.json"
        dump_data({"guided_matching": {"lowes_ratio": 0.75, "num_grids": 2}}, path)
        config = load_config(path)
        assert config.lowes_ratio == 0.75
        assert config.num_grids == 2

    def test_yaml_top_level(self, tmp_path):
        pytest.importorskip("yaml")
        path = tmp_path / "guided.yaml"
        dump_data({"guided_matching_max_distance_pixels": 3.0, "sample_step_pixels": None}, path)
        config = load_config(path)
        assert config.guided_matching_max_distance_pixels == 3.0
        assert config.sample_step_pixels is None

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.json")

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "list.json"
        dump_data([1, 2, 3], path)
        with pytest.raises(ValueError):
            load_config(path)
