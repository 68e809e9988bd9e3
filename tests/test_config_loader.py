"""Tests for the YAML configuration loader."""

from pathlib import Path

import pytest

from hexterra.loaders.config_loader import HexTerraConfig, config_from_dict, load_config

REPO_CONFIG = Path(__file__).resolve().parent.parent / "config" / "hexterra.yaml"


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(str(tmp_path / "absent.yaml"))
        assert config == HexTerraConfig()

    def test_repo_config_matches_defaults(self):
        config = load_config(str(REPO_CONFIG))
        defaults = HexTerraConfig()
        assert config.zoom_resolutions == defaults.zoom_resolutions
        assert config.zoom_radii == defaults.zoom_radii
        assert [r.name for r in config.regions] == ["moscow", "london"]
        assert config.generator == defaults.generator
        assert config.starting_tokens == 5000

    def test_partial_file(self, tmp_path):
        path = tmp_path / "hexterra.yaml"
        path.write_text("tile_resolution: 8\ngenerator:\n  seed: 42\n", encoding="utf-8")
        config = load_config(str(path))
        assert config.tile_resolution == 8
        assert config.generator.seed == 42
        assert config.generator.base_price == 100

    def test_empty_file(self, tmp_path):
        path = tmp_path / "hexterra.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(str(path)) == HexTerraConfig()


class TestConfigFromDict:
    def test_unknown_keys_ignored(self):
        config = config_from_dict({"colour": "blue", "default_region": "moscow"})
        assert config.default_region == "moscow"

    def test_region_center_defaults_to_box_middle(self):
        config = config_from_dict({
            "default_region": "paris",
            "regions": [{"name": "paris", "lat_min": 48.0, "lat_max": 49.0,
                         "lng_min": 2.0, "lng_max": 3.0}],
        })
        assert config.regions[0].center.lat == 48.5
        assert config.regions[0].center.lng == 2.5

    def test_overlapping_regions_rejected(self):
        with pytest.raises(ValueError):
            config_from_dict({"regions": [
                {"name": "moscow", "lat_min": 55, "lat_max": 57, "lng_min": 36, "lng_max": 39},
                {"name": "tver", "lat_min": 56, "lat_max": 58, "lng_min": 35, "lng_max": 37},
            ]})

    def test_unknown_default_region(self):
        with pytest.raises(ValueError):
            config_from_dict({"default_region": "paris"})

    def test_zoom_table_order_enforced(self):
        with pytest.raises(ValueError):
            config_from_dict({"zoom_resolutions": [[10, 7], [16, 10]]})

    def test_zoom_table_parsed(self):
        config = config_from_dict({"zoom_radii": [[15, 1], [5, 8]]})
        assert config.zoom_radii == ((15.0, 1), (5.0, 8))
