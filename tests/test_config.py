"""Unit tests for configuration loading."""

import pytest
import yaml

from gentoo_autobuilder.config import DEFAULT_CONFIG, load_config, merge_config, write_default_config


class TestConfig:
    """Test defaults, merging and YAML handling."""

    def test_missing_file(self, tmp_path):
        """Test that a missing config is reported to the caller."""
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "missing.yaml"))

    def test_merge_is_recursive(self):
        """Test that nested mappings merge key by key."""
        merged = merge_config(DEFAULT_CONFIG, {"backup": {"keep": 2}, "hostname": "box"})
        assert merged["backup"]["keep"] == 2
        assert merged["backup"]["dir"] == DEFAULT_CONFIG["backup"]["dir"]
        assert merged["hostname"] == "box"
        assert DEFAULT_CONFIG["hostname"] == "gentoo"

    def test_load_overrides_defaults(self, tmp_path):
        """Test that file values override defaults and unknown keys are dropped."""
        p = tmp_path / "cfg.yaml"
        p.write_text(yaml.safe_dump({"timezone": "Europe/Berlin", "kernel": {"method": "dist"}, "bogus": 1}))

        cfg = load_config(str(p))

        assert cfg["timezone"] == "Europe/Berlin"
        assert cfg["kernel"]["method"] == "dist"
        assert cfg["kernel"]["builtin_symbols"]
        assert "bogus" not in cfg

    def test_invalid_yaml(self, tmp_path):
        """Test that syntax errors surface as ValueError."""
        p = tmp_path / "cfg.yaml"
        p.write_text("hostname: [unclosed\n")
        with pytest.raises(ValueError):
            load_config(str(p))

    def test_non_mapping(self, tmp_path):
        """Test that a list document is rejected."""
        p = tmp_path / "cfg.yaml"
        p.write_text("- a\n- b\n")
        with pytest.raises(ValueError):
            load_config(str(p))

    def test_write_default_round_trips(self, tmp_path):
        """Test that the generated default file loads back to the defaults."""
        p = tmp_path / "etc/gentoo-autobuilder.yaml"
        write_default_config(str(p))

        assert p.read_text().startswith("# gentoo-autobuilder configuration")
        assert load_config(str(p)) == DEFAULT_CONFIG
