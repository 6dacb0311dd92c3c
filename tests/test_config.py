"""Tests for configuration loading and saving."""

from __future__ import annotations

import json

import pytest

from broom.config import (
    Config,
    add_to_whitelist,
    config_dir,
    load_config,
    parse_whitelist,
    remove_from_whitelist,
    save_config,
)


class TestConfig:
    def test_defaults(self):
        config = Config()
        assert config.safety_level == "moderate"
        assert config.concurrency == 4
        assert not config.include_risky

    def test_include_risky_only_for_risky_level(self):
        assert Config(safety_level="risky").include_risky
        assert not Config(safety_level="safe").include_risky

    @pytest.mark.parametrize("kwargs", [{"safety_level": "wild"}, {"concurrency": 0}])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            Config(**kwargs)


class TestWhitelistFile:
    def test_parse_ignores_comments_and_blanks(self):
        text = "# comment\n\n~/keep\n  /data/important  \n#/not/this\n"
        assert parse_whitelist(text) == ("~/keep", "/data/important")

    def test_add_and_remove(self):
        config = add_to_whitelist(Config(), "/a")
        assert add_to_whitelist(config, "/a") is config
        config = add_to_whitelist(config, "/b")
        assert config.whitelist == ("/a", "/b")
        assert remove_from_whitelist(config, "/a").whitelist == ("/b",)


class TestLoadSave:
    def test_missing_files_give_defaults(self, tmp_path):
        assert load_config(tmp_path / "nothing") == Config()

    def test_round_trip(self, tmp_path):
        config = Config(whitelist=("~/keep",), blacklist=("docker",), safety_level="risky", concurrency=2)
        save_config(config, tmp_path)
        assert load_config(tmp_path) == config
        assert (tmp_path / "whitelist").read_text().startswith("#")

    def test_empty_whitelist_removes_file(self, tmp_path):
        save_config(Config(whitelist=("/x",)), tmp_path)
        save_config(Config(), tmp_path)
        assert not (tmp_path / "whitelist").exists()

    def test_camel_case_keys(self, tmp_path):
        (tmp_path / "config.json").write_text(json.dumps({"safetyLevel": "safe", "dryRun": True}))
        config = load_config(tmp_path)
        assert config.safety_level == "safe"
        assert config.dry_run

    def test_whitelist_file_overrides_json(self, tmp_path):
        (tmp_path / "config.json").write_text(json.dumps({"whitelist": ["/from-json"]}))
        (tmp_path / "whitelist").write_text("/from-file\n")
        assert load_config(tmp_path).whitelist == ("/from-file",)

    def test_corrupt_json_falls_back(self, tmp_path, caplog):
        (tmp_path / "config.json").write_text("{not json")
        assert load_config(tmp_path) == Config()
        assert "Could not load config" in caplog.text

    def test_invalid_values_fall_back(self, tmp_path):
        (tmp_path / "config.json").write_text(json.dumps({"safety_level": "extreme"}))
        (tmp_path / "whitelist").write_text("/keep\n")
        assert load_config(tmp_path) == Config(whitelist=("/keep",))

    @pytest.mark.parametrize("value", [None, 3, "/home", ["/ok", 7]])
    def test_malformed_lists_are_ignored(self, tmp_path, caplog, value):
        (tmp_path / "config.json").write_text(
            json.dumps({"whitelist": value, "blacklist": value, "safetyLevel": "safe"})
        )
        config = load_config(tmp_path)
        assert config.whitelist == ()
        assert config.blacklist == ()
        assert config.safety_level == "safe"
        assert "expected a list of strings" in caplog.text

    def test_default_location_follows_xdg(self, fake_home):
        save_config(Config(blacklist=("trash",)))
        assert (config_dir() / "config.json").exists()
        assert config_dir() == fake_home / ".config" / "broom"
        assert load_config().blacklist == ("trash",)
