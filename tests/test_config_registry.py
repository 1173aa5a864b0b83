"""
Tests for configuration loading and the connection registry.
"""

import textwrap
from pathlib import Path

import pytest

from pkg.questboard.config import Config, ConfigError
from pkg.questboard.registry import ConnectionRegistry, is_admin_referrer

SERVER_DIR = Path(__file__).resolve().parent.parent


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Config
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestConfig:

    def test_defaults_when_file_missing(self, tmp_path):
        cfg = Config.load(str(tmp_path / "missing.yaml"), environ={})
        assert cfg.port == 3000
        assert cfg.host == "127.0.0.1"
        assert cfg.save_interval_secs == 10.0
        assert cfg.save_delay_secs == 1.0

    def test_yaml_values_and_unknown_keys(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(textwrap.dedent("""
            port: 8080
            data_file: ~/board/data.json
            save_delay_secs: 0.5
            not_a_setting: true
        """))
        cfg = Config.load(str(path), environ={})
        assert cfg.port == 8080
        assert cfg.save_delay_secs == 0.5
        assert not cfg.data_file.startswith("~")
        assert not hasattr(cfg, "not_a_setting")

    def test_port_env_overrides_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("port: 8080\n")
        cfg = Config.load(str(path), environ={"PORT": "4000"})
        assert cfg.port == 4000

    def test_broken_yaml_falls_back_to_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("port: [unclosed\n")
        assert Config.load(str(path), environ={}).port == 3000

    def test_invalid_port_raises(self):
        with pytest.raises(ConfigError):
            Config.load("does-not-exist.yaml", environ={"PORT": "abc"})

    def test_default_data_file_next_to_server(self):
        cfg = Config().validate()
        assert Path(cfg.data_file) == SERVER_DIR / "data.json"

    def test_relative_data_file_not_tied_to_launch_dir(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        cfg = Config(data_file="boards/data.json").validate()
        assert Path(cfg.data_file) == SERVER_DIR / "boards" / "data.json"

    def test_numeric_strings_coerced(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("save_interval_secs: '10'\nsave_delay_secs: '0.5'\n")
        cfg = Config.load(str(path), environ={})
        assert cfg.save_interval_secs == 10.0
        assert cfg.save_delay_secs == 0.5

    def test_non_numeric_interval_raises(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("save_interval_secs: soon\n")
        with pytest.raises(ConfigError):
            Config.load(str(path), environ={})


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Registry
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestAdminReferrer:

    @pytest.mark.parametrize("referrer", [
        "http://localhost:3000/admin",
        "http://localhost:3000/?admin=true",
        "http://localhost:3000/#admin",
    ])
    def test_admin_markers(self, referrer):
        assert is_admin_referrer(referrer)

    @pytest.mark.parametrize("referrer", [
        None,
        "",
        "http://localhost:3000/",
        "http://localhost:3000/?admin=false",
    ])
    def test_non_admin(self, referrer):
        assert not is_admin_referrer(referrer)


class TestConnectionRegistry:

    def test_connect_and_disconnect(self):
        registry = ConnectionRegistry()
        conn = registry.connect("sid-1", user_agent="Firefox", referrer="http://x/")
        registry.connect("sid-2", referrer="http://x/admin")

        assert conn.user_agent == "Firefox"
        assert conn.connected_at
        assert registry.count == 2
        assert registry.admin_sids() == ["sid-2"]
        assert registry.admin_count == 1

        assert registry.disconnect("sid-2").sid == "sid-2"
        assert registry.count == 1
        assert registry.admin_count == 0
        assert registry.disconnect("sid-2") is None

    def test_classification_fixed_at_connect(self):
        registry = ConnectionRegistry()
        conn = registry.connect("sid-1", referrer="http://x/")
        assert conn.is_admin is False
        assert registry.admin_sids() == []
