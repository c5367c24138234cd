"""Tests for config.yaml handling, paths and the personal access token."""

import os
from pathlib import Path

import pytest

from azboards import config
from azboards.exceptions import ConfigError


class TestPaths:
    def test_azb_home_override(self):
        assert config.get_config_dir() == Path(os.environ["AZB_HOME"])

    def test_subdirectories_created(self):
        for path in (config.get_templates_dir(), config.get_tmp_dir(), config.get_logs_dir()):
            assert path.is_dir()
            assert path.parent == config.get_config_dir()

    def test_default_home(self, monkeypatch, tmp_path):
        monkeypatch.delenv("AZB_HOME")
        monkeypatch.setattr(Path, "home", lambda: tmp_path)
        assert config.get_config_dir() == tmp_path / ".azure-boards-cli"


class TestConfigFile:
    def test_missing_file_gives_defaults(self):
        cfg = config.load_config()
        assert cfg.organization == ""
        assert cfg.cache_ttl == config.DEFAULT_CACHE_TTL
        assert cfg.default_view == "assigned-to-me"

    def test_set_and_reload(self):
        config.set_config_value("organization", "contoso")
        config.set_config_value("project", "Fabrikam")
        cfg = config.load_config()
        assert cfg.organization_url == "https://dev.azure.com/contoso"
        assert cfg.project == "Fabrikam"

    def test_unknown_key(self):
        with pytest.raises(ConfigError, match="unknown config key 'colour'"):
            config.set_config_value("colour", "blue")

    def test_cache_ttl_must_be_integer(self):
        with pytest.raises(ConfigError, match="cache_ttl must be an integer"):
            config.set_config_value("cache_ttl", "soon")

    def test_invalid_cache_ttl_in_file_ignored(self):
        config.get_config_path().write_text("cache_ttl: soon\nproject: p\n")
        cfg = config.load_config()
        assert cfg.cache_ttl == config.DEFAULT_CACHE_TTL
        assert cfg.project == "p"

    def test_unknown_keys_in_file_ignored(self):
        config.get_config_path().write_text("organization: o\nlegacy: true\n")
        assert config.load_config().organization == "o"

    def test_broken_file(self):
        config.get_config_path().write_text("organization: [\n")
        with pytest.raises(ConfigError, match="failed to read config"):
            config.load_config()

    def test_require(self):
        with pytest.raises(ConfigError, match="organization is not configured"):
            config.Config().require()
        with pytest.raises(ConfigError, match="project is not configured"):
            config.Config(organization="o").require()
        config.Config(organization="o", project="p").require()


class TestOrganizationUrl:
    @pytest.mark.parametrize("value,expected", [
        ("contoso", "https://dev.azure.com/contoso"),
        ("https://dev.azure.com/contoso/", "https://dev.azure.com/contoso"),
        ("dev.azure.com/contoso", "https://dev.azure.com/contoso"),
        ("http://example.com/contoso", "https://dev.azure.com/contoso"),
        ("  contoso  ", "https://dev.azure.com/contoso"),
    ])
    def test_normalize(self, value, expected):
        assert config.normalize_organization_url(value) == expected


class TestToken:
    def test_not_authenticated(self):
        assert not config.is_authenticated()
        with pytest.raises(ConfigError, match="azb auth login"):
            config.get_token()

    def test_saved_token_is_private(self):
        path = config.save_token("  secret\n")
        assert path.stat().st_mode & 0o777 == 0o600
        assert config.get_token() == "secret"

    def test_env_token_wins(self, monkeypatch):
        config.save_token("stored")
        monkeypatch.setenv("AZB_TOKEN", "from-env")
        assert config.get_token() == "from-env"

    def test_empty_token_file(self):
        config.get_token_path().write_text("  \n")
        with pytest.raises(ConfigError, match="token file is empty"):
            config.get_token()

    def test_logout(self):
        config.save_token("secret")
        config.logout()
        assert not config.is_authenticated()
        with pytest.raises(ConfigError, match="not authenticated"):
            config.logout()
