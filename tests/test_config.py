"""Tests for database configuration."""

import pytest

from minirecord import ConfigurationError, DatabaseConfig
from minirecord.config import DEFAULT_ENV_VAR


class TestFromUrl:
    @pytest.mark.parametrize("url", ["sqlite::memory:", "sqlite://", "sqlite:///:memory:"])
    def test_memory(self, url):
        config = DatabaseConfig.from_url(url)
        assert config.is_memory
        assert config.url == "sqlite::memory:"

    def test_relative_path(self):
        config = DatabaseConfig.from_url("sqlite:///app.db")
        assert config.path == "app.db"
        assert config.url == "sqlite:///app.db"
        assert not config.is_memory

    def test_absolute_path(self):
        config = DatabaseConfig.from_url("sqlite:////var/data/app.db")
        assert config.path == "/var/data/app.db"

    def test_query_options(self):
        config = DatabaseConfig.from_url("sqlite:///app.db?timeout=10&echo=yes")
        assert config.timeout == 10.0
        assert config.echo is True

    def test_overrides_win(self):
        config = DatabaseConfig.from_url("sqlite:///app.db?echo=1", echo=False, timeout=1.5)
        assert config.echo is False
        assert config.timeout == 1.5

    @pytest.mark.parametrize(
        "url",
        [
            "postgresql://localhost/db",
            "sqlite:///",
            "sqlite:///app.db?pool=5",
            "sqlite:///app.db?timeout=soon",
            "sqlite:///app.db?timeout=-1",
            "sqlite:///app.db?echo=maybe",
        ],
    )
    def test_invalid(self, url):
        with pytest.raises(ConfigurationError):
            DatabaseConfig.from_url(url)


def test_defaults():
    config = DatabaseConfig()
    assert config.is_memory
    assert config.timeout == 5.0
    assert config.echo is False


def test_from_env(monkeypatch):
    monkeypatch.setenv(DEFAULT_ENV_VAR, "sqlite:///from-env.db")
    assert DatabaseConfig.from_env().path == "from-env.db"


def test_from_env_custom_variable(monkeypatch):
    monkeypatch.setenv("APP_DB", "sqlite::memory:")
    assert DatabaseConfig.from_env("APP_DB").is_memory


def test_from_env_missing(monkeypatch):
    monkeypatch.delenv(DEFAULT_ENV_VAR, raising=False)
    with pytest.raises(ConfigurationError, match=DEFAULT_ENV_VAR):
        DatabaseConfig.from_env()
    assert DatabaseConfig.from_env(default="sqlite::memory:").is_memory


class TestFromIni:
    def test_reads_section(self, tmp_path):
        ini = tmp_path / "minirecord.ini"
        ini.write_text("[minirecord]\nurl = sqlite:///app.db\ntimeout = 2\necho = true\n")

        config = DatabaseConfig.from_ini(ini)
        assert config.path == "app.db"
        assert config.timeout == 2.0
        assert config.echo is True

    def test_custom_section(self, tmp_path):
        ini = tmp_path / "setup.cfg"
        ini.write_text("[db]\nurl = sqlite::memory:\n")
        assert DatabaseConfig.from_ini(ini, section="db").is_memory

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            DatabaseConfig.from_ini(tmp_path / "missing.ini")

    def test_missing_section(self, tmp_path):
        ini = tmp_path / "minirecord.ini"
        ini.write_text("[other]\nurl = sqlite::memory:\n")
        with pytest.raises(ConfigurationError, match=r"\[minirecord\]"):
            DatabaseConfig.from_ini(ini)

    def test_missing_url(self, tmp_path):
        ini = tmp_path / "minirecord.ini"
        ini.write_text("[minirecord]\ntimeout = 2\n")
        with pytest.raises(ConfigurationError, match="url is required"):
            DatabaseConfig.from_ini(ini)
