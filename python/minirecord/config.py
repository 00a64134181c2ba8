"""Database configuration parsing."""

from __future__ import annotations

import configparser
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any
from urllib.parse import parse_qsl

from minirecord.exceptions import ConfigurationError

DEFAULT_ENV_VAR = "MINIRECORD_DATABASE_URL"
MEMORY = ":memory:"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class DatabaseConfig:
    """Settings for a single SQLite database file.

    Example config.ini:
        [minirecord]
        url = sqlite:///app.db
        timeout = 10
        echo = false
    """

    path: str = MEMORY
    """Database file path, or ``:memory:``."""

    timeout: float = 5.0
    """Seconds to wait on a locked database before failing."""

    echo: bool = False
    """Log every statement at INFO instead of DEBUG."""

    @property
    def url(self) -> str:
        if self.path == MEMORY:
            return "sqlite::memory:"
        return f"sqlite:///{self.path}"

    @property
    def is_memory(self) -> bool:
        return self.path == MEMORY

    @classmethod
    def from_url(cls, url: str, **overrides: Any) -> DatabaseConfig:
        """Parse a database URL.

        Accepted forms:
            - ``sqlite::memory:`` or ``sqlite:///:memory:``
            - ``sqlite:///relative/path.db``
            - ``sqlite:////absolute/path.db``

        Query parameters ``timeout`` and ``echo`` are honoured, e.g.
        ``sqlite:///app.db?timeout=10&echo=1``. Keyword overrides win over
        the URL.

        Raises:
            ConfigurationError: If the URL is not a SQLite URL.
        """
        url = url.strip()
        base, _, query = url.partition("?")

        if base in ("sqlite::memory:", "sqlite://", "sqlite:///:memory:"):
            path = MEMORY
        elif base.startswith("sqlite:///"):
            path = base[len("sqlite:///"):]
            if not path:
                raise ConfigurationError(f"Missing database path in URL: {url!r}")
        else:
            raise ConfigurationError(
                f"Unsupported database URL {url!r}; expected sqlite:///path or sqlite::memory:"
            )

        options: dict[str, Any] = {}
        for key, value in parse_qsl(query):
            if key == "timeout":
                options["timeout"] = _parse_timeout(value)
            elif key == "echo":
                options["echo"] = _parse_bool(value, key)
            else:
                raise ConfigurationError(f"Unknown database URL option: {key}")

        options.update(overrides)
        return cls(path=path, **options)

    @classmethod
    def from_env(cls, var: str = DEFAULT_ENV_VAR, default: str | None = None) -> DatabaseConfig:
        """Build a config from the URL held in an environment variable."""
        url = os.environ.get(var, default)
        if not url:
            raise ConfigurationError(f"Environment variable {var} is not set")
        return cls.from_url(url)

    @classmethod
    def from_ini(cls, path: Path | str, section: str = "minirecord") -> DatabaseConfig:
        """Load configuration from an ini file.

        Raises:
            FileNotFoundError: If the config file doesn't exist
            ConfigurationError: If the section or url is missing
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        parser = configparser.ConfigParser()
        parser.read(path)

        if section not in parser:
            raise ConfigurationError(f"No [{section}] section in {path}")

        values = parser[section]
        url = values.get("url")
        if not url:
            raise ConfigurationError(f"url is required in [{section}] of {path}")

        config = cls.from_url(url)
        if "timeout" in values:
            config = replace(config, timeout=_parse_timeout(values["timeout"]))
        if "echo" in values:
            config = replace(config, echo=_parse_bool(values["echo"], "echo"))
        return config


def _parse_timeout(value: str) -> float:
    try:
        timeout = float(value)
    except ValueError:
        raise ConfigurationError(f"timeout must be a number, got {value!r}") from None
    if timeout < 0:
        raise ConfigurationError("timeout must not be negative")
    return timeout


def _parse_bool(value: str, name: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {value!r}")
