"""Tests for the minirecord command-line interface."""

import pytest

from minirecord import Database
from minirecord.cli import _load_models, main
from minirecord.config import DEFAULT_ENV_VAR


def _tables(path):
    with Database(f"sqlite:///{path}") as db:
        result = db.execute("SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name")
    return [row[0] for row in result.rows if not row[0].startswith("sqlite_")]


def test_no_command_prints_help(capsys):
    assert main([]) == 1
    assert "create-tables" in capsys.readouterr().out


def test_load_models_in_definition_order():
    models = _load_models("cli_models")
    assert [model.__name__ for model in models] == ["Crate", "Pallet"]


def test_load_models_missing_module(capsys):
    assert _load_models("no_such_module_here") == []
    assert "Error importing models" in capsys.readouterr().out


class TestSql:
    def test_prints_sql_and_bind_values(self, capsys):
        code = main([
            "sql", "-m", "cli_models", "Crate",
            "-w", "label=fragile",
            "-o", "weight:desc",
            "-o", "label",
            "--limit", "5",
            "--offset", "10",
        ])
        assert code == 0
        out = capsys.readouterr().out.splitlines()
        assert out == [
            "SELECT * FROM crates WHERE label = ? ORDER BY weight DESC, label ASC LIMIT 5 OFFSET 10",
            "-- bind values: ['fragile']",
        ]

    def test_projection_and_join(self, capsys):
        code = main(["sql", "-m", "cli_models", "Crate", "-s", "COUNT(*)", "--join", "pallets"])
        assert code == 0
        assert capsys.readouterr().out.splitlines()[0] == (
            "SELECT COUNT(*) FROM crates INNER JOIN pallets ON crates.id = pallets.crate_id"
        )

    def test_unknown_model(self, capsys):
        assert main(["sql", "-m", "cli_models", "Barrel"]) == 1
        assert "No model named Barrel" in capsys.readouterr().out

    def test_malformed_where(self, capsys):
        assert main(["sql", "-m", "cli_models", "Crate", "-w", "label"]) == 1
        assert "COLUMN=VALUE" in capsys.readouterr().out


class TestCreateTables:
    def test_with_url(self, tmp_path, capsys):
        path = tmp_path / "cli.db"
        assert main(["create-tables", "-m", "cli_models", "--url", f"sqlite:///{path}"]) == 0
        assert _tables(path) == ["crates", "pallets"]
        out = capsys.readouterr().out
        assert "Created 2 table(s)" in out
        assert "crates (Crate)" in out

    def test_existing_tables(self, tmp_path, capsys):
        url = f"sqlite:///{tmp_path / 'cli.db'}"
        assert main(["create-tables", "-m", "cli_models", "--url", url]) == 0
        assert main(["create-tables", "-m", "cli_models", "--url", url]) == 1
        assert "already exists" in capsys.readouterr().out
        assert main(["create-tables", "-m", "cli_models", "--url", url, "--if-not-exists"]) == 0

    def test_with_config_file(self, tmp_path):
        path = tmp_path / "from-ini.db"
        ini = tmp_path / "minirecord.ini"
        ini.write_text(f"[minirecord]\nurl = sqlite:///{path}\n")

        assert main(["create-tables", "-m", "cli_models", "-c", str(ini)]) == 0
        assert _tables(path) == ["crates", "pallets"]

    def test_with_environment(self, tmp_path, monkeypatch):
        path = tmp_path / "from-env.db"
        monkeypatch.setenv(DEFAULT_ENV_VAR, f"sqlite:///{path}")

        assert main(["create-tables", "-m", "cli_models"]) == 0
        assert _tables(path) == ["crates", "pallets"]

    def test_without_configuration(self, monkeypatch, capsys):
        monkeypatch.delenv(DEFAULT_ENV_VAR, raising=False)
        assert main(["create-tables", "-m", "cli_models"]) == 1
        assert DEFAULT_ENV_VAR in capsys.readouterr().out

    def test_bad_url(self, capsys):
        assert main(["create-tables", "-m", "cli_models", "--url", "mysql://db"]) == 1
        assert "Unsupported database URL" in capsys.readouterr().out

    def test_no_models(self, capsys):
        assert main(["create-tables", "-m", "no_such_module_here", "--url", "sqlite::memory:"]) == 1
        assert "No models found" in capsys.readouterr().out

    def test_models_argument_is_required(self):
        with pytest.raises(SystemExit):
            main(["create-tables"])
