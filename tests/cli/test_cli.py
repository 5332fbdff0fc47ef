"""
CLI tests using typer's CliRunner.

Each test drives the real commands against a SQLite file under
``tmp_path``; logging configuration is stubbed so stdout carries only
command output.
"""

import json
import sys

import pytest
from typer.testing import CliRunner

from icglr_spine.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def _no_log_setup(monkeypatch):
    monkeypatch.setattr(sys.modules["icglr_spine.cli.app"], "configure_logging", lambda **kwargs: None)


@pytest.fixture()
def database(tmp_path):
    path = str(tmp_path / "icglr.db")
    result = runner.invoke(app, ["db", "init", "-d", path])
    assert result.exit_code == 0, result.output
    return path


@pytest.fixture()
def sites_file(tmp_path, mine_site):
    path = tmp_path / "sites.json"
    path.write_text(json.dumps([mine_site(), mine_site("CD-SK-0002", certificationStatus=2)]))
    return path


class TestRoot:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "icglr-spine" in result.stdout

    def test_help(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "records" in result.stdout


class TestSchemaCommands:
    def test_tables_json(self):
        result = runner.invoke(app, ["schema", "tables", "--json"])
        assert result.exit_code == 0
        tables = {t["name"]: t for t in json.loads(result.stdout)}
        assert tables["mine_sites"]["role"] == "record"
        assert tables["lot_input_lot"]["parent"] == "lots"

    def test_ddl_to_stdout(self):
        result = runner.invoke(app, ["schema", "ddl"])
        assert result.exit_code == 0
        assert "CREATE TABLE IF NOT EXISTS mine_sites (" in result.stdout

    def test_ddl_to_file(self, tmp_path):
        target = tmp_path / "out" / "schema.sql"
        result = runner.invoke(app, ["schema", "ddl", "--output", str(target)])
        assert result.exit_code == 0
        assert "owner_id INTEGER NOT NULL REFERENCES business_entities(identifier)" in target.read_text()


class TestDbCommands:
    def test_init_json(self, tmp_path):
        result = runner.invoke(app, ["db", "init", "-d", str(tmp_path / "x.db"), "--json"])
        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert "mine_sites" in payload["tables_created"]
        assert payload["dry_run"] is False

    def test_init_dry_run_creates_nothing(self, tmp_path):
        result = runner.invoke(app, ["db", "init", "-d", str(tmp_path / "x.db"), "--dry-run", "--json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["dry_run"] is True

    def test_unsupported_database_url(self):
        result = runner.invoke(app, ["db", "init", "-d", "postgresql://localhost/icglr"])
        assert result.exit_code == 2


class TestRecordCommands:
    def test_load_then_get(self, database, sites_file):
        loaded = runner.invoke(app, ["records", "load", "mine_sites", str(sites_file), "-d", database])
        assert loaded.exit_code == 0, loaded.output
        assert "mine_sites: 2 stored, 0 failed" in loaded.stdout

        result = runner.invoke(app, ["records", "get", "mine_sites", "CD-SK-0001", "-d", database, "--json"])
        assert result.exit_code == 0
        record = json.loads(result.stdout)
        assert record["mineral"] == ["gold", "tin"]
        assert record["owner"]["legalAddress"]["addressLocalityText"] == "Bukavu"

    def test_list_with_filter(self, database, sites_file):
        runner.invoke(app, ["records", "load", "mine_sites", str(sites_file), "-d", database])
        result = runner.invoke(
            app, ["records", "list", "mine_sites", "-f", "certificationStatus=2", "-d", database, "--json"]
        )
        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["total"] == 1
        assert payload["data"][0]["icglrId"] == "CD-SK-0002"
        assert payload["hasNext"] is False

    def test_get_missing_record(self, database):
        result = runner.invoke(app, ["records", "get", "mine_sites", "nope", "-d", database])
        assert result.exit_code == 1

    def test_load_reports_failures(self, database, tmp_path, mine_site):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps([mine_site(certificationStatus="green")]))
        result = runner.invoke(app, ["records", "load", "mine_sites", str(path), "-d", database])
        assert result.exit_code == 1
        assert "0 stored, 1 failed" in result.stdout

    def test_malformed_filter(self, database):
        result = runner.invoke(app, ["records", "list", "mine_sites", "-f", "certificationStatus", "-d", database])
        assert result.exit_code != 0
