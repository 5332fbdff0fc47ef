"""Tests for context assembly, table creation and model description."""

from dataclasses import replace

import pytest

from icglr_spine.core.errors import SchemaResolutionError
from icglr_spine.core.schema_loader import get_table_list
from icglr_spine.core.settings import DedupPolicy, IcglrSettings
from icglr_spine.ops.database import build_context, describe_model, initialize_database
from icglr_spine.ops.requests import DatabaseInitRequest
from icglr_spine.relational.ddl import HEADER


class TestBuildContext:
    def test_memory_database_is_ready(self, mine_site):
        settings = IcglrSettings(_env_file=None, dedup_policy="strict")
        ctx = build_context(settings, database_url="memory")
        assert ctx.mapper.dedup_policy is DedupPolicy.STRICT
        assert ctx.mapper.validator is not None
        assert ctx.mapper.upsert("mine_sites", mine_site()) == "CD-SK-0001"
        ctx.conn.close()

    def test_file_database_starts_empty(self, tmp_path):
        ctx = build_context(IcglrSettings(_env_file=None), database_url=str(tmp_path / "icglr.db"))
        assert get_table_list(ctx.conn) == []
        assert ctx.metadata["database"].endswith("icglr.db")
        ctx.conn.close()

    def test_bad_schema_directory(self, tmp_path):
        settings = IcglrSettings(_env_file=None, schema_dir=tmp_path / "missing")
        with pytest.raises(SchemaResolutionError):
            build_context(settings)


class TestInitializeDatabase:
    def test_creates_every_table(self, tmp_path):
        ctx = build_context(IcglrSettings(_env_file=None), database_url=str(tmp_path / "icglr.db"))
        result = initialize_database(ctx, DatabaseInitRequest())
        assert result.success
        assert "mine_site_mineral" in result.data.tables_created
        assert result.data.statements > len(result.data.tables_created)
        assert set(get_table_list(ctx.conn)) == set(result.data.tables_created)

        again = initialize_database(ctx)
        assert again.success
        ctx.conn.close()

    def test_dry_run_returns_the_script(self, ctx):
        result = initialize_database(replace(ctx, dry_run=True), DatabaseInitRequest(include_ddl=True))
        assert result.data.dry_run is True
        assert result.data.ddl.startswith(HEADER)


class TestDescribeModel:
    def test_roles_and_parents(self, ctx):
        summaries = {s.name: s for s in describe_model(ctx).data}
        assert summaries["mine_sites"].role == "record"
        assert summaries["addresses"].role == "entity"
        assert summaries["mine_site_mineral"].role == "junction"
        assert summaries["mine_site_mineral"].parent == "mine_sites"
        assert summaries["mine_site_license_covered_commodities"].parent == "mine_site_license"
        assert summaries["export_certificates"].primary_key == ["identifier", "issuing_country"]
