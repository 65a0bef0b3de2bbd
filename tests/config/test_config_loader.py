"""
Write pipeline configuration: loading, validation, bridges and settings.
"""

from pathlib import Path

import pytest
import yaml

from congregation_config import get_active_config
from congregation_config.bridges import build_record_writer, build_synonym_resolver
from congregation_config.loader import (
    compute_checksum,
    load_config,
    parse_config,
    parse_synonym_chain,
)
from congregation_config.settings import (
    PLACEHOLDER_KEY,
    PLACEHOLDER_URL,
    load_store_settings,
)
from congregation_config.validator import (
    attempts_to_drop_every_field,
    validate_configuration,
)
from congregation_kernel.domain.record_kinds import RecordKind
from congregation_kernel.domain.synonyms import TerminalRule
from congregation_kernel.exceptions import SynonymCycleError


def _minimal(**overrides) -> dict:
    data = {
        "config_id": "test",
        "version": 1,
        "attempt_budget": 10,
        "record_kinds": {
            "category": {
                "table": "categories",
                "required": ["name"],
                "fields": ["name", "color", "description"],
                "merge_target": "description",
                "synonyms": {
                    "color": ["hex_color"],
                },
            },
        },
    }
    data.update(overrides)
    return data


def _category(data: dict) -> dict:
    return data["record_kinds"]["category"]


class TestDefaultConfiguration:
    def test_default_is_valid(self, pipeline_config):
        result = validate_configuration(pipeline_config)
        assert result.is_valid, result.errors
        assert result.warnings == []

    @pytest.mark.parametrize(
        "kind, needed",
        [("ledger_entry", 27), ("profile", 45), ("category", 9)],
    )
    def test_budget_covers_every_chain(self, pipeline_config, kind, needed):
        definition = pipeline_config.record_kind(kind)
        assert attempts_to_drop_every_field(definition) == needed
        assert pipeline_config.attempt_budget >= needed

    def test_checksum_is_stable(self, pipeline_config):
        assert get_active_config().checksum == pipeline_config.checksum

    def test_config_trace_logged(self, captured_logs):
        get_active_config()
        traces = [r for r in captured_logs() if r["message"] == "CONGREGATION_CONFIG_TRACE"]
        assert traces[0]["config_id"] == "congregation-console"
        assert traces[0]["record_kinds"]["profile"] == 27


class TestLoader:
    def test_short_chain_form(self):
        chain = parse_synonym_chain("color", ["hex_color", "colour"])
        assert chain.fallbacks == ("hex_color", "colour")
        assert chain.terminal == "drop"

    def test_mapping_chain_form(self):
        chain = parse_synonym_chain(
            "notes", {"fallbacks": ["obs"], "terminal": "merge", "label": "Obs"}
        )
        assert (chain.terminal, chain.label) == ("merge", "Obs")

    def test_bad_chain_shape(self):
        with pytest.raises(ValueError):
            parse_synonym_chain("notes", "obs")

    def test_defaults(self):
        config = parse_config(_minimal())
        category = config.record_kind("category")
        assert category.key_column == "id"
        assert category.keyed_write == "update"
        assert category.merge_separator == " | "

    def test_missing_budget(self):
        data = _minimal()
        del data["attempt_budget"]
        with pytest.raises(KeyError):
            parse_config(data)

    def test_checksum_ignores_key_order(self):
        assert compute_checksum({"a": 1, "b": [1, 2]}) == compute_checksum(
            {"b": [1, 2], "a": 1}
        )

    def test_load_from_file(self, tmp_path: Path):
        path = tmp_path / "pipeline.yaml"
        path.write_text(yaml.safe_dump(_minimal()), encoding="utf-8")
        config = load_config(path)
        assert config.config_id == "test"
        assert config.record_kind("category").synonyms[0].fallbacks == ("hex_color",)

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")


class TestValidator:
    def _errors(self, data: dict) -> list[str]:
        return validate_configuration(parse_config(data)).errors

    def test_minimal_is_valid(self):
        result = validate_configuration(parse_config(_minimal()))
        assert result.is_valid
        # ledger_entry and profile are not configured
        assert len(result.warnings) == 2

    def test_unknown_kind(self):
        data = _minimal()
        data["record_kinds"]["invoice"] = {"table": "invoices", "fields": ["total"]}
        assert any("Unknown record kind 'invoice'" in e for e in self._errors(data))

    def test_required_not_declared(self):
        data = _minimal()
        _category(data)["required"] = ["name", "slug"]
        assert any("'slug'" in e for e in self._errors(data))

    def test_fallback_is_declared_field(self):
        data = _minimal()
        _category(data)["synonyms"] = {"color": ["name"]}
        assert any("fallback 'name' is a declared field" in e for e in self._errors(data))

    def test_name_in_two_chains(self):
        data = _minimal()
        _category(data)["synonyms"] = {"color": ["tone"], "name": ["tone"]}
        assert any("already used" in e for e in self._errors(data))

    def test_merge_needs_label(self):
        data = _minimal()
        _category(data)["synonyms"] = {"color": {"fallbacks": ["tone"], "terminal": "merge"}}
        assert any("needs a label" in e for e in self._errors(data))

    def test_bad_terminal(self):
        data = _minimal()
        _category(data)["synonyms"] = {"color": {"fallbacks": [], "terminal": "keep"}}
        assert any("terminal must be" in e for e in self._errors(data))

    def test_budget_too_small(self):
        errors = self._errors(_minimal(attempt_budget=3))
        assert any("attempt_budget 3" in e for e in errors)

    def test_budget_counts_fallbacks(self):
        # name, color, hex_color, description, then the accepted write
        assert self._errors(_minimal(attempt_budget=5)) == []
        errors = self._errors(_minimal(attempt_budget=4))
        assert any("'category'" in e and "at least 5" in e for e in errors)

    def test_invalid_configuration_refused(self, tmp_path: Path):
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.safe_dump(_minimal(attempt_budget=0)), encoding="utf-8")
        with pytest.raises(ValueError, match="Configuration validation failed"):
            get_active_config(path)


class TestBridges:
    def test_synonym_resolver(self, pipeline_config):
        resolver = build_synonym_resolver(pipeline_config)
        chain = resolver.chain_for(RecordKind.LEDGER_ENTRY, "attachments")
        assert chain.field == "attachment_urls"
        assert chain.terminal is TerminalRule.MERGE

    def test_cyclic_chain_refused(self):
        data = _minimal()
        _category(data)["synonyms"] = {"color": ["tone", "color"]}
        with pytest.raises(SynonymCycleError):
            build_synonym_resolver(parse_config(data))

    def test_record_writer(self, pipeline_config, make_store):
        writer = build_record_writer(pipeline_config, make_store())
        assert writer.attempt_budget == pipeline_config.attempt_budget


class TestStoreSettings:
    def test_from_environment(self):
        settings = load_store_settings({
            "SUPABASE_URL": "https://abc.supabase.co",
            "SUPABASE_ANON_KEY": "anon",
            "CONGREGATION_HTTP_TIMEOUT": "30",
        })
        assert settings.supabase_url == "https://abc.supabase.co"
        assert settings.http_timeout == 30.0
        assert settings.is_configured
        assert not settings.uses_sql

    def test_invalid_url_falls_back_to_placeholder(self, captured_logs):
        settings = load_store_settings({"SUPABASE_URL": "abc.supabase.co"})
        assert settings.supabase_url == PLACEHOLDER_URL
        assert settings.supabase_anon_key == PLACEHOLDER_KEY
        assert not settings.is_configured

        critical = [r for r in captured_logs() if r["message"] == "supabase_url_invalid"]
        assert critical[0]["level"] == "CRITICAL"

    def test_database_url_selects_sql(self):
        settings = load_store_settings({"DATABASE_URL": "sqlite:///console.db"})
        assert settings.uses_sql
        assert settings.is_configured

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValueError):
            load_store_settings({"CONGREGATION_HTTP_TIMEOUT": "0"})


def test_config_warnings_logged(tmp_path: Path, captured_logs):
    path = tmp_path / "pipeline.yaml"
    path.write_text(yaml.safe_dump(_minimal()), encoding="utf-8")
    get_active_config(path)

    warnings = [r for r in captured_logs() if r["message"] == "config_warning"]
    assert len(warnings) == 2
    assert all(r["level"] == "WARNING" for r in warnings)
