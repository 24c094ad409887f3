"""Tests for plugin selection, execution isolation and the built-in plugins."""

import csv
import sqlite3

import pytest

from logsieve.exceptions import ErrorCode, PluginLoadError
from logsieve.ingestion import StoreWriter
from logsieve.plugins import (
    BUILTIN_PLUGINS,
    AnalysisPlugin,
    PluginExecutor,
    PluginLoader,
    PluginResult,
    discover_plugins,
    table_name,
)
from logsieve.plugins.builtin import (
    CollectionInventoryPlugin,
    ErrorDigestPlugin,
    LevelSummaryPlugin,
)


class _BoomPlugin(AnalysisPlugin):
    name = "boom"
    description = "Always fails"

    def execute(self, ctx):
        raise RuntimeError("kaboom")


class _OptionalPlugin(AnalysisPlugin):
    name = "optional"
    description = "Only runs when asked for"
    default = False

    def execute(self, ctx):
        return PluginResult()


def _read_csv(path):
    with open(path, newline="", encoding="utf-8") as fh:
        return list(csv.DictReader(fh))


@pytest.fixture
def loader():
    return PluginLoader(
        registry={
            "level_summary": LevelSummaryPlugin,
            "boom": _BoomPlugin,
            "optional": _OptionalPlugin,
        }
    )


@pytest.fixture
def ingested(config, make_request, make_context, sample_logset):
    """Request and context for a logset already parsed into the store."""

    def _make(plugins, **kwargs):
        request = make_request(sample_logset, **kwargs)
        context = make_context(request)
        context.root_log_directory = sample_logset
        StoreWriter(config).process_logset(request, context)
        context.plugin_types_to_execute = frozenset(plugins)
        return request, context

    return _make


class TestDiscovery:
    def test_builtins_registered(self):
        registry = discover_plugins(include_entry_points=False)
        assert set(registry) == {p.name for p in BUILTIN_PLUGINS}

    def test_table_name(self):
        assert table_name("Level-Summary") == "plugin_level_summary"


class TestPluginLoader:
    def test_empty_selection_means_default(self, loader):
        assert loader.select([]) == frozenset({LevelSummaryPlugin, _BoomPlugin})

    def test_all(self, loader):
        assert loader.select(["all"]) == frozenset({LevelSummaryPlugin, _BoomPlugin, _OptionalPlugin})

    def test_explicit_names(self, loader):
        assert loader.select(["optional", " level_summary "]) == frozenset(
            {_OptionalPlugin, LevelSummaryPlugin}
        )

    def test_unknown_plugin(self, loader):
        with pytest.raises(PluginLoadError) as exc_info:
            loader.select(["level_summary", "nope"])
        assert exc_info.value.code == ErrorCode.LS701
        assert exc_info.value.unknown == ["nope"]
        assert exc_info.value.available == ["boom", "level_summary", "optional"]

    def test_available_sorted_by_name(self, loader):
        assert [p.name for p in loader.available_plugins()] == ["boom", "level_summary", "optional"]

    def test_load_plugins_uses_request(self, loader, make_request):
        request = make_request("logs.zip", plugin_names=("optional",))
        assert loader.load_plugins(request) == frozenset({_OptionalPlugin})


class TestPluginExecutor:
    def test_failing_plugin_is_isolated(self, config, ingested):
        request, context = ingested([_BoomPlugin, LevelSummaryPlugin])
        outcomes = PluginExecutor(config).execute_plugins(request, context)

        by_name = {o.plugin_name: o for o in outcomes}
        assert [o.plugin_name for o in outcomes] == ["boom", "level_summary"]
        assert by_name["boom"].success is False
        assert "kaboom" in by_name["boom"].error
        assert by_name["level_summary"].success is True
        assert by_name["level_summary"].artifact_count == 1

    def test_artifacts_written_per_plugin(self, config, ingested):
        request, context = ingested([LevelSummaryPlugin])
        executor = PluginExecutor(config)
        (outcome,) = executor.execute_plugins(request, context)
        assert outcome.artifacts == (
            executor.output_location(request.run_id) / "level_summary" / "level_summary.csv",
        )
        assert executor.output_location(request.run_id) == config.output_path / request.run_id

    def test_backing_rows_persisted(self, config, ingested):
        request, context = ingested([LevelSummaryPlugin])
        PluginExecutor(config).execute_plugins(request, context)

        conn = sqlite3.connect(str(config.plugin_output_database))
        try:
            rows = conn.execute(
                'SELECT run_id, logset_hash, level, records FROM "plugin_level_summary" ORDER BY level'
            ).fetchall()
        finally:
            conn.close()
        assert rows == [
            (request.run_id, context.logset_hash, "ERROR", 3),
            (request.run_id, context.logset_hash, "INFO", 3),
            (request.run_id, context.logset_hash, "WARNING", 1),
        ]

    def test_publisher_only_called_when_publishing(self, config, ingested):
        class RecordingPublisher:
            calls = 0

            def publish(self, request, context, outcomes):
                RecordingPublisher.calls += 1
                return []

        request, context = ingested([LevelSummaryPlugin], publish_reports=False)
        PluginExecutor(config, publisher=RecordingPublisher()).execute_plugins(request, context)
        assert RecordingPublisher.calls == 0


class TestBuiltinPlugins:
    def test_level_summary(self, config, ingested):
        request, context = ingested([LevelSummaryPlugin])
        (outcome,) = PluginExecutor(config).execute_plugins(request, context)
        rows = _read_csv(outcome.artifacts[0])
        assert [(r["level"], r["records"]) for r in rows] == [
            ("ERROR", "3"),
            ("INFO", "3"),
            ("WARNING", "1"),
        ]

    def test_error_digest_groups_first_line(self, config, ingested):
        request, context = ingested([ErrorDigestPlugin])
        (outcome,) = PluginExecutor(config).execute_plugins(request, context)
        rows = _read_csv(outcome.artifacts[0])
        assert [(r["message"], r["occurrences"]) for r in rows] == [
            ("Connection refused", "2"),
            ("timeout", "1"),
        ]

    def test_error_digest_without_errors(self, config, make_request, make_context, tmp_path):
        logset = tmp_path / "quiet"
        logset.mkdir()
        (logset / "app.log").write_text("2024-05-01 10:00:00 INFO all good\n")
        request = make_request(logset)
        context = make_context(request)
        context.root_log_directory = logset
        StoreWriter(config).process_logset(request, context)
        context.plugin_types_to_execute = frozenset({ErrorDigestPlugin})

        (outcome,) = PluginExecutor(config).execute_plugins(request, context)
        assert outcome.success is True
        assert outcome.artifact_count == 0

    def test_collection_inventory(self, config, ingested):
        request, context = ingested([CollectionInventoryPlugin])
        (outcome,) = PluginExecutor(config).execute_plugins(request, context)
        rows = _read_csv(outcome.artifacts[0])
        assert [(r["collection"], r["records"], r["files"]) for r in rows] == [
            ("app", "5", "1"),
            ("service", "2", "1"),
        ]
        assert rows[0]["first_timestamp"] == "2024-05-01 10:00:00,123"
