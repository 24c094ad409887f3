"""Tests for run targets, requests and the run context."""

from dataclasses import replace

import pytest

from logsieve.exceptions import RunStateError
from logsieve.models import (
    PluginOutcome,
    RunCapabilities,
    RunContext,
    RunRequest,
    RunState,
    RunTarget,
    TargetKind,
    logset_database_name,
    new_run_id,
)

FINGERPRINT = "0123456789ABCDEF0123456789ABCDEF"


class TestRunTarget:
    def test_url(self):
        target = RunTarget.parse("https://example.com/logs.zip")
        assert target.kind is TargetKind.URL
        assert target.is_url

    def test_fingerprint_is_lowercased(self):
        target = RunTarget.parse(FINGERPRINT)
        assert target.is_hash_id
        assert target.value == FINGERPRINT.lower()

    def test_existing_path_named_like_fingerprint(self, tmp_path):
        """A file that happens to look like a hash is still a path."""
        (tmp_path / FINGERPRINT).write_text("x")
        target = RunTarget.parse(FINGERPRINT)
        assert target.kind is TargetKind.PATH

    def test_path(self, sample_logset):
        target = RunTarget.parse(str(sample_logset))
        assert target.kind is TargetKind.PATH
        assert target.path == sample_logset

    def test_path_of_url_raises(self):
        with pytest.raises(ValueError):
            RunTarget.parse("http://example.com/a.zip").path


class TestRunRequest:
    def test_defaults_from_config(self, config):
        config = replace(config, drop_after_run=True, default_plugins=["all"])
        request = RunRequest.create("logs.zip", config)
        assert request.drop_after_run is True
        assert request.publish_reports is False
        assert request.plugin_names == ("all",)

    def test_explicit_flags_win(self, config):
        config = replace(config, drop_after_run=True)
        request = RunRequest.create(
            "logs.zip", config, drop_after_run=False, plugin_names=("level_summary",)
        )
        assert request.drop_after_run is False
        assert request.plugin_names == ("level_summary",)

    def test_is_immutable(self, config):
        request = RunRequest.create("logs.zip", config)
        with pytest.raises(AttributeError):
            request.force_reprocess = True

    def test_run_ids_are_unique(self):
        assert new_run_id() != new_run_id()


class TestRunContext:
    def test_starts_in_init(self, make_request):
        context = RunContext.for_request(make_request("logs.zip"))
        assert context.transitions == [RunState.INIT]
        assert context.state is RunState.INIT

    def test_store_connection_from_config(self, make_request, config):
        context = RunContext.for_request(make_request("logs.zip"))
        assert context.store_connection == config.store_connection

    def test_hash_sets_database_name(self, make_request):
        context = RunContext.for_request(make_request("logs.zip"))
        context.logset_hash = "ABCDEF"
        assert context.database_name == logset_database_name("ABCDEF") == "abcdef"

    def test_hash_is_write_once(self, make_request):
        """Once set, the fingerprint never changes for the life of the run."""
        context = RunContext.for_request(make_request("logs.zip"))
        context.logset_hash = "a" * 32
        context.logset_hash = "a" * 32
        with pytest.raises(RunStateError):
            context.logset_hash = "b" * 32
        assert context.logset_hash == "a" * 32

    @pytest.mark.parametrize(
        "drop, reused, expected",
        [(True, False, True), (True, True, False), (False, False, False), (False, True, False)],
    )
    def test_will_drop_store(self, drop, reused, expected):
        context = RunContext("run", capabilities=RunCapabilities(drop_requested=drop))
        if reused:
            context.mark_reused_existing()
        assert context.will_drop_store is expected

    def test_capabilities_from_request(self, config):
        request = RunRequest.create(
            "logs.zip", config, drop_after_run=True, publish_reports=True, use_local_store=True
        )
        caps = RunCapabilities.from_request(request)
        assert caps == RunCapabilities(
            manages_local_store=True, drop_requested=True, publishes_reports=True
        )


class TestPluginOutcome:
    def test_artifact_count(self, tmp_path):
        outcome = PluginOutcome("p", success=True, artifacts=(tmp_path / "a", tmp_path / "b"))
        assert outcome.artifact_count == 2
