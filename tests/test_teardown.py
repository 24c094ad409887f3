"""Tests for best-effort run teardown."""

from unittest.mock import MagicMock

import pytest

from logsieve.exceptions import ErrorCode
from logsieve.models import RunState
from logsieve.teardown import TeardownCoordinator


@pytest.fixture
def doubles():
    extractor = MagicMock()
    admin = MagicMock()
    admin.drop_database.return_value = True
    metadata_writer = MagicMock()
    return extractor, admin, metadata_writer


def _run(make_request, make_context, drop, reused):
    request = make_request("logs.zip", drop_after_run=drop)
    context = make_context(request)
    if reused:
        context.mark_reused_existing()
    return request, context


class TestDropDecision:
    @pytest.mark.parametrize(
        "drop, reused, dropped",
        [
            (False, False, False),
            (False, True, False),
            (True, False, True),
            (True, True, False),
        ],
    )
    def test_drop_only_when_requested_and_not_reused(
        self, doubles, make_request, make_context, drop, reused, dropped
    ):
        extractor, admin, metadata_writer = doubles
        request, context = _run(make_request, make_context, drop, reused)

        failures = TeardownCoordinator(extractor, admin, metadata_writer).teardown(request, context)

        assert failures == []
        assert admin.drop_database.called is dropped
        assert metadata_writer.delete_master_record.called is dropped
        extractor.cleanup_run.assert_called_once_with(request.run_id)
        assert context.state is RunState.TORN_DOWN

    def test_drops_the_run_database(self, doubles, make_request, make_context):
        extractor, admin, metadata_writer = doubles
        request, context = _run(make_request, make_context, drop=True, reused=False)
        TeardownCoordinator(extractor, admin, metadata_writer).teardown(request, context)
        client, name = admin.drop_database.call_args[0]
        assert name == context.database_name
        assert client.data_dir == context.store_connection.data_path


class TestFailures:
    def test_drop_failure_keeps_metadata_and_cleans_temp(self, doubles, make_request, make_context):
        extractor, admin, metadata_writer = doubles
        admin.drop_database.side_effect = OSError("locked")
        request, context = _run(make_request, make_context, drop=True, reused=False)

        failures = TeardownCoordinator(extractor, admin, metadata_writer).teardown(request, context)

        assert [(f.step, f.code) for f in failures] == [("drop_database", ErrorCode.LS900)]
        metadata_writer.delete_master_record.assert_not_called()
        extractor.cleanup_run.assert_called_once()

    def test_metadata_failure(self, doubles, make_request, make_context):
        extractor, admin, metadata_writer = doubles
        metadata_writer.delete_master_record.side_effect = RuntimeError("index locked")
        request, context = _run(make_request, make_context, drop=True, reused=False)

        failures = TeardownCoordinator(extractor, admin, metadata_writer).teardown(request, context)

        assert [(f.step, f.code) for f in failures] == [("delete_metadata", ErrorCode.LS901)]
        assert failures[0].message == "index locked"
        extractor.cleanup_run.assert_called_once()

    def test_temp_failure(self, doubles, make_request, make_context):
        extractor, admin, metadata_writer = doubles
        extractor.cleanup_run.side_effect = PermissionError("busy")
        request, context = _run(make_request, make_context, drop=False, reused=False)

        failures = TeardownCoordinator(extractor, admin, metadata_writer).teardown(request, context)

        assert [(f.step, f.code) for f in failures] == [("cleanup_temp", ErrorCode.LS902)]
        assert context.state is RunState.TORN_DOWN

    def test_every_step_failing_never_raises(self, doubles, make_request, make_context, caplog):
        extractor, admin, metadata_writer = doubles
        admin.drop_database.side_effect = OSError("locked")
        extractor.cleanup_run.side_effect = OSError("busy")
        request, context = _run(make_request, make_context, drop=True, reused=False)

        with caplog.at_level("WARNING", logger="logsieve"):
            failures = TeardownCoordinator(extractor, admin, metadata_writer).teardown(
                request, context
            )

        assert [f.code for f in failures] == [ErrorCode.LS900, ErrorCode.LS902]
        assert "[LS900] Cleanup step drop_database failed: locked" in caplog.text

    def test_failures_logged_with_structured_payload(
        self, doubles, make_request, make_context, caplog
    ):
        extractor, admin, metadata_writer = doubles
        extractor.cleanup_run.side_effect = OSError("busy")
        request, context = _run(make_request, make_context, drop=False, reused=False)

        with caplog.at_level("WARNING", logger="logsieve"):
            TeardownCoordinator(extractor, admin, metadata_writer).teardown(request, context)

        (record,) = [r for r in caplog.records if hasattr(r, "cleanup_failure")]
        assert record.cleanup_failure == {
            "error_code": "LS902",
            "step": "cleanup_temp",
            "error_type": "OSError",
            "message": "busy",
        }
