"""Tests for logging setup and the structured file formatter."""

import json
import logging

import pytest
from rich.logging import RichHandler

from logsieve.exceptions import ErrorCode, FatalIdentityError
from logsieve.exceptions.pipeline import CleanupFailure
from logsieve.logging_config import (
    StructuredFileFormatter,
    get_logger,
    resolve_level,
    setup_logging,
)


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
    logging.getLogger("logsieve").setLevel(logging.NOTSET)


def _record(msg="boom", **extra):
    record = logging.LogRecord("logsieve.test", logging.WARNING, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestResolveLevel:
    @pytest.mark.parametrize(
        "verbose, quiet, expected",
        [
            (False, False, logging.INFO),
            (True, False, logging.DEBUG),
            (False, True, logging.ERROR),
            (True, True, logging.ERROR),
        ],
    )
    def test_levels(self, verbose, quiet, expected):
        assert resolve_level(verbose, quiet) == expected


class TestGetLogger:
    def test_root(self):
        assert get_logger().name == "logsieve"

    def test_package_module_unchanged(self):
        assert get_logger("logsieve.orchestrator").name == "logsieve.orchestrator"

    def test_foreign_name_nested(self):
        assert get_logger("plugins_extra").name == "logsieve.plugins_extra"

    def test_lookalike_prefix_nested(self):
        assert get_logger("logsieveish").name == "logsieve.logsieveish"


class TestStructuredFileFormatter:
    def test_plain_record(self):
        line = StructuredFileFormatter().format(_record())
        assert line.endswith("logsieve.test - WARNING - boom")

    def test_run_error_payload_appended(self):
        error = FatalIdentityError("logs.zip", "unreadable")
        line = StructuredFileFormatter().format(_record(run_error=error.to_json()))
        payload = json.loads(line[line.index("{"):])
        assert payload["run_error"]["error_code"] == ErrorCode.LS100.value
        assert payload["run_error"]["fatal"] is True

    def test_cleanup_failure_payload_appended(self):
        failure = CleanupFailure("cleanup_temp", ErrorCode.LS902, OSError("busy"))
        line = StructuredFileFormatter().format(_record(cleanup_failure=failure.to_json()))
        payload = json.loads(line[line.index("{"):])
        assert payload == {
            "cleanup_failure": {
                "error_code": "LS902",
                "step": "cleanup_temp",
                "error_type": "OSError",
                "message": "busy",
            }
        }


class TestSetupLogging:
    def test_default_is_info_with_rich_console(self):
        logger = setup_logging()
        assert logger.name == "logsieve"
        assert logger.level == logging.INFO
        assert any(isinstance(h, RichHandler) for h in logging.getLogger().handlers)

    def test_chatty_libraries_quieted(self):
        setup_logging()
        assert logging.getLogger("urllib3").level == logging.WARNING
        setup_logging(verbose=True)
        assert logging.getLogger("urllib3").level == logging.DEBUG

    def test_log_file_receives_structured_lines(self, tmp_path):
        log_file = tmp_path / "logs" / "run.log"
        setup_logging(quiet=True, log_file=log_file)
        failure = CleanupFailure("drop_database", ErrorCode.LS900, OSError("locked"))

        get_logger("logsieve.teardown").error(
            "cleanup failed", extra={"cleanup_failure": failure.to_json()}
        )
        get_logger("logsieve.teardown").info("not written when quiet")
        for handler in logging.getLogger().handlers:
            handler.flush()

        lines = log_file.read_text().splitlines()
        assert len(lines) == 1
        assert '"step": "drop_database"' in lines[0]
