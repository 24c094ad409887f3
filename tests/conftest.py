"""Shared test fixtures for logsieve tests."""

import os
import zipfile

import pytest

from logsieve.config import LogsieveConfig
from logsieve.models import RunContext, RunRequest

APP_LOG = """\
2024-05-01 10:00:00,123 INFO Service starting
2024-05-01 10:00:01,000 WARN Disk usage at 85%
2024-05-01 10:00:02,000 ERROR Connection refused
    at db.connect(db.py:10)
    at main(main.py:3)
2024-05-01 10:00:03,000 ERROR Connection refused
2024-05-01 10:00:04,000 INFO Retrying
"""

SERVICE_JSONL = """\
{"timestamp": "2024-05-01T10:00:00Z", "level": "info", "message": "ready"}
{"timestamp": "2024-05-01T10:00:05Z", "level": "error", "message": "timeout"}
not json
"""

# Records parsed from the sample logset: 5 from app.log, 2 from service.jsonl
SAMPLE_RECORD_COUNT = 7


def pytest_addoption(parser):
    """Add --run-slow option for slow tests."""
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="run slow tests",
    )


def pytest_configure(config):
    """Configure slow marker."""
    config.addinivalue_line("markers", "slow: mark test as slow to run")


def pytest_collection_modifyitems(config, items):
    """Skip slow tests unless --run-slow is given."""
    if config.getoption("--run-slow"):
        return
    skip_slow = pytest.mark.skip(reason="need --run-slow option to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep user config files and LOGSIEVE_* variables out of every test."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    for key in list(os.environ):
        if key.startswith("LOGSIEVE_"):
            monkeypatch.delenv(key)


@pytest.fixture
def config(tmp_path):
    """Config rooted in a temporary app directory."""
    return LogsieveConfig(app_dir=str(tmp_path / "app"), batch_size=2)


@pytest.fixture
def sample_logset(tmp_path):
    """Directory logset with a plain-text and a JSON-lines log."""
    root = tmp_path / "logset"
    root.mkdir()
    (root / "app.log").write_text(APP_LOG)
    (root / "service.jsonl").write_text(SERVICE_JSONL)
    return root


@pytest.fixture
def sample_zip(tmp_path, sample_logset):
    """The sample logset packed as a zip with the same member names."""
    archive = tmp_path / "logset.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        for path in sorted(sample_logset.iterdir()):
            zf.write(path, arcname=path.name)
    return archive


@pytest.fixture
def make_request(config):
    """Factory for run requests against the test config."""

    def _make(target, **kwargs):
        return RunRequest.create(str(target), config, **kwargs)

    return _make


@pytest.fixture
def make_context():
    """Factory for a run context with a resolved fingerprint."""

    def _make(request, logset_hash="0123456789abcdef0123456789abcdef"):
        context = RunContext.for_request(request)
        context.logset_hash = logset_hash
        return context

    return _make


@pytest.fixture
def sample_record_count():
    return SAMPLE_RECORD_COUNT


@pytest.fixture
def encrypted_zip(tmp_path):
    """A zip whose only member carries the "encrypted" flag bit."""
    archive = tmp_path / "locked.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr("app.log", APP_LOG)
    data = bytearray(archive.read_bytes())
    # General purpose flag bits: local header offset 6, central directory offset 8
    for signature, offset in ((b"PK\x03\x04", 6), (b"PK\x01\x02", 8)):
        at = data.index(signature) + offset
        data[at] |= 0x01
    archive.write_bytes(bytes(data))
    return archive
