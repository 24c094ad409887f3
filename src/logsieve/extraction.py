"""Materializes a logset into a local, readable directory tree.

Every run gets a temp directory ``<temp_dir>/<run_id>``; downloads and
unpacked archives live there, and teardown removes it.
"""

from __future__ import annotations

import shutil
import tarfile
import zipfile
import zlib
from pathlib import Path, PurePosixPath
from typing import Optional
from urllib.parse import urlparse

import requests

from .config import LogsieveConfig
from .exceptions import ErrorCode, ExtractionError
from .logging_config import get_logger
from .models import RunContext, RunRequest

logger = get_logger(__name__)

ARCHIVE_SUFFIXES = (".zip", ".tar", ".tar.gz", ".tgz", ".tar.bz2", ".tbz2")
_DOWNLOAD_CHUNK_SIZE = 1024 * 1024

# Raised by zipfile/tarfile on corrupt, truncated, encrypted or unsupported input.
UNREADABLE_ARCHIVE_ERRORS = (
    OSError,
    EOFError,
    RuntimeError,
    UnicodeError,
    zlib.error,
    tarfile.TarError,
    zipfile.BadZipFile,
)


def is_archive(path: Path) -> bool:
    return path.name.lower().endswith(ARCHIVE_SUFFIXES)


def looks_like_archive(path: Path) -> bool:
    """True if ``path`` is named like an archive or sniffs as a zip or tar.

    Downloads and renamed bundles often lose their suffix, so content is
    checked too. Fingerprinting and extraction must agree on this.
    """
    return is_archive(path) or zipfile.is_zipfile(path) or tarfile.is_tarfile(path)


def _strip_archive_suffix(name: str) -> str:
    lower = name.lower()
    for suffix in sorted(ARCHIVE_SUFFIXES, key=len, reverse=True):
        if lower.endswith(suffix):
            return name[: -len(suffix)]
    return name


def _ensure_within(dest: Path, member_name: str) -> None:
    resolved = (dest / member_name).resolve()
    if resolved != dest.resolve() and dest.resolve() not in resolved.parents:
        raise ExtractionError(
            member_name, "archive member escapes extraction directory", code=ErrorCode.LS302
        )


def unpack_archive(archive: Path, dest: Path) -> Path:
    """Unpack a zip or tar archive into ``dest``, rejecting path traversal."""
    dest.mkdir(parents=True, exist_ok=True)
    if zipfile.is_zipfile(archive):
        with zipfile.ZipFile(archive) as zf:
            for name in zf.namelist():
                _ensure_within(dest, name)
            zf.extractall(dest)
    elif tarfile.is_tarfile(archive):
        with tarfile.open(archive) as tf:
            members = [m for m in tf.getmembers() if m.isfile() or m.isdir()]
            for member in members:
                _ensure_within(dest, member.name)
            if hasattr(tarfile, "data_filter"):
                tf.extractall(dest, members=members, filter="data")
            else:
                tf.extractall(dest, members=members)
    else:
        raise ExtractionError(str(archive), "not a zip or tar archive")
    return dest


class LogsetExtractor:
    """Unpacks targets and owns the run-scoped temp directories."""

    def __init__(
        self,
        config: LogsieveConfig,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.config = config
        self.session = session or requests.Session()

    @property
    def temp_root(self) -> Path:
        return self.config.temp_path

    def run_directory(self, run_id: str) -> Path:
        return self.temp_root / run_id

    def process(self, request: RunRequest, context: RunContext) -> Optional[Path]:
        """Materialize the target and set ``context.root_log_directory``.

        A pre-resolved fingerprint has no payload; nothing is materialized and
        the root log directory stays unset.

        Raises:
            ExtractionError: If the target cannot be fetched or unpacked
        """
        target = request.target
        if target.is_hash_id:
            logger.debug("Target is a logset hash; nothing to extract.")
            return None

        run_dir = self.run_directory(request.run_id)
        run_dir.mkdir(parents=True, exist_ok=True)

        try:
            if target.is_url:
                source = self._download(target.value, run_dir / "download")
            else:
                source = target.path
            root = self._materialize(source, run_dir / "extracted")
        except ExtractionError:
            raise
        except UNREADABLE_ARCHIVE_ERRORS as e:
            raise ExtractionError(str(target), str(e)) from e

        context.root_log_directory = root
        logger.info("Logset extracted to %s", root)
        return root

    def _materialize(self, source: Path, extract_dir: Path) -> Path:
        if not source.exists():
            raise ExtractionError(str(source), "target does not exist")
        if source.is_dir():
            return source

        if looks_like_archive(source):
            logger.info("Unpacking %s..", source.name)
            unpack_archive(source, extract_dir)
            self._unpack_nested(extract_dir)
            return extract_dir

        extract_dir.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, extract_dir / source.name)
        return extract_dir

    def _unpack_nested(self, root: Path) -> None:
        """Unpack archives found inside an unpacked logset, one level deep."""
        for nested in sorted(p for p in root.rglob("*") if p.is_file() and is_archive(p)):
            dest = nested.with_name(_strip_archive_suffix(nested.name))
            if dest.exists():
                dest = nested.with_name(nested.name + "_unpacked")
            logger.debug("Unpacking nested archive %s", nested)
            unpack_archive(nested, dest)
            nested.unlink()

    def _download(self, url: str, dest_dir: Path) -> Path:
        dest_dir.mkdir(parents=True, exist_ok=True)
        name = PurePosixPath(urlparse(url).path).name or "logset"
        dest = dest_dir / name
        logger.info("Downloading %s..", url)
        try:
            with self.session.get(
                url, stream=True, timeout=self.config.download_timeout_seconds
            ) as response:
                response.raise_for_status()
                with open(dest, "wb") as fh:
                    for chunk in response.iter_content(chunk_size=_DOWNLOAD_CHUNK_SIZE):
                        if chunk:
                            fh.write(chunk)
        except requests.RequestException as e:
            raise ExtractionError(url, str(e), code=ErrorCode.LS301) from e
        return dest

    # ── temp maintenance ──────────────────────────────────────────

    def cleanup_run(self, run_id: str) -> bool:
        """Remove one run's temp directory. Returns True if it existed."""
        run_dir = self.run_directory(run_id)
        if not run_dir.exists():
            return False
        shutil.rmtree(run_dir)
        logger.debug("Removed run temp directory %s", run_dir)
        return True

    def cleanup_all(self) -> int:
        """Purge temp state left over from aborted runs. Returns entries removed."""
        if not self.temp_root.is_dir():
            return 0
        removed = 0
        for entry in self.temp_root.iterdir():
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()
            removed += 1
        if removed:
            logger.info("Purged %d leftover temp entr%s.", removed, "y" if removed == 1 else "ies")
        return removed
