"""Logset fingerprinting.

A fingerprint is an MD5 digest over a logset's *content*, so the same logs
re-packaged (different archive timestamps, member order, or a directory
instead of a zip) resolve to the same fingerprint and the same database.
"""

from __future__ import annotations

import hashlib
import tarfile
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Tuple

import requests

from .exceptions import FatalIdentityError
from .extraction import UNREADABLE_ARCHIVE_ERRORS, looks_like_archive
from .logging_config import get_logger
from .models import RunTarget

logger = get_logger(__name__)


@dataclass(frozen=True)
class IdentityResolution:
    """Resolved fingerprint plus whether force-reprocess must be disabled."""

    fingerprint: str
    disable_force_reprocess: bool = False


class HashIdentityResolver:
    """Computes or passes through the fingerprint of a run target."""

    def __init__(self, timeout_seconds: int = 60) -> None:
        self.timeout_seconds = timeout_seconds

    def resolve(self, target: RunTarget) -> IdentityResolution:
        """Return the target's fingerprint.

        A pre-resolved fingerprint is returned unchanged; there is no payload
        to re-parse, so force-reprocess is disabled for the run.

        Raises:
            FatalIdentityError: If the fingerprint cannot be computed
        """
        if target.is_hash_id:
            return IdentityResolution(target.value, disable_force_reprocess=True)

        logger.info("Computing logset hash..")
        try:
            if target.is_url:
                fingerprint = hash_remote(target.value, self.timeout_seconds)
            else:
                fingerprint = hash_path(target.path)
        except FatalIdentityError:
            raise
        except (requests.RequestException,) + UNREADABLE_ARCHIVE_ERRORS as e:
            raise FatalIdentityError(str(target), str(e)) from e

        logger.info("Logset hash is '%s'.", fingerprint)
        return IdentityResolution(fingerprint)


def hash_path(path: Path) -> str:
    """Fingerprint a directory, archive, or single log file."""
    if not path.exists():
        raise FatalIdentityError(str(path), "target does not exist")

    if path.is_dir():
        members = _directory_members(path)
    elif looks_like_archive(path):
        members = _zip_members(path) if zipfile.is_zipfile(path) else _tar_members(path)
    else:
        members = iter([(path.name, path.read_bytes())])

    return _digest(members)


def hash_remote(url: str, timeout_seconds: int = 60) -> str:
    """Fingerprint a remote logset from its URL and validators.

    Hashing the body would mean downloading it twice; the ETag and length
    identify the payload well enough to deduplicate repeat runs.
    """
    response = requests.head(url, allow_redirects=True, timeout=timeout_seconds)
    response.raise_for_status()
    validators = "|".join(
        [
            url,
            response.headers.get("ETag", ""),
            response.headers.get("Content-Length", ""),
        ]
    )
    return hashlib.md5(validators.encode("utf-8")).hexdigest()


def _digest(members: Iterator[Tuple[str, bytes]]) -> str:
    md5 = hashlib.md5()
    for name, content in sorted(members, key=lambda m: m[0]):
        md5.update(name.encode("utf-8", "surrogateescape"))
        md5.update(b"\0")
        md5.update(hashlib.md5(content).digest())
    return md5.hexdigest()


def _directory_members(root: Path) -> Iterator[Tuple[str, bytes]]:
    for file_path in root.rglob("*"):
        if file_path.is_file():
            yield file_path.relative_to(root).as_posix(), file_path.read_bytes()


def _zip_members(path: Path) -> Iterator[Tuple[str, bytes]]:
    with zipfile.ZipFile(path) as archive:
        for info in archive.infolist():
            if not info.is_dir():
                yield info.filename, archive.read(info)


def _tar_members(path: Path) -> Iterator[Tuple[str, bytes]]:
    with tarfile.open(path) as archive:
        for member in archive.getmembers():
            if not member.isfile():
                continue
            handle = archive.extractfile(member)
            if handle is None:
                continue
            with handle:
                yield member.name, handle.read()
