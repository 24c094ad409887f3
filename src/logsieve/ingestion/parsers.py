"""Log file parsers.

Each parser turns one file into ``LogRecord``s. The collection a record lands
in is derived from the file name, so rotated files (``app.log``,
``app.log.1``, ``app.2024-01-01.log``) share one collection.

Adding a parser requires:
1. Subclass ``LogParser`` and implement ``can_parse`` and ``parse``.
2. Add an instance to ``DEFAULT_PARSERS`` (order matters: first match wins).
"""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

_ROTATION_SUFFIX = re.compile(r"(\.\d+)+$")
_DATE_SUFFIX = re.compile(r"[._-]\d{4}-?\d{2}-?\d{2}.*$")
_NON_IDENT = re.compile(r"[^a-z0-9]+")

_TIMESTAMP = (
    r"\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2}(?:[.,]\d+)?(?:Z|[+-]\d{2}:?\d{2})?"
)
_LEVELS = r"TRACE|DEBUG|INFO|NOTICE|WARN|WARNING|ERROR|SEVERE|FATAL|CRITICAL"
_PLAIN_LINE = re.compile(
    rf"^\[?(?P<ts>{_TIMESTAMP})\]?\s+(?:\[?(?P<level>{_LEVELS})\]?:?\s+)?(?P<msg>.*)$",
    re.IGNORECASE,
)
_LEADING_LEVEL = re.compile(rf"^\[?(?P<level>{_LEVELS})\]?:?\s+(?P<msg>.*)$", re.IGNORECASE)

_LEVEL_ALIASES = {
    "WARN": "WARNING",
    "SEVERE": "ERROR",
    "CRITICAL": "FATAL",
}

_JSON_TIMESTAMP_KEYS = ("timestamp", "@timestamp", "ts", "time", "t")
_JSON_LEVEL_KEYS = ("level", "severity", "sev", "lvl", "loglevel")
_JSON_MESSAGE_KEYS = ("message", "msg", "text", "v")


def normalize_level(level: Optional[str]) -> Optional[str]:
    if not level:
        return None
    upper = str(level).strip().upper()
    return _LEVEL_ALIASES.get(upper, upper)


def collection_for(path: Path) -> str:
    """Collection name for a log file: ``httpd_access.log.3`` -> ``httpd_access``."""
    name = _ROTATION_SUFFIX.sub("", path.name.lower())
    for suffix in (".jsonl", ".json", ".log", ".txt", ".out"):
        if name.endswith(suffix):
            name = name[: -len(suffix)]
            break
    name = _ROTATION_SUFFIX.sub("", name)
    name = _DATE_SUFFIX.sub("", name)
    name = _NON_IDENT.sub("_", name).strip("_")
    return name or "unknown"


@dataclass(frozen=True)
class LogRecord:
    collection: str
    source_file: str
    line_number: int
    message: str
    timestamp: Optional[str] = None
    level: Optional[str] = None
    payload: Optional[str] = None

    def as_row(self) -> tuple:
        return (
            self.collection,
            self.source_file,
            self.line_number,
            self.timestamp,
            self.level,
            self.message,
            self.payload,
        )


class LogParser(ABC):
    """Base class for log file parsers."""

    name: str = "base"

    @abstractmethod
    def can_parse(self, path: Path) -> bool:
        """Whether this parser handles ``path``."""

    @abstractmethod
    def parse(self, path: Path, source_file: str) -> Iterator[LogRecord]:
        """Yield records from ``path``; ``source_file`` is its logset-relative name."""


def _first(obj: Dict[str, Any], keys: tuple) -> Optional[Any]:
    for key in keys:
        if key in obj and obj[key] not in (None, ""):
            return obj[key]
    return None


class JsonLinesParser(LogParser):
    """One JSON object per line. Lines that are not objects are skipped."""

    name = "jsonl"

    def can_parse(self, path: Path) -> bool:
        name = _ROTATION_SUFFIX.sub("", path.name.lower())
        return name.endswith((".jsonl", ".json"))

    def parse(self, path: Path, source_file: str) -> Iterator[LogRecord]:
        collection = collection_for(path)
        with open(path, encoding="utf-8", errors="replace") as fh:
            for line_number, line in enumerate(fh, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    obj = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if not isinstance(obj, dict):
                    continue

                message = _first(obj, _JSON_MESSAGE_KEYS)
                timestamp = _first(obj, _JSON_TIMESTAMP_KEYS)
                yield LogRecord(
                    collection=collection,
                    source_file=source_file,
                    line_number=line_number,
                    message=str(message) if message is not None else line,
                    timestamp=str(timestamp) if timestamp is not None else None,
                    level=normalize_level(_first(obj, _JSON_LEVEL_KEYS)),
                    payload=json.dumps(obj, sort_keys=True),
                )


class PlainTextParser(LogParser):
    """Line-oriented text logs with an optional leading timestamp and level.

    Indented lines and lines without a timestamp that follow a timestamped
    line (stack traces) are folded into the preceding record.
    """

    name = "plain"

    _SUFFIXES = (".log", ".txt", ".out")

    def can_parse(self, path: Path) -> bool:
        name = _ROTATION_SUFFIX.sub("", path.name.lower())
        return name.endswith(self._SUFFIXES)

    def parse(self, path: Path, source_file: str) -> Iterator[LogRecord]:
        collection = collection_for(path)
        pending: Optional[Dict[str, Any]] = None
        continuation: List[str] = []

        def flush() -> Optional[LogRecord]:
            if pending is None:
                return None
            message = "\n".join([pending["message"]] + continuation)
            return LogRecord(
                collection=collection,
                source_file=source_file,
                line_number=pending["line_number"],
                message=message,
                timestamp=pending["timestamp"],
                level=pending["level"],
            )

        with open(path, encoding="utf-8", errors="replace") as fh:
            for line_number, raw in enumerate(fh, start=1):
                line = raw.rstrip("\r\n")
                if not line.strip():
                    continue

                match = _PLAIN_LINE.match(line)
                if match is None and pending is not None and pending["timestamp"]:
                    # continuation of a multi-line entry
                    continuation.append(line)
                    continue

                record = flush()
                if record is not None:
                    yield record
                continuation = []

                if match is not None:
                    pending = {
                        "line_number": line_number,
                        "timestamp": match.group("ts"),
                        "level": normalize_level(match.group("level")),
                        "message": match.group("msg"),
                    }
                    continue

                level_match = _LEADING_LEVEL.match(line)
                pending = {
                    "line_number": line_number,
                    "timestamp": None,
                    "level": normalize_level(level_match.group("level")) if level_match else None,
                    "message": level_match.group("msg") if level_match else line,
                }

        record = flush()
        if record is not None:
            yield record


class ParserRegistry:
    """Chooses a parser per file; first match wins."""

    def __init__(self, parsers: Optional[List[LogParser]] = None) -> None:
        self.parsers = list(parsers) if parsers is not None else list(DEFAULT_PARSERS)

    def parser_for(self, path: Path) -> Optional[LogParser]:
        for parser in self.parsers:
            if parser.can_parse(path):
                return parser
        return None


DEFAULT_PARSERS: List[LogParser] = [JsonLinesParser(), PlainTextParser()]
