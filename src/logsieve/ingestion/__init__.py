"""Parsing of materialized logsets into the structured store."""

from .parsers import (
    JsonLinesParser,
    LogParser,
    LogRecord,
    ParserRegistry,
    PlainTextParser,
    collection_for,
)
from .writer import StoreWriter

__all__ = [
    "JsonLinesParser",
    "LogParser",
    "LogRecord",
    "ParserRegistry",
    "PlainTextParser",
    "StoreWriter",
    "collection_for",
]
