"""Structured store: per-logset SQLite databases, metadata index, local store process."""

from .client import MASTER_METADATA_DB, LogsetDatabase, StoreAdmin, StoreClient
from .metadata import LogsetMetadataWriter, LogsetStatusChecker, MetadataIndex
from .process import LocalStoreProcessManager

__all__ = [
    "MASTER_METADATA_DB",
    "LogsetDatabase",
    "StoreAdmin",
    "StoreClient",
    "LogsetMetadataWriter",
    "LogsetStatusChecker",
    "MetadataIndex",
    "LocalStoreProcessManager",
]
