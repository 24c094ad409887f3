"""Plugins shipped with logsieve."""

from .collection_inventory import CollectionInventoryPlugin
from .error_digest import ErrorDigestPlugin
from .level_summary import LevelSummaryPlugin

__all__ = ["CollectionInventoryPlugin", "ErrorDigestPlugin", "LevelSummaryPlugin"]
