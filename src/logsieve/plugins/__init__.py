"""Analysis plugins: contract, discovery and execution."""

from .base import AnalysisPlugin, PluginContext, PluginResult
from .executor import PluginExecutor
from .output import PluginOutputStore, table_name
from .registry import BUILTIN_PLUGINS, ENTRY_POINT_GROUP, PluginLoader, discover_plugins

__all__ = [
    "AnalysisPlugin",
    "PluginContext",
    "PluginResult",
    "PluginExecutor",
    "PluginOutputStore",
    "table_name",
    "BUILTIN_PLUGINS",
    "ENTRY_POINT_GROUP",
    "PluginLoader",
    "discover_plugins",
]
