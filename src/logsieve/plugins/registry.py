"""Plugin registry and loader.

Adding a plugin requires either:
1. Adding its class to ``BUILTIN_PLUGINS`` below, or
2. Publishing it from another distribution under the ``logsieve.plugins``
   entry point group.

Selection keywords: ``all`` selects every plugin, ``default`` selects plugins
whose ``default`` flag is set.
"""

from __future__ import annotations

from importlib.metadata import entry_points
from typing import Dict, FrozenSet, Iterable, List, Optional, Type

from ..exceptions import PluginLoadError
from ..logging_config import get_logger
from ..models import RunRequest
from .base import AnalysisPlugin
from .builtin import CollectionInventoryPlugin, ErrorDigestPlugin, LevelSummaryPlugin

logger = get_logger(__name__)

ENTRY_POINT_GROUP = "logsieve.plugins"
SELECT_ALL = "all"
SELECT_DEFAULT = "default"

PluginType = Type[AnalysisPlugin]

BUILTIN_PLUGINS: List[PluginType] = [
    CollectionInventoryPlugin,
    ErrorDigestPlugin,
    LevelSummaryPlugin,
]


def _entry_point_plugins() -> List[PluginType]:
    eps = entry_points()
    if hasattr(eps, "select"):
        group = eps.select(group=ENTRY_POINT_GROUP)
    else:
        group = eps.get(ENTRY_POINT_GROUP, [])

    found: List[PluginType] = []
    for ep in group:
        try:
            plugin = ep.load()
        except Exception as e:  # third-party import failures must not break the run
            logger.warning("Failed to load plugin entry point %s: %s", ep.name, e)
            continue
        if isinstance(plugin, type) and issubclass(plugin, AnalysisPlugin):
            found.append(plugin)
        else:
            logger.warning("Entry point %s is not an AnalysisPlugin subclass", ep.name)
    return found


def discover_plugins(include_entry_points: bool = True) -> Dict[str, PluginType]:
    """Return ``{name: plugin_type}``; built-ins win on name clashes."""
    registry: Dict[str, PluginType] = {}
    candidates: List[PluginType] = list(BUILTIN_PLUGINS)
    if include_entry_points:
        candidates += _entry_point_plugins()
    for plugin in candidates:
        if plugin.name in registry:
            logger.debug("Duplicate plugin name %r, keeping %s", plugin.name, registry[plugin.name])
            continue
        registry[plugin.name] = plugin
    return registry


class PluginLoader:
    """Resolves which plugins a run executes."""

    def __init__(self, registry: Optional[Dict[str, PluginType]] = None) -> None:
        self._registry = registry

    @property
    def registry(self) -> Dict[str, PluginType]:
        if self._registry is None:
            self._registry = discover_plugins()
        return self._registry

    def available_plugins(self) -> List[PluginType]:
        return [self.registry[name] for name in sorted(self.registry)]

    def select(self, names: Iterable[str]) -> FrozenSet[PluginType]:
        """Resolve plugin names and selection keywords.

        Raises:
            PluginLoadError: If any name is unknown
        """
        requested = [n.strip() for n in names if n and n.strip()] or [SELECT_DEFAULT]
        selected = set()
        unknown = []
        for name in requested:
            if name == SELECT_ALL:
                selected.update(self.registry.values())
            elif name == SELECT_DEFAULT:
                selected.update(p for p in self.registry.values() if p.default)
            elif name in self.registry:
                selected.add(self.registry[name])
            else:
                unknown.append(name)
        if unknown:
            raise PluginLoadError(unknown, sorted(self.registry))
        return frozenset(selected)

    def load_plugins(self, request: RunRequest) -> FrozenSet[PluginType]:
        plugins = self.select(request.plugin_names)
        logger.info(
            "Loaded %d plugin(s): %s",
            len(plugins),
            ", ".join(sorted(p.name for p in plugins)) or "none",
        )
        return plugins
