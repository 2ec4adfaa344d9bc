"""
Plugin contract and registry.

A plugin contributes engine-side registrations once per worker (register)
and one script module per workflow instance (create). The registry is built
once from an explicit plugin set and is read-only afterwards.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Union

from ..star.attrs import ScriptModule
from ..star.runtime import RESERVED_GLOBALS
from ..workflow.errors import StarworkerError
from ..workflow.worker import Registry
from ..workflow.workflow import WorkflowInfo

logger = logging.getLogger(__name__)


class PluginError(StarworkerError):
    """Invalid plugin set."""


class DuplicatePluginError(PluginError):
    """Two plugins share one ID."""


@dataclass(frozen=True)
class RunInfo:
    """Per-workflow-instance parameters handed to Plugin.create."""

    info: WorkflowInfo
    environ: Mapping[str, str] = field(default_factory=dict)
    storage: Dict[str, Any] = field(default_factory=dict)


class Plugin(ABC):
    """A script module plus its engine-side registrations."""

    @property
    @abstractmethod
    def id(self) -> str:
        """Unique ID; also the module's global name in scripts."""

    @abstractmethod
    def create(self, run_info: RunInfo) -> ScriptModule:
        """Build the module for one workflow instance. Must not call the engine."""

    def register(self, registry: Registry) -> None:
        """Register activities/workflows at worker startup."""


class PluginRegistry:
    """Validated, read-only set of plugins keyed by ID."""

    def __init__(self, plugins: Union[Iterable[Plugin], Mapping[str, Plugin]] = ()):
        table: Dict[str, Plugin] = {}
        if isinstance(plugins, Mapping):
            entries = list(plugins.items())
        else:
            entries = [(plugin.id, plugin) for plugin in plugins]
        for key, plugin in entries:
            plugin_id = plugin.id
            if key != plugin_id:
                raise PluginError(f"plugin registered as '{key}' has ID '{plugin_id}'")
            if not plugin_id or not plugin_id.isidentifier():
                raise PluginError(f"plugin ID {plugin_id!r} is not a valid identifier")
            if plugin_id in RESERVED_GLOBALS:
                raise PluginError(f"plugin ID '{plugin_id}' shadows a script builtin")
            if plugin_id in table:
                raise DuplicatePluginError(f"duplicate plugin ID '{plugin_id}'")
            table[plugin_id] = plugin
        self._plugins = MappingProxyType(table)

    @property
    def plugins(self) -> Mapping[str, Plugin]:
        return self._plugins

    def ids(self) -> list:
        return list(self._plugins)

    def register(self, registry: Registry) -> None:
        for plugin_id, plugin in self._plugins.items():
            logger.info(f"Registering plugin '{plugin_id}'")
            plugin.register(registry)

    def create_modules(self, run_info: RunInfo) -> Dict[str, ScriptModule]:
        return {plugin_id: plugin.create(run_info) for plugin_id, plugin in self._plugins.items()}

    def __contains__(self, plugin_id: str) -> bool:
        return plugin_id in self._plugins

    def __len__(self) -> int:
        return len(self._plugins)
