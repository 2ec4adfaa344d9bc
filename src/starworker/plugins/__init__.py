"""
Bundled plugins.

- cad: workflow primitives (execute_activity, execute_workflow, identity)
- hashlib: hex digests
- json: JSON encode/decode
- progress: progress reporting via a query
"""

from typing import Dict, Iterable, List, Optional

from ..service.plugin import Plugin, PluginError
from .cad import CadPlugin
from .hashes import HashlibPlugin
from .json_codec import JsonPlugin
from .progress import ProgressPlugin

CATALOGUE: Dict[str, type] = {
    CadPlugin.id: CadPlugin,
    HashlibPlugin.id: HashlibPlugin,
    JsonPlugin.id: JsonPlugin,
    ProgressPlugin.id: ProgressPlugin,
}


def builtin_plugins(ids: Optional[Iterable[str]] = None) -> List[Plugin]:
    """Instantiate bundled plugins by ID (all of them by default)."""
    selected = list(CATALOGUE) if ids is None else list(ids)
    unknown = [plugin_id for plugin_id in selected if plugin_id not in CATALOGUE]
    if unknown:
        raise PluginError(f"unknown plugins: {', '.join(unknown)}")
    return [CATALOGUE[plugin_id]() for plugin_id in selected]


__all__ = [
    "CATALOGUE",
    "CadPlugin",
    "HashlibPlugin",
    "JsonPlugin",
    "ProgressPlugin",
    "builtin_plugins",
]
