"""
Plugin registry and the script workflow service.
"""

from .plugin import DuplicatePluginError, Plugin, PluginError, PluginRegistry, RunInfo
from .service import WORKFLOW_NAME, ScriptRequest, StarService

__all__ = [
    "DuplicatePluginError",
    "Plugin",
    "PluginError",
    "PluginRegistry",
    "RunInfo",
    "WORKFLOW_NAME",
    "ScriptRequest",
    "StarService",
]
