"""JSON for scripts: ``json.dumps(value)`` / ``json.loads(text)``."""

import json
from typing import Any

from ..service.plugin import Plugin, RunInfo
from ..star.attrs import Builtin, ScriptModule
from ..star.runtime import ScriptThread

PLUGIN_ID = "json"


def _dumps(thread: ScriptThread, value: Any, indent: Any = None) -> str:
    # sorted keys keep the output independent of table construction order
    return json.dumps(value, sort_keys=True, indent=indent, separators=None if indent else (",", ":"))


def _loads(thread: ScriptThread, text: str) -> Any:
    if not isinstance(text, str):
        raise TypeError(f"loads: expected string, got {type(text).__name__}")
    return json.loads(text)


class JsonModule(ScriptModule):
    name = PLUGIN_ID
    builtins = {
        "dumps": Builtin("dumps", _dumps),
        "loads": Builtin("loads", _loads),
    }
    properties = {}


class JsonPlugin(Plugin):
    id = PLUGIN_ID

    def create(self, run_info: RunInfo) -> ScriptModule:
        return JsonModule()
