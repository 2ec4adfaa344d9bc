"""
Progress reporting for scripts.

``progress.report(value)`` keeps the latest value in the instance storage and
serves it through the ``progress`` query; ``progress.value`` reads it back.
"""

from typing import Any

from ..service.plugin import Plugin, RunInfo
from ..star.attrs import Builtin, ScriptModule
from ..star.runtime import ScriptThread

PLUGIN_ID = "progress"
QUERY_NAME = "progress"

_VALUE_KEY = "progress.value"
_HANDLER_KEY = "progress.handler"


def _report(thread: ScriptThread, value: Any) -> None:
    storage = thread.storage
    storage[_VALUE_KEY] = value
    if not storage.get(_HANDLER_KEY):
        # registered on first report: create() must not call the engine
        thread.workflow.set_query_handler(thread.ctx, QUERY_NAME, lambda: storage.get(_VALUE_KEY))
        storage[_HANDLER_KEY] = True


def _value(receiver: "ProgressModule") -> Any:
    return receiver.storage.get(_VALUE_KEY)


class ProgressModule(ScriptModule):
    name = PLUGIN_ID
    builtins = {"report": Builtin("report", _report)}
    properties = {"value": _value}

    def __init__(self, run_info: RunInfo):
        self.storage = run_info.storage


class ProgressPlugin(Plugin):
    id = PLUGIN_ID

    def create(self, run_info: RunInfo) -> ScriptModule:
        return ProgressModule(run_info)
