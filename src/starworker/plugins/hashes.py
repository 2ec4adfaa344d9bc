"""Hex digests for scripts: ``hashlib.sha256("text")``."""

import hashlib
from typing import Any

from ..service.plugin import Plugin, RunInfo
from ..star.attrs import Builtin, ScriptModule
from ..star.runtime import ScriptThread

PLUGIN_ID = "hashlib"


def _digest(algorithm: str) -> Builtin:
    def digest(thread: ScriptThread, data: Any) -> str:
        if isinstance(data, str):
            data = data.encode("utf-8")
        if not isinstance(data, bytes):
            raise TypeError(f"{algorithm}: expected string, got {type(data).__name__}")
        return hashlib.new(algorithm, data).hexdigest()

    return Builtin(algorithm, digest)


class HashlibModule(ScriptModule):
    name = PLUGIN_ID
    builtins = {name: _digest(name) for name in ("md5", "sha1", "sha256", "sha512")}
    properties = {}


class HashlibPlugin(Plugin):
    id = PLUGIN_ID

    def create(self, run_info: RunInfo) -> ScriptModule:
        return HashlibModule()
