"""
Workflow primitives for scripts.

    local r = cad.execute_activity("resize", img, 640, kw{task_list = "gpu"})
    local out = cad.execute_workflow("child", r, kw{domain = "media", as_bytes = true})
    print(cad.execution_id, cad.execution_run_id)

Options derive a context local to the one call; the script's ambient context
is never changed.
"""

from typing import Any, Callable, Dict, Tuple

from ..service.plugin import Plugin, RunInfo
from ..star.attrs import Builtin, ScriptModule
from ..star.runtime import Pending, ScriptThread
from ..workflow.context import Context
from ..workflow.errors import INVALID_ARGUMENT, UNIMPLEMENTED
from ..workflow.future import Future
from ..workflow.workflow import Workflow

PLUGIN_ID = "cad"


def _builtin_error(w: Workflow, ctx: Context, builtin: str, reason: str, *details: Any) -> Exception:
    err = w.new_custom_error(reason, *details)
    w.get_logger(ctx).error(f"builtin-error: {builtin}: {err}")
    return err


def _target(thread: ScriptThread, builtin: str, args: Tuple[Any, ...]) -> str:
    if not args or not isinstance(args[0], str):
        raise _builtin_error(
            thread.workflow, thread.ctx, builtin, INVALID_ARGUMENT,
            f"{builtin}: first argument must be a name string",
        )
    return args[0]


def _option(thread: ScriptThread, builtin: str, key: str, value: Any, expected: type) -> Any:
    if not isinstance(value, expected):
        raise _builtin_error(
            thread.workflow, thread.ctx, builtin, INVALID_ARGUMENT,
            f"{key} must be {expected.__name__}, got {type(value).__name__}",
        )
    return value


def _apply_options(
    thread: ScriptThread,
    builtin: str,
    options: Dict[str, Any],
    derivations: Dict[str, Callable[[Context, str], Context]],
) -> Tuple[Context, bool]:
    """
    Apply keyword options to a local copy of the thread context.

    Returns the derived context and the as_bytes flag. Raises (without
    touching the thread context) on headers or unknown keys.
    """
    w = thread.workflow
    ctx = thread.ctx
    as_bytes = False
    for key, value in options.items():
        if key in derivations:
            ctx = derivations[key](ctx, _option(thread, builtin, key, value, str))
        elif key == "as_bytes":
            as_bytes = _option(thread, builtin, key, value, bool)
        elif key == "headers":
            # TODO: propagate per-call headers once the header propagator accepts call-scoped values
            raise _builtin_error(w, thread.ctx, builtin, UNIMPLEMENTED)
        else:
            raise _builtin_error(w, thread.ctx, builtin, INVALID_ARGUMENT, f"unsupported key: {key}")
    return ctx, as_bytes


async def _execute_future(ctx: Context, w: Workflow, future: Future, as_bytes: bool) -> Any:
    try:
        return await future.get(ctx, bytes if as_bytes else None)
    except Exception as e:
        w.get_logger(ctx).error(f"builtin-error: as_bytes={as_bytes}: {e}")
        raise


def _execute_activity(thread: ScriptThread, *args: Any, **options: Any) -> Pending:
    activity_id = _target(thread, "execute_activity", args)
    w = thread.workflow
    ctx, as_bytes = _apply_options(thread, "execute_activity", options, {
        "task_list": w.with_task_list,
    })
    future = w.execute_activity(ctx, activity_id, *args[1:])
    return Pending(_execute_future(ctx, w, future, as_bytes))


def _execute_workflow(thread: ScriptThread, *args: Any, **options: Any) -> Pending:
    workflow_id = _target(thread, "execute_workflow", args)
    w = thread.workflow
    ctx, as_bytes = _apply_options(thread, "execute_workflow", options, {
        "domain": w.with_workflow_domain,
        "task_list": w.with_workflow_task_list,
    })
    future = w.execute_child_workflow(ctx, workflow_id, *args[1:])
    return Pending(_execute_future(ctx, w, future, as_bytes))


def _execution_id(receiver: "CadModule") -> str:
    return receiver.run_info.info.execution_id


def _execution_run_id(receiver: "CadModule") -> str:
    return receiver.run_info.info.run_id


class CadModule(ScriptModule):
    name = PLUGIN_ID
    builtins = {
        "execute_activity": Builtin("execute_activity", _execute_activity),
        "execute_workflow": Builtin("execute_workflow", _execute_workflow),
    }
    properties = {
        "execution_id": _execution_id,
        "execution_run_id": _execution_run_id,
    }

    def __init__(self, run_info: RunInfo):
        self.run_info = run_info


class CadPlugin(Plugin):
    id = PLUGIN_ID

    def create(self, run_info: RunInfo) -> ScriptModule:
        return CadModule(run_info)
