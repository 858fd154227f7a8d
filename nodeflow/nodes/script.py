"""Script node: user code applied to the upstream records."""

import ast
import asyncio
import operator
import sys
import time
from typing import Any, Dict, List, Optional

from RestrictedPython import compile_restricted_exec
from RestrictedPython.Eval import default_guarded_getitem, default_guarded_getiter
from RestrictedPython.Guards import (
    full_write_guard,
    guarded_iter_unpack_sequence,
    guarded_unpack_sequence,
    safe_builtins,
    safer_getattr,
)
from RestrictedPython.PrintCollector import PrintCollector

from ..core.context import ExecutionContext
from ..core.exceptions import NodeExecutionError
from ..models.configs import ScriptConfig
from ..models.core import LogLevel, NodeResult, NodeType
from .base import NodeBehavior

# RestrictedPython's safe set plus the collection helpers record transforms need
SCRIPT_BUILTINS: Dict[str, Any] = {
    **safe_builtins,
    "all": all, "any": any, "dict": dict, "enumerate": enumerate,
    "filter": filter, "list": list, "map": map, "max": max, "min": min,
    "reversed": reversed, "set": set, "sum": sum,
}

_INPLACE_OPS = {
    "+=": operator.iadd, "-=": operator.isub, "*=": operator.imul,
    "/=": operator.itruediv, "//=": operator.ifloordiv, "%=": operator.imod,
    "**=": operator.ipow, "<<=": operator.ilshift, ">>=": operator.irshift,
    "|=": operator.ior, "&=": operator.iand, "^=": operator.ixor,
}


def _inplacevar(op: str, target: Any, value: Any) -> Any:
    return _INPLACE_OPS[op](target, value)


def _restricted_globals() -> Dict[str, Any]:
    return {
        "__builtins__": SCRIPT_BUILTINS,
        "__name__": "script",
        "_getattr_": safer_getattr,
        "_getitem_": default_guarded_getitem,
        "_getiter_": default_guarded_getiter,
        "_iter_unpack_sequence_": guarded_iter_unpack_sequence,
        "_unpack_sequence_": guarded_unpack_sequence,
        "_write_": full_write_guard,
        "_inplacevar_": _inplacevar,
        "_print_": PrintCollector,
    }


def compile_script(code: str):
    """
    Compile ``code`` under RestrictedPython.

    Dunder attribute access is rejected before compilation so the message
    names the offending attribute.
    """
    try:
        tree = ast.parse(code, "<script>")
    except SyntaxError as e:
        raise NodeExecutionError(f"Script syntax error: {e.msg} (line {e.lineno})") from e

    for node in ast.walk(tree):
        if isinstance(node, ast.Attribute) and node.attr.startswith("__"):
            raise NodeExecutionError(f"Access to '{node.attr}' is not allowed (line {node.lineno})")

    result = compile_restricted_exec(code, filename="<script>")
    if result.errors:
        raise NodeExecutionError(f"Script rejected: {'; '.join(result.errors)}")
    return result.code


def run_python(code: str, inputs: List[Any], timeout: Optional[float] = None) -> Any:
    """
    Execute ``code`` and return ``main(inputs)``.

    With a ``timeout`` the script is interrupted at the first line it
    executes past the deadline. No imports are available.
    """
    byte_code = compile_script(code)
    namespace = _restricted_globals()

    previous = sys.gettrace()
    if timeout is not None:
        deadline = time.monotonic() + timeout

        def check_deadline(frame, event, arg):
            if time.monotonic() > deadline:
                raise NodeExecutionError(f"Script exceeded {timeout}s")
            return check_deadline

        sys.settrace(check_deadline)
    try:
        exec(byte_code, namespace)
        main = namespace.get("main")
        if not callable(main):
            raise NodeExecutionError("Python script must define main(inputs)")
        result = main(inputs)
    finally:
        sys.settrace(previous)

    if result is None:
        raise NodeExecutionError("main(inputs) returned None")
    return result


class ScriptBehavior(NodeBehavior):
    """
    Runs a code block over ``inputs``.

    Python code defining ``main(inputs)`` is compiled with RestrictedPython
    and executed in a worker thread, stopped after ``timeout`` seconds when
    one is set. Other languages have no in-process runtime: the inputs are
    forwarded unchanged with a warning. Without code the inputs are
    forwarded as they are, including an empty list.
    """

    node_type = NodeType.SCRIPT.value
    label = "Code Block"
    description = "Executes custom Python or JavaScript code."
    config_model = ScriptConfig

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    async def execute(self, ctx: ExecutionContext) -> NodeResult:
        config = self.parse_config(ctx)
        language = config.language

        ctx.log(f"Compiling {language} code...")
        ctx.log(f"Processing {len(ctx.inputs)} input records...")

        data: Any = list(ctx.inputs)
        if config.code.strip():
            if language == "python":
                data = await asyncio.to_thread(run_python, config.code, list(ctx.inputs), self.timeout)
            else:
                ctx.log(f"No {language} runtime available; forwarding inputs unchanged.", LogLevel.WARN)

        ctx.log("Execution complete.", LogLevel.SUCCESS)
        count = len(data) if isinstance(data, (list, tuple)) else 1
        return NodeResult.success({"processed": True, "count": count, "source": language, "data": data})
