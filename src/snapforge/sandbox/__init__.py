"""Sandboxed execution: worker process, disposable contexts, helper runtime."""

from snapforge.sandbox.environment import ExecutionContext, ExecutionEnvironment, Invocation
from snapforge.sandbox.policy import check_source, safe_builtins
from snapforge.sandbox.runtime import build_runtime, parse_date

__all__ = [
    "ExecutionContext",
    "ExecutionEnvironment",
    "Invocation",
    "check_source",
    "safe_builtins",
    "build_runtime",
    "parse_date",
]
