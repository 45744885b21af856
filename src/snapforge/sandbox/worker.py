"""Sandbox worker process.

Runs in a child process spawned by :class:`ExecutionEnvironment` and
serves requests over a ``multiprocessing`` connection. Each request is a
dict with an ``op`` key; each response is a dict with ``ok`` and, on
failure, ``kind``, ``error`` and ``stack``.

Ops: ``open``, ``inject_runtime``, ``inject``, ``invoke``, ``dispose``,
``stats``, ``shutdown``. Contexts are namespaces keyed by ``context_id``;
``dispose`` drops one and reports how many remain.
"""

from __future__ import annotations

import json
import time
import traceback
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from bs4 import BeautifulSoup

from snapforge.sandbox.policy import check_source, safe_builtins
from snapforge.sandbox.runtime import build_runtime

if TYPE_CHECKING:
    from multiprocessing.connection import Connection

MISSING_ENTRY_MESSAGE = "Generated code did not define an {entry}() function"
NON_PLAIN_MESSAGE = "{entry}() returned a non-plain value: {error}"
MAX_CONSOLE_LINES = 200


@dataclass
class _Context:
    document: BeautifulSoup
    namespace: dict[str, Any] = field(default_factory=dict)
    console: list[str] = field(default_factory=list)


def _fault(kind: str, exc: BaseException | None = None, message: str | None = None) -> dict[str, Any]:
    if message is None and exc is not None:
        message = f"{type(exc).__name__}: {exc}" if str(exc) else type(exc).__name__
    return {
        "ok": False,
        "kind": kind,
        "error": message or kind,
        "stack": traceback.format_exc() if exc is not None else None,
    }


def _plain(value: Any) -> Any:
    """Round-trip through JSON so only plain data crosses the pipe.

    Raises TypeError or ValueError for anything JSON cannot carry as is
    (document nodes, sets, circular containers).
    """
    return json.loads(json.dumps(value))


class Worker:
    """Request handlers; one instance lives in each worker process."""

    def __init__(self) -> None:
        self.contexts: dict[int, _Context] = {}

    def handle(self, request: dict[str, Any]) -> dict[str, Any]:
        op = request.get("op")
        handler = getattr(self, f"op_{op}", None)
        if handler is None:
            return _fault("protocol", message=f"Unknown op: {op}")
        return handler(request)

    def _context(self, request: dict[str, Any]) -> _Context:
        return self.contexts[request["context_id"]]

    def op_open(self, request: dict[str, Any]) -> dict[str, Any]:
        document = BeautifulSoup(request["raw_document"], "html.parser")
        self.contexts[request["context_id"]] = _Context(document=document)
        return {"ok": True}

    def op_inject_runtime(self, request: dict[str, Any]) -> dict[str, Any]:
        ctx = self._context(request)
        ctx.namespace = {"__builtins__": safe_builtins(), "__name__": "candidate"}
        ctx.namespace.update(build_runtime(ctx.document, ctx.console))
        return {"ok": True}

    def op_inject(self, request: dict[str, Any]) -> dict[str, Any]:
        ctx = self._context(request)
        source = request["source"]
        try:
            violations = check_source(source)
        except SyntaxError as exc:
            return _fault("syntax", exc, message=f"Syntax error: {exc.msg} (line {exc.lineno})")
        if violations:
            return {"ok": False, "kind": "violation", "violations": violations,
                    "error": "Sandbox policy violation", "stack": None}
        try:
            exec(compile(source, "<candidate>", "exec", dont_inherit=True), ctx.namespace)
        except Exception as exc:
            return _fault("fault", exc)
        return {"ok": True}

    def op_invoke(self, request: dict[str, Any]) -> dict[str, Any]:
        ctx = self._context(request)
        entry = request.get("entry", "extract")
        fn = ctx.namespace.get(entry)
        if not callable(fn):
            return _fault("missing_entry", message=MISSING_ENTRY_MESSAGE.format(entry=entry))
        start = time.perf_counter()
        try:
            value = fn()
        except Exception as exc:
            return _fault("fault", exc)
        elapsed_ms = (time.perf_counter() - start) * 1000
        try:
            value = _plain(value)
        except (TypeError, ValueError) as exc:
            return _fault("fault", message=NON_PLAIN_MESSAGE.format(entry=entry, error=exc))
        return {
            "ok": True,
            "value": value,
            "elapsed_ms": elapsed_ms,
            "console": ctx.console[-MAX_CONSOLE_LINES:],
        }

    def op_dispose(self, request: dict[str, Any]) -> dict[str, Any]:
        self.contexts.pop(request["context_id"], None)
        return {"ok": True, "live": len(self.contexts)}

    def op_stats(self, request: dict[str, Any]) -> dict[str, Any]:
        return {"ok": True, "live": len(self.contexts)}


def serve(conn: Connection) -> None:
    """Worker process entry point: answer requests until shutdown or EOF."""
    worker = Worker()
    while True:
        try:
            request = conn.recv()
        except (EOFError, OSError):
            break
        if request.get("op") == "shutdown":
            conn.send({"ok": True})
            break
        try:
            response = worker.handle(request)
        except Exception as exc:
            response = _fault("protocol", exc)
        conn.send(response)
    conn.close()
