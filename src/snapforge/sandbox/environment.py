"""Long-lived execution environment and short-lived execution contexts.

One ``ExecutionEnvironment`` owns one spawned worker process and hands out
``ExecutionContext`` handles, one per run, through :meth:`open_context`.
The context manager disposes the handle on every exit path. Leases are
serialized with a lock, so at most one run holds the worker at a time.

The timeout bounds a whole lease: opening the document, injecting the
runtime and source and invoking the entry point share one deadline. A
lease that runs past it kills the worker; the next lease spawns a fresh
one.
"""

from __future__ import annotations

import itertools
import logging
import multiprocessing
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from snapforge.exceptions import (
    EnvironmentClosedError,
    ExecutionFault,
    ExecutionTimeout,
    ForgeError,
    SandboxViolation,
    SyntaxFault,
)
from snapforge.sandbox import worker as _worker

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)

_SHUTDOWN_GRACE_SECONDS = 2.0
_STARTUP_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class Invocation:
    """Plain-data outcome of calling the entry point."""

    value: Any
    elapsed_ms: float
    console: list[str] = field(default_factory=list)


class ExecutionContext:
    """A disposable namespace inside the worker, bound to one document.

    Obtain one from :meth:`ExecutionEnvironment.open_context`; do not
    construct directly.
    """

    def __init__(
        self,
        environment: ExecutionEnvironment,
        context_id: int,
        generation: int,
        deadline: float,
    ) -> None:
        self._env = environment
        self.context_id = context_id
        self._generation = generation
        self._deadline = deadline
        self.disposed = False

    def _call(self, op: str, **payload: Any) -> dict[str, Any]:
        if self.disposed:
            raise ExecutionFault(f"Execution context {self.context_id} is disposed")
        remaining = self._deadline - time.monotonic()
        if remaining <= 0:
            logger.warning("Context %d ran out of time before %r, killing worker", self.context_id, op)
            self._env._kill()
            raise ExecutionTimeout(self._env.timeout)
        response = self._env._request(
            {"op": op, "context_id": self.context_id, **payload}, timeout=remaining
        )
        if not response.get("ok"):
            kind = response.get("kind")
            if kind == "violation":
                raise SandboxViolation(response.get("violations") or [])
            if kind == "syntax":
                raise SyntaxFault(response.get("error", "invalid syntax"))
            raise ExecutionFault(response.get("error", "Unknown sandbox error"), response.get("stack"))
        return response

    def open(self, raw_document: str) -> None:
        self._call("open", raw_document=raw_document)

    def inject_runtime(self) -> None:
        """Place the helper runtime and restricted built-ins into the namespace."""
        self._call("inject_runtime")

    def inject(self, source: str) -> None:
        """Policy-check and execute candidate source in the namespace.

        Raises:
            SandboxViolation: If the source uses forbidden constructs.
            ExecutionFault: If module-level code raises.
        """
        self._call("inject", source=source)

    def invoke(self, entry: str = "extract") -> Invocation:
        """Call ``entry()`` and return its value as plain data.

        Raises:
            ExecutionFault: If the entry point is missing or raises.
            ExecutionTimeout: If the lease outlives the environment timeout.
        """
        response = self._call("invoke", entry=entry)
        return Invocation(
            value=response.get("value"),
            elapsed_ms=response.get("elapsed_ms", 0.0),
            console=list(response.get("console") or []),
        )

    def dispose(self) -> None:
        """Release the namespace. Safe to call more than once."""
        if self.disposed:
            return
        self.disposed = True
        if not self._env._is_current(self._generation):
            # Worker was replaced; the namespace died with it.
            return
        try:
            self._env._request({"op": "dispose", "context_id": self.context_id})
        except ForgeError as exc:
            logger.warning("Dispose of context %d failed, resetting worker: %s", self.context_id, exc)
            self._env._kill()


class ExecutionEnvironment:
    """Owns the sandbox worker process.

    Usage::

        with ExecutionEnvironment(timeout=10.0) as env:
            with env.open_context(html) as ctx:
                ctx.inject_runtime()
                ctx.inject(source)
                result = ctx.invoke("extract")
    """

    def __init__(self, timeout: float = 10.0, *, start_method: str = "spawn") -> None:
        self.timeout = timeout
        self._mp = multiprocessing.get_context(start_method)
        self._process = None
        self._conn = None
        self._generation = 0
        self._ids = itertools.count(1)
        self._lock = threading.RLock()
        self._closed = False
        self.restarts = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.is_alive()

    def start(self) -> None:
        """Spawn the worker if it is not already running."""
        with self._lock:
            if self._closed:
                raise EnvironmentClosedError()
            if self.running:
                return
            self._kill()
            if self._generation:
                self.restarts += 1
            parent_conn, child_conn = self._mp.Pipe()
            process = self._mp.Process(
                target=_worker.serve,
                args=(child_conn,),
                name="snapforge-sandbox",
                daemon=True,
            )
            process.start()
            child_conn.close()
            self._process = process
            self._conn = parent_conn
            self._generation += 1

            # Interpreter startup is not charged to the first request's timeout.
            try:
                parent_conn.send({"op": "stats"})
                ready = parent_conn.poll(_STARTUP_TIMEOUT_SECONDS)
                if ready:
                    parent_conn.recv()
            except (EOFError, OSError) as exc:
                self._kill()
                raise ExecutionFault(f"Sandbox worker failed to start: {exc}") from exc
            if not ready:
                self._kill()
                raise ExecutionFault(
                    f"Sandbox worker failed to start within {_STARTUP_TIMEOUT_SECONDS:g}s"
                )
            logger.debug("Sandbox worker started (pid %s)", process.pid)

    def close(self) -> None:
        """Shut the worker down. Idempotent."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            if self.running:
                try:
                    self._conn.send({"op": "shutdown"})
                    if self._conn.poll(_SHUTDOWN_GRACE_SECONDS):
                        self._conn.recv()
                except (OSError, EOFError) as exc:
                    logger.debug("Sandbox worker shutdown request failed: %s", exc)
                self._process.join(_SHUTDOWN_GRACE_SECONDS)
            self._kill()
            logger.debug("Sandbox environment closed")

    def __enter__(self) -> ExecutionEnvironment:
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Leasing
    # ------------------------------------------------------------------

    @contextmanager
    def open_context(self, raw_document: str) -> Iterator[ExecutionContext]:
        """Lease a fresh context holding ``raw_document``.

        Every request made through the context shares one deadline,
        ``timeout`` seconds from now. The context is disposed when the block
        exits, whether it finished or raised.

        Raises:
            EnvironmentClosedError: If the environment has been closed.
        """
        if self._closed:
            raise EnvironmentClosedError()
        with self._lock:
            self.start()
            deadline = time.monotonic() + self.timeout
            context = ExecutionContext(self, next(self._ids), self._generation, deadline)
            try:
                context.open(raw_document)
                yield context
            finally:
                context.dispose()

    def live_contexts(self) -> int:
        """Number of namespaces currently alive in the worker."""
        with self._lock:
            if not self.running:
                return 0
            return int(self._request({"op": "stats"})["live"])

    # ------------------------------------------------------------------
    # Internal methods
    # ------------------------------------------------------------------

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation and self.running

    def _request(self, message: dict[str, Any], timeout: float | None = None) -> dict[str, Any]:
        if not self.running:
            raise ExecutionFault("Sandbox worker is not running")
        wait = self.timeout if timeout is None else timeout
        try:
            self._conn.send(message)
            if not self._conn.poll(wait):
                logger.warning(
                    "Sandbox request %r exceeded the %ss lease, killing worker",
                    message.get("op"),
                    self.timeout,
                )
                self._kill()
                raise ExecutionTimeout(self.timeout)
            return self._conn.recv()
        except (EOFError, OSError, BrokenPipeError) as exc:
            self._kill()
            raise ExecutionFault(f"Sandbox worker exited unexpectedly: {exc}") from exc

    def _kill(self) -> None:
        process, conn = self._process, self._conn
        self._process = None
        self._conn = None
        if conn is not None:
            conn.close()
        if process is not None and process.is_alive():
            process.terminate()
            process.join(_SHUTDOWN_GRACE_SECONDS)
            if process.is_alive():
                process.kill()
                process.join()
