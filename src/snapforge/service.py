"""Polling service around :meth:`Forge.process_next`.

Every ``poll_interval`` seconds the service opens a fresh session, asks
the Forge to process one eligible Snapshot, and commits. SIGINT/SIGTERM
set a stop event; the loop exits, and the Forge's backend client and the
execution environment are closed before :meth:`ForgeService.serve`
returns.
"""

from __future__ import annotations

import logging
import signal
import threading
from typing import TYPE_CHECKING

from snapforge.storage.sqlite import SqliteSnapshotRepository

if TYPE_CHECKING:
    from sqlalchemy.orm import Session, sessionmaker

    from snapforge.forge import Forge
    from snapforge.sandbox.environment import ExecutionEnvironment

logger = logging.getLogger(__name__)


class ForgeService:
    """Runs the Forge on a fixed interval until stopped.

    Args:
        forge: Orchestrator to drive.
        session_factory: Opens one session per tick.
        environment: Closed when the service stops.
        poll_interval: Seconds between ticks; defaults to the Forge config's.
    """

    def __init__(
        self,
        forge: Forge,
        session_factory: sessionmaker[Session],
        environment: ExecutionEnvironment,
        *,
        poll_interval: float | None = None,
    ) -> None:
        self._forge = forge
        self._session_factory = session_factory
        self._environment = environment
        self.poll_interval = poll_interval if poll_interval is not None else forge.config.poll_interval
        self._stop_event = threading.Event()
        self.processed = 0

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    def run_once(self) -> bool:
        """One tick: process at most one Snapshot and commit it."""
        with self._session_factory() as session:
            repository = SqliteSnapshotRepository(session)
            handled = self._forge.process_next(repository)
            session.commit()
        if handled:
            self.processed += 1
        return handled

    def serve(self, *, install_signal_handlers: bool = True, max_ticks: int | None = None) -> int:
        """Poll until stopped; returns the number of Snapshots processed.

        Args:
            install_signal_handlers: Route SIGINT/SIGTERM to :meth:`stop`.
                Only honored on the main thread.
            max_ticks: Stop after this many ticks (mainly for tests).
        """
        previous = {}
        if install_signal_handlers and threading.current_thread() is threading.main_thread():
            for signum in (signal.SIGINT, signal.SIGTERM):
                previous[signum] = signal.signal(signum, self._handle_signal)

        logger.info("Forge service started (poll interval %ss)", self.poll_interval)
        ticks = 0
        try:
            while not self._stop_event.is_set():
                try:
                    self.run_once()
                except Exception:
                    logger.exception("Forge polling error")
                ticks += 1
                if max_ticks is not None and ticks >= max_ticks:
                    break
                self._stop_event.wait(self.poll_interval)
        finally:
            logger.info("Shutting down Forge service")
            try:
                self._forge.close()
            finally:
                self._environment.close()
            for signum, handler in previous.items():
                signal.signal(signum, handler)
        return self.processed

    def stop(self) -> None:
        """Ask the loop to exit after the current tick."""
        self._stop_event.set()

    def _handle_signal(self, signum: int, frame: object) -> None:
        logger.info("Received signal %s, stopping", signum)
        self.stop()
