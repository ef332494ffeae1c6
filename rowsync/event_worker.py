"""Fire-and-forget dispatch of row events onto background threads."""
from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional

from rowsync.reconciler import EventOutcome, RowReconciler, resolve_event

logger = logging.getLogger(__name__)

OutcomeCallback = Callable[[EventOutcome], None]


class EventWorker:
    """Run every submitted event on its own daemon thread.

    Events for different keys proceed independently; nothing orders two
    events for the same key.
    """

    def __init__(self, reconciler: RowReconciler, outcome_callback: Optional[OutcomeCallback] = None) -> None:
        self._reconciler = reconciler
        self._outcome_callback = outcome_callback
        self._lock = threading.Lock()
        self._threads: List[threading.Thread] = []

    def submit(self, event_name: str, payload: str) -> threading.Thread:
        thread = threading.Thread(
            target=self._execute,
            args=(event_name, payload),
            name=f"rowsync-{event_name}",
            daemon=True,
        )
        with self._lock:
            self._threads = [item for item in self._threads if item.is_alive()]
            self._threads.append(thread)
        thread.start()
        return thread

    def pending(self) -> int:
        with self._lock:
            return sum(1 for thread in self._threads if thread.is_alive())

    def wait(self, timeout: Optional[float] = None) -> None:
        """Join every submitted thread; used on shutdown and by tests."""

        with self._lock:
            threads = list(self._threads)
        for thread in threads:
            thread.join(timeout)

    def _execute(self, event_name: str, payload: str) -> None:
        try:
            kind = resolve_event(event_name)
        except ValueError as exc:
            logger.warning("Ignoring event %r: %s", event_name, exc)
            return
        try:
            outcome = self._reconciler.run(kind, payload)
        except Exception:  # pragma: no cover - thread guard
            logger.exception("Event %r failed unexpectedly", event_name)
            return
        self._notify(outcome)

    def _notify(self, outcome: EventOutcome) -> None:
        if self._outcome_callback:
            try:
                self._outcome_callback(outcome)
            except Exception:  # pragma: no cover - callback guard
                logger.debug("Outcome callback failed", exc_info=True)


__all__ = ["EventWorker", "OutcomeCallback"]
