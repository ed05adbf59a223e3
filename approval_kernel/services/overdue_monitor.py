"""
OverdueMonitor -- periodic sweep for overdue approvals.

Contract:
    Every ``interval_seconds`` takes a snapshot of all active assignments,
    evaluates them against their timeouts and keeps the resulting
    ``OverdueReport`` for dashboards (``last_report``).

Architecture: approval_kernel/services.  Uses the OverdueSelector for the
    read and domain.overdue for the pure evaluation.

Invariants enforced:
    - Read-only: the sweep uses its own session, never writes, never
      commits, and always rolls back and closes.
    - All timestamps come from the injected Clock.
    - A sweep evaluates at most ``max_items_per_sweep`` assignments; the
      report says when it was truncated.
    - Graceful shutdown: ``stop()`` wakes the loop and joins the thread.
"""

from __future__ import annotations

import threading
from typing import Callable

from sqlalchemy.orm import Session

from approval_kernel.domain.clock import Clock, SystemClock
from approval_kernel.domain.overdue import OverdueReport, summarize_bottlenecks
from approval_kernel.domain.policy import WorkflowPolicy
from approval_kernel.logging_config import get_logger
from approval_kernel.selectors.overdue_selector import OverdueSelector

logger = get_logger("services.overdue_monitor")


class OverdueMonitor:
    """In-process polling monitor for approval timeouts.

    Contract:
        - ``tick()`` runs one sweep and returns its report, or ``None``
          when the sweep failed (the failure is logged).
        - ``start()`` / ``stop()`` for background thread operation.

    Non-goals:
        - Does NOT escalate, reassign or notify.
        - NOT a distributed monitor; each process runs its own.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        policy: WorkflowPolicy | None = None,
        interval_seconds: float = 300,
        max_items_per_sweep: int = 1000,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        if max_items_per_sweep < 1:
            raise ValueError("max_items_per_sweep must be at least 1")
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._policy = policy or WorkflowPolicy()
        self._interval = interval_seconds
        self._max_items = max_items_per_sweep
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._report_lock = threading.Lock()
        self._last_report: OverdueReport | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def tick(self) -> OverdueReport | None:
        """Run one sweep (public for testing)."""
        session = self._session_factory()
        try:
            report = self._sweep(session)
        except Exception:
            logger.exception("overdue_sweep_failed")
            return None
        finally:
            session.rollback()
            session.close()

        with self._report_lock:
            self._last_report = report
        logger.info(
            "overdue_sweep_completed",
            extra={
                "scanned": report.scanned,
                "overdue_count": report.overdue_count,
                "truncated": report.truncated,
            },
        )
        return report

    def start(self) -> None:
        """Start the monitor in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="overdue-monitor",
            daemon=True,
        )
        self._thread.start()
        logger.info("overdue_monitor_started", extra={"interval_seconds": self._interval})

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the current sweep to finish."""
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("overdue_monitor_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def last_report(self) -> OverdueReport | None:
        with self._report_lock:
            return self._last_report

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("overdue_monitor_tick_exception")
            self._stop_event.wait(timeout=self._interval)

    def _sweep(self, session: Session) -> OverdueReport:
        now = self._clock.now()
        selector = OverdueSelector(session, self._policy)
        # One extra row tells us whether the limit cut the snapshot short.
        items = selector.assignment_report(now, limit=self._max_items + 1)
        truncated = len(items) > self._max_items
        items = items[: self._max_items]

        overdue = sorted(
            (i for i in items if i.overdue),
            key=lambda i: (-i.waiting_hours, i.level, str(i.request_id)),
        )
        return OverdueReport(
            generated_at=now,
            items=tuple(overdue),
            bottlenecks=summarize_bottlenecks(items, self._policy.level_name),
            scanned=len(items),
            truncated=truncated,
        )
