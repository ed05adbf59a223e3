"""
BaseService -- abstract base for all approval kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write-side service.  All concrete services receive a SQLAlchemy
    ``Session`` and use ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or roll back themselves.  The caller
      (``session_scope()``, the web layer, or the test harness) owns
      commit/rollback, so a refused operation commits nothing.

Failure modes:
    - A subclass that commits on its own breaks the all-or-nothing
      guarantee of a decision plus its history entry.
"""

from abc import ABC

from sqlalchemy.orm import Session

from approval_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` and an optional ``Clock`` from the
        caller; persists with ``session.flush()`` inside the active
        transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide reporting queries -- those belong in
          ``approval_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self._clock = clock or SystemClock()
