"""
Module: approval_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
    Selectors are the query side of the kernel: dashboards, inboxes and
    the overdue monitor read through them and never mutate.
Architecture position: Kernel > Selectors.  May import from db/, domain/,
    models/ and utils/.  MUST NOT import from services/.

Invariants enforced:
    - Read-only access: selectors accept a Session from the caller but
      never call session.add(), session.delete(), session.flush() or
      session.commit().
    - DTO return convention: selectors return frozen dataclasses, never
      ORM instances.
    - Session ownership: the caller owns the session and its transaction.

Failure modes:
    - NotFoundError where a selector is asked for one specific request.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only
        queries, and return DTOs or computed results.

    Non-goals:
        - BaseSelector does NOT define any query methods.
    """

    def __init__(self, session: Session):
        self.session = session
