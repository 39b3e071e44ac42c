"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Common constructor and session-handling contract for every service in
    the kernel layer.  Services receive a SQLAlchemy ``Session`` and use
    ``session.flush()`` / savepoints -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell around the pure domain.

Invariants enforced:
    - Transaction boundaries: services work within the caller's transaction
      and never commit or roll it back.  The worker owns one transaction per
      (owner, day) group.
"""

from abc import ABC

from sqlalchemy.orm import Session

from kpi_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
