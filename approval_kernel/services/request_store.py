"""
RequestStore -- persistence gateway for the request aggregate.

Responsibility:
    Loads approval requests (optionally under a row lock), enforces the
    caller's expected version, and writes an accepted ``WorkflowState``
    back in a single flush that bumps the version counter.

Architecture position:
    Kernel > Services.  The only service that touches
    ``ApprovalRequestModel`` rows directly; all other write services go
    through it.

Invariants enforced:
    - Lost-update protection: the row is read with ``SELECT ... FOR
      UPDATE`` (PostgreSQL) and the UPDATE is guarded by the version
      counter.  A concurrent writer that got there first turns into
      ``ConflictError``.
    - Freshness: locked reads use ``populate_existing`` so an object
      already in the identity map is overwritten with the row as it is
      now, not as it was when first loaded.

Failure modes:
    - NotFoundError for unknown or malformed request ids.
    - ConflictError on version mismatch or stale flush.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm.exc import StaleDataError

from approval_kernel.domain.workflow import WorkflowState
from approval_kernel.exceptions import ConflictError, NotFoundError
from approval_kernel.logging_config import get_logger
from approval_kernel.models.request import ApprovalRequestModel
from approval_kernel.services.base import BaseService
from approval_kernel.utils.ids import coerce_request_id

logger = get_logger("services.request_store")


class RequestStore(BaseService):
    """
    Repository for ``ApprovalRequestModel`` aggregates.

    Guarantees:
        - ``save`` writes the whole aggregate in one flush and raises
          ``ConflictError`` instead of overwriting a newer version.

    Non-goals:
        - Does NOT validate transitions; the state machine already did.
    """

    def add(self, model: ApprovalRequestModel) -> ApprovalRequestModel:
        self.session.add(model)
        self.session.flush()
        return model

    def get(self, request_id: UUID | str) -> ApprovalRequestModel:
        """Load a request without locking it."""
        rid = coerce_request_id(request_id)
        model = self.session.get(ApprovalRequestModel, rid)
        if model is None:
            raise NotFoundError(str(rid))
        return model

    def lock(
        self,
        request_id: UUID | str,
        expected_version: int | None = None,
    ) -> ApprovalRequestModel:
        """
        Load a request for modification.

        Preconditions:
            - Called inside the caller's transaction; the lock is held
              until that transaction ends.

        Raises:
            NotFoundError: If the request does not exist.
            ConflictError: If ``expected_version`` is given and differs
                from the stored version.
        """
        rid = coerce_request_id(request_id)
        model = self.session.execute(
            select(ApprovalRequestModel)
            .where(ApprovalRequestModel.id == rid)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if model is None:
            raise NotFoundError(str(rid))

        if expected_version is not None and model.version != expected_version:
            logger.warning(
                "request_version_mismatch",
                extra={
                    "request_id": str(rid),
                    "expected_version": expected_version,
                    "actual_version": model.version,
                },
            )
            raise ConflictError(str(rid), expected_version, model.version)

        return model

    def save(
        self,
        model: ApprovalRequestModel,
        state: WorkflowState,
        now: datetime,
    ) -> ApprovalRequestModel:
        """Apply an accepted state to the rows and flush with a version bump."""
        model.apply_state(state)
        model.updated_at = now
        model.version = model.version + 1
        try:
            self.session.flush()
        except StaleDataError:
            logger.warning(
                "request_stale_write",
                extra={"request_id": str(model.id)},
            )
            raise ConflictError(str(model.id)) from None
        return model
