"""
Typed Exception Hierarchy for the Approval Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every failure of the workflow engine must reach the caller (UI layer,
notification service, reporting layer) with the specific reason, so the
end user can be told exactly why an approval action was refused.

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example - WRONG way to handle errors:
    try:
        workflow.respond(request_id, approver_id, "approve")
    except Exception as e:
        if "already" in str(e):  # FRAGILE - message might change
            ...

Example - RIGHT way (what this module enables):
    try:
        workflow.respond(request_id, approver_id, "approve")
    except AlreadyDecidedError as e:
        api_response(code=e.code, level=e.level)
    except ConflictError:
        # Re-read the request, then reapply the action.
        ...

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from ApprovalKernelError:

    ApprovalKernelError (base)
    |
    +-- RequestError
    |   +-- ValidationError
    |   +-- NotFoundError
    |   +-- InvalidStateError
    |
    +-- DecisionError
    |   +-- NotActiveError
    |   +-- AlreadyDecidedError
    |
    +-- CancellationError
    |   +-- WindowExpiredError
    |   +-- NotOwnerError
    |   +-- IrreversibleStateError
    |
    +-- ConcurrencyError
    |   +-- ConflictError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- AuditError
        +-- AuditChainBrokenError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                         | When Raised
----------------|------------------------------|------------------------------------------
Request         | VALIDATION_FAILED            | Malformed input (empty chain, level gaps)
                | REQUEST_NOT_FOUND            | Request ID doesn't exist
                | INVALID_REQUEST_STATE        | Operation on a request in the wrong status
----------------|------------------------------|------------------------------------------
Decision        | ASSIGNMENT_NOT_ACTIVE        | Wrong approver or wrong level
                | ASSIGNMENT_ALREADY_DECIDED   | Same assignment acted on twice
----------------|------------------------------|------------------------------------------
Cancellation    | CANCELLATION_WINDOW_EXPIRED  | Decision older than the reversal window
                | NOT_DECISION_OWNER           | Caller did not make the decision
                | IRREVERSIBLE_STATE           | Downstream progress / consumed outcome
----------------|------------------------------|------------------------------------------
Concurrency     | CONCURRENT_MODIFICATION      | Version mismatch from a racing writer
----------------|------------------------------|------------------------------------------
Immutability    | IMMUTABILITY_VIOLATION       | Updating/deleting comments or history
----------------|------------------------------|------------------------------------------
Audit           | AUDIT_CHAIN_BROKEN           | Approval history hash chain mismatch

===============================================================================
HANDLING PATTERNS
===============================================================================

1. ONLY ConflictError IS RETRYABLE:

    for _ in range(3):
        try:
            with session_scope() as session:
                return ApprovalWorkflowService(session).respond(...)
        except ConflictError:
            continue

2. EVERYTHING ELSE IS TERMINAL FOR THE CALL and must be surfaced to the
   end user with ``e.code`` and the structured attributes.
"""


class ApprovalKernelError(Exception):
    """
    Base exception for all approval kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "APPROVAL_KERNEL_ERROR"
    retryable: bool = False


# Request-level exceptions


class RequestError(ApprovalKernelError):
    """Base exception for request-level errors."""

    code: str = "REQUEST_ERROR"


class ValidationError(RequestError):
    """Malformed input: empty approver chain, level gaps, bad values."""

    code: str = "VALIDATION_FAILED"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class NotFoundError(RequestError):
    """Approval request with given ID was not found."""

    code: str = "REQUEST_NOT_FOUND"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Approval request not found: {request_id}")


class InvalidStateError(RequestError):
    """Operation attempted on a request whose status does not allow it."""

    code: str = "INVALID_REQUEST_STATE"

    def __init__(self, request_id: str, status: str, operation: str):
        self.request_id = request_id
        self.status = status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} request {request_id} in status '{status}'"
        )


# Decision-related exceptions


class DecisionError(ApprovalKernelError):
    """Base exception for decision-related errors."""

    code: str = "DECISION_ERROR"


class NotActiveError(DecisionError):
    """
    The approver's assignment is not the active one.

    Raised when the approver has no slot in the chain, or when a
    higher level tries to respond while a lower level is still pending.
    """

    code: str = "ASSIGNMENT_NOT_ACTIVE"

    def __init__(
        self,
        request_id: str,
        approver_id: str,
        level: int | None = None,
        active_level: int | None = None,
    ):
        self.request_id = request_id
        self.approver_id = approver_id
        self.level = level
        self.active_level = active_level
        if level is None:
            detail = "approver has no assignment in the chain"
        else:
            detail = f"level {level} is not active (active level: {active_level})"
        super().__init__(
            f"Approver {approver_id} cannot act on request {request_id}: {detail}"
        )


class AlreadyDecidedError(DecisionError):
    """The assignment has already been decided."""

    code: str = "ASSIGNMENT_ALREADY_DECIDED"

    def __init__(self, request_id: str, approver_id: str, level: int, status: str):
        self.request_id = request_id
        self.approver_id = approver_id
        self.level = level
        self.status = status
        super().__init__(
            f"Assignment at level {level} of request {request_id} "
            f"was already {status} by {approver_id}"
        )


# Cancellation-related exceptions


class CancellationError(ApprovalKernelError):
    """Base exception for decision-reversal errors."""

    code: str = "CANCELLATION_ERROR"


class WindowExpiredError(CancellationError):
    """The decision is older than the cancellation window."""

    code: str = "CANCELLATION_WINDOW_EXPIRED"

    def __init__(
        self,
        request_id: str,
        level: int,
        decided_at: str,
        window_hours: float,
    ):
        self.request_id = request_id
        self.level = level
        self.decided_at = decided_at
        self.window_hours = window_hours
        super().__init__(
            f"Decision at level {level} of request {request_id} "
            f"(decided {decided_at}) is outside the {window_hours:g}h "
            "cancellation window"
        )


class NotOwnerError(CancellationError):
    """
    The caller does not own what it tries to revoke.

    Raised when cancelling a decision the caller did not make, and when
    someone other than the requester withdraws a request.
    """

    code: str = "NOT_DECISION_OWNER"

    def __init__(self, request_id: str, actor_id: str, subject: str = "decision"):
        self.request_id = request_id
        self.actor_id = actor_id
        self.subject = subject
        super().__init__(
            f"{actor_id} does not own a {subject} on request {request_id}"
        )


class IrreversibleStateError(CancellationError):
    """The workflow progressed past the point of a clean rollback."""

    code: str = "IRREVERSIBLE_STATE"

    def __init__(self, request_id: str, level: int, reason: str):
        self.request_id = request_id
        self.level = level
        self.reason = reason
        super().__init__(
            f"Cannot cancel level {level} of request {request_id}: {reason}"
        )


# Concurrency-related exceptions


class ConcurrencyError(ApprovalKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"
    retryable: bool = True


class ConflictError(ConcurrencyError):
    """Optimistic-concurrency conflict on the request aggregate."""

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(
        self,
        request_id: str,
        expected_version: int | None = None,
        actual_version: int | None = None,
    ):
        self.request_id = request_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        if expected_version is not None:
            detail = f"expected version {expected_version}, found {actual_version}"
        else:
            detail = "request was modified by another transaction"
        super().__init__(f"Conflict on request {request_id}: {detail}")


# Immutability-related exceptions


class ImmutabilityError(ApprovalKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an append-only record.

    Comments and approval history entries are immutable once written.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Audit-related exceptions


class AuditError(ApprovalKernelError):
    """Base exception for audit trail errors."""

    code: str = "AUDIT_ERROR"


class AuditChainBrokenError(AuditError):
    """Approval history hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, request_id: str, seq: int, expected_hash: str, actual_hash: str):
        self.request_id = request_id
        self.seq = seq
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Approval history of request {request_id} broken at seq {seq}: "
            f"expected {expected_hash[:16]}..., got {actual_hash[:16]}..."
        )
