"""
Typed Exception Hierarchy for the Voicecraft Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the kernel (HTTP handlers, webhook consumers, admin tooling) must
map failures to responses without parsing message strings. Therefore:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example - WRONG way to handle errors:
    try:
        workflow.accept_estimate(project_id, actor_id=actor)
    except Exception as e:
        if "Insufficient" in str(e):
            ...

Example - RIGHT way:
    try:
        workflow.accept_estimate(project_id, actor_id=actor)
    except InsufficientCreditsError as e:
        api_response(
            code=e.code,
            required=e.required,
            available=e.available,
            shortfall=e.shortfall,
        )

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from VoicecraftKernelError:

    VoicecraftKernelError (base)
    |
    +-- NotFoundError
    |   +-- ProjectNotFoundError
    |   +-- ExpertNotFoundError
    |   +-- AccountNotFoundError
    |   +-- WorkItemNotFoundError
    |
    +-- ProjectError
    |   +-- InvalidStateTransitionError
    |   |   +-- StaleProjectStateError
    |   |   +-- PendingEstimateDeltaError
    |   |   +-- NoPendingEstimateDeltaError
    |   +-- ProjectNotDeletableError
    |   +-- ProjectReferencedError
    |   +-- MissingExpertError
    |   +-- ExpertNotAssignedError
    |   +-- InvalidEstimateRequestError
    |   +-- InvalidEstimateError
    |   +-- InvalidProjectError
    |   +-- EmptySubmissionError
    |   +-- InvalidRatingError
    |
    +-- CreditError
    |   +-- InsufficientBalanceError
    |   |   +-- InsufficientCreditsError
    |   +-- InvalidRefundAmountError
    |   +-- InvalidLedgerAmountError
    |   +-- DuplicatePayoutError
    |   +-- IdempotencyConflictError
    |
    +-- ExpertError
    |   +-- ExpertUnavailableError
    |
    +-- EstimationError
    |   +-- EstimationFailedError
    |       +-- EstimationTimeoutError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Not found       | PROJECT_NOT_FOUND           | Project id doesn't exist
                | EXPERT_NOT_FOUND            | Expert profile doesn't exist
                | ACCOUNT_NOT_FOUND           | Account has never held an entry
                | WORK_ITEM_NOT_FOUND         | Audio file not attached to project
----------------|-----------------------------|-----------------------------------------
Project         | INVALID_STATE_TRANSITION    | Action not legal from current status
                | STALE_PROJECT_STATE         | Concurrent transition won the race
                | PENDING_ESTIMATE_DELTA      | Re-estimate awaiting client decision
                | NO_PENDING_ESTIMATE_DELTA   | Nothing to accept or reject
                | PROJECT_NOT_DELETABLE       | Delete outside draft/estimating
                | PROJECT_REFERENCED          | Delete with ledger entries present
                | MISSING_EXPERT              | Approval without an assigned expert
                | EXPERT_NOT_ASSIGNED         | Submission by a different expert
                | INVALID_ESTIMATE_REQUEST    | Request text / work items rejected
                | INVALID_ESTIMATE            | Estimate not a positive amount
                | INVALID_PROJECT             | Name or priority rejected on create
                | EMPTY_SUBMISSION            | Submission without work items
                | INVALID_RATING              | Rating outside 1..5
----------------|-----------------------------|-----------------------------------------
Credit          | INSUFFICIENT_BALANCE        | Debit would make a balance negative
                | INSUFFICIENT_CREDITS        | Client cannot cover a reservation
                | INVALID_REFUND_AMOUNT       | Refund resolves to <= 0 credits
                | INVALID_LEDGER_AMOUNT       | Zero / non-integer ledger amount
                | DUPLICATE_PAYOUT            | Second completion, or after refund
                | IDEMPOTENCY_CONFLICT        | Key reused with other account or amount
----------------|-----------------------------|-----------------------------------------
Expert          | EXPERT_UNAVAILABLE          | Assigning an unavailable expert
----------------|-----------------------------|-----------------------------------------
Estimation      | ESTIMATION_FAILED           | Oracle error or unusable payload
                | ESTIMATION_TIMEOUT          | Oracle did not answer in time
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Editing a ledger entry or history row

===============================================================================
HANDLING PATTERNS
===============================================================================

1. STALE STATE IS A NORMAL OUTCOME UNDER CONCURRENCY:

    except StaleProjectStateError as e:
        # Another request moved the project first; e.current_status says where
        return conflict(code=e.code, status=e.current_status)

2. CREDIT SHORTFALLS CARRY THE FIGURES THE CLIENT NEEDS:

    except InsufficientCreditsError as e:
        return payment_required(needed=e.required, have=e.available)

3. ESTIMATION FAILURES ALREADY REVERTED THE PROJECT TO DRAFT:

    except EstimationFailedError:
        return retry_later()
"""

from uuid import UUID


class VoicecraftKernelError(Exception):
    """
    Base exception for all voicecraft kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.

    ``guard`` names the workflow guard that refused a transition, when one
    did.
    """

    code: str = "VOICECRAFT_KERNEL_ERROR"
    guard: str | None = None


# Not-found exceptions


class NotFoundError(VoicecraftKernelError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"


class ProjectNotFoundError(NotFoundError):
    """Project with given ID was not found."""

    code: str = "PROJECT_NOT_FOUND"

    def __init__(self, project_id: UUID | str):
        self.project_id = str(project_id)
        super().__init__(f"Project not found: {project_id}")


class ExpertNotFoundError(NotFoundError):
    """Expert profile with given ID was not found."""

    code: str = "EXPERT_NOT_FOUND"

    def __init__(self, expert_id: UUID | str):
        self.expert_id = str(expert_id)
        super().__init__(f"Expert not found: {expert_id}")


class AccountNotFoundError(NotFoundError):
    """Credit account has never been created."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_id: UUID | str):
        self.account_id = str(account_id)
        super().__init__(f"Credit account not found: {account_id}")


class WorkItemNotFoundError(NotFoundError):
    """Audio file is not attached to the project."""

    code: str = "WORK_ITEM_NOT_FOUND"

    def __init__(self, project_id: UUID | str, work_item_id: UUID | str):
        self.project_id = str(project_id)
        self.work_item_id = str(work_item_id)
        super().__init__(f"Work item {work_item_id} not found on project {project_id}")


# Project workflow exceptions


class ProjectError(VoicecraftKernelError):
    """Base exception for project workflow errors."""

    code: str = "PROJECT_ERROR"


class InvalidStateTransitionError(ProjectError):
    """
    Action is not legal from the project's current status.

    current_status is always the status observed at the time of rejection,
    so callers can tell the client where the project actually is.
    """

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(
        self,
        project_id: UUID | str,
        action: str,
        current_status: str,
        allowed_from: tuple[str, ...] = (),
        detail: str | None = None,
    ):
        self.project_id = str(project_id)
        self.action = action
        self.current_status = current_status
        self.allowed_from = allowed_from
        message = (
            f"Cannot {action} project {project_id} in status '{current_status}'"
        )
        if allowed_from:
            message += f" (allowed from: {', '.join(allowed_from)})"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class StaleProjectStateError(InvalidStateTransitionError):
    """
    The guarded update matched no row: another transaction changed the
    project between read and write.
    """

    code: str = "STALE_PROJECT_STATE"

    def __init__(
        self,
        project_id: UUID | str,
        action: str,
        expected_status: str,
        current_status: str,
    ):
        self.expected_status = expected_status
        super().__init__(
            project_id,
            action,
            current_status,
            detail=f"project changed concurrently (expected '{expected_status}')",
        )


class PendingEstimateDeltaError(InvalidStateTransitionError):
    """A re-estimate is awaiting the client's decision."""

    code: str = "PENDING_ESTIMATE_DELTA"

    def __init__(
        self,
        project_id: UUID | str,
        action: str,
        current_status: str,
        pending_credits: int,
    ):
        self.pending_credits = pending_credits
        super().__init__(
            project_id,
            action,
            current_status,
            detail=f"estimate change of {pending_credits} credits is pending",
        )


class NoPendingEstimateDeltaError(InvalidStateTransitionError):
    """There is no re-estimate waiting to be accepted or rejected."""

    code: str = "NO_PENDING_ESTIMATE_DELTA"

    def __init__(self, project_id: UUID | str, action: str, current_status: str):
        super().__init__(
            project_id,
            action,
            current_status,
            detail="no estimate change is pending",
        )


class ProjectNotDeletableError(ProjectError):
    """Projects can only be deleted before any credits are committed."""

    code: str = "PROJECT_NOT_DELETABLE"

    def __init__(self, project_id: UUID | str, current_status: str):
        self.project_id = str(project_id)
        self.current_status = current_status
        super().__init__(
            f"Project {project_id} cannot be deleted in status '{current_status}'"
        )


class ProjectReferencedError(ProjectError):
    """Project is referenced by ledger entries and cannot be deleted."""

    code: str = "PROJECT_REFERENCED"

    def __init__(self, project_id: UUID | str):
        self.project_id = str(project_id)
        super().__init__(
            f"Project {project_id} is referenced by ledger entries"
        )


class MissingExpertError(ProjectError):
    """Operation requires an assigned expert but none is set."""

    code: str = "MISSING_EXPERT"

    def __init__(self, project_id: UUID | str):
        self.project_id = str(project_id)
        super().__init__(f"Project {project_id} has no assigned expert")


class ExpertNotAssignedError(ProjectError):
    """The acting expert is not the one assigned to the project."""

    code: str = "EXPERT_NOT_ASSIGNED"

    def __init__(
        self,
        project_id: UUID | str,
        expert_id: UUID | str,
        assigned_expert_id: UUID | str | None,
    ):
        self.project_id = str(project_id)
        self.expert_id = str(expert_id)
        self.assigned_expert_id = (
            str(assigned_expert_id) if assigned_expert_id is not None else None
        )
        super().__init__(
            f"Expert {expert_id} is not assigned to project {project_id}"
        )


class InvalidEstimateRequestError(ProjectError):
    """Estimate request was rejected before reaching the oracle."""

    code: str = "INVALID_ESTIMATE_REQUEST"

    def __init__(self, project_id: UUID | str, reason: str):
        self.project_id = str(project_id)
        self.reason = reason
        super().__init__(f"Invalid estimate request for {project_id}: {reason}")


class InvalidEstimateError(ProjectError):
    """Estimate amount must be a positive decimal."""

    code: str = "INVALID_ESTIMATE"

    def __init__(self, project_id: UUID | str, value: object):
        self.project_id = str(project_id)
        self.value = str(value)
        super().__init__(f"Invalid estimate for project {project_id}: {value}")


class InvalidProjectError(ProjectError):
    """Project fields failed validation on create."""

    code: str = "INVALID_PROJECT"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid project {field}: {reason}")


class EmptySubmissionError(ProjectError):
    """A work submission must reference at least one work item."""

    code: str = "EMPTY_SUBMISSION"

    def __init__(self, project_id: UUID | str):
        self.project_id = str(project_id)
        super().__init__(f"Submission for project {project_id} has no work items")


class InvalidRatingError(ProjectError):
    """Rating must be an integer from 1 to 5."""

    code: str = "INVALID_RATING"

    def __init__(self, rating: object):
        self.rating = rating
        super().__init__(f"Rating must be an integer between 1 and 5, got {rating!r}")


# Credit exceptions


class CreditError(VoicecraftKernelError):
    """Base exception for credit ledger errors."""

    code: str = "CREDIT_ERROR"


class InsufficientBalanceError(CreditError):
    """A debit would drive an account balance below zero."""

    code: str = "INSUFFICIENT_BALANCE"

    def __init__(self, account_id: UUID | str, required: int, available: int):
        self.account_id = str(account_id)
        self.required = required
        self.available = available
        self.shortfall = max(required - available, 0)
        super().__init__(
            f"Insufficient balance on {account_id}: "
            f"required {required}, available {available}"
        )


class InsufficientCreditsError(InsufficientBalanceError):
    """The client cannot cover a project reservation."""

    code: str = "INSUFFICIENT_CREDITS"

    def __init__(
        self,
        account_id: UUID | str,
        required: int,
        available: int,
        project_id: UUID | str,
    ):
        self.project_id = str(project_id)
        super().__init__(account_id, required, available)


class InvalidRefundAmountError(CreditError):
    """Refund amount resolved to zero or less."""

    code: str = "INVALID_REFUND_AMOUNT"

    def __init__(self, project_id: UUID | str, amount: object):
        self.project_id = str(project_id)
        self.amount = str(amount)
        super().__init__(f"Invalid refund amount for project {project_id}: {amount}")


class InvalidLedgerAmountError(CreditError):
    """Ledger amounts are non-zero whole credits."""

    code: str = "INVALID_LEDGER_AMOUNT"

    def __init__(self, amount: object):
        self.amount = str(amount)
        super().__init__(f"Ledger amount must be a non-zero integer, got {amount!r}")


class DuplicatePayoutError(CreditError):
    """Project already settled by a completion or a refund."""

    code: str = "DUPLICATE_PAYOUT"

    def __init__(self, project_id: UUID | str, existing_reason: str):
        self.project_id = str(project_id)
        self.existing_reason = existing_reason
        super().__init__(
            f"Project {project_id} already settled ({existing_reason})"
        )


class IdempotencyConflictError(CreditError):
    """Idempotency key reused for a different account, amount or reason."""

    code: str = "IDEMPOTENCY_CONFLICT"

    def __init__(
        self,
        idempotency_key: str,
        existing_entry_id: UUID | str,
        mismatched: tuple[str, ...],
    ):
        self.idempotency_key = idempotency_key
        self.existing_entry_id = str(existing_entry_id)
        self.mismatched = mismatched
        super().__init__(
            f"Idempotency key {idempotency_key!r} already used by entry "
            f"{existing_entry_id} with a different {', '.join(mismatched)}"
        )


# Expert exceptions


class ExpertError(VoicecraftKernelError):
    """Base exception for expert errors."""

    code: str = "EXPERT_ERROR"


class ExpertUnavailableError(ExpertError):
    """Expert is not accepting assignments."""

    code: str = "EXPERT_UNAVAILABLE"

    def __init__(self, expert_id: UUID | str):
        self.expert_id = str(expert_id)
        super().__init__(f"Expert {expert_id} is not available for assignment")


# Estimation exceptions


class EstimationError(VoicecraftKernelError):
    """Base exception for estimation gateway errors."""

    code: str = "ESTIMATION_ERROR"


class EstimationFailedError(EstimationError):
    """The oracle failed or returned an unusable estimate."""

    code: str = "ESTIMATION_FAILED"

    def __init__(self, detail: str, project_id: UUID | str | None = None):
        self.detail = detail
        self.project_id = str(project_id) if project_id is not None else None
        super().__init__(f"Estimation failed: {detail}")


class EstimationTimeoutError(EstimationFailedError):
    """The oracle did not answer within the allowed time."""

    code: str = "ESTIMATION_TIMEOUT"

    def __init__(self, timeout_seconds: float, project_id: UUID | str | None = None):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"no response within {timeout_seconds}s", project_id=project_id
        )


# Immutability exceptions


class ImmutabilityError(VoicecraftKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Ledger entries and project history rows are append-only.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
