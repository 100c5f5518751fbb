"""
Project lifecycle definition.

The single source of truth for which action is legal in which project
status.  ``ProjectWorkflowService`` and ``PayoutOrchestrator`` consult
``PROJECT_WORKFLOW.resolve(status, action)`` before every guarded update.

    draft --request_estimate--> estimating
    draft --add_work_items / remove_work_item--> draft
    estimating --estimate_ready--> waiting_for_estimate_accept
    estimating --estimate_failed--> draft
    waiting_for_estimate_accept --accept_estimate--> waiting_for_assignment
    waiting_for_estimate_accept --reject_estimate--> draft
    waiting_for_assignment --assign--> assigned
    assigned --submit_work--> in_review
    in_review --request_changes--> assigned
    in_review --approve_work--> completed
    {waiting_for_assignment, assigned, in_review} --refund--> refunded
    {assigned, in_review} --re_estimate / accept_estimate_delta /
        reject_estimate_delta--> (same state)
"""

from enum import Enum

from voicecraft_kernel.domain.workflow import Guard, Transition, Workflow


class ProjectStatus(str, Enum):
    """Canonical project states.  Legacy aliases are not accepted."""

    DRAFT = "draft"
    ESTIMATING = "estimating"
    WAITING_FOR_ESTIMATE_ACCEPT = "waiting_for_estimate_accept"
    WAITING_FOR_ASSIGNMENT = "waiting_for_assignment"
    ASSIGNED = "assigned"
    IN_REVIEW = "in_review"
    COMPLETED = "completed"
    REFUNDED = "refunded"


class ProjectAction(str, Enum):
    REQUEST_ESTIMATE = "request_estimate"
    ADD_WORK_ITEMS = "add_work_items"
    REMOVE_WORK_ITEM = "remove_work_item"
    ESTIMATE_READY = "estimate_ready"
    ESTIMATE_FAILED = "estimate_failed"
    ACCEPT_ESTIMATE = "accept_estimate"
    REJECT_ESTIMATE = "reject_estimate"
    ASSIGN = "assign"
    SUBMIT_WORK = "submit_work"
    REQUEST_CHANGES = "request_changes"
    APPROVE_WORK = "approve_work"
    REFUND = "refund"
    RE_ESTIMATE = "re_estimate"
    ACCEPT_ESTIMATE_DELTA = "accept_estimate_delta"
    REJECT_ESTIMATE_DELTA = "reject_estimate_delta"


PROJECT_PRIORITIES: tuple[str, ...] = ("low", "medium", "high", "urgent")

# Projects may be hard-deleted only before credits can be involved.
DELETABLE_STATUSES: frozenset[str] = frozenset(
    {ProjectStatus.DRAFT.value, ProjectStatus.ESTIMATING.value}
)

_S = ProjectStatus
_A = ProjectAction

_CLIENT_CAN_PAY = Guard("client_can_pay", "Client balance covers ceil(estimate * 100)")
_EXPERT_AVAILABLE = Guard("expert_available", "Expert exists and is accepting work")
_IS_ASSIGNED_EXPERT = Guard("is_assigned_expert", "Only the assigned expert may submit")
_NO_PENDING_DELTA = Guard("no_pending_delta", "No re-estimate is awaiting the client")
_HAS_PENDING_DELTA = Guard("has_pending_delta", "A re-estimate is awaiting the client")
_POSITIVE_REFUND = Guard("positive_refund", "Refund resolves to more than zero credits")


def _revision_loops(action: _A, guard: Guard, moves_credits: bool = False) -> tuple[Transition, ...]:
    return tuple(
        Transition(state.value, state.value, action.value, guard=guard, moves_credits=moves_credits)
        for state in (_S.ASSIGNED, _S.IN_REVIEW)
    )


PROJECT_WORKFLOW = Workflow(
    name="project",
    description="Expert-fulfilled voice project lifecycle",
    initial_state=_S.DRAFT.value,
    states=tuple(s.value for s in ProjectStatus),
    transitions=(
        Transition(_S.DRAFT.value, _S.ESTIMATING.value, _A.REQUEST_ESTIMATE.value),
        Transition(_S.DRAFT.value, _S.DRAFT.value, _A.ADD_WORK_ITEMS.value),
        Transition(_S.DRAFT.value, _S.DRAFT.value, _A.REMOVE_WORK_ITEM.value),
        Transition(_S.ESTIMATING.value, _S.WAITING_FOR_ESTIMATE_ACCEPT.value, _A.ESTIMATE_READY.value),
        Transition(_S.ESTIMATING.value, _S.DRAFT.value, _A.ESTIMATE_FAILED.value),
        Transition(
            _S.WAITING_FOR_ESTIMATE_ACCEPT.value,
            _S.WAITING_FOR_ASSIGNMENT.value,
            _A.ACCEPT_ESTIMATE.value,
            guard=_CLIENT_CAN_PAY,
            moves_credits=True,
        ),
        Transition(_S.WAITING_FOR_ESTIMATE_ACCEPT.value, _S.DRAFT.value, _A.REJECT_ESTIMATE.value),
        Transition(
            _S.WAITING_FOR_ASSIGNMENT.value,
            _S.ASSIGNED.value,
            _A.ASSIGN.value,
            guard=_EXPERT_AVAILABLE,
        ),
        Transition(
            _S.ASSIGNED.value,
            _S.IN_REVIEW.value,
            _A.SUBMIT_WORK.value,
            guard=_IS_ASSIGNED_EXPERT,
        ),
        Transition(_S.IN_REVIEW.value, _S.ASSIGNED.value, _A.REQUEST_CHANGES.value),
        Transition(
            _S.IN_REVIEW.value,
            _S.COMPLETED.value,
            _A.APPROVE_WORK.value,
            guard=_NO_PENDING_DELTA,
            moves_credits=True,
        ),
        *(
            Transition(state.value, _S.REFUNDED.value, _A.REFUND.value, guard=_POSITIVE_REFUND, moves_credits=True)
            for state in (_S.WAITING_FOR_ASSIGNMENT, _S.ASSIGNED, _S.IN_REVIEW)
        ),
        *_revision_loops(_A.RE_ESTIMATE, _NO_PENDING_DELTA),
        *_revision_loops(_A.ACCEPT_ESTIMATE_DELTA, _HAS_PENDING_DELTA, moves_credits=True),
        *_revision_loops(_A.REJECT_ESTIMATE_DELTA, _HAS_PENDING_DELTA),
    ),
    terminal_states=(_S.COMPLETED.value, _S.REFUNDED.value),
)
