"""
Unit tests for the project lifecycle table and the Workflow lookup.
"""

import pytest

from voicecraft_kernel.domain.project_workflow import (
    DELETABLE_STATUSES,
    PROJECT_WORKFLOW,
    ProjectAction,
    ProjectStatus,
)
from voicecraft_kernel.domain.workflow import Transition, Workflow

S = ProjectStatus
A = ProjectAction


class TestProjectWorkflowTable:

    @pytest.mark.parametrize(
        "from_state, action, to_state",
        [
            (S.DRAFT, A.REQUEST_ESTIMATE, S.ESTIMATING),
            (S.DRAFT, A.ADD_WORK_ITEMS, S.DRAFT),
            (S.DRAFT, A.REMOVE_WORK_ITEM, S.DRAFT),
            (S.ESTIMATING, A.ESTIMATE_READY, S.WAITING_FOR_ESTIMATE_ACCEPT),
            (S.ESTIMATING, A.ESTIMATE_FAILED, S.DRAFT),
            (S.WAITING_FOR_ESTIMATE_ACCEPT, A.ACCEPT_ESTIMATE, S.WAITING_FOR_ASSIGNMENT),
            (S.WAITING_FOR_ESTIMATE_ACCEPT, A.REJECT_ESTIMATE, S.DRAFT),
            (S.WAITING_FOR_ASSIGNMENT, A.ASSIGN, S.ASSIGNED),
            (S.ASSIGNED, A.SUBMIT_WORK, S.IN_REVIEW),
            (S.IN_REVIEW, A.REQUEST_CHANGES, S.ASSIGNED),
            (S.IN_REVIEW, A.APPROVE_WORK, S.COMPLETED),
            (S.WAITING_FOR_ASSIGNMENT, A.REFUND, S.REFUNDED),
            (S.ASSIGNED, A.REFUND, S.REFUNDED),
            (S.IN_REVIEW, A.REFUND, S.REFUNDED),
            (S.ASSIGNED, A.RE_ESTIMATE, S.ASSIGNED),
            (S.IN_REVIEW, A.ACCEPT_ESTIMATE_DELTA, S.IN_REVIEW),
            (S.IN_REVIEW, A.REJECT_ESTIMATE_DELTA, S.IN_REVIEW),
        ],
    )
    def test_legal_transitions(self, from_state, action, to_state):
        transition = PROJECT_WORKFLOW.resolve(from_state.value, action.value)
        assert transition is not None
        assert transition.to_state == to_state.value

    @pytest.mark.parametrize(
        "from_state, action",
        [
            (S.DRAFT, A.ACCEPT_ESTIMATE),
            (S.DRAFT, A.REFUND),
            (S.WAITING_FOR_ESTIMATE_ACCEPT, A.REFUND),
            (S.ASSIGNED, A.APPROVE_WORK),
            (S.WAITING_FOR_ASSIGNMENT, A.RE_ESTIMATE),
            (S.ESTIMATING, A.REQUEST_ESTIMATE),
            (S.ESTIMATING, A.ADD_WORK_ITEMS),
            (S.WAITING_FOR_ESTIMATE_ACCEPT, A.REMOVE_WORK_ITEM),
        ],
    )
    def test_illegal_transitions(self, from_state, action):
        assert PROJECT_WORKFLOW.resolve(from_state.value, action.value) is None

    @pytest.mark.parametrize("terminal", [S.COMPLETED, S.REFUNDED])
    def test_terminal_states_have_no_actions(self, terminal):
        assert PROJECT_WORKFLOW.is_terminal(terminal.value)
        assert PROJECT_WORKFLOW.actions_from(terminal.value) == ()

    def test_refund_sources(self):
        assert PROJECT_WORKFLOW.sources_of(A.REFUND.value) == (
            S.WAITING_FOR_ASSIGNMENT.value,
            S.ASSIGNED.value,
            S.IN_REVIEW.value,
        )

    def test_credit_moving_transitions(self):
        moving = {t.action for t in PROJECT_WORKFLOW.transitions if t.moves_credits}
        assert moving == {
            A.ACCEPT_ESTIMATE.value,
            A.APPROVE_WORK.value,
            A.REFUND.value,
            A.ACCEPT_ESTIMATE_DELTA.value,
        }

    @pytest.mark.parametrize(
        "from_state, action, guard",
        [
            (S.WAITING_FOR_ESTIMATE_ACCEPT, A.ACCEPT_ESTIMATE, "client_can_pay"),
            (S.WAITING_FOR_ASSIGNMENT, A.ASSIGN, "expert_available"),
            (S.ASSIGNED, A.SUBMIT_WORK, "is_assigned_expert"),
            (S.IN_REVIEW, A.APPROVE_WORK, "no_pending_delta"),
            (S.ASSIGNED, A.REFUND, "positive_refund"),
            (S.IN_REVIEW, A.ACCEPT_ESTIMATE_DELTA, "has_pending_delta"),
            (S.DRAFT, A.REQUEST_ESTIMATE, None),
        ],
    )
    def test_guards(self, from_state, action, guard):
        transition = PROJECT_WORKFLOW.resolve(from_state.value, action.value)
        assert (transition.guard.name if transition.guard else None) == guard

    def test_every_state_declared(self):
        assert set(PROJECT_WORKFLOW.states) == {s.value for s in ProjectStatus}
        assert PROJECT_WORKFLOW.initial_state == S.DRAFT.value

    def test_deletable_statuses(self):
        assert DELETABLE_STATUSES == {S.DRAFT.value, S.ESTIMATING.value}


class TestWorkflowValidation:

    def test_unknown_initial_state(self):
        with pytest.raises(ValueError, match="initial state"):
            Workflow("w", "", "missing", ("a",), ())

    def test_unknown_state_in_transition(self):
        with pytest.raises(ValueError, match="unknown state"):
            Workflow("w", "", "a", ("a",), (Transition("a", "b", "go"),))

    def test_duplicate_transition(self):
        with pytest.raises(ValueError, match="duplicate"):
            Workflow(
                "w",
                "",
                "a",
                ("a", "b"),
                (Transition("a", "b", "go"), Transition("a", "a", "go")),
            )

    def test_terminal_with_outgoing_action(self):
        with pytest.raises(ValueError, match="terminal"):
            Workflow(
                "w",
                "",
                "a",
                ("a", "b"),
                (Transition("b", "a", "reopen"),),
                terminal_states=("b",),
            )

    def test_self_transition_flag(self):
        assert Transition("a", "a", "loop").is_self_transition
        assert not Transition("a", "b", "go").is_self_transition
