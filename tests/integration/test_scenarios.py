"""
End-to-end project scenarios through the real services and database.

Each scenario ends by checking every touched account: the materialized
balance equals the sum of its ledger entries and sequence numbers have
no gaps.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from voicecraft_kernel.domain.credits import CreditReason
from voicecraft_kernel.domain.estimation import EstimateResult
from voicecraft_kernel.domain.project_workflow import ProjectStatus
from voicecraft_kernel.exceptions import InsufficientCreditsError
from voicecraft_kernel.models.expert import ExpertProfile
from voicecraft_kernel.models.project import HistoryKind


def _assert_ledger_consistent(ledger_selector):
    for account_id in ledger_selector.all_account_ids():
        check = ledger_selector.verify_account(account_id)
        assert check.is_consistent, check


class TestAcceptEstimate:

    def test_sufficient_balance_reserves_estimate(self, project_in, workflow, ledger_selector):
        # Scenario A
        handle = project_in(ProjectStatus.WAITING_FOR_ESTIMATE_ACCEPT, client_credits=10_000)

        result = workflow.accept_estimate(handle.project_id, actor_id=handle.client_account_id)

        assert result.credits_reserved == 5000
        assert result.entry.amount == -5000
        assert ledger_selector.balance_of(handle.client_account_id) == 5000
        assert result.project.status == ProjectStatus.WAITING_FOR_ASSIGNMENT
        _assert_ledger_consistent(ledger_selector)

    def test_insufficient_balance_changes_nothing(
        self, project_in, workflow, ledger_selector, project_selector
    ):
        # Scenario B
        handle = project_in(ProjectStatus.WAITING_FOR_ESTIMATE_ACCEPT, client_credits=100)

        with pytest.raises(InsufficientCreditsError) as exc_info:
            workflow.accept_estimate(handle.project_id, actor_id=handle.client_account_id)

        error = exc_info.value
        assert (error.required, error.available, error.shortfall) == (5000, 100, 4900)
        assert project_selector.get(handle.project_id).status == ProjectStatus.WAITING_FOR_ESTIMATE_ACCEPT
        assert ledger_selector.balance_of(handle.client_account_id) == 100
        _assert_ledger_consistent(ledger_selector)


class TestApproveWork:

    def test_rating_average_and_payout(
        self, session, project_in, payouts, ledger_selector, expert_selector
    ):
        # Scenario C
        handle = project_in(ProjectStatus.IN_REVIEW)
        profile = session.get(ExpertProfile, handle.expert.id)
        profile.rating = 4.0
        profile.completed_jobs = 9
        session.commit()

        result = payouts.approve_work(handle.project_id, 5, actor_id=handle.client_account_id)

        expert = expert_selector.get(handle.expert.id)
        assert expert.rating == pytest.approx(4.1)
        assert expert.completed_jobs == 10
        assert ledger_selector.balance_of(handle.expert.account_id) == 5000
        assert result.project.status == ProjectStatus.COMPLETED
        _assert_ledger_consistent(ledger_selector)


class TestRefund:

    def test_without_reservation_falls_back_to_estimate(
        self, insert_project, payouts, ledger_selector, project_selector, test_actor_id
    ):
        # Scenario D
        project = insert_project(ProjectStatus.ASSIGNED, estimated_cost=Decimal("20.00"))

        result = payouts.refund(project.id, "Expert dropped out", actor_id=test_actor_id)

        assert result.credits_refunded == 2000
        assert ledger_selector.balance_of(project.client_account_id) == 2000
        assert project_selector.get(project.id).status == ProjectStatus.REFUNDED
        _assert_ledger_consistent(ledger_selector)


class TestFullLifecycle:

    def test_revision_round_and_re_estimate(
        self,
        workflow,
        payouts,
        balance_service,
        fake_gateway,
        make_expert,
        sample_work_items,
        ledger_selector,
        project_selector,
        recording_notifier,
        test_actor_id,
    ):
        client = uuid4()
        balance_service.grant_welcome_credits(client, actor_id=client)
        balance_service.purchase_credits(client, 6000, "pay_001", actor_id=client)

        project = workflow.create_project(
            client, "Podcast season 2", actor_id=client, priority="high", work_items=sample_work_items
        )
        fake_gateway.result = EstimateResult(cost=Decimal("55"), duration_hours=Decimal("6"))
        estimated = workflow.request_estimate(
            project.id, "Level the hosts and remove the hum from all episodes.", actor_id=client
        )
        assert estimated.estimated_cost == Decimal("55")

        workflow.accept_estimate(project.id, actor_id=client)
        assert ledger_selector.balance_of(client) == 600

        expert = make_expert("Mix Engineer", specialization="podcast")
        workflow.assign(project.id, expert.id, actor_id=test_actor_id, instructions="Keep intros")
        workflow.submit_work(project.id, expert.id, [uuid4(), uuid4()], actor_id=expert.account_id)
        workflow.request_changes(project.id, "Episode 3 still hums", actor_id=client)
        workflow.submit_work(project.id, expert.id, [uuid4()], actor_id=expert.account_id)

        re_estimate = workflow.re_estimate(project.id, "60", "Extra noise work", actor_id=test_actor_id)
        assert re_estimate.additional_credits == 500
        assert re_estimate.client_has_enough_credits

        delta = workflow.accept_estimate_delta(project.id, actor_id=client)
        assert delta.credits_moved == 500
        assert ledger_selector.balance_of(client) == 100
        assert ledger_selector.reserved_credits_for_project(project.id, client) == 6000

        payout = payouts.approve_work(project.id, 4, actor_id=client, feedback="Clean result")

        assert payout.payout_credits == 6000
        assert payout.project.actual_cost == Decimal("60")
        assert ledger_selector.balance_of(expert.account_id) == 6000
        assert ledger_selector.balance_of(client) == 100

        reasons = sorted(e.reason for e in ledger_selector.entries_for_project(project.id))
        assert reasons == sorted(
            [
                CreditReason.PROJECT_RESERVATION,
                CreditReason.PROJECT_RESERVATION_ADJUSTMENT,
                CreditReason.PROJECT_COMPLETION,
            ]
        )

        kinds = [h.kind for h in project_selector.history(project.id)]
        assert kinds.count(HistoryKind.WORK_SUBMISSION) == 2
        assert HistoryKind.REVISION_REQUEST in kinds
        assert HistoryKind.ESTIMATE_REVISION in kinds
        assert HistoryKind.ESTIMATE_DELTA_ACCEPTED in kinds

        assert recording_notifier.kinds()[-1] == "payout_issued"
        _assert_ledger_consistent(ledger_selector)

    def test_rejected_then_revised_estimate(
        self, workflow, fund_account, fake_gateway, sample_work_items, ledger_selector
    ):
        client = uuid4()
        fund_account(client, 3000)
        project = workflow.create_project(
            client, "Short film ADR", actor_id=client, work_items=sample_work_items
        )

        fake_gateway.result = EstimateResult(cost=Decimal("80"))
        workflow.request_estimate(project.id, "Replace the dialogue in scene four.", actor_id=client)
        workflow.reject_estimate(project.id, actor_id=client, reason="Too expensive")

        fake_gateway.result = EstimateResult(cost=Decimal("25"))
        workflow.request_estimate(project.id, "Only clean up scene four dialogue.", actor_id=client)
        result = workflow.accept_estimate(project.id, actor_id=client)

        assert result.credits_reserved == 2500
        assert ledger_selector.balance_of(client) == 500
        assert len(fake_gateway.calls) == 2
        _assert_ledger_consistent(ledger_selector)
