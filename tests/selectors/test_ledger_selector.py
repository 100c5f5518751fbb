"""
Tests for LedgerSelector: balances, consistency checks, history paging and
per-project reservation lookups.
"""

from uuid import uuid4

import pytest

from voicecraft_kernel.domain.credits import CreditReason
from voicecraft_kernel.domain.project_workflow import ProjectStatus


@pytest.fixture
def busy_account(ledger_service, test_actor_id):
    """An account with seven entries: +100 then six -5 debits."""
    account_id = uuid4()
    ledger_service.record(account_id, 100, CreditReason.CREDIT_PURCHASE, actor_id=test_actor_id)
    for _ in range(6):
        ledger_service.record(account_id, -5, CreditReason.VOICE_GENERATION, actor_id=test_actor_id)
    return account_id


class TestBalances:

    def test_unknown_account_reads_zero(self, ledger_selector):
        account_id = uuid4()
        assert ledger_selector.balance_of(account_id) == 0
        assert ledger_selector.derived_balance_of(account_id) == 0
        check = ledger_selector.verify_account(account_id)
        assert check.is_consistent
        assert check.entry_count == 0

    def test_counter_matches_entries(self, busy_account, ledger_selector):
        check = ledger_selector.verify_account(busy_account)
        assert check.counter_balance == 70
        assert check.derived_balance == 70
        assert check.entry_count == check.max_account_seq == 7
        assert check.is_consistent

    def test_all_account_ids(self, busy_account, ledger_selector):
        assert busy_account in ledger_selector.all_account_ids()


class TestHistoryPaging:

    def test_newest_first(self, busy_account, ledger_selector):
        page = ledger_selector.history_of(busy_account, limit=3)
        assert [e.account_seq for e in page.entries] == [7, 6, 5]
        assert page.next_cursor == 5

    def test_walk_all_pages(self, busy_account, ledger_selector):
        seen = []
        cursor = None
        while True:
            page = ledger_selector.history_of(busy_account, limit=3, before_seq=cursor)
            seen.extend(e.account_seq for e in page.entries)
            if page.next_cursor is None:
                break
            cursor = page.next_cursor

        assert seen == [7, 6, 5, 4, 3, 2, 1]

    def test_exact_fit_has_no_cursor(self, busy_account, ledger_selector):
        page = ledger_selector.history_of(busy_account, limit=7)
        assert len(page.entries) == 7
        assert page.next_cursor is None

    def test_empty_history(self, ledger_selector):
        page = ledger_selector.history_of(uuid4())
        assert page.entries == ()
        assert page.next_cursor is None
        assert page.entry_ids == ()

    @pytest.mark.parametrize("limit", [0, -1])
    def test_invalid_limit(self, ledger_selector, limit):
        with pytest.raises(ValueError):
            ledger_selector.history_of(uuid4(), limit=limit)


class TestProjectEntries:

    def test_reserved_credits_follow_adjustments(
        self, balance_service, fund_account, insert_project, ledger_selector, test_actor_id
    ):
        project = insert_project(ProjectStatus.ASSIGNED)
        client = project.client_account_id
        fund_account(client, 10_000)

        balance_service.reserve(
            client, 5000, CreditReason.PROJECT_RESERVATION,
            actor_id=test_actor_id, project_id=project.id,
        )
        assert ledger_selector.reserved_credits_for_project(project.id, client) == 5000

        balance_service.reserve(
            client, 1000, CreditReason.PROJECT_RESERVATION_ADJUSTMENT,
            actor_id=test_actor_id, project_id=project.id,
        )
        assert ledger_selector.reserved_credits_for_project(project.id, client) == 6000

        balance_service.grant(
            client, 2500, CreditReason.PROJECT_RESERVATION_ADJUSTMENT,
            actor_id=test_actor_id, project_id=project.id,
        )
        assert ledger_selector.reserved_credits_for_project(project.id, client) == 3500

        entries = ledger_selector.entries_for_project(project.id)
        assert [e.amount for e in entries] == [-5000, -1000, 2500]

    def test_never_reserved(self, insert_project, ledger_selector):
        project = insert_project(ProjectStatus.ASSIGNED)
        assert (
            ledger_selector.reserved_credits_for_project(project.id, project.client_account_id)
            is None
        )
