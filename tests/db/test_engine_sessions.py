"""
Tests for the engine module's session helpers.

session_scope commits for real, so these tests request session_factory,
whose teardown deletes every row.
"""

from uuid import uuid4

import pytest

from voicecraft_kernel.db.engine import get_engine, is_postgres, session_scope
from voicecraft_kernel.domain.credits import CreditReason
from voicecraft_kernel.selectors.ledger_selector import LedgerSelector
from voicecraft_kernel.services.account_balance_service import AccountBalanceService


class TestSessionScope:

    def test_commits_on_exit(self, session_factory, test_actor_id):
        account_id = uuid4()
        with session_scope() as session:
            AccountBalanceService(session).grant(
                account_id, 300, CreditReason.CREDIT_PURCHASE, actor_id=test_actor_id
            )

        check = session_factory()
        assert LedgerSelector(check).balance_of(account_id) == 300
        check.close()

    def test_rolls_back_on_error(self, session_factory, test_actor_id):
        account_id = uuid4()
        with pytest.raises(RuntimeError):
            with session_scope() as session:
                AccountBalanceService(session).grant(
                    account_id, 300, CreditReason.CREDIT_PURCHASE, actor_id=test_actor_id
                )
                raise RuntimeError("caller failed after the grant")

        check = session_factory()
        assert LedgerSelector(check).balance_of(account_id) == 0
        check.close()


class TestEngineState:

    def test_dialect_flag(self, db_engine):
        assert get_engine() is db_engine
        assert is_postgres() == (db_engine.dialect.name == "postgresql")
