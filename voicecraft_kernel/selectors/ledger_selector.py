"""
Module: voicecraft_kernel.selectors.ledger_selector
Responsibility: Read-only credit ledger queries: materialized balance, balance
    derived from entries, counter/ledger consistency checks, and paged
    account history.
Architecture position: Kernel > Selectors.

Invariants enforced:
    BALANCE_MATCHES_LEDGER -- verify_account() compares the materialized
        counter with SUM(amount) and entry_count with MAX(account_seq).

Failure modes:
    - Unknown accounts read as balance 0 with empty history.
    - history_of() raises ValueError for a non-positive limit.

Audit relevance:
    history_of() pages by account_seq, which is gap-free per account, so a
    cursor taken at any time restarts the scan without skipping entries.
"""

from uuid import UUID

from sqlalchemy import func, select

from voicecraft_kernel.domain.credits import CreditReason
from voicecraft_kernel.domain.dtos import BalanceCheck, LedgerEntryRecord, LedgerPage
from voicecraft_kernel.models.account import Account
from voicecraft_kernel.models.ledger import LedgerEntry
from voicecraft_kernel.selectors.base import BaseSelector

DEFAULT_PAGE_SIZE = 50


class LedgerSelector(BaseSelector[LedgerEntry]):
    """Read side of the credit ledger."""

    def balance_of(self, account_id: UUID) -> int:
        """Materialized balance; 0 for an account with no entries yet."""
        balance = self.session.execute(
            select(Account.balance).where(Account.id == account_id)
        ).scalar_one_or_none()
        return balance or 0

    def derived_balance_of(self, account_id: UUID) -> int:
        """SUM(amount) over the account's entries."""
        total = self.session.execute(
            select(func.coalesce(func.sum(LedgerEntry.amount), 0)).where(
                LedgerEntry.account_id == account_id
            )
        ).scalar_one()
        return int(total)

    def verify_account(self, account_id: UUID) -> BalanceCheck:
        row = self.session.execute(
            select(Account.balance, Account.entry_count).where(Account.id == account_id)
        ).one_or_none()
        counter_balance, entry_count = (row.balance, row.entry_count) if row else (0, 0)
        max_seq = self.session.execute(
            select(func.coalesce(func.max(LedgerEntry.account_seq), 0)).where(
                LedgerEntry.account_id == account_id
            )
        ).scalar_one()
        return BalanceCheck(
            account_id=account_id,
            counter_balance=counter_balance,
            derived_balance=self.derived_balance_of(account_id),
            entry_count=entry_count,
            max_account_seq=int(max_seq),
        )

    def all_account_ids(self) -> list[UUID]:
        return list(self.session.execute(select(Account.id).order_by(Account.created_at)).scalars())

    def history_of(
        self,
        account_id: UUID,
        limit: int = DEFAULT_PAGE_SIZE,
        before_seq: int | None = None,
    ) -> LedgerPage:
        """
        Newest-first page of entries for the account.

        Pass the returned ``next_cursor`` as ``before_seq`` to fetch the next
        (older) page; ``next_cursor`` is None on the last page.
        """
        if limit <= 0:
            raise ValueError(f"limit must be positive, got {limit}")

        stmt = select(LedgerEntry).where(LedgerEntry.account_id == account_id)
        if before_seq is not None:
            stmt = stmt.where(LedgerEntry.account_seq < before_seq)
        stmt = stmt.order_by(LedgerEntry.account_seq.desc()).limit(limit + 1)

        rows = list(self.session.execute(stmt).scalars())
        has_more = len(rows) > limit
        rows = rows[:limit]
        entries = tuple(LedgerEntryRecord.from_model(r) for r in rows)
        return LedgerPage(
            account_id=account_id,
            entries=entries,
            next_cursor=entries[-1].account_seq if has_more else None,
        )

    def entries_for_project(self, project_id: UUID) -> list[LedgerEntryRecord]:
        """Every entry tagged with the project, oldest first."""
        rows = self.session.execute(
            select(LedgerEntry)
            .where(LedgerEntry.project_id == project_id)
            .order_by(LedgerEntry.created_at, LedgerEntry.account_seq)
        ).scalars()
        return [LedgerEntryRecord.from_model(r) for r in rows]

    def reserved_credits_for_project(self, project_id: UUID, account_id: UUID) -> int | None:
        """
        Credits currently held for the project on the client's account.

        The absolute value of the latest PROJECT_RESERVATION plus the net
        effect of reservation adjustments recorded after it.  None when the
        project was never reserved.
        """
        reservation = self.session.execute(
            select(LedgerEntry.amount, LedgerEntry.account_seq)
            .where(
                LedgerEntry.project_id == project_id,
                LedgerEntry.account_id == account_id,
                LedgerEntry.reason == CreditReason.PROJECT_RESERVATION.value,
            )
            .order_by(LedgerEntry.account_seq.desc())
            .limit(1)
        ).one_or_none()
        if reservation is None:
            return None

        # Adjustments are debits (more held) or credits (less held).
        adjustments = self.session.execute(
            select(func.coalesce(func.sum(LedgerEntry.amount), 0)).where(
                LedgerEntry.project_id == project_id,
                LedgerEntry.account_id == account_id,
                LedgerEntry.reason == CreditReason.PROJECT_RESERVATION_ADJUSTMENT.value,
                LedgerEntry.account_seq > reservation.account_seq,
            )
        ).scalar_one()
        return abs(reservation.amount) - int(adjustments)
