"""
LedgerService -- the only writer of credit ledger entries.

Responsibility:
    Appends one ``LedgerEntry`` per call and moves the account's
    materialized balance by the same amount, in the same transaction.

Architecture position:
    Kernel > Services -- imperative shell.  Called by AccountBalanceService,
    ProjectWorkflowService and PayoutOrchestrator; never calls commit.

Invariants enforced:
    NON_NEGATIVE_BALANCE   -- the balance check and the balance write are a
                              single conditional UPDATE
                              (``... WHERE balance + :amount >= 0``); zero
                              rows affected means the debit is refused.
    BALANCE_MATCHES_LEDGER -- counter UPDATE and entry INSERT share the
                              caller's transaction; the caller wraps both in
                              a SAVEPOINT so neither survives alone.
    SINGLE_SETTLEMENT      -- a PROJECT_COMPLETION or PROJECT_REFUND for a
                              project that already has either is refused.
    Ordering               -- each entry takes account_seq = entry_count + 1
                              from the same UPDATE that moved the balance.

Failure modes:
    - InvalidLedgerAmountError for zero or non-integer amounts.
    - InsufficientBalanceError when a debit exceeds the balance (including
      a first-ever entry that is negative).
    - DuplicatePayoutError for a second settlement of one project.
    - IdempotencyConflictError when an idempotency_key is reused for a
      different account, amount or reason.
    - IntegrityError on a concurrent duplicate idempotency_key (the caller's
      savepoint rolls the balance change back with it).

Audit relevance:
    Every recorded entry is logged as ``ledger_entry_recorded`` with account,
    amount, reason and resulting balance.
"""

from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.util import identity_key

from voicecraft_kernel.domain.clock import Clock, SystemClock
from voicecraft_kernel.domain.credits import SETTLEMENT_REASONS, CreditReason
from voicecraft_kernel.domain.dtos import LedgerEntryRecord
from voicecraft_kernel.exceptions import (
    DuplicatePayoutError,
    IdempotencyConflictError,
    InsufficientBalanceError,
    InvalidLedgerAmountError,
)
from voicecraft_kernel.logging_config import get_logger
from voicecraft_kernel.models.account import Account
from voicecraft_kernel.models.ledger import LedgerEntry
from voicecraft_kernel.services.base import BaseService

logger = get_logger("services.ledger")


class LedgerService(BaseService):
    """
    Append-only credit ledger.

    Contract:
        ``record`` either appends exactly one entry and moves the balance by
        exactly ``amount``, or raises and changes nothing visible once the
        caller's savepoint is rolled back.

    Non-goals:
        - Does NOT open its own savepoint or commit; AccountBalanceService and
          the workflow facades own the atomicity boundary.
        - Does NOT read balances for callers -- see LedgerSelector.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def record(
        self,
        account_id: UUID,
        amount: int,
        reason: CreditReason | str,
        *,
        actor_id: UUID,
        project_id: UUID | None = None,
        description: str | None = None,
        metadata: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> LedgerEntryRecord:
        """
        Append one entry of ``amount`` credits to ``account_id``.

        Preconditions:
            - Called inside an active transaction (normally a SAVEPOINT).
            - amount is a non-zero int; positive grants, negative debits.

        Postconditions:
            - balance(account) increased by amount and is >= 0.
            - The returned record carries balance_after and account_seq.

        If idempotency_key matches an existing entry for the same account,
        amount and reason, that entry is returned unchanged and nothing is
        written.
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount == 0:
            raise InvalidLedgerAmountError(amount)
        reason = CreditReason(reason)

        if idempotency_key is not None:
            replayed = self.replay(idempotency_key, account_id, amount, reason)
            if replayed is not None:
                return replayed

        if reason in SETTLEMENT_REASONS:
            self._guard_single_settlement(project_id)

        now = self._clock.now()
        self._ensure_account(account_id, now)

        # INVARIANT: NON_NEGATIVE_BALANCE -- check and write in one statement
        result = self.session.execute(
            update(Account)
            .where(Account.id == account_id, Account.balance + amount >= 0)
            .values(
                balance=Account.balance + amount,
                entry_count=Account.entry_count + 1,
                last_entry_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            available = self.session.execute(
                select(Account.balance).where(Account.id == account_id)
            ).scalar_one()
            logger.warning(
                "ledger_debit_rejected",
                extra={
                    "account_id": str(account_id),
                    "amount": amount,
                    "reason": reason.value,
                    "available": available,
                },
            )
            raise InsufficientBalanceError(account_id, required=-amount, available=available)

        self._expire_cached_account(account_id)
        balance_after, account_seq = self.session.execute(
            select(Account.balance, Account.entry_count).where(Account.id == account_id)
        ).one()

        entry = LedgerEntry(
            account_id=account_id,
            amount=amount,
            reason=reason.value,
            project_id=project_id,
            description=description,
            entry_metadata=metadata,
            balance_after=balance_after,
            account_seq=account_seq,
            idempotency_key=idempotency_key,
            created_at=now,
            updated_at=now,
            created_by_id=actor_id,
        )
        self.session.add(entry)
        self.session.flush()

        logger.info(
            "ledger_entry_recorded",
            extra={
                "entry_id": str(entry.id),
                "account_id": str(account_id),
                "amount": amount,
                "reason": reason.value,
                "project_id": str(project_id) if project_id else None,
                "balance_after": balance_after,
                "account_seq": account_seq,
            },
        )
        return LedgerEntryRecord.from_model(entry)

    def replay(
        self,
        idempotency_key: str,
        account_id: UUID,
        amount: int,
        reason: CreditReason | str,
    ) -> LedgerEntryRecord | None:
        """
        The entry already recorded under ``idempotency_key``, or None.

        Raises IdempotencyConflictError when that entry was for a different
        account, amount or reason.
        """
        existing = self._find_by_idempotency_key(idempotency_key)
        if existing is None:
            return None

        reason = CreditReason(reason)
        mismatched = tuple(
            name
            for name, recorded, requested in (
                ("account_id", existing.account_id, account_id),
                ("amount", existing.amount, amount),
                ("reason", existing.reason, reason.value),
            )
            if recorded != requested
        )
        if mismatched:
            logger.error(
                "ledger_idempotency_conflict",
                extra={
                    "account_id": str(account_id),
                    "idempotency_key": idempotency_key,
                    "entry_id": str(existing.id),
                    "mismatched": list(mismatched),
                },
            )
            raise IdempotencyConflictError(idempotency_key, existing.id, mismatched)

        logger.info(
            "ledger_entry_idempotent_replay",
            extra={
                "account_id": str(account_id),
                "idempotency_key": idempotency_key,
                "entry_id": str(existing.id),
            },
        )
        return LedgerEntryRecord.from_model(existing)

    def _expire_cached_account(self, account_id: UUID) -> None:
        """Bulk UPDATE bypasses the identity map; drop any stale copy."""
        cached = self.session.identity_map.get(identity_key(Account, account_id))
        if cached is not None:
            self.session.expire(cached, ["balance", "entry_count", "last_entry_at"])

    def _find_by_idempotency_key(self, idempotency_key: str) -> LedgerEntry | None:
        return self.session.execute(
            select(LedgerEntry).where(LedgerEntry.idempotency_key == idempotency_key)
        ).scalar_one_or_none()

    def _guard_single_settlement(self, project_id: UUID | None) -> None:
        if project_id is None:
            return
        existing = self.session.execute(
            select(LedgerEntry.reason)
            .where(
                LedgerEntry.project_id == project_id,
                LedgerEntry.reason.in_([r.value for r in SETTLEMENT_REASONS]),
            )
            .limit(1)
        ).scalar_one_or_none()
        if existing is not None:
            logger.error(
                "duplicate_settlement_blocked",
                extra={"project_id": str(project_id), "existing_reason": existing},
            )
            raise DuplicatePayoutError(project_id, existing)

    def _ensure_account(self, account_id: UUID, now) -> None:
        """
        Create the account row on first use.

        A concurrent creator makes our INSERT fail with IntegrityError; the
        savepoint is rolled back and the other transaction's row is used.
        """
        exists = self.session.execute(
            select(Account.id).where(Account.id == account_id)
        ).scalar_one_or_none()
        if exists is not None:
            return

        savepoint = self.session.begin_nested()
        try:
            self.session.add(
                Account(id=account_id, balance=0, entry_count=0, created_at=now)
            )
            self.session.flush()
            savepoint.commit()
            logger.debug("credit_account_created", extra={"account_id": str(account_id)})
        except IntegrityError:
            logger.debug(
                "credit_account_create_race_retry",
                extra={"account_id": str(account_id)},
            )
            savepoint.rollback()
