"""
AccountBalanceService -- reserve and grant primitives over the ledger.

Responsibility:
    The two primitives every credit movement is built from (``reserve``
    debits, ``grant`` credits) plus the account-level operations of the
    product: credit purchases, the welcome grant, flat-priced operation
    charges and account refunds.

Architecture position:
    Kernel > Services -- imperative shell.  Owns the SAVEPOINT that makes a
    single ledger write atomic; composes LedgerService; never commits.

Invariants enforced:
    NON_NEGATIVE_BALANCE   -- delegated to LedgerService.record.
    BALANCE_MATCHES_LEDGER -- every call runs inside ``begin_nested()`` so a
                              failed insert also undoes the counter update.

Failure modes:
    - InvalidLedgerAmountError if credits is not a positive int.
    - InsufficientBalanceError from ``reserve`` / ``charge_operation``.
    - ValueError for an unknown BillableOperation, before anything is
      written.
    - IdempotencyConflictError when a payment reference is replayed for a
      different account or amount.

Audit relevance:
    Idempotent grants are keyed ``purchase:<payment_reference>`` and
    ``welcome:<account_id>``; a webhook retry returns the original entry.
"""

from typing import Any, Mapping
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from voicecraft_kernel.domain.clock import Clock
from voicecraft_kernel.domain.credits import (
    DEFAULT_OPERATION_COSTS,
    DEFAULT_WELCOME_CREDITS,
    OPERATION_REASONS,
    BillableOperation,
    CreditReason,
)
from voicecraft_kernel.domain.dtos import LedgerEntryRecord
from voicecraft_kernel.exceptions import InvalidLedgerAmountError
from voicecraft_kernel.logging_config import get_logger
from voicecraft_kernel.services.base import BaseService
from voicecraft_kernel.services.ledger_service import LedgerService

logger = get_logger("services.account_balance")


def _require_positive(credits: int) -> int:
    if isinstance(credits, bool) or not isinstance(credits, int) or credits <= 0:
        raise InvalidLedgerAmountError(credits)
    return credits


class AccountBalanceService(BaseService):
    """
    Credit movements for client and expert accounts.

    Contract:
        Each public method appends exactly one ledger entry (or returns the
        existing one for an idempotent replay) inside its own SAVEPOINT.
        The caller's transaction decides whether it is committed.
    """

    def __init__(
        self,
        session: Session,
        ledger: LedgerService | None = None,
        clock: Clock | None = None,
        operation_costs: Mapping[BillableOperation, int] | None = None,
        welcome_credits: int = DEFAULT_WELCOME_CREDITS,
    ):
        super().__init__(session)
        self._ledger = ledger or LedgerService(session, clock=clock)
        costs = dict(DEFAULT_OPERATION_COSTS)
        if operation_costs:
            costs.update({BillableOperation(k): v for k, v in operation_costs.items()})
        self._operation_costs = costs
        self._welcome_credits = welcome_credits

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    def reserve(
        self,
        account_id: UUID,
        credits: int,
        reason: CreditReason | str,
        *,
        actor_id: UUID,
        project_id: UUID | None = None,
        description: str | None = None,
        metadata: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> LedgerEntryRecord:
        """Debit ``credits`` (positive) from the account."""
        _require_positive(credits)
        with self.session.begin_nested():
            return self._ledger.record(
                account_id,
                -credits,
                reason,
                actor_id=actor_id,
                project_id=project_id,
                description=description,
                metadata=metadata,
                idempotency_key=idempotency_key,
            )

    def grant(
        self,
        account_id: UUID,
        credits: int,
        reason: CreditReason | str,
        *,
        actor_id: UUID,
        project_id: UUID | None = None,
        description: str | None = None,
        metadata: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> LedgerEntryRecord:
        """Credit ``credits`` (positive) to the account."""
        _require_positive(credits)
        with self.session.begin_nested():
            return self._ledger.record(
                account_id,
                credits,
                reason,
                actor_id=actor_id,
                project_id=project_id,
                description=description,
                metadata=metadata,
                idempotency_key=idempotency_key,
            )

    # ------------------------------------------------------------------
    # Account-level operations
    # ------------------------------------------------------------------

    def purchase_credits(
        self,
        account_id: UUID,
        credits: int,
        payment_reference: str,
        *,
        actor_id: UUID,
        metadata: dict[str, Any] | None = None,
    ) -> LedgerEntryRecord:
        """
        Record credits bought through the payment provider.

        Safe to call again with the same payment_reference: the first
        entry is returned and the balance is not credited twice.
        """
        if not payment_reference:
            raise ValueError("payment_reference is required")
        return self._idempotent_grant(
            account_id,
            credits,
            CreditReason.CREDIT_PURCHASE,
            idempotency_key=f"purchase:{payment_reference}",
            actor_id=actor_id,
            description=f"Credit purchase {payment_reference}",
            metadata={**(metadata or {}), "payment_reference": payment_reference},
        )

    def grant_welcome_credits(self, account_id: UUID, *, actor_id: UUID) -> LedgerEntryRecord:
        """One-off promotional grant for a new account."""
        return self._idempotent_grant(
            account_id,
            self._welcome_credits,
            CreditReason.PROMOTIONAL_GRANT,
            idempotency_key=f"welcome:{account_id}",
            actor_id=actor_id,
            description="Welcome credits",
        )

    def charge_operation(
        self,
        account_id: UUID,
        operation: BillableOperation | str,
        *,
        actor_id: UUID,
        metadata: dict[str, Any] | None = None,
    ) -> LedgerEntryRecord:
        operation = BillableOperation(operation)
        cost = self._operation_costs[operation]
        logger.debug(
            "operation_charge_requested",
            extra={"account_id": str(account_id), "operation": operation.value, "cost": cost},
        )
        return self.reserve(
            account_id,
            cost,
            OPERATION_REASONS[operation],
            actor_id=actor_id,
            description=operation.value.replace("_", " ").capitalize(),
            metadata=metadata,
        )

    def refund_credits(
        self,
        account_id: UUID,
        credits: int,
        reason: str,
        *,
        actor_id: UUID,
    ) -> LedgerEntryRecord:
        """Account-level refund, not tied to a project."""
        return self.grant(
            account_id,
            credits,
            CreditReason.REFUND,
            actor_id=actor_id,
            description=reason,
        )

    def operation_cost(self, operation: BillableOperation | str) -> int:
        return self._operation_costs[BillableOperation(operation)]

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _idempotent_grant(
        self,
        account_id: UUID,
        credits: int,
        reason: CreditReason,
        *,
        idempotency_key: str,
        actor_id: UUID,
        description: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> LedgerEntryRecord:
        try:
            return self.grant(
                account_id,
                credits,
                reason,
                actor_id=actor_id,
                description=description,
                metadata=metadata,
                idempotency_key=idempotency_key,
            )
        except IntegrityError:
            # A concurrent request committed the same key first.
            existing = self._ledger.replay(idempotency_key, account_id, credits, reason)
            if existing is None:
                raise
            logger.info(
                "idempotent_grant_race_resolved",
                extra={"account_id": str(account_id), "idempotency_key": idempotency_key},
            )
            return existing
