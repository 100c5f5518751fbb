"""
Module: voicecraft_kernel.models.ledger
Responsibility: ORM persistence for credit ledger entries -- the single source
    of truth for every credit movement.
Architecture position: Kernel > Models.  May import from db/ and the
    CreditReason enum in domain/credits.py.

Invariants enforced:
    LEDGER_APPEND_ONLY -- entries are never updated or deleted (ORM listeners
                          in db/immutability.py).
    Ordering           -- (account_id, account_seq) is unique and strictly
                          increasing per account.
    Idempotency        -- idempotency_key is UNIQUE when present.

Audit relevance:
    balance_after snapshots the account balance immediately after the entry,
    so any historical balance can be read without replaying the ledger.
"""

from typing import Any
from uuid import UUID

from sqlalchemy import JSON, CheckConstraint, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from voicecraft_kernel.db.base import TrackedBase, UUIDString
from voicecraft_kernel.db.types import Credits, Sequence
from voicecraft_kernel.domain.credits import CreditReason


class LedgerEntry(TrackedBase):
    """
    One immutable credit movement.

    amount is signed: positive grants, negative charges/reservations.
    """

    __tablename__ = "ledger_entries"

    __table_args__ = (
        UniqueConstraint("account_id", "account_seq", name="uq_ledger_account_seq"),
        UniqueConstraint("idempotency_key", name="uq_ledger_idempotency"),
        CheckConstraint("amount <> 0", name="ck_ledger_amount_non_zero"),
        CheckConstraint("balance_after >= 0", name="ck_ledger_balance_after"),
        Index("idx_ledger_project", "project_id"),
        Index("idx_ledger_reason", "reason"),
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("credit_accounts.id"),
        nullable=False,
    )

    amount: Mapped[Credits] = mapped_column(nullable=False)

    reason: Mapped[str] = mapped_column(String(40), nullable=False)

    project_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("projects.id"),
        nullable=True,
    )

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # "metadata" is reserved on declarative classes
    entry_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata",
        JSON,
        nullable=True,
    )

    balance_after: Mapped[Credits] = mapped_column(nullable=False)

    account_seq: Mapped[Sequence] = mapped_column(nullable=False)

    idempotency_key: Mapped[str | None] = mapped_column(String(200), nullable=True)

    @property
    def credit_reason(self) -> CreditReason:
        return CreditReason(self.reason)

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry {self.account_id}#{self.account_seq} "
            f"{self.amount:+d} {self.reason}>"
        )
