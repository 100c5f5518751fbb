"""
Module: voicecraft_kernel.models.account
Responsibility: ORM persistence for credit accounts -- one row per client or
    expert account, holding the materialized balance counter.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    NON_NEGATIVE_BALANCE   -- CHECK (balance >= 0), plus the guarded UPDATE
                              in LedgerService.record.
    BALANCE_MATCHES_LEDGER -- balance and entry_count change only through
                              LedgerService.record, in the same transaction
                              as the entry insert (ORM edits are rejected by
                              db/immutability.py).

Failure modes:
    - IntegrityError if a concurrent first entry creates the same account
      (handled by LedgerService with a savepoint retry).
"""

from datetime import datetime

from sqlalchemy import CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from voicecraft_kernel.db.base import Base, UTCDateTime
from voicecraft_kernel.db.types import Credits, Sequence


class Account(Base):
    """
    Credit account.

    The primary key is the account id supplied by the caller layer; rows are
    created implicitly on the first ledger entry and never deleted.
    """

    __tablename__ = "credit_accounts"

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_credit_account_non_negative"),
        CheckConstraint("entry_count >= 0", name="ck_credit_account_entry_count"),
    )

    balance: Mapped[Credits] = mapped_column(nullable=False, default=0)

    # Number of entries ever recorded; the latest entry's account_seq
    entry_count: Mapped[Sequence] = mapped_column(nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    last_entry_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    def __repr__(self) -> str:
        return f"<Account {self.id} balance={self.balance}>"
