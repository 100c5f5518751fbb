"""
Credits -- dollar/credit conversion and billable operation prices.

Responsibility:
    The one place where dollar figures become whole credits.  Every charge,
    payout and refund derived from an estimate goes through
    ``dollars_to_credits`` so that rounding is identical system-wide.

Architecture position:
    Kernel > Domain -- pure functions, zero I/O.

Invariants enforced:
    ROUND_UP_CONVERSION -- ceil(dollars * 100); the platform never
    under-charges by truncation.
"""

from decimal import ROUND_CEILING, Decimal, InvalidOperation
from enum import Enum

CREDITS_PER_DOLLAR = 100

_CENT = Decimal("0.01")


class BillableOperation(str, Enum):
    """Account-level operations charged a flat number of credits."""

    VOICE_GENERATION = "voice_generation"
    VOICE_CLONING = "voice_cloning"
    AI_ESTIMATION = "ai_estimation"


DEFAULT_OPERATION_COSTS: dict[BillableOperation, int] = {
    BillableOperation.VOICE_GENERATION: 10,
    BillableOperation.VOICE_CLONING: 50,
    BillableOperation.AI_ESTIMATION: 5,
}

DEFAULT_WELCOME_CREDITS = 100


def to_dollars(value: Decimal | int | str) -> Decimal:
    """Parse a dollar figure.  Floats are rejected outright."""
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"Dollar amounts must be Decimal, int or str, not {type(value).__name__}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValueError(f"Not a dollar amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Not a finite dollar amount: {value!r}")
    return amount


def round_up_to_cents(dollars: Decimal) -> Decimal:
    """Quantize to whole cents, rounding toward positive infinity."""
    return to_dollars(dollars).quantize(_CENT, rounding=ROUND_CEILING)


def dollars_to_credits(dollars: Decimal | int | str) -> int:
    """
    Convert dollars to credits: ceil(dollars * 100).

    Negative inputs round toward zero (ceil), e.g. -10.005 -> -1000.
    """
    scaled = to_dollars(dollars) * CREDITS_PER_DOLLAR
    return int(scaled.to_integral_value(rounding=ROUND_CEILING))


def credits_to_dollars(credits: int) -> Decimal:
    """Exact dollar value of a whole number of credits."""
    return (Decimal(credits) / CREDITS_PER_DOLLAR).quantize(_CENT)


class CreditReason(str, Enum):
    """Why credits moved."""

    # Operation charges
    VOICE_GENERATION = "VOICE_GENERATION"
    VOICE_CLONING = "VOICE_CLONING"
    AI_ESTIMATION = "AI_ESTIMATION"
    # Account-level grants
    CREDIT_PURCHASE = "CREDIT_PURCHASE"
    SUBSCRIPTION_GRANT = "SUBSCRIPTION_GRANT"
    PROMOTIONAL_GRANT = "PROMOTIONAL_GRANT"
    REFUND = "REFUND"
    # Project lifecycle
    PROJECT_RESERVATION = "PROJECT_RESERVATION"
    PROJECT_RESERVATION_ADJUSTMENT = "PROJECT_RESERVATION_ADJUSTMENT"
    PROJECT_COMPLETION = "PROJECT_COMPLETION"
    PROJECT_REFUND = "PROJECT_REFUND"


# Reasons that settle a project; at most one per project.
SETTLEMENT_REASONS: frozenset[CreditReason] = frozenset(
    {CreditReason.PROJECT_COMPLETION, CreditReason.PROJECT_REFUND}
)

OPERATION_REASONS: dict[BillableOperation, CreditReason] = {
    BillableOperation.VOICE_GENERATION: CreditReason.VOICE_GENERATION,
    BillableOperation.VOICE_CLONING: CreditReason.VOICE_CLONING,
    BillableOperation.AI_ESTIMATION: CreditReason.AI_ESTIMATION,
}
