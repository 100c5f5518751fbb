"""
Clock -- injectable time source.

Responsibility:
    Services stamp assigned/submitted/completed times and ledger entries
    through a Clock so tests can pin time.  Nothing in the kernel calls
    ``datetime.now()`` directly.

Architecture position:
    Kernel > Domain -- pure, except SystemClock which is the one sanctioned
    I/O boundary for time.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """Abstract clock.  ``now()`` always returns an aware UTC datetime."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):
    """Production clock backed by the system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    ``now()`` returns the same value until ``advance()`` or ``set_time()``
    is called.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._fixed_time = fixed_time or datetime(
            2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc
        )
        self._advance_seconds = 0

    def now(self) -> datetime:
        return self._fixed_time + timedelta(seconds=self._advance_seconds)

    def set_time(self, time: datetime) -> None:
        self._fixed_time = time
        self._advance_seconds = 0

    def advance(self, seconds: int = 1) -> None:
        self._advance_seconds += seconds

    def tick(self) -> datetime:
        """Advance by 1 second and return new time."""
        self.advance(1)
        return self.now()
